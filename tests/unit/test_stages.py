# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Unit tests for the bootstrap, preparation, launch and probe stages.
"""
import pytest

from isocheck.errors import LaunchError, PreparationError, ProbeError, SetupError
from isocheck.MANAGERS.container_manager import ContainerLaunchStage, ProbeExecutionStage
from isocheck.MANAGERS.environment_manager import EnvironmentBootstrapper
from isocheck.MANAGERS.image_manager import ImagePreparationStage
from isocheck.MODELS.scenario import ContainerSpec, LaunchedContainer, PreparedImage
from isocheck.REGISTRY.registry_config import RegistryConfig
from isocheck.RUNNERS.probes import command_probe, web_service_probe

REGISTRY = RegistryConfig(host="registry.test:5000", user="u", password="p")


def _noop(shell, name):
    pass


def _specs(*images):
    return [ContainerSpec(image=image, probe=_noop) for image in images]


class TestEnvironmentBootstrapper:
    """Tests for EnvironmentBootstrapper."""

    def test_bootstrap_order(self, fake_shell, harness_config):
        EnvironmentBootstrapper(fake_shell, harness_config, REGISTRY).bootstrap()
        commands = [c[0] if c[0] != "write_file" else "write_file" for c in fake_shell.commands]
        assert commands == ["write_file", "update-ca-certificates", "nerdctl",
                            "systemctl", "systemctl", "ctr"]
        content, mode = fake_shell.files[harness_config.containerd_config_path]
        assert mode == 0o600
        assert "proxy_plugins" in content
        assert fake_shell.ran("nerdctl", "login") == [
            ["nerdctl", "login", "-u", "u", "-p", "p", "registry.test:5000"]
        ]

    def test_builtin_snapshotter_restarts_runtime_only(self, fake_shell, harness_config):
        config = harness_config.model_copy(update={"builtin_snapshotter": True})
        EnvironmentBootstrapper(fake_shell, config, REGISTRY).bootstrap()
        assert fake_shell.ran("systemctl") == [["systemctl", "restart", "containerd"]]
        assert "proxy_plugins" not in fake_shell.files[config.containerd_config_path][0]

    def test_login_retried(self, fake_shell, harness_config):
        fake_shell.fail("nerdctl", "login", times=3)
        EnvironmentBootstrapper(fake_shell, harness_config, REGISTRY).login()
        assert len(fake_shell.ran("nerdctl", "login")) == 4

    def test_login_exhausted(self, fake_shell, harness_config):
        fake_shell.fail("nerdctl", "login")
        with pytest.raises(SetupError):
            EnvironmentBootstrapper(fake_shell, harness_config, REGISTRY).bootstrap()
        assert len(fake_shell.ran("nerdctl", "login")) == harness_config.login_attempts
        assert fake_shell.ran("systemctl") == []

    def test_runtime_never_ready(self, fake_shell, harness_config):
        fake_shell.fail("ctr", "version")
        with pytest.raises(SetupError):
            EnvironmentBootstrapper(fake_shell, harness_config, REGISTRY).restart_runtime()
        assert len(fake_shell.ran("ctr", "version")) == harness_config.ready_attempts

    def test_config_write_failure(self, fake_shell, harness_config):
        def broken_write(path, content, mode=0o600):
            raise OSError("read-only filesystem")
        fake_shell.write_file = broken_write
        with pytest.raises(SetupError, match="failed to write"):
            EnvironmentBootstrapper(fake_shell, harness_config, REGISTRY).bootstrap()
        assert fake_shell.commands == []


class TestImagePreparationStage:
    """Tests for ImagePreparationStage."""

    def test_each_image_prepared_once(self, fake_shell):
        fake_shell.respond("soci", "index", "list", output="sha256:idx\n")
        prepared = ImagePreparationStage(fake_shell, REGISTRY).prepare(
            _specs("nginx:1.23.3", "nginx:1.23.3", "drupal:10.0.2")
        )
        assert list(prepared) == ["nginx:1.23.3", "drupal:10.0.2"]
        assert prepared["nginx:1.23.3"] == PreparedImage(
            image="nginx:1.23.3",
            mirror_ref="registry.test:5000/mirror/nginx:1.23.3",
            index_digest="sha256:idx",
        )
        assert fake_shell.ran("soci", "create") == [
            ["soci", "create", "registry.test:5000/mirror/nginx:1.23.3"],
            ["soci", "create", "registry.test:5000/mirror/drupal:10.0.2"],
        ]
        assert fake_shell.ran("nerdctl", "pull")[0] == [
            "nerdctl", "pull", "-q", "docker.io/library/nginx:1.23.3"
        ]

    def test_copy_failure(self, fake_shell):
        fake_shell.fail("nerdctl", "push")
        with pytest.raises(PreparationError, match="nginx"):
            ImagePreparationStage(fake_shell, REGISTRY).prepare(_specs("nginx"))
        assert fake_shell.ran("soci") == []

    def test_invalid_image_reference(self, fake_shell):
        with pytest.raises(PreparationError, match="Empty image reference"):
            ImagePreparationStage(fake_shell, REGISTRY).prepare(_specs(""))
        assert fake_shell.commands == []

    def test_missing_digest(self, fake_shell):
        with pytest.raises(PreparationError, match="no SOCI index digest"):
            ImagePreparationStage(fake_shell, REGISTRY).prepare(_specs("nginx"))

    def test_first_digest_used(self, fake_shell):
        fake_shell.respond("soci", "index", "list", output="sha256:a\nsha256:b\n")
        prepared = ImagePreparationStage(fake_shell, REGISTRY).prepare(_specs("nginx"))
        assert prepared["nginx"].index_digest == "sha256:a"


def _prepared(*images):
    return {
        image: PreparedImage(image=image, mirror_ref=REGISTRY.mirror(image).ref, index_digest=f"sha256:{i}")
        for i, image in enumerate(images)
    }


class TestContainerLaunchStage:
    """Tests for ContainerLaunchStage."""

    def test_duplicates_launched_with_unique_names(self, fake_shell):
        launched = ContainerLaunchStage(fake_shell, REGISTRY).launch(
            _specs("nginx:1.23.3", "nginx:1.23.3"), _prepared("nginx:1.23.3")
        )
        assert launched == [
            LaunchedContainer(name="test_0_nginx_1.23.3", image="nginx:1.23.3", index=0),
            LaunchedContainer(name="test_1_nginx_1.23.3", image="nginx:1.23.3", index=1),
        ]
        assert fake_shell.ran("soci", "image", "rpull") == [[
            "soci", "image", "rpull", "--user", "u:p",
            "--soci-index-digest", "sha256:0",
            "registry.test:5000/mirror/nginx:1.23.3",
        ]]
        assert fake_shell.ran("soci", "run") == [
            ["soci", "run", "-d", "--rm", "--snapshotter=soci",
             "registry.test:5000/mirror/nginx:1.23.3", "test_0_nginx_1.23.3"],
            ["soci", "run", "-d", "--rm", "--snapshotter=soci",
             "registry.test:5000/mirror/nginx:1.23.3", "test_1_nginx_1.23.3"],
        ]

    def test_digest_per_image(self, fake_shell):
        ContainerLaunchStage(fake_shell, REGISTRY).launch(
            _specs("nginx", "drupal"), _prepared("nginx", "drupal")
        )
        digests = [c[6] for c in fake_shell.ran("soci", "image", "rpull")]
        assert digests == ["sha256:0", "sha256:1"]

    def test_unprepared_image(self, fake_shell):
        with pytest.raises(LaunchError, match="not prepared"):
            ContainerLaunchStage(fake_shell, REGISTRY).launch(_specs("nginx"), {})

    def test_run_failure(self, fake_shell):
        fake_shell.fail("soci", "run")
        with pytest.raises(LaunchError, match="test_0_nginx"):
            ContainerLaunchStage(fake_shell, REGISTRY).launch(_specs("nginx"), _prepared("nginx"))


class TestProbeExecutionStage:
    """Tests for ProbeExecutionStage."""

    def test_probes_in_launch_order(self, fake_shell):
        calls = []
        specs = [
            ContainerSpec(image="a", probe=lambda shell, name: calls.append(("first", name))),
            ContainerSpec(image="a", probe=lambda shell, name: calls.append(("second", name))),
        ]
        launched = [
            LaunchedContainer(name="test_0_a", image="a", index=0),
            LaunchedContainer(name="test_1_a", image="a", index=1),
        ]
        ProbeExecutionStage(fake_shell).probe(specs, launched)
        assert calls == [("first", "test_0_a"), ("second", "test_1_a")]

    def test_probe_failure_names_container(self, fake_shell):
        fake_shell.fail("ctr", "task", "exec")
        specs = [ContainerSpec(image="nginx", probe=web_service_probe)]
        launched = [LaunchedContainer(name="test_0_nginx", image="nginx", index=0)]
        with pytest.raises(ProbeError) as exc_info:
            ProbeExecutionStage(fake_shell).probe(specs, launched)
        assert exc_info.value.container_name == "test_0_nginx"
        assert "test_0_nginx" in str(exc_info.value)


def test_web_service_probe_command(fake_shell):
    web_service_probe(fake_shell, "test_0_nginx")
    assert fake_shell.commands == [[
        "ctr", "task", "exec", "--exec-id", "test-curl", "test_0_nginx",
        "curl", "--retry", "5", "--retry-connrefused", "--retry-max-time", "30",
        "http://127.0.0.1",
    ]]


def test_command_probe(fake_shell):
    command_probe("ls", "/")(fake_shell, "c1")
    assert fake_shell.commands == [["ctr", "task", "exec", "--exec-id", "test-probe", "c1", "ls", "/"]]
