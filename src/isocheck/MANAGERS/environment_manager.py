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
Bootstrapping of the runtime environment before a scenario runs.
"""
import subprocess

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..CONVERTERS.to_containerd_config import ContainerdConfigConverter
from ..errors import SetupError
from ..MODELS.harness_config import HarnessConfig
from ..REGISTRY.registry_config import RegistryConfig
from ..RUNNERS.shell import Shell, ShellCommandError


class EnvironmentBootstrapper:
    """
    Writes the runtime config, logs in to the test registry and restarts the
    runtime so the config takes effect.
    """
    def __init__(self, shell: Shell, config: HarnessConfig, registry: RegistryConfig):
        """
        Initializes the bootstrapper.

        :param shell: Shell the setup commands run in.
        :param config: Harness settings.
        :param registry: Test registry credentials.
        """
        self.shell = shell
        self.config = config
        self.registry = registry
        self.converter = ContainerdConfigConverter(config)

    def bootstrap(self):
        """
        Runs every setup step in order. Any failure is fatal.

        :raises SetupError: If a step fails.
        """
        self.write_config()
        self.login()
        self.restart_runtime()

    def write_config(self):
        """
        Writes the rendered containerd config with owner-only permissions.
        """
        path = self.config.containerd_config_path
        try:
            self.shell.write_file(path, self.converter.convert(), 0o600)
        except (ShellCommandError, subprocess.TimeoutExpired, OSError) as e:
            raise SetupError(f"failed to write {path}: {e}") from e

    def login(self):
        """
        Refreshes trust roots and logs in to the registry, retrying the login.
        """
        try:
            self.shell.x("update-ca-certificates")
            self.shell.retry(
                self.config.login_attempts,
                "nerdctl", "login",
                "-u", self.registry.user,
                "-p", self.registry.password,
                self.registry.host,
                wait=self.config.login_wait,
            )
        except (ShellCommandError, subprocess.TimeoutExpired) as e:
            raise SetupError(f"failed to log in to {self.registry.host}: {e}") from e

    def restart_runtime(self):
        """
        Restarts the runtime (and the proxy snapshotter when used) and waits
        until the runtime answers again.
        """
        try:
            if not self.config.builtin_snapshotter:
                self.shell.x(*self.config.snapshotter_restart_command)
            self.shell.x(*self.config.restart_command)
            for attempt in Retrying(
                stop=stop_after_attempt(self.config.ready_attempts),
                wait=wait_fixed(self.config.ready_wait),
                retry=retry_if_exception_type(ShellCommandError),
                reraise=True,
            ):
                with attempt:
                    self.shell.x("ctr", "version")
        except (ShellCommandError, subprocess.TimeoutExpired) as e:
            raise SetupError(f"failed to restart {self.config.runtime_name}: {e}") from e
