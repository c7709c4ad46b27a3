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
Unit tests for containerd config rendering.
"""
from isocheck.CONVERTERS.to_containerd_config import ContainerdConfigConverter
from isocheck.MODELS.harness_config import HarnessConfig


def test_proxy_mode_adds_proxy_plugin():
    content = ContainerdConfigConverter(HarnessConfig(builtin_snapshotter=False)).convert()
    assert 'version = 2' in content
    assert '[plugins."io.containerd.snapshotter.v1.soci"]' in content
    assert 'root_path = "/var/lib/soci-snapshotter-grpc/"' in content
    assert 'check_always = true' in content
    assert '[proxy_plugins.soci]' in content
    assert 'type = "snapshot"' in content
    assert 'address = "/run/soci-snapshotter-grpc/soci-snapshotter-grpc.sock"' in content


def test_builtin_mode_has_no_proxy_plugin():
    converter = ContainerdConfigConverter(HarnessConfig(builtin_snapshotter=True))
    assert converter.additional_config() == ""
    content = converter.convert()
    assert 'proxy_plugins' not in content
    assert 'check_always = true' in content


def test_custom_socket_address():
    config = HarnessConfig(soci_socket_address="/tmp/soci.sock")
    assert 'address = "/tmp/soci.sock"' in ContainerdConfigConverter(config).convert()
