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
Converters for generating the containerd configuration used by a scenario.
"""
from jinja2 import Template
from ..MODELS.harness_config import HarnessConfig

CONTAINERD_CONFIG_TEMPLATE = """
version = 2

[plugins."io.containerd.snapshotter.v1.soci"]
root_path = "{{ root_path }}"

[plugins."io.containerd.snapshotter.v1.soci".blob]
check_always = true

{{ additional_config }}
"""

PROXY_SNAPSHOTTER_TEMPLATE = """
[proxy_plugins]
  [proxy_plugins.{{ snapshotter }}]
    type = "snapshot"
    address = "{{ address }}"
"""


class ContainerdConfigConverter:
    """
    Renders containerd's config.toml with the SOCI snapshotter enabled.
    """

    def __init__(self, config: HarnessConfig):
        """
        Initializes the converter.

        :param config: Harness settings selecting built-in or proxy mode.
        """
        self.config = config
        self.template = Template(CONTAINERD_CONFIG_TEMPLATE)
        self.proxy_template = Template(PROXY_SNAPSHOTTER_TEMPLATE)

    def additional_config(self) -> str:
        """
        Snapshotter block appended to the base config. Empty when the
        snapshotter is built into containerd.
        """
        if self.config.builtin_snapshotter:
            return ""
        return self.proxy_template.render(
            snapshotter=self.config.snapshotter,
            address=self.config.soci_socket_address,
        )

    def convert(self) -> str:
        """
        Renders the configuration text.

        :return: The config.toml content.
        """
        return self.template.render(
            root_path=self.config.soci_root_path,
            additional_config=self.additional_config(),
        )
