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
Parsers for scenario tables, built-in and YAML.
"""
import yaml
from typing import Any, Dict, List
from ..MODELS.scenario import ContainerSpec, Scenario
from ..RUNNERS.probes import PROBES

NGINX_IMAGE = "nginx:1.23.3"
DRUPAL_IMAGE = "drupal:10.0.2"

DEFAULT_SCENARIOS_YAML = f"""
scenarios:
  - name: Run multiple containers from the same image
    containers:
      - image: {NGINX_IMAGE}
        probe: web_service
      - image: {NGINX_IMAGE}
        probe: web_service
  - name: Run multiple containers from different images
    containers:
      - image: {NGINX_IMAGE}
        probe: web_service
      - image: {DRUPAL_IMAGE}
        probe: web_service
"""


class ScenarioParser:
    """
    Parser for scenario files.
    """
    def parse(self, path: str) -> List[Scenario]:
        """
        Parses a scenario file from a path.

        :param path: Path to the YAML file.
        :return: Parsed scenarios.
        """
        with open(path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> List[Scenario]:
        """
        Parses scenarios from YAML content.

        :param content: YAML with a top-level 'scenarios' list.
        :return: Parsed scenarios.
        :raises ValueError: If the document is malformed or names an unknown probe.
        """
        data = yaml.safe_load(content)
        if not data:
            return []
        if not isinstance(data, dict) or not isinstance(data.get('scenarios', []), list):
            raise ValueError("Scenario file must contain a 'scenarios' list")

        return [self._parse_scenario(s) for s in data.get('scenarios', [])]

    def _parse_scenario(self, spec: Dict[str, Any]) -> Scenario:
        """
        Parses a single scenario entry.
        """
        if not isinstance(spec, dict) or 'name' not in spec:
            raise ValueError(f"Scenario entry needs a name: {spec!r}")
        containers = [self._parse_container(c) for c in spec.get('containers') or []]
        return Scenario(name=str(spec['name']), containers=containers)

    def _parse_container(self, spec: Any) -> ContainerSpec:
        """
        Parses a container entry. A bare string is an image with the
        web service probe.
        """
        if isinstance(spec, str):
            spec = {'image': spec}
        if not isinstance(spec, dict) or not spec.get('image'):
            raise ValueError(f"Container entry needs an image: {spec!r}")
        probe_name = spec.get('probe', 'web_service')
        if probe_name not in PROBES:
            raise ValueError(
                f"Unknown probe '{probe_name}', expected one of: {', '.join(sorted(PROBES))}"
            )
        return ContainerSpec(image=str(spec['image']), probe=PROBES[probe_name], probe_name=probe_name)


def default_scenarios() -> List[Scenario]:
    """
    The scenarios run when no scenario file is given.
    """
    return ScenarioParser().parse_from_string(DEFAULT_SCENARIOS_YAML)
