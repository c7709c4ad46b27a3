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
Launching scenario containers and probing them.
"""
import subprocess
from typing import Dict, List, Sequence

from ..errors import LaunchError, ProbeError
from ..MODELS.scenario import ContainerSpec, LaunchedContainer, PreparedImage
from ..REGISTRY.registry_config import RegistryConfig
from ..RUNNERS.shell import Shell, ShellCommandError
from ..UTILS.names import container_name


class ContainerLaunchStage:
    """
    Starts one detached container per spec. Repeated images are launched
    repeatedly; the index in the name keeps names unique.
    """
    def __init__(self, shell: Shell, registry: RegistryConfig, snapshotter: str = "soci"):
        """
        Initializes the stage.

        :param shell: Shell the runtime commands run in.
        :param registry: Registry credentials used for lazy pulls.
        :param snapshotter: Snapshotter the containers must use.
        """
        self.shell = shell
        self.registry = registry
        self.snapshotter = snapshotter

    def pull(self, image: PreparedImage):
        """
        Lazily pulls a prepared image using its SOCI index.
        """
        self.shell.x(
            "soci", "image", "rpull",
            "--user", self.registry.creds(),
            "--soci-index-digest", image.index_digest,
            image.mirror_ref,
        )

    def run(self, image: PreparedImage, name: str):
        """
        Starts a container detached, removed when it stops.
        """
        self.shell.x(
            "soci", "run", "-d", "--rm",
            f"--snapshotter={self.snapshotter}",
            image.mirror_ref, name,
        )

    def launch(self,
               specs: Sequence[ContainerSpec],
               prepared: Dict[str, PreparedImage]) -> List[LaunchedContainer]:
        """
        Launches every spec in order.

        :param specs: Container specs, duplicates included.
        :param prepared: Prepared images keyed by source image.
        :return: The launched containers in launch order.
        :raises LaunchError: If an image is unprepared or a command fails.
        """
        pulled = set()
        launched = []
        for index, spec in enumerate(specs):
            name = container_name(index, spec.image)
            image = prepared.get(spec.image)
            if image is None:
                raise LaunchError(f"image {spec.image} was not prepared")
            print(f"[launch] Starting {name} from {image.mirror_ref}")
            try:
                if image.image not in pulled:
                    self.pull(image)
                    pulled.add(image.image)
                self.run(image, name)
            except (ShellCommandError, subprocess.TimeoutExpired) as e:
                raise LaunchError(f"failed to launch {name}: {e}") from e
            launched.append(LaunchedContainer(name=name, image=spec.image, index=index))
        return launched


class ProbeExecutionStage:
    """
    Runs each container's probe sequentially in launch order.
    """
    def __init__(self, shell: Shell):
        """
        Initializes the stage.

        :param shell: Shell handed to each probe.
        """
        self.shell = shell

    def probe(self, specs: Sequence[ContainerSpec], launched: Sequence[LaunchedContainer]):
        """
        Probes every launched container with the probe of its spec.

        :raises ProbeError: Naming the first container whose probe failed.
        """
        for spec, container in zip(specs, launched):
            print(f"[probe] Probing {container.name} ({spec.probe_name})")
            try:
                spec.probe(self.shell, container.name)
            except Exception as e:
                raise ProbeError(container.name, e) from e
