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
Preparation of source images: mirroring into the test registry and building
their SOCI indexes.
"""
import subprocess
from typing import Dict, Iterable

from ..errors import PreparationError
from ..MODELS.scenario import ContainerSpec, PreparedImage
from ..REGISTRY.image_reference import ImageReference, dockerhub
from ..REGISTRY.registry_config import RegistryConfig
from ..RUNNERS.shell import Shell, ShellCommandError
from ..UTILS.dedup import deduplicate_by_image


class ImagePreparationStage:
    """
    Prepares each distinct image of a scenario exactly once.
    """
    def __init__(self, shell: Shell, registry: RegistryConfig):
        """
        Initializes the stage.

        :param shell: Shell the registry and index commands run in.
        :param registry: Test registry to mirror into.
        """
        self.shell = shell
        self.registry = registry

    def copy_image(self, source: ImageReference, destination: ImageReference):
        """
        Copies an image between registries through the local image store.
        """
        self.shell.x("nerdctl", "pull", "-q", source.ref)
        self.shell.x("nerdctl", "tag", source.ref, destination.ref)
        self.shell.x("nerdctl", "push", "-q", destination.ref)

    def optimize_image(self, image: ImageReference) -> str:
        """
        Builds a SOCI index for an image and returns the index digest.
        """
        self.shell.x("soci", "create", image.ref)
        digest = self.shell.o("soci", "index", "list", "-q", "--ref", image.ref).strip()
        # Several indexes may exist for a ref; the first listed is used.
        return digest.splitlines()[0].strip() if digest else ""

    def prepare(self, specs: Iterable[ContainerSpec]) -> Dict[str, PreparedImage]:
        """
        Mirrors and indexes every distinct image.

        :param specs: Container specs of the scenario, duplicates allowed.
        :return: Prepared images keyed by source image.
        :raises PreparationError: If mirroring or indexing fails.
        """
        prepared = {}
        for spec in deduplicate_by_image(specs):
            print(f"[prepare] Preparing {spec.image}")
            try:
                mirror = self.registry.mirror(spec.image)
                self.copy_image(dockerhub(spec.image), mirror)
                digest = self.optimize_image(mirror)
            except (ShellCommandError, subprocess.TimeoutExpired, ValueError) as e:
                raise PreparationError(f"failed to prepare {spec.image}: {e}") from e
            if not digest:
                raise PreparationError(f"no SOCI index digest returned for {mirror.ref}")
            prepared[spec.image] = PreparedImage(
                image=spec.image, mirror_ref=mirror.ref, index_digest=digest
            )
        return prepared
