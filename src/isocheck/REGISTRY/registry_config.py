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
Connection details for the test registry that mirrors source images.
"""

from dataclasses import dataclass

from .image_reference import ImageReference


@dataclass
class RegistryConfig:
    """Credentials and mirror namespace of the test registry."""

    host: str
    user: str
    password: str
    mirror_namespace: str = "mirror"

    @classmethod
    def from_harness(cls, config) -> "RegistryConfig":
        return cls(
            host=config.registry_host,
            user=config.registry_user,
            password=config.registry_password,
            mirror_namespace=config.mirror_namespace,
        )

    def creds(self) -> str:
        """user:password pair as accepted by 'soci image rpull --user'."""
        return f"{self.user}:{self.password}"

    def mirror(self, image: str) -> ImageReference:
        """
        Map a source image onto its location in the test registry.

        Args:
            image: Source image reference, e.g. 'nginx:1.23.3'.

        Returns:
            Reference inside the mirror namespace, keeping tag and digest.
        """
        source = ImageReference.parse(image)
        return ImageReference(
            registry=self.host,
            repository=f"{self.mirror_namespace}/{source.short_repository}",
            tag=source.tag,
            digest=source.digest,
        )
