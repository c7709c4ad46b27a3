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
Image reference parsing.
Parses references like 'nginx:1.23.3' or 'docker.io/library/drupal:10.0.2'.
"""

from typing import Optional
from dataclasses import dataclass


@dataclass
class ImageReference:
    """
    Parsed container image reference.

    Examples:
        - nginx -> docker.io/library/nginx:latest
        - myuser/myimage:v1 -> docker.io/myuser/myimage:v1
        - localhost:5000/mirror/nginx:1.23 -> localhost:5000/mirror/nginx:1.23
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'nginx:latest').

        Returns:
            Parsed ImageReference object.
        """
        if not reference:
            raise ValueError("Empty image reference")

        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)

        tag = None
        last_colon = reference.rfind(":")
        if last_colon != -1:
            after_colon = reference[last_colon + 1 :]
            # localhost:5000/image has a port, not a tag
            if "/" not in after_colon:
                tag = after_colon
                reference = reference[:last_colon]

        parts = reference.split("/")
        first_part = parts[0]
        is_registry = len(parts) > 1 and (
            "." in first_part or ":" in first_part or first_part == "localhost"
        )

        if is_registry:
            registry = first_part
            repository = "/".join(parts[1:])
        elif len(parts) == 1:
            registry = cls.DEFAULT_REGISTRY
            repository = f"library/{parts[0]}"
        else:
            registry = cls.DEFAULT_REGISTRY
            repository = reference

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest)

    @property
    def ref(self) -> str:
        """Fully qualified reference usable by the runtime CLIs."""
        name = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    @property
    def short_repository(self) -> str:
        """Repository without the implicit 'library/' prefix of official images."""
        if self.registry == self.DEFAULT_REGISTRY and self.repository.startswith("library/"):
            return self.repository[len("library/"):]
        return self.repository

    def __str__(self) -> str:
        return self.ref

    def __repr__(self) -> str:
        return f"ImageReference({self.ref})"


def dockerhub(image: str) -> ImageReference:
    """Resolve a short image name against Docker Hub."""
    return ImageReference.parse(image)
