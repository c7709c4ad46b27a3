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
Error types raised while running an isolation scenario.

Every stage failure is fatal for the scenario it belongs to. The stage that
failed is encoded in the exception type so callers can report it directly.
"""
from typing import Optional


class IsolationCheckError(Exception):
    """Base class for all scenario failures."""


class SetupError(IsolationCheckError):
    """Bootstrapping the runtime environment failed."""


class PreparationError(IsolationCheckError):
    """Mirroring an image or building its snapshot index failed."""


class LaunchError(IsolationCheckError):
    """Pulling or starting a container failed."""


class ProbeError(IsolationCheckError):
    """A container probe reported a failure."""

    def __init__(self, container_name: str, cause: Exception):
        self.container_name = container_name
        self.cause = cause
        super().__init__(f"Probe failed for container {container_name}: {cause}")


class InvariantViolation(IsolationCheckError):
    """Two overlay mounts share a writable directory."""

    def __init__(self, kind: str, path: str, container_name: Optional[str] = None):
        self.kind = kind
        self.path = path
        self.container_name = container_name
        super().__init__(f"Duplicate overlay mount {kind}: {path}")


class MissingMountError(IsolationCheckError):
    """A launched container has no overlay mount in the mount table."""

    def __init__(self, container_names):
        self.container_names = list(container_names)
        super().__init__(
            "No overlay mount found for container(s): "
            + ", ".join(self.container_names)
        )


class VerificationError(IsolationCheckError):
    """The mount table could not be read."""


class StageOrderError(IsolationCheckError):
    """A scenario stage was invoked out of order or twice."""
