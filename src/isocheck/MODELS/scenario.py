"""
Models describing isolation scenarios and the containers they launch.
"""
from typing import Any, Callable, List
from pydantic import BaseModel
from .mount_record import MountRecord

# A probe receives the shell and the name of a running container. It signals
# failure by raising.
Probe = Callable[[Any, str], None]


class ContainerSpec(BaseModel):
    """
    An image to run together with the probe to run against it.
    """
    image: str
    probe: Probe
    probe_name: str = "custom"


class Scenario(BaseModel):
    """
    A named group of containers that must run side by side with isolated
    writable layers.
    """
    name: str
    containers: List[ContainerSpec] = []


class PreparedImage(BaseModel):
    """
    An image mirrored into the test registry with its snapshot index digest.
    """
    image: str
    mirror_ref: str
    index_digest: str


class LaunchedContainer(BaseModel):
    """
    A container started by the launch stage.
    """
    name: str
    image: str
    index: int


class ScenarioResult(BaseModel):
    """
    Outcome of a scenario that passed every stage.
    """
    scenario: str
    containers: List[LaunchedContainer] = []
    mounts: List[MountRecord] = []
