"""
Models for overlay mounts read from the live mount table.
"""
from typing import List
from pydantic import BaseModel


class MountRecord(BaseModel):
    """
    One container rootfs overlay mount.

    lowerdirs is kept as the raw colon separated option value.
    """
    container_name: str
    lowerdirs: str
    upperdir: str
    workdir: str

    @property
    def lowerdir_list(self) -> List[str]:
        """Split the lowerdir option into individual layer paths."""
        return [d for d in self.lowerdirs.split(":") if d]
