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
Verification that running containers own distinct writable overlay layers.

Container rootfs mounts appear in `mount` output as:

    overlay on /run/containerd/io.containerd.runtime.v2.task/default/<name>/rootfs
        type overlay (rw,...,lowerdir=<L>,upperdir=<U>,workdir=<W>)

Lower layers may be shared between containers of the same image. Upper and
work directories must never be.
"""

import re
import subprocess
from typing import Iterable, List, Optional

import psutil

from ..errors import InvariantViolation, MissingMountError, VerificationError
from ..MODELS.mount_record import MountRecord
from ..RUNNERS.shell import ShellCommandError


def build_mount_pattern(runtime: str = "containerd", namespace: str = "default") -> re.Pattern:
    """
    Compile the pattern matching container rootfs overlay mounts.

    Args:
        runtime: Runtime directory under /run.
        namespace: Runtime namespace the containers run in.

    Returns:
        Pattern with the groups container_name, lowerdirs, upperdir and workdir.
    """
    task_root = "/run/{}/io.containerd.runtime.v2.task/{}".format(
        re.escape(runtime), re.escape(namespace)
    )
    return re.compile(
        r"^overlay on " + task_root + r"/(?P<container_name>[^/]+)/rootfs "
        r"type overlay \(rw,.*,lowerdir=(?P<lowerdirs>.*),"
        r"upperdir=(?P<upperdir>.*),workdir=(?P<workdir>.*)\)$"
    )


MOUNT_PATTERN = build_mount_pattern()


def parse_mount_table(text: str, pattern: re.Pattern = MOUNT_PATTERN) -> List[MountRecord]:
    """
    Extract container rootfs overlay mounts from mount table text.

    Lines that do not match are unrelated mounts and are skipped.
    """
    records = []
    for line in text.splitlines():
        match = pattern.match(line)
        if match is None:
            continue
        records.append(MountRecord(**match.groupdict()))
    return records


def verify_unique_mounts(records: Iterable[MountRecord],
                         expected_containers: Optional[Iterable[str]] = None) -> List[MountRecord]:
    """
    Check that no two overlay mounts share an upperdir or a workdir.

    Args:
        records: Mounts from a single scan of the mount table.
        expected_containers: Names that must each own at least one mount.
            When omitted, an empty scan passes.

    Returns:
        The verified records.

    Raises:
        InvariantViolation: On the first repeated upperdir or workdir.
        MissingMountError: When an expected container has no mount.
    """
    records = list(records)
    upperdirs = set()
    workdirs = set()
    for record in records:
        if record.upperdir in upperdirs:
            raise InvariantViolation("upperdir", record.upperdir, record.container_name)
        upperdirs.add(record.upperdir)
        if record.workdir in workdirs:
            raise InvariantViolation("workdir", record.workdir, record.container_name)
        workdirs.add(record.workdir)

    if expected_containers is not None:
        mounted = {record.container_name for record in records}
        missing = [name for name in expected_containers if name not in mounted]
        if missing:
            raise MissingMountError(missing)

    return records


def read_local_mount_table() -> str:
    """
    Render this host's mount table in `mount` output format.
    """
    lines = []
    for partition in psutil.disk_partitions(all=True):
        lines.append(
            f"{partition.device} on {partition.mountpoint} "
            f"type {partition.fstype} ({partition.opts})"
        )
    return "\n".join(lines)


class MountUniquenessVerifier:
    """
    Scans the live mount table through a shell and verifies it.
    """

    def __init__(self, shell, runtime: str = "containerd", namespace: str = "default"):
        """
        Initialize the verifier.

        Args:
            shell: Shell used to run `mount`.
            runtime: Runtime directory under /run.
            namespace: Runtime namespace the containers run in.
        """
        self.shell = shell
        self.pattern = build_mount_pattern(runtime, namespace)

    def scan(self) -> List[MountRecord]:
        """
        Run `mount` once and parse its output.

        Raises:
            VerificationError: When `mount` fails or times out.
        """
        try:
            output = self.shell.o("mount")
        except (ShellCommandError, subprocess.TimeoutExpired) as e:
            raise VerificationError(f"failed to read the mount table: {e}") from e
        return parse_mount_table(output, self.pattern)

    def verify(self, expected_containers: Optional[Iterable[str]] = None) -> List[MountRecord]:
        """
        Scan the mount table and verify it.

        Raises:
            InvariantViolation: When a writable directory is shared.
            MissingMountError: When an expected container has no mount.
            VerificationError: When the mount table cannot be read.
        """
        records = self.scan()
        print(f"[verifier] Found {len(records)} container overlay mount(s)")
        return verify_unique_mounts(records, expected_containers)
