"""
Shared fixtures: a fake shell that records commands instead of running them.
"""
import pytest

from isocheck.MODELS.harness_config import HarnessConfig
from isocheck.RUNNERS.shell import ShellCommandError

UPPER = "/var/lib/soci-snapshotter-grpc/snapshotter/snapshots/{}/fs"
WORK = "/var/lib/soci-snapshotter-grpc/snapshotter/snapshots/{}/work"
LOWER = "/var/lib/soci-snapshotter-grpc/snapshotter/snapshots/2/fs:/var/lib/soci-snapshotter-grpc/snapshotter/snapshots/1/fs"


def overlay_line(name, upper, work, lower=LOWER, runtime="containerd", namespace="default"):
    """Build a `mount` output line for a container rootfs overlay."""
    return (
        f"overlay on /run/{runtime}/io.containerd.runtime.v2.task/{namespace}/{name}/rootfs "
        f"type overlay (rw,relatime,lowerdir={lower},upperdir={upper},workdir={work})"
    )


class FakeShell:
    """
    Records commands. Outputs and failures are keyed by command prefix.
    """
    def __init__(self):
        self.commands = []
        self.files = {}
        self.outputs = {}
        self.failures = {}

    def _match(self, table, argv):
        for prefix, value in table.items():
            if tuple(argv[:len(prefix)]) == prefix:
                return prefix, value
        return None, None

    def _run(self, argv):
        argv = [str(a) for a in argv]
        self.commands.append(argv)
        prefix, remaining = self._match(self.failures, argv)
        if prefix is not None and remaining != 0:
            if remaining > 0:
                self.failures[prefix] = remaining - 1
            raise ShellCommandError(1, argv, "", "simulated failure")
        _, output = self._match(self.outputs, argv)
        return output or ""

    def fail(self, *prefix, times=-1):
        """Make commands starting with prefix fail, forever or `times` times."""
        self.failures[tuple(prefix)] = times

    def respond(self, *prefix, output):
        self.outputs[tuple(prefix)] = output

    def x(self, *argv):
        self._run(argv)
        return self

    def o(self, *argv):
        return self._run(argv)

    def retry(self, attempts, *argv, wait=1.0):
        for attempt in range(attempts):
            try:
                return self.x(*argv)
            except ShellCommandError:
                if attempt == attempts - 1:
                    raise
        return self

    def write_file(self, path, content, mode=0o600):
        self.commands.append(["write_file", path, oct(mode)])
        self.files[path] = (content, mode)
        return self

    def ran(self, *prefix):
        """Commands that start with prefix, in order."""
        return [c for c in self.commands if tuple(c[:len(prefix)]) == prefix]


@pytest.fixture
def fake_shell():
    return FakeShell()


@pytest.fixture
def harness_config():
    return HarnessConfig(login_wait=0, ready_wait=0, login_attempts=5, ready_attempts=3)


@pytest.fixture(name="overlay_line")
def overlay_line_fixture():
    return overlay_line
