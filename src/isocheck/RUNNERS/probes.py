"""
Probes run inside launched containers to show they are alive and usable.
"""
from typing import Callable, Dict

from .shell import Shell


def web_service_probe(shell: Shell, container_name: str) -> None:
    """
    Fetches the container's own web root over localhost, retrying until the
    service accepts connections.
    """
    shell.x(
        "ctr", "task", "exec", "--exec-id", "test-curl", container_name,
        "curl", "--retry", "5", "--retry-connrefused", "--retry-max-time", "30",
        "http://127.0.0.1",
    )


def command_probe(*argv: str) -> Callable[[Shell, str], None]:
    """
    Builds a probe that executes an arbitrary command inside the container.
    """
    def probe(shell: Shell, container_name: str) -> None:
        shell.x("ctr", "task", "exec", "--exec-id", "test-probe", container_name, *argv)
    return probe


PROBES: Dict[str, Callable[[Shell, str], None]] = {
    "web_service": web_service_probe,
    "true": command_probe("true"),
}
