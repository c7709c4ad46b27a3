"""
Harness configuration loaded from the environment and optional .env files.
"""
import os
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import BaseModel, Field

TRUE_VALUES = ("1", "true", "yes", "on")


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in TRUE_VALUES


class HarnessConfig(BaseModel):
    """
    Settings shared by every stage of a scenario run.
    """
    # Registry
    registry_host: str = "localhost:5000"
    registry_user: str = "dummyuser"
    registry_password: str = "dummypass"
    mirror_namespace: str = "mirror"

    # Runtime
    containerd_config_path: str = "/etc/containerd/config.toml"
    soci_root_path: str = "/var/lib/soci-snapshotter-grpc/"
    soci_socket_address: str = "/run/soci-snapshotter-grpc/soci-snapshotter-grpc.sock"
    snapshotter: str = "soci"
    builtin_snapshotter: bool = False
    runtime_name: str = "containerd"
    runtime_namespace: str = "default"
    restart_command: List[str] = Field(
        default_factory=lambda: ["systemctl", "restart", "containerd"]
    )
    snapshotter_restart_command: List[str] = Field(
        default_factory=lambda: ["systemctl", "restart", "soci-snapshotter"]
    )

    # Retries
    login_attempts: int = 100
    login_wait: float = 1.0
    ready_attempts: int = 30
    ready_wait: float = 1.0

    # Fail when a launched container has no overlay mount
    require_mounts: bool = True

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "HarnessConfig":
        """
        Builds a config from ISOCHECK_* variables, loading a .env file first.

        :param env_file: Explicit .env path. Defaults to searching from the cwd.
        :return: The resolved configuration.
        """
        load_dotenv(env_file)
        defaults = cls()
        return cls(
            registry_host=os.getenv("ISOCHECK_REGISTRY_HOST", defaults.registry_host),
            registry_user=os.getenv("ISOCHECK_REGISTRY_USER", defaults.registry_user),
            registry_password=os.getenv("ISOCHECK_REGISTRY_PASSWORD", defaults.registry_password),
            mirror_namespace=os.getenv("ISOCHECK_MIRROR_NAMESPACE", defaults.mirror_namespace),
            containerd_config_path=os.getenv("ISOCHECK_CONTAINERD_CONFIG", defaults.containerd_config_path),
            snapshotter=os.getenv("ISOCHECK_SNAPSHOTTER", defaults.snapshotter),
            builtin_snapshotter=_env_flag("SOCI_TEST_BUILTIN_SNAPSHOTTER"),
            login_attempts=int(os.getenv("ISOCHECK_LOGIN_ATTEMPTS", defaults.login_attempts)),
            require_mounts=_env_flag("ISOCHECK_REQUIRE_MOUNTS", defaults.require_mounts),
        )
