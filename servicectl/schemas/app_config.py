"""
App config schemas - the reconciled configuration handed to the runtime.

MonitorConfig -> RouteOverride -> DownloadAction -> EffectiveAppConfig
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

MAX_PORT = 65535


class MonitorMethod(str, Enum):
    """How instance health is checked."""
    NONE = "none"
    PORT = "port"
    URL = "url"


@dataclass(frozen=True)
class MonitorConfig:
    """
    Health-check configuration.

    Attributes:
        method: none, port (TCP connect) or url (HTTP GET)
        port: Monitored port (0 when method is none)
        url_path: Path checked when method is url
        timeout: Per-check timeout in seconds
    """
    method: MonitorMethod = MonitorMethod.NONE
    port: int = 0
    url_path: str = ""
    timeout: float = 1.0

    def __post_init__(self):
        if self.method == MonitorMethod.URL and not self.url_path:
            raise ValueError("url monitors require url_path")

    @classmethod
    def disabled(cls) -> "MonitorConfig":
        return cls(method=MonitorMethod.NONE)

    @property
    def enabled(self) -> bool:
        return self.method != MonitorMethod.NONE

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"method": self.method.value}
        if self.enabled:
            result["port"] = self.port
            result["timeout"] = self.timeout
        if self.method == MonitorMethod.URL:
            result["url_path"] = self.url_path
        return result


@dataclass(frozen=True)
class RouteOverride:
    """Maps a hostname prefix to a container port."""
    port: int
    hostname_prefix: str

    def to_dict(self) -> dict[str, Any]:
        return {"port": self.port, "hostname_prefix": self.hostname_prefix}


@dataclass(frozen=True)
class DownloadAction:
    """Setup action run in the container before the start command."""
    from_url: str
    to: str
    user: str

    def to_dict(self) -> dict[str, Any]:
        return {"from": self.from_url, "to": self.to, "user": self.user}


@dataclass(frozen=True)
class EffectiveAppConfig:
    """
    Fully reconciled app configuration passed to AppRunner.create_app.

    Exposed ports are unique, ascending and within 0-65535.
    A start command is always present.
    """
    name: str
    root_fs: str
    start_command: str
    app_args: tuple[str, ...] = field(default_factory=tuple)
    environment: dict[str, str] = field(default_factory=dict)
    privileged: bool = False
    monitor: MonitorConfig = field(default_factory=MonitorConfig.disabled)
    instances: int = 1
    cpu_weight: int = 100
    memory_mb: int = 128
    disk_mb: int = 0
    exposed_ports: tuple[int, ...] = field(default_factory=tuple)
    working_dir: str = "/"
    route_overrides: tuple[RouteOverride, ...] = field(default_factory=tuple)
    no_routes: bool = False
    timeout: float = 120.0
    setup: Optional[DownloadAction] = None

    def __post_init__(self):
        if not self.start_command:
            raise ValueError("EffectiveAppConfig requires a start command")
        if list(self.exposed_ports) != sorted(set(self.exposed_ports)):
            raise ValueError("exposed_ports must be unique and ascending")
        if any(p < 0 or p > MAX_PORT for p in self.exposed_ports):
            raise ValueError(f"exposed_ports must be within 0-{MAX_PORT}")

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for logging and runtime adapters."""
        result: dict[str, Any] = {
            "name": self.name,
            "root_fs": self.root_fs,
            "start_command": self.start_command,
            "app_args": list(self.app_args),
            "environment": dict(self.environment),
            "privileged": self.privileged,
            "monitor": self.monitor.to_dict(),
            "instances": self.instances,
            "cpu_weight": self.cpu_weight,
            "memory_mb": self.memory_mb,
            "disk_mb": self.disk_mb,
            "exposed_ports": list(self.exposed_ports),
            "working_dir": self.working_dir,
            "route_overrides": [r.to_dict() for r in self.route_overrides],
            "no_routes": self.no_routes,
            "timeout": self.timeout,
        }
        if self.setup is not None:
            result["setup"] = self.setup.to_dict()
        return result
