"""
Runtime schemas - what the application examiner reports about a running app.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class InstanceState(str, Enum):
    """State of one app instance."""
    UNCLAIMED = "UNCLAIMED"
    CLAIMED = "CLAIMED"
    RUNNING = "RUNNING"
    CRASHED = "CRASHED"


@dataclass(frozen=True)
class PortMapping:
    """Container port to host port mapping."""
    container_port: int
    host_port: int


@dataclass(frozen=True)
class InstanceInfo:
    """A single app instance as seen by the runtime."""
    index: int
    state: InstanceState
    ip: str = ""
    ports: tuple[PortMapping, ...] = field(default_factory=tuple)
    placement_error: str = ""

    @property
    def running(self) -> bool:
        return self.state == InstanceState.RUNNING

    def host_port_for(self, container_port: Optional[int] = None) -> Optional[int]:
        """Host port for a container port, or for the first mapping when none is given."""
        if not self.ports:
            return None
        if container_port is not None:
            for mapping in self.ports:
                if mapping.container_port == container_port:
                    return mapping.host_port
        return self.ports[0].host_port


@dataclass(frozen=True)
class AppStatus:
    """Status of an app and its actual instances."""
    name: str
    desired_instances: int
    actual_instances: tuple[InstanceInfo, ...] = field(default_factory=tuple)

    @property
    def running_instances(self) -> tuple[InstanceInfo, ...]:
        return tuple(i for i in self.actual_instances if i.running)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "desired_instances": self.desired_instances,
            "actual_instances": [
                {
                    "index": i.index,
                    "state": i.state.value,
                    "ip": i.ip,
                    "ports": [
                        {"container_port": p.container_port, "host_port": p.host_port}
                        for p in i.ports
                    ],
                }
                for i in self.actual_instances
            ],
        }
