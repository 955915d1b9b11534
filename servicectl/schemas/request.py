"""
ServiceCreationRequest - input to the provisioning orchestrator.

Built once from the create-service invocation, consumed once, never stored.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class ServiceCreationRequest:
    """
    Everything the user asked for when creating a service.

    Attributes:
        name: Service (and app) name
        image: Docker image reference
        user: Service credential user (also the database name)
        password: Service credential password
        service_type: Registry tag; None means infer from the image
        start_command: Explicit command + args given after "--" (empty = use image)
        working_dir: Working directory override ("" = use image)
        privileged: Run as root
        env: Raw KEY=VALUE overrides
        cpu_weight: Relative CPU weight, 1-100
        memory_mb: Memory limit in MB
        disk_mb: Disk limit in MB
        ports: Explicit comma-separated port list ("" = use image)
        monitor_port: Explicit monitor port (0 = choose automatically)
        monitor_url: "port:/path" HTTP monitor spec ("" = none)
        monitor_timeout: Health-check timeout in seconds
        no_monitor: Disable health checking
        routes: "port:hostname,..." route overrides ("" = default route)
        no_routes: Register no routes
        instances: Desired instance count
        timeout: Readiness wait timeout in seconds
    """
    name: str
    image: str
    user: str
    password: str
    service_type: Optional[str] = None
    start_command: tuple[str, ...] = field(default_factory=tuple)
    working_dir: str = ""
    privileged: bool = False
    env: tuple[str, ...] = field(default_factory=tuple)
    cpu_weight: int = 100
    memory_mb: int = 128
    disk_mb: int = 0
    ports: str = ""
    monitor_port: int = 0
    monitor_url: str = ""
    monitor_timeout: float = 1.0
    no_monitor: bool = False
    routes: str = ""
    no_routes: bool = False
    instances: int = 1
    timeout: float = 120.0

    def __post_init__(self):
        if not 1 <= self.cpu_weight <= 100:
            raise ValueError("cpu_weight must be between 1 and 100")
        if self.instances < 1:
            raise ValueError("instances must be >= 1")

    def __repr__(self) -> str:
        return (
            f"ServiceCreationRequest(name={self.name}, image={self.image}, "
            f"service_type={self.service_type}, instances={self.instances})"
        )
