"""
Service type registry for credential and descriptor dispatch.

The registry maps a service type tag (postgres, mysql, ...) to a ServiceType
entry describing:
- which environment variables the container needs, derived from user/password
- how to render the published ServiceDescriptor

Entries are data, not code paths: adding a type means registering an entry,
either here or under `service_types:` in config.yaml. The orchestrator never
branches on the tag.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from servicectl.errors import UnknownServiceTypeError
from servicectl.schemas import ServiceDescriptor

# (service_type, user, password, host, port) -> ServiceDescriptor
DescriptorRenderer = Callable[["ServiceType", str, str, str, int], ServiceDescriptor]


def render_url_descriptor(
    service_type: "ServiceType", user: str, password: str, host: str, port: int
) -> ServiceDescriptor:
    """
    Render a single-URL descriptor.

    The database name is the user name: one database per service instance.
    """
    url = f"{service_type.scheme}://{user}:{password}@{host}:{port}/{user}"
    return ServiceDescriptor(label=service_type.label, url=url)


@dataclass(frozen=True)
class ServiceType:
    """
    A supported backing service type.

    Attributes:
        name: Registry tag used on the command line
        label: Top-level key in the published descriptor
        scheme: URL scheme of the connection URL
        env_templates: Variable name -> template using {user} and {password}
        renderer: Descriptor renderer (defaults to a single credentials URL)
    """
    name: str
    label: str
    scheme: str
    env_templates: Mapping[str, str] = field(default_factory=dict)
    renderer: DescriptorRenderer = render_url_descriptor

    def environment(self, user: str, password: str) -> dict[str, str]:
        """Environment variables for the container, in template order."""
        return {
            var: template.format(user=user, password=password)
            for var, template in self.env_templates.items()
        }

    def render_descriptor(self, user: str, password: str, host: str, port: int) -> ServiceDescriptor:
        return self.renderer(self, user, password, host, port)

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "ServiceType":
        """Build an entry from a config.yaml `service_types` item."""
        if not isinstance(data, dict):
            raise ValueError(f"Service type {name}: expected a mapping, got {type(data).__name__}")
        env = data.get("env") or {}
        if not isinstance(env, dict):
            raise ValueError(f"Service type {name}: 'env' must be a mapping")
        return cls(
            name=name,
            label=data.get("label", name),
            scheme=data.get("scheme", name),
            env_templates={str(k): str(v) for k, v in env.items()},
        )


POSTGRES = ServiceType(
    name="postgres",
    label="postgresql",
    scheme="postgres",
    env_templates={
        "POSTGRES_USER": "{user}",
        "POSTGRES_PASSWORD": "{password}",
    },
)

MYSQL = ServiceType(
    name="mysql",
    label="mysql",
    scheme="mysql",
    env_templates={
        "MYSQL_USER": "{user}",
        "MYSQL_DATABASE": "{user}",
        "MYSQL_PASSWORD": "{password}",
        "MYSQL_ROOT_PASSWORD": "{password}",
    },
)

BUILTIN_TYPES = (POSTGRES, MYSQL)


class ServiceTypeRegistry:
    """
    Registry for service type dispatch by tag.

    Usage:
        registry = ServiceTypeRegistry.create_default()
        postgres = registry.get("postgres")

        env = postgres.environment("alice", "s3cr3t")
        descriptor = postgres.render_descriptor("alice", "s3cr3t", "10.0.0.5", 61001)
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._types: dict[str, ServiceType] = {}

    def register(self, service_type: ServiceType) -> None:
        """Register (or replace) a service type under its name."""
        self._types[service_type.name] = service_type

    def get(self, name: str) -> ServiceType:
        """
        Get the entry for a service type tag.

        Raises:
            UnknownServiceTypeError: If no entry is registered for the tag
        """
        if not self.has(name):
            raise UnknownServiceTypeError(name, self.list_types())
        return self._types[name]

    def has(self, name: str) -> bool:
        return name in self._types

    def list_types(self) -> list[str]:
        return sorted(self._types)

    @classmethod
    def create_default(cls, extra: Optional[dict[str, Any]] = None) -> "ServiceTypeRegistry":
        """
        Create a registry with the built-in types plus config-declared ones.

        Args:
            extra: `service_types` mapping from config.yaml
                   (tag -> {label, scheme, env})

        Returns:
            Configured ServiceTypeRegistry
        """
        registry = cls()
        for service_type in BUILTIN_TYPES:
            registry.register(service_type)
        for name, data in (extra or {}).items():
            registry.register(ServiceType.from_dict(name, data))
        return registry


def infer_service_type(image: str) -> str:
    """
    Guess a service type tag from an image reference.

    "myrepo/postgres:9.6" -> "postgres", "docker.io/library/mysql" -> "mysql"
    """
    repository = image.split("@", 1)[0]
    last = repository.rsplit("/", 1)[-1]
    return last.split(":", 1)[0].lower()
