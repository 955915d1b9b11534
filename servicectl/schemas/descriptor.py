"""
Published artifacts - ServiceDescriptor and Binding.

Blob store key layout:
    services/<name>.json            descriptor JSON
    bindings/<app>-<service>        zero-length marker
"""

import json
from dataclasses import dataclass
from typing import Any

SERVICES_PREFIX = "services/"
DESCRIPTOR_SUFFIX = ".json"
BINDINGS_PREFIX = "bindings/"


def descriptor_key(service_name: str) -> str:
    """Blob store key of a service's descriptor."""
    return f"{SERVICES_PREFIX}{service_name}{DESCRIPTOR_SUFFIX}"


def service_name_from_key(key: str) -> str | None:
    """Service name for a descriptor key, None for any other key."""
    if not key.startswith(SERVICES_PREFIX) or not key.endswith(DESCRIPTOR_SUFFIX):
        return None
    name = key[len(SERVICES_PREFIX):-len(DESCRIPTOR_SUFFIX)]
    if not name or "/" in name:
        return None
    return name


@dataclass(frozen=True)
class ServiceDescriptor:
    """
    Connection record published for a provisioned service.

    Attributes:
        label: Top-level key consumers look up (e.g. "postgresql")
        url: Connection URL with credentials
    """
    label: str
    url: str

    def to_dict(self) -> dict[str, Any]:
        return {self.label: [{"credentials": {"url": self.url}}]}

    def to_json(self) -> str:
        """Compact, key-ordered JSON; identical input gives identical bytes."""
        return json.dumps(self.to_dict(), separators=(",", ":"), sort_keys=True)


@dataclass(frozen=True)
class Binding:
    """Declared intent to hand a service's credentials to a future app."""
    app_name: str
    service_name: str

    @property
    def key(self) -> str:
        return f"{BINDINGS_PREFIX}{self.app_name}-{self.service_name}"
