"""
servicectl.schemas - Value objects for the provisioning workflow.

ServiceCreationRequest + ImageMetadata -> EffectiveAppConfig -> AppStatus
-> ServiceDescriptor

Lifecycle:
1. ServiceCreationRequest: what the user asked for
2. ImageMetadata: what the image declares
3. EffectiveAppConfig: reconciled config sent to the runtime
4. AppStatus: what the runtime reports once instances start
5. ServiceDescriptor: connection record published to the blob store
"""

from .request import ServiceCreationRequest
from .image import ImageMetadata
from .app_config import (
    MAX_PORT,
    MonitorMethod,
    MonitorConfig,
    RouteOverride,
    DownloadAction,
    EffectiveAppConfig,
)
from .runtime import (
    InstanceState,
    PortMapping,
    InstanceInfo,
    AppStatus,
)
from .descriptor import (
    SERVICES_PREFIX,
    DESCRIPTOR_SUFFIX,
    BINDINGS_PREFIX,
    ServiceDescriptor,
    Binding,
    descriptor_key,
    service_name_from_key,
)

__all__ = [
    # Request
    "ServiceCreationRequest",
    # Image
    "ImageMetadata",
    # App config
    "MAX_PORT",
    "MonitorMethod",
    "MonitorConfig",
    "RouteOverride",
    "DownloadAction",
    "EffectiveAppConfig",
    # Runtime
    "InstanceState",
    "PortMapping",
    "InstanceInfo",
    "AppStatus",
    # Descriptor
    "SERVICES_PREFIX",
    "DESCRIPTOR_SUFFIX",
    "BINDINGS_PREFIX",
    "ServiceDescriptor",
    "Binding",
    "descriptor_key",
    "service_name_from_key",
]
