"""
servicectl.clients - IO boundaries.

- descriptor_store: blob store for descriptors and bindings
- runtime: protocols for the platform (metadata, app runner, app examiner)
"""

from .descriptor_store import (
    DescriptorStore,
    InMemoryDescriptorStore,
    FileDescriptorStore,
    DavDescriptorStore,
    build_descriptor_store,
)
from .runtime import (
    AppExaminer,
    AppRunner,
    ImageMetadataFetcher,
    build_client,
    load_factory,
)

__all__ = [
    "DescriptorStore",
    "InMemoryDescriptorStore",
    "FileDescriptorStore",
    "DavDescriptorStore",
    "build_descriptor_store",
    "AppExaminer",
    "AppRunner",
    "ImageMetadataFetcher",
    "build_client",
    "load_factory",
]
