"""
Image reference formatting for the application runtime.

The runtime takes root filesystems as URIs:
    postgres                    -> docker:///library/postgres#latest
    myrepo/postgres:9.6         -> docker:///myrepo/postgres#9.6
    registry.local:5000/db/pg   -> docker://registry.local:5000/db/pg#latest
"""

import re
from dataclasses import dataclass

from servicectl.errors import ImageReferenceError

DEFAULT_TAG = "latest"
OFFICIAL_NAMESPACE = "library"

_COMPONENT = re.compile(r"^[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*$")
_TAG = re.compile(r"^[\w][\w.-]{0,127}$")


@dataclass(frozen=True)
class ImageReference:
    """A parsed docker image reference."""
    registry: str
    repository: str
    tag: str

    @property
    def root_fs(self) -> str:
        return f"docker://{self.registry}/{self.repository}#{self.tag}"


def _looks_like_registry(component: str) -> bool:
    return "." in component or ":" in component or component == "localhost"


def parse_image_reference(image: str) -> ImageReference:
    """
    Parse "[registry/]repo[:tag]".

    Raises:
        ImageReferenceError: If the reference is empty or has invalid parts
    """
    if not image or image != image.strip():
        raise ImageReferenceError(f"Invalid image reference: {image!r}")
    if "@" in image:
        raise ImageReferenceError(f"Digest references are not supported: {image}")

    parts = image.split("/")
    registry = ""
    if len(parts) > 1 and _looks_like_registry(parts[0]):
        registry = parts.pop(0)

    tag = DEFAULT_TAG
    last, sep, maybe_tag = parts[-1].partition(":")
    if sep:
        if not _TAG.match(maybe_tag):
            raise ImageReferenceError(f"Invalid tag in image reference: {image}")
        tag = maybe_tag
        parts[-1] = last

    for component in parts:
        if not _COMPONENT.match(component):
            raise ImageReferenceError(f"Invalid repository name in image reference: {image}")

    if not registry and len(parts) == 1:
        parts.insert(0, OFFICIAL_NAMESPACE)

    return ImageReference(registry=registry, repository="/".join(parts), tag=tag)


def format_root_fs(image: str) -> str:
    """Root filesystem URI for an image reference."""
    return parse_image_reference(image).root_fs
