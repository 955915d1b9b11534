"""
ImageMetadata - what the image registry declares about an image.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class ImageMetadata:
    """
    Metadata fetched for one image reference.

    Attributes:
        exposed_ports: Ports declared with EXPOSE
        working_dir: Declared WORKDIR ("" when unset)
        start_command: ENTRYPOINT + CMD as an argument list (empty when unset)
    """
    exposed_ports: tuple[int, ...] = field(default_factory=tuple)
    working_dir: str = ""
    start_command: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "exposed_ports": list(self.exposed_ports),
            "working_dir": self.working_dir,
            "start_command": list(self.start_command),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageMetadata":
        return cls(
            exposed_ports=tuple(int(p) for p in data.get("exposed_ports") or ()),
            working_dir=data.get("working_dir") or "",
            start_command=tuple(data.get("start_command") or ()),
        )
