from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class ImageFormat(Enum):
    PNG = "png"     # raster-lossless
    JPEG = "jpeg"   # raster-lossy

    @property
    def content_type(self) -> str:
        return f"image/{self.value}"

    @property
    def lossy(self) -> bool:
        return self is ImageFormat.JPEG


# Accepted wire spellings -> canonical format
FORMAT_ALIASES = {
    "png": ImageFormat.PNG,
    "raster-lossless": ImageFormat.PNG,
    "jpeg": ImageFormat.JPEG,
    "jpg": ImageFormat.JPEG,
    "raster-lossy": ImageFormat.JPEG,
}


@dataclass(frozen=True)
class Viewport:
    width: int
    height: int

    def as_dict(self) -> Dict[str, int]:
        return {"width": self.width, "height": self.height}


@dataclass(frozen=True)
class CaptureRequest:
    """
    Capture input. HTTP bodies are turned into one by validation.parse_capture_request;
    the pipeline re-checks every request with validation.validate_request.
    """
    url: str
    viewport: Viewport
    image_format: ImageFormat = ImageFormat.PNG
    full_page: bool = True


@dataclass(frozen=True)
class Identity:
    """Verified principal supplied by the identity boundary."""
    identity_id: str
    username: Optional[str] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CaptureRecord:
    """
    Immutable record of one completed capture.
    Invariant: created exactly once per successful pipeline run, never mutated.
    """
    record_id: str
    owner_id: str
    url: str
    width: int
    height: int
    image_format: ImageFormat
    full_page: bool
    size_bytes: int
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def sort_key(self):
        # Newest-first ordering sorts on this key descending
        return (self.created_at, self.record_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.record_id,
            "userId": self.owner_id,
            "url": self.url,
            "width": self.width,
            "height": self.height,
            "format": self.image_format.value,
            "fullPage": self.full_page,
            "createdAt": self.created_at.isoformat(),
            "size": self.size_bytes,
        }


@dataclass(frozen=True)
class CaptureResult:
    image: bytes
    record: CaptureRecord

    @property
    def content_type(self) -> str:
        return self.record.image_format.content_type


@dataclass(frozen=True)
class HistoryPage:
    records: List[CaptureRecord]
    total: int
    limit: int
    offset: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "captures": [r.to_dict() for r in self.records],
            "total": self.total,
            "limit": self.limit,
            "offset": self.offset,
        }
