"""
Data types for the clipboard history store.

The five content variants form a closed set. Records are modelled as
a tagged union (one dataclass per ClipData variant) internally; the
string forms of variants and tags only appear at the storage and IPC
boundaries.
"""

import enum
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union


class ContentVariant(str, enum.Enum):
    """Kind of content a record holds. Value is the stored column text."""
    TEXT = "text"
    HTML = "html"
    IMAGE = "image"
    FILES = "files"
    COLOR = "color"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ContentVariant":
        """Decode a stored variant string. Unknown values read as TEXT."""
        try:
            return cls(value)
        except ValueError:
            return cls.TEXT


class Tag(str, enum.Enum):
    """Closed set of labels attached to records."""
    TEXT = "text"
    COLOR = "color"
    HTML = "html"
    IMAGE = "image"
    FILES = "files"


# Default tag for each variant; a record's tag list is never empty
DEFAULT_TAGS: dict[ContentVariant, tuple[Tag, ...]] = {
    ContentVariant.TEXT: (Tag.TEXT,),
    ContentVariant.HTML: (Tag.HTML,),
    ContentVariant.IMAGE: (Tag.IMAGE,),
    ContentVariant.FILES: (Tag.FILES,),
    ContentVariant.COLOR: (Tag.COLOR,),
}

# Sentinel id returned when an ingestion call stores nothing
NO_RECORD = 0

PREVIEW_CHARS = 100


def utc_now_micros() -> int:
    """Current time as integer microseconds since the Unix epoch."""
    return time.time_ns() // 1000


def micros_to_datetime(micros: int) -> datetime:
    """Convert a stored microsecond timestamp to an aware UTC datetime."""
    return datetime.fromtimestamp(micros / 1_000_000, tz=timezone.utc)


@dataclass(frozen=True)
class ImageAsset:
    """On-disk image files and metadata owned by an Image record."""
    original_relative_path: str
    thumbnail_relative_path: str
    encoded_format: str
    encoded_size_bytes: int
    pixel_width: int
    pixel_height: int
    raw_pixel_hash: str


@dataclass
class ClipItem:
    """
    Lightweight projection of a record for list display.

    Carries no payload beyond the preview string.
    """
    id: int
    content_type: ContentVariant
    preview: str
    created_at: int
    is_pinned: bool = False
    tags: list[Tag] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content_type": self.content_type.value,
            "preview": self.preview,
            "created_at": self.created_at,
            "is_pinned": self.is_pinned,
            "tags": [t.value for t in self.tags],
        }


# -----------------------------------------------------------------------------
# Full payloads, one class per variant
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TextData:
    text: str


@dataclass(frozen=True)
class HtmlData:
    text: str
    html: str


@dataclass(frozen=True)
class ImageData:
    data: bytes


@dataclass(frozen=True)
class FilesData:
    paths: list[str]


@dataclass(frozen=True)
class ColorData:
    value: str


ClipData = Union[TextData, HtmlData, ImageData, FilesData, ColorData]


def clip_data_to_dict(data: ClipData) -> dict:
    """
    Serialize a payload to the JSON shape used at the IPC boundary.

    Image bytes are not shipped; the presentation layer loads the file
    through the relative paths instead.
    """
    if isinstance(data, TextData):
        return {"type": "text", "data": data.text}
    if isinstance(data, HtmlData):
        return {"type": "html", "text": data.text, "html": data.html}
    if isinstance(data, ImageData):
        return {"type": "image"}
    if isinstance(data, FilesData):
        return {"type": "files", "files": list(data.paths)}
    if isinstance(data, ColorData):
        return {"type": "color", "data": data.value}
    raise TypeError(f"Unknown clip payload: {type(data).__name__}")
