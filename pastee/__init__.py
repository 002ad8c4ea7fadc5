"""
pastee - clipboard history storage.

Persists clipboard captures (text, HTML, images, file lists, colors) in a
local SQLite database with content-addressed deduplication.

Quick Start:
    from pastee import RecordStore

    store = RecordStore(Path("~/Documents/pastee").expanduser())
    store.add_text("#FF0000")        # stored as a color
    store.add_text("hello")
    for item in store.list(10):
        print(item.id, item.content_type.value, item.preview)
"""

from .api import ClipboardHistory
from .classifier import classify, is_color
from .errors import (
    AssetIOError,
    EncodeError,
    InvalidImageData,
    LockError,
    NotFound,
    PasteeError,
    SerializationError,
    StorageInitError,
)
from .events import (
    CaptureHandler,
    ErrorEvent,
    FileListEvent,
    HtmlEvent,
    ImageError,
    ImageEvent,
    ImagePending,
    ImageReady,
    NewClip,
    TextEvent,
)
from .protocol import RecordStoreProtocol
from .record_store import RecordStore
from .types import (
    ClipData,
    ClipItem,
    ColorData,
    ContentVariant,
    FilesData,
    HtmlData,
    ImageAsset,
    ImageData,
    Tag,
    TextData,
)

__version__ = "0.1.0"
__all__ = [
    "AssetIOError",
    "CaptureHandler",
    "ClipData",
    "ClipItem",
    "ClipboardHistory",
    "ColorData",
    "ContentVariant",
    "EncodeError",
    "ErrorEvent",
    "FileListEvent",
    "FilesData",
    "HtmlData",
    "HtmlEvent",
    "ImageAsset",
    "ImageData",
    "ImageError",
    "ImageEvent",
    "ImagePending",
    "ImageReady",
    "InvalidImageData",
    "LockError",
    "NewClip",
    "NotFound",
    "PasteeError",
    "RecordStore",
    "RecordStoreProtocol",
    "SerializationError",
    "StorageInitError",
    "Tag",
    "TextData",
    "TextEvent",
    "classify",
    "is_color",
]
