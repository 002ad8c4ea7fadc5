"""
Presentation-facing API for clipboard history.

ClipboardHistory is what a UI or IPC layer talks to. It wraps a record
store and converts results to plain JSON-compatible values; typed
payloads never cross this boundary.

    history = ClipboardHistory.open()
    history.list(20, 0)        -> [{"id": 3, "content_type": "color", ...}, ...]
    history.get_content(3)     -> {"type": "color", "data": "#FF0000"}
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from .config import LIST_PAGE_SIZE, get_data_dir, load_or_create_config
from .protocol import RecordStoreProtocol
from .record_store import RecordStore
from .types import clip_data_to_dict

logger = logging.getLogger(__name__)


class ClipboardHistory:
    """JSON-shaped operations over a record store."""

    def __init__(self, store: RecordStoreProtocol, page_size: int = LIST_PAGE_SIZE):
        self._store = store
        self._page_size = page_size

    @classmethod
    def open(cls, data_dir: Optional[Path] = None) -> "ClipboardHistory":
        """Open (creating if needed) the store in data_dir, honouring its config file."""
        config = load_or_create_config(get_data_dir(data_dir))
        logger.debug("Opening clipboard store at %s", config.path)
        return cls(RecordStore.from_config(config), page_size=config.list_page_size)

    @property
    def store(self) -> RecordStoreProtocol:
        return self._store

    def list(self, limit: Optional[int] = None, offset: int = 0) -> list[dict[str, Any]]:
        """One page of clips; limit defaults to the configured page size."""
        if limit is None:
            limit = self._page_size
        return [item.to_dict() for item in self._store.list(limit, offset)]

    def count(self) -> int:
        return self._store.count()

    def search(self, query: str) -> list[dict[str, Any]]:
        return [item.to_dict() for item in self._store.search(query)]

    def get_content(self, id: int) -> dict[str, Any]:
        return clip_data_to_dict(self._store.get_content(id))

    def get_image_paths(self, id: int) -> tuple[str, str]:
        return self._store.get_image_paths(id)

    def get_image_url(self, id: int, thumbnail: bool = False) -> str:
        """Relative path of the original or the thumbnail, for the UI to resolve."""
        original, thumb = self._store.get_image_paths(id)
        return thumb if thumbnail else original

    def toggle_pin(self, id: int) -> bool:
        return self._store.toggle_pin(id)

    def delete(self, id: int) -> None:
        self._store.delete(id)

    def clear_unpinned(self) -> int:
        return self._store.clear_unpinned()

    def close(self) -> None:
        self._store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
