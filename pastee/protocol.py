"""
Protocol definition for the clipboard record store.

The capture handler and the IPC facade depend on this interface rather
than on RecordStore directly, so they can be driven by a fake in tests
or by a store living behind another transport.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from .config import ORPHAN_GRACE_SECONDS

from .types import ClipData, ClipItem


@runtime_checkable
class RecordStoreProtocol(Protocol):
    """
    Ingestion, query and mutation operations of a clipboard history store.

    Implemented by:
    - RecordStore (local SQLite + images tree)
    """

    @property
    def image_root(self) -> Path:
        """Directory that image paths returned by get_image_paths() are relative to."""
        ...

    # -- Ingestion --

    def add_text(self, raw: str) -> int: ...

    def add_html(self, preview_text: str, markup: str) -> int: ...

    def add_files(self, paths: list[str]) -> int: ...

    def add_image(self, width: int, height: int, rgba: bytes) -> tuple[int, bytes]: ...

    # -- Queries --

    def list(self, limit: int, offset: int = 0) -> list[ClipItem]: ...

    def count(self) -> int: ...

    def search(self, query: str) -> list[ClipItem]: ...

    def get_content(self, id: int) -> ClipData: ...

    def get_image_paths(self, id: int) -> tuple[str, str]: ...

    # -- Mutations --

    def toggle_pin(self, id: int) -> bool: ...

    def delete(self, id: int) -> bool: ...

    def clear_unpinned(self) -> int: ...

    def prune_orphaned_assets(self, min_age: float = ORPHAN_GRACE_SECONDS) -> int: ...

    def close(self) -> None: ...
