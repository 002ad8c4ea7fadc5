"""
Clipboard history store using SQLite.

The store is the single owner of the database connection and the images
tree. Every operation runs under one lock, so ingestion and queries are
linearizable within a process: no caller ever sees a half-applied
upsert.

Records are content-addressed. Each ingestion path computes a hash of the
variant's canonical bytes; capturing content whose hash already exists
"touches" the existing row (new timestamp and tags) instead of inserting.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from . import hashing
from .classifier import classify, is_color
from .config import (
    DB_FILENAME,
    IMAGES_DIRNAME,
    ORPHAN_GRACE_SECONDS,
    SEARCH_LIMIT,
    THUMBNAIL_MAX_HEIGHT,
    THUMBNAIL_MAX_WIDTH,
    StoreConfig,
)
from .errors import LockError, NotFound, SerializationError, StorageInitError
from .image_pipeline import PARTIAL_SUFFIX, ImagePipeline, validate_rgba
from .schema import open_store
from .types import (
    DEFAULT_TAGS,
    NO_RECORD,
    PREVIEW_CHARS,
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
    utc_now_micros,
)

logger = logging.getLogger(__name__)

_UPSERT_SQL = """
    INSERT INTO records (
        variant, content_hash, created_at, content_text, content_html,
        content_file_paths, image_path, thumbnail_path, image_format,
        image_size_bytes, image_hash, width, height, tags
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
    ON CONFLICT(content_hash) DO UPDATE SET
        created_at = excluded.created_at,
        tags = excluded.tags
"""

_ITEM_COLUMNS = """
    id, variant, content_text, content_file_paths, created_at, is_pinned,
    tags, image_format, width, height
"""


def decode_string_list(raw: Optional[str]) -> list[str]:
    """
    Decode a stored JSON array of strings.

    Raises:
        SerializationError: If raw is not a JSON array of strings
    """
    if raw is None or raw == "":
        return []
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise SerializationError(f"Malformed stored array: {raw!r}") from e
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise SerializationError(f"Stored value is not a string array: {raw!r}")
    return value


def encode_tags(tags: list[Tag]) -> str:
    return json.dumps([t.value for t in tags])


def decode_tags(raw: Optional[str], variant: ContentVariant) -> list[Tag]:
    """Decode stored tags, falling back to the variant default so the list is never empty."""
    try:
        names = decode_string_list(raw)
    except SerializationError as e:
        logger.warning("%s; using default tags", e)
        names = []
    tags = []
    for name in names:
        try:
            tag = Tag(name)
        except ValueError:
            logger.debug("Ignoring unknown tag %r", name)
            continue
        if tag not in tags:
            tags.append(tag)
    return tags or list(DEFAULT_TAGS[variant])


def _decode_paths(raw: Optional[str]) -> list[str]:
    try:
        return decode_string_list(raw)
    except SerializationError as e:
        logger.warning("%s; treating as empty file list", e)
        return []


def _image_summary(width: Optional[int], height: Optional[int], fmt: Optional[str]) -> str:
    if width is None or height is None or not fmt:
        return "[Image]"
    return f"[Image] {width}x{height} {fmt.upper()}"


def make_preview(
    variant: ContentVariant,
    text: Optional[str],
    file_paths: Optional[str] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
    image_format: Optional[str] = None,
) -> str:
    """Short human-readable summary of a record for list display."""
    if variant in (ContentVariant.TEXT, ContentVariant.HTML):
        head = (text or "")[:PREVIEW_CHARS]
        return head.replace("\r", " ").replace("\n", " ")
    if variant is ContentVariant.COLOR:
        return text or ""
    if variant is ContentVariant.IMAGE:
        return _image_summary(width, height, image_format)
    if variant is ContentVariant.FILES:
        if file_paths is None:
            return "[Files]"
        try:
            paths = decode_string_list(file_paths)
        except SerializationError:
            return "[Files]"
        first = paths[0] if paths else ""
        return f"[Files] {len(paths)} items: {first}"
    raise ValueError(f"Unhandled content variant: {variant!r}")


def _escape_like(query: str) -> str:
    return query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class RecordStore:
    """
    SQLite-backed store for clipboard records and their image assets.

    Layout under data_dir:
    - pastee.db: the records table (WAL journaled)
    - images/: encoded originals and thumbnails, bucketed by year-month
    """

    def __init__(
        self,
        data_dir: Path,
        *,
        db_filename: str = DB_FILENAME,
        images_dirname: str = IMAGES_DIRNAME,
        thumbnail_size: tuple[int, int] = (THUMBNAIL_MAX_WIDTH, THUMBNAIL_MAX_HEIGHT),
        search_limit: int = SEARCH_LIMIT,
        lock_timeout: Optional[float] = None,
    ):
        """
        Args:
            data_dir: Directory holding the database and images tree
            db_filename: Database file name inside data_dir
            images_dirname: Images root name inside data_dir
            thumbnail_size: Bounding box for image previews
            search_limit: Maximum rows returned by search()
            lock_timeout: Seconds to wait for the store lock (None waits forever)

        Raises:
            StorageInitError: If the store cannot be created or migrated
        """
        self._data_dir = Path(data_dir)
        self._search_limit = search_limit
        self._lock_timeout = lock_timeout
        self._lock = threading.Lock()

        image_root = self._data_dir / images_dirname
        try:
            image_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageInitError(f"Cannot create image directory {image_root}: {e}") from e
        self._images = ImagePipeline(image_root, thumbnail_size)

        self._conn: Optional[sqlite3.Connection] = open_store(self._data_dir / db_filename)
        row = self._conn.execute("SELECT MAX(created_at) FROM records").fetchone()
        self._last_timestamp = row[0] or 0

    @classmethod
    def from_config(cls, config: StoreConfig, **kwargs) -> "RecordStore":
        return cls(
            config.path,
            db_filename=config.db_filename,
            images_dirname=config.images_dirname,
            thumbnail_size=config.thumbnail_size,
            search_limit=config.search_limit,
            **kwargs,
        )

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    @property
    def image_root(self) -> Path:
        return self._images.root

    # -------------------------------------------------------------------------
    # Locking and transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[sqlite3.Connection]:
        timeout = -1 if self._lock_timeout is None else self._lock_timeout
        if not self._lock.acquire(timeout=timeout):
            raise LockError(f"Timed out after {self._lock_timeout}s waiting for the store lock")
        try:
            if self._conn is None:
                raise StorageInitError("Store is closed")
            yield self._conn
        finally:
            self._lock.release()

    @contextmanager
    def _transaction(self, conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
        # BEGIN IMMEDIATE takes the write lock up front, so nothing can
        # interleave between a write and the reads that depend on it
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def _next_timestamp(self) -> int:
        """Microsecond timestamp, strictly greater than any issued before."""
        now = max(utc_now_micros(), self._last_timestamp + 1)
        self._last_timestamp = now
        return now

    # -------------------------------------------------------------------------
    # Write Operations
    # -------------------------------------------------------------------------

    def _upsert(
        self,
        conn: sqlite3.Connection,
        variant: ContentVariant,
        content_hash: str,
        tags: list[Tag],
        *,
        text: Optional[str] = None,
        html: Optional[str] = None,
        file_paths: Optional[str] = None,
        asset: Optional[ImageAsset] = None,
        created_at: Optional[int] = None,
    ) -> int:
        """
        Insert a record, or touch the existing row with the same hash.

        The insert and the id lookup share one transaction. On conflict
        only created_at and tags change; payload columns are immutable.
        """
        created_at = created_at if created_at is not None else self._next_timestamp()
        with self._transaction(conn):
            conn.execute(_UPSERT_SQL, (
                variant.value,
                content_hash,
                created_at,
                text,
                html,
                file_paths,
                asset.original_relative_path if asset else None,
                asset.thumbnail_relative_path if asset else None,
                asset.encoded_format if asset else None,
                asset.encoded_size_bytes if asset else None,
                asset.raw_pixel_hash if asset else None,
                asset.pixel_width if asset else None,
                asset.pixel_height if asset else None,
                encode_tags(tags),
            ))
            # Resolve by hash: the conflict path performs no insert
            row = conn.execute(
                "SELECT id FROM records WHERE content_hash = ?", (content_hash,)
            ).fetchone()
            if row is None:
                raise NotFound(f"Record vanished after upsert (hash {content_hash})")
        logger.debug("Upserted %s record %d (hash %s)", variant.value, row["id"], content_hash[:12])
        return row["id"]

    def _touch(self, conn: sqlite3.Connection, id: int, tags: list[Tag]) -> None:
        with self._transaction(conn):
            conn.execute(
                "UPDATE records SET created_at = ?, tags = ? WHERE id = ?",
                (self._next_timestamp(), encode_tags(tags), id),
            )

    def add_text(self, raw: str) -> int:
        """
        Store captured text, as COLOR if it is a color literal.

        Returns:
            Record id, or 0 if the text is empty after trimming
        """
        text = raw.strip()
        if not text:
            return NO_RECORD
        variant, tags = classify(text)
        content_hash = hashing.text_hash(text)
        with self._locked() as conn:
            return self._upsert(conn, variant, content_hash, tags, text=text)

    def add_html(self, preview_text: str, markup: str) -> int:
        """
        Store an HTML capture with its extracted plain text.

        A fragment whose text is just a color literal is stored as a
        COLOR record instead. HTML identity is the markup, so the same
        visible text in different markup yields distinct records.
        """
        trimmed = preview_text.strip()
        if is_color(trimmed):
            return self.add_text(trimmed)
        content_hash = hashing.html_hash(markup)
        with self._locked() as conn:
            return self._upsert(
                conn, ContentVariant.HTML, content_hash, list(DEFAULT_TAGS[ContentVariant.HTML]),
                text=preview_text, html=markup,
            )

    def add_files(self, paths: list[str]) -> int:
        """
        Store a copied file list. Order is significant for identity.

        Returns:
            Record id, or 0 for an empty list
        """
        if not paths:
            return NO_RECORD
        paths = [str(p) for p in paths]
        serialized = hashing.serialize_paths(paths)
        # Flattened for substring search over file names
        search_text = "\n".join(paths)
        content_hash = hashing.files_hash(paths)
        with self._locked() as conn:
            return self._upsert(
                conn, ContentVariant.FILES, content_hash, list(DEFAULT_TAGS[ContentVariant.FILES]),
                text=search_text, file_paths=serialized,
            )

    def add_image(self, width: int, height: int, rgba: bytes) -> tuple[int, bytes]:
        """
        Store a raw RGBA capture.

        Identical pixels (by hash) reuse the existing record: no files are
        written and the existing thumbnail is returned. Otherwise both
        files are written before the row, so a row never points at a
        missing file.

        Returns:
            (record id, thumbnail bytes)

        Raises:
            InvalidImageData: If len(rgba) != width * height * 4
            EncodeError / AssetIOError: If encoding or writing fails
        """
        validate_rgba(width, height, rgba)
        raw_hash = hashing.image_hash(rgba)
        logger.debug("Image capture %dx%d, hash %s", width, height, raw_hash)

        with self._locked() as conn:
            existing = conn.execute(
                "SELECT id, thumbnail_path FROM records WHERE image_hash = ? AND variant = ?",
                (raw_hash, ContentVariant.IMAGE.value),
            ).fetchone()
            if existing is not None:
                logger.debug("Image already stored as record %d", existing["id"])
                if not existing["thumbnail_path"]:
                    raise NotFound(f"Record {existing['id']} has no thumbnail", existing["id"])
                thumbnail = self._images.read(existing["thumbnail_path"])
                self._touch(conn, existing["id"], list(DEFAULT_TAGS[ContentVariant.IMAGE]))
                return existing["id"], thumbnail

            captured_at = self._next_timestamp()
            encoded = self._images.store(width, height, rgba, raw_hash, captured_at)
            search_text = _image_summary(width, height, encoded.asset.encoded_format)
            record_id = self._upsert(
                conn, ContentVariant.IMAGE, raw_hash, list(DEFAULT_TAGS[ContentVariant.IMAGE]),
                text=search_text, asset=encoded.asset, created_at=captured_at,
            )
            return record_id, encoded.thumbnail

    def toggle_pin(self, id: int) -> bool:
        """
        Flip the pinned flag of a record.

        Returns:
            The new pinned state

        Raises:
            NotFound: If no record has this id
        """
        with self._locked() as conn:
            with self._transaction(conn):
                row = conn.execute(
                    "SELECT is_pinned FROM records WHERE id = ?", (id,)
                ).fetchone()
                if row is None:
                    raise NotFound(f"No clip with id {id}", id)
                new_state = not bool(row["is_pinned"])
                conn.execute(
                    "UPDATE records SET is_pinned = ? WHERE id = ?", (int(new_state), id)
                )
        return new_state

    def delete(self, id: int) -> bool:
        """
        Delete a record. Its image files are left for prune_orphaned_assets().

        Returns:
            True if a record existed and was deleted
        """
        with self._locked() as conn:
            cursor = conn.execute("DELETE FROM records WHERE id = ?", (id,))
        return cursor.rowcount > 0

    def clear_unpinned(self) -> int:
        """
        Delete every unpinned record.

        Returns:
            Number of records deleted
        """
        with self._locked() as conn:
            cursor = conn.execute("DELETE FROM records WHERE is_pinned = 0")
        logger.info("Cleared %d unpinned clips", cursor.rowcount)
        return cursor.rowcount

    def prune_orphaned_assets(self, min_age: float = ORPHAN_GRACE_SECONDS) -> int:
        """
        Remove files under the images root that no record references.

        Covers deleted records and leftovers from aborted captures. Another
        process sharing the directory writes its files before committing
        the row that references them, so files modified within the last
        ``min_age`` seconds are left alone. In-progress ``.part`` files are
        kept for at least ORPHAN_GRACE_SECONDS whatever ``min_age`` is.

        Args:
            min_age: Seconds a file must have gone unmodified before it
                can be removed

        Returns:
            Number of files removed
        """
        now = time.time()
        cutoff = now - min_age
        partial_cutoff = now - max(min_age, ORPHAN_GRACE_SECONDS)
        with self._locked() as conn:
            referenced: set[str] = set()
            for row in conn.execute("""
                SELECT image_path, thumbnail_path, content_image_path FROM records
                WHERE variant = ?
            """, (ContentVariant.IMAGE.value,)):
                referenced.update(p for p in row if p)
            removed = 0
            for relative, mtime in list(self._images.iter_files()):
                if relative in referenced or mtime > cutoff:
                    continue
                if relative.endswith(PARTIAL_SUFFIX):
                    if mtime > partial_cutoff:
                        continue
                    logger.debug("Removing stale partial file %s", relative)
                if self._images.remove(relative):
                    removed += 1
        if removed:
            logger.info("Pruned %d orphaned image files", removed)
        return removed

    # -------------------------------------------------------------------------
    # Read Operations
    # -------------------------------------------------------------------------

    def _row_to_item(self, row: sqlite3.Row) -> ClipItem:
        variant = ContentVariant.parse(row["variant"])
        return ClipItem(
            id=row["id"],
            content_type=variant,
            preview=make_preview(
                variant,
                row["content_text"],
                row["content_file_paths"],
                row["width"],
                row["height"],
                row["image_format"],
            ),
            created_at=row["created_at"],
            is_pinned=bool(row["is_pinned"]),
            tags=decode_tags(row["tags"], variant),
        )

    def list(self, limit: int, offset: int = 0) -> list[ClipItem]:
        """
        List records, pinned first, then newest first.

        Args:
            limit: Maximum number of items
            offset: Number of items to skip
        """
        if limit < 0 or offset < 0:
            raise ValueError(f"limit and offset must be non-negative: {limit}, {offset}")
        with self._locked() as conn:
            rows = conn.execute(f"""
                SELECT {_ITEM_COLUMNS} FROM records
                ORDER BY is_pinned DESC, created_at DESC, id DESC
                LIMIT ? OFFSET ?
            """, (limit, offset)).fetchall()
        return [self._row_to_item(row) for row in rows]

    def count(self) -> int:
        """Total number of records."""
        with self._locked() as conn:
            return conn.execute("SELECT COUNT(*) FROM records").fetchone()[0]

    def search(self, query: str) -> list[ClipItem]:
        """
        Substring search over the stored text, newest first.

        Matching is case-insensitive for ASCII letters; ``%`` and ``_``
        match literally. An empty query matches every record.
        """
        pattern = f"%{_escape_like(query)}%"
        with self._locked() as conn:
            rows = conn.execute(f"""
                SELECT {_ITEM_COLUMNS} FROM records
                WHERE content_text LIKE ? ESCAPE '\\'
                ORDER BY created_at DESC, id DESC
                LIMIT ?
            """, (pattern, self._search_limit)).fetchall()
        return [self._row_to_item(row) for row in rows]

    def get_content(self, id: int) -> ClipData:
        """
        Full payload of a record.

        Raises:
            NotFound: If the record, or the file behind an image record, is missing
        """
        with self._locked() as conn:
            row = conn.execute("""
                SELECT variant, content_text, content_html, content_image_path,
                       content_file_paths, image_path
                FROM records WHERE id = ?
            """, (id,)).fetchone()
            if row is None:
                raise NotFound(f"No clip with id {id}", id)

            variant = ContentVariant.parse(row["variant"])
            if variant is ContentVariant.TEXT:
                return TextData(row["content_text"] or "")
            if variant is ContentVariant.COLOR:
                return ColorData(row["content_text"] or "")
            if variant is ContentVariant.HTML:
                return HtmlData(text=row["content_text"] or "", html=row["content_html"] or "")
            if variant is ContentVariant.FILES:
                return FilesData(_decode_paths(row["content_file_paths"]))
            if variant is ContentVariant.IMAGE:
                # Rows from before the asset columns only have the legacy path
                path = row["image_path"] or row["content_image_path"]
                if not path:
                    raise NotFound(f"Clip {id} has no image path", id)
                return ImageData(self._images.read(path))
        raise ValueError(f"Unhandled content variant: {variant!r}")

    def get_image_paths(self, id: int) -> tuple[str, str]:
        """
        Relative (original, thumbnail) paths of an image record.

        Raises:
            NotFound: If the record does not exist or has no image files
        """
        with self._locked() as conn:
            row = conn.execute(
                "SELECT image_path, thumbnail_path FROM records WHERE id = ?", (id,)
            ).fetchone()
        if row is None:
            raise NotFound(f"No clip with id {id}", id)
        if not row["image_path"] or not row["thumbnail_path"]:
            raise NotFound(f"Clip {id} has no image paths", id)
        return row["image_path"], row["thumbnail_path"]

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
