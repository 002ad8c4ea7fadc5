"""
Schema management for the clipboard history database.

The schema version is tracked in ``PRAGMA user_version``. Opening a store
applies every pending migration in order, inside one IMMEDIATE
transaction, so concurrent openers serialize and each step runs once.
Every step is also written to be safe on a database where it has
already been applied (IF NOT EXISTS, column checks).

Schema history:
- v1: ``records`` table with text/html/file payload columns and the
  legacy single ``content_image_path`` column
- v2: image asset columns (paths, format, size, pixel hash, dimensions)
- v3: ``tags`` JSON array column, pinned/recency index
- v4: text, HTML and file hashes recomputed with a content-type prefix
"""

import json
import logging
import sqlite3
from pathlib import Path
from typing import Callable

from . import hashing
from .errors import StorageInitError

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 4


def _columns(conn: sqlite3.Connection, table: str) -> set[str]:
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})").fetchall()}


def _add_columns(conn: sqlite3.Connection, table: str, columns: list[tuple[str, str]]) -> None:
    existing = _columns(conn, table)
    for name, decl in columns:
        if name not in existing:
            conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {decl}")


def _migrate_v1(conn: sqlite3.Connection) -> None:
    """Base records table."""
    conn.execute("""
        CREATE TABLE IF NOT EXISTS records (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            variant TEXT NOT NULL,
            content_hash TEXT NOT NULL UNIQUE,
            created_at INTEGER NOT NULL,
            content_text TEXT,
            content_html TEXT,
            content_image_path TEXT,
            content_file_paths TEXT,
            is_pinned INTEGER NOT NULL DEFAULT 0
        )
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_records_created
        ON records(created_at)
    """)


def _migrate_v2(conn: sqlite3.Connection) -> None:
    """Image asset columns."""
    _add_columns(conn, "records", [
        ("image_path", "TEXT"),
        ("thumbnail_path", "TEXT"),
        ("image_format", "TEXT"),
        ("image_size_bytes", "INTEGER"),
        ("image_hash", "TEXT"),
        ("width", "INTEGER"),
        ("height", "INTEGER"),
    ])
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_records_image_hash
        ON records(image_hash)
    """)


def _migrate_v3(conn: sqlite3.Connection) -> None:
    """Tag arrays; rows written before tags existed get their variant as tag."""
    _add_columns(conn, "records", [("tags", "TEXT")])
    conn.execute("""
        UPDATE records SET tags = json_array(variant)
        WHERE tags IS NULL OR tags = ''
    """)
    conn.execute("""
        CREATE INDEX IF NOT EXISTS idx_records_pinned_created
        ON records(is_pinned DESC, created_at DESC)
    """)


def _typed_hash(variant: str, text, html, file_paths):
    """Current dedup key of a non-image row, or None if it cannot be derived."""
    if variant in ("text", "color") and text is not None:
        return hashing.text_hash(text)
    if variant == "html" and html is not None:
        return hashing.html_hash(html)
    if variant == "files" and file_paths is not None:
        try:
            paths = json.loads(file_paths)
        except ValueError:
            return None
        if isinstance(paths, list) and all(isinstance(p, str) for p in paths):
            return hashing.files_hash(paths)
    return None


def _migrate_v4(conn: sqlite3.Connection) -> None:
    """Rehash text, HTML and file rows so each content type has its own key space."""
    rows = conn.execute("""
        SELECT id, variant, content_hash, content_text, content_html, content_file_paths
        FROM records WHERE variant != 'image'
    """).fetchall()
    for id, variant, old_hash, text, html, file_paths in rows:
        new_hash = _typed_hash(variant, text, html, file_paths)
        if new_hash is None or new_hash == old_hash:
            continue
        try:
            conn.execute("UPDATE records SET content_hash = ? WHERE id = ?", (new_hash, id))
        except sqlite3.IntegrityError:
            logger.warning("Record %d duplicates another row; keeping its old hash", id)


# (target version, step) in application order
MIGRATIONS: list[tuple[int, Callable[[sqlite3.Connection], None]]] = [
    (1, _migrate_v1),
    (2, _migrate_v2),
    (3, _migrate_v3),
    (4, _migrate_v4),
]


def schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def migrate(conn: sqlite3.Connection) -> int:
    """
    Bring the database up to SCHEMA_VERSION.

    The connection must be in autocommit mode (``isolation_level=None``).
    Re-running on a current database is a no-op.

    Returns:
        The schema version after migration
    """
    if schema_version(conn) == SCHEMA_VERSION:
        return SCHEMA_VERSION

    conn.execute("BEGIN IMMEDIATE")
    try:
        # Re-read under the write lock: another opener may have migrated
        version = schema_version(conn)
        if version > SCHEMA_VERSION:
            raise StorageInitError(
                f"Database schema version {version} is newer than supported ({SCHEMA_VERSION})"
            )
        for target, step in MIGRATIONS:
            if version < target:
                logger.info("Migrating clipboard store schema v%d -> v%d", version, target)
                step(conn)
                version = target
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    return SCHEMA_VERSION


def open_store(db_path: Path) -> sqlite3.Connection:
    """
    Open (creating if needed) and migrate the database at db_path.

    Configures WAL journaling with ``synchronous=NORMAL``: committed rows
    survive a crash and readers never block the writer.

    Raises:
        StorageInitError: If the location is unwritable or a migration fails
    """
    conn = None
    try:
        db_path.parent.mkdir(parents=True, exist_ok=True)
        # isolation_level=None gives us manual transaction control
        # so writes can use BEGIN IMMEDIATE
        conn = sqlite3.connect(
            str(db_path), check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        # Wait up to 5 seconds for locks instead of failing immediately
        conn.execute("PRAGMA busy_timeout=5000")
        migrate(conn)
    except StorageInitError:
        if conn is not None:
            conn.close()
        raise
    except (sqlite3.Error, OSError) as e:
        if conn is not None:
            conn.close()
        raise StorageInitError(f"Cannot open clipboard store at {db_path}: {e}") from e
    return conn
