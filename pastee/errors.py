"""
Error types and error logging utilities for pastee.

Store operations raise the typed exceptions below. The CLI logs full
stack traces to a file and shows clean messages to users.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class PasteeError(Exception):
    """Base class for all pastee errors."""


class StorageInitError(PasteeError):
    """The store could not be opened or migrated."""


class LockError(PasteeError):
    """The store lock could not be acquired."""


class InvalidImageData(PasteeError, ValueError):
    """Pixel buffer length does not match the declared dimensions."""


class NotFound(PasteeError, LookupError):
    """No record (or backing file) for the requested id."""

    def __init__(self, message: str, id: int | None = None):
        super().__init__(message)
        self.id = id


class EncodeError(PasteeError):
    """Image encoding failed."""


class AssetIOError(PasteeError, OSError):
    """Reading or writing an image asset failed."""


class SerializationError(PasteeError, ValueError):
    """A stored array field could not be decoded."""


ERROR_LOG_FILENAME = "pastee-errors.log"


def log_exception(exc: Exception, context: str = "", data_dir: Optional[Path] = None) -> Path:
    """
    Append an exception's traceback to the error log in the data directory.

    The log lives next to the database: data_dir if given, else
    ``PASTEE_DATA_DIR`` or the default data directory. Failing to write
    it is ignored.

    Returns:
        Path to the error log file
    """
    from .config import get_data_dir

    log_path = get_data_dir(data_dir) / ERROR_LOG_FILENAME
    header = datetime.now(timezone.utc).isoformat()
    if context:
        header = f"{header} {context}"
    entry = "".join([
        f"\n--- {header} ---\n",
        *traceback.format_exception(type(exc), exc, exc.__traceback__),
    ])
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a", encoding="utf-8") as f:
            f.write(entry)
    except OSError:
        pass
    return log_path
