"""
Logging configuration for pastee.

Library code only creates module loggers; handlers are attached here,
by the CLI or by an embedding application.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

PACKAGE_LOGGER = "pastee"
OPS_LOG_FILENAME = "pastee-ops.log"
OPS_LOG_MAX_BYTES = 1_000_000
OPS_LOG_BACKUPS = 3

_DEBUG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
_OPS_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def enable_debug_mode() -> None:
    """Send DEBUG records from the pastee loggers to stderr."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)

    already = any(
        isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr
        for h in logger.handlers
    )
    if not already:
        stderr = logging.StreamHandler(sys.stderr)
        stderr.setFormatter(logging.Formatter(_DEBUG_FORMAT, datefmt="%H:%M:%S"))
        logger.addHandler(stderr)

    # Pillow's plugin loader is noisy at DEBUG
    logging.getLogger("PIL").setLevel(logging.INFO)


def configure_ops_log(data_dir) -> logging.Handler:
    """
    Record store operations in {data_dir}/pastee-ops.log.

    The file rotates at 1 MB with three backups. Returns the handler so
    it can be detached again with remove_ops_log().
    """
    log_dir = Path(data_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    ops = RotatingFileHandler(
        str(log_dir / OPS_LOG_FILENAME),
        maxBytes=OPS_LOG_MAX_BYTES,
        backupCount=OPS_LOG_BACKUPS,
        encoding="utf-8",
    )
    ops.setLevel(logging.INFO)
    ops.setFormatter(logging.Formatter(_OPS_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.addHandler(ops)
    # INFO must reach the file even when nothing else configured logging
    if logger.level == logging.NOTSET or logger.level > logging.INFO:
        logger.setLevel(logging.INFO)
    return ops


def remove_ops_log(handler: logging.Handler) -> None:
    logging.getLogger(PACKAGE_LOGGER).removeHandler(handler)
    handler.close()
