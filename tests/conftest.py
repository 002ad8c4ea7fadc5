"""
Shared pytest fixtures for pastee tests.
"""

from pathlib import Path

import pytest

from pastee.record_store import RecordStore


def make_rgba(width: int, height: int, seed: int = 0) -> bytes:
    """Deterministic RGBA buffer; different seeds give different pixels."""
    buf = bytearray()
    for y in range(height):
        for x in range(width):
            buf += bytes(((x + seed) % 256, (y + seed * 7) % 256, (x * y + seed) % 256, 255))
    return bytes(buf)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Empty data directory for a store."""
    return tmp_path / "pastee"


@pytest.fixture
def store(data_dir: Path):
    """A fresh RecordStore, closed after the test."""
    s = RecordStore(data_dir)
    yield s
    s.close()


@pytest.fixture
def rgba():
    """Factory for RGBA pixel buffers."""
    return make_rgba
