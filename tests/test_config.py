"""
Tests for data directory resolution and the TOML config file.
"""

from pathlib import Path

import pytest

from pastee.config import (
    CONFIG_FILENAME,
    StoreConfig,
    get_data_dir,
    load_config,
    load_or_create_config,
    save_config,
)
from pastee.record_store import RecordStore


class TestDataDir:

    def test_explicit_wins(self, tmp_path, monkeypatch):
        """An explicit path beats PASTEE_DATA_DIR."""
        monkeypatch.setenv("PASTEE_DATA_DIR", str(tmp_path / "env"))
        assert get_data_dir(tmp_path / "explicit") == tmp_path / "explicit"

    def test_env(self, tmp_path, monkeypatch):
        """PASTEE_DATA_DIR is used when no path is given."""
        monkeypatch.setenv("PASTEE_DATA_DIR", str(tmp_path / "env"))
        assert get_data_dir() == tmp_path / "env"

    def test_default_under_documents(self, monkeypatch):
        """Without overrides the store lives in ~/Documents/pastee."""
        monkeypatch.delenv("PASTEE_DATA_DIR", raising=False)
        assert get_data_dir() == Path.home() / "Documents" / "pastee"


class TestConfigFile:

    def test_round_trip(self, tmp_path):
        """Saved settings load back with the same values."""
        config = StoreConfig(
            path=tmp_path,
            images_dirname="pics",
            thumbnail_max_width=320,
            thumbnail_max_height=240,
            search_limit=10,
        )
        save_config(config)
        loaded = load_config(tmp_path)
        assert loaded.images_dirname == "pics"
        assert loaded.thumbnail_size == (320, 240)
        assert loaded.search_limit == 10
        assert loaded.created == config.created
        assert loaded.images_path == tmp_path / "pics"

    def test_missing_file(self, tmp_path):
        """Loading from a directory without pastee.toml raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path)

    def test_partial_file_uses_defaults(self, tmp_path):
        """Keys missing from the file take their defaults."""
        (tmp_path / CONFIG_FILENAME).write_text("[store]\nversion = 1\n")
        config = load_config(tmp_path)
        assert config.db_filename == "pastee.db"
        assert config.thumbnail_size == (800, 600)
        assert config.search_limit == 50

    def test_newer_version_rejected(self, tmp_path):
        """A config written by a newer version is refused."""
        (tmp_path / CONFIG_FILENAME).write_text("[store]\nversion = 99\n")
        with pytest.raises(ValueError, match="newer"):
            load_config(tmp_path)

    def test_load_or_create(self, tmp_path):
        """The first call writes a config and later calls load that same file."""
        data_dir = tmp_path / "new"
        created = load_or_create_config(data_dir)
        assert created.exists()
        again = load_or_create_config(data_dir)
        assert again.created == created.created


def test_store_from_config(tmp_path):
    """Custom file names from the config are used for the database and images."""
    config = StoreConfig(path=tmp_path, db_filename="clips.db", images_dirname="img")
    with RecordStore.from_config(config) as store:
        store.add_text("hello")
    assert (tmp_path / "clips.db").is_file()
    assert (tmp_path / "img").is_dir()
