"""
Configuration management for clipboard history stores.

The configuration is stored as a TOML file in the data directory,
next to the database and the images tree.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# tomli_w for writing TOML (tomllib is read-only)
try:
    import tomli_w
except ImportError:
    tomli_w = None  # type: ignore


CONFIG_FILENAME = "pastee.toml"
CONFIG_VERSION = 1

DATA_DIR_ENV = "PASTEE_DATA_DIR"
DB_FILENAME = "pastee.db"
IMAGES_DIRNAME = "images"
THUMBNAIL_MAX_WIDTH = 800
THUMBNAIL_MAX_HEIGHT = 600
SEARCH_LIMIT = 50
LIST_PAGE_SIZE = 50
ORPHAN_GRACE_SECONDS = 300


@dataclass
class StoreConfig:
    """Complete store configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    db_filename: str = DB_FILENAME
    images_dirname: str = IMAGES_DIRNAME
    thumbnail_max_width: int = THUMBNAIL_MAX_WIDTH
    thumbnail_max_height: int = THUMBNAIL_MAX_HEIGHT
    search_limit: int = SEARCH_LIMIT
    list_page_size: int = LIST_PAGE_SIZE

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    @property
    def db_path(self) -> Path:
        return self.path / self.db_filename

    @property
    def images_path(self) -> Path:
        return self.path / self.images_dirname

    @property
    def thumbnail_size(self) -> tuple[int, int]:
        return (self.thumbnail_max_width, self.thumbnail_max_height)

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_data_dir(explicit: Optional[Path] = None) -> Path:
    """
    Resolve the data directory.

    Priority:
    1. Explicit path (e.g. --store)
    2. PASTEE_DATA_DIR environment variable
    3. ~/Documents/pastee
    """
    if explicit is not None:
        return Path(explicit).expanduser()
    env_dir = os.environ.get(DATA_DIR_ENV)
    if env_dir:
        return Path(env_dir).expanduser()
    return Path.home() / "Documents" / "pastee"


def load_config(data_dir: Path) -> StoreConfig:
    """
    Load configuration from a data directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = data_dir / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    store = data.get("store", {})
    version = store.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    storage = data.get("storage", {})
    images = data.get("images", {})
    query = data.get("query", {})

    return StoreConfig(
        path=data_dir,
        version=version,
        created=store.get("created", ""),
        db_filename=storage.get("db_filename", DB_FILENAME),
        images_dirname=storage.get("images_dirname", IMAGES_DIRNAME),
        thumbnail_max_width=int(images.get("thumbnail_max_width", THUMBNAIL_MAX_WIDTH)),
        thumbnail_max_height=int(images.get("thumbnail_max_height", THUMBNAIL_MAX_HEIGHT)),
        search_limit=int(query.get("search_limit", SEARCH_LIMIT)),
        list_page_size=int(query.get("list_page_size", LIST_PAGE_SIZE)),
    )


def save_config(config: StoreConfig) -> None:
    """
    Save configuration to the data directory.

    Creates the directory if it doesn't exist.
    """
    if tomli_w is None:
        raise RuntimeError("tomli_w is required to save config. Install with: pip install tomli-w")

    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "store": {
            "version": config.version,
            "created": config.created,
        },
        "storage": {
            "db_filename": config.db_filename,
            "images_dirname": config.images_dirname,
        },
        "images": {
            "thumbnail_max_width": config.thumbnail_max_width,
            "thumbnail_max_height": config.thumbnail_max_height,
        },
        "query": {
            "search_limit": config.search_limit,
            "list_page_size": config.list_page_size,
        },
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(data_dir: Path) -> StoreConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    if (data_dir / CONFIG_FILENAME).exists():
        return load_config(data_dir)
    config = StoreConfig(path=data_dir)
    save_config(config)
    return config
