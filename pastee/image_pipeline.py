"""
Image asset pipeline: validation, encoding, thumbnailing, disk layout.

Raw RGBA captures are stored twice under the images root:

    <YYYYMM>/original/<micros>_<hash>.png     lossless full copy
    <YYYYMM>/thumbnail/<micros>_<hash>.webp   lossless preview, at most 800x600

Paths recorded in the database are relative to the images root and use
forward slashes. The pipeline never touches the database; RecordStore
decides whether a capture is new and owns the row.
"""

import io
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from PIL import Image

from .errors import AssetIOError, EncodeError, InvalidImageData, NotFound
from .types import ImageAsset

logger = logging.getLogger(__name__)

BYTES_PER_PIXEL = 4
ORIGINAL_FORMAT = "png"
THUMBNAIL_FORMAT = "webp"
DEFAULT_THUMBNAIL_SIZE = (800, 600)
PARTIAL_SUFFIX = ".part"


@dataclass(frozen=True)
class EncodedImage:
    """Result of a successful encode + write."""
    asset: ImageAsset
    thumbnail: bytes


def validate_rgba(width: int, height: int, rgba: bytes) -> None:
    """
    Check that a raw buffer holds exactly width x height RGBA pixels.

    Raises:
        InvalidImageData: On non-positive dimensions or a length mismatch
    """
    if width <= 0 or height <= 0:
        raise InvalidImageData(f"Image dimensions must be positive: {width}x{height}")
    expected = width * height * BYTES_PER_PIXEL
    if len(rgba) != expected:
        raise InvalidImageData(
            f"Image data size mismatch: expected {expected} bytes, got {len(rgba)} bytes"
        )


def bucket_for(micros: int) -> str:
    """Year-month directory name for a capture timestamp (local time)."""
    return datetime.fromtimestamp(micros / 1_000_000).strftime("%Y%m")


class ImagePipeline:
    """
    Encodes raw captures and manages their files under an images root.
    """

    def __init__(self, image_root: Path, thumbnail_size: tuple[int, int] = DEFAULT_THUMBNAIL_SIZE):
        """
        Args:
            image_root: Directory holding the <YYYYMM>/ buckets
            thumbnail_size: Bounding box for previews (width, height)
        """
        self._root = image_root
        self._thumbnail_size = thumbnail_size

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, relative_path: str) -> Path:
        """Absolute path for a stored relative path."""
        return self._root.joinpath(*relative_path.split("/"))

    def read(self, relative_path: str) -> bytes:
        """
        Read an asset file.

        Raises:
            NotFound: If the file does not exist
            AssetIOError: On any other read failure
        """
        path = self.resolve(relative_path)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise NotFound(f"Image file missing: {relative_path}") from e
        except OSError as e:
            raise AssetIOError(f"Cannot read image file {relative_path}: {e}") from e

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def _encode(self, width: int, height: int, rgba: bytes) -> tuple[bytes, bytes]:
        """Return (original PNG bytes, thumbnail WebP bytes)."""
        try:
            image = Image.frombytes("RGBA", (width, height), rgba)

            original = io.BytesIO()
            image.save(original, format="PNG")

            preview = image.copy()
            # thumbnail() keeps the aspect ratio and never upscales
            preview.thumbnail(self._thumbnail_size)
            thumbnail = io.BytesIO()
            preview.save(thumbnail, format="WEBP", lossless=True)
        except (OSError, ValueError) as e:
            raise EncodeError(f"Failed to encode {width}x{height} image: {e}") from e
        return original.getvalue(), thumbnail.getvalue()

    def _write(self, path: Path, data: bytes) -> None:
        # Write to a sibling temp file first so a final name never holds
        # a partial image
        tmp = path.with_name(path.name + PARTIAL_SUFFIX)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_bytes(data)
            os.replace(tmp, path)
        except OSError as e:
            raise AssetIOError(f"Failed to write {path}: {e}") from e

    def store(
        self,
        width: int,
        height: int,
        rgba: bytes,
        raw_hash: str,
        captured_at: int,
    ) -> EncodedImage:
        """
        Encode a validated capture and write both files.

        Args:
            width: Pixel width
            height: Pixel height
            rgba: Raw RGBA buffer (already validated)
            raw_hash: Identity hash of the raw buffer, used in filenames
            captured_at: Capture timestamp in microseconds

        Returns:
            EncodedImage with the asset description and thumbnail bytes

        Raises:
            EncodeError: If Pillow cannot encode the image
            AssetIOError: If a file cannot be written
        """
        original, thumbnail = self._encode(width, height, rgba)

        bucket = bucket_for(captured_at)
        stem = f"{captured_at}_{raw_hash}"
        original_rel = f"{bucket}/original/{stem}.{ORIGINAL_FORMAT}"
        thumbnail_rel = f"{bucket}/thumbnail/{stem}.{THUMBNAIL_FORMAT}"

        self._write(self.resolve(original_rel), original)
        self._write(self.resolve(thumbnail_rel), thumbnail)
        logger.info("Stored image %dx%d as %s (%d bytes)",
                    width, height, original_rel, len(original))

        asset = ImageAsset(
            original_relative_path=original_rel,
            thumbnail_relative_path=thumbnail_rel,
            encoded_format=ORIGINAL_FORMAT,
            encoded_size_bytes=len(original),
            pixel_width=width,
            pixel_height=height,
            raw_pixel_hash=raw_hash,
        )
        return EncodedImage(asset=asset, thumbnail=thumbnail)

    # -------------------------------------------------------------------------
    # Reclamation
    # -------------------------------------------------------------------------

    def iter_files(self) -> Iterator[tuple[str, float]]:
        """Yield (relative path, mtime) for every file under the images root."""
        if not self._root.exists():
            return
        for path in self._root.rglob("*"):
            try:
                if not path.is_file():
                    continue
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                # Removed or renamed while walking
                continue
            yield path.relative_to(self._root).as_posix(), mtime

    def remove(self, relative_path: str) -> bool:
        """Delete one asset file. Returns False if it was already gone."""
        try:
            self.resolve(relative_path).unlink()
        except FileNotFoundError:
            return False
        return True
