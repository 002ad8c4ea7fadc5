"""
Content hashing for deduplication.

Each variant defines the bytes that identify it:
- text / color: the trimmed text, UTF-8
- html: the raw markup, not the extracted preview text
- files: the ordered path list as a compact JSON array
- image: the raw RGBA pixel buffer, before any encoding

Text, HTML and file digests are taken over a type prefix plus those
bytes, so equal bytes captured as different types stay separate records.
Text and color share a prefix: the classifier decides between them from
the text alone.
"""

import hashlib
import json

# Image identity uses a prefix of the digest (8 bytes) as a shorter key.
IMAGE_HASH_HEX_CHARS = 16

TEXT_DOMAIN = b"text\0"
HTML_DOMAIN = b"html\0"
FILES_DOMAIN = b"files\0"


def content_hash(data: bytes) -> str:
    """SHA-256 hex digest of canonical content bytes."""
    return hashlib.sha256(data).hexdigest()


def text_hash(text: str) -> str:
    return content_hash(TEXT_DOMAIN + text.strip().encode("utf-8"))


def html_hash(markup: str) -> str:
    return content_hash(HTML_DOMAIN + markup.encode("utf-8"))


def serialize_paths(paths: list[str]) -> str:
    """Deterministic serialization of an ordered path list."""
    return json.dumps(list(paths), ensure_ascii=False, separators=(",", ":"))


def files_hash(paths: list[str]) -> str:
    return content_hash(FILES_DOMAIN + serialize_paths(paths).encode("utf-8"))


def image_hash(rgba: bytes) -> str:
    """Short identity key for a raw pixel buffer."""
    return content_hash(rgba)[:IMAGE_HASH_HEX_CHARS]
