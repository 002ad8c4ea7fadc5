"""
Capture event intake.

The clipboard watcher (outside this package) produces already-decoded
events. CaptureHandler feeds them into a record store and reports what
happened through a notification callback.

Text, HTML and file lists are stored inline. Images are slow to encode,
so they are handed to a background worker: an ImagePending notification
goes out immediately, and an ImageReady or ImageError with the same
temp_id follows once the pipeline finishes.
"""

import base64
import logging
import queue
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import PurePath
from typing import Callable, ClassVar, Iterable, Optional, Union

from .classifier import classify, is_color
from .html_text import extract_text
from .protocol import RecordStoreProtocol
from .types import NO_RECORD, PREVIEW_CHARS, ContentVariant, utc_now_micros

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Inbound capture events
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TextEvent:
    text: str


@dataclass(frozen=True)
class HtmlEvent:
    html: str


@dataclass(frozen=True)
class ImageEvent:
    width: int
    height: int
    rgba: bytes = field(repr=False)
    # Correlation id for the pending/ready pair; assigned if not given
    temp_id: Optional[int] = None


@dataclass(frozen=True)
class FileListEvent:
    paths: list[Union[str, PurePath]]


@dataclass(frozen=True)
class ErrorEvent:
    message: str


CaptureEvent = Union[TextEvent, HtmlEvent, ImageEvent, FileListEvent, ErrorEvent]


# -----------------------------------------------------------------------------
# Outbound notifications
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class NewClip:
    channel: ClassVar[str] = "clipboard://new-clip"
    id: int
    content_type: ContentVariant
    preview: str

    def to_dict(self) -> dict:
        return {"id": self.id, "type": self.content_type.value, "preview": self.preview}


@dataclass(frozen=True)
class ImagePending:
    channel: ClassVar[str] = "clipboard://image-pending"
    temp_id: int

    def to_dict(self) -> dict:
        return {"temp_id": self.temp_id, "type": ContentVariant.IMAGE.value}


@dataclass(frozen=True)
class ImageReady:
    channel: ClassVar[str] = "clipboard://image-ready"
    temp_id: int
    id: int
    thumbnail: bytes = field(repr=False)

    def to_dict(self) -> dict:
        return {
            "temp_id": self.temp_id,
            "id": self.id,
            "type": ContentVariant.IMAGE.value,
            "thumbnail": base64.b64encode(self.thumbnail).decode("ascii"),
        }


@dataclass(frozen=True)
class ImageError:
    channel: ClassVar[str] = "clipboard://image-error"
    temp_id: int
    error: str

    def to_dict(self) -> dict:
        return {"temp_id": self.temp_id, "error": self.error}


Notification = Union[NewClip, ImagePending, ImageReady, ImageError]


def _short(text: str) -> str:
    return text[:PREVIEW_CHARS].replace("\r", " ").replace("\n", " ")


class CaptureHandler:
    """
    Dispatches capture events to a record store.

    Store failures on the inline paths are logged and do not stop
    intake. Image failures are reported as ImageError notifications.
    """

    def __init__(
        self,
        store: RecordStoreProtocol,
        notify: Optional[Callable[[Notification], None]] = None,
        *,
        executor: Optional[Executor] = None,
    ):
        """
        Args:
            store: Store receiving the captures
            notify: Called with each notification (from the worker thread
                for ImageReady / ImageError)
            executor: Runs image ingestion; defaults to a single worker thread
        """
        self._store = store
        self._notify = notify
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="pastee-image",
        )

    def _emit(self, notification: Notification) -> None:
        if self._notify is None:
            return
        try:
            self._notify(notification)
        except Exception as e:
            logger.warning("Notification %s failed: %s", notification.channel, e)

    # -------------------------------------------------------------------------
    # Per-event handlers
    # -------------------------------------------------------------------------

    def _on_text(self, event: TextEvent) -> None:
        text = event.text.lstrip()
        try:
            record_id = self._store.add_text(text)
        except Exception as e:
            logger.error("Failed to store text capture: %s", e)
            return
        if record_id == NO_RECORD:
            return
        variant, _ = classify(text.strip())
        self._emit(NewClip(record_id, variant, _short(text.strip())))

    def _on_html(self, event: HtmlEvent) -> None:
        preview = extract_text(event.html)
        logger.debug("HTML capture, %d bytes, text %r", len(event.html), preview[:PREVIEW_CHARS])
        try:
            record_id = self._store.add_html(preview, event.html)
        except Exception as e:
            logger.error("Failed to store HTML capture: %s", e)
            return
        variant = ContentVariant.COLOR if is_color(preview) else ContentVariant.HTML
        self._emit(NewClip(record_id, variant, _short(preview)))

    def _on_files(self, event: FileListEvent) -> None:
        paths = [str(p) for p in event.paths]
        try:
            record_id = self._store.add_files(paths)
        except Exception as e:
            logger.error("Failed to store file list capture: %s", e)
            return
        if record_id == NO_RECORD:
            return
        self._emit(NewClip(record_id, ContentVariant.FILES, f"{len(paths)} files"))

    def _ingest_image(self, temp_id: int, event: ImageEvent) -> Optional[int]:
        try:
            record_id, thumbnail = self._store.add_image(event.width, event.height, event.rgba)
        except Exception as e:
            logger.warning("Failed to store image capture %d: %s", temp_id, e)
            self._emit(ImageError(temp_id, str(e)))
            return None
        self._emit(ImageReady(temp_id, record_id, thumbnail))
        return record_id

    def _on_image(self, event: ImageEvent) -> Future:
        temp_id = event.temp_id if event.temp_id is not None else utc_now_micros()
        logger.debug("Image capture %dx%d queued as %d", event.width, event.height, temp_id)
        self._emit(ImagePending(temp_id))
        return self._executor.submit(self._ingest_image, temp_id, event)

    # -------------------------------------------------------------------------
    # Intake
    # -------------------------------------------------------------------------

    def handle(self, event: CaptureEvent) -> Optional[Future]:
        """
        Process one event.

        Returns:
            For ImageEvent, a Future resolving to the record id (None on
            failure); otherwise None
        """
        if isinstance(event, TextEvent):
            self._on_text(event)
        elif isinstance(event, HtmlEvent):
            self._on_html(event)
        elif isinstance(event, FileListEvent):
            self._on_files(event)
        elif isinstance(event, ImageEvent):
            return self._on_image(event)
        elif isinstance(event, ErrorEvent):
            logger.warning("Clipboard read failed: %s", event.message)
        else:
            raise TypeError(f"Unknown capture event: {type(event).__name__}")
        return None

    def run(self, events: Iterable[CaptureEvent]) -> int:
        """Handle every event from an iterable. Returns the number handled."""
        handled = 0
        for event in events:
            self.handle(event)
            handled += 1
        return handled

    def run_queue(self, events: "queue.Queue[Optional[CaptureEvent]]") -> int:
        """Handle events from a queue until a None sentinel arrives."""
        return self.run(iter(events.get, None))

    def close(self, wait: bool = True) -> None:
        """Stop the image worker, waiting for queued images by default."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
