"""
Tests for CaptureHandler event intake and notifications.
"""

import base64
import logging
import queue

import pytest

from pastee.events import (
    CaptureHandler,
    ErrorEvent,
    FileListEvent,
    HtmlEvent,
    ImageError,
    ImageEvent,
    ImagePending,
    ImageReady,
    NewClip,
    TextEvent,
)
from pastee.types import ContentVariant, FilesData, HtmlData, TextData


@pytest.fixture
def notes():
    return []


@pytest.fixture
def handler(store, notes):
    h = CaptureHandler(store, notes.append)
    yield h
    h.close()


class TestInlineEvents:

    def test_text(self, handler, store, notes):
        """A text event is stored and announced as a new clip."""
        handler.handle(TextEvent("  hello world\n"))
        assert len(notes) == 1
        note = notes[0]
        assert isinstance(note, NewClip)
        assert note.content_type is ContentVariant.TEXT
        assert note.preview == "hello world"
        assert store.get_content(note.id) == TextData("hello world")

    def test_color_text(self, handler, notes):
        """Color text is announced with the color type."""
        handler.handle(TextEvent("#ff8800"))
        assert notes[0].content_type is ContentVariant.COLOR
        assert notes[0].to_dict() == {"id": notes[0].id, "type": "color", "preview": "#ff8800"}

    def test_blank_text_is_silent(self, handler, store, notes):
        """Whitespace-only text neither stores nor notifies."""
        handler.handle(TextEvent("  \n\t"))
        assert notes == []
        assert store.count() == 0

    def test_html(self, handler, store, notes):
        """The preview for HTML is its visible text without scripts."""
        markup = "<p>Hello <b>there</b></p><script>x()</script>"
        handler.handle(HtmlEvent(markup))
        note = notes[0]
        assert note.content_type is ContentVariant.HTML
        assert note.preview == "Hello there"
        assert store.get_content(note.id) == HtmlData("Hello there", markup)

    def test_html_color_becomes_color(self, handler, notes):
        """HTML whose visible text is a color is announced as color."""
        handler.handle(HtmlEvent("<span>rgb(1, 2, 3)</span>"))
        assert notes[0].content_type is ContentVariant.COLOR

    def test_files(self, handler, store, notes):
        """A file list is stored and previewed as a count."""
        handler.handle(FileListEvent(["/a/one.txt", "/b/two.txt"]))
        note = notes[0]
        assert note.content_type is ContentVariant.FILES
        assert note.preview == "2 files"
        assert store.get_content(note.id) == FilesData(["/a/one.txt", "/b/two.txt"])

    def test_empty_files_is_silent(self, handler, notes):
        handler.handle(FileListEvent([]))
        assert notes == []

    def test_repeat_capture_same_id(self, handler, notes):
        """Copying the same text twice announces the same id."""
        handler.handle(TextEvent("again"))
        handler.handle(TextEvent("again"))
        assert notes[0].id == notes[1].id

    def test_error_event_logged(self, handler, notes, caplog):
        """Error events are logged and produce no notification."""
        with caplog.at_level(logging.WARNING, logger="pastee.events"):
            handler.handle(ErrorEvent("clipboard busy"))
        assert notes == []
        assert "clipboard busy" in caplog.text

    def test_unknown_event(self, handler):
        """Objects that are not capture events are a TypeError."""
        with pytest.raises(TypeError):
            handler.handle("not an event")

    def test_store_failure_does_not_raise(self, store, notes, caplog):
        """A failing store is logged and handle() returns normally."""
        store.close()
        h = CaptureHandler(store, notes.append)
        with caplog.at_level(logging.ERROR, logger="pastee.events"):
            h.handle(TextEvent("lost"))
        h.close()
        assert notes == []
        assert "Failed to store text capture" in caplog.text

    def test_notify_failure_is_contained(self, store, caplog):
        """An exception from the notify callback doesn't undo the capture."""
        def broken(note):
            raise RuntimeError("ui gone")

        with CaptureHandler(store, broken) as h:
            with caplog.at_level(logging.WARNING, logger="pastee.events"):
                h.handle(TextEvent("still stored"))
        assert store.count() == 1
        assert "ui gone" in caplog.text


class TestImageEvents:

    def test_pending_then_ready(self, handler, store, notes, rgba):
        """Image captures announce pending first and then ready with the record id."""
        future = handler.handle(ImageEvent(4, 3, rgba(4, 3), temp_id=77))
        record_id = future.result(timeout=10)

        assert isinstance(notes[0], ImagePending)
        assert notes[0].temp_id == 77
        ready = notes[1]
        assert isinstance(ready, ImageReady)
        assert ready.temp_id == 77
        assert ready.id == record_id
        assert store.count() == 1

        payload = ready.to_dict()
        assert payload["type"] == "image"
        assert base64.b64decode(payload["thumbnail"]) == ready.thumbnail

    def test_temp_id_assigned(self, handler, notes, rgba):
        """Without a temp_id the handler assigns one and reuses it for both notes."""
        handler.handle(ImageEvent(2, 2, rgba(2, 2))).result(timeout=10)
        assert notes[0].temp_id == notes[1].temp_id
        assert notes[0].temp_id > 0

    def test_invalid_image_reports_error(self, handler, store, notes, rgba):
        """Bad pixel data is reported through an image-error note."""
        result = handler.handle(ImageEvent(4, 4, rgba(4, 3), temp_id=5)).result(timeout=10)
        assert result is None
        assert isinstance(notes[1], ImageError)
        assert notes[1].temp_id == 5
        assert "mismatch" in notes[1].error
        assert notes[1].to_dict() == {"temp_id": 5, "error": notes[1].error}
        assert store.count() == 0

    def test_channels(self):
        """Each notification type publishes on its own channel."""
        assert NewClip.channel == "clipboard://new-clip"
        assert ImagePending.channel == "clipboard://image-pending"
        assert ImageReady.channel == "clipboard://image-ready"
        assert ImageError.channel == "clipboard://image-error"


class TestIntake:

    def test_run_iterable(self, handler, store, notes):
        """run() handles every event and counts errors as handled."""
        handled = handler.run([TextEvent("one"), TextEvent("two"), ErrorEvent("x")])
        assert handled == 3
        assert store.count() == 2

    def test_run_queue_until_sentinel(self, store, notes, rgba):
        """run_queue() stops at None and close() waits for image work."""
        q = queue.Queue()
        q.put(TextEvent("queued text"))
        q.put(ImageEvent(3, 3, rgba(3, 3), temp_id=1))
        q.put(FileListEvent(["/x"]))
        q.put(None)
        q.put(TextEvent("after sentinel"))

        with CaptureHandler(store, notes.append) as h:
            assert h.run_queue(q) == 3
        # close() waited for the image worker
        assert store.count() == 3
        assert any(isinstance(n, ImageReady) for n in notes)
        assert q.get_nowait() == TextEvent("after sentinel")
