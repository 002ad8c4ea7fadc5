"""
CLI interface for clipboard history.

Usage:
    pastee list
    pastee search "query text"
    pastee get 42
    pastee add "some text"
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from .api import ClipboardHistory
from .config import ORPHAN_GRACE_SECONDS, get_data_dir
from .errors import NotFound, PasteeError, log_exception
from .logging_config import configure_ops_log, enable_debug_mode, remove_ops_log
from .types import ImageData, TextData, clip_data_to_dict, micros_to_datetime


if os.environ.get("PASTEE_VERBOSE") == "1":
    enable_debug_mode()


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        print(f"pastee {version('pastee-store')}")
        raise typer.Exit()


def _verbose_callback(value: bool):
    if value:
        enable_debug_mode()


# Global state for CLI options
_json_output = False
_store_override: Optional[Path] = None

# Resources opened by the running command, released when its context closes
_history: Optional[ClipboardHistory] = None
_ops_handler: Optional[logging.Handler] = None


def _json_callback(value: bool):
    global _json_output
    _json_output = value


def _store_callback(value: Optional[Path]):
    global _store_override
    _store_override = value


app = typer.Typer(
    name="pastee",
    help="Clipboard history with deduplicated local storage.",
    no_args_is_help=True,
    rich_markup_mode=None,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[bool, typer.Option(
        "--verbose", "-v",
        help="Enable debug-level logging to stderr",
        callback=_verbose_callback,
        is_eager=True,
    )] = False,
    output_json: Annotated[bool, typer.Option(
        "--json", "-j",
        help="Output as JSON",
        callback=_json_callback,
        is_eager=True,
    )] = False,
    version: Annotated[Optional[bool], typer.Option(
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    )] = None,
    store: Annotated[Optional[Path], typer.Option(
        "--store", "-s",
        envvar="PASTEE_DATA_DIR",
        help="Path to the data directory",
        callback=_store_callback,
        is_eager=True,
    )] = None,
):
    """Clipboard history with deduplicated local storage."""
    ctx.call_on_close(_release)


def _release() -> None:
    """Close the store and detach the ops log opened by _get_history()."""
    global _history, _ops_handler
    if _history is not None:
        _history.close()
        _history = None
    if _ops_handler is not None:
        remove_ops_log(_ops_handler)
        _ops_handler = None


def _get_history() -> ClipboardHistory:
    """Open the store, handling errors gracefully."""
    global _history, _ops_handler
    if _history is not None:
        return _history

    data_dir = get_data_dir(_store_override)
    try:
        history = ClipboardHistory.open(data_dir)
    except Exception as e:
        log_path = log_exception(e, "open store", data_dir)
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
        raise typer.Exit(1)
    _history = history
    _ops_handler = configure_ops_log(data_dir)
    return history


def _fail(e: Exception, context: str) -> None:
    """Report an operation failure and exit non-zero."""
    if isinstance(e, NotFound):
        typer.echo(f"Not found: {e}", err=True)
    else:
        log_path = log_exception(e, context, get_data_dir(_store_override))
        typer.echo(f"Error: {e}", err=True)
        typer.echo(f"Details logged to {log_path}", err=True)
    raise typer.Exit(1)


def _format_item(item: dict) -> str:
    when = micros_to_datetime(item["created_at"]).astimezone().strftime("%Y-%m-%d %H:%M")
    pin = "*" if item["is_pinned"] else " "
    return f"{pin}{item['id']:>6}  {when}  {item['content_type']:<5}  {item['preview']}"


def _echo_items(items: list[dict]) -> None:
    if _json_output:
        typer.echo(json.dumps(items, ensure_ascii=False, indent=2))
        return
    for item in items:
        typer.echo(_format_item(item))


# -----------------------------------------------------------------------------
# Query commands
# -----------------------------------------------------------------------------

@app.command("list")
def list_cmd(
    limit: Annotated[Optional[int], typer.Option(
        "--limit", "-n", help="Maximum clips to show (default: configured page size)",
    )] = None,
    offset: Annotated[int, typer.Option("--offset", help="Clips to skip")] = 0,
):
    """List clips, pinned first, newest first."""
    history = _get_history()
    _echo_items(history.list(limit, offset))


@app.command()
def count():
    """Show the total number of clips."""
    history = _get_history()
    typer.echo(str(history.count()))


@app.command()
def search(
    query: Annotated[str, typer.Argument(help="Substring to look for")] = "",
):
    """Find clips whose text contains QUERY (newest first, at most 50)."""
    history = _get_history()
    _echo_items(history.search(query))


@app.command()
def get(
    id: Annotated[int, typer.Argument(help="Clip id")],
    output: Annotated[Optional[Path], typer.Option(
        "--output", "-o",
        help="Write an image clip's original file here",
    )] = None,
):
    """Show the full content of a clip."""
    history = _get_history()
    try:
        data = history.store.get_content(id)
    except PasteeError as e:
        _fail(e, f"get {id}")

    if isinstance(data, ImageData):
        if output is not None:
            output.write_bytes(data.data)
            typer.echo(f"Wrote {len(data.data)} bytes to {output}")
            return
        original, thumbnail = history.get_image_paths(id)
        if _json_output:
            typer.echo(json.dumps({"type": "image", "original": original, "thumbnail": thumbnail}))
        else:
            typer.echo(f"{history.store.image_root / original}")
        return

    if _json_output:
        typer.echo(json.dumps(clip_data_to_dict(data), ensure_ascii=False, indent=2))
    elif isinstance(data, TextData):
        typer.echo(data.text)
    else:
        payload = clip_data_to_dict(data)
        if "files" in payload:
            typer.echo("\n".join(payload["files"]))
        elif "html" in payload:
            typer.echo(payload["html"])
        else:
            typer.echo(payload["data"])


# -----------------------------------------------------------------------------
# Mutation commands
# -----------------------------------------------------------------------------

@app.command()
def pin(
    id: Annotated[int, typer.Argument(help="Clip id")],
):
    """Toggle whether a clip is pinned."""
    history = _get_history()
    try:
        pinned = history.toggle_pin(id)
    except PasteeError as e:
        _fail(e, f"pin {id}")
    typer.echo(f"{'Pinned' if pinned else 'Unpinned'} {id}")


@app.command("del")
def del_cmd(
    id: Annotated[list[int], typer.Argument(help="Clip id(s) to delete")],
):
    """Delete clips by id."""
    history = _get_history()
    for one_id in id:
        history.delete(one_id)
        typer.echo(f"Deleted {one_id}")


@app.command()
def clear(
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Don't ask for confirmation")] = False,
):
    """Delete every clip that is not pinned."""
    if not yes:
        typer.confirm("Delete all unpinned clips?", abort=True)
    history = _get_history()
    typer.echo(f"Deleted {history.clear_unpinned()} clips")


@app.command()
def prune(
    min_age: Annotated[float, typer.Option(
        "--min-age",
        help="Only remove files unmodified for this many seconds",
    )] = ORPHAN_GRACE_SECONDS,
):
    """Remove image files no longer referenced by any clip."""
    history = _get_history()
    removed = history.store.prune_orphaned_assets(min_age=min_age)
    typer.echo(f"Removed {removed} orphaned files")


# -----------------------------------------------------------------------------
# Ingestion commands
# -----------------------------------------------------------------------------

@app.command()
def add(
    content: Annotated[Optional[str], typer.Argument(
        help="Text to store (reads stdin if omitted)",
    )] = None,
    html: Annotated[bool, typer.Option("--html", help="Treat content as HTML markup")] = False,
):
    """Store text (or HTML) as if it had been copied."""
    if content is None:
        content = sys.stdin.read()
    history = _get_history()
    store = history.store
    try:
        if html:
            from .html_text import extract_text
            record_id = store.add_html(extract_text(content), content)
        else:
            record_id = store.add_text(content)
    except PasteeError as e:
        _fail(e, "add")
    if not record_id:
        typer.echo("Nothing to store (empty text)", err=True)
        raise typer.Exit(1)
    typer.echo(str(record_id))


@app.command("add-files")
def add_files(
    paths: Annotated[list[Path], typer.Argument(help="Paths, in order")],
):
    """Store a file list as if it had been copied from a file manager."""
    history = _get_history()
    try:
        record_id = history.store.add_files([str(p) for p in paths])
    except PasteeError as e:
        _fail(e, "add-files")
    typer.echo(str(record_id))


@app.command("add-image")
def add_image(
    path: Annotated[Path, typer.Argument(help="Image file to decode and store")],
):
    """Store an image file's pixels as if they had been copied."""
    from PIL import Image

    try:
        with Image.open(path) as image:
            rgba = image.convert("RGBA")
            width, height = rgba.size
            data = rgba.tobytes()
    except OSError as e:
        typer.echo(f"Error: cannot read image {path}: {e}", err=True)
        raise typer.Exit(1)

    history = _get_history()
    try:
        record_id, thumbnail = history.store.add_image(width, height, data)
    except PasteeError as e:
        _fail(e, "add-image")
    typer.echo(f"{record_id} ({width}x{height}, thumbnail {len(thumbnail)} bytes)")


def main():
    app()


if __name__ == "__main__":
    main()
