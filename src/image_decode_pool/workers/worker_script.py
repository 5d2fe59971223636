"""
Code that runs inside a decode worker thread.

Each worker thread keeps one scratch RasterSurface of its own and reuses it
between requests. Task-scoped failures become error replies; only a bug in
the handler itself escapes and takes the worker down.
"""

import threading
from typing import Any, Mapping, Optional

from ..core.resize_rect import ResizeOptions
from ..core.surface import PixelData, RasterSurface, decode_bitmap, render
from .protocol import Envelope, WorkerTask, error_message, success_message

_local = threading.local()


def _thread_surface() -> RasterSurface:
    surface = getattr(_local, "surface", None)
    if surface is None:
        surface = _local.surface = RasterSurface(1, 1)
    return surface


def decode_and_resize(payload: bytes, resize: Optional[ResizeOptions] = None) -> PixelData:
    """Decode *payload* and draw it onto this thread's surface."""
    with decode_bitmap(bytes(payload)) as bitmap:
        return render(_thread_surface(), bitmap, resize)


def handle_request(message: Mapping[str, Any]) -> Envelope:
    """Answer one request message with a success or error envelope."""
    task_id = message.get("id")
    try:
        task = WorkerTask.from_message(message)
        pixels = decode_and_resize(task.payload, task.resize)
    except Exception as err:
        return error_message(task_id, err)
    return success_message(task_id, pixels)
