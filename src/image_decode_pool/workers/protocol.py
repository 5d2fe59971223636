"""
Message shapes exchanged with decode workers.

Requests and responses travel as plain dicts over a postMessage-like
transport:

    request  {"id", "kind": "decode", "payload": bytes, "resize"?: {"width", "height", "fit"}}
    success  {"id", "type": "success", "width", "height", "pixels": bytes}
    error    {"id", "type": "error", "error": {"message", "name"?}}

Buffers that move with a message are named by the typed builders below
(``WorkerTask.transferables``, ``Envelope.transfer``); nothing walks the
message looking for them.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, NamedTuple, Optional, Sequence, Tuple, Union

from ..core.resize_rect import ResizeOptions, validate_resize_options
from ..core.surface import BYTES_PER_PIXEL, PixelData
from ..errors import InvalidWorkerResponseError, WorkerTaskError

TaskId = Union[str, int]
Buffer = Union[bytes, bytearray, memoryview]

DECODE_KIND = "decode"
SUCCESS_TYPE = "success"
ERROR_TYPE = "error"


class Envelope(NamedTuple):
    """A message plus the buffers whose ownership moves with it."""
    message: dict
    transfer: Sequence[Any] = ()


@dataclass(frozen=True)
class WorkerTask:
    """A unit of work for a worker. ``id`` is filled in by the worker when left as None."""
    payload: Buffer
    resize: Optional[ResizeOptions] = None
    id: Optional[TaskId] = None
    kind: str = DECODE_KIND

    @property
    def transferables(self) -> Tuple[Buffer, ...]:
        return (self.payload,)

    def with_id(self, task_id: TaskId) -> "WorkerTask":
        return dataclasses.replace(self, id=task_id)

    def to_message(self) -> dict:
        message = {"id": self.id, "kind": self.kind, "payload": self.payload}
        if self.resize is not None:
            message["resize"] = self.resize.to_message()
        return message

    @classmethod
    def from_message(cls, message: Mapping[str, Any]) -> "WorkerTask":
        kind = message.get("kind")
        if kind != DECODE_KIND:
            raise ValueError(f"Unsupported task kind: {kind!r}")
        payload = message.get("payload")
        if not isinstance(payload, (bytes, bytearray, memoryview)):
            raise ValueError(f"Task payload must be a byte buffer, got {type(payload).__name__}")
        return cls(
            payload=payload,
            resize=validate_resize_options(message.get("resize")),
            id=message.get("id"),
            kind=kind,
        )


def success_message(task_id: TaskId, pixels: PixelData) -> Envelope:
    message = {
        "id": task_id,
        "type": SUCCESS_TYPE,
        "width": pixels.width,
        "height": pixels.height,
        "pixels": pixels.data,
    }
    return Envelope(message, (pixels.data,))


def error_message(task_id: Optional[TaskId], error: Union[BaseException, str]) -> Envelope:
    if isinstance(error, BaseException):
        body = {"message": str(error) or type(error).__name__, "name": type(error).__name__}
    else:
        body = {"message": error}
    return Envelope({"id": task_id, "type": ERROR_TYPE, "error": body})


def parse_response(message: Mapping[str, Any]) -> PixelData:
    """
    Turn a correlated response into PixelData.

    Raises:
        WorkerTaskError: The worker reported a task-scoped failure.
        InvalidWorkerResponseError: Unknown type, bad dimensions or a pixel
            buffer whose size is not width * height * 4.
    """
    kind = message.get("type")
    if kind == ERROR_TYPE:
        error = message.get("error")
        if isinstance(error, Mapping):
            raise WorkerTaskError(str(error.get("message") or "Worker error"), error.get("name"))
        raise WorkerTaskError(str(error or "Worker error"))

    if kind != SUCCESS_TYPE:
        raise InvalidWorkerResponseError(f"Unknown worker message type: {kind!r}")

    width, height, pixels = message.get("width"), message.get("height"), message.get("pixels")
    if not isinstance(width, int) or not isinstance(height, int) or width <= 0 or height <= 0:
        raise InvalidWorkerResponseError(f"Invalid dimensions in worker response: {width!r}x{height!r}")
    if not isinstance(pixels, (bytes, bytearray, memoryview)):
        raise InvalidWorkerResponseError("Worker response carries no pixel buffer")
    expected = width * height * BYTES_PER_PIXEL
    if len(pixels) != expected:
        raise InvalidWorkerResponseError(f"Expected {expected} pixel bytes, got {len(pixels)}")
    return PixelData(width, height, bytes(pixels))
