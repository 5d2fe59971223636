import asyncio
import io
from typing import Any, List, Optional, Sequence, Tuple

from PIL import Image

from image_decode_pool.errors import WorkerError
from image_decode_pool.workers.transport import WorkerTransport


def encode_png(width: int, height: int, color=(255, 0, 0, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


async def settle(rounds: int = 3) -> None:
    """Let queued callbacks and woken tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeTransport(WorkerTransport):
    """In-memory transport: the test delivers replies and faults by hand."""

    def __init__(self) -> None:
        self.sent: List[Tuple[dict, Tuple[Any, ...]]] = []
        self.started = False
        self.terminated = False
        self.on_message = None
        self.on_error = None

    def start(self, on_message, on_error) -> None:
        self.started = True
        self.on_message = on_message
        self.on_error = on_error

    def post(self, message: dict, transfer: Sequence[Any] = ()) -> None:
        if self.terminated:
            raise WorkerError("fake worker terminated")
        self.sent.append((message, tuple(transfer)))

    def terminate(self) -> None:
        self.terminated = True

    @property
    def sent_ids(self) -> List[Any]:
        return [message["id"] for message, _ in self.sent]

    def reply_success(self, task_id, width: int = 2, height: int = 1, pixels: Optional[bytes] = None) -> None:
        if pixels is None:
            pixels = bytes(width * height * 4)
        self.on_message({"id": task_id, "type": "success", "width": width, "height": height, "pixels": pixels})

    def reply_error(self, task_id, message: str = "boom", name: str = "DecodeError") -> None:
        self.on_message({"id": task_id, "type": "error", "error": {"message": message, "name": name}})

    def crash(self, error: Optional[BaseException] = None) -> None:
        self.on_error(error or RuntimeError("worker thread died"))
