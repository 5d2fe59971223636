"""
transport.py - postMessage-style channel between the event loop and a worker thread.

Each ThreadWorkerTransport owns one daemon thread with its own inbox. The
thread runs a handler per message and marshals the reply back onto the event
loop with ``call_soon_threadsafe``; it never touches loop-side state directly.

An exception escaping the handler is a worker fault: the error callback fires
and the thread exits for good.
"""

import asyncio
import itertools
import queue
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional, Sequence

from ..errors import WorkerError
from ..utils.log_utils import get_logger
from .protocol import Envelope

logger = get_logger(__name__)

MessageCallback = Callable[[Any], None]
ErrorCallback = Callable[[BaseException], None]
Handler = Callable[[dict], Envelope]

_STOP = object()


def structured_clone(message: Any, transfer: Sequence[Any] = ()) -> Any:
    """
    Copy mutable buffers in *message* unless they are listed in *transfer*.

    Only top-level values are inspected; listed buffers are handed over
    as-is (zero copy) and the sender must not touch them afterwards.
    """
    if not isinstance(message, dict):
        return message
    moved = {id(buf) for buf in transfer}
    return {
        key: bytes(value) if isinstance(value, (bytearray, memoryview)) and id(value) not in moved else value
        for key, value in message.items()
    }


class WorkerTransport(ABC):
    """Channel to one worker execution context."""

    @abstractmethod
    def start(self, on_message: MessageCallback, on_error: ErrorCallback) -> None:
        """Begin delivering messages; callbacks run on the caller's event loop."""

    @abstractmethod
    def post(self, message: dict, transfer: Sequence[Any] = ()) -> None:
        """Send *message*; raises WorkerError if the worker is gone."""

    @abstractmethod
    def terminate(self) -> None:
        """Stop the worker. Idempotent."""

    def join(self, timeout: Optional[float] = None) -> bool:
        """Block until the worker has stopped; True if it did within *timeout*."""
        return True


class ThreadWorkerTransport(WorkerTransport):
    """Runs *handler* on a dedicated background thread."""

    _counter = itertools.count(1)

    def __init__(self, handler: Handler, name: Optional[str] = None) -> None:
        self._handler = handler
        self.name = name or f"decode-worker-{next(self._counter)}"
        self._inbox: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_message: Optional[MessageCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._terminated = False

    @property
    def alive(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._terminated

    def start(self, on_message: MessageCallback, on_error: ErrorCallback) -> None:
        if self._thread is not None:
            raise RuntimeError(f"{self.name} already started")
        self._loop = asyncio.get_running_loop()
        self._on_message = on_message
        self._on_error = on_error
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug("Started %s", self.name)

    def post(self, message: dict, transfer: Sequence[Any] = ()) -> None:
        if not self.alive:
            raise WorkerError(f"{self.name} is not running")
        self._inbox.put(structured_clone(message, transfer))

    def terminate(self) -> None:
        if self._terminated:
            return
        self._terminated = True
        dropped = self._drain()
        self._inbox.put(_STOP)
        logger.debug("Terminated %s, dropped %d queued message(s)", self.name, dropped)

    def join(self, timeout: Optional[float] = None) -> bool:
        if self._thread is None:
            return True
        self._thread.join(timeout)
        return not self._thread.is_alive()

    def _drain(self) -> int:
        dropped = 0
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                return dropped
            dropped += 1

    def _run(self) -> None:
        while True:
            message = self._inbox.get()
            if message is _STOP or self._terminated:
                return
            try:
                reply = self._handler(message)
            except Exception as err:
                logger.error("%s crashed: %s", self.name, err, exc_info=True)
                self._deliver(self._on_error, err)
                return
            self._deliver(self._on_message, structured_clone(reply.message, reply.transfer))

    def _deliver(self, callback: Optional[Callable[[Any], None]], payload: Any) -> None:
        if self._terminated or callback is None or self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(callback, payload)
        except RuntimeError:
            logger.debug("%s: event loop closed, dropping message", self.name)
