"""
managed_worker.py - request/response correlation for a single decode worker.

Every post_task() gets an id and a single-resolution future in this worker's
own pending table. Replies are matched by id; anything that matches nothing
is dropped. A fault of the worker as a whole cannot be pinned on one task, so
it fails every pending task at once and the worker stays dead: the pool
around it is responsible for replacing it.
"""

import asyncio
import itertools
from typing import Any, Dict, Mapping, Optional

from ..core.surface import PixelData
from ..errors import DecodeError, WorkerError
from ..utils.log_utils import get_logger
from .protocol import TaskId, WorkerTask, parse_response
from .transport import Handler, ThreadWorkerTransport, WorkerTransport
from .worker_script import handle_request

logger = get_logger(__name__)


class ManagedWorker:
    """
    Dispatcher for one worker execution context.

    Args:
        transport: Channel to the worker. Defaults to a background thread
            running *handler*.
        handler: Worker-side request handler used by the default transport.
    """

    def __init__(self, transport: Optional[WorkerTransport] = None, handler: Handler = handle_request) -> None:
        self._transport = transport if transport is not None else ThreadWorkerTransport(handler)
        self._pending: Dict[TaskId, asyncio.Future] = {}
        self._ids = itertools.count(1)
        self._started = False
        self._terminated = False
        self._fault: Optional[BaseException] = None

    @property
    def usable(self) -> bool:
        """False once the worker faulted or was terminated."""
        return not self._terminated and self._fault is None

    @property
    def fault(self) -> Optional[BaseException]:
        return self._fault

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def busy(self) -> bool:
        return bool(self._pending)

    def __repr__(self) -> str:
        state = "faulted" if self._fault else "terminated" if self._terminated else "busy" if self.busy else "idle"
        return f"<ManagedWorker {state} pending={self.pending_count}>"

    async def post_task(self, task: WorkerTask) -> PixelData:
        """
        Send *task* to the worker and wait for its correlated reply.

        Raises:
            WorkerTaskError: The worker failed this task.
            InvalidWorkerResponseError: The reply violated the protocol.
            WorkerError: The worker is unusable, could not be reached, or
                faulted while the task was in flight.
        """
        if not self.usable:
            raise WorkerError(f"Cannot post to a {'faulted' if self._fault else 'terminated'} worker")
        self._ensure_started()

        task_id = task.id if task.id is not None else self._next_id()
        if task_id in self._pending:
            raise ValueError(f"Task id {task_id!r} is already in flight on this worker")
        task = task.with_id(task_id)

        future = asyncio.get_running_loop().create_future()
        self._pending[task_id] = future
        try:
            self._transport.post(task.to_message(), task.transferables)
        except Exception as err:
            self._pending.pop(task_id, None)
            raise WorkerError(f"Failed to post task {task_id!r}: {err}") from err

        try:
            return await future
        finally:
            if self._pending.get(task_id) is future:
                del self._pending[task_id]

    def terminate(self) -> None:
        """Fail every pending task, then stop the worker."""
        if self._terminated:
            return
        self._terminated = True
        self._reject_all("Worker terminated")
        self._transport.terminate()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for a terminated worker to finish the message it was running."""
        return self._transport.join(timeout)

    # ---- transport callbacks ----------------------------------------------

    def _handle_message(self, message: Any) -> None:
        if not isinstance(message, Mapping) or "id" not in message or "type" not in message:
            logger.debug("Dropping malformed worker message: %r", type(message).__name__)
            return

        future = self._pending.pop(message["id"], None)
        if future is None or future.done():
            logger.debug("Dropping stale worker response for task %r", message["id"])
            return

        try:
            future.set_result(parse_response(message))
        except DecodeError as err:
            future.set_exception(err)

    def _handle_error(self, error: BaseException) -> None:
        if self._fault is not None or self._terminated:
            return
        self._fault = error
        logger.error("Worker faulted with %d task(s) in flight: %s", len(self._pending), error)
        self._reject_all(f"Worker crashed: {error}", cause=error)

    # ---- internals ---------------------------------------------------------

    def _ensure_started(self) -> None:
        if not self._started:
            self._transport.start(self._handle_message, self._handle_error)
            self._started = True

    def _next_id(self) -> int:
        task_id = next(self._ids)
        while task_id in self._pending:
            task_id = next(self._ids)
        return task_id

    def _reject_all(self, message: str, cause: Optional[BaseException] = None) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for future in pending:
            if not future.done():
                error = WorkerError(message)
                error.__cause__ = cause
                future.set_exception(error)
