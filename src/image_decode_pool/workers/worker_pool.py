"""
worker_pool.py - a ResourcePool of ManagedWorkers.

Workers are spawned lazily. A worker that faulted or was terminated fails the
pool's validity check, so on release it is terminated and dropped and the
next acquire spawns a fresh one. Disposal waits briefly for each worker
thread to finish the message it is running.
"""

import asyncio
from typing import Callable, Optional

from ..core.surface import PixelData
from ..pool.limiter import default_concurrency
from ..pool.resource_pool import ResourcePool
from ..utils.log_utils import get_logger
from .managed_worker import ManagedWorker
from .protocol import WorkerTask

DEFAULT_WORKER_TIMEOUT = 5.0
JOIN_TIMEOUT = 2.0

logger = get_logger(__name__)


async def _terminate(worker: ManagedWorker) -> None:
    worker.terminate()
    stopped = await asyncio.get_running_loop().run_in_executor(None, worker.join, JOIN_TIMEOUT)
    if not stopped:
        logger.warning("Worker still busy %.1fs after terminate, leaving it behind", JOIN_TIMEOUT)


def _is_usable(worker: ManagedWorker) -> bool:
    return worker.usable


class WorkerPool(ResourcePool[ManagedWorker]):
    """
    Pool of decode workers.

    Args:
        max_size: Number of workers (default: half the CPU count).
        timeout: Seconds a queued acquire waits for a free worker.
        worker_factory: Builds a new ManagedWorker; override to inject a
            custom transport.
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        timeout: Optional[float] = DEFAULT_WORKER_TIMEOUT,
        worker_factory: Callable[[], ManagedWorker] = ManagedWorker,
        name: str = "WorkerPool",
    ) -> None:
        super().__init__(
            factory=worker_factory,
            max_size=default_concurrency() if max_size is None else max_size,
            timeout=timeout,
            disposer=_terminate,
            validate=_is_usable,
            name=name,
        )

    async def execute(self, task: WorkerTask, signal: Optional[asyncio.Event] = None) -> PixelData:
        """Check out a worker, run *task* on it and hand the worker back."""
        async with self.lease(signal) as worker:
            return await worker.post_task(task)
