"""
resource_pool.py - bounded async pool of reusable resources with FIFO waiters.

Resources are created lazily through a factory up to ``max_size``. When the
pool is saturated, acquire() queues a waiter that is served strictly in
arrival order: release() hands the resource straight to the oldest waiter
instead of putting it back on the shelf, so a late acquire() can never jump
the queue.

All state is owned by the event loop thread that uses the pool; mutations
happen between await points only, so no locking is involved.

Example:
    pool = ResourcePool(lambda: RasterSurface(512, 512), max_size=4)
    async with pool.lease() as surface:
        ...
    await pool.dispose()
"""

import asyncio
import inspect
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, TypeVar, Union

from ..errors import (
    AbortedError,
    AcquireTimeoutError,
    PoolClearedError,
    PoolConfigError,
    PoolDisposedError,
    ReleaseOfUnacquiredResourceError,
)
from ..utils.log_utils import get_logger
from .base import Pool

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_ACQUIRE_TIMEOUT = 15.0

Disposer = Callable[[Any], Union[None, Awaitable[None]]]


@dataclass(eq=False)
class _Waiter:
    """A queued acquire(). Settled exactly once: resource, timeout, abort or clear."""
    future: asyncio.Future
    timer: Optional[asyncio.TimerHandle] = None
    watcher: Optional[asyncio.Task] = None


class ResourcePool(Pool[T]):
    """
    Generic acquire/release/dispose pool.

    Args:
        factory: Zero-argument callable building a new resource.
        max_size: Upper bound on resources alive at once (available + allocated).
        timeout: Seconds a queued acquire waits before AcquireTimeoutError.
            None waits forever.
        disposer: Called once per resource on teardown; may be async.
            Failures are logged and never propagate.
        validate: Optional health check. A resource failing it is disposed
            and dropped from rotation instead of being handed out again.
        name: Used in log lines and error messages.
    """

    def __init__(
        self,
        factory: Callable[[], T],
        max_size: int,
        timeout: Optional[float] = DEFAULT_ACQUIRE_TIMEOUT,
        disposer: Optional[Disposer] = None,
        validate: Optional[Callable[[T], bool]] = None,
        name: Optional[str] = None,
    ) -> None:
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size <= 0:
            raise PoolConfigError(f"max_size must be a positive integer, got {max_size!r}")
        if timeout is not None and timeout <= 0:
            raise PoolConfigError(f"timeout must be positive or None, got {timeout!r}")

        self.name = name or "ResourcePool"
        self._factory = factory
        self._max_size = max_size
        self._timeout = timeout
        self._disposer = disposer
        self._validate = validate

        self._available: List[T] = []
        # keyed by id() so unhashable resources (e.g. PIL images) can be pooled
        self._allocated: Dict[int, T] = {}
        self._waiting: Deque[_Waiter] = deque()
        self._disposed = False
        self._background: Set[asyncio.Task] = set()

    # ---- stats -------------------------------------------------------------

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def timeout(self) -> Optional[float]:
        return self._timeout

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def size(self) -> int:
        """Resources currently alive (available + allocated)."""
        return len(self._available) + len(self._allocated)

    @property
    def available_count(self) -> int:
        return len(self._available)

    @property
    def allocated_count(self) -> int:
        return len(self._allocated)

    @property
    def waiting_count(self) -> int:
        return len(self._waiting)

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self.name!r} available={self.available_count} "
            f"allocated={self.allocated_count} waiting={self.waiting_count} "
            f"max_size={self._max_size}{' disposed' if self._disposed else ''}>"
        )

    # ---- public API --------------------------------------------------------

    async def acquire(self, signal: Optional[asyncio.Event] = None) -> T:
        if self._disposed:
            raise PoolDisposedError(self.name)
        if signal is not None and signal.is_set():
            raise AbortedError()

        while self._available:
            candidate = self._available.pop()
            if self._is_valid(candidate):
                self._allocated[id(candidate)] = candidate
                return candidate
            self._dispose_later(candidate)

        if self.size < self._max_size:
            return self._create()

        return await self._wait(signal)

    async def release(self, resource: T) -> None:
        key = id(resource)
        if key not in self._allocated:
            if self._disposed:
                await self._safe_dispose(resource)
                return
            raise ReleaseOfUnacquiredResourceError(self.name)

        del self._allocated[key]

        if self._disposed:
            await self._safe_dispose(resource)
            return

        if not self._is_valid(resource):
            logger.debug("%s: dropping invalid resource %r", self.name, resource)
            self._serve_waiters_with_new_resources()
            await self._safe_dispose(resource)
            return

        self._hand_off(resource)

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True

        waiters = list(self._waiting)
        self._waiting.clear()
        for waiter in waiters:
            self._settle(waiter)
            if not waiter.future.done():
                waiter.future.set_exception(PoolClearedError(self.name))

        resources = list(self._available) + list(self._allocated.values())
        self._available.clear()
        self._allocated.clear()
        logger.debug("%s: disposing %d resource(s), rejected %d waiter(s)",
                     self.name, len(resources), len(waiters))

        await asyncio.gather(*(self._safe_dispose(r) for r in resources))
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ---- internals ---------------------------------------------------------

    def _create(self) -> T:
        resource = self._factory()
        self._allocated[id(resource)] = resource
        logger.debug("%s: created resource %d/%d", self.name, self.size, self._max_size)
        return resource

    def _is_valid(self, resource: T) -> bool:
        if self._validate is None:
            return True
        try:
            return bool(self._validate(resource))
        except Exception:
            logger.warning("%s: validate() raised, treating resource as invalid",
                           self.name, exc_info=True)
            return False

    async def _wait(self, signal: Optional[asyncio.Event]) -> T:
        loop = asyncio.get_running_loop()
        waiter = _Waiter(future=loop.create_future())
        if self._timeout is not None:
            waiter.timer = loop.call_later(self._timeout, self._expire, waiter)
        if signal is not None:
            waiter.watcher = loop.create_task(signal.wait())
            waiter.watcher.add_done_callback(lambda _task: self._abort(waiter))
        self._waiting.append(waiter)

        try:
            return await waiter.future
        except asyncio.CancelledError:
            self._withdraw(waiter)
            future = waiter.future
            if future.done() and not future.cancelled() and future.exception() is None:
                # handed a resource in the same tick the caller was cancelled
                self._reclaim(future.result())
            raise

    def _hand_off(self, resource: T) -> None:
        while self._waiting:
            waiter = self._waiting.popleft()
            if waiter.future.done():
                continue
            self._settle(waiter)
            self._allocated[id(resource)] = resource
            waiter.future.set_result(resource)
            return
        self._available.append(resource)

    def _serve_waiters_with_new_resources(self) -> None:
        """Give capacity freed by a dropped resource to the oldest waiters."""
        while self._waiting and self.size < self._max_size:
            waiter = self._waiting.popleft()
            if waiter.future.done():
                continue
            self._settle(waiter)
            try:
                resource = self._create()
            except Exception as err:
                waiter.future.set_exception(err)
                continue
            waiter.future.set_result(resource)

    def _reclaim(self, resource: T) -> None:
        self._allocated.pop(id(resource), None)
        if self._disposed:
            self._dispose_later(resource)
        else:
            self._hand_off(resource)

    def _expire(self, waiter: _Waiter) -> None:
        if self._withdraw(waiter) and not waiter.future.done():
            waiter.future.set_exception(AcquireTimeoutError(self.name, self._timeout))

    def _abort(self, waiter: _Waiter) -> None:
        if waiter.watcher is not None and waiter.watcher.cancelled():
            return
        if self._withdraw(waiter) and not waiter.future.done():
            waiter.future.set_exception(AbortedError())

    def _withdraw(self, waiter: _Waiter) -> bool:
        """Remove *waiter* from the queue; True if it was still queued."""
        try:
            self._waiting.remove(waiter)
        except ValueError:
            self._settle(waiter)
            return False
        self._settle(waiter)
        return True

    @staticmethod
    def _settle(waiter: _Waiter) -> None:
        if waiter.timer is not None:
            waiter.timer.cancel()
        if waiter.watcher is not None and not waiter.watcher.done():
            waiter.watcher.cancel()

    def _dispose_later(self, resource: T) -> None:
        task = asyncio.get_running_loop().create_task(self._safe_dispose(resource))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _safe_dispose(self, resource: T) -> None:
        if self._disposer is None:
            return
        try:
            result = self._disposer(resource)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.warning("%s: error during resource disposal", self.name, exc_info=True)
