"""
limiter.py - admission control for async work.

Unlike ResourcePool there is no resource object: the limiter only bounds how
many tasks run at once and starts queued tasks in submission order.
"""

import asyncio
import os
from collections import deque
from typing import Awaitable, Callable, Deque, TypeVar

from ..errors import PoolConfigError
from ..utils.log_utils import get_logger

logger = get_logger(__name__)

R = TypeVar("R")


def default_concurrency(fallback: int = 4) -> int:
    """Half the CPU count, never below one."""
    cores = os.cpu_count() or fallback
    return max(1, cores // 2)


class ConcurrencyLimiter:
    """Run at most ``limit`` coroutines at a time, FIFO beyond that."""

    def __init__(self, limit: int) -> None:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise PoolConfigError(f"limit must be a positive integer, got {limit!r}")
        self._limit = limit
        self._active = 0
        self._queue: Deque[asyncio.Future] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def active_count(self) -> int:
        return self._active

    @property
    def pending_count(self) -> int:
        return len(self._queue)

    async def run(self, task: Callable[[], Awaitable[R]]) -> R:
        """
        Run ``task()`` once a slot is free.

        Args:
            task: Zero-argument callable returning an awaitable. It is not
                called until the task is admitted.

        Returns:
            Whatever the awaitable returns; its exceptions propagate unchanged.
        """
        if self._active < self._limit and not self._queue:
            self._active += 1
        else:
            await self._wait_for_slot()

        try:
            return await task()
        finally:
            self._release_slot()

    async def _wait_for_slot(self) -> None:
        ticket = asyncio.get_running_loop().create_future()
        self._queue.append(ticket)
        logger.debug("Limiter saturated (%d/%d), %d queued", self._active, self._limit, len(self._queue))
        try:
            await ticket
        except asyncio.CancelledError:
            if ticket.done() and not ticket.cancelled():
                # slot was handed over as we were cancelled: pass it on
                self._release_slot()
            elif ticket in self._queue:
                self._queue.remove(ticket)
            raise

    def _release_slot(self) -> None:
        # the slot moves straight to the next ticket, active count unchanged
        while self._queue:
            ticket = self._queue.popleft()
            if not ticket.done():
                ticket.set_result(None)
                return
        self._active -= 1
