"""
Capability interface shared by every resource pool.

Callers that accept "a pool" type against Pool and never probe objects for
acquire/release attributes.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Generic, Optional, TypeVar

T = TypeVar("T")


class Pool(ABC, Generic[T]):
    """Abstract acquire/release/dispose lifecycle over resources of type T."""

    @abstractmethod
    async def acquire(self, signal: Optional[asyncio.Event] = None) -> T:
        """Check a resource out, waiting in FIFO order when the pool is saturated.

        Raises:
            PoolDisposedError: The pool was disposed.
            AcquireTimeoutError: No resource freed up in time.
            AbortedError: *signal* was set before a resource was handed over.
        """

    @abstractmethod
    async def release(self, resource: T) -> None:
        """Return a resource obtained from acquire().

        Raises:
            ReleaseOfUnacquiredResourceError: *resource* is not checked out
                (only while the pool is not disposed).
        """

    @abstractmethod
    async def dispose(self) -> None:
        """Tear the pool down. Idempotent and never raises."""

    async def clear(self) -> None:
        """Alias for dispose()."""
        await self.dispose()

    @asynccontextmanager
    async def lease(self, signal: Optional[asyncio.Event] = None) -> AsyncIterator[T]:
        """Acquire a resource for the duration of an ``async with`` block."""
        resource = await self.acquire(signal)
        try:
            yield resource
        finally:
            await self.release(resource)
