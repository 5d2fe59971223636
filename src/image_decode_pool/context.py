"""
context.py - application composition root.

DecodeContext owns the surface pool, the worker pool and the limiter placed
in front of them. Library code never reaches for a module-level default;
applications build one context and pass it (or its pools) around.

Example:
    async with DecodeContext.from_settings() as ctx:
        pixels = await ctx.decode(data, {"width": 256, "height": 256, "fit": "contain"})
"""

import asyncio
from typing import Optional

from .config import Settings, load_settings
from .core.pipeline import ResizeArg, decode_in_worker, decode_with_surface
from .core.resize_rect import validate_resize_options
from .core.surface import PixelData
from .pool.limiter import ConcurrencyLimiter
from .pool.surface_pool import SurfacePool
from .utils.log_utils import get_logger
from .workers.worker_pool import WorkerPool

logger = get_logger(__name__)


class DecodeContext:
    """Bundle of pools and admission control shared by one application."""

    def __init__(self, surface_pool: SurfacePool, worker_pool: WorkerPool, limiter: ConcurrencyLimiter) -> None:
        self.surface_pool = surface_pool
        self.worker_pool = worker_pool
        self.limiter = limiter
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "DecodeContext":
        settings = settings or load_settings()
        logger.debug("Building decode context: %s", settings.model_dump())
        return cls(
            surface_pool=SurfacePool(
                width=settings.surface_width,
                height=settings.surface_height,
                max_size=settings.surface_pool_size,
                timeout=settings.acquire_timeout,
            ),
            worker_pool=WorkerPool(
                max_size=settings.worker_pool_size,
                timeout=settings.worker_acquire_timeout,
            ),
            limiter=ConcurrencyLimiter(settings.max_concurrent),
        )

    async def decode(
        self,
        data: bytes,
        resize: ResizeArg = None,
        use_worker: bool = False,
        signal: Optional[asyncio.Event] = None,
    ) -> PixelData:
        """Decode *data* on a pooled surface, or on a worker when *use_worker* is set."""
        options = validate_resize_options(resize)
        if use_worker:
            return await self.limiter.run(lambda: decode_in_worker(data, self.worker_pool, options, signal))
        return await self.limiter.run(lambda: decode_with_surface(data, self.surface_pool, options, signal))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.gather(self.surface_pool.dispose(), self.worker_pool.dispose())

    async def __aenter__(self) -> "DecodeContext":
        return self

    async def __aexit__(self, *_exc) -> None:
        await self.close()
