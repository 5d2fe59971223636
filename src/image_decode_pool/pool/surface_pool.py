"""
surface_pool.py - pool of off-screen RasterSurfaces.

Surfaces start at the configured size and are resized in place by each
decode, so a pooled surface is only reallocated when the output size changes.
"""

from typing import Optional

from ..core.surface import RasterSurface
from ..errors import PoolConfigError
from .limiter import default_concurrency
from .resource_pool import DEFAULT_ACQUIRE_TIMEOUT, ResourcePool

DEFAULT_SURFACE_SIZE = 2048


def _close(surface: RasterSurface) -> None:
    surface.close()


def _is_open(surface: RasterSurface) -> bool:
    return not surface.closed


class SurfacePool(ResourcePool[RasterSurface]):
    """ResourcePool of width x height RGBA surfaces; dimensions are checked up front."""

    def __init__(
        self,
        width: int = DEFAULT_SURFACE_SIZE,
        height: int = DEFAULT_SURFACE_SIZE,
        max_size: Optional[int] = None,
        timeout: Optional[float] = DEFAULT_ACQUIRE_TIMEOUT,
        name: str = "SurfacePool",
    ) -> None:
        if width <= 0 or height <= 0:
            raise PoolConfigError(f"Surface width and height must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        super().__init__(
            factory=self._new_surface,
            max_size=default_concurrency() if max_size is None else max_size,
            timeout=timeout,
            disposer=_close,
            validate=_is_open,
            name=name,
        )

    def _new_surface(self) -> RasterSurface:
        return RasterSurface(self.width, self.height)
