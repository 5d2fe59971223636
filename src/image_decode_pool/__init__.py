"""
Image Decode Pool

Bounded pools of off-screen surfaces and background workers for decoding and
resizing images, with sharp-compatible fit geometry.
"""

__version__ = "0.1.0"

from .core.resize_rect import FitMode, ResizeOptions, ResizeRect, calc_rect, validate_resize_options
from .core.surface import PixelData, RasterSurface
from .core.pipeline import decode_with_surface, decode_in_worker
from .pool import Pool, ResourcePool, ConcurrencyLimiter, SurfacePool
from .workers import ManagedWorker, WorkerPool, WorkerTask
from .context import DecodeContext
from .errors import (
    ImageDecodePoolError,
    PoolConfigError,
    InvalidResizeOptionsError,
    PoolError,
    PoolDisposedError,
    PoolClearedError,
    AcquireTimeoutError,
    AbortedError,
    ReleaseOfUnacquiredResourceError,
    DecodeError,
    WorkerTaskError,
    InvalidWorkerResponseError,
    WorkerError,
)


def main():
    """Entry point for the image-decode-pool command."""
    from .cli import main as cli_main
    cli_main()


__all__ = [
    "FitMode",
    "ResizeOptions",
    "ResizeRect",
    "calc_rect",
    "validate_resize_options",
    "PixelData",
    "RasterSurface",
    "decode_with_surface",
    "decode_in_worker",
    "Pool",
    "ResourcePool",
    "ConcurrencyLimiter",
    "SurfacePool",
    "ManagedWorker",
    "WorkerPool",
    "WorkerTask",
    "DecodeContext",
    "ImageDecodePoolError",
    "PoolConfigError",
    "InvalidResizeOptionsError",
    "PoolError",
    "PoolDisposedError",
    "PoolClearedError",
    "AcquireTimeoutError",
    "AbortedError",
    "ReleaseOfUnacquiredResourceError",
    "DecodeError",
    "WorkerTaskError",
    "InvalidWorkerResponseError",
    "WorkerError",
]
