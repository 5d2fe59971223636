"""
Resource pooling and admission control.
"""

from .base import Pool
from .resource_pool import ResourcePool, DEFAULT_ACQUIRE_TIMEOUT
from .limiter import ConcurrencyLimiter, default_concurrency
from .surface_pool import SurfacePool

__all__ = [
    "Pool",
    "ResourcePool",
    "DEFAULT_ACQUIRE_TIMEOUT",
    "ConcurrencyLimiter",
    "default_concurrency",
    "SurfacePool",
]
