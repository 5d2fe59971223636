"""
errors.py - exception hierarchy shared by pools, workers and the decode pipeline.

Configuration errors subclass ValueError so callers validating user input can
catch them generically. Everything else derives from ImageDecodePoolError.
"""

from typing import Optional


class ImageDecodePoolError(Exception):
    """Base class for every error raised by this package."""


# --- configuration ----------------------------------------------------------

class PoolConfigError(ImageDecodePoolError, ValueError):
    """Invalid pool or limiter configuration (size, dimensions, timeout)."""


class InvalidResizeOptionsError(ImageDecodePoolError, ValueError):
    """Resize options with a non-positive dimension or an unknown fit mode."""


# --- pool runtime -----------------------------------------------------------

class PoolError(ImageDecodePoolError):
    """Base class for acquire/release failures."""


class PoolDisposedError(PoolError):
    """The pool was disposed before the call; it can no longer be used."""

    def __init__(self, name: str = "pool"):
        super().__init__(f"{name} is disposed")


class PoolClearedError(PoolError):
    """A queued acquire was rejected because the pool was disposed while it waited."""

    def __init__(self, name: str = "pool"):
        super().__init__(f"{name} cleared before the acquire could be served")


class AcquireTimeoutError(PoolError, TimeoutError):
    """No resource became available within the pool's acquire timeout."""

    def __init__(self, name: str = "pool", timeout: Optional[float] = None):
        suffix = f" after {timeout:g}s" if timeout is not None else ""
        super().__init__(f"{name} acquire timed out{suffix}")


class AbortedError(PoolError):
    """The acquire was cancelled through its abort signal."""

    def __init__(self, message: str = "Operation aborted"):
        super().__init__(message)


class ReleaseOfUnacquiredResourceError(PoolError):
    """release() was called with a resource that is not currently checked out."""

    def __init__(self, name: str = "pool"):
        super().__init__(f"Cannot release a resource that was not acquired from {name}")


# --- decode / workers -------------------------------------------------------

class DecodeError(ImageDecodePoolError):
    """Decoding or drawing an image failed."""


class WorkerTaskError(DecodeError):
    """A worker reported a failure for a single task."""

    def __init__(self, message: str, remote_name: Optional[str] = None):
        super().__init__(message)
        self.remote_name = remote_name


class InvalidWorkerResponseError(DecodeError):
    """A worker answered with a malformed message (bad type, undersized pixels)."""


class WorkerError(ImageDecodePoolError):
    """The worker itself failed or was terminated; every pending task is lost."""
