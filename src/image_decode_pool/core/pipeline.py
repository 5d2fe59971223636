"""
pipeline.py: decode entry points composing the pools, the geometry and Pillow.

    decode_with_surface()  decode on a thread, draw on a pooled RasterSurface
    decode_in_worker()     ship the bytes to a pooled background worker

Resize options are validated before anything is acquired, so a bad request
never occupies a pool slot. Pools are always passed in explicitly; the
application-wide defaults live in DecodeContext.
"""

import asyncio
import functools
from typing import Optional, Union

from ..errors import DecodeError
from ..pool.base import Pool
from ..utils.log_utils import get_logger
from ..workers.protocol import TaskId, WorkerTask
from ..workers.worker_pool import WorkerPool
from .resize_rect import ResizeOptions, validate_resize_options
from .surface import PixelData, RasterSurface, decode_bitmap, render

logger = get_logger(__name__)

ResizeArg = Union[ResizeOptions, dict, None]


async def decode_with_surface(
    data: bytes,
    pool: Pool[RasterSurface],
    resize: ResizeArg = None,
    signal: Optional[asyncio.Event] = None,
) -> PixelData:
    """
    Decode *data* and draw it onto a surface checked out from *pool*.

    Args:
        data: Encoded image bytes (anything Pillow can open).
        pool: Surface pool to draw with.
        resize: Optional {"width", "height", "fit"} or ResizeOptions.
        signal: Setting this event abandons a queued acquire.

    Returns:
        RGBA PixelData of the target size (or the image size without resize).

    Raises:
        InvalidResizeOptionsError: Bad resize options (raised before any work).
        DecodeError: The bytes could not be decoded.
        PoolError subclasses: The surface could not be acquired.
    """
    options = validate_resize_options(resize)
    loop = asyncio.get_running_loop()

    # nothing is decoded until a surface is held; decode and draw share one executor call
    async with pool.lease(signal) as surface:
        return await loop.run_in_executor(None, functools.partial(_decode_onto, surface, data, options))


def _decode_onto(surface: RasterSurface, data: bytes, options: Optional[ResizeOptions]) -> PixelData:
    with decode_bitmap(data) as bitmap:
        return render(surface, bitmap, options)


async def decode_in_worker(
    data: bytes,
    pool: WorkerPool,
    resize: ResizeArg = None,
    signal: Optional[asyncio.Event] = None,
    task_id: Optional[TaskId] = None,
) -> PixelData:
    """
    Decode *data* on a background worker from *pool*.

    Raises:
        InvalidResizeOptionsError: Bad resize options (raised before any work).
        WorkerTaskError: The worker could not decode the bytes.
        InvalidWorkerResponseError: The worker answered with a malformed reply.
        WorkerError: The worker crashed while the task was in flight.
        PoolError subclasses: No worker could be acquired.
    """
    options = validate_resize_options(resize)
    if not data:
        raise DecodeError("Cannot decode an empty payload")

    task = WorkerTask(payload=data, resize=options, id=task_id)
    logger.debug("Dispatching %d byte(s) to %s", len(data), pool.name)
    return await pool.execute(task, signal)
