"""
surface.py: Pillow-backed bitmap decoding and off-screen RGBA drawing surfaces.

These are the narrow collaborators the pools hand out work to:
    decode_bitmap(bytes)            -> RGBA PIL image
    RasterSurface(w, h)             -> scratch canvas
    surface.draw(bitmap, rect)      -> crop, scale and place onto the canvas
    surface.pixels()                -> PixelData (RGBA bytes)

Supports whatever Pillow can open, plus HEIC/HEIF when pillow-heif is installed.
"""

import io
from dataclasses import dataclass
from typing import Optional

from PIL import Image, UnidentifiedImageError

try:
    from pillow_heif import register_heif_opener
    register_heif_opener()
except ImportError:
    pass

from ..errors import DecodeError, PoolConfigError
from ..utils.log_utils import get_logger
from .resize_rect import FitMode, ResizeOptions, ResizeRect, calc_rect

logger = get_logger(__name__)

BYTES_PER_PIXEL = 4
TRANSPARENT = (0, 0, 0, 0)
DEFAULT_RESAMPLE = Image.Resampling.LANCZOS


@dataclass(frozen=True)
class PixelData:
    """Decoded RGBA pixels; ``len(data) == width * height * 4``."""
    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        expected = self.width * self.height * BYTES_PER_PIXEL
        if len(self.data) != expected:
            raise DecodeError(f"Expected {expected} bytes of RGBA data, got {len(self.data)}")

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), self.data)


def decode_bitmap(data: bytes) -> Image.Image:
    """Decode encoded image bytes into an RGBA Pillow image (orientation untouched)."""
    if not data:
        raise DecodeError("Cannot decode an empty payload")
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            logger.debug("Decoded %s image %dx%d (%s)", img.format, img.width, img.height, img.mode)
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, Image.DecompressionBombError) as err:
        raise DecodeError(f"Cannot decode image: {err}") from err


class RasterSurface:
    """An in-memory RGBA canvas reused across decode calls."""

    def __init__(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise PoolConfigError(f"Surface width and height must be positive, got {width}x{height}")
        self._image = Image.new("RGBA", (width, height), TRANSPARENT)
        self._closed = False

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    @property
    def closed(self) -> bool:
        return self._closed

    def resize(self, width: int, height: int) -> None:
        """Make the canvas width x height and fully transparent."""
        if (width, height) != self._image.size:
            self._image.close()
            self._image = Image.new("RGBA", (width, height), TRANSPARENT)
        else:
            self.clear()

    def clear(self) -> None:
        self._image.paste(TRANSPARENT, (0, 0, self.width, self.height))

    def draw(self, bitmap: Image.Image, rect: ResizeRect, resample: Image.Resampling = DEFAULT_RESAMPLE) -> None:
        """Draw ``rect``'s source region of *bitmap* into its destination box."""
        region = bitmap.crop(rect.source_box)
        if region.size != rect.dest_size:
            region = region.resize(rect.dest_size, resample=resample)
        self._image.paste(region, rect.dest_offset)

    def pixels(self) -> PixelData:
        return PixelData(self.width, self.height, self._image.tobytes())

    def close(self) -> None:
        if not self._closed:
            self._image.close()
            self._closed = True

    def __repr__(self) -> str:
        return f"<RasterSurface {self.width}x{self.height}{' closed' if self._closed else ''}>"


def render(surface: RasterSurface, bitmap: Image.Image, resize: Optional[ResizeOptions] = None) -> PixelData:
    """
    Draw *bitmap* onto *surface* according to *resize* and read the pixels back.

    Without resize options the bitmap is copied at its own size. The canvas
    is the target size, grown to the destination box when an ``outside`` fit
    keeps an image larger than the target.
    """
    if resize is None:
        target_w, target_h, fit = bitmap.width, bitmap.height, FitMode.FILL
    else:
        target_w, target_h, fit = resize.width, resize.height, resize.fit

    rect = calc_rect(bitmap.width, bitmap.height, target_w, target_h, fit)
    surface.resize(max(target_w, rect.dx + rect.dw), max(target_h, rect.dy + rect.dh))
    surface.draw(bitmap, rect)
    return surface.pixels()
