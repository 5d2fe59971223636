"""
resize_rect.py: source/destination rectangle geometry for the five fit modes.

Mirrors the cover/contain/fill/inside/outside semantics of the sharp resizing
library. All pixel boundaries are rounded half away from zero; Python's
built-in round() (banker's rounding) must not be used here.

Example:
    rect = calc_rect(1000, 500, 400, 400)          # cover
    rect.source_box  -> (250, 0, 750, 500)
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple, Union

from ..errors import InvalidResizeOptionsError


class FitMode(str, Enum):
    """How a source image maps into a differently shaped target area."""
    COVER = "cover"
    CONTAIN = "contain"
    FILL = "fill"
    INSIDE = "inside"
    OUTSIDE = "outside"


DEFAULT_FIT = FitMode.COVER


@dataclass(frozen=True)
class ResizeRect:
    """Source crop (s*) inside the decoded image and destination box (d*) inside the target."""
    sx: int
    sy: int
    sw: int
    sh: int
    dx: int
    dy: int
    dw: int
    dh: int

    @property
    def source_box(self) -> Tuple[int, int, int, int]:
        """Pillow-style (left, upper, right, lower) crop box."""
        return self.sx, self.sy, self.sx + self.sw, self.sy + self.sh

    @property
    def dest_size(self) -> Tuple[int, int]:
        return self.dw, self.dh

    @property
    def dest_offset(self) -> Tuple[int, int]:
        return self.dx, self.dy


@dataclass(frozen=True)
class ResizeOptions:
    """Caller-facing resize request. Build through validate_resize_options()."""
    width: int
    height: int
    fit: FitMode = DEFAULT_FIT

    def to_message(self) -> dict:
        return {"width": self.width, "height": self.height, "fit": self.fit.value}


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def parse_fit(fit: Union[FitMode, str, None]) -> FitMode:
    """Return the FitMode for *fit*, defaulting to cover when it is None."""
    if fit is None:
        return DEFAULT_FIT
    if isinstance(fit, FitMode):
        return fit
    try:
        return FitMode(str(fit).lower())
    except ValueError:
        valid = ", ".join(m.value for m in FitMode)
        raise InvalidResizeOptionsError(f"Invalid fit mode: {fit!r} (expected one of {valid})") from None


def _positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidResizeOptionsError(f"Resize {name} must be an integer, got {value!r}")
    if value <= 0:
        raise InvalidResizeOptionsError(f"Resize {name} must be positive, got {value}")
    return value


def validate_resize_options(
    options: Union[ResizeOptions, dict, None] = None,
    *,
    width: Optional[int] = None,
    height: Optional[int] = None,
    fit: Union[FitMode, str, None] = None,
) -> Optional[ResizeOptions]:
    """
    Normalize resize options, raising InvalidResizeOptionsError synchronously.

    Accepts a ResizeOptions, a {"width", "height", "fit"} mapping or keyword
    arguments. Returns None when no resize was requested at all.
    """
    if options is None and width is None and height is None:
        return None
    if isinstance(options, ResizeOptions):
        width, height, fit = options.width, options.height, options.fit
    elif isinstance(options, dict):
        width = options.get("width")
        height = options.get("height")
        fit = options.get("fit")
    elif options is not None:
        raise InvalidResizeOptionsError(f"Unsupported resize options: {options!r}")

    return ResizeOptions(
        width=_positive_int("width", width),
        height=_positive_int("height", height),
        fit=parse_fit(fit),
    )


def calc_rect(
    src_w: int,
    src_h: int,
    target_w: int,
    target_h: int,
    fit: Union[FitMode, str] = DEFAULT_FIT,
) -> ResizeRect:
    """
    Compute the crop and placement for drawing a src_w x src_h image into target_w x target_h.

    Args:
        src_w, src_h: Decoded image size (positive integers).
        target_w, target_h: Output canvas size (positive integers).
        fit: One of the FitMode values (default: cover).

    Returns:
        ResizeRect with the source sub-rectangle and destination sub-rectangle.
    """
    fit = parse_fit(fit)
    src_aspect = src_w / src_h
    target_aspect = target_w / target_h

    sx, sy, sw, sh = 0, 0, src_w, src_h
    dw, dh = target_w, target_h

    if fit is FitMode.FILL:
        return ResizeRect(0, 0, src_w, src_h, 0, 0, target_w, target_h)

    if fit in (FitMode.COVER, FitMode.OUTSIDE):
        if fit is FitMode.OUTSIDE and src_w >= target_w and src_h >= target_h:
            return ResizeRect(0, 0, src_w, src_h, 0, 0, src_w, src_h)
        if src_aspect > target_aspect:
            sh = src_h
            sw = round_half_away(sh * target_aspect)
            sx = round_half_away((src_w - sw) / 2)
        else:
            sw = src_w
            sh = round_half_away(sw / target_aspect)
            sy = round_half_away((src_h - sh) / 2)
        return ResizeRect(sx, sy, sw, sh, 0, 0, target_w, target_h)

    # contain / inside: letterbox, never crop
    if fit is FitMode.INSIDE and src_w <= target_w and src_h <= target_h:
        dw, dh = src_w, src_h
    elif src_aspect > target_aspect:
        dw = target_w
        dh = round_half_away(target_w / src_aspect)
    else:
        dh = target_h
        dw = round_half_away(target_h * src_aspect)

    dx = round_half_away((target_w - dw) / 2)
    dy = round_half_away((target_h - dh) / 2)
    return ResizeRect(sx, sy, sw, sh, dx, dy, dw, dh)
