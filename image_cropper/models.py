"""
Data models and output projection.

``ImageFrame`` holds the natural and displayed size of the image, ``Rect``
and ``PartialRect`` are rectangles in displayed pixels, and ``CropBox`` is
the authoritative, mutable crop rectangle plus its zoom scale.  All
rectangles are relative to the top-left corner of the displayed
(un-zoomed) image.

``to_output`` converts a crop box back into natural-image pixels.
"""

import math
from dataclasses import dataclass, replace

from image_cropper.config import SCALE_MIN
from image_cropper.errors import DegenerateImage


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""
    return int(math.floor(value + 0.5))


def _positive(value) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


# =============================================================================
# Rectangles
# =============================================================================
@dataclass(frozen=True)
class Rect:
    """Rectangle in displayed pixels."""
    w: float = 0.0
    h: float = 0.0
    x: float = 0.0
    y: float = 0.0

    @property
    def right(self) -> float:
        return self.x + self.w

    @property
    def bottom(self) -> float:
        return self.y + self.h

    def translated(self, dx: float, dy: float) -> "Rect":
        return replace(self, x=self.x + dx, y=self.y + dy)

    def as_tuple(self) -> tuple[float, float, float, float]:
        return self.w, self.h, self.x, self.y


@dataclass(frozen=True)
class PartialRect:
    """Rectangle whose fields may be None, meaning "keep the last good value"."""
    w: float | None = None
    h: float | None = None
    x: float | None = None
    y: float | None = None

    def fill(self, fallback: Rect) -> Rect:
        """Replace missing fields with those of *fallback*."""
        return Rect(
            w=fallback.w if self.w is None else self.w,
            h=fallback.h if self.h is None else self.h,
            x=fallback.x if self.x is None else self.x,
            y=fallback.y if self.y is None else self.y,
        )


# =============================================================================
# Image frame
# =============================================================================
@dataclass(frozen=True)
class ImageFrame:
    """Natural and displayed image size."""
    natural_w: float
    natural_h: float
    display_w: float
    display_h: float

    @classmethod
    def create(cls, natural_w, natural_h, display_w, display_h=None) -> "ImageFrame":
        """
        Build a frame once the image's intrinsic size is known.

        *display_h* may be omitted; it is then derived from the displayed
        width, since the hosting layout preserves the aspect ratio.

        Raises DegenerateImage if the natural size or the displayed width
        is zero or not a number.
        """
        if not (_positive(natural_w) and _positive(natural_h) and _positive(display_w)):
            raise DegenerateImage(natural_w, natural_h, display_w)
        natural_w = float(natural_w)
        natural_h = float(natural_h)
        display_w = float(display_w)
        if display_h is None:
            display_h = natural_h / (natural_w / display_w)
        elif not _positive(display_h):
            raise DegenerateImage(natural_w, natural_h, display_w)
        return cls(natural_w, natural_h, display_w, float(display_h))

    def rescale(self, display_w, display_h=None) -> "ImageFrame":
        """Return a frame for a new displayed size (the box is not moved)."""
        return ImageFrame.create(self.natural_w, self.natural_h, display_w, display_h)

    @property
    def scale(self) -> float:
        """Natural pixels per displayed pixel."""
        return self.natural_w / self.display_w

    @property
    def natural_ratio(self) -> float:
        return self.natural_w / self.natural_h

    @property
    def min_side(self) -> float:
        return min(self.display_w, self.display_h)


# =============================================================================
# Crop box
# =============================================================================
class CropBox:
    """The committed crop rectangle (displayed pixels) and zoom scale."""

    def __init__(self, w: float = 0.0, h: float = 0.0, x: float = 0.0, y: float = 0.0,
                 scale: float = 1.0):
        self.w = w
        self.h = h
        self.x = x
        self.y = y
        self._scale = 1.0
        self.scale = scale

    @property
    def scale(self) -> float:
        return self._scale

    @scale.setter
    def scale(self, value: float):
        try:
            value = float(value)
        except (TypeError, ValueError):
            value = 1.0
        if not math.isfinite(value):
            value = 1.0
        self._scale = max(SCALE_MIN, value)

    def snapshot(self) -> Rect:
        return Rect(self.w, self.h, self.x, self.y)

    def assign(self, rect: Rect):
        self.w, self.h, self.x, self.y = rect.as_tuple()

    def __repr__(self):
        return (f"CropBox(w={self.w!r}, h={self.h!r}, x={self.x!r}, y={self.y!r}, "
                f"scale={self.scale!r})")


def zoom_margins(frame: ImageFrame, scale: float) -> tuple[float, float]:
    """Pixel margin introduced by zooming the displayed image around its centre."""
    ws = frame.display_w - frame.display_w * scale
    hs = frame.display_h - frame.display_h * scale
    return ws, hs


def to_output(frame: ImageFrame, box: CropBox) -> dict:
    """
    Project the crop box into natural-image pixels.

    The zoom is applied around the image centre while the box origin is
    recorded relative to the un-zoomed displayed image, so the zoom margin
    is added to the size and half of it removed from the origin.
    """
    ws, hs = zoom_margins(frame, box.scale)
    image_scale = frame.scale
    return {
        "width": round_half_up((box.w + ws) * image_scale),
        "height": round_half_up((box.h + hs) * image_scale),
        "x": round_half_up((box.x - ws / 2) * image_scale),
        "y": round_half_up((box.y - hs / 2) * image_scale),
        "scale": box.scale,
    }
