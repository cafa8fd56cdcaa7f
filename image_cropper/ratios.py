"""
Ratio policy: derive the locked aspect ratio from a target size.

A target is given as ``(w, h)`` where either side may be missing, ``None``
or zero.  A missing side is computed from the image's natural aspect
ratio.  The resulting ``RatioPolicy`` is immutable and replaced wholesale
whenever the target changes.

This module is Qt-free.
"""

import logging
import math
from dataclasses import dataclass
from math import gcd

from image_cropper.errors import InvalidTarget
from image_cropper.models import ImageFrame

logger = logging.getLogger(__name__)


# =============================================================================
# Aspect-ratio helpers
# =============================================================================
def normalize_ratio(w: int, h: int) -> tuple[int, int]:
    """Reduce ratio to simplest form via GCD. (21, 9) → (7, 3)"""
    g = gcd(w, h)
    return w // g, h // g


def aspect_key(w: int, h: int) -> str:
    """Normalized string key for display. (21, 9) → '7:3'"""
    nw, nh = normalize_ratio(w, h)
    return f"{nw}:{nh}"


def _coerce_side(value) -> float:
    """Return a target side as a float, or 0.0 if absent or not a finite number."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def normalize_target(target) -> tuple | None:
    """Return a target as a (w, h) tuple, either side possibly None. 600 → (600, None)"""
    if target is None:
        return None
    if isinstance(target, (int, float, str)):
        target = (target,)
    sides = list(target)[:2] + [None, None]
    return sides[0], sides[1]


def _target_sides(target) -> tuple[float, float]:
    target = normalize_target(target)
    if target is None:
        return 0.0, 0.0
    return _coerce_side(target[0]), _coerce_side(target[1])


def calculate_target(target, frame: ImageFrame) -> tuple[float, float]:
    """
    Resolve both target sides, filling a missing one from the natural aspect.

    Raises InvalidTarget when neither side is usable.
    """
    target_w, target_h = _target_sides(target)
    if target_w == 0 and target_h == 0:
        raise InvalidTarget(f"Target {target!r} has no usable width or height")

    if target_w == 0:
        target_w = frame.natural_w / frame.natural_h * target_h
    if target_h == 0:
        target_h = frame.natural_h / frame.natural_w * target_w

    if not math.isfinite(target_w):
        target_w = 0.0
    if not math.isfinite(target_h):
        target_h = 0.0
    if target_w == 0 and target_h == 0:
        raise InvalidTarget(f"Target {target!r} collapsed to zero")
    return target_w, target_h


# =============================================================================
# Ratio policy
# =============================================================================
@dataclass(frozen=True)
class RatioPolicy:
    """Locked aspect ratio and the target size it came from."""
    locked: bool = False
    ratio: float | None = None
    target_w: float = 0.0
    target_h: float = 0.0
    max_target_w: float = 0.0
    max_target_h: float = 0.0

    @classmethod
    def from_target(cls, target, frame: ImageFrame, keep_ratio: bool | None = None,
                    previous: "RatioPolicy | None" = None) -> "RatioPolicy":
        """
        Build the policy for *target* on *frame*.

        Both sides present locks the ratio; a single side only derives the
        other from the image.  ``keep_ratio`` overrides the lock either way.
        The largest target ever requested is carried over from *previous*.
        """
        max_w = previous.max_target_w if previous else 0.0
        max_h = previous.max_target_h if previous else 0.0

        try:
            target_w, target_h = calculate_target(target, frame)
        except InvalidTarget as exc:
            logger.debug("%s; falling back to the natural image ratio", exc)
            locked = bool(keep_ratio)
            return cls(
                locked=locked,
                ratio=frame.natural_ratio if locked else None,
                max_target_w=max_w,
                max_target_h=max_h,
            )

        requested_w, requested_h = _target_sides(target)
        both_given = requested_w != 0 and requested_h != 0
        locked = both_given if keep_ratio is None else bool(keep_ratio)

        ratio = abs(target_w / target_h) if target_h else 0.0
        if locked and not ratio:
            ratio = frame.natural_ratio

        return cls(
            locked=locked,
            ratio=ratio,
            target_w=target_w,
            target_h=target_h,
            max_target_w=max(max_w, target_w),
            max_target_h=max(max_h, target_h),
        )

    def effective_ratio(self, frame: ImageFrame) -> float:
        """The ratio to draw with: the locked one, else the natural image ratio."""
        return self.ratio if self.ratio else frame.natural_ratio

    @property
    def degenerate(self) -> bool:
        return not self.ratio

    def label(self) -> str:
        """Human readable ratio, e.g. '16:9', or 'free'."""
        if not self.locked or not self.ratio:
            return "free"
        w, h = round(self.target_w), round(self.target_h)
        if w > 0 and h > 0 and abs(w / h - self.ratio) < 1e-9:
            return aspect_key(w, h)
        return f"{self.ratio:.3f}"
