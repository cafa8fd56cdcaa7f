"""
Constraint solver: turn any candidate rectangle into a valid crop box.

``verify`` is the single authority for the crop box invariants and must
run after every geometry-affecting event (load, resize, target change,
zoom commit, end of a drag):

* the box lies inside the displayed image (with ``EDGE_TOLERANCE`` slack),
* it is at least ``min_w`` x ``min_h`` whenever the frame allows it,
* its ratio matches the locked ratio within ``RATIO_TOLERANCE``.

``edge_limit`` and ``limit_move`` are the lighter checks used on every
pointer move during a drag; they keep the live rectangle on screen without
re-deriving the ratio, and ``verify`` settles everything at the end.

All functions are pure.  ``verify`` reports advisory conditions by calling
the optional ``warn`` callback with a message key.

This module is Qt-free.
"""

import logging
import math

from image_cropper.config import EDGE_TOLERANCE, MIN_BOX_H, MIN_BOX_W, RATIO_TOLERANCE
from image_cropper.messages import MIN_SIZE
from image_cropper.models import ImageFrame, PartialRect, Rect, round_half_up
from image_cropper.ratios import RatioPolicy

logger = logging.getLogger(__name__)


def _finite(value, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _ratio_of(w: float, h: float) -> float:
    if h == 0:
        return math.inf
    return w / h


def max_fit(frame: ImageFrame, ratio: float) -> tuple[float, float]:
    """Largest (w, h) of the given ratio inside the frame: full width, else full height."""
    w = frame.display_w
    h = w / ratio
    if h > frame.display_h:
        h = frame.display_h
        w = h * ratio
    return w, h


def fallback_size(frame: ImageFrame, policy: RatioPolicy) -> tuple[float, float]:
    """
    Size a box is reset to when its own size is unusable.

    Unlocked boxes take the whole frame.  Locked boxes start from the
    frame's shorter side and derive the other side from the ratio, shrunk
    so that both sides fit.
    """
    if not policy.locked:
        return frame.display_w, frame.display_h
    ratio = policy.effective_ratio(frame)
    w = frame.min_side
    h = w / ratio
    if h > frame.display_h:
        h = frame.display_h
        w = h * ratio
    if w > frame.display_w:
        w = frame.display_w
        h = w / ratio
    return w, h


def center(w: float, h: float, frame: ImageFrame) -> Rect:
    """Centre a w x h box in the frame."""
    x = (frame.display_w - w) / 2
    y = (frame.display_h - h) / 2
    return Rect(w, h, round_half_up(x), round_half_up(y))


def _settle_position(pos: float, size: float, extent: float) -> int:
    """Round a position and keep the far edge inside the frame."""
    pos = round_half_up(pos)
    if pos + size > extent + EDGE_TOLERANCE:
        pos = max(0, math.floor(extent - size + EDGE_TOLERANCE))
    return max(0, pos)


# =============================================================================
# Commit-time verification
# =============================================================================
def verify(candidate: Rect, frame: ImageFrame, policy: RatioPolicy,
           min_w: float = MIN_BOX_W, min_h: float = MIN_BOX_H, warn=None) -> Rect:
    """Return the nearest valid rectangle for *candidate*."""
    if warn is None:
        def warn(key):
            pass

    dw, dh = frame.display_w, frame.display_h
    w = _finite(candidate.w, dw)
    h = _finite(candidate.h, dh)
    x = _finite(candidate.x, 0.0)
    y = _finite(candidate.y, 0.0)

    center_requested = False
    if w == 0 and h == 0:
        w, h = dw, dh
        center_requested = True

    if policy.locked:
        ratio = policy.effective_ratio(frame)
        if abs(_ratio_of(w, h) - ratio) > RATIO_TOLERANCE:
            w, h = max_fit(frame, ratio)
            logger.debug("Ratio forced to %.4f: %.2f x %.2f", ratio, w, h)
            if w < min_w or h < min_h:
                warn(MIN_SIZE)
            return Rect(w, h, 0, 0)

    if w < min_w or h < min_h:
        warn(MIN_SIZE)

    if center_requested:
        return center(w, h, frame)

    fit_w, fit_h = fallback_size(frame, policy)
    fallback_meets_min = fit_w >= min_w and fit_h >= min_h

    if w <= 0 or w > dw + EDGE_TOLERANCE or (w < min_w and fallback_meets_min):
        w = fit_w
        if policy.locked:
            h = fit_h
    if h <= 0 or h > dh + EDGE_TOLERANCE or (h < min_h and fallback_meets_min):
        h = fit_h
        if policy.locked:
            w = fit_w

    if x < 0 or x + w > dw + EDGE_TOLERANCE:
        x = 0
    if y < 0 or y + h > dh + EDGE_TOLERANCE:
        y = 0

    return Rect(w, h, _settle_position(x, w, dw), _settle_position(y, h, dh))


def is_valid(rect: Rect, frame: ImageFrame, policy: RatioPolicy,
             min_w: float = MIN_BOX_W, min_h: float = MIN_BOX_H) -> bool:
    """True if *rect* already satisfies every crop box invariant."""
    if rect.x < 0 or rect.y < 0:
        return False
    if rect.right > frame.display_w + EDGE_TOLERANCE:
        return False
    if rect.bottom > frame.display_h + EDGE_TOLERANCE:
        return False
    if rect.w <= 0 or rect.h <= 0:
        return False
    fit_w, fit_h = fallback_size(frame, policy)
    if fit_w >= min_w and fit_h >= min_h and (rect.w < min_w or rect.h < min_h):
        return False
    if policy.locked:
        return abs(rect.w / rect.h - policy.effective_ratio(frame)) <= RATIO_TOLERANCE
    return True


# =============================================================================
# Drag-time limits
# =============================================================================
def edge_limit(proposed: PartialRect, frame: ImageFrame, policy: RatioPolicy, start: Rect,
               min_w: float = MIN_BOX_W, min_h: float = MIN_BOX_H) -> PartialRect:
    """
    Keep a resized rectangle inside the frame during a drag.

    Fields set to None are left to the caller, which keeps the last good
    value for them.  With a locked ratio, hitting an edge also releases the
    orthogonal pair so the ratio is not distorted.  The last rule that
    fires wins.
    """
    w, h, x, y = proposed.w, proposed.h, proposed.x, proposed.y
    locked = policy.locked

    # left
    if x is not None and x < 0:
        w, x = None, 0
        if locked:
            h, y = None, None

    # top
    if y is not None and y < 0:
        y, h = 0, None
        if locked:
            w, x = None, None

    # right
    if (x or 0) + (w or 0) > frame.display_w:
        w = frame.display_w - start.x
        if locked:
            h, y = None, None

    # bottom
    if (y or 0) + (h or 0) > frame.display_h:
        h = frame.display_h - start.y
        if locked:
            w, x = None, None

    # minimum width
    if w is not None and w < min_w:
        w, x = min_w, None
        if locked:
            w, h, y = None, None, None

    # minimum height
    if h is not None and h < min_h:
        h, y = min_h, None
        if locked:
            h, w, x = None, None, None

    return PartialRect(w=w, h=h, x=x, y=y)


def limit_move(x: float, y: float, start: Rect, frame: ImageFrame) -> tuple[float, float]:
    """Clamp a translated box so it stays inside the frame."""
    max_x = max(0.0, frame.display_w - start.w)
    max_y = max(0.0, frame.display_h - start.h)
    return min(max(x, 0.0), max_x), min(max(y, 0.0), max_y)
