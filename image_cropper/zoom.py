"""
Zoom debouncing.

Wheel events change the zoom scale immediately, but verifying the box and
notifying listeners waits until the wheel has been quiet for a short
period, so a burst of events collapses into one commit.

This module is Qt-free; the widget polls it from a single-shot timer.
"""

import time

from image_cropper.config import ZOOM_QUIET_MS


class ZoomDebouncer:
    """Tracks whether a zoom commit is pending and when it becomes due."""

    def __init__(self, quiet_period: float = ZOOM_QUIET_MS / 1000, clock=time.monotonic):
        self.quiet_period = quiet_period
        self._clock = clock
        self._last_touch: float | None = None

    @property
    def pending(self) -> bool:
        return self._last_touch is not None

    def touch(self, now: float | None = None):
        """Record a zoom event."""
        self._last_touch = self._clock() if now is None else now

    def due(self, now: float | None = None) -> bool:
        """True once a pending zoom has been quiet for the full period."""
        if self._last_touch is None:
            return False
        if now is None:
            now = self._clock()
        return now - self._last_touch >= self.quiet_period

    def clear(self):
        self._last_touch = None
