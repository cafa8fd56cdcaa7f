"""
Keyed advisory messages.

The engine reports non-blocking conditions (crop area too small for the
target, source image smaller than the target, minimum size not reachable)
through a ``MessageBoard``.  A key is rendered at most once until it is
deleted, so repeated checks do not stack duplicate messages.  Renderers
subscribe to be told when the set of messages changes; translating the
text is up to them.

This module is Qt-free.
"""

import logging

logger = logging.getLogger(__name__)

# Message keys
AREA_TOO_SMALL = "areaTooSmall"
IMAGE_TOO_SMALL = "imageTooSmall"
MIN_SIZE = "minSize"
COULD_NOT_DETECT = "couldNotDetectImageScale"

MESSAGES = {
    AREA_TOO_SMALL: "The image quality may suffer as the crop area is too small!",
    IMAGE_TOO_SMALL: "The image is too small and thereby the image quality may suffer!",
    MIN_SIZE: "Cannot keep the minimal crop data set for the area.",
    COULD_NOT_DETECT: "Could not detect the image width and height!",
}


class MessageBoard:
    """Ordered set of advisory messages keyed by a string."""

    def __init__(self):
        self._messages: dict[str, str] = {}
        self._subscribers = []

    @property
    def messages(self) -> dict[str, str]:
        return dict(self._messages)

    def subscribe(self, callback):
        """Register ``callback(board)``, called after every change."""
        self._subscribers.append(callback)

    def unsubscribe(self, callback):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def has(self, key: str) -> bool:
        return key in self._messages

    def render(self, text: str, key: str | None = None) -> bool:
        """
        Show *text* under *key* (defaults to the text itself).

        Returns False if the key is already shown.
        """
        if key is None:
            key = text
        if key in self._messages:
            return False
        self._messages[key] = text
        logger.warning("%s", text)
        self._notify()
        return True

    def render_key(self, key: str) -> bool:
        """Render one of the built-in messages by key."""
        return self.render(MESSAGES.get(key, key), key)

    def delete(self, key: str) -> bool:
        if key not in self._messages:
            return False
        del self._messages[key]
        self._notify()
        return True

    def clear(self):
        if self._messages:
            self._messages.clear()
            self._notify()

    def _notify(self):
        for callback in list(self._subscribers):
            callback(self)

    def __len__(self):
        return len(self._messages)

    def __iter__(self):
        return iter(self._messages.values())
