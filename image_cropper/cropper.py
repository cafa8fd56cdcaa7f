"""
Crop widget facade and its owner-held registry.

``Cropper`` owns one crop box and everything that mutates it: the image
frame, the ratio policy, the interaction engine and the zoom debouncer.
Every entry point that changes geometry ends in ``solver.verify`` except
``update`` during a drag, which only moves the visual rectangle until
``end`` commits it.

Listeners subscribe to ``started``, ``moving`` and ``stopped``; they are
called synchronously, in subscription order, with ``(event, cropper)``.

This module is Qt-free.
"""

import logging
import time
from dataclasses import replace

from image_cropper.config import DEFAULT_SETTINGS
from image_cropper.errors import DegenerateImage, InvalidStateTransition, InvalidTarget
from image_cropper.interaction import InteractionEngine
from image_cropper.messages import (
    AREA_TOO_SMALL, COULD_NOT_DETECT, IMAGE_TOO_SMALL, MessageBoard,
)
from image_cropper.models import CropBox, ImageFrame, Rect, to_output, zoom_margins
from image_cropper.options import CropOptions, parse_options
from image_cropper.ratios import RatioPolicy, calculate_target, normalize_target
from image_cropper.solver import verify
from image_cropper.zoom import ZoomDebouncer

logger = logging.getLogger(__name__)

EVENTS = ("started", "moving", "stopped")


class Cropper:
    """One crop area over one image."""

    def __init__(self, crop_id=None, options: CropOptions | dict | None = None, *,
                 settings: dict | None = None, messages: MessageBoard | None = None,
                 clock=time.monotonic):
        if options is None:
            options = CropOptions(id=str(crop_id) if crop_id is not None else "")
        elif isinstance(options, dict):
            data = dict(options)
            if crop_id is not None:
                data["id"] = crop_id
            options = parse_options(data)
        elif crop_id is not None and options.id != str(crop_id):
            options = replace(options, id=str(crop_id))
        self.options = options
        self.id = options.id

        self.settings = dict(DEFAULT_SETTINGS)
        if settings:
            self.settings.update(settings)
        self.min_w = self.settings["min_box_w"]
        self.min_h = self.settings["min_box_h"]

        self.messages = messages if messages is not None else MessageBoard()
        self.box = CropBox(scale=options.crop.scale)
        self.frame: ImageFrame | None = None
        self.policy = RatioPolicy()
        self.engine: InteractionEngine | None = None
        self.destroyed = False

        self._listeners: dict[str, list] = {}
        self._zoom = ZoomDebouncer(self.settings["zoom_quiet_ms"] / 1000, clock=clock)

    # --- Properties ---

    @property
    def loaded(self) -> bool:
        return self.frame is not None

    @property
    def dragging(self) -> bool:
        return self.engine is not None and self.engine.dragging

    @property
    def visual(self) -> Rect:
        """The rectangle to draw: live during a drag, committed otherwise."""
        if self.engine is None:
            return self.box.snapshot()
        return self.engine.visual

    @property
    def zoom_pending(self) -> bool:
        return self._zoom.pending

    # --- Sizing ---

    def load(self, natural_w, natural_h, display_w, display_h=None) -> Rect:
        """
        First sizing event: build the frame and place the initial crop.

        The initial crop is given in natural pixels; it is brought into
        displayed pixels, verified, compensated once for the initial zoom
        and verified again.
        """
        frame = self._make_frame(lambda: ImageFrame.create(natural_w, natural_h,
                                                           display_w, display_h))
        crop = self.options.crop
        self.frame = frame
        self.box.scale = crop.scale
        self.policy = RatioPolicy.from_target(self.options.target, frame, self.options.keep_ratio,
                                              previous=self.policy)

        s = frame.scale
        rect = self._verify(Rect(crop.width / s, crop.height / s, crop.x / s, crop.y / s))
        ws, hs = zoom_margins(frame, self.box.scale)
        # Exact inverse of to_output, so data() reports the requested crop
        if ws or hs:
            rect = self._verify(Rect(rect.w - ws, rect.h - hs, rect.x + ws / 2, rect.y + hs / 2))
        self.box.assign(rect)

        self.engine = InteractionEngine(self.box, frame, self.policy, self.min_w, self.min_h,
                                        warn=self.messages.render_key)
        logger.debug("Loaded %s: %s, %s, %s", self.id, frame, self.policy, self.box)
        self._check_quality()
        return rect

    def resize(self, display_w, display_h=None) -> Rect:
        """Re-feed the displayed size; the box keeps its place on the image."""
        old = self._require_frame()
        frame = self._make_frame(lambda: old.rescale(display_w, display_h))
        if self.dragging:
            logger.debug("Resize during a drag of %s; dropping the session", self.id)
            self.engine.cancel()

        factor = old.scale / frame.scale
        rect = Rect(self.box.w * factor, self.box.h * factor,
                    self.box.x * factor, self.box.y * factor)
        self.frame = frame
        self.engine.frame = frame
        return self._commit(rect)

    def refresh(self) -> Rect:
        """Re-verify the committed box at the current size; a drag in progress is kept."""
        self._require_frame()
        return self._commit(self.box.snapshot())

    def set_target(self, target) -> bool:
        """
        Re-derive the ratio policy from a new target and re-verify the box.

        Returns False (and changes nothing) when the target gives no usable
        ratio.  Before the image is loaded the target is only stored.
        """
        if self.frame is None:
            self.options.target = normalize_target(target)
            return False
        try:
            calculate_target(target, self.frame)
        except InvalidTarget as exc:
            logger.info("Ignoring target for %s: %s", self.id, exc)
            return False

        policy = RatioPolicy.from_target(target, self.frame, self.options.keep_ratio,
                                         previous=self.policy)
        if policy.degenerate:
            logger.info("Ignoring target %r for %s: degenerate ratio", target, self.id)
            return False

        self.options.target = normalize_target(target)
        self.policy = policy
        self.engine.policy = policy
        self.refresh()
        return True

    def set_keep_ratio(self, keep_ratio: bool | None):
        """Override (True/False) or restore (None) the automatic ratio lock."""
        self.options.keep_ratio = keep_ratio
        if self.frame is None:
            return
        self.policy = RatioPolicy.from_target(self.options.target, self.frame, keep_ratio,
                                              previous=self.policy)
        self.engine.policy = self.policy
        self.refresh()

    # --- Interaction ---

    def begin(self, action, pointer, event=None):
        session = self._require_engine("begin").begin(action, pointer)
        self.fire("started", event, self)
        return session

    def update(self, pointer, event=None) -> Rect:
        visual = self._require_engine("update").update(pointer)
        self._check_area(visual)
        self.fire("moving", event, self)
        return visual

    def end(self, pointer=None, event=None) -> Rect:
        """Commit the drag; a zoom that became pending meanwhile is settled with it."""
        committed = self._require_engine("end").end(pointer)
        if self._zoom.pending:
            logger.debug("Settling zoom %.2f of %s with the drag", self.box.scale, self.id)
            self._zoom.clear()
        self._check_quality()
        self.fire("stopped", event, self)
        return committed

    # --- Zoom ---

    def zoom(self, direction: float, now: float | None = None) -> float:
        """
        Zoom in (direction > 0) or out (direction < 0) by one step.

        The scale changes at once; the commit waits for ``poll_zoom``.
        """
        if not direction:
            return self.box.scale
        step = self.settings["zoom_step"]
        self.box.scale = self.box.scale + (step if direction > 0 else -step)
        self._zoom.touch(now)
        return self.box.scale

    def poll_zoom(self, now: float | None = None, event=None) -> bool:
        """
        Commit a pending zoom once it has been quiet long enough.

        While dragging the zoom stays pending; ``end`` settles it.
        """
        if self.dragging or not self._zoom.due(now):
            return False
        return self.commit_zoom(event)

    def commit_zoom(self, event=None) -> bool:
        if self.dragging:
            return False
        self._zoom.clear()
        if self.frame is not None:
            self.refresh()
        self.fire("stopped", event, self)
        return True

    # --- Output ---

    def data(self) -> dict:
        """Crop region in natural image pixels: width, height, x, y, scale."""
        return to_output(self._require_frame(), self.box)

    # --- Events ---

    def listen(self, event_name: str, callback):
        if event_name not in EVENTS:
            raise ValueError(f"Unknown event {event_name!r}, expected one of {', '.join(EVENTS)}")
        self._listeners.setdefault(event_name, []).append(callback)

    def unlisten(self, event_name: str, callback):
        listeners = self._listeners.get(event_name, [])
        if callback in listeners:
            listeners.remove(callback)

    def fire(self, event_name: str, *args):
        for callback in list(self._listeners.get(event_name, [])):
            callback(*args)

    def destroy(self):
        if self.engine is not None:
            self.engine.cancel()
        self._zoom.clear()
        self.messages.clear()
        self._listeners.clear()
        self.destroyed = True

    # --- Internals ---

    def _make_frame(self, build) -> ImageFrame:
        try:
            frame = build()
        except DegenerateImage:
            self.messages.render_key(COULD_NOT_DETECT)
            raise
        self.messages.delete(COULD_NOT_DETECT)
        return frame

    def _require_frame(self) -> ImageFrame:
        if self.frame is None:
            raise DegenerateImage(0, 0)
        return self.frame

    def _require_engine(self, call: str) -> InteractionEngine:
        if self.engine is None:
            raise InvalidStateTransition(call, "unloaded")
        return self.engine

    def _verify(self, rect: Rect) -> Rect:
        return verify(rect, self.frame, self.policy, self.min_w, self.min_h,
                      warn=self.messages.render_key)

    def _commit(self, rect: Rect) -> Rect:
        rect = self._verify(rect)
        self.box.assign(rect)
        self._check_quality()
        return rect

    def _output_size(self, rect: Rect) -> tuple[int, int]:
        out = to_output(self.frame, CropBox(rect.w, rect.h, rect.x, rect.y, self.box.scale))
        return out["width"], out["height"]

    def _check_area(self, rect: Rect):
        width, height = self._output_size(rect)
        if width < self.policy.target_w or height < self.policy.target_h:
            self.messages.render_key(AREA_TOO_SMALL)
        else:
            self.messages.delete(AREA_TOO_SMALL)

    def _check_quality(self):
        self._check_area(self.box.snapshot())
        frame = self.frame
        if frame.natural_w < self.policy.max_target_w or frame.natural_h < self.policy.max_target_h:
            self.messages.render_key(IMAGE_TOO_SMALL)
        else:
            self.messages.delete(IMAGE_TOO_SMALL)


# =============================================================================
# Registry
# =============================================================================
class CropperRegistry:
    """Owner-held map of crop id to Cropper."""

    def __init__(self):
        self._items: dict[str, Cropper] = {}

    def create(self, options: CropOptions | dict, **kwargs) -> Cropper:
        """Return the cropper for ``options.id``, creating it if needed."""
        if isinstance(options, dict):
            options = parse_options(options)
        existing = self._items.get(str(options.id))
        if existing is not None:
            return existing
        cropper = Cropper(options.id, options, **kwargs)
        self._items[cropper.id] = cropper
        logger.debug("Registered cropper %s", cropper.id)
        return cropper

    def get(self, crop_id) -> Cropper | None:
        return self._items.get(str(crop_id))

    def has(self, crop_id) -> bool:
        return str(crop_id) in self._items

    def delete(self, crop_id) -> bool:
        """Destroy and forget a cropper; False if the id is unknown."""
        cropper = self._items.pop(str(crop_id), None)
        if cropper is None:
            return False
        cropper.destroy()
        logger.debug("Disposed cropper %s", cropper.id)
        return True

    def clear(self):
        for crop_id in list(self._items):
            self.delete(crop_id)

    def ids(self) -> list[str]:
        return list(self._items)

    def __contains__(self, crop_id) -> bool:
        return self.has(crop_id)

    def __len__(self):
        return len(self._items)
