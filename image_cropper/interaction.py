"""
Drag/resize state machine.

The engine is either idle or dragging.  ``begin`` snapshots the committed
box and the pointer, ``update`` turns the pointer delta into a live
("visual") rectangle through the action-specific transform and the
drag-time limits, and ``end`` verifies the visual rectangle and commits it
into the crop box.  The crop box itself is only written on ``end``.

Pointer coordinates can be in any space as long as one session uses the
same one throughout; only deltas are used.

This module is Qt-free.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from image_cropper.config import MIN_BOX_H, MIN_BOX_W
from image_cropper.errors import InvalidStateTransition
from image_cropper.models import CropBox, ImageFrame, PartialRect, Rect, round_half_up
from image_cropper.ratios import RatioPolicy
from image_cropper.solver import edge_limit, is_valid, limit_move, verify

logger = logging.getLogger(__name__)


class Action(Enum):
    MOVE = "move"
    N = "n"
    S = "s"
    E = "e"
    W = "w"
    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"

    @classmethod
    def parse(cls, tag) -> "Action":
        """Map a pointer target tag ("box", "move", "nw", ...) to an action."""
        if isinstance(tag, cls):
            return tag
        tag = str(tag).strip().lower()
        if tag == "box":
            return cls.MOVE
        return cls(tag)

    @property
    def is_corner(self) -> bool:
        return self in (Action.NW, Action.NE, Action.SW, Action.SE)

    @property
    def is_edge(self) -> bool:
        return self in (Action.N, Action.S, Action.E, Action.W)


class State(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass(frozen=True)
class Session:
    action: Action
    start_rect: Rect
    start_pointer: tuple[float, float]


def _pointer(pointer) -> tuple[float, float]:
    if hasattr(pointer, "x") and hasattr(pointer, "y"):
        x, y = pointer.x, pointer.y
        if callable(x):
            x, y = x(), y()
        return float(x), float(y)
    px, py = pointer
    return float(px), float(py)


def resize_proposal(action: Action, start: Rect, dx: float, dy: float) -> PartialRect:
    """
    Candidate rectangle for dragging a handle by (dx, dy).

    Only the fields the handle controls are set; the rest stay None.
    Dragging the top or left edge moves the origin along with the size.
    """
    sw, sh, sx, sy = start.as_tuple()
    if action is Action.N:
        return PartialRect(h=sh - dy, y=sy + dy)
    if action is Action.S:
        return PartialRect(h=sh + dy)
    if action is Action.E:
        return PartialRect(w=sw + dx)
    if action is Action.W:
        return PartialRect(w=sw - dx, x=sx + dx)
    if action is Action.NW:
        return PartialRect(w=sw - dx, h=sh - dy, x=sx + dx, y=sy + dy)
    if action is Action.NE:
        return PartialRect(w=sw + dx, h=sh - dy, y=sy + dy)
    if action is Action.SW:
        return PartialRect(w=sw - dx, h=sh + dy, x=sx + dx)
    if action is Action.SE:
        return PartialRect(w=sw + dx, h=sh + dy)
    raise ValueError(f"{action} is not a resize action")


def _limit_input(start: Rect, proposal: PartialRect) -> PartialRect:
    """Complete a proposal with the start values the edge checks need."""
    return PartialRect(
        w=start.w if proposal.w is None else proposal.w,
        h=start.h if proposal.h is None else proposal.h,
        x=start.x if proposal.x is None else proposal.x,
        y=start.y if proposal.y is None else proposal.y,
    )


def _controlled(action: Action, limited: PartialRect) -> PartialRect:
    """Drop fields the handle does not control."""
    controls_x = action in (Action.W, Action.NW, Action.SW)
    controls_y = action in (Action.N, Action.NW, Action.NE)
    controls_w = action not in (Action.N, Action.S)
    controls_h = action not in (Action.E, Action.W)
    return PartialRect(
        w=limited.w if controls_w else None,
        h=limited.h if controls_h else None,
        x=limited.x if controls_x else None,
        y=limited.y if controls_y else None,
    )


class InteractionEngine:
    """Turns (action, pointer) input into visual and committed rectangles."""

    def __init__(self, box: CropBox, frame: ImageFrame, policy: RatioPolicy,
                 min_w: float = MIN_BOX_W, min_h: float = MIN_BOX_H, warn=None):
        self.box = box
        self.frame = frame
        self.policy = policy
        self.min_w = min_w
        self.min_h = min_h
        self.warn = warn
        self._state = State.IDLE
        self._session: Session | None = None
        self._visual: Rect | None = None

    @property
    def state(self) -> State:
        return self._state

    @property
    def dragging(self) -> bool:
        return self._state is State.DRAGGING

    @property
    def session(self) -> Session | None:
        return self._session

    @property
    def visual(self) -> Rect:
        """Live rectangle while dragging, the committed box otherwise."""
        if self._visual is not None:
            return self._visual
        return self.box.snapshot()

    def begin(self, action, pointer) -> Session:
        if self._state is not State.IDLE:
            raise InvalidStateTransition("begin", self._state.value)
        action = Action.parse(action)
        start = self.box.snapshot()
        self._session = Session(action, start, _pointer(pointer))
        self._visual = start
        self._state = State.DRAGGING
        logger.debug("Begin %s at %s from %s", action.value, self._session.start_pointer, start)
        return self._session

    def update(self, pointer) -> Rect:
        if self._state is not State.DRAGGING:
            raise InvalidStateTransition("update", self._state.value)
        self._visual = self._transform(_pointer(pointer))
        return self._visual

    def end(self, pointer=None) -> Rect:
        if self._state is not State.DRAGGING:
            raise InvalidStateTransition("end", self._state.value)
        if pointer is not None:
            self._visual = self._transform(_pointer(pointer))
        if not is_valid(self._visual, self.frame, self.policy, self.min_w, self.min_h):
            logger.debug("Snapping %s to the crop constraints", self._visual)
        committed = verify(self._visual, self.frame, self.policy, self.min_w, self.min_h,
                           warn=self.warn)
        self.box.assign(committed)
        logger.debug("Commit %s after %s", committed, self._session.action.value)
        self._reset()
        return committed

    def cancel(self):
        """Drop the current session without committing."""
        self._reset()

    def _reset(self):
        self._state = State.IDLE
        self._session = None
        self._visual = None

    def _transform(self, pointer: tuple[float, float]) -> Rect:
        session = self._session
        start = session.start_rect
        dx = pointer[0] - session.start_pointer[0]
        dy = pointer[1] - session.start_pointer[1]
        action = session.action

        if self.policy.locked and action.is_corner:
            ratio = self.policy.effective_ratio(self.frame)
            dy = round_half_up(dx / ratio)
            if action in (Action.NE, Action.SW):
                dy = -dy

        if action is Action.MOVE:
            moved = start.translated(dx, dy)
            x, y = limit_move(moved.x, moved.y, start, self.frame)
            return Rect(start.w, start.h, x, y)

        proposal = resize_proposal(action, start, dx, dy)
        limited = edge_limit(_limit_input(start, proposal), self.frame, self.policy,
                             start, self.min_w, self.min_h)
        return _controlled(action, limited).fill(self._visual)
