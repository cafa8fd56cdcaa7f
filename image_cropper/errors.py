"""
Exception types raised by the crop engine.

Constraint violations (box under the minimum size, ratio out of tolerance)
are not exceptions: the solver snaps them to a valid rectangle and reports
them through the message board.
"""


class CropError(Exception):
    """Base class for crop engine errors."""


class DegenerateImage(CropError, ValueError):
    """The image size is unknown or zero, so no geometry can be computed."""

    def __init__(self, natural_w, natural_h, display_w=None):
        self.natural_w = natural_w
        self.natural_h = natural_h
        self.display_w = display_w
        super().__init__(
            f"Cannot build crop geometry for image {natural_w!r} x {natural_h!r} "
            f"(displayed width {display_w!r})"
        )


class InvalidTarget(CropError, ValueError):
    """Both target sides are absent, zero or not numeric."""


class InvalidStateTransition(CropError, RuntimeError):
    """An interaction call arrived in a state that does not accept it."""

    def __init__(self, call: str, state: str):
        self.call = call
        self.state = state
        super().__init__(f"{call}() is not allowed while {state}")
