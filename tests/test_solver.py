import math

import pytest

from image_cropper.messages import MIN_SIZE, MessageBoard
from image_cropper.models import ImageFrame, PartialRect, Rect
from image_cropper.ratios import RatioPolicy
from image_cropper.solver import (
    center, edge_limit, fallback_size, is_valid, limit_move, max_fit, verify,
)

FREE = RatioPolicy()
LOCKED = RatioPolicy(locked=True, ratio=1.5)


@pytest.fixture
def frame():
    # natural 600 x 400 shown at 300 x 200
    return ImageFrame.create(600, 400, 300)


def test_zero_box_takes_the_whole_frame(frame):
    assert verify(Rect(0, 0, 0, 0), frame, FREE) == Rect(300, 200, 0, 0)


def test_minimum_size_falls_back_to_frame_and_warns_once(frame):
    board = MessageBoard()
    first = verify(Rect(5, 5, 0, 0), frame, FREE, 20, 20, warn=board.render_key)
    second = verify(Rect(5, 5, 0, 0), frame, FREE, 20, 20, warn=board.render_key)
    assert first == second == Rect(300, 200, 0, 0)
    assert first.w >= 20 and first.h >= 20
    assert board.has(MIN_SIZE)
    assert len(board) == 1


def test_valid_rect_is_untouched(frame):
    rect = Rect(100, 50, 30, 40)
    assert verify(rect, frame, FREE) == rect
    assert is_valid(rect, frame, FREE)


def test_locked_ratio_out_of_band_is_forced(frame):
    result = verify(Rect(100, 100, 10, 10), frame, LOCKED)
    assert result == Rect(300, 200, 0, 0)
    assert 1.47 <= result.w / result.h <= 1.53


def test_locked_ratio_forced_in_a_wide_frame():
    wide = ImageFrame.create(1000, 200, 500)
    result = verify(Rect(50, 50, 0, 0), wide, LOCKED)
    assert result == Rect(150, 100, 0, 0)


def test_locked_ratio_inside_band_is_kept(frame):
    rect = Rect(150, 101, 5, 5)
    assert verify(rect, frame, LOCKED) == rect


@pytest.mark.parametrize("w, h", [(100, 20), (60, 80), (299, 100), (21, 200)])
def test_locked_result_stays_in_band(frame, w, h):
    result = verify(Rect(w, h, 3, 3), frame, LOCKED)
    assert abs(result.w / result.h - 1.5) <= 0.02
    assert result.right <= 300.02
    assert result.bottom <= 200.02


def test_oversized_locked_box_falls_back_to_short_side(frame):
    result = verify(Rect(450, 300, 0, 0), frame, LOCKED)
    assert result.w == 200
    assert result.h == pytest.approx(400 / 3)


def test_overflowing_box_is_pulled_inside(frame):
    assert verify(Rect(400, 50, 250, -10), frame, FREE) == Rect(300, 50, 0, 0)
    assert verify(Rect(100, 50, 250, 10), frame, FREE) == Rect(100, 50, 0, 10)


def test_positions_are_rounded(frame):
    assert verify(Rect(100, 30, 2.6, 3.5), frame, FREE) == Rect(100, 30, 3, 4)


def test_non_finite_candidate_falls_back(frame):
    assert verify(Rect(math.nan, math.inf, math.nan, 0), frame, FREE) == Rect(300, 200, 0, 0)


@pytest.mark.parametrize("rect", [
    Rect(0, 0, 0, 0),
    Rect(5, 5, 0, 0),
    Rect(400, 50, 250, -10),
    Rect(10.4, 30, 2.6, 3.5),
    Rect(100, 100, 10, 10),
    Rect(151.3, 100.2, 148.7, 99.9),
])
@pytest.mark.parametrize("policy", [FREE, LOCKED])
def test_verify_is_idempotent(frame, rect, policy):
    once = verify(rect, frame, policy)
    assert verify(once, frame, policy) == once


def test_unreachable_minimum_keeps_box_and_warns():
    tiny = ImageFrame.create(10, 10, 10)
    warned = []
    result = verify(Rect(10, 10, 0, 0), tiny, FREE, warn=warned.append)
    assert result == Rect(10, 10, 0, 0)
    assert warned == [MIN_SIZE]


def test_helpers(frame):
    assert max_fit(frame, 3.0) == (300, 100)
    assert max_fit(frame, 1.0) == (200, 200)
    assert fallback_size(frame, FREE) == (300, 200)
    assert fallback_size(frame, RatioPolicy(locked=True, ratio=1.0)) == (200, 200)
    assert center(100, 50, frame) == Rect(100, 50, 100, 75)


# --- drag-time limits ---

START = Rect(100, 50, 50, 50)


def test_edge_limit_left(frame):
    limited = edge_limit(PartialRect(160, 50, -10, 50), frame, FREE, START)
    assert limited == PartialRect(w=None, h=50, x=0, y=50)


def test_edge_limit_left_locked_releases_height(frame):
    limited = edge_limit(PartialRect(160, 50, -10, 50), frame, LOCKED, START)
    assert limited == PartialRect(w=None, h=None, x=0, y=None)


def test_edge_limit_top(frame):
    limited = edge_limit(PartialRect(100, 80, 50, -5), frame, FREE, START)
    assert limited == PartialRect(w=100, h=None, x=50, y=0)


def test_edge_limit_right_uses_start_origin(frame):
    limited = edge_limit(PartialRect(300, 50, 50, 50), frame, FREE, START)
    assert limited.w == 250


def test_edge_limit_bottom(frame):
    limited = edge_limit(PartialRect(100, 200, 50, 50), frame, FREE, START)
    assert limited.h == 150


def test_edge_limit_minimum_width(frame):
    limited = edge_limit(PartialRect(5, 50, 145, 50), frame, FREE, START)
    assert limited == PartialRect(w=20, h=50, x=None, y=50)


def test_edge_limit_minimum_height_locked(frame):
    limited = edge_limit(PartialRect(100, 5, 50, 95), frame, LOCKED, START)
    assert limited == PartialRect(w=None, h=None, x=None, y=None)


def test_edge_limit_later_rule_wins(frame):
    limited = edge_limit(PartialRect(400, 5, 50, 50), frame, FREE, START)
    assert limited == PartialRect(w=250, h=20, x=50, y=None)


def test_limit_move(frame):
    assert limit_move(-5, 500, START, frame) == (0, 150)
    assert limit_move(250, 20, START, frame) == (200, 20)
    assert limit_move(10, 10, START, frame) == (10, 10)
