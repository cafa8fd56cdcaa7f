import random

import pytest

from image_cropper.cropper import Cropper, CropperRegistry
from image_cropper.errors import DegenerateImage, InvalidStateTransition
from image_cropper.messages import AREA_TOO_SMALL, COULD_NOT_DETECT, IMAGE_TOO_SMALL, MIN_SIZE
from image_cropper.models import Rect
from image_cropper.options import CropOptions
from image_cropper.solver import is_valid


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def loaded(options=None, **kwargs):
    cropper = Cropper("c", options or {"id": "c"}, **kwargs)
    cropper.load(600, 400, 300)
    return cropper


def test_load_without_initial_crop_takes_whole_image():
    cropper = loaded()
    assert cropper.box.snapshot() == Rect(300, 200, 0, 0)
    assert cropper.data() == {"width": 600, "height": 400, "x": 0, "y": 0, "scale": 1.0}


def test_load_places_initial_crop():
    cropper = loaded({"id": "c", "crop": {"width": 300, "height": 200, "x": 60, "y": 40}})
    assert cropper.box.snapshot() == Rect(150, 100, 30, 20)
    assert cropper.data() == {"width": 300, "height": 200, "x": 60, "y": 40, "scale": 1.0}


def test_load_compensates_initial_zoom():
    cropper = loaded({"id": "c", "crop": {"width": 600, "height": 400, "scale": 0.5}})
    assert cropper.box.snapshot() == Rect(150, 100, 75, 50)
    assert cropper.data() == {"width": 600, "height": 400, "x": 0, "y": 0, "scale": 0.5}


def test_initial_zoomed_crop_reads_back_unchanged():
    crop = {"width": 400, "height": 200, "x": 100, "y": 100, "scale": 0.8}
    cropper = loaded({"id": "c", "crop": crop})
    data = cropper.data()
    assert data["scale"] == pytest.approx(0.8)
    assert {k: data[k] for k in ("width", "height", "x", "y")} == {
        "width": 400, "height": 200, "x": 100, "y": 100,
    }


def test_load_with_degenerate_size_reports_and_raises():
    cropper = Cropper("c", {"id": "c"})
    with pytest.raises(DegenerateImage):
        cropper.load(0, 400, 300)
    assert cropper.messages.has(COULD_NOT_DETECT)
    assert not cropper.loaded

    cropper.load(600, 400, 300)
    assert not cropper.messages.has(COULD_NOT_DETECT)


def test_data_before_load_raises():
    with pytest.raises(DegenerateImage):
        Cropper("c").data()


def test_resize_keeps_natural_region():
    cropper = loaded({"id": "c", "crop": {"width": 300, "height": 200, "x": 60, "y": 40}})
    before = cropper.data()
    cropper.resize(600)
    assert cropper.box.snapshot() == Rect(300, 200, 60, 40)
    assert cropper.data() == before


def test_resize_during_drag_drops_session():
    cropper = loaded()
    cropper.begin("box", (0, 0))
    cropper.resize(150)
    assert not cropper.dragging
    assert cropper.box.snapshot() == Rect(150, 100, 0, 0)


def test_set_target_locks_and_reverifies():
    cropper = loaded()
    assert cropper.set_target((300, 100))
    assert cropper.policy.locked
    assert cropper.policy.ratio == 3
    assert cropper.box.snapshot() == Rect(300, 100, 0, 0)
    assert is_valid(cropper.box.snapshot(), cropper.frame, cropper.policy)


@pytest.mark.parametrize("target", [None, (None, None), (0, 0), ("x", None)])
def test_set_target_without_usable_ratio_is_a_no_op(target):
    cropper = loaded({"id": "c", "target": [300, 200]})
    before = (cropper.policy, cropper.box.snapshot())
    assert not cropper.set_target(target)
    assert (cropper.policy, cropper.box.snapshot()) == before


def test_set_target_before_load_is_stored():
    cropper = Cropper("c")
    assert not cropper.set_target(600)
    assert cropper.options.target == (600, None)
    cropper.load(600, 400, 300)
    assert cropper.policy.target_w == 600


def test_keep_ratio_option_overrides_lock():
    cropper = loaded({"id": "c", "target": [300, 200], "keep_ratio": False})
    assert not cropper.policy.locked
    cropper.set_keep_ratio(True)
    assert cropper.policy.locked
    cropper.set_keep_ratio(None)
    assert cropper.policy.locked


def test_events_fire_in_order():
    cropper = loaded()
    seen = []
    for name in ("started", "moving", "stopped"):
        cropper.listen(name, lambda event, c, name=name: seen.append((name, event, c)))

    cropper.begin("box", (0, 0), event="press")
    cropper.update((-5, -5), event="move")
    cropper.end(event="release")
    assert [(name, event) for name, event, _ in seen] == [
        ("started", "press"), ("moving", "move"), ("stopped", "release"),
    ]
    assert all(c is cropper for _, _, c in seen)


def test_unknown_event_is_rejected():
    with pytest.raises(ValueError):
        Cropper("c").listen("dropped", print)


def test_unlisten():
    cropper = loaded()
    calls = []
    callback = lambda event, c: calls.append(event)
    cropper.listen("stopped", callback)
    cropper.unlisten("stopped", callback)
    cropper.commit_zoom()
    assert calls == []


def test_interaction_before_load_is_rejected():
    cropper = Cropper("c")
    with pytest.raises(InvalidStateTransition, match="unloaded"):
        cropper.begin("box", (0, 0))
    with pytest.raises(InvalidStateTransition):
        cropper.end()


def test_update_without_begin_is_rejected():
    with pytest.raises(InvalidStateTransition):
        loaded().update((1, 1))


def test_drag_commits_valid_box():
    cropper = loaded()
    cropper.begin("se", (0, 0))
    cropper.update((-150, -100))
    assert cropper.visual == Rect(150, 100, 0, 0)
    assert cropper.box.w == 300
    cropper.end()
    assert cropper.box.snapshot() == Rect(150, 100, 0, 0)


def test_zoom_is_debounced():
    clock = FakeClock()
    cropper = loaded(clock=clock)
    stopped = []
    cropper.listen("stopped", lambda event, c: stopped.append(event))

    assert cropper.zoom(1) == pytest.approx(1.05)
    clock.now = 0.05
    assert not cropper.poll_zoom()
    cropper.zoom(1)
    clock.now = 0.12
    assert not cropper.poll_zoom()
    assert cropper.zoom_pending
    clock.now = 0.2
    assert cropper.poll_zoom(event="timer")
    assert stopped == ["timer"]
    assert not cropper.zoom_pending
    assert cropper.box.scale == pytest.approx(1.1)
    assert cropper.data()["width"] == 540


def test_zoom_with_explicit_time_and_zero_delta():
    cropper = loaded()
    cropper.zoom(-120, now=10.0)
    assert cropper.box.scale == pytest.approx(0.95)
    assert cropper.zoom(0) == pytest.approx(0.95)
    assert not cropper.poll_zoom(now=10.05)
    assert cropper.poll_zoom(now=10.2)


def test_zoom_out_is_bounded():
    cropper = loaded()
    for _ in range(40):
        cropper.zoom(-1)
    assert cropper.box.scale == pytest.approx(0.1)


def test_zoom_during_drag_waits_for_release():
    clock = FakeClock()
    cropper = loaded(clock=clock)
    stopped = []
    cropper.listen("stopped", lambda event, c: stopped.append(event))

    cropper.begin("se", (0, 0))
    cropper.update((-100, -50))
    scale = cropper.zoom(1)
    clock.now = 1.0
    assert not cropper.poll_zoom()
    assert not cropper.commit_zoom()
    assert cropper.dragging
    assert cropper.zoom_pending
    assert stopped == []

    assert cropper.end((-100, -50), event="release") == Rect(200, 150, 0, 0)
    assert stopped == ["release"]
    assert not cropper.zoom_pending
    assert not cropper.poll_zoom()
    assert cropper.box.scale == pytest.approx(scale)


def test_set_target_during_drag_keeps_session():
    cropper = loaded()
    cropper.begin("box", (0, 0))
    assert cropper.set_target((300, 100))
    assert cropper.dragging
    committed = cropper.end((10, 10))
    assert committed.w / committed.h == pytest.approx(3, abs=0.02)
    assert is_valid(committed, cropper.frame, cropper.policy)


def test_area_too_small_follows_the_drag():
    cropper = loaded({"id": "c", "target": [400, None]})
    assert not cropper.messages.has(AREA_TOO_SMALL)
    cropper.begin("se", (0, 0))
    cropper.update((-200, -100))
    assert cropper.messages.has(AREA_TOO_SMALL)
    cropper.update((0, 0))
    assert not cropper.messages.has(AREA_TOO_SMALL)
    cropper.end((-200, -100))
    assert cropper.messages.has(AREA_TOO_SMALL)


def test_image_too_small():
    cropper = loaded({"id": "c", "target": [1200, 800]})
    assert cropper.messages.has(IMAGE_TOO_SMALL)
    assert cropper.messages.has(AREA_TOO_SMALL)


def test_unreachable_minimum_reports_min_size():
    cropper = loaded(settings={"min_box_w": 400})
    assert cropper.messages.has(MIN_SIZE)
    assert cropper.box.snapshot() == Rect(300, 200, 0, 0)


def test_destroy():
    cropper = loaded({"id": "c", "target": [1200, 800]})
    cropper.listen("stopped", print)
    cropper.begin("box", (0, 0))
    cropper.destroy()
    assert cropper.destroyed
    assert not cropper.dragging
    assert len(cropper.messages) == 0
    assert cropper._listeners == {}


def test_options_object_is_accepted():
    cropper = Cropper(None, CropOptions(id="obj", target=(16, 9)))
    assert cropper.id == "obj"


def test_explicit_id_wins_over_options():
    cropper = Cropper("x", {"id": "y"})
    assert cropper.id == cropper.options.id == "x"

    options = CropOptions(id="y")
    cropper = Cropper("x", options)
    assert cropper.id == cropper.options.id == "x"
    assert options.id == "y"

    assert Cropper(5, {}).id == Cropper(5, {}).options.id == "5"


def test_registry_returns_existing_instance():
    registry = CropperRegistry()
    first = registry.create({"id": "a", "target": [4, 3]})
    second = registry.create({"id": "a"})
    assert first is second
    assert "a" in registry
    assert registry.get("a") is first
    assert registry.get("missing") is None
    assert len(registry) == 1


def test_registry_delete_destroys():
    registry = CropperRegistry()
    cropper = registry.create(CropOptions(id="a"))
    registry.create(CropOptions(id=7))
    assert registry.ids() == ["a", "7"]
    assert registry.has(7)
    assert registry.delete("a")
    assert cropper.destroyed
    assert not registry.delete("a")
    registry.clear()
    assert len(registry) == 0


ACTIONS = ["box", "n", "s", "e", "w", "nw", "ne", "sw", "se"]
TARGETS = [None, (300, 200), (16, 9), (1, 1), (9, 16), (4, 1), (400, None), (None, 300)]


def assert_box_is_valid(cropper):
    box = cropper.box.snapshot()
    frame = cropper.frame
    assert box.x >= 0 and box.y >= 0
    assert box.right <= frame.display_w + 0.02
    assert box.bottom <= frame.display_h + 0.02
    assert box.w >= cropper.min_w and box.h >= cropper.min_h
    if cropper.policy.locked:
        assert abs(box.w / box.h - cropper.policy.effective_ratio(frame)) <= 0.02
    assert is_valid(box, frame, cropper.policy, cropper.min_w, cropper.min_h)


@pytest.mark.parametrize("seed", range(20))
def test_random_sessions_keep_box_valid(seed):
    rng = random.Random(seed)
    clock = FakeClock()
    cropper = loaded(clock=clock)

    for _ in range(60):
        step = rng.choice(["drag", "drag", "target", "zoom", "resize"])
        if step == "drag":
            cropper.begin(rng.choice(ACTIONS), (0, 0))
            for _ in range(rng.randint(1, 4)):
                cropper.update((rng.uniform(-400, 400), rng.uniform(-400, 400)))
                if rng.random() < 0.3:
                    cropper.zoom(rng.choice([-1, 1]))
                    clock.now += 1.0
                    assert not cropper.poll_zoom()
            cropper.end()
            assert not cropper.zoom_pending
        elif step == "target":
            cropper.set_target(rng.choice(TARGETS))
        elif step == "zoom":
            cropper.zoom(rng.choice([-1, 1]))
            clock.now += 1.0
            assert cropper.poll_zoom()
        else:
            cropper.resize(rng.choice([150, 300, 450]))
        assert_box_is_valid(cropper)
