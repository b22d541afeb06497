"""Tests for gaze zone classification and rapid-movement detection."""

import pytest

from domain.gaze_direction import GazeDirectionTracker
from domain.models import GazeDirection

W, H = 1000.0, 800.0


def _tracker(**kwargs) -> GazeDirectionTracker:
    return GazeDirectionTracker(viewport=(W, H), **kwargs)


@pytest.mark.parametrize(
    "x, y, expected",
    [
        (0.0, 0.0, GazeDirection.CENTER),
        (0.25, -0.25, GazeDirection.CENTER),
        (-0.8, 0.1, GazeDirection.LEFT),
        (0.8, 0.5, GazeDirection.RIGHT),
        (0.2, -0.6, GazeDirection.UP),
        (-0.4, 0.9, GazeDirection.DOWN),
    ],
)
def test_classify_zones(x, y, expected):
    assert _tracker(edge_threshold=0.3).classify(x, y) == expected


def test_update_normalises_screen_position():
    tr = _tracker()
    assert tr.update_gaze_position(W / 2, H / 2, 0.0) == GazeDirection.CENTER
    assert tr.normalized_position == pytest.approx((0.0, 0.0))
    assert tr.update_gaze_position(0.0, H / 2, 0.1) == GazeDirection.LEFT
    assert tr.normalized_position == pytest.approx((-1.0, 0.0))
    assert tr.is_tracking


def test_direction_change_callback():
    tr = _tracker()
    changes = []
    tr.set_callbacks(on_direction_change=changes.append)
    tr.update_gaze_position(W / 2, H / 2, 0.0)
    tr.update_gaze_position(W / 2, H, 1.0)
    tr.update_gaze_position(W / 2, H, 2.0)
    assert changes == [GazeDirection.DOWN]


def test_rapid_movement_needs_three_samples():
    tr = _tracker()
    flicks = []
    tr.set_callbacks(on_rapid_movement=flicks.append)
    tr.update_gaze_position(W / 2, H / 2, 0.0)
    tr.update_gaze_position(W, H / 2, 0.02)
    assert flicks == []


def test_rapid_movement_detected_on_dominant_axis():
    tr = _tracker()
    flicks = []
    tr.set_callbacks(on_rapid_movement=flicks.append)
    tr.update_gaze_position(W / 2, H / 2, 0.0)
    tr.update_gaze_position(W / 2, H / 2, 0.02)
    tr.update_gaze_position(W / 2, H * 0.05, 0.04)  # 360 px up in 40 ms
    assert flicks == [GazeDirection.UP]
    assert tr.last_rapid_movement == GazeDirection.UP


def test_slow_drift_is_not_rapid():
    tr = _tracker()
    flicks = []
    tr.set_callbacks(on_rapid_movement=flicks.append)
    for i in range(10):
        tr.update_gaze_position(W / 2 + i * 10.0, H / 2, i * 0.05)  # 200 px/s
    assert flicks == []


def test_rapid_movement_cooldown():
    tr = _tracker(rapid_cooldown_ms=500.0)
    flicks = []
    tr.set_callbacks(on_rapid_movement=flicks.append)

    for t in (0.0, 0.02, 0.04):
        tr.update_gaze_position(W / 2, H / 2, t)
    tr.update_gaze_position(W, H / 2, 0.06)
    for t in (0.08, 0.1, 0.12):
        tr.update_gaze_position(W, H / 2, t)
    tr.update_gaze_position(0.0, H / 2, 0.14)  # within 500 ms
    assert flicks == [GazeDirection.RIGHT]

    for t in (0.6, 0.62, 0.64, 0.66):
        tr.update_gaze_position(0.0, H / 2, t)
    tr.update_gaze_position(W, H / 2, 0.68)
    assert flicks == [GazeDirection.RIGHT, GazeDirection.RIGHT]


def test_history_is_bounded_and_reset():
    tr = _tracker()
    for i in range(25):
        tr.update_gaze_position(W / 2, H / 2, i * 0.05)
    assert len(tr.history) == 10

    tr.reset_tracking()
    assert tr.history == []
    assert tr.current_direction == GazeDirection.CENTER
    assert not tr.is_tracking


def test_disabled_tracker_ignores_samples():
    tr = _tracker()
    tr.enabled = False
    tr.update_gaze_position(0.0, 0.0, 0.0)
    assert tr.history == []
