"""Tests for the remote-control orchestrator: dispatch, navigation,
activation and calibration helpers."""

import asyncio
import threading

import pytest

from app.config import Config, ConfigManager
from app.remote_control import RemoteControlOrchestrator
from calibration.gaze_calibration import CALIBRATION_POINTS
from domain.models import BlinkAction, BlinkCommand, GazeDirection, NavigationAction, Rect
from vision.camera import CameraError
from vision.frame_sampler import FrameSampler, SamplerState


class FakeControl:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def click(self) -> None:
        self.calls.append("click")

    def press(self) -> None:
        self.calls.append("press")

    def release(self) -> None:
        self.calls.append("release")


def _make(camera_factory, **settings):
    cm = ConfigManager(Config(**settings), save=lambda cfg: None)
    sampler = FrameSampler(camera_factory)
    actions, navs, events = [], [], []
    remote = RemoteControlOrchestrator(
        cm,
        sampler,
        on_action=lambda *a: actions.append(a),
        on_navigate=lambda *a: navs.append(a),
        viewport=(1000.0, 800.0),
        event_sink=events.append,
    )
    return remote, actions, navs, events


def _prime(remote, t: float, step: float = 0.03) -> float:
    for _ in range(10):
        remote.blink.process_brightness(0.5, t)
        t += step
    return t


def _blink(remote, t: float, step: float = 0.03) -> float:
    """Dip the eye-band brightness and recover; one blink per call."""
    for _ in range(6):
        remote.blink.process_brightness(0.1, t)
        t += step
    for _ in range(5):
        remote.blink.process_brightness(0.5, t)
        t += step
    return t


def _target_like(remote, control, t0: float = 0.0) -> float:
    remote.register_button("like", Rect(100, 100, 200, 100), control)
    remote.update_raw_gaze((0.2, 0.18), t0)        # (200, 144) px, inside
    remote.update_raw_gaze((0.2, 0.18), t0 + 0.9)  # past the 800 ms hold
    assert remote.current_target.button_id == "like"
    return t0 + 1.0


def _flick(remote, x0: float, x1: float, t: float) -> float:
    for i in range(4):
        remote.update_raw_gaze((x0, 0.5), t + i * 0.02)
    remote.update_raw_gaze((x1, 0.5), t + 0.08)
    return t + 0.08


# ── Blink dispatch ────────────────────────────────────────────────────────────

def test_pattern_without_target_is_discarded(camera_factory):
    remote, actions, _, _ = _make(camera_factory)
    t = _blink(remote, _prime(remote, 0.0))
    assert remote.pending_blink_count == 1

    remote.poll(t + 1.0)

    assert actions == []
    assert remote.pending_blink_count == 0
    assert remote.last_action is None


def test_single_blink_clicks_current_target(camera_factory):
    remote, actions, _, _ = _make(camera_factory)
    control = FakeControl()
    t = _target_like(remote, control)

    t = _blink(remote, _prime(remote, t))
    remote.poll(t + 1.0)

    assert control.calls == ["click"]
    assert actions == [("like", BlinkAction.CLICK, 1)]
    assert remote.last_action == "1× blink → click"
    assert remote.pending_blink_count == 0


def test_double_blink_long_press_releases_later(camera_factory):
    remote, actions, _, _ = _make(camera_factory)
    control = FakeControl()
    t = _target_like(remote, control)

    t = _prime(remote, t)
    t = _blink(remote, t)
    t = _blink(remote, t)
    done = t + 1.0
    remote.poll(done)

    assert actions == [("like", BlinkAction.LONG_PRESS, 2)]
    assert control.calls == ["press"]

    remote.poll(done + 0.4)
    assert control.calls == ["press"]
    remote.poll(done + 0.55)
    assert control.calls == ["press", "release"]


def test_triple_blink_uses_custom_binding(camera_factory):
    remote, actions, _, _ = _make(camera_factory)
    remote.set_blink_command(BlinkCommand("like", triple_blink=BlinkAction.CLICK))
    control = FakeControl()
    t = _target_like(remote, control)

    t = _prime(remote, t)
    for _ in range(3):
        t = _blink(remote, t)
    remote.poll(t + 1.0)

    assert actions == [("like", BlinkAction.CLICK, 3)]
    assert control.calls == ["click"]


def test_unbound_count_does_nothing(camera_factory):
    remote, actions, _, _ = _make(camera_factory)
    remote.set_blink_command(BlinkCommand("like", single_blink=BlinkAction.NONE))
    control = FakeControl()
    t = _target_like(remote, control)

    t = _blink(remote, _prime(remote, t))
    remote.poll(t + 1.0)

    assert actions == []
    assert control.calls == []


# ── Navigation ────────────────────────────────────────────────────────────────

def test_rapid_movement_navigates_once_per_cooldown(camera_factory):
    remote, _, navs, _ = _make(camera_factory)

    t = _flick(remote, 0.5, 0.95, 0.0)        # right
    assert navs == [(NavigationAction.PROMO_FEED, GazeDirection.RIGHT)]
    assert remote.last_navigation_action == NavigationAction.PROMO_FEED

    t = _flick(remote, 0.95, 0.05, 0.7)       # left, inside 1 s navigation cooldown
    assert len(navs) == 1

    _flick(remote, 0.05, 0.95, 1.5)           # right again, cooldown elapsed
    assert navs[-1] == (NavigationAction.PROMO_FEED, GazeDirection.RIGHT)
    assert len(navs) == 2


def test_last_navigation_action_expires(camera_factory):
    remote, _, navs, _ = _make(camera_factory)
    t = _flick(remote, 0.5, 0.95, 0.0)
    assert remote.last_navigation_action is not None

    remote.poll(t + 1.0)
    assert remote.last_navigation_action is not None
    remote.poll(t + 1.6)
    assert remote.last_navigation_action is None


def test_rapid_movement_respects_settings_and_bindings(camera_factory):
    remote, _, navs, _ = _make(camera_factory)
    remote.update_settings(rapid_movement_enabled=False)
    _flick(remote, 0.5, 0.95, 0.0)
    assert navs == []

    remote.update_settings(rapid_movement_enabled=True)
    remote.update_gaze_command(GazeDirection.LEFT, NavigationAction.FRIENDS_FEED, False)
    _flick(remote, 0.95, 0.05, 1.0)
    assert navs == []


# ── Activation ────────────────────────────────────────────────────────────────

def test_activate_and_deactivate(camera_factory):
    remote, _, _, _ = _make(camera_factory)

    async def run():
        await remote.activate()
        assert remote.is_active
        assert remote.sampler.is_running
        assert remote.settings.remote_enabled
        remote.update_raw_gaze((0.5, 0.5), 0.0)
        remote.deactivate()
        remote.deactivate()

    asyncio.run(run())

    assert not remote.is_active
    assert not remote.settings.remote_enabled
    assert remote.gaze_position is None
    assert remote.pending_blink_count == 0
    assert remote.current_target is None
    assert remote.sampler.state == SamplerState.IDLE
    assert camera_factory.cameras[0].stop_calls == 1


def test_deactivate_keeps_sampler_for_other_subscribers(camera_factory):
    remote, _, _, _ = _make(camera_factory)

    async def run():
        remote.sampler.subscribe("attention", lambda frame, now: None)
        await remote.sampler.start()
        await remote.activate()
        remote.deactivate()
        assert remote.sampler.is_running
        remote.sampler.stop()

    asyncio.run(run())
    assert len(camera_factory.cameras) == 1


def test_deactivate_releases_pending_long_press(camera_factory):
    remote, _, _, _ = _make(camera_factory)
    control = FakeControl()
    t = _target_like(remote, control)
    t = _prime(remote, t)
    t = _blink(remote, t)
    t = _blink(remote, t)
    remote.poll(t + 1.0)
    assert control.calls == ["press"]

    remote.deactivate()
    assert control.calls == ["press", "release"]


def test_activate_camera_failure(camera_factory):
    camera_factory.fail = True
    remote, _, _, _ = _make(camera_factory)

    with pytest.raises(CameraError):
        asyncio.run(remote.activate())
    assert not remote.is_active
    assert not remote.sampler.has_subscribers
    assert not remote.settings.remote_enabled


def test_deactivate_during_camera_acquisition_wins(camera_factory):
    camera_factory.gate = threading.Event()
    remote, _, _, _ = _make(camera_factory)

    async def run():
        task = asyncio.ensure_future(remote.activate())
        await asyncio.sleep(0)
        remote.deactivate()
        camera_factory.gate.set()
        await task

    asyncio.run(run())

    assert not remote.is_active
    assert not remote.settings.remote_enabled
    assert not remote.sampler.is_running
    assert not remote.sampler.has_subscribers
    assert camera_factory.cameras[0].stop_calls == 1


def test_deactivate_without_activate(camera_factory):
    remote, _, _, _ = _make(camera_factory)
    remote.deactivate()
    remote.deactivate()

    assert not remote.is_active
    assert not remote.settings.remote_enabled
    assert remote.sampler.state == SamplerState.IDLE
    assert camera_factory.cameras == []


def test_sampler_failure_turns_remote_off(camera_factory):
    remote, _, _, _ = _make(camera_factory)

    def broken(frame, now):
        raise ValueError("bad frame")

    async def run():
        remote.sampler.subscribe("broken", broken)
        remote.sampler.interval_ms = 10.0
        await remote.activate()
        assert remote.is_active
        await asyncio.sleep(0.05)

    asyncio.run(run())
    assert remote.sampler.state == SamplerState.ERROR
    assert not remote.is_active


def test_process_frame_runs_pipeline(camera_factory):
    remote, _, _, _ = _make(camera_factory)

    async def run():
        await remote.activate()
        remote.sampler.tick(now=0.0)
        # Black frame: zero eye-band brightness, no skin pixels for a gaze estimate
        assert remote.blink.baseline == pytest.approx(0.0)
        assert remote.gaze_position is None
        remote.deactivate()

    asyncio.run(run())
    assert remote.blink.baseline is None
    assert remote.sampler.frames_delivered == 1


# ── Settings & calibration ────────────────────────────────────────────────────

def test_settings_changes_reach_detectors(camera_factory):
    remote, _, _, _ = _make(camera_factory)
    remote.update_settings(gaze_hold_ms=300.0, blink_pattern_timeout_ms=900.0, edge_threshold=0.5)
    assert remote.ghosts.hold_ms == 300.0
    assert remote.blink.pattern_timeout_ms == 900.0
    assert remote.gaze.edge_threshold == 0.5


def test_record_calibration_point_needs_gaze(camera_factory):
    remote, _, _, _ = _make(camera_factory)
    remote.start_calibration()
    assert remote.record_calibration_point(100.0, 80.0) is False
    assert remote.calibration.step == 0


def test_calibration_run_through_orchestrator(camera_factory):
    remote, _, _, _ = _make(camera_factory)
    vw, vh = remote.viewport
    remote.start_calibration()
    for tx, ty in CALIBRATION_POINTS:
        # User's raw gaze covers only the middle half of the screen
        remote.update_raw_gaze((0.25 + tx * 0.5, 0.25 + ty * 0.5), 0.0)
        assert remote.record_calibration_point(tx * vw, ty * vh)

    assert remote.calibration.is_calibrated
    assert not remote.calibration.is_running
    pos = remote.update_raw_gaze((0.25 + 0.9 * 0.5, 0.25 + 0.1 * 0.5), 1.0)
    assert pos.calibrated == pytest.approx((900.0, 80.0))

    remote.reset_calibration()
    assert not remote.calibration.is_calibrated
