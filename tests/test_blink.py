"""Tests for blink detection and blink-pattern grouping."""

import numpy as np
import pytest

from domain.blink import BlinkDetector, BlinkPatternTracker
from domain.models import EyeState, FrameBuffer


def _dip(det: BlinkDetector, t: float, step: float = 0.03) -> float:
    for _ in range(6):
        det.process_brightness(0.1, t)
        t += step
    for _ in range(5):
        det.process_brightness(0.5, t)
        t += step
    return t


def _primed(step: float = 0.03) -> tuple[BlinkDetector, float]:
    det = BlinkDetector()
    t = 0.0
    for _ in range(10):
        det.process_brightness(0.5, t)
        t += step
    return det, t


# ── Pattern tracker ───────────────────────────────────────────────────────────

def test_pattern_finalizes_after_timeout():
    tracker = BlinkPatternTracker(timeout_ms=600.0)
    fired = []
    tracker.set_on_pattern(fired.append)

    tracker.add_blink(0.0)
    tracker.add_blink(0.3)
    tracker.add_blink(0.6)
    assert tracker.poll(1.1) is None  # deadline re-armed at 1.2
    assert fired == []

    assert tracker.poll(1.25) == 3
    assert fired == [3]
    assert tracker.count == 0


def test_next_blink_after_finalize_starts_at_one():
    tracker = BlinkPatternTracker(timeout_ms=600.0)
    fired = []
    tracker.set_on_pattern(fired.append)

    tracker.add_blink(0.0)
    tracker.add_blink(0.2)
    tracker.poll(1.0)
    assert tracker.add_blink(1.5) == 1
    assert tracker.started_at == 1.5
    tracker.poll(2.5)
    assert fired == [2, 1]


def test_poll_without_blinks_never_fires():
    tracker = BlinkPatternTracker()
    fired = []
    tracker.set_on_pattern(fired.append)
    assert tracker.poll(100.0) is None
    assert fired == []


# ── Detector ──────────────────────────────────────────────────────────────────

def test_first_sample_seeds_baseline():
    det = BlinkDetector()
    assert det.process_brightness(0.4, 0.0) is False
    assert det.baseline == pytest.approx(0.4)
    assert det.eye_state == EyeState.OPEN


def test_brightness_dip_counts_one_blink():
    det, t = _primed()
    blinks = []
    det.set_callbacks(on_blink=blinks.append)

    t = _dip(det, t)

    assert det.blink_count == 1
    assert len(blinks) == 1
    assert det.pending_count == 1
    assert det.eye_state == EyeState.OPEN


def test_eye_openness_drops_while_closed():
    det, t = _primed()
    for _ in range(4):
        det.process_brightness(0.1, t)
        t += 0.03
    assert det.eye_state == EyeState.CLOSED
    assert det.eye_openness < 0.5


def test_blinks_inside_cooldown_are_ignored():
    det, t = _primed(step=0.01)
    t = _dip(det, t, step=0.01)
    _dip(det, t, step=0.01)  # reopens ~110 ms after the first blink
    assert det.blink_count == 1


def test_two_blinks_form_one_pattern():
    det, t = _primed()
    patterns = []
    det.set_callbacks(on_pattern=patterns.append)

    t = _dip(det, t)
    t = _dip(det, t)
    assert det.poll(t) is None
    det.poll(t + 1.0)

    assert patterns == [2]
    assert det.pending_count == 0


def test_stop_resets_everything():
    det, t = _primed()
    _dip(det, t)
    det.stop()

    assert det.baseline is None
    assert det.blink_count == 0
    assert det.pending_count == 0
    assert det.last_blink_time is None
    assert det.eye_state == EyeState.OPEN
    assert det.eye_openness == 1.0


def test_pattern_timeout_is_adjustable():
    det = BlinkDetector(pattern_timeout_ms=600.0)
    det.pattern_timeout_ms = 900.0
    assert det.patterns.timeout_ms == 900.0


def test_process_frame_reads_eye_band():
    pixels = np.full((240, 320, 4), 128, dtype=np.uint8)
    det = BlinkDetector()
    det.process_frame(FrameBuffer(pixels=pixels, timestamp_mono=0.0), 0.0)
    assert det.baseline == pytest.approx(128 / 255.0, abs=1e-3)


def test_stop_before_any_frame_is_safe():
    det = BlinkDetector()
    det.stop()
    det.stop()
    assert det.baseline is None
    assert det.pending_count == 0
    assert det.eye_state == EyeState.OPEN
