"""Tests for the attention estimator."""

import random

import numpy as np
import pytest

from domain.attention import AttentionEstimator
from domain.models import FrameBuffer


def _frame() -> FrameBuffer:
    return FrameBuffer(pixels=np.zeros((240, 320, 4), dtype=np.uint8), timestamp_mono=0.0)


def test_score_is_zero_without_frames():
    est = AttentionEstimator()
    assert est.score == 0
    assert est.result().frames_total == 0
    assert est.result().passed is False


def test_score_stays_within_bounds():
    rng = random.Random(7)
    est = AttentionEstimator()
    for i in range(500):
        est.observe(rng.random() < 0.6, i * 0.05)
        assert 0 <= est.score <= 100
        assert est.frames_attentive <= est.frames_total


def test_score_rounds_half_up():
    est = AttentionEstimator()
    est.observe(True, 0.0)
    for i in range(7):
        est.observe(False, 0.1 * (i + 1))
    assert est.score == 13  # 12.5 %


def test_lost_and_restored_fire_once_per_edge():
    est = AttentionEstimator()
    lost, restored = [], []
    est.set_callbacks(on_lost=lost.append, on_restored=restored.append)

    for t, face in enumerate([True, True, False, False, False, True, True, False]):
        est.observe(face, float(t))

    assert lost == [2.0, 7.0]
    assert restored == [5.0]


def test_hidden_page_is_not_attentive():
    est = AttentionEstimator()
    lost = []
    est.set_callbacks(on_lost=lost.append)

    est.set_page_visible(False, 1.0)
    assert lost == [1.0]
    assert est.observe(True, 2.0) is False
    assert est.face_detected
    assert lost == [1.0]

    est.set_page_visible(True, 3.0)
    assert est.observe(True, 4.0) is True


def test_reset_clears_counters():
    est = AttentionEstimator()
    est.observe(False, 0.0)
    est.reset()
    assert est.frames_total == 0
    assert est.currently_attentive


def test_result_against_threshold():
    est = AttentionEstimator(threshold=85)
    for i in range(20):
        est.observe(i >= 3, i * 0.05)  # 17 of 20 = 85 %
    result = est.result()
    assert result.score == 85
    assert result.passed
    assert (result.frames_detected, result.frames_total) == (17, 20)


def test_process_frame_uses_detector():
    est = AttentionEstimator(detector=lambda frame: True)
    assert est.process_frame(_frame(), 0.0) is True
    assert est.score == 100


def test_process_frame_without_detector_raises():
    with pytest.raises(RuntimeError):
        AttentionEstimator().process_frame(_frame(), 0.0)
