"""Tests for attention session summary computation."""

import pytest

from domain.metrics import compute_summary
from domain.models import AttentionSample, AttentionSegment


def _sample(t: float, attentive: bool, score: int = 100) -> AttentionSample:
    return AttentionSample(timestamp_mono=t, timestamp_wall=t + 1000, attentive=attentive, score=score)


def test_empty_session():
    result = compute_summary([], [], 0.0)
    assert result["total_duration_s"] == 0.0
    assert result["n_lost"] == 0
    assert result["final_score"] == 0
    assert result["timeline"] == []


def test_fully_attentive_session():
    samples = [_sample(i * 0.05, True) for i in range(200)]
    result = compute_summary(samples, [], 10.0)
    assert result["attentive_frames"] == 200
    assert result["total_frames"] == 200
    assert result["final_score"] == 100
    assert result["lost_pct"] == 0.0


def test_lost_segment_statistics():
    segments = [
        AttentionSegment(attentive=False, start_time=1.0, end_time=2.0),
        AttentionSegment(attentive=False, start_time=4.0, end_time=4.5),
        AttentionSegment(attentive=False, start_time=6.0, end_time=9.0),
    ]
    result = compute_summary([_sample(0.0, True, 55)], segments, 10.0)

    assert result["n_lost"] == 3
    assert result["lost_s"] == pytest.approx(4.5)
    assert result["lost_pct"] == pytest.approx(45.0)
    assert result["lost_durations_ms"] == [1000.0, 500.0, 3000.0]
    assert result["avg_lost_ms"] == pytest.approx(1500.0)
    assert result["median_lost_ms"] == pytest.approx(1000.0)
    assert result["max_lost_ms"] == pytest.approx(3000.0)
    assert result["final_score"] == 55


def test_attentive_segments_are_not_counted_as_lost():
    segments = [AttentionSegment(attentive=True, start_time=0.0, end_time=5.0)]
    result = compute_summary([], segments, 5.0)
    assert result["n_lost"] == 0
    assert result["lost_s"] == 0.0


def test_timeline_is_downsampled():
    samples = [_sample(i * 0.05, i % 2 == 0) for i in range(20)]
    timeline = compute_summary(samples, [], 1.0)["timeline"]
    assert len(timeline) == 5
    assert timeline[1]["t_s"] == pytest.approx(0.2)
