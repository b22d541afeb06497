"""Tests for the attention-driven playback guard."""

import pytest

from domain.playback import PlaybackGuard


class FakePlayer:
    def __init__(self) -> None:
        self.calls: list[str] = []

    def pause(self) -> None:
        self.calls.append("pause")

    def play(self) -> None:
        self.calls.append("play")

    def seek(self, seconds: float) -> None:
        self.calls.append(f"seek {seconds:g}")


def _guard(duration: float = 10.0) -> tuple[PlaybackGuard, FakePlayer]:
    player = FakePlayer()
    guard = PlaybackGuard(player, lost_fraction=0.2)
    guard.start(0.0, duration)
    return guard, player


def test_pauses_once_when_lost_exceeds_allowance():
    guard, player = _guard()
    guard.attention_lost(1.0)

    assert guard.update(2.5) is False
    assert guard.update(3.1) is True
    assert guard.update(4.0) is True
    assert player.calls == ["pause"]


def test_lost_time_accumulates_across_segments():
    guard, player = _guard()
    guard.attention_lost(1.0)
    guard.attention_restored(2.0)
    guard.attention_lost(3.0)
    guard.attention_restored(4.2)

    assert guard.lost_seconds(5.0) == pytest.approx(2.2)
    assert guard.update(5.0) is True
    assert [seg.duration_ms for seg in guard.lost_segments] == pytest.approx([1000.0, 1200.0])


def test_attention_edges_before_start_are_ignored():
    guard = PlaybackGuard()
    guard.attention_lost(0.0)
    assert guard.lost_seconds(5.0) == 0.0


def test_resume_starts_a_fresh_allowance():
    guard, player = _guard()
    guard.attention_lost(0.0)
    guard.update(2.5)
    assert guard.is_paused

    guard.resume(3.0)
    assert not guard.is_paused
    assert player.calls == ["pause", "play"]
    assert guard.lost_seconds(3.0) == 0.0

    # Still away after resuming: counts again from the resume point
    assert guard.update(4.5) is False
    assert guard.update(5.1) is True


def test_restart_seeks_to_start():
    guard, player = _guard()
    guard.attention_lost(1.0)
    guard.update(4.0)
    guard.restart(5.0)

    assert player.calls == ["pause", "seek 0", "play"]
    assert not guard.is_paused
    assert guard.lost_segments == []


def test_finish_closes_open_segment():
    guard, _ = _guard()
    guard.attention_lost(6.0)
    segments = guard.finish(8.0)
    assert len(segments) == 1
    assert segments[0].attentive is False
    assert segments[0].duration_ms == pytest.approx(2000.0)


def test_zero_duration_never_pauses():
    guard, player = _guard(duration=0.0)
    guard.attention_lost(0.0)
    assert guard.update(100.0) is False
    assert player.calls == []
