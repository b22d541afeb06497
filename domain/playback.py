"""Pause playback when too much of the content is watched without attention."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from domain.models import AttentionSegment

logger = logging.getLogger(__name__)


class Player(Protocol):
    """Host media element."""

    def pause(self) -> None: ...

    def play(self) -> None: ...

    def seek(self, seconds: float) -> None: ...


class PlaybackGuard:
    """Accumulates not-attentive time for one piece of content and pauses
    the player once it exceeds *lost_fraction* of the content duration.

    The pause fires once; a manual :meth:`resume` plays again and starts a
    fresh allowance.
    """

    def __init__(self, player: Optional[Player] = None, lost_fraction: float = 0.2) -> None:
        self.player = player
        self.lost_fraction = lost_fraction

        self._content_duration_s = 0.0
        self._started_at: Optional[float] = None
        self._lost_since: Optional[float] = None
        self._lost_accum_s = 0.0
        self._paused = False
        self._segments: list[AttentionSegment] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, now: float, content_duration_s: float) -> None:
        self._content_duration_s = max(0.0, content_duration_s)
        self._started_at = now
        self._lost_since = None
        self._lost_accum_s = 0.0
        self._paused = False
        self._segments = []

    def finish(self, now: float) -> list[AttentionSegment]:
        """Close any open lost segment and return all lost segments."""
        if self._lost_since is not None:
            self._close_segment(now)
        self._started_at = None
        return list(self._segments)

    # ------------------------------------------------------------------
    # Attention edges
    # ------------------------------------------------------------------

    def attention_lost(self, now: float) -> None:
        if self._started_at is None or self._lost_since is not None:
            return
        self._lost_since = now

    def attention_restored(self, now: float) -> None:
        if self._lost_since is None:
            return
        self._close_segment(now)

    # ------------------------------------------------------------------
    # Player control
    # ------------------------------------------------------------------

    def update(self, now: float) -> bool:
        """Pause if the lost-time allowance is exceeded; return paused state."""
        if self._paused or self._started_at is None or self._content_duration_s <= 0:
            return self._paused
        allowance = self.lost_fraction * self._content_duration_s
        if self.lost_seconds(now) > allowance:
            self._paused = True
            logger.info(
                "Attention lost for %.1fs (> %.1fs allowed); pausing playback.",
                self.lost_seconds(now), allowance,
            )
            if self.player is not None:
                self.player.pause()
        return self._paused

    def resume(self, now: float) -> None:
        """Manual resume by the user."""
        if self._lost_since is not None:
            # Still away: keep tracking from here against a fresh allowance
            self._close_segment(now)
            self._lost_since = now
        self._lost_accum_s = 0.0
        self._paused = False
        if self.player is not None:
            self.player.play()
        logger.info("Playback resumed.")

    def restart(self, now: float) -> None:
        if self.player is not None:
            self.player.seek(0.0)
        self.start(now, self._content_duration_s)
        if self.player is not None:
            self.player.play()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def lost_seconds(self, now: float) -> float:
        ongoing = now - self._lost_since if self._lost_since is not None else 0.0
        return self._lost_accum_s + ongoing

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def lost_segments(self) -> list[AttentionSegment]:
        return list(self._segments)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _close_segment(self, now: float) -> None:
        assert self._lost_since is not None
        self._segments.append(AttentionSegment(attentive=False, start_time=self._lost_since, end_time=now))
        self._lost_accum_s += now - self._lost_since
        self._lost_since = None
