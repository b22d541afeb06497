"""Blink detection from eye-band brightness and blink-pattern grouping."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

from domain.models import EyeState, FrameBuffer
from vision.frame_analysis import eye_region_brightness

logger = logging.getLogger(__name__)

_HISTORY_LEN = 5
_BASELINE_DECAY = 0.99


class BlinkPatternTracker:
    """Groups blinks that arrive within *timeout_ms* of each other.

    Each blink (re)arms a finalize deadline.  :meth:`poll` emits the
    accumulated count once the deadline passes with no further blink, then
    clears it, so the next blink starts a new pattern at 1.
    """

    def __init__(self, timeout_ms: float = 600.0) -> None:
        self.timeout_ms = timeout_ms
        self._count = 0
        self._started_at: Optional[float] = None
        self._deadline: Optional[float] = None
        self._on_pattern: Optional[Callable[[int], None]] = None

    def set_on_pattern(self, callback: Callable[[int], None]) -> None:
        self._on_pattern = callback

    def add_blink(self, now: float) -> int:
        if self._count == 0:
            self._started_at = now
        self._count += 1
        self._deadline = now + self.timeout_ms / 1000.0
        return self._count

    def poll(self, now: float) -> Optional[int]:
        """Finalize the pattern if its deadline has passed."""
        if self._deadline is None or now < self._deadline:
            return None
        count = self._count
        self.clear()
        if count > 0:
            logger.debug("Blink pattern complete: %d", count)
            if self._on_pattern:
                self._on_pattern(count)
            return count
        return None

    def clear(self) -> None:
        self._count = 0
        self._started_at = None
        self._deadline = None

    @property
    def count(self) -> int:
        return self._count

    @property
    def started_at(self) -> Optional[float]:
        return self._started_at

    @property
    def deadline(self) -> Optional[float]:
        return self._deadline


class BlinkDetector:
    """Detects blinks as a dip in eye-band brightness against a slowly
    adapting baseline.

    State machine: OPEN --closed--> CLOSED --open--> OPEN, and the
    CLOSED->OPEN edge counts as a blink only if *cooldown_ms* has elapsed
    since the last counted blink.
    """

    def __init__(
        self,
        threshold: float = 0.25,
        cooldown_ms: float = 150.0,
        pattern_timeout_ms: float = 600.0,
    ) -> None:
        self.threshold = threshold
        self.cooldown_ms = cooldown_ms
        self.patterns = BlinkPatternTracker(pattern_timeout_ms)

        self._baseline: Optional[float] = None
        self._history: deque[float] = deque(maxlen=_HISTORY_LEN)
        self._eye_state = EyeState.OPEN
        self._last_blink: Optional[float] = None
        self._eye_openness = 1.0
        self._blink_count = 0

        self._on_blink: Optional[Callable[[float], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_callbacks(
        self,
        on_blink: Optional[Callable[[float], None]] = None,
        on_pattern: Optional[Callable[[int], None]] = None,
    ) -> None:
        self._on_blink = on_blink
        if on_pattern is not None:
            self.patterns.set_on_pattern(on_pattern)

    @property
    def pattern_timeout_ms(self) -> float:
        return self.patterns.timeout_ms

    @pattern_timeout_ms.setter
    def pattern_timeout_ms(self, value: float) -> None:
        self.patterns.timeout_ms = value

    def process_frame(self, frame: FrameBuffer, now: float) -> bool:
        return self.process_brightness(eye_region_brightness(frame), now)

    def process_brightness(self, brightness: float, now: float) -> bool:
        """Feed one brightness sample; return True if a blink was counted."""
        self.patterns.poll(now)

        self._history.append(brightness)
        smoothed = sum(self._history) / len(self._history)

        if self._baseline is None:
            self._baseline = smoothed
            return False

        self._baseline = self._baseline * _BASELINE_DECAY + smoothed * (1.0 - _BASELINE_DECAY)
        if self._baseline <= 0.0:
            return False

        deviation = (self._baseline - smoothed) / self._baseline
        self._eye_openness = max(0.0, min(1.0, 1.0 - deviation * 3.0))
        closed = deviation > self.threshold

        return self._transition(closed, now)

    def poll(self, now: float) -> Optional[int]:
        """Finalize a pending pattern without a new sample."""
        return self.patterns.poll(now)

    def stop(self) -> None:
        """Reset to the initial state so a later session starts clean."""
        self._baseline = None
        self._history.clear()
        self._eye_state = EyeState.OPEN
        self._last_blink = None
        self._eye_openness = 1.0
        self._blink_count = 0
        self.patterns.clear()
        logger.debug("BlinkDetector reset.")

    def reset_blink_count(self) -> None:
        self._blink_count = 0
        self.patterns.clear()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def eye_state(self) -> EyeState:
        return self._eye_state

    @property
    def eye_openness(self) -> float:
        return self._eye_openness

    @property
    def blink_count(self) -> int:
        return self._blink_count

    @property
    def pending_count(self) -> int:
        return self.patterns.count

    @property
    def baseline(self) -> Optional[float]:
        return self._baseline

    @property
    def last_blink_time(self) -> Optional[float]:
        return self._last_blink

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _transition(self, closed: bool, now: float) -> bool:
        if self._eye_state == EyeState.OPEN:
            if closed:
                self._eye_state = EyeState.CLOSED
            return False

        # CLOSED
        if closed:
            return False
        self._eye_state = EyeState.OPEN

        if self._last_blink is not None and (now - self._last_blink) * 1000.0 <= self.cooldown_ms:
            return False

        self._last_blink = now
        self._blink_count += 1
        count = self.patterns.add_blink(now)
        logger.debug("Blink detected; pattern count %d", count)
        if self._on_blink:
            self._on_blink(now)
        return True
