"""Per-frame attention scoring with edge-triggered lost/restored events."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from domain.models import AttentionResult, FrameBuffer

logger = logging.getLogger(__name__)

PresenceDetector = Callable[[FrameBuffer], bool]
EdgeCallback = Callable[[float], None]


class AttentionEstimator:
    """Counts attentive frames over a content-viewing session.

    A frame is attentive when the presence detector finds a face *and* the
    host page is in the foreground.  ``on_attention_lost`` and
    ``on_attention_restored`` fire once per transition, never on steady
    state.
    """

    def __init__(
        self,
        detector: Optional[PresenceDetector] = None,
        threshold: int = 85,
    ) -> None:
        self.detector = detector
        self.threshold = threshold

        self._frames_total = 0
        self._frames_attentive = 0
        self._was_attentive = True
        self._face_detected = False
        self._page_visible = True

        self._on_lost: Optional[EdgeCallback] = None
        self._on_restored: Optional[EdgeCallback] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_callbacks(
        self,
        on_lost: Optional[EdgeCallback] = None,
        on_restored: Optional[EdgeCallback] = None,
    ) -> None:
        self._on_lost = on_lost
        self._on_restored = on_restored

    def process_frame(self, frame: FrameBuffer, now: float) -> bool:
        if self.detector is None:
            raise RuntimeError("AttentionEstimator has no presence detector.")
        return self.observe(self.detector(frame), now)

    def observe(self, face_detected: bool, now: float) -> bool:
        """Fold one classification into the counters; return attentiveness."""
        self._face_detected = face_detected
        attentive = face_detected and self._page_visible

        self._frames_total += 1
        if attentive:
            self._frames_attentive += 1

        if attentive and not self._was_attentive:
            self._was_attentive = True
            logger.debug("Attention restored (score %d%%)", self.score)
            if self._on_restored:
                self._on_restored(now)
        elif not attentive and self._was_attentive:
            self._was_attentive = False
            logger.debug("Attention lost (score %d%%)", self.score)
            if self._on_lost:
                self._on_lost(now)

        return attentive

    def set_page_visible(self, visible: bool, now: float) -> None:
        self._page_visible = visible
        if not visible and self._was_attentive:
            self._was_attentive = False
            logger.debug("Page hidden; attention lost.")
            if self._on_lost:
                self._on_lost(now)

    def reset(self) -> None:
        self._frames_total = 0
        self._frames_attentive = 0
        self._was_attentive = True

    def result(self) -> AttentionResult:
        score = self.score
        passed = score >= self.threshold
        logger.info("Attention result: %d%% (threshold %d%%)", score, self.threshold)
        return AttentionResult(
            score=score,
            passed=passed,
            frames_detected=self._frames_attentive,
            frames_total=self._frames_total,
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def score(self) -> int:
        if self._frames_total == 0:
            return 0
        # Round half up
        return int(self._frames_attentive * 100 / self._frames_total + 0.5)

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def frames_attentive(self) -> int:
        return self._frames_attentive

    @property
    def currently_attentive(self) -> bool:
        return self._was_attentive

    @property
    def face_detected(self) -> bool:
        return self._face_detected

    @property
    def page_visible(self) -> bool:
        return self._page_visible
