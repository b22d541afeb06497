"""Attention validation payload and the reference reward-eligibility rules."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from domain.models import AttentionResult

logger = logging.getLogger(__name__)

REQUIRED_ATTENTION_SCORE = 85
REQUIRED_WATCH_PERCENTAGE = 95
MIN_FRAMES_REQUIRED = 10


@dataclass
class ValidationPayload:
    content_id: str
    attention_score: int
    watch_duration: float  # seconds actually watched
    total_duration: float  # content length in seconds
    frames_detected: int
    total_frames: int
    user_id: str = "anonymous"
    promo_id: Optional[str] = None

    @classmethod
    def from_result(
        cls,
        result: AttentionResult,
        content_id: str,
        watch_duration: float,
        total_duration: float,
        user_id: str = "anonymous",
    ) -> "ValidationPayload":
        return cls(
            content_id=content_id,
            attention_score=result.score,
            watch_duration=watch_duration,
            total_duration=total_duration,
            frames_detected=result.frames_detected,
            total_frames=result.frames_total,
            user_id=user_id,
        )

    def to_dict(self) -> dict:
        return {
            "userId": self.user_id,
            "contentId": self.content_id,
            "promoId": self.promo_id,
            "attentionScore": self.attention_score,
            "watchDuration": self.watch_duration,
            "totalDuration": self.total_duration,
            "framesDetected": self.frames_detected,
            "totalFrames": self.total_frames,
        }


@dataclass
class ValidationResult:
    validated: bool
    attention_score: int
    watch_percentage: int
    checks: dict[str, bool] = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)
    validated_at: str = ""

    @property
    def message(self) -> str:
        if self.validated:
            return "Attention validated! Reward eligible."
        return "Attention requirements not met."

    def to_dict(self) -> dict:
        data = dataclasses.asdict(self)
        data["message"] = self.message
        return data


Validator = Callable[[ValidationPayload], ValidationResult]


def validate_attention(
    payload: ValidationPayload,
    required_score: int = REQUIRED_ATTENTION_SCORE,
    required_watch_pct: float = REQUIRED_WATCH_PERCENTAGE,
    min_frames: int = MIN_FRAMES_REQUIRED,
) -> ValidationResult:
    """Offline stand-in for the reward service's validation endpoint."""
    if payload.total_duration > 0:
        watch_pct = payload.watch_duration / payload.total_duration * 100.0
    else:
        watch_pct = 0.0

    checks = {
        "attentionPassed": payload.attention_score >= required_score,
        "watchDurationPassed": watch_pct >= required_watch_pct,
        "framesValid": payload.total_frames >= min_frames,
    }
    validated = all(checks.values())

    reasons: list[str] = []
    if not checks["attentionPassed"]:
        reasons.append(f"Attention score ({payload.attention_score}%) below {required_score}%")
    if not checks["watchDurationPassed"]:
        reasons.append(f"Watch time ({int(watch_pct + 0.5)}%) below {required_watch_pct:g}%")
    if not checks["framesValid"]:
        reasons.append("Insufficient tracking data")

    logger.info(
        "Validation for %s: score=%d%% watch=%.0f%% frames=%d -> %s",
        payload.content_id, payload.attention_score, watch_pct,
        payload.total_frames, "passed" if validated else "failed",
    )
    return ValidationResult(
        validated=validated,
        attention_score=payload.attention_score,
        watch_percentage=int(watch_pct + 0.5),
        checks=checks,
        reasons=reasons,
        validated_at=datetime.now(timezone.utc).isoformat(),
    )
