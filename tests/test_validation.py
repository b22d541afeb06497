"""Tests for the attention validation payload and reference validator."""

from domain.models import AttentionResult
from domain.validation import ValidationPayload, validate_attention


def _payload(score: int = 90, watched: float = 30.0, total: float = 30.0, frames: int = 600) -> ValidationPayload:
    return ValidationPayload(
        content_id="clip-1",
        attention_score=score,
        watch_duration=watched,
        total_duration=total,
        frames_detected=frames,
        total_frames=frames,
    )


def test_all_checks_pass():
    result = validate_attention(_payload())
    assert result.validated
    assert result.checks == {"attentionPassed": True, "watchDurationPassed": True, "framesValid": True}
    assert result.reasons == []
    assert result.watch_percentage == 100
    assert result.message == "Attention validated! Reward eligible."


def test_low_score_fails_with_reason():
    result = validate_attention(_payload(score=70))
    assert not result.validated
    assert result.reasons == ["Attention score (70%) below 85%"]


def test_short_watch_fails_with_rounded_percentage():
    result = validate_attention(_payload(watched=27.0))
    assert not result.checks["watchDurationPassed"]
    assert result.watch_percentage == 90
    assert result.reasons == ["Watch time (90%) below 95%"]


def test_too_few_frames():
    result = validate_attention(_payload(frames=5))
    assert result.reasons == ["Insufficient tracking data"]
    assert result.message == "Attention requirements not met."


def test_zero_duration_content_fails_watch_check():
    result = validate_attention(_payload(total=0.0))
    assert result.watch_percentage == 0
    assert not result.checks["watchDurationPassed"]


def test_custom_thresholds():
    result = validate_attention(_payload(score=60, watched=24.0), required_score=50, required_watch_pct=80)
    assert result.validated


def test_payload_from_result_serialises_camel_case():
    payload = ValidationPayload.from_result(
        AttentionResult(score=88, passed=True, frames_detected=176, frames_total=200),
        content_id="promo-7",
        watch_duration=14.5,
        total_duration=15.0,
        user_id="u1",
    )
    data = payload.to_dict()
    assert data["contentId"] == "promo-7"
    assert data["attentionScore"] == 88
    assert data["framesDetected"] == 176
    assert data["totalFrames"] == 200
    assert data["userId"] == "u1"
    assert validate_attention(payload).to_dict()["validated"] is True
