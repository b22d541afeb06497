"""Compute attention session statistics from recorded samples."""

from __future__ import annotations

import statistics
from typing import Any

from domain.models import AttentionSample, AttentionSegment


def compute_summary(
    samples: list[AttentionSample],
    lost_segments: list[AttentionSegment],
    session_duration_s: float,
) -> dict[str, Any]:
    """Return a flat dict of session metrics suitable for JSON serialisation."""

    total = session_duration_s if session_duration_s > 0 else 1.0

    # ── Not-attentive stretches ────────────────────────────────────────────
    lost_ms = [seg.duration_ms for seg in lost_segments if not seg.attentive]
    lost_s = sum(lost_ms) / 1000.0

    # ── Per-sample counts ─────────────────────────────────────────────────
    n_attentive = sum(1 for s in samples if s.attentive)
    final_score = samples[-1].score if samples else 0

    # ── Timeline for charts (downsampled to ~5 Hz at a 20 Hz tick) ─────────
    timeline: list[dict[str, Any]] = []
    if samples:
        t0 = samples[0].timestamp_mono
        timeline = [
            {
                "t_s": round(s.timestamp_mono - t0, 3),
                "attentive": s.attentive,
                "score": s.score,
            }
            for s in samples[::4]
        ]

    return {
        "total_duration_s": round(session_duration_s, 3),
        "attentive_frames": n_attentive,
        "total_frames": len(samples),
        "final_score": final_score,
        "lost_s": round(lost_s, 3),
        "lost_pct": round(lost_s / total * 100, 1),
        "n_lost": len(lost_ms),
        "lost_durations_ms": [round(d, 1) for d in lost_ms],
        "avg_lost_ms": round(statistics.mean(lost_ms), 1) if lost_ms else 0.0,
        "median_lost_ms": round(statistics.median(lost_ms), 1) if lost_ms else 0.0,
        "max_lost_ms": round(max(lost_ms), 1) if lost_ms else 0.0,
        "timeline": timeline,
    }
