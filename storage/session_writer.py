"""Line-buffered writer for content-viewing session records."""

from __future__ import annotations

import csv
import json
import logging
from pathlib import Path
from typing import Any

from domain.models import AttentionSample, AttentionSegment, RemoteEvent

logger = logging.getLogger(__name__)

_SAMPLE_FIELDS = ["timestamp_mono", "timestamp_wall", "attentive", "score"]
_SEGMENT_FIELDS = ["attentive", "start_time", "end_time", "duration_ms"]
_EVENT_FIELDS = ["timestamp_mono", "kind", "detail", "target"]


class SessionWriter:
    """Creates a session directory and writes CSV/JSON files with
    line-buffering so data is not lost if the process crashes."""

    def __init__(self, session_dir: Path) -> None:
        self.session_dir = session_dir
        session_dir.mkdir(parents=True, exist_ok=True)

        # buffering=1 is line buffering in text mode
        self._af = open(session_dir / "attention.csv", "w", newline="", buffering=1, encoding="utf-8")
        self._sf = open(session_dir / "segments.csv", "w", newline="", buffering=1, encoding="utf-8")
        self._ef = open(session_dir / "events.csv", "w", newline="", buffering=1, encoding="utf-8")

        self._aw = csv.DictWriter(self._af, fieldnames=_SAMPLE_FIELDS)
        self._sw = csv.DictWriter(self._sf, fieldnames=_SEGMENT_FIELDS)
        self._ew = csv.DictWriter(self._ef, fieldnames=_EVENT_FIELDS)

        self._aw.writeheader()
        self._sw.writeheader()
        self._ew.writeheader()

        self._closed = False
        logger.info("SessionWriter opened at %s", session_dir)

    # ------------------------------------------------------------------
    # Write methods
    # ------------------------------------------------------------------

    def write_sample(self, s: AttentionSample) -> None:
        if self._closed:
            return
        self._aw.writerow(
            {
                "timestamp_mono": f"{s.timestamp_mono:.6f}",
                "timestamp_wall": f"{s.timestamp_wall:.6f}",
                "attentive": int(s.attentive),
                "score": s.score,
            }
        )

    def write_segment(self, seg: AttentionSegment) -> None:
        if self._closed:
            return
        self._sw.writerow(
            {
                "attentive": int(seg.attentive),
                "start_time": f"{seg.start_time:.6f}",
                "end_time": f"{seg.end_time:.6f}",
                "duration_ms": f"{seg.duration_ms:.2f}",
            }
        )

    def write_event(self, ev: RemoteEvent) -> None:
        if self._closed:
            return
        self._ew.writerow(
            {
                "timestamp_mono": f"{ev.timestamp_mono:.6f}",
                "kind": ev.kind,
                "detail": ev.detail,
                "target": ev.target or "",
            }
        )

    def write_meta(self, meta: dict[str, Any]) -> None:
        _write_json(self.session_dir / "session_meta.json", meta)

    def write_summary(self, summary: dict[str, Any]) -> None:
        _write_json(self.session_dir / "summary.json", summary)

    def write_result(self, result: dict[str, Any]) -> None:
        _write_json(self.session_dir / "validation.json", result)

    # ------------------------------------------------------------------
    # Close
    # ------------------------------------------------------------------

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._af.close()
        self._sf.close()
        self._ef.close()
        logger.info("SessionWriter closed.")


def _write_json(path: Path, data: Any) -> None:
    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, default=str)
    except OSError as exc:
        logger.error("Failed to write %s: %s", path, exc)
