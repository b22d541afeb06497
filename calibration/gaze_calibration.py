"""5-point affine gaze calibration (per-axis offset + scale)."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Callable, Optional

import numpy as np

logger = logging.getLogger(__name__)

# Corners at 10 % / 90 % margins, then centre; normalised [0,1] coords
CALIBRATION_POINTS: list[tuple[float, float]] = [
    (0.1, 0.1),
    (0.9, 0.1),
    (0.9, 0.9),
    (0.1, 0.9),
    (0.5, 0.5),
]

SCALE_MIN = 0.5
SCALE_MAX = 2.0
MIN_RAW_SPREAD = 0.1


@dataclass
class CalibrationModel:
    offset_x: float = 0.0
    offset_y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    is_calibrated: bool = False
    calibrated_at: Optional[float] = None  # wall-clock seconds

    def apply(self, raw_x: float, raw_y: float) -> tuple[float, float]:
        """Scale around the normalised centre, then shift by the offset."""
        x = (raw_x - 0.5) * self.scale_x + 0.5 + self.offset_x
        y = (raw_y - 0.5) * self.scale_y + 0.5 + self.offset_y
        return x, y

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "CalibrationModel":
        model = cls(
            offset_x=float(data.get("offset_x", 0.0)),
            offset_y=float(data.get("offset_y", 0.0)),
            scale_x=float(data.get("scale_x", 1.0)),
            scale_y=float(data.get("scale_y", 1.0)),
            is_calibrated=bool(data.get("is_calibrated", False)),
            calibrated_at=data.get("calibrated_at"),
        )
        # Stored files may predate the clamp or be hand-edited
        model.scale_x = _clamp_scale(model.scale_x)
        model.scale_y = _clamp_scale(model.scale_y)
        return model


def _clamp_scale(value: float) -> float:
    if not np.isfinite(value):
        return 1.0
    return float(np.clip(value, SCALE_MIN, SCALE_MAX))


def _axis_scale(targets: np.ndarray, raw: np.ndarray) -> float:
    raw_range = float(raw.max() - raw.min())
    if raw_range <= MIN_RAW_SPREAD:
        return 1.0
    return _clamp_scale(float(targets.max() - targets.min()) / raw_range)


def fit_model(
    targets: list[tuple[float, float]],
    raw: list[tuple[float, float]],
) -> CalibrationModel:
    """Derive offset and scale from paired (screen target, raw gaze) samples."""
    t = np.asarray(targets, dtype=np.float64)
    r = np.asarray(raw, dtype=np.float64)
    if t.shape != r.shape or t.ndim != 2 or len(t) == 0:
        raise ValueError("Calibration needs equal, non-empty lists of (x, y) pairs.")

    offset = t.mean(axis=0) - r.mean(axis=0)
    return CalibrationModel(
        offset_x=float(offset[0]),
        offset_y=float(offset[1]),
        scale_x=_axis_scale(t[:, 0], r[:, 0]),
        scale_y=_axis_scale(t[:, 1], r[:, 1]),
        is_calibrated=True,
        calibrated_at=time.time(),
    )


class CalibrationEngine:
    """Walks the user through :data:`CALIBRATION_POINTS`.

    For each target the caller records the raw gaze sample observed while
    the user looked at it.  After the last point the model is fitted,
    handed to *on_calibrated* for persistence, and applied to every
    subsequent raw sample.
    """

    def __init__(
        self,
        model: Optional[CalibrationModel] = None,
        on_calibrated: Optional[Callable[[CalibrationModel], None]] = None,
    ) -> None:
        self.model = model or CalibrationModel()
        self._on_calibrated = on_calibrated
        self._targets: list[tuple[float, float]] = []
        self._raw: list[tuple[float, float]] = []
        self._running = False

    # ------------------------------------------------------------------
    # Sequence
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._targets = []
        self._raw = []
        self._running = True
        logger.info("Calibration started (%d points).", len(CALIBRATION_POINTS))

    def cancel(self) -> None:
        self._targets = []
        self._raw = []
        self._running = False
        logger.info("Calibration cancelled.")

    def record_point(
        self,
        screen: tuple[float, float],
        raw: tuple[float, float],
    ) -> bool:
        """Record one (screen target, raw gaze) pair in normalised coords.

        Returns True when this was the final point and the model has been
        fitted.
        """
        if not self._running:
            raise RuntimeError("record_point called outside a calibration run.")

        self._targets.append((float(screen[0]), float(screen[1])))
        self._raw.append((float(raw[0]), float(raw[1])))
        logger.debug(
            "Cal point %d: target=(%.2f, %.2f) raw=(%.3f, %.3f)",
            len(self._targets), screen[0], screen[1], raw[0], raw[1],
        )
        if len(self._targets) < len(CALIBRATION_POINTS):
            return False

        self.model = fit_model(self._targets, self._raw)
        self._running = False
        logger.info(
            "Calibration complete.  offset=(%.3f, %.3f) scale=(%.2f, %.2f)",
            self.model.offset_x, self.model.offset_y,
            self.model.scale_x, self.model.scale_y,
        )
        if self._on_calibrated:
            self._on_calibrated(self.model)
        return True

    def reset_calibration(self) -> None:
        self.model = CalibrationModel()
        self._targets = []
        self._raw = []
        self._running = False
        logger.info("Calibration reset to identity.")

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def apply(self, raw_x: float, raw_y: float) -> tuple[float, float]:
        return self.model.apply(raw_x, raw_y)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def step(self) -> int:
        return len(self._targets)

    @property
    def current_target(self) -> Optional[tuple[float, float]]:
        if not self._running or self.step >= len(CALIBRATION_POINTS):
            return None
        return CALIBRATION_POINTS[self.step]

    @property
    def is_calibrated(self) -> bool:
        return self.model.is_calibrated
