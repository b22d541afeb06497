"""Gaze zone classification and rapid-movement (flick) detection."""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable, Optional

from domain.models import GazeDirection

logger = logging.getLogger(__name__)

_HISTORY_LEN = 10
_RECENT_LEN = 5
_MIN_HISTORY = 3


class GazeDirectionTracker:
    """Consumes calibrated screen-space gaze points.

    Two independent analyses run on the same stream: a steady-state zone
    (center / left / right / up / down by edge threshold) and a rapid
    movement detector that looks at pixel speed over the last few samples.
    """

    def __init__(
        self,
        viewport: tuple[float, float] = (1280.0, 800.0),
        edge_threshold: float = 0.3,
        rapid_speed_px_s: float = 80.0 * 60.0,
        rapid_cooldown_ms: float = 500.0,
    ) -> None:
        self.viewport = viewport
        self.edge_threshold = edge_threshold
        self.rapid_speed_px_s = rapid_speed_px_s
        self.rapid_cooldown_ms = rapid_cooldown_ms
        self.enabled = True

        self._history: deque[tuple[float, float, float]] = deque(maxlen=_HISTORY_LEN)
        self._last_rapid: Optional[float] = None
        self._direction = GazeDirection.CENTER
        self._normalized = (0.0, 0.0)
        self._is_tracking = False
        self._last_rapid_direction: Optional[GazeDirection] = None

        self._on_rapid: Optional[Callable[[GazeDirection], None]] = None
        self._on_change: Optional[Callable[[GazeDirection], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def set_callbacks(
        self,
        on_rapid_movement: Optional[Callable[[GazeDirection], None]] = None,
        on_direction_change: Optional[Callable[[GazeDirection], None]] = None,
    ) -> None:
        self._on_rapid = on_rapid_movement
        self._on_change = on_direction_change

    def classify(self, x: float, y: float) -> GazeDirection:
        """Zone for a normalised point in [-1, 1]."""
        ax, ay = abs(x), abs(y)
        if ax > self.edge_threshold or ay > self.edge_threshold:
            if ax > ay:
                return GazeDirection.LEFT if x < 0 else GazeDirection.RIGHT
            return GazeDirection.UP if y < 0 else GazeDirection.DOWN
        return GazeDirection.CENTER

    def update_gaze_position(self, screen_x: float, screen_y: float, now: float) -> GazeDirection:
        if not self.enabled:
            return self._direction

        width, height = self.viewport
        nx = (screen_x / width) * 2.0 - 1.0
        ny = (screen_y / height) * 2.0 - 1.0

        self._history.append((nx, ny, now))
        self._normalized = (nx, ny)
        self._is_tracking = True

        rapid = self._detect_rapid_movement(nx, ny, now)
        if rapid is not None:
            self._last_rapid_direction = rapid
            logger.debug("Rapid movement: %s", rapid.value)
            if self._on_rapid:
                self._on_rapid(rapid)

        direction = self.classify(nx, ny)
        if direction != self._direction:
            self._direction = direction
            if self._on_change:
                self._on_change(direction)
        return direction

    def reset_tracking(self) -> None:
        self._history.clear()
        self._last_rapid = None
        self._direction = GazeDirection.CENTER
        self._normalized = (0.0, 0.0)
        self._is_tracking = False
        self._last_rapid_direction = None

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def current_direction(self) -> GazeDirection:
        return self._direction

    @property
    def normalized_position(self) -> tuple[float, float]:
        return self._normalized

    @property
    def is_tracking(self) -> bool:
        return self._is_tracking

    @property
    def last_rapid_movement(self) -> Optional[GazeDirection]:
        return self._last_rapid_direction

    @property
    def history(self) -> list[tuple[float, float, float]]:
        return list(self._history)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _detect_rapid_movement(self, nx: float, ny: float, now: float) -> Optional[GazeDirection]:
        if self._last_rapid is not None and (now - self._last_rapid) * 1000.0 < self.rapid_cooldown_ms:
            return None
        if len(self._history) < _MIN_HISTORY:
            return None

        recent = list(self._history)[-_RECENT_LEN:]
        ox, oy, ot = recent[0]
        dt = now - ot
        if dt <= 0:
            return None

        # Normalised span is 2, so half the viewport per unit
        width, height = self.viewport
        dx = (nx - ox) * width / 2.0
        dy = (ny - oy) * height / 2.0
        speed_x = abs(dx) / dt
        speed_y = abs(dy) / dt

        if speed_x > self.rapid_speed_px_s and speed_x > speed_y:
            self._last_rapid = now
            return GazeDirection.LEFT if dx < 0 else GazeDirection.RIGHT
        if speed_y > self.rapid_speed_px_s and speed_y > speed_x:
            self._last_rapid = now
            return GazeDirection.UP if dy < 0 else GazeDirection.DOWN
        return None
