"""Five-point gaze calibration screen."""

from __future__ import annotations

import logging
from typing import Optional

from PySide6.QtCore import QTimer, Qt, Signal
from PySide6.QtGui import QColor, QFont, QKeyEvent, QMouseEvent, QPainter, QPen, QRadialGradient
from PySide6.QtWidgets import QWidget

from app.remote_control import RemoteControlOrchestrator
from calibration.gaze_calibration import CALIBRATION_POINTS

logger = logging.getLogger(__name__)

_DOT_RADIUS = 18
_HIT_RADIUS = 40


class CalibrationWizard(QWidget):
    """Shows each calibration dot in turn.  The user looks at the dot and
    clicks it (or presses Space); the current raw gaze is recorded for that
    point.  After the fifth point the fitted model is applied and persisted
    by the engine's callback.

    Emits ``finished`` on success and ``cancelled`` on Escape.
    """

    finished = Signal()
    cancelled = Signal()

    def __init__(self, remote: RemoteControlOrchestrator, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self._remote = remote
        self._message = ""
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(True)

        # Pulse the dot
        self._pulse = 0.0
        self._timer = QTimer(self)
        self._timer.setInterval(50)
        self._timer.timeout.connect(self._on_timer)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    def start(self) -> None:
        self._remote.start_calibration()
        self._message = "Look at the dot, then click it"
        self._timer.start()
        self.setFocus()
        self.update()

    def stop(self) -> None:
        self._timer.stop()
        if self._remote.calibration.is_running:
            self._remote.cancel_calibration()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def mousePressEvent(self, event: QMouseEvent) -> None:  # type: ignore[override]
        target = self._target_px()
        if target is None:
            return
        pos = event.position()
        if (pos.x() - target[0]) ** 2 + (pos.y() - target[1]) ** 2 <= _HIT_RADIUS ** 2:
            self._record()

    def keyPressEvent(self, event: QKeyEvent) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Space:
            self._record()
        elif event.key() == Qt.Key.Key_Escape:
            self.stop()
            self.cancelled.emit()
        else:
            super().keyPressEvent(event)

    def _record(self) -> None:
        target = self._target_px()
        if target is None:
            return
        # The orchestrator works in its own viewport; map the dot into it
        vw, vh = self._remote.viewport
        tx, ty = CALIBRATION_POINTS[self._remote.calibration.step]
        if not self._remote.record_calibration_point(tx * vw, ty * vh):
            self._message = "No face detected; keep your face in view"
            self.update()
            return

        if self._remote.calibration.is_running:
            self._message = "Look at the dot, then click it"
            self.update()
            return

        self._timer.stop()
        self._message = "Calibration complete!"
        self.update()
        logger.info("Calibration wizard finished.")
        self.finished.emit()

    def _target_px(self) -> Optional[tuple[int, int]]:
        target = self._remote.calibration.current_target
        if target is None:
            return None
        return int(target[0] * self.width()), int(target[1] * self.height())

    def _on_timer(self) -> None:
        self._pulse = (self._pulse + 0.08) % 1.0
        self.update()

    # ------------------------------------------------------------------
    # Paint
    # ------------------------------------------------------------------

    def paintEvent(self, _event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), QColor(15, 15, 30))

        w, h = self.width(), self.height()
        mid_x = w // 2

        target = self._target_px()
        if target is not None:
            step = self._remote.calibration.step
            font = QFont("Segoe UI", 11)
            painter.setFont(font)
            painter.setPen(QColor(180, 180, 200))
            painter.drawText(12, 24, f"Point {step + 1} / {len(CALIBRATION_POINTS)}")

            alpha = int(180 + 75 * abs(self._pulse * 2 - 1))
            self._draw_dot(painter, target[0], target[1], alpha)

        if self._message:
            self._draw_text(painter, self._message, mid_x, h - 40, small=target is not None)

    def _draw_dot(self, painter: QPainter, cx: int, cy: int, alpha: int) -> None:
        r = _DOT_RADIUS
        grad = QRadialGradient(cx, cy, r)
        grad.setColorAt(0.0, QColor(255, 50, 50, alpha))
        grad.setColorAt(0.6, QColor(220, 0, 0, int(alpha * 0.7)))
        grad.setColorAt(1.0, QColor(200, 0, 0, 0))
        painter.setBrush(grad)
        painter.setPen(Qt.PenStyle.NoPen)
        painter.drawEllipse(cx - r, cy - r, r * 2, r * 2)

        # White crosshair
        pen = QPen(QColor(255, 255, 255, alpha), 1)
        painter.setPen(pen)
        painter.drawLine(cx - r, cy, cx + r, cy)
        painter.drawLine(cx, cy - r, cx, cy + r)

    @staticmethod
    def _draw_text(painter: QPainter, text: str, x: int, y: int, small: bool = False) -> None:
        font = QFont("Segoe UI", 10 if small else 18)
        font.setBold(not small)
        painter.setFont(font)
        painter.setPen(QColor(220, 220, 255))
        fm = painter.fontMetrics()
        tw = fm.horizontalAdvance(text)
        painter.drawText(x - tw // 2, y, text)
