"""Transparent overlay widget that renders the gaze dot, ghost buttons and
debug info."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QColor, QFont, QPainter, QPen, QRadialGradient
from PySide6.QtWidgets import QWidget

from domain.models import GazeDirection, Rect


@dataclass
class OverlayState:
    """Snapshot pushed by the main window on every refresh."""

    gaze_px: Optional[tuple[float, float]] = None
    direction: GazeDirection = GazeDirection.CENTER
    ghosts: list[tuple[Rect, float, bool]] = field(default_factory=list)  # rect, progress, activated
    attention_score: int = 0
    attentive: bool = True
    eye_openness: float = 1.0
    pending_blinks: int = 0
    last_action: Optional[str] = None
    paused: bool = False


class DebugOverlay(QWidget):
    """Completely transparent child widget placed on top of the main window.

    Call :meth:`update_state` to feed new data; the widget repaints itself.
    """

    def __init__(self, parent: Optional[QWidget] = None, ghost_opacity: float = 0.4) -> None:
        super().__init__(parent)
        self.setAttribute(Qt.WidgetAttribute.WA_TransparentForMouseEvents)
        self.setAttribute(Qt.WidgetAttribute.WA_TranslucentBackground)
        self.setWindowFlags(Qt.WindowType.Widget)

        self._state = OverlayState()
        self._show_gaze = True
        self._show_metrics = True
        self.ghost_opacity = ghost_opacity

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------

    def update_state(self, state: OverlayState) -> None:
        self._state = state
        self.update()

    def set_show_gaze(self, show: bool) -> None:
        self._show_gaze = show

    def set_show_metrics(self, show: bool) -> None:
        self._show_metrics = show

    # ------------------------------------------------------------------
    # Paint
    # ------------------------------------------------------------------

    def paintEvent(self, _event) -> None:  # type: ignore[override]
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)

        s = self._state
        w, h = self.width(), self.height()

        # ── Auto-pause warning ─────────────────────────────────────────
        if s.paused:
            painter.fillRect(self.rect(), QColor(0, 0, 0, 120))
            font = QFont("Segoe UI", 22, QFont.Weight.Bold)
            painter.setFont(font)
            painter.setPen(QColor(255, 80, 80))
            msg = "⚠  Paused: please watch the video  ⚠"
            fm = painter.fontMetrics()
            tw = fm.horizontalAdvance(msg)
            painter.drawText((w - tw) // 2, h // 2, msg)

        self._draw_ghosts(painter)

        # ── Gaze dot ───────────────────────────────────────────────────
        if self._show_gaze and s.gaze_px is not None:
            gx, gy = s.gaze_px
            dot_colour = QColor(0, 220, 100) if s.direction == GazeDirection.CENTER else QColor(240, 180, 40)

            radius = 18
            grad = QRadialGradient(gx, gy, radius)
            grad.setColorAt(0.0, QColor(dot_colour.red(), dot_colour.green(), dot_colour.blue(), 220))
            grad.setColorAt(1.0, QColor(dot_colour.red(), dot_colour.green(), dot_colour.blue(), 0))
            painter.setBrush(grad)
            painter.setPen(Qt.PenStyle.NoPen)
            painter.drawEllipse(int(gx) - radius, int(gy) - radius, radius * 2, radius * 2)

            # Crosshair
            pen = QPen(dot_colour, 1)
            painter.setPen(pen)
            painter.drawLine(int(gx) - radius, int(gy), int(gx) + radius, int(gy))
            painter.drawLine(int(gx), int(gy) - radius, int(gx), int(gy) + radius)

        if self._show_metrics:
            self._draw_metrics(painter)

    def _draw_ghosts(self, painter: QPainter) -> None:
        alpha = int(self.ghost_opacity * 255)
        for rect, progress, activated in self._state.ghosts:
            if progress <= 0.0:
                continue
            x, y = int(rect.left), int(rect.top)
            rw, rh = int(rect.width), int(rect.height)
            if activated:
                painter.setBrush(QColor(80, 160, 255, alpha))
                painter.setPen(QPen(QColor(120, 190, 255), 2))
            else:
                painter.setBrush(Qt.BrushStyle.NoBrush)
                painter.setPen(QPen(QColor(120, 190, 255, alpha), 1))
            painter.drawRoundedRect(x - 4, y - 4, rw + 8, rh + 8, 8, 8)

            # Dwell progress bar under the target
            painter.setPen(Qt.PenStyle.NoPen)
            painter.setBrush(QColor(120, 190, 255, 200))
            painter.drawRect(x, y + rh + 6, int(rw * progress), 3)

    def _draw_metrics(self, painter: QPainter) -> None:
        font = QFont("Segoe UI", 10)
        painter.setFont(font)

        s = self._state
        sc = "#00dc64" if s.attentive else "#dc3232"
        lines = [
            f"Attention: {s.attention_score}%",
            f"Eyes:  {s.eye_openness * 100:.0f}% open",
            f"Gaze:  {s.direction.value}",
            f"Blinks pending: {s.pending_blinks}",
            f"Last:  {s.last_action or '-'}",
        ]

        panel_x = self.width() - 230
        panel_y = 10
        line_h = 18
        panel_h = len(lines) * line_h + 16

        # Semi-transparent background
        painter.setBrush(QColor(0, 0, 0, 160))
        painter.setPen(Qt.PenStyle.NoPen)
        painter.drawRoundedRect(panel_x - 8, panel_y - 4, 230, panel_h, 6, 6)

        for i, line in enumerate(lines):
            y = panel_y + i * line_h + line_h
            painter.setPen(QColor(sc) if i == 0 else QColor(200, 200, 255))
            painter.drawText(panel_x, y, line)
