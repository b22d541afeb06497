"""Main application window: demo host for attention tracking and the
blink/gaze remote control."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from PySide6.QtCore import QPoint, QTimer, Qt
from PySide6.QtWidgets import (
    QCheckBox,
    QComboBox,
    QDialog,
    QDialogButtonBox,
    QDoubleSpinBox,
    QFormLayout,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QMessageBox,
    QProgressBar,
    QPushButton,
    QSpinBox,
    QStackedWidget,
    QVBoxLayout,
    QWidget,
)

from app.config import Config
from app.controller import Controller
from domain.models import BlinkAction, GazeDirection, NavigationAction, Rect
from storage.calibration_store import list_profiles
from ui.calibration_wizard import CalibrationWizard
from ui.debug_overlay import DebugOverlay, OverlayState
from vision.camera import CameraError

logger = logging.getLogger(__name__)

# Screen indices in the stacked widget
_IDX_HOME = 0
_IDX_CALIBRATE = 1

_DEMO_BUTTONS = ["like", "comment", "share", "follow", "save", "report"]
_DEMO_CONTENT_S = 30.0


class ButtonControl:
    """Adapts a QPushButton to the click / press / release control surface."""

    def __init__(self, button: QPushButton) -> None:
        self.button = button

    def click(self) -> None:
        self.button.click()

    def press(self) -> None:
        self.button.setDown(True)
        self.button.pressed.emit()

    def release(self) -> None:
        self.button.setDown(False)
        self.button.released.emit()


class DemoPlayer:
    """Stand-in media element driven by the window's refresh timer."""

    def __init__(self, bar: QProgressBar, duration_s: float) -> None:
        self.bar = bar
        self.duration_s = duration_s
        self.position_s = 0.0
        self.playing = False

    def pause(self) -> None:
        self.playing = False

    def play(self) -> None:
        self.playing = True

    def seek(self, seconds: float) -> None:
        self.position_s = max(0.0, min(seconds, self.duration_s))
        self._render()

    def advance(self, dt: float) -> bool:
        """Move the playhead; return True when the end is reached."""
        if not self.playing:
            return False
        self.position_s = min(self.duration_s, self.position_s + dt)
        self._render()
        return self.position_s >= self.duration_s

    def _render(self) -> None:
        self.bar.setValue(int(self.position_s / self.duration_s * 1000))


class SettingsDialog(QDialog):
    """Operator settings panel for the remote control and attention tuning."""

    def __init__(self, config: Config, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Remote Control Settings")
        self.setMinimumWidth(340)

        form = QFormLayout()

        self._sensitivity = QSpinBox()
        self._sensitivity.setRange(1, 10)
        self._sensitivity.setValue(int(config.sensitivity))
        form.addRow("Gaze sensitivity:", self._sensitivity)

        self._hold = QDoubleSpinBox()
        self._hold.setRange(200, 3000)
        self._hold.setSingleStep(100)
        self._hold.setSuffix(" ms")
        self._hold.setValue(config.gaze_hold_ms)
        form.addRow("Gaze hold time:", self._hold)

        self._blink_threshold = QDoubleSpinBox()
        self._blink_threshold.setRange(0.05, 0.8)
        self._blink_threshold.setSingleStep(0.05)
        self._blink_threshold.setValue(config.blink_threshold)
        form.addRow("Blink threshold:", self._blink_threshold)

        self._pattern_timeout = QDoubleSpinBox()
        self._pattern_timeout.setRange(200, 2000)
        self._pattern_timeout.setSingleStep(50)
        self._pattern_timeout.setSuffix(" ms")
        self._pattern_timeout.setValue(config.blink_pattern_timeout_ms)
        form.addRow("Blink pattern timeout:", self._pattern_timeout)

        self._edge = QDoubleSpinBox()
        self._edge.setRange(0.1, 0.9)
        self._edge.setSingleStep(0.05)
        self._edge.setValue(config.edge_threshold)
        form.addRow("Edge threshold:", self._edge)

        self._rapid = QCheckBox("Navigate with rapid gaze flicks")
        self._rapid.setChecked(config.rapid_movement_enabled)
        form.addRow("", self._rapid)

        self._detector = QComboBox()
        self._detector.addItems(["skin", "landmarks"])
        self._detector.setCurrentText(config.presence_detector)
        form.addRow("Presence detector:", self._detector)

        self._cam_idx = QSpinBox()
        self._cam_idx.setRange(0, 9)
        self._cam_idx.setValue(config.camera_index)
        form.addRow("Camera index:", self._cam_idx)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self.accept)
        buttons.rejected.connect(self.reject)

        layout = QVBoxLayout(self)
        layout.addLayout(form)
        layout.addWidget(buttons)

    def changes(self) -> dict:
        return {
            "sensitivity": self._sensitivity.value(),
            "gaze_hold_ms": self._hold.value(),
            "blink_threshold": self._blink_threshold.value(),
            "blink_pattern_timeout_ms": self._pattern_timeout.value(),
            "edge_threshold": self._edge.value(),
            "rapid_movement_enabled": self._rapid.isChecked(),
            "presence_detector": self._detector.currentText(),
            "camera_index": self._cam_idx.value(),
        }


class HomeScreen(QWidget):
    """Demo feed page: a grid of gaze targets, a player bar and status."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setSpacing(16)

        title = QLabel("Gaze Remote")
        title.setStyleSheet("font-size: 28px; font-weight: bold; color: #e8e8ff;")
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(title)

        # ── Toolbar ───────────────────────────────────────────────────
        bar = QHBoxLayout()
        self.btn_remote = QPushButton("👁  Remote: off")
        self.btn_calibrate = QPushButton("⚙  Calibrate")
        self.btn_content = QPushButton("▶  Watch demo video")
        self.btn_resume = QPushButton("Resume")
        self.btn_resume.setEnabled(False)
        self.btn_settings = QPushButton("⚙ Settings")
        self.profile_combo = QComboBox()
        self.profile_combo.setEditable(True)
        self.profile_combo.setMinimumWidth(140)
        for w in (self.btn_remote, self.btn_calibrate, self.btn_content, self.btn_resume):
            bar.addWidget(w)
        bar.addStretch()
        bar.addWidget(QLabel("Profile:"))
        bar.addWidget(self.profile_combo)
        bar.addWidget(self.btn_settings)
        layout.addLayout(bar)

        # ── Player ────────────────────────────────────────────────────
        self.progress = QProgressBar()
        self.progress.setRange(0, 1000)
        self.progress.setTextVisible(False)
        self.progress.setFixedHeight(8)
        layout.addWidget(self.progress)

        # ── Target grid ───────────────────────────────────────────────
        frame = QFrame()
        frame.setStyleSheet("QFrame { background: #1e2240; border-radius: 10px; }")
        grid = QGridLayout(frame)
        grid.setSpacing(40)
        grid.setContentsMargins(40, 40, 40, 40)
        self.targets: dict[str, QPushButton] = {}
        for i, name in enumerate(_DEMO_BUTTONS):
            btn = QPushButton(name.capitalize())
            btn.setCheckable(name in ("like", "follow", "save"))
            btn.setMinimumSize(160, 72)
            btn.setStyleSheet("font-size: 15px;")
            grid.addWidget(btn, i // 3, i % 3)
            self.targets[name] = btn
        layout.addWidget(frame, 1)

        # ── Status ────────────────────────────────────────────────────
        self.status = QLabel("")
        self.status.setStyleSheet("font-size: 13px; color: #aaaacc;")
        self.action_log = QLabel("")
        self.action_log.setStyleSheet("font-size: 13px; color: #88ff88;")
        layout.addWidget(self.status)
        layout.addWidget(self.action_log)


class MainWindow(QMainWindow):
    """Root application window."""

    def __init__(self, controller: Controller) -> None:
        super().__init__()
        self._controller = controller
        self._remote = controller.remote
        self._tasks: set[asyncio.Task] = set()
        config = controller.config_manager.config

        self.setWindowTitle("Gaze Remote – Attention & Blink Control")
        self.resize(config.window_width, config.window_height)

        # ── Stacked widget ─────────────────────────────────────────────
        self._stack = QStackedWidget()
        self.setCentralWidget(self._stack)

        self._home = HomeScreen()
        self._stack.addWidget(self._home)           # 0
        self._stack.addWidget(QWidget())            # 1 – calibration placeholder
        self._stack.setCurrentIndex(_IDX_HOME)

        self._overlay = DebugOverlay(self, ghost_opacity=config.ghost_opacity)
        self._overlay.setVisible(config.debug_overlay)

        self._player = DemoPlayer(self._home.progress, _DEMO_CONTENT_S)
        controller.guard.player = self._player
        controller.on_auto_pause = self._on_auto_pause
        self._remote.on_action = self._on_action
        self._remote.on_navigate = self._on_navigate

        for name, btn in self._home.targets.items():
            btn.clicked.connect(lambda _checked=False, n=name: self._log(f"clicked {n}"))
            btn.pressed.connect(lambda n=name: logger.debug("pressed %s", n))

        h = self._home
        h.btn_remote.clicked.connect(lambda: self._spawn(self._toggle_remote()))
        h.btn_calibrate.clicked.connect(self._go_calibrate)
        h.btn_content.clicked.connect(lambda: self._spawn(self._toggle_content()))
        h.btn_resume.clicked.connect(self._resume)
        h.btn_settings.clicked.connect(self._open_settings)
        self._refresh_profiles()
        h.profile_combo.currentTextChanged.connect(self._on_profile_changed)

        # UI refresh
        self._last_tick = time.monotonic()
        self._timer = QTimer(self)
        self._timer.setInterval(100)
        self._timer.timeout.connect(self._refresh)
        self._timer.start()

        self._apply_dark_theme()

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def restore(self) -> None:
        """Re-activate the remote control if it was on when the app closed."""
        if self._controller.config_manager.config.remote_enabled:
            await self._set_remote(True)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._overlay.setGeometry(self.rect())
        self._overlay.raise_()
        self._register_targets()

    def showEvent(self, event) -> None:  # type: ignore[override]
        super().showEvent(event)
        self._register_targets()

    def _register_targets(self) -> None:
        self._remote.set_viewport(self.width(), self.height())
        for name, btn in self._home.targets.items():
            top_left = btn.mapTo(self, QPoint(0, 0))
            rect = Rect(top_left.x(), top_left.y(), btn.width(), btn.height())
            self._remote.register_button(name, rect, ButtonControl(btn))

    # ------------------------------------------------------------------
    # Remote control
    # ------------------------------------------------------------------

    async def _toggle_remote(self) -> None:
        await self._set_remote(not self._remote.is_active)

    async def _set_remote(self, on: bool) -> None:
        if not on:
            self._remote.deactivate()
            self._home.btn_remote.setText("👁  Remote: off")
            return
        try:
            await self._remote.activate()
        except CameraError as exc:
            self._remote.deactivate()
            self._camera_error(exc)
            return
        if self._remote.is_active:
            self._home.btn_remote.setText("👁  Remote: on")

    def _on_action(self, button_id: str, action: BlinkAction, count: int) -> None:
        self._log(f"{count}× blink → {action.value} on {button_id}")

    def _on_navigate(self, action: NavigationAction, direction: GazeDirection) -> None:
        self._log(f"look {direction.value} → {action.value}")

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    async def _toggle_content(self) -> None:
        if self._controller.content_id is not None:
            self._finish_content()
            return
        try:
            await self._controller.enable_attention_tracking()
        except CameraError as exc:
            self._camera_error(exc)
            return
        self._player.seek(0.0)
        self._player.play()
        self._controller.start_content("demo", _DEMO_CONTENT_S)
        self._home.btn_content.setText("■  Stop video")

    def _finish_content(self) -> None:
        self._player.pause()
        result = self._controller.finish_content(watch_duration=self._player.position_s)
        self._controller.disable_attention_tracking()
        self._home.btn_content.setText("▶  Watch demo video")
        self._home.btn_resume.setEnabled(False)
        details = "\n".join(result.reasons) or f"Attention score {result.attention_score}%"
        QMessageBox.information(self, "Attention check", f"{result.message}\n\n{details}")

    def _on_auto_pause(self, paused: bool) -> None:
        self._home.btn_resume.setEnabled(paused)

    def _resume(self) -> None:
        self._controller.resume_playback()

    # ------------------------------------------------------------------
    # Calibration / profiles / settings
    # ------------------------------------------------------------------

    def _go_calibrate(self) -> None:
        if not self._remote.is_active:
            QMessageBox.information(self, "Calibration", "Turn the remote control on first.")
            return
        wizard = CalibrationWizard(self._remote)
        wizard.finished.connect(self._go_home)
        wizard.cancelled.connect(self._go_home)

        self._stack.removeWidget(self._stack.widget(_IDX_CALIBRATE))
        self._stack.insertWidget(_IDX_CALIBRATE, wizard)
        self._stack.setCurrentIndex(_IDX_CALIBRATE)
        self._overlay.setVisible(False)
        wizard.start()

    def _go_home(self) -> None:
        self._refresh_profiles()
        self._stack.setCurrentIndex(_IDX_HOME)
        self._overlay.setVisible(self._controller.config_manager.config.debug_overlay)

    def _refresh_profiles(self) -> None:
        combo = self._home.profile_combo
        current = combo.currentText() or self._controller.config_manager.config.profile_name
        combo.blockSignals(True)
        combo.clear()
        profiles = list_profiles() or ["default"]
        if current not in profiles:
            profiles.append(current)
        combo.addItems(profiles)
        combo.setCurrentText(current)
        combo.blockSignals(False)

    def _on_profile_changed(self, name: str) -> None:
        name = name.strip() or "default"
        if not self._controller.load_profile(name):
            logger.info("Profile '%s' has no calibration yet.", name)

    def _open_settings(self) -> None:
        dlg = SettingsDialog(self._controller.config_manager.config, self)
        if dlg.exec() == QDialog.DialogCode.Accepted:
            self._controller.config_manager.update(**dlg.changes())

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def _refresh(self) -> None:
        now = time.monotonic()
        dt = now - self._last_tick
        self._last_tick = now

        if self._controller.content_id is not None and self._player.advance(dt):
            self._finish_content()

        remote = self._remote
        est = self._controller.estimator
        gaze = remote.gaze_position
        self._overlay.update_state(
            OverlayState(
                gaze_px=gaze.calibrated if gaze else None,
                direction=remote.gaze.current_direction,
                ghosts=[
                    (t.rect, remote.ghosts.progress(t.button_id, now), t.is_activated)
                    for t in remote.ghosts.targets.values()
                ],
                attention_score=est.score,
                attentive=est.currently_attentive,
                eye_openness=remote.blink.eye_openness,
                pending_blinks=remote.pending_blink_count,
                last_action=remote.last_action,
                paused=self._controller.guard.is_paused,
            )
        )

        target = remote.current_target
        calibrated = "calibrated" if remote.calibration.is_calibrated else "not calibrated"
        self._home.status.setText(
            f"Camera: {self._controller.sampler.state.value}  |  "
            f"Target: {target.button_id if target else '-'}  |  "
            f"Gaze: {calibrated}"
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _spawn(self, coro) -> asyncio.Task:
        """Run *coro* on the loop, holding a reference until it finishes."""
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("UI task failed.", exc_info=exc)
            self._log(f"error: {exc}")

    def _log(self, text: str) -> None:
        self._home.action_log.setText(text)
        logger.info("UI: %s", text)

    def _camera_error(self, exc: Exception) -> None:
        QMessageBox.critical(
            self,
            "Camera Error",
            f"Could not open webcam.\n\n{exc}\n\n"
            "Check that your webcam is connected and not in use by another application.",
        )

    def closeEvent(self, event) -> None:  # type: ignore[override]
        self._timer.stop()
        for task in list(self._tasks):
            task.cancel()
        self._controller.shutdown()
        super().closeEvent(event)

    # ------------------------------------------------------------------
    # Theme
    # ------------------------------------------------------------------

    def _apply_dark_theme(self) -> None:
        self.setStyleSheet(
            """
            QMainWindow, QWidget {
                background: #0e0e1e;
                color: #d0d0f0;
                font-family: 'Segoe UI', sans-serif;
            }
            QPushButton {
                background: #1e2240;
                color: #d0d0f0;
                border: 1px solid #334466;
                border-radius: 4px;
                padding: 6px 14px;
                font-size: 12px;
            }
            QPushButton:hover { background: #2a3060; }
            QPushButton:pressed, QPushButton:checked { background: #2244aa; }
            QPushButton:disabled { color: #555566; background: #141425; }
            QComboBox, QDoubleSpinBox, QSpinBox {
                background: #1e2240;
                color: #d0d0f0;
                border: 1px solid #334466;
                border-radius: 4px;
                padding: 2px 6px;
            }
            QProgressBar { background: #1e2240; border: none; border-radius: 4px; }
            QProgressBar::chunk { background: #4455cc; border-radius: 4px; }
            QLabel { color: #d0d0f0; }
            """
        )
