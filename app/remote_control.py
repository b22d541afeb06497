"""Blink + gaze remote control: composes the detectors and dispatches
actions to the host UI."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol

from app.config import Config, ConfigManager
from calibration.gaze_calibration import CalibrationEngine
from domain.blink import BlinkDetector
from domain.gaze_direction import GazeDirectionTracker
from domain.ghost_buttons import GhostButtonActivationFSM
from domain.models import (
    BlinkAction,
    BlinkCommand,
    ButtonTarget,
    FrameBuffer,
    GazeDirection,
    GazePosition,
    NavigationAction,
    Rect,
    RemoteEvent,
)
from vision.camera import CameraError
from vision.frame_analysis import estimate_gaze_point
from vision.frame_sampler import FrameSampler, SamplerState

logger = logging.getLogger(__name__)

ActionCallback = Callable[[str, BlinkAction, int], None]
NavigateCallback = Callable[[NavigationAction, GazeDirection], None]


class Control(Protocol):
    """Host control a gaze target stands for."""

    def click(self) -> None: ...

    def press(self) -> None: ...

    def release(self) -> None: ...


class RemoteControlOrchestrator:
    """Feeds camera frames to the blink detector and the gaze pipeline,
    routes finalized blink patterns to the current ghost target and rapid
    gaze flicks to navigation.

    The host integrates through :meth:`register_button` /
    :meth:`unregister_button` and the ``on_action`` / ``on_navigate``
    callbacks; it remains responsible for what a click or navigation means.
    """

    SUBSCRIBER = "remote_control"

    def __init__(
        self,
        config_manager: ConfigManager,
        sampler: FrameSampler,
        calibration: Optional[CalibrationEngine] = None,
        on_action: Optional[ActionCallback] = None,
        on_navigate: Optional[NavigateCallback] = None,
        viewport: tuple[float, float] = (1280.0, 800.0),
        event_sink: Optional[Callable[[RemoteEvent], None]] = None,
    ) -> None:
        self._cm = config_manager
        self.sampler = sampler
        self.calibration = calibration or CalibrationEngine()
        self.on_action = on_action
        self.on_navigate = on_navigate
        self.event_sink = event_sink
        self.viewport = viewport

        cfg = config_manager.config
        self.blink = BlinkDetector(
            threshold=cfg.blink_threshold,
            cooldown_ms=cfg.blink_cooldown_ms,
            pattern_timeout_ms=cfg.blink_pattern_timeout_ms,
        )
        self.gaze = GazeDirectionTracker(
            viewport=viewport,
            edge_threshold=cfg.edge_threshold,
            rapid_speed_px_s=cfg.rapid_movement_speed,
            rapid_cooldown_ms=cfg.rapid_movement_cooldown_ms,
        )
        self.ghosts = GhostButtonActivationFSM(hold_ms=cfg.gaze_hold_ms, padding_px=cfg.ghost_padding_px)

        self.blink.set_callbacks(on_blink=self._on_blink, on_pattern=self._on_blink_pattern)
        self.gaze.set_callbacks(on_rapid_movement=self._on_rapid_movement)
        self.ghosts.set_on_activated(self._on_ghost_activated)

        self._is_active = False
        self._activation = 0  # bumped by activate/deactivate; a stale activate compares against it
        self._now = 0.0
        self.gaze_position: Optional[GazePosition] = None
        self.pending_blink_count = 0
        self.last_action: Optional[str] = None
        self.last_navigation_action: Optional[NavigationAction] = None
        self._nav_display_until: Optional[float] = None
        self._last_navigation: Optional[float] = None
        self._pending_releases: list[tuple[float, Any]] = []

        self._unsubscribe_config = config_manager.subscribe(self._apply_settings)

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    async def activate(self) -> None:
        if self.is_active:
            return
        self._activation += 1
        activation = self._activation
        self.sampler.subscribe(self.SUBSCRIBER, self.process_frame)
        try:
            await self.sampler.start()
        except CameraError:
            if activation == self._activation:
                self.sampler.unsubscribe(self.SUBSCRIBER)
            raise

        if activation != self._activation:
            # deactivate() arrived while the camera was opening
            logger.info("Remote control switched off during camera acquisition.")
            return
        if self.sampler.state in (SamplerState.IDLE, SamplerState.ERROR):
            self.sampler.unsubscribe(self.SUBSCRIBER)
            logger.info("Camera released during acquisition; remote control stays off.")
            return

        self._is_active = True
        self._cm.update(remote_enabled=True)
        logger.info("Remote control activated.")

    def deactivate(self) -> None:
        self._activation += 1
        self.sampler.unsubscribe(self.SUBSCRIBER)
        if not self.sampler.has_subscribers:
            self.sampler.stop()

        self.blink.stop()
        self.gaze.reset_tracking()
        self.ghosts.clear()
        for _, control in self._pending_releases:
            control.release()
        self._pending_releases = []

        self.gaze_position = None
        self.pending_blink_count = 0
        was_active = self._is_active
        self._is_active = False
        self._cm.update(remote_enabled=False)
        if was_active:
            logger.info("Remote control deactivated.")

    async def toggle_active(self) -> None:
        if self.is_active:
            self.deactivate()
        else:
            await self.activate()

    def close(self) -> None:
        self._unsubscribe_config()

    @property
    def is_active(self) -> bool:
        """False once the shared sampler has failed, even before deactivate()."""
        return self._is_active and self.sampler.state != SamplerState.ERROR

    # ------------------------------------------------------------------
    # Host integration surface
    # ------------------------------------------------------------------

    def register_button(self, button_id: str, rect: Rect, control: Any = None) -> None:
        self.ghosts.register(button_id, rect, control)

    def unregister_button(self, button_id: str) -> None:
        self.ghosts.unregister(button_id)

    def set_viewport(self, width: float, height: float) -> None:
        self.viewport = (float(width), float(height))
        self.gaze.viewport = self.viewport

    @property
    def current_target(self) -> Optional[ButtonTarget]:
        return self.ghosts.current_target

    # ------------------------------------------------------------------
    # Frame pipeline
    # ------------------------------------------------------------------

    def process_frame(self, frame: FrameBuffer, now: float) -> None:
        self._now = now
        self.blink.process_frame(frame, now)
        raw = estimate_gaze_point(frame, sensitivity=self._cm.config.sensitivity)
        if raw is not None:
            self.update_raw_gaze(raw, now)
        self.poll(now)

    def update_raw_gaze(self, raw: tuple[float, float], now: float) -> GazePosition:
        """Run a raw 0-1 gaze sample through calibration into the gaze
        direction tracker and the ghost-button state machine."""
        self._now = now
        cx, cy = self.calibration.apply(raw[0], raw[1])
        width, height = self.viewport
        px = min(max(cx * width, 0.0), width)
        py = min(max(cy * height, 0.0), height)

        self.gaze_position = GazePosition(raw=(raw[0], raw[1]), calibrated=(px, py))
        self.gaze.update_gaze_position(px, py, now)
        self.ghosts.update(px, py, now)
        return self.gaze_position

    def poll(self, now: float) -> None:
        """Advance every deadline: dwell, pattern finalize, long-press
        release and the last-action indicator."""
        self._now = now
        self.ghosts.poll(now)
        self.blink.poll(now)

        due = [item for item in self._pending_releases if item[0] <= now]
        if due:
            self._pending_releases = [item for item in self._pending_releases if item[0] > now]
            for _, control in due:
                control.release()

        if self._nav_display_until is not None and now >= self._nav_display_until:
            self.last_navigation_action = None
            self._nav_display_until = None

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def start_calibration(self) -> None:
        self.calibration.start()

    def record_calibration_point(self, screen_x: float, screen_y: float) -> bool:
        """Pair the on-screen target (pixels) with the latest raw gaze.
        Returns False when no gaze sample is available yet."""
        if self.gaze_position is None:
            logger.debug("No gaze sample yet; calibration point skipped.")
            return False
        width, height = self.viewport
        self.calibration.record_point((screen_x / width, screen_y / height), self.gaze_position.raw)
        return True

    def cancel_calibration(self) -> None:
        self.calibration.cancel()

    def reset_calibration(self) -> None:
        self.calibration.reset_calibration()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    @property
    def settings(self) -> Config:
        return self._cm.config

    def update_settings(self, **changes: Any) -> None:
        self._cm.update(**changes)

    def update_gaze_command(
        self,
        direction: GazeDirection,
        action: NavigationAction,
        enabled: bool,
    ) -> None:
        self._cm.set_gaze_command(direction, action, enabled)

    def set_blink_command(self, command: BlinkCommand) -> None:
        self._cm.set_blink_command(command)

    def _apply_settings(self, cfg: Config) -> None:
        self.blink.threshold = cfg.blink_threshold
        self.blink.cooldown_ms = cfg.blink_cooldown_ms
        self.blink.pattern_timeout_ms = cfg.blink_pattern_timeout_ms
        self.gaze.edge_threshold = cfg.edge_threshold
        self.gaze.rapid_speed_px_s = cfg.rapid_movement_speed
        self.gaze.rapid_cooldown_ms = cfg.rapid_movement_cooldown_ms
        self.ghosts.hold_ms = cfg.gaze_hold_ms
        self.ghosts.padding_px = cfg.ghost_padding_px

    # ------------------------------------------------------------------
    # Detector callbacks
    # ------------------------------------------------------------------

    def _on_blink(self, now: float) -> None:
        self.pending_blink_count += 1
        self._emit("blink", str(self.pending_blink_count))

    def _on_blink_pattern(self, count: int) -> None:
        target = self.ghosts.current_target
        self.pending_blink_count = 0
        if target is None:
            # Blinking while not looking at a control is normal
            logger.debug("No target for %d-blink pattern; discarded.", count)
            return

        action = self._cm.get_blink_command(target.button_id).action_for(count)
        self._emit("pattern", str(count), target.button_id)
        if action == BlinkAction.NONE:
            return

        logger.info("Executing %s on %s (%d blinks)", action.value, target.button_id, count)
        self._execute(target, action)
        if self.on_action:
            self.on_action(target.button_id, action, count)
        self.last_action = f"{count}× blink → {action.value}"
        self._emit("action", action.value, target.button_id)

    def _execute(self, target: ButtonTarget, action: BlinkAction) -> None:
        control = target.control
        if control is None:
            return
        if action in (BlinkAction.CLICK, BlinkAction.TOGGLE):
            control.click()
        elif action == BlinkAction.LONG_PRESS:
            control.press()
            release_at = self._now + self._cm.config.long_press_ms / 1000.0
            self._pending_releases.append((release_at, control))

    def _on_rapid_movement(self, direction: GazeDirection) -> None:
        cfg = self._cm.config
        if not cfg.rapid_movement_enabled:
            return
        now = self._now
        if (
            self._last_navigation is not None
            and (now - self._last_navigation) * 1000.0 < cfg.navigation_cooldown_ms
        ):
            return

        command = self._cm.get_gaze_command(direction)
        if not command.enabled or command.action == NavigationAction.NONE:
            return

        self._last_navigation = now
        logger.info("Gaze %s -> %s", direction.value, command.action.value)
        if self.on_navigate:
            self.on_navigate(command.action, direction)
        self.last_navigation_action = command.action
        self.last_action = f"👁 {direction.value} → {command.action.value}"
        self._nav_display_until = now + cfg.last_action_display_ms / 1000.0
        self._emit("navigate", command.action.value)

    def _on_ghost_activated(self, button_id: str) -> None:
        self._emit("ghost", "activated", button_id)

    def _emit(self, kind: str, detail: str = "", target: Optional[str] = None) -> None:
        if self.event_sink is None:
            return
        self.event_sink(RemoteEvent(timestamp_mono=self._now, kind=kind, detail=detail, target=target))
