"""Content-session controller: owns the shared camera sampler, attention
scoring, playback guard and the remote-control orchestrator."""

from __future__ import annotations

import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Optional

from app.config import Config, ConfigManager
from app.remote_control import RemoteControlOrchestrator
from calibration.gaze_calibration import CalibrationEngine, CalibrationModel
from domain.attention import AttentionEstimator, PresenceDetector
from domain.metrics import compute_summary
from domain.models import AttentionSample, FrameBuffer, RemoteEvent
from domain.playback import PlaybackGuard, Player
from domain.validation import ValidationPayload, ValidationResult, Validator, validate_attention
from storage.calibration_store import calibration_hash, load_calibration, save_calibration
from storage.session_writer import SessionWriter
from vision.camera import Camera, CameraError
from vision.frame_analysis import SkinPresenceDetector
from vision.frame_sampler import FrameSampler, SamplerState

logger = logging.getLogger(__name__)

_RUNS_DIR = Path("runs")
_PROFILES_DIR = Path("profiles")


class Controller:
    """Wires the vision pipeline to the host.

    A single :class:`FrameSampler` is shared by attention tracking and
    remote control; each subscribes under its own name and the camera is
    released only when neither needs it.
    """

    SUBSCRIBER = "attention"

    # Set by the UI
    on_auto_pause: Optional[Callable[[bool], None]] = None  # True=paused, False=resumed

    def __init__(
        self,
        config_manager: ConfigManager,
        player: Optional[Player] = None,
        validator: Optional[Validator] = None,
        camera_factory: Optional[Callable[[], Camera]] = None,
        detector: Optional[PresenceDetector] = None,
        runs_dir: Path = _RUNS_DIR,
        profiles_dir: Path = _PROFILES_DIR,
    ) -> None:
        self.config_manager = config_manager
        cfg = config_manager.config
        self._runs_dir = runs_dir
        self._profiles_dir = profiles_dir
        self._validator = validator

        self.sampler = FrameSampler(
            camera_factory or self._make_camera,
            width=cfg.frame_width,
            height=cfg.frame_height,
            interval_ms=cfg.tick_ms,
        )
        self.estimator = AttentionEstimator(detector or self._make_detector(), threshold=cfg.attention_threshold)
        self.estimator.set_callbacks(on_lost=self._on_attention_lost, on_restored=self._on_attention_restored)
        self.guard = PlaybackGuard(player, lost_fraction=cfg.auto_pause_lost_fraction)

        model = load_calibration(cfg.profile_name, profiles_dir)
        self.calibration = CalibrationEngine(model=model, on_calibrated=self._save_calibration)
        self.remote = RemoteControlOrchestrator(
            config_manager,
            self.sampler,
            calibration=self.calibration,
            viewport=(float(cfg.window_width), float(cfg.window_height)),
            event_sink=self._record_event,
        )

        # Content session state
        self._content_id: Optional[str] = None
        self._content_duration_s = 0.0
        self._content_start_mono = 0.0
        self._samples: list[AttentionSample] = []
        self._session_writer: Optional[SessionWriter] = None
        self._paused_notified = False
        self.last_summary: Optional[dict[str, Any]] = None

        self._tracking = False
        self._tracking_generation = 0  # bumped by enable/disable; a stale enable compares against it
        self._shut_down = False
        self._unsubscribe_config = config_manager.subscribe(self._apply_settings)

    # ------------------------------------------------------------------
    # Construction helpers
    # ------------------------------------------------------------------

    def _make_camera(self) -> Camera:
        cfg = self.config_manager.config
        return Camera(cfg.camera_index, cfg.frame_width, cfg.frame_height)

    def _make_detector(self) -> PresenceDetector:
        cfg = self.config_manager.config
        if cfg.presence_detector == "landmarks":
            from vision.face_tracker import LandmarkPresenceDetector

            try:
                return LandmarkPresenceDetector()
            except RuntimeError as exc:
                logger.warning("Landmark detector unavailable (%s); using skin-tone heuristic.", exc)
        return SkinPresenceDetector(cfg.skin_ratio_threshold, cfg.min_skin_pixels)

    # ------------------------------------------------------------------
    # Attention tracking
    # ------------------------------------------------------------------

    async def enable_attention_tracking(self) -> None:
        if self.is_tracking:
            return
        self._tracking_generation += 1
        generation = self._tracking_generation
        self.sampler.subscribe(self.SUBSCRIBER, self._on_frame)
        try:
            await self.sampler.start()
        except CameraError as exc:
            if generation == self._tracking_generation:
                self.sampler.unsubscribe(self.SUBSCRIBER)
            logger.error("Attention tracking unavailable: %s", exc)
            raise

        if generation != self._tracking_generation:
            logger.info("Attention tracking disabled during camera acquisition.")
            return
        if self.sampler.state in (SamplerState.IDLE, SamplerState.ERROR):
            self.sampler.unsubscribe(self.SUBSCRIBER)
            logger.info("Camera released during acquisition; attention tracking stays off.")
            return

        self._tracking = True
        logger.info("Attention tracking enabled.")

    def disable_attention_tracking(self) -> None:
        self._tracking_generation += 1
        self.sampler.unsubscribe(self.SUBSCRIBER)
        if not self.sampler.has_subscribers:
            self.sampler.stop()
        if self._tracking:
            self._tracking = False
            logger.info("Attention tracking disabled.")

    @property
    def is_tracking(self) -> bool:
        return self._tracking and self.sampler.state != SamplerState.ERROR

    def set_page_visible(self, visible: bool, now: Optional[float] = None) -> None:
        self.estimator.set_page_visible(visible, time.monotonic() if now is None else now)

    def _on_frame(self, frame: FrameBuffer, now: float) -> None:
        attentive = self.estimator.process_frame(frame, now)
        if self._content_id is None:
            return

        sample = AttentionSample(
            timestamp_mono=now,
            timestamp_wall=time.time(),
            attentive=attentive,
            score=self.estimator.score,
        )
        self._samples.append(sample)
        if self._session_writer:
            self._session_writer.write_sample(sample)

        paused = self.guard.update(now)
        if paused and not self._paused_notified:
            self._paused_notified = True
            self._record_event(RemoteEvent(now, "auto_pause"))
            if self.on_auto_pause:
                self.on_auto_pause(True)

    def _on_attention_lost(self, now: float) -> None:
        self.guard.attention_lost(now)
        self._record_event(RemoteEvent(now, "attention_lost"))

    def _on_attention_restored(self, now: float) -> None:
        self.guard.attention_restored(now)
        self._record_event(RemoteEvent(now, "attention_restored"))

    # ------------------------------------------------------------------
    # Content sessions
    # ------------------------------------------------------------------

    def start_content(self, content_id: str, duration_s: float, now: Optional[float] = None) -> None:
        if self._content_id is not None:
            logger.warning("Content %s still open; finishing it first.", self._content_id)
            self.finish_content(now=now)

        now = time.monotonic() if now is None else now
        self.estimator.reset()
        self.guard.start(now, duration_s)
        self._content_id = content_id
        self._content_duration_s = duration_s
        self._content_start_mono = now
        self._samples = []
        self._paused_notified = False

        cfg = self.config_manager.config
        if cfg.record_sessions:
            ts = datetime.now()
            session_dir = self._runs_dir / (ts.strftime("%Y-%m-%d_%H-%M-%S") + f"_{content_id}")
            self._session_writer = SessionWriter(session_dir)
            self._session_writer.write_meta(
                {
                    "content_id": content_id,
                    "duration_s": duration_s,
                    "started_at": ts.isoformat(),
                    "camera_index": cfg.camera_index,
                    "frame_size": [cfg.frame_width, cfg.frame_height],
                    "profile_name": cfg.profile_name,
                    "calibration_hash": calibration_hash(self.calibration.model),
                    "presence_detector": cfg.presence_detector,
                }
            )
        logger.info("Content started: %s (%.1fs)", content_id, duration_s)

    def finish_content(
        self,
        now: Optional[float] = None,
        watch_duration: Optional[float] = None,
        user_id: str = "anonymous",
    ) -> ValidationResult:
        """Close the content session, validate it and write its summary.

        *watch_duration* defaults to the elapsed time since
        :meth:`start_content`, capped at the content duration.
        """
        if self._content_id is None:
            raise RuntimeError("finish_content called without an open content session.")

        now = time.monotonic() if now is None else now
        elapsed = now - self._content_start_mono
        if watch_duration is None:
            watch_duration = min(elapsed, self._content_duration_s)

        segments = self.guard.finish(now)
        payload = ValidationPayload.from_result(
            self.estimator.result(),
            content_id=self._content_id,
            watch_duration=watch_duration,
            total_duration=self._content_duration_s,
            user_id=user_id,
        )
        result = (self._validator or self._default_validator)(payload)
        summary = compute_summary(self._samples, segments, elapsed)
        self.last_summary = summary

        if self._session_writer:
            for seg in segments:
                self._session_writer.write_segment(seg)
            self._session_writer.write_summary(summary)
            self._session_writer.write_result({"payload": payload.to_dict(), "result": result.to_dict()})
            self._session_writer.close()
            self._session_writer = None

        logger.info(
            "Content finished: %s  score=%d%%  validated=%s",
            self._content_id, payload.attention_score, result.validated,
        )
        self._content_id = None
        return result

    def resume_playback(self, now: Optional[float] = None) -> None:
        self.guard.resume(time.monotonic() if now is None else now)
        if self._paused_notified:
            self._paused_notified = False
            if self.on_auto_pause:
                self.on_auto_pause(False)

    def restart_content(self, now: Optional[float] = None) -> None:
        now = time.monotonic() if now is None else now
        self.guard.restart(now)
        self.estimator.reset()
        self._content_start_mono = now
        self._samples = []
        self._paused_notified = False

    @property
    def content_id(self) -> Optional[str]:
        return self._content_id

    def _default_validator(self, payload: ValidationPayload) -> ValidationResult:
        cfg = self.config_manager.config
        return validate_attention(
            payload,
            required_score=cfg.attention_threshold,
            required_watch_pct=cfg.required_watch_pct,
            min_frames=cfg.min_frames_required,
        )

    # ------------------------------------------------------------------
    # Calibration persistence
    # ------------------------------------------------------------------

    def _save_calibration(self, model: CalibrationModel) -> None:
        try:
            save_calibration(model, self.config_manager.config.profile_name, self._profiles_dir)
        except OSError as exc:
            logger.warning("Could not save calibration: %s", exc)

    def load_profile(self, profile_name: str) -> bool:
        """Switch profile and apply its stored calibration (identity if none)."""
        model = load_calibration(profile_name, self._profiles_dir)
        self.calibration.model = model or CalibrationModel()
        self.config_manager.update(profile_name=profile_name)
        return model is not None

    # ------------------------------------------------------------------
    # Settings / shutdown
    # ------------------------------------------------------------------

    def _apply_settings(self, cfg: Config) -> None:
        self.estimator.threshold = cfg.attention_threshold
        self.guard.lost_fraction = cfg.auto_pause_lost_fraction

    def _record_event(self, event: RemoteEvent) -> None:
        if self._session_writer:
            self._session_writer.write_event(event)

    def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        if self._content_id is not None:
            self.finish_content()
        # Leave the persisted remote_enabled flag as the user set it
        self.sampler.unsubscribe(RemoteControlOrchestrator.SUBSCRIBER)
        self.sampler.unsubscribe(self.SUBSCRIBER)
        self.sampler.stop()
        self._tracking = False
        self.remote.close()
        self._unsubscribe_config()
        close = getattr(self.estimator.detector, "close", None)
        if close is not None:
            close()
        logger.info("Controller shut down.")
