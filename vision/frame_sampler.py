"""Single shared camera session that fans frames out to consumers on a
fixed-rate asyncio tick."""

from __future__ import annotations

import asyncio
import logging
import time
from enum import Enum
from typing import Callable, Optional

import cv2
import numpy as np

from domain.models import FrameBuffer
from vision.camera import Camera, CameraError

logger = logging.getLogger(__name__)

FrameCallback = Callable[[FrameBuffer, float], None]


class SamplerState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


class FrameSampler:
    """Owns the camera.  One :class:`FrameBuffer` is captured per tick and
    handed, in subscription order, to every subscriber before the next tick
    can overwrite it.

    ``start`` is a coroutine because acquiring the device is slow; the
    periodic tick is only armed once acquisition has completed and the
    sampler is still wanted.
    """

    def __init__(
        self,
        camera_factory: Callable[[], Camera],
        width: int = 320,
        height: int = 240,
        interval_ms: float = 50.0,
    ) -> None:
        self._camera_factory = camera_factory
        self.width = width
        self.height = height
        self.interval_ms = interval_ms

        self._camera: Optional[Camera] = None
        self._state = SamplerState.IDLE
        self._generation = 0  # bumped by every start/stop; stale acquisitions compare against it
        self._task: Optional[asyncio.Task] = None
        self._subscribers: dict[str, FrameCallback] = {}
        self.error: Optional[str] = None
        self.frames_delivered = 0

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, name: str, callback: FrameCallback) -> None:
        self._subscribers[name] = callback
        logger.debug("Sampler subscriber added: %s", name)

    def unsubscribe(self, name: str) -> None:
        self._subscribers.pop(name, None)
        logger.debug("Sampler subscriber removed: %s", name)

    @property
    def has_subscribers(self) -> bool:
        return bool(self._subscribers)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._state in (SamplerState.STARTING, SamplerState.RUNNING):
            logger.debug("Sampler already %s; start ignored.", self._state.value)
            return

        self._state = SamplerState.STARTING
        self._generation += 1
        generation = self._generation
        self.error = None
        camera = self._camera_factory()
        loop = asyncio.get_running_loop()

        try:
            await loop.run_in_executor(None, camera.start)
        except CameraError as exc:
            if generation == self._generation:
                self._state = SamplerState.ERROR
                self.error = str(exc)
            logger.error("Camera unavailable: %s", exc)
            raise

        if generation != self._generation:
            # stop() (or a newer start) arrived while the device was opening
            camera.stop()
            logger.info("Sampler stopped during camera acquisition; released device.")
            return

        self._camera = camera
        self._state = SamplerState.RUNNING
        self._task = loop.create_task(self._run(), name="FrameSampler")
        self._task.add_done_callback(self._on_task_done)
        logger.info("Sampler running at %.0f Hz.", 1000.0 / self.interval_ms)

    def stop(self) -> None:
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if self._camera is not None:
            self._camera.stop()
            self._camera = None
            logger.info("Sampler stopped.")
        if self._state != SamplerState.ERROR:
            self._state = SamplerState.IDLE

    @property
    def state(self) -> SamplerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SamplerState.RUNNING

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick(self, now: Optional[float] = None) -> Optional[FrameBuffer]:
        """Capture one frame and deliver it to every subscriber."""
        if self._camera is None:
            return None
        data = self._camera.get_frame()
        if data is None:
            return None
        frame_bgr, cam_ts = data
        frame = self._to_buffer(frame_bgr, cam_ts)
        if now is None:
            now = time.monotonic()
        for callback in list(self._subscribers.values()):
            callback(frame, now)
        self.frames_delivered += 1
        return frame

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.interval_ms / 1000.0
        next_tick = loop.time()
        while self._state == SamplerState.RUNNING:
            self.tick()
            next_tick += interval
            delay = next_tick - loop.time()
            if delay < 0:
                # Fell behind; skip missed ticks rather than bursting
                next_tick = loop.time()
                delay = 0.0
            await asyncio.sleep(delay)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Sampler tick failed; stopping.", exc_info=exc)
            # stop() keeps ERROR so owners see the failure
            self._state = SamplerState.ERROR
            self.error = f"Frame processing failed: {exc}"
            self.stop()

    def _to_buffer(self, frame_bgr: np.ndarray, cam_ts: float) -> FrameBuffer:
        h, w = frame_bgr.shape[:2]
        if (w, h) != (self.width, self.height):
            frame_bgr = cv2.resize(frame_bgr, (self.width, self.height), interpolation=cv2.INTER_AREA)
        rgba = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGBA)
        rgba.flags.writeable = False
        return FrameBuffer(pixels=rgba, timestamp_mono=cam_ts)
