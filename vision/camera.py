"""Threaded webcam capture with timestamps."""

from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class CameraError(RuntimeError):
    """The camera could not be opened (missing device or access denied)."""


class Camera:
    """Grabs frames from a webcam in a background thread so the sampling
    tick never blocks on device I/O.  Call :meth:`get_frame` to retrieve the
    latest captured frame without waiting."""

    def __init__(self, index: int = 0, width: int = 320, height: int = 240) -> None:
        self.index = index
        self._req_width = width
        self._req_height = height
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame: Optional[np.ndarray] = None
        self._timestamp: float = 0.0
        self._lock = threading.Lock()
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._width: int = 0
        self._height: int = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the device and begin capturing.  Blocking; raises
        :class:`CameraError` if the device cannot be opened."""
        cap = cv2.VideoCapture(self.index)
        if not cap.isOpened():
            cap.release()
            raise CameraError(f"Cannot open camera at index {self.index}.")

        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self._req_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self._req_height)

        self._cap = cap
        self._width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        self._height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))

        self._running = True
        self._thread = threading.Thread(target=self._capture_loop, daemon=True, name="CameraCapture")
        self._thread.start()
        logger.info("Camera started: index=%d  res=%dx%d", self.index, self._width, self._height)

    def stop(self) -> None:
        if self._cap is None:
            return
        self._running = False
        if self._thread:
            self._thread.join(timeout=2.0)
            self._thread = None
        self._cap.release()
        self._cap = None
        with self._lock:
            self._frame = None
        logger.info("Camera stopped.")

    # ------------------------------------------------------------------
    # Frame access
    # ------------------------------------------------------------------

    def get_frame(self) -> Optional[tuple[np.ndarray, float]]:
        """Return ``(frame_bgr, monotonic_timestamp)`` or ``None`` if no
        frame has been captured yet."""
        with self._lock:
            if self._frame is None:
                return None
            return self._frame.copy(), self._timestamp

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _capture_loop(self) -> None:
        cap = self._cap
        assert cap is not None
        while self._running:
            ret, frame = cap.read()
            if ret:
                ts = time.monotonic()
                with self._lock:
                    self._frame = frame
                    self._timestamp = ts
            else:
                time.sleep(0.005)
