"""Face presence from MediaPipe FaceLandmarker (Tasks API).

Higher-fidelity alternative to the skin-tone heuristic in
:mod:`vision.frame_analysis`.  Selected with ``presence_detector =
"landmarks"`` in the config; the model file is downloaded on first use.
"""

from __future__ import annotations

import logging
import time
import urllib.request
from pathlib import Path
from typing import Optional

import cv2
import mediapipe as mp
from mediapipe.tasks.python import vision
from mediapipe.tasks.python.core.base_options import BaseOptions

from domain.models import FrameBuffer

logger = logging.getLogger(__name__)

_MODEL_FILENAME = "face_landmarker.task"
_MODEL_PATH = Path("assets") / _MODEL_FILENAME
_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "face_landmarker/face_landmarker/float16/1/face_landmarker.task"
)

# Eyelid landmarks for an openness estimate
_LEFT_EYE_TOP = 159
_LEFT_EYE_BOTTOM = 145
_LEFT_EYE_OUTER = 33
_LEFT_EYE_INNER = 133
_RIGHT_EYE_TOP = 386
_RIGHT_EYE_BOTTOM = 374
_RIGHT_EYE_OUTER = 362
_RIGHT_EYE_INNER = 263


def ensure_model(model_path: Path = _MODEL_PATH) -> Path:
    """Return the model path, downloading it first if necessary.

    Raises ``RuntimeError`` on network failure so the caller can fall back
    to the skin-tone detector.
    """
    if model_path.exists():
        return model_path

    model_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("Downloading FaceLandmarker model -> %s", model_path)
    try:
        urllib.request.urlretrieve(_MODEL_URL, str(model_path))
    except OSError as exc:
        model_path.unlink(missing_ok=True)  # partial file
        raise RuntimeError(
            f"Failed to download FaceLandmarker model from {_MODEL_URL}: {exc}. "
            f"Place the file manually at {model_path.resolve()}"
        ) from exc
    logger.info("Model saved: %s", model_path)
    return model_path


class LandmarkPresenceDetector:
    """Callable ``frame -> bool`` backed by FaceLandmarker in VIDEO mode.

    Must be called from a single thread; the sampler tick owns it.
    """

    def __init__(self, model_path: Optional[Path] = None, min_openness: float = 0.0) -> None:
        path = model_path or ensure_model()
        options = vision.FaceLandmarkerOptions(
            base_options=BaseOptions(model_asset_path=str(path.resolve())),
            running_mode=vision.RunningMode.VIDEO,
            num_faces=1,
            min_face_detection_confidence=0.5,
            min_face_presence_confidence=0.5,
            min_tracking_confidence=0.5,
            output_face_blendshapes=False,
            output_facial_transformation_matrixes=False,
        )
        self._landmarker = vision.FaceLandmarker.create_from_options(options)
        self.min_openness = min_openness
        self.last_openness: Optional[float] = None
        self._start_mono = time.monotonic()
        self._last_ts_ms = -1
        logger.info("LandmarkPresenceDetector initialised (model=%s)", path.name)

    def __call__(self, frame: FrameBuffer) -> bool:
        # VIDEO mode requires strictly increasing timestamps
        ts_ms = int((time.monotonic() - self._start_mono) * 1000)
        ts_ms = max(ts_ms, self._last_ts_ms + 1)
        self._last_ts_ms = ts_ms

        rgb = cv2.cvtColor(frame.pixels, cv2.COLOR_RGBA2RGB)
        result = self._landmarker.detect_for_video(mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb), ts_ms)
        if not result.face_landmarks:
            self.last_openness = None
            return False

        lms = result.face_landmarks[0]

        def openness(top_i: int, bot_i: int, outer_i: int, inner_i: int) -> float:
            vert = abs(lms[top_i].y - lms[bot_i].y)
            horiz = abs(lms[outer_i].x - lms[inner_i].x) + 1e-6
            return float(vert / horiz)

        self.last_openness = (
            openness(_LEFT_EYE_TOP, _LEFT_EYE_BOTTOM, _LEFT_EYE_OUTER, _LEFT_EYE_INNER)
            + openness(_RIGHT_EYE_TOP, _RIGHT_EYE_BOTTOM, _RIGHT_EYE_OUTER, _RIGHT_EYE_INNER)
        ) / 2.0
        return self.last_openness >= self.min_openness

    def close(self) -> None:
        self._landmarker.close()
        logger.debug("LandmarkPresenceDetector closed.")
