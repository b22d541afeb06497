"""Pixel heuristics over a single RGBA frame: face presence, eye-band
brightness and a coarse gaze point from the skin-tone centroid.

These are colour-ratio heuristics, not a face model.  Accuracy depends
heavily on lighting, skin tone and camera quality; see
``vision.face_tracker`` for a landmark-based presence detector.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from domain.models import FrameBuffer

# Central region sampled for face presence, as (x, y, w, h) at 320x240
_PRESENCE_REGION = (80, 40, 160, 160)

# Eye band as fractions of the frame: rows 15-45 %, columns 20-80 %
_EYE_TOP = 0.15
_EYE_BOTTOM = 0.45
_EYE_LEFT = 0.2
_EYE_RIGHT = 0.8

_LUMA = np.array([0.299, 0.587, 0.114], dtype=np.float64)


def _channels(pixels: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    rgb = pixels[..., :3].astype(np.int16)
    return rgb[..., 0], rgb[..., 1], rgb[..., 2]


def strict_skin_mask(pixels: np.ndarray) -> np.ndarray:
    """Skin-tone test used for presence: warm, red-dominant pixels."""
    r, g, b = _channels(pixels)
    return (
        (r > 60) & (g > 40) & (b > 20)
        & (r > g) & (r > b)
        & (np.abs(r - g) > 15)
        & (r - b > 15)
    )


def loose_skin_mask(pixels: np.ndarray) -> np.ndarray:
    """Looser test used for the face centroid."""
    r, g, b = _channels(pixels)
    return (r > 60) & (g > 40) & (b > 20) & (r > g) & (r > b)


def presence_region(frame: FrameBuffer) -> np.ndarray:
    """Return the central region, scaled to the frame's actual size."""
    x, y, w, h = _PRESENCE_REGION
    sx = frame.width / 320.0
    sy = frame.height / 240.0
    x0, y0 = int(x * sx), int(y * sy)
    x1, y1 = int((x + w) * sx), int((y + h) * sy)
    return frame.pixels[y0:y1, x0:x1]


def skin_ratio(frame: FrameBuffer) -> tuple[float, int]:
    """Return ``(ratio, count)`` of skin-tone pixels in the presence region."""
    region = presence_region(frame)
    total = region.shape[0] * region.shape[1]
    if total == 0:
        return 0.0, 0
    count = int(np.count_nonzero(strict_skin_mask(region)))
    return count / total, count


class SkinPresenceDetector:
    """Callable ``frame -> bool``: face present when enough skin-tone pixels
    fill the central region."""

    def __init__(self, ratio_threshold: float = 0.15, min_pixels: int = 500) -> None:
        self.ratio_threshold = ratio_threshold
        self.min_pixels = min_pixels

    def __call__(self, frame: FrameBuffer) -> bool:
        ratio, count = skin_ratio(frame)
        return ratio > self.ratio_threshold and count >= self.min_pixels


def eye_region_brightness(frame: FrameBuffer) -> float:
    """Mean luminance (0-1) of the band presumed to contain the eyes."""
    h, w = frame.height, frame.width
    y0, y1 = int(h * _EYE_TOP), int(h * _EYE_BOTTOM)
    x0, x1 = int(w * _EYE_LEFT), int(w * _EYE_RIGHT)
    band = frame.pixels[y0:y1, x0:x1, :3]
    if band.size == 0:
        return 0.5
    luma = band.astype(np.float64) @ _LUMA
    return float(luma.mean() / 255.0)


def skin_centroid(frame: FrameBuffer, min_pixels: int = 100) -> Optional[tuple[float, float]]:
    """Centroid of skin-tone pixels as 0-1 frame coordinates, or ``None``
    when fewer than *min_pixels* qualify."""
    mask = loose_skin_mask(frame.pixels)
    count = int(np.count_nonzero(mask))
    if count <= min_pixels:
        return None
    ys, xs = np.nonzero(mask)
    return float(xs.mean() / frame.width), float(ys.mean() / frame.height)


def estimate_gaze_point(
    frame: FrameBuffer,
    sensitivity: float = 5.0,
    min_pixels: int = 100,
) -> Optional[tuple[float, float]]:
    """Map the face centroid to a raw 0-1 screen point.

    The camera faces the user, so x is mirrored.  *sensitivity* (1-10, 5 is
    neutral) is a gain applied around the screen centre.
    """
    centroid = skin_centroid(frame, min_pixels)
    if centroid is None:
        return None
    cx, cy = centroid
    gain = sensitivity / 5.0
    x = 0.5 + ((1.0 - cx) - 0.5) * gain
    y = 0.5 + (cy - 0.5) * gain
    return float(np.clip(x, 0.0, 1.0)), float(np.clip(y, 0.0, 1.0))
