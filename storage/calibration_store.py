"""Load and save per-profile gaze calibration models."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import Any, Optional

from calibration.gaze_calibration import CalibrationModel

logger = logging.getLogger(__name__)

_PROFILES_DIR = Path("profiles")
_FORMAT_VERSION = 1


def calibration_path(profile_name: str, root: Path = _PROFILES_DIR) -> Path:
    return root / profile_name / "calibration.json"


def list_profiles(root: Path = _PROFILES_DIR) -> list[str]:
    """Return sorted profile names that have a calibration file."""
    if not root.exists():
        return []
    return sorted(
        d.name
        for d in root.iterdir()
        if d.is_dir() and (d / "calibration.json").exists()
    )


def save_calibration(
    model: CalibrationModel,
    profile_name: str = "default",
    root: Path = _PROFILES_DIR,
) -> Path:
    path = calibration_path(profile_name, root)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "version": _FORMAT_VERSION,
        "profile_name": profile_name,
        "model": model.to_dict(),
    }
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(data, fh, indent=2)
    logger.info("Calibration saved: %s", path)
    return path


def load_calibration(
    profile_name: str = "default",
    root: Path = _PROFILES_DIR,
) -> Optional[CalibrationModel]:
    path = calibration_path(profile_name, root)
    if not path.exists():
        logger.info("No calibration found at %s", path)
        return None
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
        model = CalibrationModel.from_dict(data["model"])
    except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("Failed to load calibration %s (%s); using identity.", path, exc)
        return None
    logger.info("Calibration loaded: %s", path)
    return model


def calibration_hash(model: CalibrationModel) -> str:
    """Short SHA-256 hash of the model (for session meta)."""
    data: dict[str, Any] = model.to_dict()
    blob = json.dumps(data, sort_keys=True, default=str).encode()
    return hashlib.sha256(blob).hexdigest()[:12]
