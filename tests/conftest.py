"""Shared fakes: a camera that needs no device."""

import threading
from typing import Optional

import numpy as np
import pytest

from vision.camera import CameraError


class FakeCamera:
    def __init__(self, fail: bool = False, gate: Optional[threading.Event] = None) -> None:
        self.fail = fail
        self.gate = gate
        self.started = False
        self.stop_calls = 0
        self.frame = np.zeros((240, 320, 3), dtype=np.uint8)

    def start(self) -> None:
        if self.gate is not None:
            self.gate.wait(timeout=2.0)
        if self.fail:
            raise CameraError("Cannot open camera at index 0.")
        self.started = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.started = False

    def get_frame(self):
        if not self.started:
            return None
        return self.frame, 0.0


class CameraFactory:
    """Callable handed to FrameSampler; remembers every camera it built."""

    def __init__(self) -> None:
        self.cameras: list[FakeCamera] = []
        self.fail = False
        self.gate: Optional[threading.Event] = None

    def __call__(self) -> FakeCamera:
        cam = FakeCamera(fail=self.fail, gate=self.gate)
        self.cameras.append(cam)
        return cam


@pytest.fixture
def camera_factory() -> CameraFactory:
    return CameraFactory()
