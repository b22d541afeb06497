"""Core data models for the gaze remote-control pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

import numpy as np


class GazeDirection(str, Enum):
    CENTER = "center"
    LEFT = "left"
    RIGHT = "right"
    UP = "up"
    DOWN = "down"


class BlinkAction(str, Enum):
    CLICK = "click"
    LONG_PRESS = "longPress"
    TOGGLE = "toggle"
    NONE = "none"


class NavigationAction(str, Enum):
    NEXT_VIDEO = "nextVideo"
    PREV_VIDEO = "prevVideo"
    FRIENDS_FEED = "friendsFeed"
    PROMO_FEED = "promoFeed"
    NONE = "none"


class EyeState(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


# ── Frames ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FrameBuffer:
    """One RGBA frame, shape (H, W, 4) uint8.  Valid for a single tick only."""

    pixels: np.ndarray
    timestamp_mono: float

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])


# ── Attention ─────────────────────────────────────────────────────────────────

@dataclass
class AttentionResult:
    score: int
    passed: bool
    frames_detected: int
    frames_total: int


@dataclass
class AttentionSample:
    timestamp_mono: float
    timestamp_wall: float
    attentive: bool
    score: int


@dataclass
class AttentionSegment:
    """A closed stretch of time spent attentive or not attentive."""

    attentive: bool
    start_time: float  # monotonic seconds
    end_time: float

    @property
    def duration_ms(self) -> float:
        return (self.end_time - self.start_time) * 1000.0


# ── Gaze ──────────────────────────────────────────────────────────────────────

@dataclass
class GazePosition:
    raw: tuple[float, float]         # 0-1 screen-normalised, before calibration
    calibrated: tuple[float, float]  # pixels within the host viewport


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    def contains(self, x: float, y: float, padding: float = 0.0) -> bool:
        return (
            self.left - padding <= x <= self.right + padding
            and self.top - padding <= y <= self.bottom + padding
        )


# ── Ghost button phases ───────────────────────────────────────────────────────

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dwelling:
    since: float  # monotonic seconds


@dataclass(frozen=True)
class Activated:
    at: float


TargetPhase = Union[Idle, Dwelling, Activated]


@dataclass
class ButtonTarget:
    button_id: str
    rect: Rect
    control: Any = None  # host object exposing click() / press() / release()
    phase: TargetPhase = field(default_factory=Idle)

    @property
    def is_activated(self) -> bool:
        return isinstance(self.phase, Activated)

    def activation_progress(self, now: float, hold_ms: float) -> float:
        if isinstance(self.phase, Activated):
            return 1.0
        if isinstance(self.phase, Dwelling):
            if hold_ms <= 0:
                return 1.0
            return min(1.0, max(0.0, (now - self.phase.since) * 1000.0 / hold_ms))
        return 0.0


# ── Command bindings ──────────────────────────────────────────────────────────

@dataclass
class BlinkCommand:
    button_id: str
    single_blink: BlinkAction = BlinkAction.CLICK
    double_blink: BlinkAction = BlinkAction.LONG_PRESS
    triple_blink: BlinkAction = BlinkAction.TOGGLE

    def action_for(self, count: int) -> BlinkAction:
        if count == 1:
            return self.single_blink
        if count == 2:
            return self.double_blink
        if count == 3:
            return self.triple_blink
        return BlinkAction.NONE

    def to_dict(self) -> dict:
        return {
            "buttonId": self.button_id,
            "singleBlink": self.single_blink.value,
            "doubleBlink": self.double_blink.value,
            "tripleBlink": self.triple_blink.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BlinkCommand":
        return cls(
            button_id=str(data["buttonId"]),
            single_blink=BlinkAction(data.get("singleBlink", BlinkAction.CLICK.value)),
            double_blink=BlinkAction(data.get("doubleBlink", BlinkAction.LONG_PRESS.value)),
            triple_blink=BlinkAction(data.get("tripleBlink", BlinkAction.TOGGLE.value)),
        )


@dataclass
class GazeCommand:
    direction: GazeDirection
    action: NavigationAction = NavigationAction.NONE
    enabled: bool = False

    def to_dict(self) -> dict:
        return {
            "direction": self.direction.value,
            "action": self.action.value,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "GazeCommand":
        return cls(
            direction=GazeDirection(data["direction"]),
            action=NavigationAction(data.get("action", NavigationAction.NONE.value)),
            enabled=bool(data.get("enabled", False)),
        )


DEFAULT_GAZE_COMMANDS: list[GazeCommand] = [
    GazeCommand(GazeDirection.LEFT, NavigationAction.FRIENDS_FEED, True),
    GazeCommand(GazeDirection.RIGHT, NavigationAction.PROMO_FEED, True),
    GazeCommand(GazeDirection.UP, NavigationAction.PREV_VIDEO, True),
    GazeCommand(GazeDirection.DOWN, NavigationAction.NEXT_VIDEO, True),
]


@dataclass
class RemoteEvent:
    """Something the remote-control layer did, for session recording."""

    timestamp_mono: float
    kind: str    # "blink", "pattern", "action", "navigate", "attention_lost", ...
    detail: str = ""
    target: Optional[str] = None
