"""Application-wide configuration with typed fields and sane defaults."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from domain.models import (
    DEFAULT_GAZE_COMMANDS,
    BlinkCommand,
    GazeCommand,
    GazeDirection,
    NavigationAction,
)

logger = logging.getLogger(__name__)

_CONFIG_PATH = Path("config.json")


def _default_gaze_commands() -> list[dict]:
    return [cmd.to_dict() for cmd in DEFAULT_GAZE_COMMANDS]


@dataclass
class Config:
    # Camera
    camera_index: int = 0
    frame_width: int = 320
    frame_height: int = 240
    tick_ms: float = 50.0          # 20 Hz sampling

    # Attention
    attention_threshold: int = 85          # % of attentive frames to pass
    skin_ratio_threshold: float = 0.15     # fraction of skin pixels for "face present"
    min_skin_pixels: int = 500
    presence_detector: str = "skin"        # "skin" or "landmarks"
    auto_pause_lost_fraction: float = 0.2  # pause when lost > this share of content
    required_watch_pct: float = 95.0
    min_frames_required: int = 10

    # Blink detection
    blink_threshold: float = 0.25    # relative brightness drop = eyes closed
    blink_cooldown_ms: float = 150.0
    blink_pattern_timeout_ms: float = 600.0

    # Remote control
    remote_enabled: bool = False
    sensitivity: int = 5             # 1-10, 5 = neutral gain
    gaze_hold_ms: float = 800.0      # dwell before a button turns ghost
    ghost_padding_px: float = 30.0
    ghost_opacity: float = 0.4
    edge_threshold: float = 0.35
    rapid_movement_enabled: bool = True
    rapid_movement_speed: float = 80.0 * 60.0  # px/s
    rapid_movement_cooldown_ms: float = 500.0
    navigation_cooldown_ms: float = 1000.0
    last_action_display_ms: float = 1500.0
    long_press_ms: float = 500.0

    # Command bindings
    blink_commands: dict[str, dict] = field(default_factory=dict)
    gaze_commands: list[dict] = field(default_factory=_default_gaze_commands)

    # Session
    profile_name: str = "default"
    record_sessions: bool = False

    # UI
    window_width: int = 1280
    window_height: int = 800
    debug_overlay: bool = True

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Path = _CONFIG_PATH) -> None:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(asdict(self), fh, indent=2)
        logger.debug("Config saved.")

    @classmethod
    def load(cls, path: Path = _CONFIG_PATH) -> "Config":
        if not path.exists():
            return cls()
        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
            cfg = cls()
            for k, v in data.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
            logger.debug("Config loaded from %s", path)
            return cfg
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not load config (%s); using defaults.", exc)
            return cls()


ConfigListener = Callable[[Config], None]


class ConfigManager:
    """Owns the live :class:`Config`; persists changes and notifies
    subscribers so consumers never poll storage for updates."""

    def __init__(
        self,
        config: Optional[Config] = None,
        save: Optional[Callable[[Config], None]] = None,
    ) -> None:
        self.config = config or Config()
        self._save = save if save is not None else Config.save
        self._listeners: list[ConfigListener] = []

    def subscribe(self, listener: ConfigListener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def update(self, **changes: Any) -> Config:
        for key, value in changes.items():
            if not hasattr(self.config, key):
                raise AttributeError(f"Unknown config field: {key}")
            setattr(self.config, key, value)
        self.commit()
        return self.config

    def commit(self) -> None:
        try:
            self._save(self.config)
        except OSError as exc:
            logger.warning("Could not save config: %s", exc)
        for listener in list(self._listeners):
            listener(self.config)

    # ------------------------------------------------------------------
    # Command bindings
    # ------------------------------------------------------------------

    def get_blink_command(self, button_id: str) -> BlinkCommand:
        data = self.config.blink_commands.get(button_id)
        if data is None:
            return BlinkCommand(button_id=button_id)
        try:
            return BlinkCommand.from_dict({**data, "buttonId": button_id})
        except ValueError as exc:
            logger.warning("Bad blink command for %s (%s); using defaults.", button_id, exc)
            return BlinkCommand(button_id=button_id)

    def set_blink_command(self, command: BlinkCommand) -> None:
        self.config.blink_commands = {
            **self.config.blink_commands,
            command.button_id: command.to_dict(),
        }
        self.commit()

    def gaze_commands(self) -> list[GazeCommand]:
        commands = []
        for data in self.config.gaze_commands:
            try:
                commands.append(GazeCommand.from_dict(data))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping bad gaze command %r (%s)", data, exc)
        return commands

    def get_gaze_command(self, direction: GazeDirection) -> GazeCommand:
        for cmd in self.gaze_commands():
            if cmd.direction == direction:
                return cmd
        return GazeCommand(direction=direction, action=NavigationAction.NONE, enabled=False)

    def set_gaze_command(
        self,
        direction: GazeDirection,
        action: NavigationAction,
        enabled: bool,
    ) -> None:
        updated = GazeCommand(direction=direction, action=action, enabled=enabled)
        commands = self.gaze_commands()
        for i, cmd in enumerate(commands):
            if cmd.direction == direction:
                commands[i] = updated
                break
        else:
            commands.append(updated)
        self.config.gaze_commands = [c.to_dict() for c in commands]
        self.commit()
