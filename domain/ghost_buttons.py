"""Dwell-to-activate ("ghost") state machine for gaze button targets."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from domain.models import Activated, ButtonTarget, Dwelling, Idle, Rect

logger = logging.getLogger(__name__)


class GhostButtonActivationFSM:
    """Tracks one dwell timer per registered target.

    Idle --gaze enters padded rect--> Dwelling(since)
    Dwelling --gaze leaves--> Idle
    Dwelling --hold time elapsed--> Activated; becomes the current target
    Activated --gaze leaves--> Idle; current target cleared if it was this one

    Only the most recently activated target is the current dispatch target.
    """

    def __init__(self, hold_ms: float = 800.0, padding_px: float = 30.0) -> None:
        self.hold_ms = hold_ms
        self.padding_px = padding_px
        self._targets: dict[str, ButtonTarget] = {}
        self._current: Optional[str] = None
        self._on_activated: Optional[Callable[[str], None]] = None

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, button_id: str, rect: Rect, control: Any = None) -> None:
        existing = self._targets.get(button_id)
        if existing is not None:
            # Re-registration updates geometry but keeps the dwell state
            existing.rect = rect
            existing.control = control
            return
        self._targets[button_id] = ButtonTarget(button_id=button_id, rect=rect, control=control)

    def unregister(self, button_id: str) -> None:
        self._targets.pop(button_id, None)
        if self._current == button_id:
            self._current = None

    def set_on_activated(self, callback: Callable[[str], None]) -> None:
        self._on_activated = callback

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def update(self, x: float, y: float, now: float) -> Optional[ButtonTarget]:
        """Feed a gaze position in pixels; return the current target."""
        for target in self._targets.values():
            inside = target.rect.contains(x, y, self.padding_px)
            self._step(target, inside, now)
        return self.current_target

    def poll(self, now: float) -> Optional[ButtonTarget]:
        """Promote dwelling targets whose hold time elapsed since the last
        gaze sample."""
        for target in self._targets.values():
            if isinstance(target.phase, Dwelling):
                self._step(target, True, now)
        return self.current_target

    def clear(self) -> None:
        for target in self._targets.values():
            target.phase = Idle()
        self._current = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def current_target(self) -> Optional[ButtonTarget]:
        if self._current is None:
            return None
        return self._targets.get(self._current)

    @property
    def targets(self) -> dict[str, ButtonTarget]:
        return dict(self._targets)

    def get(self, button_id: str) -> Optional[ButtonTarget]:
        return self._targets.get(button_id)

    def progress(self, button_id: str, now: float) -> float:
        target = self._targets.get(button_id)
        if target is None:
            return 0.0
        return target.activation_progress(now, self.hold_ms)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _step(self, target: ButtonTarget, inside: bool, now: float) -> None:
        phase = target.phase
        if not inside:
            if not isinstance(phase, Idle):
                target.phase = Idle()
                if self._current == target.button_id:
                    self._current = None
                    logger.debug("Ghost cleared: %s", target.button_id)
            return

        if isinstance(phase, Idle):
            target.phase = Dwelling(since=now)
        elif isinstance(phase, Dwelling):
            if (now - phase.since) * 1000.0 >= self.hold_ms:
                target.phase = Activated(at=now)
                self._current = target.button_id
                logger.debug("Ghost activated: %s", target.button_id)
                if self._on_activated:
                    self._on_activated(target.button_id)
