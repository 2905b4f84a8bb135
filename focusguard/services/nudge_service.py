"""
Nudge Scheduler — periodic "stay on track" reminders.

Fires every few minutes while the session is active and no drift is open.
Soft nudges dismiss themselves after a few seconds; hard nudges (too many
drifts) stay until the user acknowledges them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from focusguard.config import FocusSettings
from focusguard.data.models import EventType, FocusEvent, SessionStatus
from focusguard.data.repository import Repository
from focusguard.errors import PersistenceError
from focusguard.services.drift_service import DriftDetector
from focusguard.services.scheduler import RepeatingTask, SingleShotTask, TaskScope

logger = logging.getLogger(__name__)

SOFT_MESSAGE = "Stay on track. You're doing great."
HARD_MESSAGE = (
    "You've drifted {count} times this session. "
    "Take a breath and bring your attention back to the project."
)


class NudgeLevel:
    SOFT = "soft"
    HARD = "hard"


@dataclass
class Nudge:
    level: str
    message: str
    event: FocusEvent

    @property
    def requires_ack(self) -> bool:
        return self.level == NudgeLevel.HARD


def choose_nudge(drift_count: int, threshold: int) -> tuple:
    """(level, message) for the current drift count."""
    if drift_count > threshold:
        return NudgeLevel.HARD, HARD_MESSAGE.format(count=drift_count)
    return NudgeLevel.SOFT, SOFT_MESSAGE


class NudgeScheduler:
    """Owns the nudge timer for one session view."""

    def __init__(
        self,
        repo: Repository,
        drift_detector: DriftDetector,
        scope: TaskScope,
        settings: FocusSettings,
        clock: Callable,
        on_nudge: Optional[Callable[[Nudge], None]] = None,
        on_dismiss: Optional[Callable[[Nudge], None]] = None,
    ) -> None:
        self.repo = repo
        self.drift = drift_detector
        self.scope = scope
        self.settings = settings
        self.clock = clock
        self.on_nudge = on_nudge
        self.on_dismiss = on_dismiss

        self.session_id: Optional[str] = None
        self.current: Optional[Nudge] = None
        self._task: RepeatingTask = scope.repeating(
            "nudge", settings.nudge_interval_min * 60, self.tick
        )
        # one dismiss timer, re-armed for every soft nudge
        self._dismiss_task: SingleShotTask = scope.single_shot(
            "nudge-dismiss", settings.soft_nudge_dismiss_sec, self._dismiss
        )

    # ── Public API ──────────────────────────────────────────────────────────

    def start(self, session_id: str) -> None:
        self.session_id = session_id
        self._task.set_interval(self.settings.nudge_interval_min * 60)
        self._task.start()
        logger.info("Nudge timer started: every %.0f min", self.settings.nudge_interval_min)

    def stop(self) -> None:
        self._task.stop()
        self._dismiss_task.stop()

    @property
    def is_running(self) -> bool:
        return self._task.is_active

    def acknowledge(self) -> None:
        """User pressed the button on a nudge (required for hard ones)."""
        self._dismiss()

    # ── Timer callback ──────────────────────────────────────────────────────

    def tick(self) -> Optional[Nudge]:
        if self.session_id is None or self.scope.closed:
            return None
        if self.drift.drift_active:
            return None
        try:
            session = self.repo.get_session(self.session_id)
            if session is None or session.status != SessionStatus.ACTIVE:
                return None
            level, message = choose_nudge(
                session.drift_count, self.settings.hard_nudge_drift_threshold
            )
            event_type = EventType.NUDGE_HARD if level == NudgeLevel.HARD else EventType.NUDGE_SOFT
            event = self.repo.add_event(self.session_id, event_type, self.clock(),
                                        {"message": message})
        except PersistenceError:
            logger.exception("Nudge skipped for session %s", self.session_id)
            return None

        nudge = Nudge(level=level, message=message, event=event)
        self.current = nudge
        logger.info("%s nudge for session %s", level.capitalize(), self.session_id)
        if self.on_nudge:
            self.on_nudge(nudge)
        if nudge.requires_ack:
            self._dismiss_task.stop()
        else:
            self._dismiss_task.set_interval(self.settings.soft_nudge_dismiss_sec)
            self._dismiss_task.start()
        return nudge

    def _dismiss(self) -> None:
        nudge, self.current = self.current, None
        if nudge is not None and self.on_dismiss:
            self.on_dismiss(nudge)
