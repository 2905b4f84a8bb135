"""
Regulation Checker — mandatory pauses for hydration, stretching, meals and rest.

Every minute while a session is active the configured rules are checked
against the session's focused time. A due rule logs a regulation nudge,
pauses the session and hands the UI a MandatoryPause whose Resume stays
locked until the countdown reaches zero.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from focusguard.config import FocusSettings
from focusguard.data.models import (
    EventType, FocusSession, RegulationRule, RuleType, SessionStatus,
)
from focusguard.data.repository import Repository
from focusguard.errors import PersistenceError, ValidationError
from focusguard.services.scheduler import RepeatingTask, TaskScope
from focusguard.services.session_service import FocusSessionService

logger = logging.getLogger(__name__)

REGULATION_REASON_PREFIX = "regulation:"


# Built-in rules seeded for new users
DEFAULT_RULES: List[RegulationRule] = [
    RegulationRule(
        rule_type=RuleType.HYDRATE,
        message="Remember to hydrate. Grab a glass of water.",
        interval_minutes=60,
        mandatory_delay_seconds=30,
    ),
    RegulationRule(
        rule_type=RuleType.STRETCH,
        message="Time to stretch and move around.",
        interval_minutes=90,
        mandatory_delay_seconds=60,
    ),
    RegulationRule(
        rule_type=RuleType.REST,
        message="You have been in focus mode for 2 hours. Time for a break.",
        interval_minutes=120,
        mandatory_delay_seconds=300,
    ),
    RegulationRule(
        rule_type=RuleType.MEAL,
        message="You've been at it for a long stretch. Go eat something.",
        interval_minutes=240,
        mandatory_delay_seconds=600,
    ),
]


@dataclass
class MandatoryPause:
    """A forced pause. Resume is gated on the countdown."""
    rule: RegulationRule
    started_at: datetime

    @property
    def delay_seconds(self) -> int:
        return self.rule.mandatory_delay_seconds or 0

    def remaining_seconds(self, now: datetime) -> int:
        elapsed = (now - self.started_at).total_seconds()
        return max(0, int(math.ceil(self.delay_seconds - elapsed)))

    def can_resume(self, now: datetime) -> bool:
        return self.remaining_seconds(now) == 0


def ensure_default_rules(repo: Repository, user_id: str) -> List[RegulationRule]:
    """Seed the built-in rules for a user that has none."""
    existing = repo.list_rules(user_id)
    if existing:
        return existing
    for rule in DEFAULT_RULES:
        repo.save_rule(RegulationRule(
            user_id=user_id,
            rule_type=rule.rule_type,
            message=rule.message,
            interval_minutes=rule.interval_minutes,
            mandatory_delay_seconds=rule.mandatory_delay_seconds,
        ))
    logger.info("Seeded %d default regulation rules for %s", len(DEFAULT_RULES), user_id)
    return repo.list_rules(user_id)


class RegulationChecker:
    """Polls regulation rules for one session view."""

    def __init__(
        self,
        repo: Repository,
        session_service: FocusSessionService,
        scope: TaskScope,
        settings: FocusSettings,
        on_mandatory_pause: Optional[Callable[[MandatoryPause], None]] = None,
        on_resumed: Optional[Callable[[], None]] = None,
    ) -> None:
        self.repo = repo
        self.session_svc = session_service
        self.scope = scope
        self.settings = settings
        self.on_mandatory_pause = on_mandatory_pause
        self.on_resumed = on_resumed

        self.session_id: Optional[str] = None
        self.pending: Optional[MandatoryPause] = None
        self._task: RepeatingTask = scope.repeating(
            "regulation", settings.regulation_interval_sec, self.tick
        )

    # ── Public API ──────────────────────────────────────────────────────────

    def start(self, session_id: str) -> None:
        self.session_id = session_id
        self._task.set_interval(self.settings.regulation_interval_sec)
        self._task.start()
        logger.info("Regulation checks started: every %.0fs", self.settings.regulation_interval_sec)

    def stop(self) -> None:
        self._task.stop()

    @property
    def is_running(self) -> bool:
        return self._task.is_active

    def check_regulation_rules(self, session_id: str) -> Optional[RegulationRule]:
        """
        Return the rule that is due now, or None.

        A rule is due when focused time has crossed more multiples of its
        interval than it has fired in this session. When several are due,
        the one with the longest interval wins.
        """
        due = self.due_rules(session_id)
        return due[0] if due else None

    def due_rules(self, session_id: str) -> List[RegulationRule]:
        """All rules due now, longest interval first."""
        session = self.repo.get_session(session_id)
        if session is None or session.status != SessionStatus.ACTIVE:
            return []
        focused_min = self.session_svc.focused_seconds(session) / 60.0
        fired = self._fire_counts(session_id)

        due: List[RegulationRule] = []
        for rule in self.repo.list_rules(session.user_id, enabled_only=True):
            if rule.interval_minutes <= 0:
                continue
            crossings = int(focused_min // rule.interval_minutes)
            if crossings > fired.get(rule.rule_type, 0):
                due.append(rule)
        return due

    def resume_from_pause(self) -> None:
        """Leave a mandatory pause. Refused until the countdown is over."""
        if self.pending is None or self.session_id is None:
            raise ValidationError("No mandatory pause in progress.")
        now = self.session_svc.clock()
        if not self.pending.can_resume(now):
            raise ValidationError(
                f"Mandatory pause: {self.pending.remaining_seconds(now)}s left."
            )
        self.session_svc.resume_session(self.session_id)
        self.pending = None
        logger.info("Session %s resumed after mandatory pause", self.session_id)
        if self.on_resumed:
            self.on_resumed()

    def restore(self, session: FocusSession) -> Optional[MandatoryPause]:
        """
        Rebuild a mandatory pause that outlived the view that enforced it.

        The latest pause event carries the rule type in its reason; the
        countdown runs from that event's timestamp.
        """
        self.session_id = session.id
        self.pending = None
        if not session.is_paused:
            return None
        pauses = self.repo.get_events_of_type(session.id, EventType.PAUSE)
        if not pauses:
            return None
        last = pauses[-1]
        reason = last.metadata.get("reason") or ""
        if not reason.startswith(REGULATION_REASON_PREFIX):
            return None

        rule_type = reason[len(REGULATION_REASON_PREFIX):]
        rule = next((r for r in self.repo.list_rules(session.user_id)
                     if r.rule_type == rule_type), None)
        if rule is None:
            logger.warning("Paused for unknown rule %r; treating as a plain pause", rule_type)
            return None

        self.pending = MandatoryPause(rule=rule, started_at=last.timestamp)
        logger.info("Restored mandatory %s pause for session %s", rule_type, session.id)
        if self.on_mandatory_pause:
            self.on_mandatory_pause(self.pending)
        return self.pending

    # ── Timer callback ──────────────────────────────────────────────────────

    def tick(self) -> Optional[MandatoryPause]:
        if self.session_id is None or self.scope.closed or self.pending is not None:
            return None
        try:
            due = self.due_rules(self.session_id)
        except PersistenceError:
            logger.warning("Regulation check failed for %s; retrying next tick",
                           self.session_id, exc_info=True)
            return None
        if not due:
            return None
        return self._enforce(due[0], covered=due[1:])

    def _enforce(
        self, rule: RegulationRule, covered: Sequence[RegulationRule] = ()
    ) -> Optional[MandatoryPause]:
        now = self.session_svc.clock()
        try:
            # shorter rules due on the same tick are folded into this pause
            self.repo.add_event(self.session_id, EventType.NUDGE_HARD, now, {
                "regulation": True,
                "regulation_type": rule.rule_type,
                "covers": [r.rule_type for r in covered],
                "message": rule.message,
                "mandatory_delay_seconds": rule.mandatory_delay_seconds,
            })
            self.session_svc.pause_session(self.session_id, REGULATION_REASON_PREFIX + rule.rule_type)
        except PersistenceError:
            logger.exception("Could not enforce %s pause", rule.rule_type)
            return None

        self.pending = MandatoryPause(rule=rule, started_at=now)
        logger.info("Mandatory %s pause (%ss) for session %s",
                    rule.rule_type, rule.mandatory_delay_seconds, self.session_id)
        if self.on_mandatory_pause:
            self.on_mandatory_pause(self.pending)
        return self.pending

    def _fire_counts(self, session_id: str) -> dict:
        counts: dict = {}
        for event in self.repo.get_events_of_type(session_id, EventType.NUDGE_HARD):
            if not event.metadata.get("regulation"):
                continue
            kinds = [event.metadata.get("regulation_type")] + list(event.metadata.get("covers", []))
            for kind in kinds:
                counts[kind] = counts.get(kind, 0) + 1
        return counts
