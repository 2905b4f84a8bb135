"""
Session Service — orchestrates the lifecycle of a focus session.

Handles: start, pause/resume, extend, end/cancel, distraction logging and
history queries. Everything that touches a session's status goes through
here so the state machine is enforced in one place.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from focusguard.config import (
    DEFAULT_USER_ID,
    MAX_EXTEND_MINUTES,
    MAX_GOAL_MINUTES,
    MIN_EXTEND_MINUTES,
    MIN_GOAL_MINUTES,
)
from focusguard.data.models import (
    Distraction,
    DistractionType,
    EventType,
    FocusSession,
    SessionStatus,
)
from focusguard.data.repository import Repository
from focusguard.errors import NotFoundError, ValidationError
from focusguard.services.scoring import compute_score

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def round_minutes(seconds: float) -> int:
    """Whole minutes, rounding half up."""
    return int(math.floor(seconds / 60.0 + 0.5))


class FocusSessionService:
    """
    Manages the lifecycle of focus sessions for one user.

    Only ONE session can be open (active or paused) at a time. Transitions:
        active ⇄ paused,  active|paused → completed | cancelled
    """

    def __init__(
        self,
        repo: Repository,
        user_id: str = DEFAULT_USER_ID,
        clock: Clock = datetime.now,
    ) -> None:
        self.repo = repo
        self.user_id = user_id
        self.clock = clock

    # ── Session lifecycle ───────────────────────────────────────────────────

    def start_session(self, project_id: str, goal_minutes: int) -> FocusSession:
        """Start a new focus session against a tracked project."""
        if not isinstance(goal_minutes, int) or not (
            MIN_GOAL_MINUTES <= goal_minutes <= MAX_GOAL_MINUTES
        ):
            raise ValidationError(
                f"Goal must be between {MIN_GOAL_MINUTES} and "
                f"{MAX_GOAL_MINUTES} minutes, got {goal_minutes!r}."
            )
        if not project_id or self.repo.get_project(project_id) is None:
            raise ValidationError("No active project context to focus on.")
        if self.repo.get_open_session(self.user_id) is not None:
            raise ValidationError(
                "You already have an active focus session. "
                "End it before starting a new one."
            )

        now = self.clock()
        session = FocusSession(
            id=str(uuid.uuid4()),
            user_id=self.user_id,
            project_id=project_id,
            status=SessionStatus.ACTIVE,
            start_time=now,
            target_end_time=now + timedelta(minutes=goal_minutes),
            intended_duration_minutes=goal_minutes,
        )
        self.repo.create_session(session)
        self.repo.add_event(session.id, EventType.START, now,
                            {"intended_duration_minutes": goal_minutes})
        logger.info("Focus session %s started on project %s (%d min)",
                    session.id, project_id, goal_minutes)
        return session

    def pause_session(self, session_id: str, reason: str = "user") -> FocusSession:
        session = self._require_open(session_id, "pause")
        if session.status == SessionStatus.PAUSED:
            raise ValidationError("Session is already paused.")
        now = self.clock()
        session.status = SessionStatus.PAUSED
        session.paused_at = now
        self.repo.update_session(session)
        self.repo.add_event(session_id, EventType.PAUSE, now, {"reason": reason})
        logger.info("Session %s paused (%s)", session_id, reason)
        return session

    def resume_session(self, session_id: str) -> FocusSession:
        session = self._require_open(session_id, "resume")
        if session.status != SessionStatus.PAUSED:
            raise ValidationError("Session is not paused.")
        now = self.clock()
        session.paused_seconds += self._current_pause_seconds(session, now)
        session.paused_at = None
        session.status = SessionStatus.ACTIVE
        self.repo.update_session(session)
        self.repo.add_event(session_id, EventType.RESUME, now)
        logger.info("Session %s resumed", session_id)
        return session

    def extend_session(self, session_id: str, minutes: int) -> FocusSession:
        """Push the target end time forward. Not allowed while paused."""
        if not isinstance(minutes, int) or not (
            MIN_EXTEND_MINUTES <= minutes <= MAX_EXTEND_MINUTES
        ):
            raise ValidationError(
                f"Extension must be between {MIN_EXTEND_MINUTES} and "
                f"{MAX_EXTEND_MINUTES} minutes, got {minutes!r}."
            )
        session = self._require_open(session_id, "extend")
        if session.status == SessionStatus.PAUSED:
            raise ValidationError("Cannot extend a paused session. Resume it first.")

        session.target_end_time = session.target_end_time + timedelta(minutes=minutes)
        session.intended_duration_minutes = (session.intended_duration_minutes or 0) + minutes
        self.repo.update_session(session)
        self.repo.add_event(session_id, EventType.EXTEND, self.clock(), {
            "additional_minutes": minutes,
            "new_duration": session.intended_duration_minutes,
            "target_end_time": session.target_end_time.isoformat(),
        })
        logger.info("Session %s extended by %d min", session_id, minutes)
        return session

    def end_session(
        self, session_id: str, status: str = SessionStatus.COMPLETED
    ) -> FocusSession:
        """
        Finalize a session and compute its score.

        Idempotent: a session that is already completed or cancelled is
        returned unchanged.
        """
        if status not in SessionStatus.FINISHED:
            raise ValidationError(f"Cannot end a session as {status!r}.")
        session = self.repo.get_session(session_id)
        if session is None:
            raise NotFoundError(session_id)
        if not session.is_open:
            logger.debug("Session %s already %s; end is a no-op", session_id, session.status)
            return session

        now = self.clock()
        if session.is_paused:
            session.paused_seconds += self._current_pause_seconds(session, now)
            session.paused_at = None

        actual = round_minutes((now - session.start_time).total_seconds())
        session.status = status
        session.end_time = now
        session.actual_duration_minutes = actual
        session.focus_score = compute_score(
            session.drift_count,
            session.distraction_count,
            actual,
            session.intended_duration_minutes,
        )
        self.repo.update_session(session)
        self.repo.add_event(session_id, EventType.END, now, {
            "status": status,
            "actual_duration_minutes": actual,
            "focus_score": session.focus_score,
        })
        logger.info("Session %s %s: %d min, score %d",
                    session_id, status, actual, session.focus_score)
        return session

    def cancel_session(self, session_id: str) -> FocusSession:
        return self.end_session(session_id, SessionStatus.CANCELLED)

    # ── Distractions ────────────────────────────────────────────────────────

    def log_distraction(
        self, session_id: str, distraction_type: str, note: Optional[str] = None
    ) -> Distraction:
        """Record a self-reported distraction and bump the session counter."""
        if distraction_type not in DistractionType.ALL:
            raise ValidationError(f"Unknown distraction type {distraction_type!r}.")
        self._require_open(session_id, "log a distraction")
        now = self.clock()
        distraction = self.repo.add_distraction(session_id, distraction_type, now, note)
        self.repo.increment_distraction_count(session_id)
        self.repo.add_event(session_id, EventType.DISTRACTION, now,
                            {"type": distraction_type, "note": note})
        logger.info("Distraction (%s) logged for session %s", distraction_type, session_id)
        return distraction

    # ── Queries ─────────────────────────────────────────────────────────────

    def get_session(self, session_id: str) -> Optional[FocusSession]:
        return self.repo.get_session(session_id)

    def get_active_session(self) -> Optional[FocusSession]:
        return self.repo.get_open_session(self.user_id)

    def get_session_history(
        self,
        limit: int = 20,
        project_id: Optional[str] = None,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
    ) -> List[FocusSession]:
        """Most recent sessions first."""
        return self.repo.list_sessions(
            self.user_id, project_id=project_id,
            start_after=start_after, start_before=start_before, limit=limit,
        )

    def seconds_remaining(self, session: FocusSession) -> int:
        """Countdown for display. Frozen while paused, never negative."""
        if session.target_end_time is None:
            return 0
        now = self.clock()
        if not session.is_open:
            return 0
        pause_total = session.paused_seconds + self._current_pause_seconds(session, now)
        remaining = (session.target_end_time - now).total_seconds() + pause_total
        return max(0, int(remaining))

    def focused_seconds(self, session: FocusSession) -> float:
        """Elapsed time minus time spent paused."""
        if session.start_time is None:
            return 0.0
        end = session.end_time or self.clock()
        pause_total = session.paused_seconds + self._current_pause_seconds(session, end)
        return max(0.0, (end - session.start_time).total_seconds() - pause_total)

    # ── Helpers ─────────────────────────────────────────────────────────────

    def _require_open(self, session_id: str, action: str) -> FocusSession:
        session = self.repo.get_session(session_id)
        if session is None:
            raise NotFoundError(session_id)
        if not session.is_open:
            raise ValidationError(
                f"Cannot {action}: session is already {session.status}."
            )
        return session

    @staticmethod
    def _current_pause_seconds(session: FocusSession, now: datetime) -> float:
        if session.status != SessionStatus.PAUSED or session.paused_at is None:
            return 0.0
        return max(0.0, (now - session.paused_at).total_seconds())


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   The state machine for a focus session. Every transition validates the
#   current status, writes the session row, then appends the matching event.
#
# Data flow:
#   UI "Start" → start_session() → session row + 'start' event → pause/resume
#   toggle status and paused_seconds → end_session() → score + 'end' event.
