"""
Drift Detector — decides whether a context switch pulls the user off the
tracked project, records it, and tells the UI.

UI hooks are passed to the constructor; there is no module-level slot to
register against, so tests can build a detector with plain functions.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Tuple

from focusguard.data.models import (
    DriftEvent,
    DriftLogEntry,
    DriftType,
    EventType,
    FocusEvent,
    SessionStatus,
)
from focusguard.data.repository import Repository
from focusguard.errors import PersistenceError
from focusguard.services.session_service import FocusSessionService, round_minutes

logger = logging.getLogger(__name__)


class ContextType:
    PROJECT = "project"
    OFFSHOOT = "offshoot"
    SIDE_PROJECT = "side_project"
    EXTERNAL = "external"


class DriftDetector:
    """Detects and resolves drift for one session view. At most one drift is open."""

    def __init__(
        self,
        repo: Repository,
        session_service: FocusSessionService,
        on_drift_started: Optional[Callable[[DriftEvent], None]] = None,
        on_drift_resolved: Optional[Callable[[DriftLogEntry], None]] = None,
    ) -> None:
        self.repo = repo
        self.session_svc = session_service
        self.on_drift_started = on_drift_started
        self.on_drift_resolved = on_drift_resolved
        self.drift_active = False
        self.drift_label: Optional[str] = None

    # ── Classification ──────────────────────────────────────────────────────

    def classify(
        self, context_type: str, context_id: str, tracked_project_id: str
    ) -> Tuple[Optional[str], str]:
        """Return (drift_type or None, reason)."""
        if context_type == ContextType.PROJECT:
            if context_id == tracked_project_id:
                return None, "Working on the active project"
            return DriftType.SIDE_PROJECT, "Switched to a different project"

        if context_type == ContextType.OFFSHOOT:
            offshoot = self.repo.get_offshoot(context_id)
            if offshoot and offshoot.project_id == tracked_project_id:
                return None, "Offshoot belongs to the active project"
            return DriftType.OFFSHOOT, "Switched to an offshoot from another project"

        if context_type == ContextType.SIDE_PROJECT:
            return DriftType.SIDE_PROJECT, "Switched to a side project"

        return DriftType.EXTERNAL_DISTRACTION, "Activity outside of project scope"

    # ── Detection ───────────────────────────────────────────────────────────

    def detect_drift(
        self,
        session_id: str,
        new_context_id: str,
        tracked_project_id: str,
        context_type: str = ContextType.PROJECT,
    ) -> Optional[DriftEvent]:
        """Record drift if the switch leaves the tracked project, else None."""
        if new_context_id == tracked_project_id:
            return None

        session = self.repo.get_session(session_id)
        if session is None or session.status != SessionStatus.ACTIVE:
            return None
        if self.drift_active or self.repo.get_open_drift(session_id) is not None:
            logger.debug("Drift already open for session %s; ignoring switch", session_id)
            return None

        drift_type, reason = self.classify(context_type, new_context_id, tracked_project_id)
        if drift_type is None:
            return None

        now = self.session_svc.clock()
        project_id = new_context_id if context_type == ContextType.PROJECT else None
        try:
            entry = self.repo.open_drift(session_id, drift_type, now, project_id)
            event = self.repo.add_event(session_id, EventType.DRIFT, now, {
                "drift_type": drift_type,
                "context_id": new_context_id,
                "drift_log_id": entry.id,
            })
            self.repo.increment_drift_count(session_id)
        except PersistenceError:
            logger.exception("Failed to record drift for session %s", session_id)
            self.drift_active = False
            return None

        label = self._context_label(context_type, new_context_id)
        self.drift_active = True
        self.drift_label = label
        drift = DriftEvent(entry=entry, event=event, label=label, reason=reason)
        logger.info("Drift (%s) detected in session %s: %s", drift_type, session_id, reason)
        if self.on_drift_started:
            self.on_drift_started(drift)
        return drift

    def resolve_drift(self, session_id: str, note: Optional[str] = None) -> Optional[DriftLogEntry]:
        """Close the open drift and log the return. No-op when nothing is open."""
        entry = self.repo.get_open_drift(session_id)
        if entry is None:
            logger.debug("No open drift to resolve for session %s", session_id)
            self.reset()
            return None

        now = self.session_svc.clock()
        entry.ended_at = now
        entry.duration_minutes = round_minutes((now - entry.started_at).total_seconds())
        if note:
            entry.note = note
        self.repo.close_drift(entry)
        self.repo.add_event(session_id, EventType.RETURN, now, {
            "drift_log_id": entry.id,
            "duration_minutes": entry.duration_minutes,
        })
        self.reset()
        logger.info("Returned from drift after %d min (session %s)",
                    entry.duration_minutes, session_id)
        if self.on_drift_resolved:
            self.on_drift_resolved(entry)
        return entry

    def restore(self, session_id: str) -> Optional[DriftEvent]:
        """Pick up a drift left open by an earlier view, e.g. after a restart."""
        self.reset()
        entry = self.repo.get_open_drift(session_id)
        if entry is None:
            return None

        event = None
        for candidate in self.repo.get_events_of_type(session_id, EventType.DRIFT):
            if candidate.metadata.get("drift_log_id") == entry.id:
                event = candidate
        if event is None:
            event = FocusEvent(session_id=session_id, event_type=EventType.DRIFT,
                               timestamp=entry.started_at,
                               metadata={"drift_type": entry.drift_type})

        if entry.project_id:
            label = self._context_label(ContextType.PROJECT, entry.project_id)
        else:
            label = event.metadata.get("context_id") or entry.drift_type.replace("_", " ")
        self.drift_active = True
        self.drift_label = label
        drift = DriftEvent(entry=entry, event=event, label=label,
                           reason="Drift still open from an earlier run")
        logger.info("Restored open drift %s for session %s", entry.id, session_id)
        if self.on_drift_started:
            self.on_drift_started(drift)
        return drift

    # ── Helpers ─────────────────────────────────────────────────────────────

    def reset(self) -> None:
        self.drift_active = False
        self.drift_label = None

    def _context_label(self, context_type: str, context_id: str) -> str:
        if context_type == ContextType.PROJECT:
            project = self.repo.get_project(context_id)
            if project:
                return project.name
        elif context_type == ContextType.OFFSHOOT:
            offshoot = self.repo.get_offshoot(context_id)
            if offshoot:
                return offshoot.title
        return context_id
