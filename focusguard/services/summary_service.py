"""Session Summary Assembler — joins a session with its event and drift logs."""

from __future__ import annotations

import logging
from collections import Counter
from typing import List, Optional

from focusguard.data.models import DriftLogEntry, DriftType, SessionSummary
from focusguard.data.repository import Repository
from focusguard.services.session_service import FocusSessionService

logger = logging.getLogger(__name__)


def biggest_drift_type(drifts: List[DriftLogEntry]) -> Optional[str]:
    """Most frequent drift type; ties go to the earlier type in DriftType.ALL."""
    counts = Counter(d.drift_type for d in drifts)
    best: Optional[str] = None
    best_count = 0
    for drift_type in DriftType.ALL:
        if counts[drift_type] > best_count:
            best, best_count = drift_type, counts[drift_type]
    return best


class SummaryService:

    def __init__(self, repo: Repository, session_service: FocusSessionService) -> None:
        self.repo = repo
        self.session_svc = session_service

    def get_session_summary(self, session_id: str) -> Optional[SessionSummary]:
        """
        Summary of a finished session, or None when the id is unknown.

        An active or paused session is ended first, so the summary is
        always computed against a finalized record.
        """
        session = self.repo.get_session(session_id)
        if session is None:
            logger.info("Summary requested for unknown session %s", session_id)
            return None
        if session.is_open:
            self.session_svc.end_session(session_id)
            session = self.repo.get_session(session_id)

        drifts = self.repo.list_drifts(session_id)
        return SessionSummary(
            session=session,
            total_drifts=session.drift_count,
            total_distractions=session.distraction_count,
            focus_score=session.focus_score or 0,
            biggest_drift_type=biggest_drift_type(drifts),
            timeline=self.repo.get_events(session_id),
            drift_details=drifts,
        )
