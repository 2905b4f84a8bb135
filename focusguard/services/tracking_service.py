"""
Tracking Service — wires the drift detector, nudge scheduler and regulation
checker to one active session view.

All timers live in a single TaskScope. Pausing stops them, resuming re-arms
them, and close() tears the scope down so nothing fires after the view is
gone.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from focusguard.config import FocusSettings
from focusguard.data.models import DriftEvent, DriftLogEntry, FocusSession
from focusguard.data.repository import Repository
from focusguard.services.drift_service import DriftDetector
from focusguard.services.nudge_service import Nudge, NudgeScheduler
from focusguard.services.regulation_service import MandatoryPause, RegulationChecker
from focusguard.services.scheduler import TaskScope
from focusguard.services.session_service import FocusSessionService

logger = logging.getLogger(__name__)


class TrackingService:
    """
    Manages the cooperative timers of one session view.

    Callbacks are injected so the service is UI-agnostic.
    """

    def __init__(
        self,
        repo: Repository,
        session_service: FocusSessionService,
        settings: Optional[FocusSettings] = None,
        on_drift_started: Optional[Callable[[DriftEvent], None]] = None,
        on_drift_resolved: Optional[Callable[[DriftLogEntry], None]] = None,
        on_nudge: Optional[Callable[[Nudge], None]] = None,
        on_nudge_dismissed: Optional[Callable[[Nudge], None]] = None,
        on_mandatory_pause: Optional[Callable[[MandatoryPause], None]] = None,
        on_pause_lifted: Optional[Callable[[], None]] = None,
    ) -> None:
        self.repo = repo
        self.session_svc = session_service
        self.settings = settings or FocusSettings()
        self.scope = TaskScope()

        self._on_drift_started = on_drift_started
        self._on_drift_resolved = on_drift_resolved
        self._on_mandatory_pause = on_mandatory_pause
        self._on_pause_lifted = on_pause_lifted

        self.drift = DriftDetector(
            repo, session_service,
            on_drift_started=self._drift_started,
            on_drift_resolved=self._drift_resolved,
        )
        self.nudges = NudgeScheduler(
            repo, self.drift, self.scope, self.settings, session_service.clock,
            on_nudge=on_nudge, on_dismiss=on_nudge_dismissed,
        )
        self.regulation = RegulationChecker(
            repo, session_service, self.scope, self.settings,
            on_mandatory_pause=self._mandatory_pause,
            on_resumed=self._pause_lifted,
        )
        self.session: Optional[FocusSession] = None

    # ── Public API ──────────────────────────────────────────────────────────

    def start_tracking(self, session: FocusSession) -> None:
        """
        Arm all timers for a freshly started (or reloaded) session.

        A reloaded session may still have an open drift or be sitting in a
        mandatory pause; both are restored from the store and reported
        through the usual callbacks.
        """
        self.session = session
        self.nudges.session_id = session.id
        self.drift.restore(session.id)
        self.regulation.restore(session)
        if session.is_paused:
            logger.info("Session %s is paused; timers stay idle", session.id)
            return
        self._arm()

    def on_session_paused(self) -> None:
        self._disarm()

    def on_session_resumed(self) -> None:
        self._arm()

    def stop_all(self) -> None:
        self._disarm()
        self.session = None

    def close(self) -> None:
        """Tear down every timer. Nothing fires after this."""
        self.scope.cancel_all()
        self.session = None
        logger.info("Tracking closed.")

    def update_intervals(self, **intervals) -> None:
        self.settings.update_intervals(**intervals)
        if self.session is not None and self.nudges.is_running:
            self._arm()

    # ── Wiring ──────────────────────────────────────────────────────────────

    def _arm(self) -> None:
        if self.session is None or self.scope.closed:
            return
        self.regulation.start(self.session.id)
        if not self.drift.drift_active:
            self.nudges.start(self.session.id)

    def _disarm(self) -> None:
        self.nudges.stop()
        self.regulation.stop()

    def _drift_started(self, drift: DriftEvent) -> None:
        self.nudges.stop()
        if self._on_drift_started:
            self._on_drift_started(drift)

    def _drift_resolved(self, entry: DriftLogEntry) -> None:
        if self.session is not None and not self.scope.closed:
            self.nudges.start(self.session.id)
        if self._on_drift_resolved:
            self._on_drift_resolved(entry)

    def _mandatory_pause(self, pause: MandatoryPause) -> None:
        self._disarm()
        if self._on_mandatory_pause:
            self._on_mandatory_pause(pause)

    def _pause_lifted(self) -> None:
        self._arm()
        if self._on_pause_lifted:
            self._on_pause_lifted()


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Owns the timers of a session view:
#     - nudge: every 5 min while active and not drifting
#     - regulation: every 60 s while active
#   The 1-second countdown tick lives in the view itself.
#
# Data flow:
#   QTimer fires → NudgeScheduler.tick() / RegulationChecker.tick() →
#   event appended → callback → UI shows banner or pause overlay.
