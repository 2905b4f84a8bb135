"""
Focus Session View — countdown, counters and controls for the running session.

Owns one TrackingService per attached session. detach() closes its task
scope, so no nudge, regulation check or countdown tick outlives the view.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Optional

from PySide6.QtCore import Qt, Signal, Slot
from PySide6.QtWidgets import (
    QComboBox, QGridLayout, QHBoxLayout, QLabel, QLineEdit, QMessageBox,
    QPushButton, QSpinBox, QVBoxLayout, QWidget,
)

from focusguard.config import (
    COUNTDOWN_TICK_MS, FocusSettings, MAX_EXTEND_MINUTES, MIN_EXTEND_MINUTES,
)
from focusguard.data.models import DistractionType, DriftEvent, DriftLogEntry, FocusSession
from focusguard.data.repository import Repository
from focusguard.errors import FocusGuardError
from focusguard.services.drift_service import ContextType
from focusguard.services.nudge_service import Nudge
from focusguard.services.regulation_service import MandatoryPause
from focusguard.services.session_service import FocusSessionService
from focusguard.services.tracking_service import TrackingService
from focusguard.ui.overlays import DriftBanner, MandatoryPauseOverlay, NudgeBanner

logger = logging.getLogger(__name__)

EXTERNAL_CONTEXT_ID = "external"


def format_countdown(seconds: int) -> str:
    hours, rem = divmod(max(seconds, 0), 3600)
    mins, secs = divmod(rem, 60)
    if hours:
        return f"{hours}:{mins:02d}:{secs:02d}"
    return f"{mins}:{secs:02d}"


class FocusSessionView(QWidget):
    """The in-session screen."""

    session_finished = Signal(str)

    def __init__(
        self,
        repo: Repository,
        session_service: FocusSessionService,
        settings: FocusSettings,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.repo = repo
        self.session_svc = session_service
        self.settings = settings
        self.session: Optional[FocusSession] = None
        self.tracking: Optional[TrackingService] = None
        self._busy_flag = False
        self._build_ui()

    # ── UI Construction ─────────────────────────────────────────────────────

    def _build_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setSpacing(14)
        layout.setContentsMargins(24, 24, 24, 24)

        self.project_label = QLabel("")
        self.project_label.setObjectName("subtitle")
        self.project_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.project_label)

        self.timer_label = QLabel("0:00")
        self.timer_label.setObjectName("timer")
        self.timer_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.timer_label)

        self.state_label = QLabel("")
        self.state_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.state_label)

        # ── Counters ────────────────────────────────────────────────
        counters = QGridLayout()
        self.drift_count_label = QLabel("0")
        self.drift_count_label.setObjectName("counter")
        self.distraction_count_label = QLabel("0")
        self.distraction_count_label.setObjectName("counter")
        counters.addWidget(QLabel("Drifts"), 0, 0, Qt.AlignmentFlag.AlignCenter)
        counters.addWidget(QLabel("Distractions"), 0, 1, Qt.AlignmentFlag.AlignCenter)
        counters.addWidget(self.drift_count_label, 1, 0, Qt.AlignmentFlag.AlignCenter)
        counters.addWidget(self.distraction_count_label, 1, 1, Qt.AlignmentFlag.AlignCenter)
        layout.addLayout(counters)

        # ── Overlays (stacked in order) ─────────────────────────────
        self.drift_banner = DriftBanner()
        self.drift_banner.returned.connect(self._on_drift_return)
        layout.addWidget(self.drift_banner)

        self.nudge_banner = NudgeBanner()
        self.nudge_banner.acknowledged.connect(self._on_nudge_ack)
        layout.addWidget(self.nudge_banner)

        # ── Primary controls ────────────────────────────────────────
        controls = QHBoxLayout()
        self.btn_pause = QPushButton("Pause")
        self.btn_pause.clicked.connect(self._on_pause_toggle)
        controls.addWidget(self.btn_pause)

        self.extend_spin = QSpinBox()
        self.extend_spin.setRange(MIN_EXTEND_MINUTES, MAX_EXTEND_MINUTES)
        self.extend_spin.setSingleStep(5)
        self.extend_spin.setValue(15)
        self.extend_spin.setSuffix(" min")
        controls.addWidget(self.extend_spin)
        self.btn_extend = QPushButton("Extend")
        self.btn_extend.clicked.connect(self._on_extend)
        controls.addWidget(self.btn_extend)

        self.btn_end = QPushButton("End Session")
        self.btn_end.setObjectName("danger")
        self.btn_end.clicked.connect(self._on_end)
        controls.addWidget(self.btn_end)
        layout.addLayout(controls)

        # ── Context switcher (drift source) ─────────────────────────
        ctx_row = QHBoxLayout()
        ctx_row.addWidget(QLabel("Working on:"))
        self.context_combo = QComboBox()
        self.context_combo.activated.connect(self._on_context_switched)
        ctx_row.addWidget(self.context_combo, 1)
        layout.addLayout(ctx_row)

        # ── Distraction logger ──────────────────────────────────────
        dist_row = QHBoxLayout()
        self.distraction_combo = QComboBox()
        for kind in DistractionType.ALL:
            self.distraction_combo.addItem(kind.replace("_", " ").title(), kind)
        dist_row.addWidget(self.distraction_combo)
        self.distraction_note = QLineEdit()
        self.distraction_note.setPlaceholderText("Note (optional)")
        dist_row.addWidget(self.distraction_note, 1)
        self.btn_distraction = QPushButton("Log Distraction")
        self.btn_distraction.clicked.connect(self._on_log_distraction)
        dist_row.addWidget(self.btn_distraction)
        layout.addLayout(dist_row)

        layout.addStretch()

        # Full-size overlay, positioned over the whole view
        self.pause_overlay = MandatoryPauseOverlay(self)
        self.pause_overlay.resume_requested.connect(self._on_mandatory_resume)

    def resizeEvent(self, event) -> None:
        super().resizeEvent(event)
        self.pause_overlay.setGeometry(self.rect())

    # ── Lifecycle ───────────────────────────────────────────────────────────

    def attach(self, session: FocusSession) -> None:
        """Bind the view to a session and arm its timers."""
        self.detach()
        self.session = session
        self.tracking = TrackingService(
            self.repo, self.session_svc, self.settings,
            on_drift_started=self._on_drift_started,
            on_drift_resolved=self._on_drift_resolved,
            on_nudge=self._on_nudge,
            on_nudge_dismissed=self._on_nudge_dismissed,
            on_mandatory_pause=self._on_mandatory_pause,
            on_pause_lifted=self._on_pause_lifted,
        )
        self.tracking.scope.repeating(
            "countdown", COUNTDOWN_TICK_MS / 1000.0, self._tick
        ).start()
        self.tracking.start_tracking(session)

        project = self.repo.get_project(session.project_id)
        self.project_label.setText(f"Focusing on {project.name if project else session.project_id}")
        self._load_contexts()
        self._refresh()

    def detach(self) -> None:
        """Cancel every timer owned by this view."""
        if self.tracking is not None:
            self.tracking.close()
            self.tracking = None
        self.session = None
        self.drift_banner.hide()
        self.nudge_banner.hide()
        self.pause_overlay.clear()

    def apply_intervals(self, **intervals) -> None:
        if self.tracking is not None:
            self.tracking.update_intervals(**intervals)
        else:
            self.settings.update_intervals(**intervals)

    def closeEvent(self, event) -> None:
        self.detach()
        super().closeEvent(event)

    # ── Busy handling ───────────────────────────────────────────────────────

    @contextmanager
    def _busy(self):
        """Disable controls for the duration of a call; always restore them."""
        self._busy_flag = True
        self._update_button_states()
        try:
            yield
        except FocusGuardError as exc:
            logger.error("Action failed: %s", exc)
            QMessageBox.warning(self, "FocusGuard", str(exc))
        finally:
            self._busy_flag = False
            self._update_button_states()

    # ── Actions ─────────────────────────────────────────────────────────────

    @Slot()
    def _on_pause_toggle(self) -> None:
        if self.session is None:
            return
        with self._busy():
            if self.tracking.regulation.pending is not None:
                self.tracking.regulation.resume_from_pause()
            elif self.session.is_paused:
                self.session = self.session_svc.resume_session(self.session.id)
                self.tracking.on_session_resumed()
            else:
                self.session = self.session_svc.pause_session(self.session.id)
                self.tracking.on_session_paused()
        self._refresh()

    @Slot()
    def _on_extend(self) -> None:
        if self.session is None:
            return
        with self._busy():
            self.session = self.session_svc.extend_session(
                self.session.id, self.extend_spin.value()
            )
        self._refresh()

    @Slot()
    def _on_end(self) -> None:
        if self.session is None:
            return
        session_id = self.session.id
        ended = False
        with self._busy():
            self.session_svc.end_session(session_id)
            ended = True
        if ended:
            self.detach()
            self.session_finished.emit(session_id)

    @Slot()
    def _on_log_distraction(self) -> None:
        if self.session is None:
            return
        with self._busy():
            self.session_svc.log_distraction(
                self.session.id,
                self.distraction_combo.currentData(),
                self.distraction_note.text().strip() or None,
            )
            self.distraction_note.clear()
        self._refresh()

    @Slot(int)
    def _on_context_switched(self, index: int) -> None:
        if self.session is None or self.tracking is None:
            return
        context_id, context_type = self.context_combo.itemData(index)
        self.tracking.drift.detect_drift(
            self.session.id, context_id, self.session.project_id, context_type
        )
        self._refresh()

    @Slot(str)
    def _on_drift_return(self, note: str) -> None:
        if self.session is None or self.tracking is None:
            return
        with self._busy():
            self.tracking.drift.resolve_drift(self.session.id, note or None)
        self._select_tracked_context()
        self._refresh()

    @Slot()
    def _on_nudge_ack(self) -> None:
        if self.tracking is not None:
            self.tracking.nudges.acknowledge()

    @Slot()
    def _on_mandatory_resume(self) -> None:
        if self.tracking is None:
            return
        with self._busy():
            self.tracking.regulation.resume_from_pause()
        self._refresh()

    # ── Tracking callbacks ──────────────────────────────────────────────────

    def _on_drift_started(self, drift: DriftEvent) -> None:
        self.drift_banner.show_drift(drift)
        self.timer_label.setProperty("drifting", True)
        self._repolish(self.timer_label)

    def _on_drift_resolved(self, entry: DriftLogEntry) -> None:
        self.drift_banner.hide()
        self.timer_label.setProperty("drifting", False)
        self._repolish(self.timer_label)

    def _on_nudge(self, nudge: Nudge) -> None:
        self.nudge_banner.show_nudge(nudge)

    def _on_nudge_dismissed(self, nudge: Nudge) -> None:
        self.nudge_banner.hide()

    def _on_mandatory_pause(self, pause: MandatoryPause) -> None:
        self.pause_overlay.setGeometry(self.rect())
        self.pause_overlay.show_pause(pause, self.session_svc.clock())
        self._refresh()

    def _on_pause_lifted(self) -> None:
        self.pause_overlay.clear()

    # ── Display ─────────────────────────────────────────────────────────────

    def _tick(self) -> None:
        if self.session is None:
            return
        self.timer_label.setText(format_countdown(self.session_svc.seconds_remaining(self.session)))
        self.pause_overlay.refresh(self.session_svc.clock())

    def _refresh(self) -> None:
        if self.session is None:
            return
        latest = self.session_svc.get_session(self.session.id)
        if latest is not None:
            self.session = latest
        self.drift_count_label.setText(str(self.session.drift_count))
        self.distraction_count_label.setText(str(self.session.distraction_count))
        if self.session.is_paused:
            self.state_label.setText("Session Paused")
        elif self.tracking is not None and self.tracking.drift.drift_active:
            self.state_label.setText("Stay Focused")
        else:
            self.state_label.setText("You're in the zone!")
        self._tick()
        self._update_button_states()

    def _update_button_states(self) -> None:
        has_session = self.session is not None
        locked = self._busy_flag or not has_session
        mandatory = self.pause_overlay.pause is not None or (
            self.tracking is not None and self.tracking.regulation.pending is not None
        )
        paused = has_session and self.session.is_paused

        self.btn_pause.setEnabled(not locked and not mandatory)
        self.btn_pause.setText("Resume" if paused else "Pause")
        self.btn_extend.setEnabled(not locked and not paused)
        self.btn_end.setEnabled(not locked)
        self.btn_distraction.setEnabled(not locked)
        self.context_combo.setEnabled(not locked and not paused)

    def _load_contexts(self) -> None:
        self.context_combo.clear()
        for project in self.repo.list_projects():
            self.context_combo.addItem(project.name, (project.id, ContextType.PROJECT))
        self.context_combo.addItem("Something else", (EXTERNAL_CONTEXT_ID, ContextType.EXTERNAL))
        self._select_tracked_context()

    def _select_tracked_context(self) -> None:
        if self.session is None:
            return
        for i in range(self.context_combo.count()):
            context_id, _ = self.context_combo.itemData(i)
            if context_id == self.session.project_id:
                self.context_combo.setCurrentIndex(i)
                return

    @staticmethod
    def _repolish(widget: QWidget) -> None:
        widget.style().unpolish(widget)
        widget.style().polish(widget)
