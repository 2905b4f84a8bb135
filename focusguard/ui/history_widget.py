"""
History Widget — past sessions, filters, analytics and per-session summaries.
"""

from __future__ import annotations

import html
import logging
from datetime import datetime, time
from typing import List, Optional

from PySide6.QtCore import QDate, Qt, Slot
from PySide6.QtWidgets import (
    QAbstractItemView, QComboBox, QDateEdit, QFrame, QGridLayout, QHBoxLayout,
    QHeaderView, QLabel, QPushButton, QSplitter, QTableWidget, QTableWidgetItem,
    QTextBrowser, QVBoxLayout, QWidget,
)

from focusguard.analytics.insights import FocusAnalytics, Trend
from focusguard.data.models import FocusSession, SessionSummary, WeeklyAnalytics
from focusguard.data.repository import Repository
from focusguard.services.session_service import FocusSessionService
from focusguard.services.summary_service import SummaryService
from focusguard.ui import charts

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 50

_TREND_TEXT = {
    Trend.UP: "improving",
    Trend.DOWN: "slipping",
    Trend.NEUTRAL: "steady",
}


def timeline_html(summary: SessionSummary) -> str:
    """Event timeline for the summary pane. User text is escaped."""
    rows = []
    for event in summary.timeline:
        stamp = event.timestamp.strftime("%H:%M:%S")
        extra = html.escape(", ".join(f"{k}={v}" for k, v in event.metadata.items()))
        rows.append(f"<b>{stamp}</b> {event.event_type}"
                    + (f" <span style='color:#a6adc8'>({extra})</span>" if extra else ""))
    for drift in summary.drift_details:
        if drift.note:
            rows.append(f"<i>drift note:</i> {html.escape(drift.note)}")
    return "<br>".join(rows)


def weekly_text(weeks: List[WeeklyAnalytics]) -> str:
    """One line per cached week, newest first."""
    if not weeks:
        return "No weekly data yet."
    lines = []
    for week in weeks:
        score = "–" if week.average_focus_score is None else f"{week.average_focus_score:.0f}"
        lines.append(
            f"Week of {week.week_start}: {week.total_sessions} sessions "
            f"({week.completed_sessions} completed), {week.total_minutes} min, "
            f"avg score {score}"
        )
    return "\n".join(lines)


class SessionSummaryWidget(QFrame):
    """Score, counters and the event timeline for one finished session."""

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)

        self.headline = QLabel("Select a session")
        self.headline.setObjectName("title")
        layout.addWidget(self.headline)

        self.details = QLabel("")
        self.details.setObjectName("subtitle")
        self.details.setWordWrap(True)
        layout.addWidget(self.details)

        self.timeline = QTextBrowser()
        layout.addWidget(self.timeline, 1)

    def show_summary(self, summary: SessionSummary, project_name: str) -> None:
        session = summary.session
        self.headline.setText(f"{project_name}: {summary.focus_score}/100")
        parts = [
            f"{session.actual_duration_minutes or 0} of "
            f"{session.intended_duration_minutes} min",
            f"{summary.total_drifts} drifts",
            f"{summary.total_distractions} distractions",
        ]
        if summary.biggest_drift_type:
            parts.append(f"most drifts: {summary.biggest_drift_type.replace('_', ' ')}")
        self.details.setText("  |  ".join(parts))

        self.timeline.setHtml(timeline_html(summary))

    def clear(self) -> None:
        self.headline.setText("Select a session")
        self.details.setText("")
        self.timeline.clear()


class HistoryWidget(QWidget):
    """Filterable session history with an analytics header."""

    def __init__(
        self,
        repo: Repository,
        session_service: FocusSessionService,
        summary_service: SummaryService,
        analytics: FocusAnalytics,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.repo = repo
        self.session_svc = session_service
        self.summary_svc = summary_service
        self.analytics = analytics
        self._sessions: List[FocusSession] = []
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setContentsMargins(20, 16, 20, 20)
        layout.setSpacing(12)

        title = QLabel("History")
        title.setObjectName("title")
        layout.addWidget(title)

        # ── Overview numbers ────────────────────────────────────────────
        overview = QGridLayout()
        self.lbl_sessions = QLabel("—")
        self.lbl_avg_score = QLabel("—")
        self.lbl_hours = QLabel("—")
        self.lbl_drifts = QLabel("—")
        self.lbl_trend = QLabel("—")
        for col, (name, value) in enumerate([
            ("sessions", self.lbl_sessions),
            ("avg score", self.lbl_avg_score),
            ("focus hours", self.lbl_hours),
            ("drifts / session", self.lbl_drifts),
            ("trend", self.lbl_trend),
        ]):
            value.setObjectName("counter")
            value.setAlignment(Qt.AlignmentFlag.AlignCenter)
            caption = QLabel(name)
            caption.setObjectName("subtitle")
            caption.setAlignment(Qt.AlignmentFlag.AlignCenter)
            overview.addWidget(value, 0, col)
            overview.addWidget(caption, 1, col)
        layout.addLayout(overview)

        self.lbl_weekly = QLabel("")
        self.lbl_weekly.setObjectName("subtitle")
        layout.addWidget(self.lbl_weekly)

        # ── Charts ──────────────────────────────────────────────────────
        chart_row = QHBoxLayout()
        self.daily_slot = QVBoxLayout()
        self.drift_slot = QVBoxLayout()
        chart_row.addLayout(self.daily_slot, 3)
        chart_row.addLayout(self.drift_slot, 2)
        layout.addLayout(chart_row)

        # ── Filters ─────────────────────────────────────────────────────
        filters = QHBoxLayout()
        filters.addWidget(QLabel("Project:"))
        self.project_combo = QComboBox()
        filters.addWidget(self.project_combo, 1)

        filters.addWidget(QLabel("From:"))
        self.date_from = QDateEdit()
        self.date_from.setCalendarPopup(True)
        self.date_from.setDate(QDate.currentDate().addDays(-30))
        filters.addWidget(self.date_from)

        filters.addWidget(QLabel("To:"))
        self.date_to = QDateEdit()
        self.date_to.setCalendarPopup(True)
        self.date_to.setDate(QDate.currentDate())
        filters.addWidget(self.date_to)

        btn_apply = QPushButton("Apply")
        btn_apply.clicked.connect(self.refresh_data)
        filters.addWidget(btn_apply)
        layout.addLayout(filters)

        # ── Sessions + summary ──────────────────────────────────────────
        splitter = QSplitter(Qt.Orientation.Horizontal)
        self.session_table = QTableWidget()
        self.session_table.setColumnCount(5)
        self.session_table.setHorizontalHeaderLabels(
            ["Date", "Project", "Minutes", "Score", "Status"]
        )
        header = self.session_table.horizontalHeader()
        header.setSectionResizeMode(0, QHeaderView.ResizeMode.Stretch)
        header.setSectionResizeMode(1, QHeaderView.ResizeMode.Stretch)
        self.session_table.verticalHeader().setVisible(False)
        self.session_table.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        self.session_table.setSelectionMode(QAbstractItemView.SelectionMode.SingleSelection)
        self.session_table.setEditTriggers(QAbstractItemView.EditTrigger.NoEditTriggers)
        self.session_table.setAlternatingRowColors(True)
        self.session_table.itemSelectionChanged.connect(self._on_selection_changed)
        splitter.addWidget(self.session_table)

        self.summary_view = SessionSummaryWidget()
        splitter.addWidget(self.summary_view)
        splitter.setSizes([520, 380])
        layout.addWidget(splitter, 1)

    # ── Data loading ────────────────────────────────────────────────────────

    def load_filters(self) -> None:
        current = self.project_combo.currentData()
        self.project_combo.blockSignals(True)
        self.project_combo.clear()
        self.project_combo.addItem("All projects", None)
        for project in self.repo.list_projects():
            self.project_combo.addItem(project.name, project.id)
        idx = self.project_combo.findData(current)
        self.project_combo.setCurrentIndex(max(idx, 0))
        self.project_combo.blockSignals(False)

    @Slot()
    def refresh_data(self) -> None:
        start = datetime.combine(self.date_from.date().toPython(), time.min)
        end = datetime.combine(self.date_to.date().toPython(), time.max)
        self._sessions = self.session_svc.get_session_history(
            limit=HISTORY_PAGE_SIZE,
            project_id=self.project_combo.currentData(),
            start_after=start,
            start_before=end,
        )
        self._fill_table()
        self._refresh_analytics()
        self.summary_view.clear()

    def _fill_table(self) -> None:
        names = {p.id: p.name for p in self.repo.list_projects()}
        self.session_table.setRowCount(len(self._sessions))
        for row, s in enumerate(self._sessions):
            date_str = s.start_time.strftime("%Y-%m-%d %H:%M") if s.start_time else ""
            score = "" if s.focus_score is None else str(s.focus_score)
            minutes = "" if s.actual_duration_minutes is None else str(s.actual_duration_minutes)
            for col, text in enumerate([
                date_str, names.get(s.project_id, s.project_id), minutes, score, s.status,
            ]):
                item = QTableWidgetItem(text)
                if col >= 2:
                    item.setTextAlignment(Qt.AlignmentFlag.AlignCenter)
                self.session_table.setItem(row, col, item)

    def _refresh_analytics(self) -> None:
        stats = self.analytics.overview()
        self.lbl_sessions.setText(str(stats["session_count"]))
        self.lbl_avg_score.setText(str(stats["avg_focus_score"]))
        self.lbl_hours.setText(str(stats["total_focus_hours"]))
        self.lbl_drifts.setText(f"{stats['avg_drifts_per_session']:.1f}")
        self.lbl_trend.setText(_TREND_TEXT[stats["trend"]])

        self._set_chart(self.daily_slot, charts.plot_daily_focus(self.analytics.day_stats()))
        self._set_chart(self.drift_slot, charts.plot_drift_types(self.analytics.drift_type_counts()))
        self.analytics.generate_weekly_analytics()
        self.lbl_weekly.setText(weekly_text(self.analytics.get_weekly_analytics()))

    @staticmethod
    def _set_chart(slot: QVBoxLayout, view: QWidget) -> None:
        while slot.count():
            old = slot.takeAt(0).widget()
            if old is not None:
                old.deleteLater()
        slot.addWidget(view)

    @Slot()
    def _on_selection_changed(self) -> None:
        rows = self.session_table.selectionModel().selectedRows()
        if not rows:
            return
        session = self._sessions[rows[0].row()]
        if session.is_open:
            self.summary_view.clear()
            self.summary_view.details.setText("This session is still running.")
            return
        summary = self.summary_svc.get_session_summary(session.id)
        if summary is None:
            self.summary_view.clear()
            return
        project = self.repo.get_project(session.project_id)
        self.summary_view.show_summary(summary, project.name if project else session.project_id)

    def showEvent(self, event) -> None:
        super().showEvent(event)
        self.load_filters()
        self.refresh_data()
