"""
Main Window — the central hub of FocusGuard.

Contains:
  - Focus tab: start screen or the running session view
  - History tab: past sessions, summaries and analytics
  - Settings tab: timer intervals and regulation rules
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from PySide6.QtCore import Qt, Slot
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QComboBox, QDialog, QDialogButtonBox, QFormLayout, QLabel, QLineEdit,
    QMainWindow, QMessageBox, QPushButton, QSpinBox, QStackedWidget,
    QTabWidget, QVBoxLayout, QWidget,
)

from focusguard.analytics.insights import FocusAnalytics
from focusguard.config import FocusSettings, MAX_GOAL_MINUTES, MIN_GOAL_MINUTES
from focusguard.data.database import Database
from focusguard.data.repository import Repository
from focusguard.errors import FocusGuardError
from focusguard.services.regulation_service import ensure_default_rules
from focusguard.services.session_service import FocusSessionService
from focusguard.services.summary_service import SummaryService
from focusguard.ui.history_widget import HistoryWidget, SessionSummaryWidget
from focusguard.ui.session_view import FocusSessionView
from focusguard.ui.settings_widget import SettingsWidget

logger = logging.getLogger(__name__)

DEFAULT_GOAL_MINUTES = 25


class MainWindow(QMainWindow):
    """The main application window."""

    def __init__(self, db_path: Optional[str] = None) -> None:
        super().__init__()
        self.setWindowTitle("FocusGuard")
        self.setMinimumSize(820, 620)
        self.resize(980, 720)

        # ── Initialize core systems ─────────────────────────────────────
        self.settings = FocusSettings()
        self.db = Database(db_path)
        self.db.connect()
        self.repo = Repository(self.db.conn)
        self.session_svc = FocusSessionService(self.repo, self.settings.user_id)
        self.summary_svc = SummaryService(self.repo, self.session_svc)
        self.analytics = FocusAnalytics(self.repo, self.settings.user_id)
        ensure_default_rules(self.repo, self.settings.user_id)

        self._build_ui()
        self._restore_open_session()

    # ── UI Construction ─────────────────────────────────────────────────

    def _build_ui(self) -> None:
        self.tabs = QTabWidget()
        self.setCentralWidget(self.tabs)

        # Tab 1: Focus (start page / running session)
        self.focus_stack = QStackedWidget()
        self.start_page = self._build_start_page()
        self.focus_stack.addWidget(self.start_page)
        self.session_view = FocusSessionView(self.repo, self.session_svc, self.settings)
        self.session_view.session_finished.connect(self._on_session_finished)
        self.focus_stack.addWidget(self.session_view)
        self.tabs.addTab(self.focus_stack, "Focus")

        # Tab 2: History
        self.history = HistoryWidget(
            self.repo, self.session_svc, self.summary_svc, self.analytics
        )
        self.tabs.addTab(self.history, "History")

        # Tab 3: Settings
        self.settings_widget = SettingsWidget(self.repo, self.settings)
        self.settings_widget.settings_changed.connect(self._on_settings_changed)
        self.tabs.addTab(self.settings_widget, "Settings")

    def _build_start_page(self) -> QWidget:
        widget = QWidget()
        layout = QVBoxLayout(widget)
        layout.setContentsMargins(24, 24, 24, 24)
        layout.setSpacing(16)

        title = QLabel("Ready to focus?")
        title.setObjectName("title")
        title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(title)

        self.btn_start = QPushButton("Start Focus Session")
        self.btn_start.setObjectName("primary")
        self.btn_start.setMinimumHeight(48)
        self.btn_start.clicked.connect(self._on_start_session)
        layout.addWidget(self.btn_start)

        self.last_summary = SessionSummaryWidget()
        self.last_summary.hide()
        layout.addWidget(self.last_summary, 1)
        layout.addStretch()
        return widget

    # ── Session actions ─────────────────────────────────────────────────

    def _restore_open_session(self) -> None:
        session = self.session_svc.get_active_session()
        if session is None:
            return
        logger.info("Reattaching open session %s", session.id)
        self.session_view.attach(session)
        self.focus_stack.setCurrentWidget(self.session_view)

    @Slot()
    def _on_start_session(self) -> None:
        dialog = StartSessionDialog(self.repo, self)
        if dialog.exec() != QDialog.DialogCode.Accepted:
            return
        self.btn_start.setEnabled(False)
        try:
            session = self.session_svc.start_session(dialog.project_id, dialog.goal_minutes)
        except FocusGuardError as exc:
            logger.error("Could not start session: %s", exc)
            QMessageBox.warning(self, "FocusGuard", str(exc))
            return
        finally:
            self.btn_start.setEnabled(True)

        self.last_summary.hide()
        self.session_view.attach(session)
        self.focus_stack.setCurrentWidget(self.session_view)

    @Slot(str)
    def _on_session_finished(self, session_id: str) -> None:
        self.focus_stack.setCurrentWidget(self.start_page)
        summary = self.summary_svc.get_session_summary(session_id)
        if summary is None:
            return
        project = self.repo.get_project(summary.session.project_id)
        self.last_summary.show_summary(
            summary, project.name if project else summary.session.project_id
        )
        self.last_summary.show()

    @Slot()
    def _on_settings_changed(self) -> None:
        self.session_view.apply_intervals(**self.settings_widget.get_intervals())

    def closeEvent(self, event: QCloseEvent) -> None:
        # An open session stays open and is reattached on next launch
        self.session_view.detach()
        self.db.close()
        event.accept()


class StartSessionDialog(QDialog):
    """Pick (or create) a project and a goal before starting."""

    def __init__(self, repo: Repository, parent=None) -> None:
        super().__init__(parent)
        self.repo = repo
        self.project_id: Optional[str] = None
        self.goal_minutes = DEFAULT_GOAL_MINUTES
        self.setWindowTitle("What are you focusing on?")
        self.setMinimumWidth(380)
        self._build_ui()

    def _build_ui(self) -> None:
        layout = QFormLayout(self)

        self.project_combo = QComboBox()
        self.project_combo.addItem("— new project —", None)
        for project in self.repo.list_projects():
            self.project_combo.addItem(project.name, project.id)
        if self.project_combo.count() > 1:
            self.project_combo.setCurrentIndex(1)
        self.project_combo.currentIndexChanged.connect(self._on_project_changed)
        layout.addRow("Project:", self.project_combo)

        self.new_project = QLineEdit()
        self.new_project.setPlaceholderText("New project name...")
        layout.addRow("", self.new_project)

        self.goal_spin = QSpinBox()
        self.goal_spin.setRange(MIN_GOAL_MINUTES, MAX_GOAL_MINUTES)
        self.goal_spin.setSingleStep(5)
        self.goal_spin.setValue(DEFAULT_GOAL_MINUTES)
        self.goal_spin.setSuffix(" min")
        layout.addRow("Goal:", self.goal_spin)

        buttons = QDialogButtonBox(
            QDialogButtonBox.StandardButton.Ok | QDialogButtonBox.StandardButton.Cancel
        )
        buttons.accepted.connect(self._on_accept)
        buttons.rejected.connect(self.reject)
        layout.addRow(buttons)
        self._on_project_changed(self.project_combo.currentIndex())

    @Slot(int)
    def _on_project_changed(self, index: int) -> None:
        self.new_project.setEnabled(self.project_combo.itemData(index) is None)

    @Slot()
    def _on_accept(self) -> None:
        project_id = self.project_combo.currentData()
        if project_id is None:
            name = self.new_project.text().strip()
            if not name:
                QMessageBox.warning(self, "Missing Info", "Please enter a project name.")
                return
            try:
                project_id = self.repo.create_project(str(uuid.uuid4()), name).id
            except FocusGuardError as exc:
                QMessageBox.warning(self, "FocusGuard", str(exc))
                return
        self.project_id = project_id
        self.goal_minutes = self.goal_spin.value()
        self.accept()


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Builds the services once (Database → Repository → session, summary and
#   analytics services) and hands them to the tabs. The session view owns
#   its own timers, so closing the window or ending a session tears them
#   down through FocusSessionView.detach().
