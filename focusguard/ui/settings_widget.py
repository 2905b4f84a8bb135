"""
Settings Panel — timer intervals and regulation rules.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from PySide6.QtCore import Qt, Signal, Slot
from PySide6.QtWidgets import (
    QAbstractItemView, QCheckBox, QGridLayout, QGroupBox, QHeaderView, QLabel,
    QLineEdit, QMessageBox, QPushButton, QSpinBox, QTableWidget, QVBoxLayout,
    QWidget,
)

from focusguard.config import FocusSettings
from focusguard.data.models import RegulationRule
from focusguard.data.repository import Repository
from focusguard.errors import FocusGuardError

logger = logging.getLogger(__name__)

_RULE_COLUMNS = ["On", "Rule", "Every (min)", "Pause (s)", "Message"]


class SettingsWidget(QWidget):
    """Settings panel for the app."""

    settings_changed = Signal()

    def __init__(
        self,
        repo: Repository,
        settings: FocusSettings,
        parent: Optional[QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.repo = repo
        self.settings = settings
        self._rules: List[RegulationRule] = []
        self._setup_ui()

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)
        layout.setSpacing(12)
        layout.setContentsMargins(20, 16, 20, 20)

        title = QLabel("Settings")
        title.setObjectName("title")
        layout.addWidget(title)

        # ── Timer intervals ─────────────────────────────────────────────
        interval_group = QGroupBox("Timers")
        grid = QGridLayout(interval_group)

        grid.addWidget(QLabel("Nudge every (min):"), 0, 0)
        self.nudge_spin = QSpinBox()
        self.nudge_spin.setRange(1, 60)
        self.nudge_spin.setValue(int(self.settings.nudge_interval_min))
        grid.addWidget(self.nudge_spin, 0, 1)

        grid.addWidget(QLabel("  Regulation check (s):"), 0, 2)
        self.regulation_spin = QSpinBox()
        self.regulation_spin.setRange(10, 600)
        self.regulation_spin.setValue(int(self.settings.regulation_interval_sec))
        grid.addWidget(self.regulation_spin, 0, 3)

        grid.addWidget(QLabel("  Soft nudge shown (s):"), 0, 4)
        self.dismiss_spin = QSpinBox()
        self.dismiss_spin.setRange(1, 60)
        self.dismiss_spin.setValue(int(self.settings.soft_nudge_dismiss_sec))
        grid.addWidget(self.dismiss_spin, 0, 5)
        grid.setColumnStretch(6, 1)
        layout.addWidget(interval_group)

        # ── Regulation rules ────────────────────────────────────────────
        rules_group = QGroupBox("Regulation Rules")
        rules_layout = QVBoxLayout(rules_group)
        self.rule_table = QTableWidget()
        self.rule_table.setColumnCount(len(_RULE_COLUMNS))
        self.rule_table.setHorizontalHeaderLabels(_RULE_COLUMNS)
        self.rule_table.horizontalHeader().setSectionResizeMode(
            4, QHeaderView.ResizeMode.Stretch
        )
        self.rule_table.verticalHeader().setVisible(False)
        self.rule_table.setSelectionMode(QAbstractItemView.SelectionMode.NoSelection)
        rules_layout.addWidget(self.rule_table)
        layout.addWidget(rules_group, 1)

        btn_save = QPushButton("Save")
        btn_save.setObjectName("primary")
        btn_save.clicked.connect(self._on_save)
        layout.addWidget(btn_save, alignment=Qt.AlignmentFlag.AlignRight)

    # ── Data ────────────────────────────────────────────────────────────────

    def load_rules(self) -> None:
        self._rules = sorted(
            self.repo.list_rules(self.settings.user_id), key=lambda r: r.interval_minutes
        )
        self.rule_table.setRowCount(len(self._rules))
        for row, rule in enumerate(self._rules):
            enabled = QCheckBox()
            enabled.setChecked(rule.enabled)
            self.rule_table.setCellWidget(row, 0, enabled)

            self.rule_table.setCellWidget(row, 1, QLabel(rule.rule_type.title()))

            interval = QSpinBox()
            interval.setRange(5, 600)
            interval.setValue(rule.interval_minutes)
            self.rule_table.setCellWidget(row, 2, interval)

            delay = QSpinBox()
            delay.setRange(0, 3600)
            delay.setValue(rule.mandatory_delay_seconds or 0)
            self.rule_table.setCellWidget(row, 3, delay)

            self.rule_table.setCellWidget(row, 4, QLineEdit(rule.message))

    def get_intervals(self) -> dict:
        return {
            "nudge_min": self.nudge_spin.value(),
            "regulation_sec": self.regulation_spin.value(),
            "soft_dismiss_sec": self.dismiss_spin.value(),
        }

    @Slot()
    def _on_save(self) -> None:
        try:
            for row, rule in enumerate(self._rules):
                rule.enabled = self.rule_table.cellWidget(row, 0).isChecked()
                rule.interval_minutes = self.rule_table.cellWidget(row, 2).value()
                rule.mandatory_delay_seconds = self.rule_table.cellWidget(row, 3).value() or None
                rule.message = self.rule_table.cellWidget(row, 4).text().strip() or rule.message
                self.repo.save_rule(rule)
        except FocusGuardError as exc:
            logger.error("Saving rules failed: %s", exc)
            QMessageBox.warning(self, "Settings", str(exc))
            return
        logger.info("Settings saved: %s", self.get_intervals())
        self.settings_changed.emit()

    def showEvent(self, event) -> None:
        super().showEvent(event)
        self.load_rules()
