"""
Overlays stacked on top of the session view: drift banner, nudge banner and
the full-screen mandatory pause.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import (
    QFrame, QHBoxLayout, QLabel, QLineEdit, QPushButton, QVBoxLayout, QWidget,
)

from focusguard.data.models import DriftEvent
from focusguard.services.nudge_service import Nudge
from focusguard.services.regulation_service import MandatoryPause


class DriftBanner(QFrame):
    """Shown while a drift is open. 'I'm back' resolves it."""

    returned = Signal(str)  # note

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("drift_banner")
        layout = QVBoxLayout(self)
        layout.setContentsMargins(14, 10, 14, 10)

        self.label = QLabel("")
        self.label.setWordWrap(True)
        layout.addWidget(self.label)

        row = QHBoxLayout()
        self.note_edit = QLineEdit()
        self.note_edit.setPlaceholderText("What pulled you away? (optional)")
        row.addWidget(self.note_edit)
        self.btn_back = QPushButton("I'm back")
        self.btn_back.setObjectName("success")
        self.btn_back.clicked.connect(self._on_back)
        row.addWidget(self.btn_back)
        layout.addLayout(row)
        self.hide()

    def show_drift(self, drift: DriftEvent) -> None:
        self.label.setText(
            f"Looks like you drifted to {drift.label}. Let's get back on track."
        )
        self.note_edit.clear()
        self.show()

    def _on_back(self) -> None:
        self.returned.emit(self.note_edit.text().strip())


class NudgeBanner(QFrame):
    """Soft nudges vanish on their own; hard ones need 'Got it'."""

    acknowledged = Signal()

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        layout = QHBoxLayout(self)
        layout.setContentsMargins(14, 10, 14, 10)
        self.label = QLabel("")
        self.label.setWordWrap(True)
        layout.addWidget(self.label, 1)
        self.btn_ack = QPushButton("Got it")
        self.btn_ack.clicked.connect(self.acknowledged.emit)
        layout.addWidget(self.btn_ack)
        self.hide()

    def show_nudge(self, nudge: Nudge) -> None:
        self.setObjectName("nudge_hard" if nudge.requires_ack else "nudge_soft")
        self.style().unpolish(self)
        self.style().polish(self)
        self.label.setText(nudge.message)
        self.btn_ack.setVisible(nudge.requires_ack)
        self.show()


class MandatoryPauseOverlay(QFrame):
    """
    Full-size overlay for a regulation pause.

    Resume is disabled until the countdown reaches zero.
    """

    resume_requested = Signal()

    def __init__(self, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("mandatory_pause")
        self.pause: Optional[MandatoryPause] = None

        layout = QVBoxLayout(self)
        layout.setContentsMargins(32, 32, 32, 32)
        layout.setSpacing(16)
        layout.addStretch()

        self.title = QLabel("")
        self.title.setObjectName("title")
        self.title.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.title)

        self.message = QLabel("")
        self.message.setWordWrap(True)
        self.message.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.message)

        self.countdown = QLabel("")
        self.countdown.setObjectName("timer")
        self.countdown.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self.countdown)

        self.btn_resume = QPushButton("Resume")
        self.btn_resume.setObjectName("primary")
        self.btn_resume.setMinimumHeight(44)
        self.btn_resume.clicked.connect(self.resume_requested.emit)
        layout.addWidget(self.btn_resume)
        layout.addStretch()
        self.hide()

    def show_pause(self, pause: MandatoryPause, now: datetime) -> None:
        self.pause = pause
        self.title.setText(f"Time to {pause.rule.rule_type}")
        self.message.setText(pause.rule.message)
        self.refresh(now)
        self.show()
        self.raise_()

    def refresh(self, now: datetime) -> None:
        if self.pause is None:
            return
        remaining = self.pause.remaining_seconds(now)
        mins, secs = divmod(remaining, 60)
        self.countdown.setText(f"{mins:d}:{secs:02d}")
        self.btn_resume.setEnabled(remaining == 0)

    def clear(self) -> None:
        self.pause = None
        self.hide()
