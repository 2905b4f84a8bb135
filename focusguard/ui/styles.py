"""
Dark mode stylesheet for the entire application.
Catppuccin Mocha-inspired palette.
"""

DARK_STYLESHEET = """
/* ── Base ────────────────────────────────────────────────────────── */
QWidget {
    background-color: #1e1e2e;
    color: #cdd6f4;
    font-family: "Segoe UI", "Inter", sans-serif;
    font-size: 13px;
}

/* ── Buttons ─────────────────────────────────────────────────────── */
QPushButton {
    background-color: #313244;
    color: #cdd6f4;
    border: 1px solid #585b70;
    border-radius: 8px;
    padding: 8px 18px;
    font-weight: 600;
    min-height: 24px;
}

QPushButton:hover {
    background-color: #45475a;
    border-color: #89b4fa;
}

QPushButton:disabled {
    background-color: #181825;
    color: #585b70;
    border-color: #313244;
}

QPushButton#primary {
    background-color: #89b4fa;
    color: #1e1e2e;
    border: none;
}

QPushButton#danger {
    background-color: #f38ba8;
    color: #1e1e2e;
    border: none;
}

QPushButton#success {
    background-color: #a6e3a1;
    color: #1e1e2e;
    border: none;
}

/* ── Labels ──────────────────────────────────────────────────────── */
QLabel#timer {
    font-size: 56px;
    font-weight: 700;
    color: #cdd6f4;
}

QLabel#timer[drifting="true"] {
    color: #f38ba8;
}

QLabel#title {
    font-size: 20px;
    font-weight: 700;
}

QLabel#subtitle {
    color: #a6adc8;
}

QLabel#counter {
    font-size: 18px;
    font-weight: 700;
}

/* ── Overlays ────────────────────────────────────────────────────── */
QFrame#drift_banner {
    background-color: #45273a;
    border: 1px solid #f38ba8;
    border-radius: 10px;
}

QFrame#nudge_soft {
    background-color: #283548;
    border: 1px solid #89b4fa;
    border-radius: 10px;
}

QFrame#nudge_hard {
    background-color: #4a3426;
    border: 1px solid #fab387;
    border-radius: 10px;
}

QFrame#mandatory_pause {
    background-color: #11111b;
    border: 2px solid #89b4fa;
    border-radius: 14px;
}

/* ── Inputs & tables ─────────────────────────────────────────────── */
QComboBox, QLineEdit, QSpinBox, QDateEdit {
    background-color: #313244;
    border: 1px solid #585b70;
    border-radius: 6px;
    padding: 4px 8px;
}

QTableWidget {
    background-color: #181825;
    gridline-color: #313244;
    border: 1px solid #313244;
    border-radius: 6px;
}

QHeaderView::section {
    background-color: #313244;
    color: #a6adc8;
    padding: 4px;
    border: none;
}

QTabBar::tab {
    background: #181825;
    padding: 8px 18px;
    border-top-left-radius: 6px;
    border-top-right-radius: 6px;
}

QTabBar::tab:selected {
    background: #313244;
    color: #89b4fa;
}
"""
