"""
FocusGuard — focus sessions with drift detection and mandatory breaks.
Entry point for the application.
"""

import faulthandler
import logging
import sys
from pathlib import Path

faulthandler.enable()

# Ensure the package is importable when run from a checkout
sys.path.insert(0, str(Path(__file__).resolve().parent))

from PySide6.QtWidgets import QApplication

from focusguard.ui.main_window import MainWindow
from focusguard.ui.styles import DARK_STYLESHEET


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler("focusguard.log", encoding="utf-8"),
        ],
    )


def main() -> None:
    setup_logging()
    logger = logging.getLogger(__name__)
    logger.info("Starting FocusGuard...")

    app = QApplication(sys.argv)
    app.setApplicationName("FocusGuard")
    app.setOrganizationName("FocusGuard")
    app.setStyleSheet(DARK_STYLESHEET)

    window = MainWindow()
    window.show()

    logger.info("Application started.")
    sys.exit(app.exec())


if __name__ == "__main__":
    main()
