from .main_window import MainWindow
from .history_widget import HistoryWidget
from .session_view import FocusSessionView
from .settings_widget import SettingsWidget

__all__ = ["MainWindow", "HistoryWidget", "FocusSessionView", "SettingsWidget"]
