"""
Configuration defaults for FocusGuard.

Module-level constants are the shipped defaults. FocusSettings carries the
values a running app actually uses, so the settings tab can change intervals
without touching the services.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Session goal bounds (minutes)
MIN_GOAL_MINUTES = 5
MAX_GOAL_MINUTES = 180

# Extension bounds (minutes)
MIN_EXTEND_MINUTES = 5
MAX_EXTEND_MINUTES = 60

# Timer periods
DEFAULT_NUDGE_INTERVAL_MIN = 5
DEFAULT_REGULATION_INTERVAL_SEC = 60
DEFAULT_SOFT_NUDGE_DISMISS_SEC = 5
COUNTDOWN_TICK_MS = 1000

# More drifts than this turns the periodic nudge into a hard one
HARD_NUDGE_DRIFT_THRESHOLD = 2

# SQLite busy timeout, used as the per-request timeout
DB_TIMEOUT_SEC = 5.0

DEFAULT_USER_ID = "local"

DEFAULT_DB_PATH = Path(__file__).resolve().parent.parent / "focusguard.db"


def resolve_db_path() -> Path:
    """Database path, honouring the FOCUSGUARD_DB environment variable."""
    override = os.environ.get("FOCUSGUARD_DB")
    return Path(override) if override else DEFAULT_DB_PATH


@dataclass
class FocusSettings:
    """Runtime-tunable settings."""
    nudge_interval_min: float = DEFAULT_NUDGE_INTERVAL_MIN
    regulation_interval_sec: float = DEFAULT_REGULATION_INTERVAL_SEC
    soft_nudge_dismiss_sec: float = DEFAULT_SOFT_NUDGE_DISMISS_SEC
    hard_nudge_drift_threshold: int = HARD_NUDGE_DRIFT_THRESHOLD
    user_id: str = DEFAULT_USER_ID

    def update_intervals(
        self,
        nudge_min: Optional[float] = None,
        regulation_sec: Optional[float] = None,
        soft_dismiss_sec: Optional[float] = None,
    ) -> None:
        """Update timer periods (e.g. from the settings tab)."""
        if nudge_min is not None:
            self.nudge_interval_min = nudge_min
        if regulation_sec is not None:
            self.regulation_interval_sec = regulation_sec
        if soft_dismiss_sec is not None:
            self.soft_nudge_dismiss_sec = soft_dismiss_sec
