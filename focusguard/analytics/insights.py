"""
Focus Analytics — descriptive statistics over a user's session history.

Design philosophy:
  - Works with tiny histories (a handful of sessions is enough to show).
  - Pure read-side: only the weekly rollup writes, and only to its cache.
  - numpy for the averages; nothing heavier.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Optional

import numpy as np

from focusguard.data.models import FocusSession, SessionStatus, WeeklyAnalytics
from focusguard.data.repository import Repository

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 100
TREND_WINDOW = 30
TREND_SPLIT = 15
TREND_MARGIN = 5.0


class Trend:
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


@dataclass
class DayStats:
    day: date
    sessions: int
    total_minutes: int
    avg_score: int
    total_drifts: int

    @property
    def label(self) -> str:
        return self.day.strftime("%a")


def week_start_for(day: date) -> date:
    """Sunday on or before `day`."""
    return day - timedelta(days=(day.weekday() + 1) % 7)


def _mean(values: List[float]) -> Optional[float]:
    return float(np.mean(values)) if values else None


class FocusAnalytics:
    """Read-side statistics for one user."""

    def __init__(
        self,
        repo: Repository,
        user_id: str,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.repo = repo
        self.user_id = user_id
        self.clock = clock

    # ── Public API ──────────────────────────────────────────────────────────

    def recent_sessions(self, limit: int = HISTORY_WINDOW) -> List[FocusSession]:
        return self.repo.list_sessions(self.user_id, limit=limit)

    def day_stats(self, days: int = 7) -> List[DayStats]:
        """Per-day totals for the last `days` days, oldest first."""
        sessions = self.recent_sessions()
        today = self.clock().date()
        by_day: Dict[date, List[FocusSession]] = {}
        for s in sessions:
            if s.start_time:
                by_day.setdefault(s.start_time.date(), []).append(s)

        stats: List[DayStats] = []
        for offset in range(days - 1, -1, -1):
            day = today - timedelta(days=offset)
            day_sessions = by_day.get(day, [])
            avg = _mean([s.focus_score or 0 for s in day_sessions])
            stats.append(DayStats(
                day=day,
                sessions=len(day_sessions),
                total_minutes=sum(s.actual_duration_minutes or 0 for s in day_sessions),
                avg_score=int(round(avg)) if avg is not None else 0,
                total_drifts=sum(s.drift_count for s in day_sessions),
            ))
        return stats

    def drift_breakdown(self) -> dict:
        completed = [s for s in self.recent_sessions() if s.status == SessionStatus.COMPLETED]
        total = sum(s.drift_count for s in completed)
        avg = _mean([s.drift_count for s in completed])
        return {
            "total_drifts": total,
            "avg_drifts_per_session": round(avg, 1) if avg is not None else 0.0,
        }

    def drift_type_counts(self, limit: int = TREND_WINDOW) -> Dict[str, int]:
        """Drift entries by type over the most recent sessions."""
        counts: Dict[str, int] = {}
        for s in self.recent_sessions(limit):
            for d in self.repo.list_drifts(s.id):
                counts[d.drift_type] = counts.get(d.drift_type, 0) + 1
        return counts

    def productivity_trend(self) -> str:
        """
        Compare the 15 most recent scores with the 15 before them.

        More than 5 points apart in either direction counts as a trend.
        """
        window = self.recent_sessions()[:TREND_WINDOW]
        if len(window) < 2:
            return Trend.NEUTRAL
        scores = np.array([s.focus_score or 0 for s in window], dtype=float)
        recent = scores[:TREND_SPLIT]
        older = scores[TREND_SPLIT:]
        recent_avg = float(recent.mean())
        older_avg = float(older.sum() / max(1, len(older)))
        if recent_avg > older_avg + TREND_MARGIN:
            return Trend.UP
        if recent_avg < older_avg - TREND_MARGIN:
            return Trend.DOWN
        return Trend.NEUTRAL

    def overview(self) -> dict:
        sessions = self.recent_sessions()
        completed = [s for s in sessions if s.status == SessionStatus.COMPLETED]
        avg_score = _mean([s.focus_score or 0 for s in completed])
        total_minutes = sum(s.actual_duration_minutes or 0 for s in sessions)
        return {
            "session_count": len(sessions),
            "completed_count": len(completed),
            "avg_focus_score": int(round(avg_score)) if avg_score is not None else 0,
            "total_focus_hours": int(round(total_minutes / 60.0)),
            "trend": self.productivity_trend(),
            **self.drift_breakdown(),
        }

    # ── Weekly rollup ───────────────────────────────────────────────────────

    def generate_weekly_analytics(self, user_id: Optional[str] = None) -> WeeklyAnalytics:
        """Recompute and cache the rollup for the current week."""
        target = user_id or self.user_id
        now = self.clock()
        week_start = week_start_for(now.date())
        start = datetime.combine(week_start, time.min)
        end = start + timedelta(days=7) - timedelta(microseconds=1)

        sessions = self.repo.list_sessions(
            target, start_after=start, start_before=end, limit=10000
        )
        completed = [s for s in sessions if s.status == SessionStatus.COMPLETED]
        total = len(sessions)

        analytics = WeeklyAnalytics(
            user_id=target,
            week_start=week_start.isoformat(),
            average_focus_score=_mean([s.focus_score or 0 for s in completed]),
            total_minutes=sum(s.actual_duration_minutes or 0 for s in sessions),
            drift_rate=sum(s.drift_count for s in sessions) / total if total else None,
            distraction_rate=sum(s.distraction_count for s in sessions) / total if total else None,
            total_sessions=total,
            completed_sessions=len(completed),
            generated_at=now,
        )
        self.repo.upsert_weekly_analytics(analytics)
        logger.info("Weekly analytics for %s (%s): %d sessions",
                    target, analytics.week_start, total)
        return analytics

    def get_weekly_analytics(self, weeks_back: int = 4) -> List[WeeklyAnalytics]:
        since = self.clock().date() - timedelta(weeks=weeks_back)
        return self.repo.list_weekly_analytics(self.user_id, since.isoformat())


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Turns raw session rows into the numbers the history/analytics tab shows:
#   per-day bars, average score, drifts per session, an up/down/neutral trend
#   and a cached weekly rollup.
#
# Data flow:
#   History tab opens → FocusAnalytics.overview()/day_stats() → reads the
#   last 100 sessions → numpy means → dicts/dataclasses for the widgets.
