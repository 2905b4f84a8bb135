"""Tests for the history analytics (day stats, trend, weekly rollup)."""

import sqlite3
import pytest
from datetime import date, datetime, timedelta
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from focusguard.analytics.insights import FocusAnalytics, Trend, week_start_for
from focusguard.data.database import configure_connection
from focusguard.data.models import FocusSession, SessionStatus
from focusguard.data.repository import Repository
from focusguard.services.drift_service import DriftDetector
from focusguard.services.session_service import FocusSessionService


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def repo():
    conn = configure_connection(sqlite3.connect(":memory:"))
    repo = Repository(conn)
    repo.create_project("thesis", "Thesis")
    repo.create_project("game", "Side Game")
    return repo


@pytest.fixture
def clock():
    # a Wednesday
    return FakeClock(datetime(2024, 3, 6, 18, 0))


@pytest.fixture
def analytics(repo, clock):
    return FocusAnalytics(repo, "u1", clock)


def _add(repo, sid, start, minutes=25, score=80, drifts=0, status=SessionStatus.COMPLETED):
    repo.create_session(FocusSession(
        id=sid, user_id="u1", project_id="thesis", start_time=start,
        target_end_time=start + timedelta(minutes=25), intended_duration_minutes=25,
    ))
    for _ in range(drifts):
        repo.increment_drift_count(sid)
    session = repo.get_session(sid)
    session.status = status
    session.end_time = start + timedelta(minutes=minutes)
    session.actual_duration_minutes = minutes
    session.focus_score = score
    repo.update_session(session)


class TestWeekStart:
    def test_sunday_start(self):
        assert week_start_for(date(2024, 3, 6)) == date(2024, 3, 3)
        assert week_start_for(date(2024, 3, 3)) == date(2024, 3, 3)
        assert week_start_for(date(2024, 3, 9)) == date(2024, 3, 3)


class TestOverview:
    def test_empty_history(self, analytics):
        stats = analytics.overview()
        assert stats["session_count"] == 0
        assert stats["avg_focus_score"] == 0
        assert stats["trend"] == Trend.NEUTRAL
        assert stats["avg_drifts_per_session"] == 0.0

    def test_overview_counts(self, repo, analytics):
        base = datetime(2024, 3, 5, 9)
        _add(repo, "a", base, minutes=60, score=90, drifts=1)
        _add(repo, "b", base + timedelta(hours=2), minutes=60, score=70, drifts=3)
        _add(repo, "c", base + timedelta(hours=4), minutes=10, score=50,
             status=SessionStatus.CANCELLED)
        stats = analytics.overview()
        assert stats["session_count"] == 3
        assert stats["completed_count"] == 2
        assert stats["avg_focus_score"] == 80
        assert stats["total_focus_hours"] == 2
        assert stats["total_drifts"] == 4
        assert stats["avg_drifts_per_session"] == 2.0


class TestDayStats:
    def test_seven_days_oldest_first(self, repo, analytics, clock):
        _add(repo, "today", clock.now - timedelta(hours=3), minutes=30, score=90, drifts=2)
        _add(repo, "yesterday", clock.now - timedelta(days=1), minutes=45, score=70)
        _add(repo, "old", clock.now - timedelta(days=10), minutes=45, score=10)

        stats = analytics.day_stats()
        assert len(stats) == 7
        assert stats[-1].day == clock.now.date()
        assert stats[0].day == clock.now.date() - timedelta(days=6)
        assert stats[-1].total_minutes == 30
        assert stats[-1].total_drifts == 2
        assert stats[-2].avg_score == 70
        assert sum(s.sessions for s in stats) == 2
        assert stats[-1].label == "Wed"


class TestTrend:
    def test_improving(self, repo, analytics):
        base = datetime(2024, 1, 1, 9)
        for i in range(30):
            score = 50 if i < 15 else 90
            _add(repo, f"s{i}", base + timedelta(days=i), score=score)
        assert analytics.productivity_trend() == Trend.UP

    def test_slipping(self, repo, analytics):
        base = datetime(2024, 1, 1, 9)
        for i in range(30):
            score = 90 if i < 15 else 50
            _add(repo, f"s{i}", base + timedelta(days=i), score=score)
        assert analytics.productivity_trend() == Trend.DOWN

    def test_within_margin_is_neutral(self, repo, analytics):
        base = datetime(2024, 1, 1, 9)
        for i in range(30):
            score = 80 if i < 15 else 84
            _add(repo, f"s{i}", base + timedelta(days=i), score=score)
        assert analytics.productivity_trend() == Trend.NEUTRAL


class TestDriftTypes:
    def test_counts_by_type(self, repo, analytics, clock):
        svc = FocusSessionService(repo, "u1", clock=clock)
        detector = DriftDetector(repo, svc)
        session = svc.start_session("thesis", 25)
        detector.detect_drift(session.id, "game", "thesis")
        detector.resolve_drift(session.id)
        detector.detect_drift(session.id, "game", "thesis")
        detector.resolve_drift(session.id)
        svc.end_session(session.id)
        assert analytics.drift_type_counts() == {"side_project": 2}


class TestWeeklyRollup:
    def test_generate_and_cache(self, repo, analytics, clock):
        _add(repo, "mon", datetime(2024, 3, 4, 9), minutes=30, score=80, drifts=2)
        _add(repo, "tue", datetime(2024, 3, 5, 9), minutes=20, score=60,
             status=SessionStatus.CANCELLED)
        _add(repo, "last-week", datetime(2024, 3, 1, 9), minutes=50, score=10)

        weekly = analytics.generate_weekly_analytics()
        assert weekly.week_start == "2024-03-03"
        assert weekly.total_sessions == 2
        assert weekly.completed_sessions == 1
        assert weekly.total_minutes == 50
        assert weekly.average_focus_score == 80.0
        assert weekly.drift_rate == 1.0

        cached = analytics.get_weekly_analytics()
        assert len(cached) == 1
        assert cached[0].total_sessions == 2

        analytics.generate_weekly_analytics()
        assert len(analytics.get_weekly_analytics()) == 1

    def test_empty_week(self, analytics):
        weekly = analytics.generate_weekly_analytics()
        assert weekly.total_sessions == 0
        assert weekly.average_focus_score is None
        assert weekly.drift_rate is None
