"""Unit tests for the data layer (database, repository, models)."""

import sqlite3
import pytest
from datetime import datetime, timedelta

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from focusguard.data.database import Database, configure_connection
from focusguard.data.repository import Repository
from focusguard.data.models import (
    EventType, FocusSession, RegulationRule, SessionStatus, WeeklyAnalytics,
)
from focusguard.errors import PersistenceError


@pytest.fixture
def repo():
    """Create an in-memory database for testing."""
    conn = configure_connection(sqlite3.connect(":memory:"))
    return Repository(conn)


@pytest.fixture
def project(repo):
    return repo.create_project("p-1", "Thesis")


def _session(session_id: str, project_id: str, start: datetime, **kw) -> FocusSession:
    return FocusSession(
        id=session_id, user_id="u1", project_id=project_id,
        start_time=start, target_end_time=start + timedelta(minutes=25),
        intended_duration_minutes=25, **kw,
    )


class TestDatabase:
    def test_memory_database_creates_schema(self):
        db = Database(db_path=Path(":memory:"))
        conn = db.connect()
        tables = {r["name"] for r in conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table'"
        )}
        assert {"projects", "focus_sessions", "focus_events", "focus_drift_log",
                "focus_distractions", "regulation_rules",
                "focus_analytics_cache"} <= tables
        db.close()
        assert db.conn is None

    def test_env_override(self, monkeypatch, tmp_path):
        target = tmp_path / "custom.db"
        monkeypatch.setenv("FOCUSGUARD_DB", str(target))
        db = Database()
        assert db.db_path == target


class TestProjects:
    def test_create_project(self, repo: Repository):
        project = repo.create_project("p-1", "Thesis")
        assert project.id == "p-1"
        assert project.name == "Thesis"
        assert project.created_at is not None

    def test_duplicate_project(self, repo: Repository):
        repo.create_project("p-1", "Thesis")
        again = repo.create_project("p-1", "Renamed")
        assert again.name == "Thesis"
        assert len(repo.list_projects()) == 1

    def test_offshoot(self, repo: Repository, project):
        off = repo.create_offshoot("o-1", project.id, "Chapter idea")
        assert repo.get_offshoot("o-1").project_id == project.id
        assert off.title == "Chapter idea"


class TestSessions:
    def test_create_and_get(self, repo: Repository, project):
        start = datetime(2024, 3, 1, 9, 0)
        repo.create_session(_session("s-1", project.id, start))
        fetched = repo.get_session("s-1")
        assert fetched.start_time == start
        assert fetched.status == SessionStatus.ACTIVE
        assert fetched.drift_count == 0
        assert fetched.paused_seconds == 0.0

    def test_missing_session(self, repo: Repository):
        assert repo.get_session("nope") is None

    def test_update_does_not_touch_counters(self, repo: Repository, project):
        session = repo.create_session(_session("s-1", project.id, datetime(2024, 3, 1, 9)))
        repo.increment_drift_count("s-1")
        repo.increment_drift_count("s-1")
        session.status = SessionStatus.COMPLETED
        session.focus_score = 80
        repo.update_session(session)
        fetched = repo.get_session("s-1")
        assert fetched.drift_count == 2
        assert fetched.focus_score == 80

    def test_open_session(self, repo: Repository, project):
        repo.create_session(_session("s-1", project.id, datetime(2024, 3, 1, 9)))
        assert repo.get_open_session("u1").id == "s-1"
        assert repo.get_open_session("someone-else") is None

    def test_list_sessions_filters(self, repo: Repository, project):
        other = repo.create_project("p-2", "Side Game")
        base = datetime(2024, 3, 1, 9)
        for i in range(5):
            pid = project.id if i % 2 == 0 else other.id
            repo.create_session(_session(f"s-{i}", pid, base + timedelta(days=i),
                                         status=SessionStatus.COMPLETED))

        all_sessions = repo.list_sessions("u1")
        assert [s.id for s in all_sessions] == ["s-4", "s-3", "s-2", "s-1", "s-0"]

        by_project = repo.list_sessions("u1", project_id=other.id)
        assert {s.id for s in by_project} == {"s-1", "s-3"}

        window = repo.list_sessions("u1", start_after=base + timedelta(days=1),
                                    start_before=base + timedelta(days=3))
        assert [s.id for s in window] == ["s-3", "s-2", "s-1"]

        assert len(repo.list_sessions("u1", limit=2)) == 2


class TestEvents:
    def test_metadata_round_trip(self, repo: Repository, project):
        repo.create_session(_session("s-1", project.id, datetime(2024, 3, 1, 9)))
        t = datetime(2024, 3, 1, 9, 5)
        repo.add_event("s-1", EventType.EXTEND, t, {"additional_minutes": 15})
        events = repo.get_events("s-1")
        assert len(events) == 1
        assert events[0].metadata == {"additional_minutes": 15}
        assert events[0].timestamp == t

    def test_events_ordered(self, repo: Repository, project):
        repo.create_session(_session("s-1", project.id, datetime(2024, 3, 1, 9)))
        t = datetime(2024, 3, 1, 9)
        repo.add_event("s-1", EventType.PAUSE, t + timedelta(minutes=2))
        repo.add_event("s-1", EventType.START, t)
        repo.add_event("s-1", EventType.RESUME, t + timedelta(minutes=2))
        types = [e.event_type for e in repo.get_events("s-1")]
        assert types == [EventType.START, EventType.PAUSE, EventType.RESUME]
        assert len(repo.get_events_of_type("s-1", EventType.PAUSE)) == 1

    def test_event_for_unknown_session_fails(self, repo: Repository):
        with pytest.raises(PersistenceError):
            repo.add_event("missing", EventType.START, datetime.now())


class TestDriftLog:
    def test_open_and_close(self, repo: Repository, project):
        repo.create_session(_session("s-1", project.id, datetime(2024, 3, 1, 9)))
        entry = repo.open_drift("s-1", "side_project", datetime(2024, 3, 1, 9, 10))
        assert repo.get_open_drift("s-1").id == entry.id

        entry.ended_at = datetime(2024, 3, 1, 9, 14)
        entry.duration_minutes = 4
        entry.note = "email"
        repo.close_drift(entry)
        assert repo.get_open_drift("s-1") is None
        closed = repo.list_drifts("s-1")[0]
        assert closed.duration_minutes == 4
        assert closed.note == "email"
        assert not closed.is_open


class TestRules:
    def test_save_rule_upserts(self, repo: Repository):
        repo.save_rule(RegulationRule(user_id="u1", rule_type="hydrate",
                                      message="Drink", interval_minutes=60))
        repo.save_rule(RegulationRule(user_id="u1", rule_type="hydrate",
                                      message="Drink more", interval_minutes=45,
                                      enabled=False))
        rules = repo.list_rules("u1")
        assert len(rules) == 1
        assert rules[0].message == "Drink more"
        assert rules[0].enabled is False
        assert repo.list_rules("u1", enabled_only=True) == []

    def test_rules_longest_interval_first(self, repo: Repository):
        for kind, minutes in [("hydrate", 60), ("rest", 120), ("stretch", 90)]:
            repo.save_rule(RegulationRule(user_id="u1", rule_type=kind,
                                          message=kind, interval_minutes=minutes))
        assert [r.rule_type for r in repo.list_rules("u1")] == ["rest", "stretch", "hydrate"]


class TestAnalyticsCache:
    def test_upsert_replaces_week(self, repo: Repository):
        week = WeeklyAnalytics(user_id="u1", week_start="2024-03-03",
                               total_sessions=2, generated_at=datetime(2024, 3, 4))
        repo.upsert_weekly_analytics(week)
        week.total_sessions = 5
        repo.upsert_weekly_analytics(week)
        rows = repo.list_weekly_analytics("u1", "2024-01-01")
        assert len(rows) == 1
        assert rows[0].total_sessions == 5
        assert repo.list_weekly_analytics("u1", "2024-04-01") == []
