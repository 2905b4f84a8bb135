"""
Tests for the timers: task scopes, nudges and regulation pauses.

Timers are never left to fire on their own; tests call tick()/fire()
directly and advance a fake clock.
"""

import sqlite3
import pytest
from datetime import datetime, timedelta
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from PySide6.QtCore import QCoreApplication

from focusguard.config import FocusSettings
from focusguard.data.database import configure_connection
from focusguard.data.models import EventType, RegulationRule, SessionStatus
from focusguard.data.repository import Repository
from focusguard.errors import PersistenceError, ValidationError
from focusguard.services.nudge_service import HARD_MESSAGE, NudgeLevel, SOFT_MESSAGE
from focusguard.services.regulation_service import DEFAULT_RULES, ensure_default_rules
from focusguard.services.scheduler import TaskScope
from focusguard.services.session_service import FocusSessionService
from focusguard.services.tracking_service import TrackingService


class FakeClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw) -> None:
        self.now += timedelta(**kw)


@pytest.fixture(scope="module")
def qapp():
    return QCoreApplication.instance() or QCoreApplication([])


@pytest.fixture
def repo():
    conn = configure_connection(sqlite3.connect(":memory:"))
    repo = Repository(conn)
    repo.create_project("thesis", "Thesis")
    repo.create_project("game", "Side Game")
    ensure_default_rules(repo, "u1")
    return repo


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 4, 9, 0, 0))


@pytest.fixture
def svc(repo, clock):
    return FocusSessionService(repo, "u1", clock=clock)


@pytest.fixture
def tracking(qapp, repo, svc):
    calls = {"nudge": [], "dismiss": [], "pause": [], "lifted": 0,
             "drift": [], "return": []}

    def lifted():
        calls["lifted"] += 1

    service = TrackingService(
        repo, svc, FocusSettings(user_id="u1"),
        on_drift_started=calls["drift"].append,
        on_drift_resolved=calls["return"].append,
        on_nudge=calls["nudge"].append,
        on_nudge_dismissed=calls["dismiss"].append,
        on_mandatory_pause=calls["pause"].append,
        on_pause_lifted=lifted,
    )
    service.calls = calls
    yield service
    service.close()


@pytest.fixture
def session(svc, tracking):
    s = svc.start_session("thesis", 120)
    tracking.start_tracking(s)
    return s


class TestTaskScope:
    def test_cancelled_task_never_fires(self, qapp):
        hits = []
        scope = TaskScope()
        task = scope.repeating("t", 60, lambda: hits.append(1))
        task.start()
        assert task.is_active
        task.fire()
        task.cancel()
        task.fire()
        task.start()
        assert hits == [1]
        assert not task.is_active

    def test_cancel_all(self, qapp):
        hits = []
        scope = TaskScope()
        a = scope.repeating("a", 60, lambda: hits.append("a"))
        b = scope.single_shot("b", 5, lambda: hits.append("b"))
        a.start()
        b.start()
        scope.cancel_all()
        a.fire()
        b.fire()
        assert hits == []
        assert scope.closed

    def test_tasks_created_after_close_are_dead(self, qapp):
        scope = TaskScope()
        scope.cancel_all()
        late = scope.single_shot("late", 1, lambda: None)
        assert late.cancelled

    def test_set_interval(self, qapp):
        scope = TaskScope()
        task = scope.repeating("t", 60, lambda: None)
        task.set_interval(30)
        assert task.interval_sec == 30
        scope.cancel_all()


class TestTracking:
    def test_start_arms_timers(self, tracking, session):
        assert tracking.nudges.is_running
        assert tracking.regulation.is_running

    def test_paused_session_stays_idle(self, svc, tracking):
        s = svc.start_session("thesis", 25)
        s = svc.pause_session(s.id)
        tracking.start_tracking(s)
        assert not tracking.nudges.is_running
        assert not tracking.regulation.is_running

    def test_pause_resume(self, svc, tracking, session):
        svc.pause_session(session.id)
        tracking.on_session_paused()
        assert not tracking.nudges.is_running
        svc.resume_session(session.id)
        tracking.on_session_resumed()
        assert tracking.nudges.is_running

    def test_drift_stops_nudges(self, tracking, session):
        tracking.drift.detect_drift(session.id, "game", "thesis")
        assert not tracking.nudges.is_running
        assert tracking.nudges.tick() is None
        tracking.drift.resolve_drift(session.id)
        assert tracking.nudges.is_running
        assert len(tracking.calls["drift"]) == 1
        assert len(tracking.calls["return"]) == 1

    def test_close_stops_everything(self, tracking, session):
        tracking.close()
        assert tracking.scope.closed
        assert not tracking.nudges.is_running
        assert tracking.nudges.tick() is None
        assert tracking.regulation.tick() is None

    def test_update_intervals(self, tracking, session):
        tracking.update_intervals(nudge_min=10)
        assert tracking.settings.nudge_interval_min == 10
        assert tracking.nudges._task.interval_sec == 600


class TestNudges:
    def test_soft_nudge(self, tracking, session, repo):
        nudge = tracking.nudges.tick()
        assert nudge.level == NudgeLevel.SOFT
        assert nudge.message == SOFT_MESSAGE
        assert not nudge.requires_ack
        assert tracking.calls["nudge"] == [nudge]
        assert len(repo.get_events_of_type(session.id, EventType.NUDGE_SOFT)) == 1

    def test_soft_nudge_auto_dismisses(self, tracking, session):
        nudge = tracking.nudges.tick()
        tracking.nudges._dismiss_task.fire()
        assert tracking.calls["dismiss"] == [nudge]
        assert tracking.nudges.current is None

    def test_hard_nudge_after_three_drifts(self, tracking, session, repo):
        for _ in range(3):
            tracking.drift.detect_drift(session.id, "game", "thesis")
            tracking.drift.resolve_drift(session.id)
        nudge = tracking.nudges.tick()
        assert nudge.level == NudgeLevel.HARD
        assert nudge.requires_ack
        assert nudge.message == HARD_MESSAGE.format(count=3)
        assert len(repo.get_events_of_type(session.id, EventType.NUDGE_HARD)) == 1

    def test_two_drifts_still_soft(self, tracking, session):
        for _ in range(2):
            tracking.drift.detect_drift(session.id, "game", "thesis")
            tracking.drift.resolve_drift(session.id)
        assert tracking.nudges.tick().level == NudgeLevel.SOFT

    def test_hard_nudge_waits_for_ack(self, tracking, session):
        for _ in range(3):
            tracking.drift.detect_drift(session.id, "game", "thesis")
            tracking.drift.resolve_drift(session.id)
        nudge = tracking.nudges.tick()
        assert not tracking.nudges._dismiss_task.is_active
        tracking.nudges.acknowledge()
        assert tracking.calls["dismiss"] == [nudge]

    def test_no_nudge_while_paused(self, svc, tracking, session, repo):
        svc.pause_session(session.id)
        assert tracking.nudges.tick() is None
        assert repo.get_events_of_type(session.id, EventType.NUDGE_SOFT) == []

    def test_persistence_error_skips_tick(self, tracking, session, repo, monkeypatch):
        def broken(*args, **kwargs):
            raise PersistenceError("database is locked")

        monkeypatch.setattr(repo, "add_event", broken)
        assert tracking.nudges.tick() is None
        assert tracking.calls["nudge"] == []


class TestRegulation:
    def test_default_rules_seeded_once(self, repo):
        assert len(repo.list_rules("u1")) == len(DEFAULT_RULES)
        ensure_default_rules(repo, "u1")
        assert len(repo.list_rules("u1")) == len(DEFAULT_RULES)

    def test_nothing_due_early(self, tracking, session, clock):
        clock.advance(minutes=59)
        assert tracking.regulation.check_regulation_rules(session.id) is None
        assert tracking.regulation.tick() is None

    def test_hydrate_pause(self, tracking, session, clock, repo):
        clock.advance(minutes=61)
        assert tracking.regulation.check_regulation_rules(session.id).rule_type == "hydrate"

        pause = tracking.regulation.tick()
        assert pause.rule.rule_type == "hydrate"
        assert pause.delay_seconds == 30
        assert repo.get_session(session.id).status == SessionStatus.PAUSED
        assert tracking.calls["pause"] == [pause]
        assert not tracking.nudges.is_running
        assert not tracking.regulation.is_running

        hard = repo.get_events_of_type(session.id, EventType.NUDGE_HARD)
        assert hard[0].metadata["regulation"] is True
        assert hard[0].metadata["regulation_type"] == "hydrate"
        pause_ev = repo.get_events_of_type(session.id, EventType.PAUSE)
        assert pause_ev[0].metadata["reason"] == "regulation:hydrate"

    def test_resume_gated_on_countdown(self, tracking, session, clock, repo):
        clock.advance(minutes=61)
        pause = tracking.regulation.tick()
        clock.advance(seconds=10)
        assert pause.remaining_seconds(clock()) == 20
        with pytest.raises(ValidationError):
            tracking.regulation.resume_from_pause()
        assert repo.get_session(session.id).status == SessionStatus.PAUSED

        clock.advance(seconds=20)
        tracking.regulation.resume_from_pause()
        assert repo.get_session(session.id).status == SessionStatus.ACTIVE
        assert tracking.calls["lifted"] == 1
        assert tracking.regulation.pending is None
        assert tracking.nudges.is_running

    def test_rule_fires_once_per_interval(self, tracking, session, clock):
        clock.advance(minutes=61)
        tracking.regulation.tick()
        clock.advance(seconds=30)
        tracking.regulation.resume_from_pause()
        clock.advance(minutes=5)
        assert tracking.regulation.tick() is None

    def test_longest_rule_wins_and_covers_shorter(self, tracking, session, clock, repo):
        clock.advance(minutes=95)
        pause = tracking.regulation.tick()
        assert pause.rule.rule_type == "stretch"
        meta = repo.get_events_of_type(session.id, EventType.NUDGE_HARD)[0].metadata
        assert meta["covers"] == ["hydrate"]

        clock.advance(seconds=60)
        tracking.regulation.resume_from_pause()
        assert tracking.regulation.tick() is None

    def test_resume_without_pause(self, tracking, session):
        with pytest.raises(ValidationError):
            tracking.regulation.resume_from_pause()

    def test_disabled_rule_ignored(self, tracking, session, clock, repo):
        for rule in repo.list_rules("u1"):
            rule.enabled = rule.rule_type != "hydrate"
            repo.save_rule(rule)
        clock.advance(minutes=61)
        assert tracking.regulation.tick() is None

    def test_paused_time_does_not_count(self, svc, tracking, session, clock):
        clock.advance(minutes=40)
        svc.pause_session(session.id)
        clock.advance(minutes=30)
        svc.resume_session(session.id)
        clock.advance(minutes=10)
        assert tracking.regulation.check_regulation_rules(session.id) is None

    def test_skips_tick_on_persistence_error(self, tracking, session, clock, repo, monkeypatch):
        clock.advance(minutes=61)

        def broken(*args, **kwargs):
            raise PersistenceError("database is locked")

        monkeypatch.setattr(repo, "list_rules", broken)
        assert tracking.regulation.tick() is None
        assert repo.get_session(session.id).status == SessionStatus.ACTIVE

        monkeypatch.undo()
        assert tracking.regulation.tick() is not None

    def test_custom_rule(self, tracking, session, clock, repo):
        repo.save_rule(RegulationRule(user_id="u1", rule_type="hydrate",
                                      message="Sip", interval_minutes=20,
                                      mandatory_delay_seconds=None))
        clock.advance(minutes=21)
        pause = tracking.regulation.tick()
        assert pause.rule.message == "Sip"
        assert pause.can_resume(clock())


class TestScopeHousekeeping:
    def test_cancelled_tasks_are_dropped(self, qapp):
        scope = TaskScope()
        old = scope.single_shot("old", 5, lambda: None)
        old.cancel()
        scope.single_shot("new", 5, lambda: None)
        assert len(scope) == 1
        scope.cancel_all()

    def test_soft_nudges_reuse_one_dismiss_timer(self, tracking, session):
        before = len(tracking.scope)
        for _ in range(20):
            tracking.nudges.tick()
        assert len(tracking.scope) == before
        assert len(tracking.calls["nudge"]) == 20


def _reattach(repo, svc, calls):
    """A fresh tracker, as built when the app reopens an open session."""
    service = TrackingService(
        repo, svc, FocusSettings(user_id="u1"),
        on_drift_started=calls.setdefault("drift", []).append,
        on_nudge=calls.setdefault("nudge", []).append,
        on_mandatory_pause=calls.setdefault("pause", []).append,
    )
    service.start_tracking(svc.get_active_session())
    return service


class TestReattach:
    def test_open_drift_is_restored(self, repo, svc, tracking, session):
        tracking.drift.detect_drift(session.id, "game", "thesis")
        tracking.close()

        calls = {}
        again = _reattach(repo, svc, calls)
        try:
            assert again.drift.drift_active
            assert again.drift.drift_label == "Side Game"
            assert len(calls["drift"]) == 1
            assert calls["drift"][0].entry.drift_type == "side_project"
            assert not again.nudges.is_running
            assert again.nudges.tick() is None
            assert calls["nudge"] == []

            entry = again.drift.resolve_drift(session.id)
            assert entry is not None
            assert not again.drift.drift_active
            assert again.nudges.is_running
            assert again.drift.detect_drift(session.id, "game", "thesis") is not None
        finally:
            again.close()

    def test_no_drift_to_restore(self, repo, svc, tracking, session):
        tracking.close()
        calls = {}
        again = _reattach(repo, svc, calls)
        try:
            assert not again.drift.drift_active
            assert calls["drift"] == []
            assert again.nudges.is_running
        finally:
            again.close()

    def test_mandatory_pause_is_restored(self, repo, svc, tracking, session, clock):
        clock.advance(minutes=61)
        tracking.regulation.tick()
        tracking.close()
        clock.advance(seconds=10)

        calls = {}
        again = _reattach(repo, svc, calls)
        try:
            pending = again.regulation.pending
            assert pending is not None
            assert pending.rule.rule_type == "hydrate"
            assert pending.remaining_seconds(clock()) == 20
            assert calls["pause"] == [pending]
            assert not again.regulation.is_running

            with pytest.raises(ValidationError):
                again.regulation.resume_from_pause()
            assert repo.get_session(session.id).status == SessionStatus.PAUSED

            clock.advance(seconds=20)
            again.regulation.resume_from_pause()
            assert repo.get_session(session.id).status == SessionStatus.ACTIVE
            assert again.nudges.is_running
        finally:
            again.close()

    def test_user_pause_is_not_mandatory(self, repo, svc, tracking, session):
        svc.pause_session(session.id)
        tracking.close()
        calls = {}
        again = _reattach(repo, svc, calls)
        try:
            assert again.regulation.pending is None
            assert calls["pause"] == []
        finally:
            again.close()
