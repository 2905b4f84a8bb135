"""
Repository — the single place where SQL lives.

Every other module talks to Repository, never to raw SQL. sqlite3 errors are
re-raised as PersistenceError so callers handle one exception type.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from focusguard.errors import PersistenceError

from .models import (
    Distraction,
    DriftLogEntry,
    FocusEvent,
    FocusSession,
    Offshoot,
    Project,
    RegulationRule,
    SessionStatus,
    WeeklyAnalytics,
)

logger = logging.getLogger(__name__)

# helper: parse ISO datetime strings from SQLite
_parse_dt = lambda s: datetime.fromisoformat(s) if s else None
_fmt_dt = lambda d: d.isoformat() if d else None


class Repository:
    """Data-access layer wrapping a sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    # ── low-level helpers ───────────────────────────────────────────────────

    def _write(self, sql: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        try:
            cur = self.conn.execute(sql, tuple(params))
            self.conn.commit()
            return cur
        except sqlite3.Error as exc:
            self.conn.rollback()
            logger.error("Write failed: %s", exc)
            raise PersistenceError(str(exc)) from exc

    def _fetchone(self, sql: str, params: Iterable[Any] = ()) -> Optional[sqlite3.Row]:
        try:
            return self.conn.execute(sql, tuple(params)).fetchone()
        except sqlite3.Error as exc:
            logger.error("Query failed: %s", exc)
            raise PersistenceError(str(exc)) from exc

    def _fetchall(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self.conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as exc:
            logger.error("Query failed: %s", exc)
            raise PersistenceError(str(exc)) from exc

    # ── Projects & offshoots ────────────────────────────────────────────────

    def create_project(self, project_id: str, name: str) -> Project:
        self._write(
            "INSERT OR IGNORE INTO projects (id, name) VALUES (?, ?)",
            (project_id, name),
        )
        return self.get_project(project_id)

    def get_project(self, project_id: str) -> Optional[Project]:
        row = self._fetchone("SELECT * FROM projects WHERE id = ?", (project_id,))
        return self._row_to_project(row) if row else None

    def list_projects(self) -> List[Project]:
        rows = self._fetchall("SELECT * FROM projects ORDER BY name")
        return [self._row_to_project(r) for r in rows]

    def create_offshoot(self, offshoot_id: str, project_id: str, title: str) -> Offshoot:
        self._write(
            "INSERT OR IGNORE INTO offshoots (id, project_id, title) VALUES (?, ?, ?)",
            (offshoot_id, project_id, title),
        )
        return self.get_offshoot(offshoot_id)

    def get_offshoot(self, offshoot_id: str) -> Optional[Offshoot]:
        row = self._fetchone("SELECT * FROM offshoots WHERE id = ?", (offshoot_id,))
        if not row:
            return None
        return Offshoot(id=row["id"], project_id=row["project_id"], title=row["title"])

    # ── Sessions ────────────────────────────────────────────────────────────

    def create_session(self, session: FocusSession) -> FocusSession:
        self._write(
            """INSERT INTO focus_sessions (
                id, user_id, project_id, status, start_time, target_end_time,
                intended_duration_minutes
            ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                session.id, session.user_id, session.project_id, session.status,
                _fmt_dt(session.start_time), _fmt_dt(session.target_end_time),
                session.intended_duration_minutes,
            ),
        )
        return session

    def update_session(self, session: FocusSession) -> None:
        """Persist the mutable fields. Counters are only touched via increment_*."""
        self._write(
            """UPDATE focus_sessions SET
                status = ?, end_time = ?, target_end_time = ?,
                intended_duration_minutes = ?, paused_at = ?, paused_seconds = ?,
                actual_duration_minutes = ?, focus_score = ?
            WHERE id = ?""",
            (
                session.status,
                _fmt_dt(session.end_time),
                _fmt_dt(session.target_end_time),
                session.intended_duration_minutes,
                _fmt_dt(session.paused_at),
                session.paused_seconds,
                session.actual_duration_minutes,
                session.focus_score,
                session.id,
            ),
        )

    def increment_drift_count(self, session_id: str) -> None:
        self._write(
            "UPDATE focus_sessions SET drift_count = drift_count + 1 WHERE id = ?",
            (session_id,),
        )

    def increment_distraction_count(self, session_id: str) -> None:
        self._write(
            "UPDATE focus_sessions SET distraction_count = distraction_count + 1 WHERE id = ?",
            (session_id,),
        )

    def get_session(self, session_id: str) -> Optional[FocusSession]:
        row = self._fetchone(
            "SELECT * FROM focus_sessions WHERE id = ?", (session_id,)
        )
        return self._row_to_session(row) if row else None

    def get_open_session(self, user_id: str) -> Optional[FocusSession]:
        """The user's active or paused session, newest first."""
        row = self._fetchone(
            "SELECT * FROM focus_sessions WHERE user_id = ? AND status IN (?, ?) "
            "ORDER BY start_time DESC LIMIT 1",
            (user_id, *SessionStatus.OPEN),
        )
        return self._row_to_session(row) if row else None

    def list_sessions(
        self,
        user_id: str,
        project_id: Optional[str] = None,
        start_after: Optional[datetime] = None,
        start_before: Optional[datetime] = None,
        status: Optional[str] = None,
        limit: int = 20,
    ) -> List[FocusSession]:
        query = "SELECT * FROM focus_sessions"
        conditions: List[str] = ["user_id = ?"]
        params: list = [user_id]

        if project_id is not None:
            conditions.append("project_id = ?")
            params.append(project_id)
        if start_after:
            conditions.append("start_time >= ?")
            params.append(start_after.isoformat())
        if start_before:
            conditions.append("start_time <= ?")
            params.append(start_before.isoformat())
        if status is not None:
            conditions.append("status = ?")
            params.append(status)

        query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY start_time DESC LIMIT ?"
        params.append(limit)

        rows = self._fetchall(query, params)
        return [self._row_to_session(r) for r in rows]

    # ── Events ──────────────────────────────────────────────────────────────

    def add_event(
        self,
        session_id: str,
        event_type: str,
        timestamp: datetime,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> FocusEvent:
        meta = metadata or {}
        cur = self._write(
            "INSERT INTO focus_events (session_id, event_type, timestamp, metadata) "
            "VALUES (?, ?, ?, ?)",
            (session_id, event_type, timestamp.isoformat(), json.dumps(meta)),
        )
        return FocusEvent(id=cur.lastrowid, session_id=session_id,
                          event_type=event_type, timestamp=timestamp, metadata=meta)

    def get_events(self, session_id: str) -> List[FocusEvent]:
        rows = self._fetchall(
            "SELECT * FROM focus_events WHERE session_id = ? ORDER BY timestamp, id",
            (session_id,),
        )
        return [self._row_to_event(r) for r in rows]

    def get_events_of_type(self, session_id: str, event_type: str) -> List[FocusEvent]:
        rows = self._fetchall(
            "SELECT * FROM focus_events WHERE session_id = ? AND event_type = ? "
            "ORDER BY timestamp, id",
            (session_id, event_type),
        )
        return [self._row_to_event(r) for r in rows]

    # ── Drift log ───────────────────────────────────────────────────────────

    def open_drift(
        self,
        session_id: str,
        drift_type: str,
        started_at: datetime,
        project_id: Optional[str] = None,
    ) -> DriftLogEntry:
        cur = self._write(
            "INSERT INTO focus_drift_log (session_id, project_id, drift_type, started_at) "
            "VALUES (?, ?, ?, ?)",
            (session_id, project_id, drift_type, started_at.isoformat()),
        )
        return DriftLogEntry(id=cur.lastrowid, session_id=session_id,
                             project_id=project_id, drift_type=drift_type,
                             started_at=started_at)

    def get_open_drift(self, session_id: str) -> Optional[DriftLogEntry]:
        row = self._fetchone(
            "SELECT * FROM focus_drift_log WHERE session_id = ? AND ended_at IS NULL "
            "ORDER BY started_at DESC LIMIT 1",
            (session_id,),
        )
        return self._row_to_drift(row) if row else None

    def close_drift(self, entry: DriftLogEntry) -> None:
        self._write(
            "UPDATE focus_drift_log SET ended_at = ?, duration_minutes = ?, note = ? "
            "WHERE id = ?",
            (_fmt_dt(entry.ended_at), entry.duration_minutes, entry.note, entry.id),
        )

    def list_drifts(self, session_id: str) -> List[DriftLogEntry]:
        rows = self._fetchall(
            "SELECT * FROM focus_drift_log WHERE session_id = ? ORDER BY started_at, id",
            (session_id,),
        )
        return [self._row_to_drift(r) for r in rows]

    # ── Distractions ────────────────────────────────────────────────────────

    def add_distraction(
        self,
        session_id: str,
        distraction_type: str,
        timestamp: datetime,
        note: Optional[str] = None,
    ) -> Distraction:
        cur = self._write(
            "INSERT INTO focus_distractions (session_id, type, note, timestamp) "
            "VALUES (?, ?, ?, ?)",
            (session_id, distraction_type, note, timestamp.isoformat()),
        )
        return Distraction(id=cur.lastrowid, session_id=session_id,
                           type=distraction_type, note=note, timestamp=timestamp)

    def list_distractions(self, session_id: str) -> List[Distraction]:
        rows = self._fetchall(
            "SELECT * FROM focus_distractions WHERE session_id = ? ORDER BY timestamp, id",
            (session_id,),
        )
        return [
            Distraction(id=r["id"], session_id=r["session_id"], type=r["type"],
                        note=r["note"], timestamp=_parse_dt(r["timestamp"]))
            for r in rows
        ]

    # ── Regulation rules ────────────────────────────────────────────────────

    def save_rule(self, rule: RegulationRule) -> RegulationRule:
        """Insert or replace the user's rule of this type."""
        self._write(
            """INSERT INTO regulation_rules (
                user_id, rule_type, message, interval_minutes,
                mandatory_delay_seconds, enabled
            ) VALUES (?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, rule_type) DO UPDATE SET
                message = excluded.message,
                interval_minutes = excluded.interval_minutes,
                mandatory_delay_seconds = excluded.mandatory_delay_seconds,
                enabled = excluded.enabled""",
            (
                rule.user_id, rule.rule_type, rule.message, rule.interval_minutes,
                rule.mandatory_delay_seconds, int(rule.enabled),
            ),
        )
        row = self._fetchone(
            "SELECT * FROM regulation_rules WHERE user_id = ? AND rule_type = ?",
            (rule.user_id, rule.rule_type),
        )
        return self._row_to_rule(row)

    def list_rules(self, user_id: str, enabled_only: bool = False) -> List[RegulationRule]:
        query = "SELECT * FROM regulation_rules WHERE user_id = ?"
        if enabled_only:
            query += " AND enabled = 1"
        rows = self._fetchall(query + " ORDER BY interval_minutes DESC", (user_id,))
        return [self._row_to_rule(r) for r in rows]

    # ── Weekly analytics cache ──────────────────────────────────────────────

    def upsert_weekly_analytics(self, analytics: WeeklyAnalytics) -> WeeklyAnalytics:
        self._write(
            """INSERT INTO focus_analytics_cache (
                user_id, week_start, average_focus_score, total_minutes,
                drift_rate, distraction_rate, total_sessions,
                completed_sessions, generated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, week_start) DO UPDATE SET
                average_focus_score = excluded.average_focus_score,
                total_minutes = excluded.total_minutes,
                drift_rate = excluded.drift_rate,
                distraction_rate = excluded.distraction_rate,
                total_sessions = excluded.total_sessions,
                completed_sessions = excluded.completed_sessions,
                generated_at = excluded.generated_at""",
            (
                analytics.user_id, analytics.week_start,
                analytics.average_focus_score, analytics.total_minutes,
                analytics.drift_rate, analytics.distraction_rate,
                analytics.total_sessions, analytics.completed_sessions,
                _fmt_dt(analytics.generated_at),
            ),
        )
        return analytics

    def list_weekly_analytics(self, user_id: str, since_week: str) -> List[WeeklyAnalytics]:
        rows = self._fetchall(
            "SELECT * FROM focus_analytics_cache WHERE user_id = ? AND week_start >= ? "
            "ORDER BY week_start DESC",
            (user_id, since_week),
        )
        return [
            WeeklyAnalytics(
                user_id=r["user_id"], week_start=r["week_start"],
                average_focus_score=r["average_focus_score"],
                total_minutes=r["total_minutes"],
                drift_rate=r["drift_rate"],
                distraction_rate=r["distraction_rate"],
                total_sessions=r["total_sessions"],
                completed_sessions=r["completed_sessions"],
                generated_at=_parse_dt(r["generated_at"]),
            )
            for r in rows
        ]

    # ── Row mappers ─────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(id=row["id"], name=row["name"],
                       created_at=_parse_dt(row["created_at"]))

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> FocusSession:
        return FocusSession(
            id=row["id"], user_id=row["user_id"], project_id=row["project_id"],
            status=row["status"],
            start_time=_parse_dt(row["start_time"]),
            end_time=_parse_dt(row["end_time"]),
            target_end_time=_parse_dt(row["target_end_time"]),
            intended_duration_minutes=row["intended_duration_minutes"],
            drift_count=row["drift_count"] or 0,
            distraction_count=row["distraction_count"] or 0,
            paused_at=_parse_dt(row["paused_at"]),
            paused_seconds=row["paused_seconds"] or 0.0,
            actual_duration_minutes=row["actual_duration_minutes"],
            focus_score=row["focus_score"],
        )

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> FocusEvent:
        return FocusEvent(
            id=row["id"], session_id=row["session_id"],
            event_type=row["event_type"],
            timestamp=_parse_dt(row["timestamp"]),
            metadata=json.loads(row["metadata"]) if row["metadata"] else {},
        )

    @staticmethod
    def _row_to_drift(row: sqlite3.Row) -> DriftLogEntry:
        return DriftLogEntry(
            id=row["id"], session_id=row["session_id"],
            project_id=row["project_id"], drift_type=row["drift_type"],
            started_at=_parse_dt(row["started_at"]),
            ended_at=_parse_dt(row["ended_at"]),
            duration_minutes=row["duration_minutes"],
            note=row["note"],
        )

    @staticmethod
    def _row_to_rule(row: sqlite3.Row) -> RegulationRule:
        return RegulationRule(
            id=row["id"], user_id=row["user_id"], rule_type=row["rule_type"],
            message=row["message"], interval_minutes=row["interval_minutes"],
            mandatory_delay_seconds=row["mandatory_delay_seconds"],
            enabled=bool(row["enabled"]),
        )


# ---------------------------------------------------------------------------
# Explanation
# ---------------------------------------------------------------------------
# What this file does:
#   Holds every SQL statement the app runs. Services call methods like
#   repo.add_event() and get dataclasses back.
#
# Data flow:
#   Service layer → Repository.method() → SQL → sqlite3.Row → dataclass model
#
# Notes:
#   - Counters are bumped with "SET x = x + 1" so a stale in-memory session
#     can never write a smaller value back.
#   - Events are ordered by (timestamp, id); id breaks ties between events
#     written in the same microsecond.
