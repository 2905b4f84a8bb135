"""
SQLite database initialization and connection management.

Single responsibility: own the connection and create tables.
All actual queries live in Repository.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Optional

from focusguard.config import DB_TIMEOUT_SEC, resolve_db_path

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
-- Projects ------------------------------------------------------------------
CREATE TABLE IF NOT EXISTS projects (
    id          TEXT    PRIMARY KEY,
    name        TEXT    NOT NULL,
    created_at  TEXT    NOT NULL DEFAULT (datetime('now'))
);

-- Offshoot ideas --------------------------------------------------------------
CREATE TABLE IF NOT EXISTS offshoots (
    id          TEXT    PRIMARY KEY,
    project_id  TEXT    NOT NULL REFERENCES projects(id),
    title       TEXT    NOT NULL
);

-- Focus sessions --------------------------------------------------------------
CREATE TABLE IF NOT EXISTS focus_sessions (
    id                          TEXT    PRIMARY KEY,
    user_id                     TEXT    NOT NULL,
    project_id                  TEXT    NOT NULL REFERENCES projects(id),
    status                      TEXT    NOT NULL DEFAULT 'active',
    start_time                  TEXT    NOT NULL,
    end_time                    TEXT,
    target_end_time             TEXT,
    intended_duration_minutes   INTEGER,
    drift_count                 INTEGER NOT NULL DEFAULT 0,
    distraction_count           INTEGER NOT NULL DEFAULT 0,
    paused_at                   TEXT,
    paused_seconds              REAL    NOT NULL DEFAULT 0,
    actual_duration_minutes     INTEGER,
    focus_score                 INTEGER
);

-- Events (append-only) --------------------------------------------------------
CREATE TABLE IF NOT EXISTS focus_events (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id  TEXT    NOT NULL REFERENCES focus_sessions(id),
    event_type  TEXT    NOT NULL,
    timestamp   TEXT    NOT NULL,
    metadata    TEXT    NOT NULL DEFAULT '{}'
);

-- Drift periods ---------------------------------------------------------------
CREATE TABLE IF NOT EXISTS focus_drift_log (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id          TEXT    NOT NULL REFERENCES focus_sessions(id),
    project_id          TEXT,
    drift_type          TEXT    NOT NULL,
    started_at          TEXT    NOT NULL,
    ended_at            TEXT,
    duration_minutes    INTEGER,
    note                TEXT
);

-- Self-reported distractions --------------------------------------------------
CREATE TABLE IF NOT EXISTS focus_distractions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    session_id  TEXT    NOT NULL REFERENCES focus_sessions(id),
    type        TEXT    NOT NULL,
    note        TEXT,
    timestamp   TEXT    NOT NULL
);

-- Regulation rules ------------------------------------------------------------
CREATE TABLE IF NOT EXISTS regulation_rules (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id                 TEXT    NOT NULL,
    rule_type               TEXT    NOT NULL,
    message                 TEXT    NOT NULL,
    interval_minutes        INTEGER NOT NULL,
    mandatory_delay_seconds INTEGER,
    enabled                 INTEGER NOT NULL DEFAULT 1,
    UNIQUE(user_id, rule_type)
);

-- Weekly analytics cache ------------------------------------------------------
CREATE TABLE IF NOT EXISTS focus_analytics_cache (
    user_id             TEXT    NOT NULL,
    week_start          TEXT    NOT NULL,
    average_focus_score REAL,
    total_minutes       INTEGER NOT NULL DEFAULT 0,
    drift_rate          REAL,
    distraction_rate    REAL,
    total_sessions      INTEGER NOT NULL DEFAULT 0,
    completed_sessions  INTEGER NOT NULL DEFAULT 0,
    generated_at        TEXT    NOT NULL,
    PRIMARY KEY (user_id, week_start)
);

-- Indexes for common queries --------------------------------------------------
CREATE INDEX IF NOT EXISTS idx_sessions_user        ON focus_sessions(user_id, status);
CREATE INDEX IF NOT EXISTS idx_sessions_start       ON focus_sessions(start_time);
CREATE INDEX IF NOT EXISTS idx_events_session       ON focus_events(session_id);
CREATE INDEX IF NOT EXISTS idx_drift_session        ON focus_drift_log(session_id);
CREATE INDEX IF NOT EXISTS idx_distractions_session ON focus_distractions(session_id);
"""


def configure_connection(conn: sqlite3.Connection) -> sqlite3.Connection:
    """Apply row factory, pragmas and schema to a fresh connection."""
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys=ON")
    conn.executescript(SCHEMA_SQL)
    conn.commit()
    return conn


class Database:
    """Thin wrapper around a SQLite connection."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        self.db_path = db_path or resolve_db_path()
        self.conn: Optional[sqlite3.Connection] = None

    # ── lifecycle ───────────────────────────────────────────────────────────

    def connect(self) -> sqlite3.Connection:
        """Open (or return existing) connection and ensure schema exists."""
        if self.conn is not None:
            return self.conn
        logger.info("Connecting to SQLite at %s", self.db_path)
        self.conn = sqlite3.connect(
            str(self.db_path), timeout=DB_TIMEOUT_SEC, check_same_thread=False
        )
        if str(self.db_path) != ":memory:":
            self.conn.execute("PRAGMA journal_mode=WAL")
        configure_connection(self.conn)
        logger.info("Database schema ensured.")
        return self.conn

    def close(self) -> None:
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.info("Database connection closed.")
