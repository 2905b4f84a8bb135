"""
Data models for FocusGuard.

Plain dataclasses mirroring database rows, plus the enum-like constant
classes for statuses and event types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


class SessionStatus:
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    OPEN = (ACTIVE, PAUSED)
    FINISHED = (COMPLETED, CANCELLED)


class EventType:
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    END = "end"
    DRIFT = "drift"
    RETURN = "return"
    DISTRACTION = "distraction"
    NUDGE_SOFT = "nudge_soft"
    NUDGE_HARD = "nudge_hard"
    EXTEND = "extend"


class DriftType:
    OFFSHOOT = "offshoot"
    SIDE_PROJECT = "side_project"
    EXTERNAL_DISTRACTION = "external_distraction"

    ALL = (OFFSHOOT, SIDE_PROJECT, EXTERNAL_DISTRACTION)


class DistractionType:
    PHONE = "phone"
    SOCIAL_MEDIA = "social_media"
    CONVERSATION = "conversation"
    SNACK = "snack"
    OTHER = "other"

    ALL = (PHONE, SOCIAL_MEDIA, CONVERSATION, SNACK, OTHER)


class RuleType:
    HYDRATE = "hydrate"
    STRETCH = "stretch"
    MEAL = "meal"
    REST = "rest"

    ALL = (HYDRATE, STRETCH, MEAL, REST)


@dataclass
class Project:
    """A tracked context a focus session can target."""
    id: str = ""
    name: str = ""
    created_at: Optional[datetime] = None


@dataclass
class Offshoot:
    """An idea spun off a project. Switching to one may or may not be drift."""
    id: str = ""
    project_id: str = ""
    title: str = ""


@dataclass
class FocusSession:
    """One focus attempt from 'Start' to 'End'."""
    id: str = ""
    user_id: str = ""
    project_id: str = ""
    status: str = SessionStatus.ACTIVE
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    target_end_time: Optional[datetime] = None
    intended_duration_minutes: Optional[int] = None
    drift_count: int = 0
    distraction_count: int = 0
    paused_at: Optional[datetime] = None
    paused_seconds: float = 0.0
    actual_duration_minutes: Optional[int] = None
    focus_score: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.status in SessionStatus.OPEN

    @property
    def is_paused(self) -> bool:
        return self.status == SessionStatus.PAUSED


@dataclass
class FocusEvent:
    """
    An immutable, timestamped fact in a session's history.

    event_type is one of the EventType constants.
    """
    id: Optional[int] = None
    session_id: str = ""
    event_type: str = ""
    timestamp: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class DriftLogEntry:
    """One drift period. ended_at stays None until the user returns."""
    id: Optional[int] = None
    session_id: str = ""
    project_id: Optional[str] = None
    drift_type: str = DriftType.EXTERNAL_DISTRACTION
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    note: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None


@dataclass
class Distraction:
    """A self-reported distraction."""
    id: Optional[int] = None
    session_id: str = ""
    type: str = DistractionType.OTHER
    note: Optional[str] = None
    timestamp: Optional[datetime] = None


@dataclass
class RegulationRule:
    """A break rule checked while a session runs."""
    id: Optional[int] = None
    user_id: str = ""
    rule_type: str = RuleType.HYDRATE
    message: str = ""
    interval_minutes: int = 60
    mandatory_delay_seconds: Optional[int] = None
    enabled: bool = True


@dataclass
class DriftEvent:
    """What detect_drift hands back to the caller when drift is recorded."""
    entry: DriftLogEntry
    event: FocusEvent
    label: str
    reason: str


@dataclass
class SessionSummary:
    session: FocusSession
    total_drifts: int
    total_distractions: int
    focus_score: int
    biggest_drift_type: Optional[str]
    timeline: List[FocusEvent] = field(default_factory=list)
    drift_details: List[DriftLogEntry] = field(default_factory=list)


@dataclass
class WeeklyAnalytics:
    """Cached per-week rollup of a user's sessions."""
    user_id: str = ""
    week_start: str = ""  # ISO date
    average_focus_score: Optional[float] = None
    total_minutes: int = 0
    drift_rate: Optional[float] = None
    distraction_rate: Optional[float] = None
    total_sessions: int = 0
    completed_sessions: int = 0
    generated_at: Optional[datetime] = None
