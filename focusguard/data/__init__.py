from .database import Database
from .models import (
    DriftLogEntry, FocusEvent, FocusSession, Project, RegulationRule, SessionSummary,
)
from .repository import Repository

__all__ = [
    "Database", "DriftLogEntry", "FocusEvent", "FocusSession", "Project",
    "RegulationRule", "SessionSummary", "Repository",
]
