"""
Seed Data Generator — creates realistic fake focus history for development.

Sessions are driven through the real services with a simulated clock, so
events, counters and scores look exactly like recorded ones.

Run: python scripts/seed_data.py [num_sessions]
"""

import random
import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from focusguard.config import DEFAULT_USER_ID
from focusguard.data.database import Database
from focusguard.data.models import DistractionType
from focusguard.data.repository import Repository
from focusguard.services.drift_service import ContextType, DriftDetector
from focusguard.services.regulation_service import ensure_default_rules
from focusguard.services.session_service import FocusSessionService


class SimClock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now += timedelta(minutes=minutes)


def seed(num_sessions: int = 30) -> None:
    db = Database()
    db.connect()
    repo = Repository(db.conn)
    ensure_default_rules(repo, DEFAULT_USER_ID)

    # ── Projects & offshoots ────────────────────────────────────────────
    project_names = ["Thesis", "Client API", "Portfolio Site", "Side Game"]
    project_ids = []
    for name in project_names:
        project = repo.create_project(str(uuid.uuid4()), name)
        project_ids.append(project.id)
        repo.create_offshoot(str(uuid.uuid4()), project.id, f"{name} idea")

    # ── Sessions ────────────────────────────────────────────────────────
    clock = SimClock(datetime.now() - timedelta(days=num_sessions))
    sessions = FocusSessionService(repo, DEFAULT_USER_ID, clock=clock)
    drift = DriftDetector(repo, sessions)

    for i in range(num_sessions):
        clock.now = (datetime.now() - timedelta(days=num_sessions - i)).replace(
            hour=random.randint(8, 16), minute=random.randint(0, 59)
        )
        project_id = random.choice(project_ids[:3])
        goal = random.choice([25, 45, 60, 90])
        session = sessions.start_session(project_id, goal)
        elapsed = 0.0

        for _ in range(random.randint(0, 4)):
            step = random.uniform(5, goal / 3)
            clock.advance(step)
            elapsed += step
            if random.random() < 0.5:
                other = random.choice([p for p in project_ids if p != project_id])
                drift.detect_drift(session.id, other, project_id, ContextType.PROJECT)
                away = random.uniform(2, 12)
                clock.advance(away)
                elapsed += away
                drift.resolve_drift(session.id, random.choice([None, "checked email"]))
            else:
                sessions.log_distraction(session.id, random.choice(DistractionType.ALL))

        if random.random() < 0.2:
            sessions.extend_session(session.id, 15)
            goal += 15

        clock.advance(max(1.0, goal - elapsed + random.uniform(-10, 5)))
        if random.random() < 0.1:
            sessions.cancel_session(session.id)
        else:
            sessions.end_session(session.id)

    db.close()
    print(f"Seeded {num_sessions} sessions across {len(project_ids)} projects.")


if __name__ == "__main__":
    count = int(sys.argv[1]) if len(sys.argv) > 1 else 30
    seed(count)
