"""
Focus score — a 0–100 number attached to a session when it ends.

    penalty    = 12 * drifts + 5 * distractions
    completion = min(1, actual / intended)          (0 when no goal is set)
    score      = 100 - penalty * (1 - completion / 2)

Finishing the planned time halves the penalty; it never adds points, so a
clean session always scores 100 and every extra drift or distraction costs
at least 6 or 2.5 points until the score bottoms out at 0.
"""

from __future__ import annotations

import math
from typing import Optional

DRIFT_PENALTY = 12
DISTRACTION_PENALTY = 5
MAX_COMPLETION_RELIEF = 0.5
MAX_SCORE = 100


def completion_ratio(actual_minutes: float, intended_minutes: Optional[float]) -> float:
    if not intended_minutes or intended_minutes <= 0:
        return 0.0
    return max(0.0, min(1.0, actual_minutes / intended_minutes))


def compute_score(
    drift_count: int,
    distraction_count: int,
    actual_minutes: float,
    intended_minutes: Optional[float],
) -> int:
    """Deterministic focus score in [0, 100]."""
    penalty = DRIFT_PENALTY * max(drift_count, 0) + DISTRACTION_PENALTY * max(distraction_count, 0)
    relief = MAX_COMPLETION_RELIEF * completion_ratio(actual_minutes, intended_minutes)
    raw = MAX_SCORE - penalty * (1.0 - relief)
    # round half up, not banker's rounding
    return int(max(0, min(MAX_SCORE, math.floor(raw + 0.5))))
