"""Winner determination and rating deltas. Pure functions, no I/O.

Lower is better for every metric. A missing metric compares as infinitely
bad, so a competitor that reported no time never wins a time trial on it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Literal

Winner = Literal["user", "ai", "tie"]

CHALLENGE_TYPES = ("code_golf", "time_trial", "memory_optimization", "debugging")

# Which UserGlobalStats column a challenge category adjusts.
RATING_FIELDS: dict[str, str] = {
    "code_golf": "code_golf_rating",
    "time_trial": "time_trial_rating",
    "memory_optimization": "memory_opt_rating",
    "debugging": "debugging_rating",
}


@dataclass(frozen=True)
class Competitor:
    """One side's graded result."""

    correct: bool
    execution_time_ms: float | None = None
    memory_kb: int | None = None
    code_length: int = 0


def _metric(value: float | None) -> float:
    return math.inf if value is None else float(value)


def primary_metric(challenge_type: str | None, competitor: Competitor) -> float:
    """The value compared when both sides are correct.

    code_golf → code length; memory_optimization → memory;
    time_trial and everything else → execution time.
    """
    if challenge_type == "code_golf":
        return float(competitor.code_length)
    if challenge_type == "memory_optimization":
        return _metric(competitor.memory_kb)
    return _metric(competitor.execution_time_ms)


def judge(challenge_type: str | None, user: Competitor, ai: Competitor) -> Winner:
    """Decide the winner of one attempt."""
    if not user.correct and not ai.correct:
        return "tie"
    if not user.correct:
        return "ai"
    if not ai.correct:
        return "user"

    user_score = primary_metric(challenge_type, user)
    ai_score = primary_metric(challenge_type, ai)
    if user_score < ai_score:
        return "user"
    if ai_score < user_score:
        return "ai"
    return "tie"


def rating_field_for(challenge_type: str | None) -> str | None:
    """Rating column for a category, or None for untagged challenges."""
    if challenge_type is None:
        return None
    return RATING_FIELDS.get(challenge_type)


def rating_delta_for(winner: Winner, delta: int) -> int:
    """+delta on a user win, -delta on an AI win, 0 on a tie."""
    if winner == "user":
        return delta
    if winner == "ai":
        return -delta
    return 0


def apply_rating(current: int, change: int) -> int:
    """New rating after ``change``, floored at zero."""
    return max(0, current + change)
