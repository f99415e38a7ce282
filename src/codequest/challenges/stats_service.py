"""Persist one judged attempt together with both aggregate stats rows.

The attempt insert and the two upserts share one transaction: either all
three land or none do. Upserts are keyed by the unique constraints, so
concurrent submissions from the same user serialize in the database
instead of racing on read-modify-write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import case, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.challenges.judging import Winner, apply_rating, rating_delta_for, rating_field_for
from codequest.db.models import ChallengeAttempt, UserChallengeStats, UserGlobalStats
from codequest.db.upsert import upsert
from codequest.errors import PersistenceFailure

logger = logging.getLogger(__name__)

DEFAULT_RATING = 1000


@dataclass(frozen=True)
class AttemptRecord:
    """Everything that goes into one ChallengeAttempt row."""

    user_id: int
    challenge_id: str
    challenge_type: str | None
    language_id: int
    user_code: str
    ai_code: str
    ai_generation_failed: bool
    user_correct: bool
    ai_correct: bool
    user_execution_time: float | None
    user_memory: int | None
    ai_execution_time: float | None
    ai_memory: int | None
    winner: Winner


async def insert_attempt(db: AsyncSession, record: AttemptRecord) -> ChallengeAttempt:
    attempt = ChallengeAttempt(
        user_id=record.user_id,
        challenge_id=record.challenge_id,
        language_id=record.language_id,
        user_code=record.user_code,
        ai_code=record.ai_code,
        ai_generation_failed=record.ai_generation_failed,
        user_execution_time=record.user_execution_time,
        user_memory=record.user_memory,
        ai_execution_time=record.ai_execution_time,
        ai_memory=record.ai_memory,
        user_correct=record.user_correct,
        ai_correct=record.ai_correct,
        winner=record.winner,
    )
    db.add(attempt)
    await db.flush()
    return attempt


async def upsert_challenge_stats(db: AsyncSession, user_id: int, challenge_id: str, winner: Winner) -> None:
    """attempts += 1; wins += 1 iff the user won; ties += 1 iff tie."""
    won = 1 if winner == "user" else 0
    tied = 1 if winner == "tie" else 0
    now = datetime.now(timezone.utc)
    await upsert(
        db,
        UserChallengeStats,
        values={
            "user_id": user_id,
            "challenge_id": challenge_id,
            "attempts": 1,
            "wins": won,
            "ties": tied,
            "created_at": now,
            "updated_at": now,
        },
        index_elements=["user_id", "challenge_id"],
        set_={
            "attempts": UserChallengeStats.attempts + 1,
            "wins": UserChallengeStats.wins + won,
            "ties": UserChallengeStats.ties + tied,
            "updated_at": now,
        },
    )


async def upsert_global_stats(
    db: AsyncSession,
    user_id: int,
    winner: Winner,
    challenge_type: str | None,
    rating_delta: int,
) -> None:
    """Bump the global counters and the category rating (floored at zero)."""
    won = 1 if winner == "user" else 0
    tied = 1 if winner == "tie" else 0
    now = datetime.now(timezone.utc)

    values: dict = {
        "user_id": user_id,
        "challenges_won": won,
        "total_challenges_attempted": 1,
        "challenges_tied": tied,
        "updated_at": now,
    }
    set_: dict = {
        "challenges_won": UserGlobalStats.challenges_won + won,
        "total_challenges_attempted": UserGlobalStats.total_challenges_attempted + 1,
        "challenges_tied": UserGlobalStats.challenges_tied + tied,
        "updated_at": now,
    }

    field = rating_field_for(challenge_type)
    change = rating_delta_for(winner, rating_delta)
    if field is not None and change:
        column = getattr(UserGlobalStats, field)
        values[field] = apply_rating(DEFAULT_RATING, change)
        set_[field] = case((column + change < 0, 0), else_=column + change)

    await upsert(db, UserGlobalStats, values=values, index_elements=["user_id"], set_=set_)


async def persist_attempt(
    db: AsyncSession, record: AttemptRecord, rating_delta: int
) -> tuple[ChallengeAttempt, UserChallengeStats]:
    """Write the attempt and both stats rows atomically, then commit.

    Raises PersistenceFailure after rolling back if any step fails; the
    attempt must then be treated as not recorded.
    """
    try:
        attempt = await insert_attempt(db, record)
        await upsert_challenge_stats(db, record.user_id, record.challenge_id, record.winner)
        await upsert_global_stats(db, record.user_id, record.winner, record.challenge_type, rating_delta)
        await db.commit()
    except (SQLAlchemyError, OSError) as e:
        await db.rollback()
        logger.exception("Attempt persistence failed for user %s on %s", record.user_id, record.challenge_id)
        raise PersistenceFailure(detail=str(e)) from e

    result = await db.execute(
        select(UserChallengeStats)
        .where(
            UserChallengeStats.user_id == record.user_id,
            UserChallengeStats.challenge_id == record.challenge_id,
        )
        .execution_options(populate_existing=True)
    )
    return attempt, result.scalar_one()


async def get_global_stats(db: AsyncSession, user_id: int) -> UserGlobalStats | None:
    result = await db.execute(
        select(UserGlobalStats)
        .where(UserGlobalStats.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()
