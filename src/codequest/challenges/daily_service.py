"""Daily challenge: one per user per UTC day, difficulty fitted to the user's record."""

from __future__ import annotations

import logging
import random
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.challenges.stats_service import get_global_stats
from codequest.db.models import Challenge, ChallengeType, DailyChallenge, UserGlobalStats, challenge_type_links
from codequest.errors import NotFound

logger = logging.getLogger(__name__)

DAILY_TYPES = ("code_golf", "time_trial", "memory_optimization")
MIN_ATTEMPTS_FOR_RATING = 5


def choose_daily_difficulty(stats: UserGlobalStats | None) -> str:
    """easy until 5 attempts, then by win rate: <0.3 easy, <0.5 medium, <0.8 hard, else expert."""
    if stats is None or stats.total_challenges_attempted < MIN_ATTEMPTS_FOR_RATING:
        return "easy"
    win_rate = stats.challenges_won / stats.total_challenges_attempted
    if win_rate < 0.3:
        return "easy"
    if win_rate < 0.5:
        return "medium"
    if win_rate < 0.8:
        return "hard"
    return "expert"


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


async def _candidates(db: AsyncSession, challenge_type: str | None, difficulty: str | None) -> list[str]:
    stmt = select(Challenge.id).where(Challenge.is_active.is_(True))
    if challenge_type is not None:
        stmt = (
            stmt.join(challenge_type_links, challenge_type_links.c.challenge_id == Challenge.id)
            .join(ChallengeType, ChallengeType.id == challenge_type_links.c.challenge_type_id)
            .where(ChallengeType.type == challenge_type)
        )
    if difficulty is not None:
        stmt = stmt.where(Challenge.difficulty.ilike(difficulty))
    result = await db.execute(stmt.order_by(Challenge.id))
    return list(result.scalars())


async def pick_challenge(
    db: AsyncSession, challenge_type: str, difficulty: str, rng: random.Random | None = None
) -> str:
    """Random active challenge of the type and difficulty, relaxing to type, then to anything."""
    rng = rng or random.Random()
    for wanted_type, wanted_difficulty in (
        (challenge_type, difficulty),
        (challenge_type, None),
        (None, None),
    ):
        ids = await _candidates(db, wanted_type, wanted_difficulty)
        if ids:
            return rng.choice(ids)
    raise NotFound("No active challenges available")


async def _existing(db: AsyncSession, user_id: int, day: date) -> DailyChallenge | None:
    result = await db.execute(
        select(DailyChallenge).where(DailyChallenge.user_id == user_id, DailyChallenge.challenge_date == day)
    )
    return result.scalar_one_or_none()


async def get_or_assign_daily_challenge(
    db: AsyncSession, user_id: int, rng: random.Random | None = None, today: date | None = None
) -> tuple[DailyChallenge, bool]:
    """Return today's assignment, creating it on first call. Returns (daily, created)."""
    day = today or utc_today()
    daily = await _existing(db, user_id, day)
    if daily is not None:
        return daily, False

    rng = rng or random.Random()
    stats = await get_global_stats(db, user_id)
    difficulty = choose_daily_difficulty(stats)
    challenge_type = rng.choice(DAILY_TYPES)
    challenge_id = await pick_challenge(db, challenge_type, difficulty, rng)

    daily = DailyChallenge(
        user_id=user_id,
        challenge_id=challenge_id,
        challenge_date=day,
        difficulty=difficulty,
        challenge_type=challenge_type,
    )
    db.add(daily)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent request assigned today's challenge first
        await db.rollback()
        daily = await _existing(db, user_id, day)
        if daily is None:
            raise
        return daily, False

    await db.refresh(daily, ["challenge"])
    logger.info("Assigned daily challenge %s (%s/%s) to user %s", challenge_id, challenge_type, difficulty, user_id)
    return daily, True
