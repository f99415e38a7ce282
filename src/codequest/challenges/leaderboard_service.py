"""Challenge rankings: global (from UserGlobalStats) and per category.

Rank is 1 + the number of users with strictly more wins, so tied users share
a rank. Listings add user id as a secondary key so the order is stable.

Category rankings aggregate ChallengeAttempt rows rather than stats rows, so
the week/month windows apply to when attempts were made. Windows are rolling
(7 or 30 days back from now), not aligned to midnight.
"""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError
from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.challenges.judging import CHALLENGE_TYPES
from codequest.challenges.stats_service import get_global_stats
from codequest.db.models import (
    ChallengeAttempt,
    ChallengeType,
    User,
    UserGlobalStats,
    challenge_type_links,
)
from codequest.errors import ValidationFailed

logger = logging.getLogger(__name__)

TIME_FRAMES: dict[str, timedelta | None] = {
    "all": None,
    "week": timedelta(days=7),
    "month": timedelta(days=30),
}

CACHE_KEY_PREFIX = "leaderboard:challenges:"


def validate_query(challenge_type: str | None, time_frame: str) -> None:
    if challenge_type is not None and challenge_type not in CHALLENGE_TYPES:
        raise ValidationFailed("Invalid challenge type")
    if time_frame not in TIME_FRAMES:
        raise ValidationFailed("Invalid time frame")


def window_start(time_frame: str, now: datetime | None = None) -> datetime | None:
    """Earliest created_at included in ``time_frame``; None means unbounded."""
    if time_frame not in TIME_FRAMES:
        raise ValidationFailed("Invalid time frame")
    span = TIME_FRAMES[time_frame]
    if span is None:
        return None
    return (now or datetime.now(timezone.utc)) - span


def assign_ranks(rows: list[dict[str, Any]], key: str) -> list[dict[str, Any]]:
    """Add a shared competition rank to rows already sorted by ``key`` desc."""
    previous: Any = object()
    rank = 0
    for index, row in enumerate(rows, start=1):
        if row[key] != previous:
            rank = index
            previous = row[key]
        row["rank"] = rank
    return rows


def win_rate(wins: int, attempts: int) -> int:
    """Wins as a percentage of attempts, rounded half up; 0 with no attempts."""
    if attempts == 0:
        return 0
    return math.floor(wins * 100 / attempts + 0.5)


def _global_stats_dict(stats: UserGlobalStats) -> dict[str, Any]:
    return {
        "challenges_won": stats.challenges_won,
        "total_challenges_attempted": stats.total_challenges_attempted,
        "challenges_tied": stats.challenges_tied,
        "code_golf_rating": stats.code_golf_rating,
        "time_trial_rating": stats.time_trial_rating,
        "memory_opt_rating": stats.memory_opt_rating,
        "debugging_rating": stats.debugging_rating,
    }


# ---------------------------------------------------------------------------
# Global
# ---------------------------------------------------------------------------


async def get_global_rank(db: AsyncSession, user_id: int) -> dict[str, Any]:
    """{rank, stats} for the user, or both None when they have no stats row."""
    stats = await get_global_stats(db, user_id)
    if stats is None:
        return {"rank": None, "stats": None}

    better = await db.execute(
        select(func.count()).select_from(UserGlobalStats).where(
            UserGlobalStats.challenges_won > stats.challenges_won
        )
    )
    return {"rank": 1 + better.scalar_one(), "stats": _global_stats_dict(stats)}


async def get_global_leaderboard(db: AsyncSession, limit: int = 50) -> list[dict[str, Any]]:
    result = await db.execute(
        select(UserGlobalStats, User.name)
        .join(User, User.id == UserGlobalStats.user_id)
        .order_by(UserGlobalStats.challenges_won.desc(), UserGlobalStats.user_id.asc())
        .limit(limit)
    )
    rows = [
        {"user_id": stats.user_id, "name": name, "wins": stats.challenges_won,
         "attempts": stats.total_challenges_attempted, "ties": stats.challenges_tied}
        for stats, name in result.all()
    ]
    return assign_ranks(rows, "wins")


# ---------------------------------------------------------------------------
# Per category
# ---------------------------------------------------------------------------


def _type_aggregate(challenge_type: str, since: datetime | None):  # noqa: ANN202
    """Per-user wins/attempts over attempts on challenges tagged ``challenge_type``."""
    wins = func.sum(case((ChallengeAttempt.winner == "user", 1), else_=0))
    stmt = (
        select(
            ChallengeAttempt.user_id.label("user_id"),
            func.coalesce(wins, 0).label("wins"),
            func.count(ChallengeAttempt.id).label("attempts"),
        )
        .join(challenge_type_links, challenge_type_links.c.challenge_id == ChallengeAttempt.challenge_id)
        .join(ChallengeType, ChallengeType.id == challenge_type_links.c.challenge_type_id)
        .where(ChallengeType.type == challenge_type)
        .group_by(ChallengeAttempt.user_id)
    )
    if since is not None:
        stmt = stmt.where(ChallengeAttempt.created_at >= since)
    return stmt.subquery("type_totals")


async def get_type_rank(
    db: AsyncSession, user_id: int, challenge_type: str, time_frame: str = "all"
) -> dict[str, Any]:
    """{rank, stats} within one category and window; both None if unranked."""
    validate_query(challenge_type, time_frame)
    totals = _type_aggregate(challenge_type, window_start(time_frame))

    mine = (await db.execute(select(totals).where(totals.c.user_id == user_id))).first()
    if mine is None:
        return {"rank": None, "stats": None}

    better = await db.execute(select(func.count()).select_from(totals).where(totals.c.wins > mine.wins))
    return {
        "rank": 1 + better.scalar_one(),
        "stats": {
            "wins": int(mine.wins),
            "attempts": int(mine.attempts),
            "win_rate": win_rate(int(mine.wins), int(mine.attempts)),
        },
    }


async def get_type_leaderboard(
    db: AsyncSession, challenge_type: str, time_frame: str = "all", limit: int = 50
) -> list[dict[str, Any]]:
    validate_query(challenge_type, time_frame)
    totals = _type_aggregate(challenge_type, window_start(time_frame))
    result = await db.execute(
        select(totals.c.user_id, totals.c.wins, totals.c.attempts, User.name)
        .join(User, User.id == totals.c.user_id)
        .order_by(totals.c.wins.desc(), totals.c.user_id.asc())
        .limit(limit)
    )
    rows = [
        {
            "user_id": row.user_id,
            "name": row.name,
            "wins": int(row.wins),
            "attempts": int(row.attempts),
            "ties": None,
            "win_rate": win_rate(int(row.wins), int(row.attempts)),
        }
        for row in result.all()
    ]
    return assign_ranks(rows, "wins")


# ---------------------------------------------------------------------------
# Read-through cache for listings
# ---------------------------------------------------------------------------


def cache_key(challenge_type: str | None, time_frame: str) -> str:
    return f"{CACHE_KEY_PREFIX}{challenge_type or 'global'}:{time_frame}"


async def get_leaderboard(
    db: AsyncSession,
    redis: Redis | None,
    challenge_type: str | None,
    time_frame: str,
    limit: int = 50,
    cache_ttl: int = 30,
) -> list[dict[str, Any]]:
    """Top ``limit`` entries, from Redis when cached. Caller rank is never cached."""
    validate_query(challenge_type, time_frame)
    key = cache_key(challenge_type, time_frame)

    if redis is not None:
        try:
            cached = await redis.get(key)
            if cached:
                return json.loads(cached)
        except RedisError:
            logger.warning("Leaderboard cache read failed", exc_info=True)

    if challenge_type is None:
        entries = await get_global_leaderboard(db, limit=limit)
    else:
        entries = await get_type_leaderboard(db, challenge_type, time_frame, limit=limit)

    if redis is not None and cache_ttl > 0:
        try:
            await redis.set(key, json.dumps(entries), ex=cache_ttl)
        except RedisError:
            logger.warning("Leaderboard cache write failed", exc_info=True)
    return entries


async def invalidate_leaderboard_cache(redis: Redis | None) -> None:
    """Drop every cached listing. Called after each persisted attempt."""
    if redis is None:
        return
    try:
        keys = [key async for key in redis.scan_iter(match=f"{CACHE_KEY_PREFIX}*")]
        if keys:
            await redis.delete(*keys)
    except RedisError:
        logger.warning("Leaderboard cache invalidation failed", exc_info=True)
