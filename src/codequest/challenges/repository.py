"""Challenge reads: catalogue, detail, grading cases, history, per-challenge stats."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.db.models import (
    Challenge,
    ChallengeAttempt,
    ChallengeTestCase,
    User,
    UserChallengeStats,
)
from codequest.errors import NotFound
from codequest.execution.schemas import GradingCase

# Catalogue sort order; unknown labels sort last.
_DIFFICULTY_ORDER = {"easy": 0, "beginner": 0, "medium": 1, "intermediate": 1, "hard": 2, "expert": 3}


async def get_active_challenge(db: AsyncSession, challenge_id: str) -> Challenge:
    """Load an active challenge or raise NotFound (absent and inactive look the same)."""
    challenge = await db.get(Challenge, challenge_id)
    if challenge is None or not challenge.is_active:
        raise NotFound("Challenge not found")
    return challenge


async def get_visible_test_cases(db: AsyncSession, challenge_id: str) -> list[ChallengeTestCase]:
    result = await db.execute(
        select(ChallengeTestCase)
        .where(
            ChallengeTestCase.challenge_id == challenge_id,
            ChallengeTestCase.is_hidden.is_(False),
        )
        .order_by(ChallengeTestCase.id)
    )
    return list(result.scalars())


async def get_grading_cases(db: AsyncSession, challenge: Challenge) -> list[GradingCase]:
    """Every case, hidden ones included. The sample stands in when there are none."""
    result = await db.execute(
        select(ChallengeTestCase)
        .where(ChallengeTestCase.challenge_id == challenge.id)
        .order_by(ChallengeTestCase.id)
    )
    cases = [GradingCase(input=tc.input or "", expected_output=tc.expected_output) for tc in result.scalars()]
    if not cases and challenge.expected_output is not None:
        cases.append(GradingCase(input=challenge.sample_input or "", expected_output=challenge.expected_output))
    return cases


async def list_active_challenges(db: AsyncSession) -> list[Challenge]:
    result = await db.execute(
        select(Challenge).where(Challenge.is_active.is_(True)).order_by(Challenge.created_at, Challenge.id)
    )
    challenges = list(result.scalars())
    challenges.sort(key=lambda c: _DIFFICULTY_ORDER.get((c.difficulty or "").lower(), len(_DIFFICULTY_ORDER)))
    return challenges


async def get_recent_attempts(
    db: AsyncSession, user_id: int, challenge_id: str, limit: int = 5
) -> list[ChallengeAttempt]:
    """The caller's latest attempts, newest first."""
    result = await db.execute(
        select(ChallengeAttempt)
        .where(ChallengeAttempt.user_id == user_id, ChallengeAttempt.challenge_id == challenge_id)
        .order_by(ChallengeAttempt.created_at.desc(), ChallengeAttempt.id.desc())
        .limit(limit)
    )
    return list(result.scalars())


async def get_user_challenge_stats(
    db: AsyncSession, user_id: int, challenge_id: str
) -> UserChallengeStats | None:
    result = await db.execute(
        select(UserChallengeStats).where(
            UserChallengeStats.user_id == user_id,
            UserChallengeStats.challenge_id == challenge_id,
        )
    )
    return result.scalar_one_or_none()


async def get_challenge_leaderboard(db: AsyncSession, challenge_id: str, limit: int = 10) -> list[dict]:
    """Top performers on one challenge by wins; ties broken by user id."""
    result = await db.execute(
        select(UserChallengeStats, User.name)
        .join(User, User.id == UserChallengeStats.user_id)
        .where(UserChallengeStats.challenge_id == challenge_id)
        .order_by(UserChallengeStats.wins.desc(), UserChallengeStats.user_id.asc())
        .limit(limit)
    )
    return [
        {
            "user_id": stats.user_id,
            "name": name,
            "wins": stats.wins,
            "attempts": stats.attempts,
            "ties": stats.ties,
        }
        for stats, name in result.all()
    ]
