"""Attempt persistence: counters, rating, and all-or-nothing writes."""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codequest.challenges import stats_service
from codequest.challenges.stats_service import AttemptRecord, get_global_stats, persist_attempt
from codequest.database import get_engine
from codequest.db.models import ChallengeAttempt, UserChallengeStats, UserGlobalStats
from codequest.errors import PersistenceFailure
from tests.conftest import make_challenge, make_user


def _record(user_id: int, challenge_id: str, winner: str, challenge_type: str | None = "time_trial") -> AttemptRecord:
    return AttemptRecord(
        user_id=user_id,
        challenge_id=challenge_id,
        challenge_type=challenge_type,
        language_id=28,
        user_code="print(3)",
        ai_code="print(3)",
        ai_generation_failed=False,
        user_correct=winner != "ai",
        ai_correct=winner != "user",
        user_execution_time=12.0,
        user_memory=900,
        ai_execution_time=15.0,
        ai_memory=950,
        winner=winner,
    )


@pytest.mark.asyncio
class TestCounters:
    async def test_first_attempt_creates_both_rows(self, db_session) -> None:
        user = await make_user(db_session)
        challenge = await make_challenge(db_session, challenge_type="time_trial")

        attempt, stats = await persist_attempt(db_session, _record(user.id, challenge.id, "user"), rating_delta=10)

        assert attempt.id is not None
        assert (stats.attempts, stats.wins, stats.ties) == (1, 1, 0)
        global_stats = await get_global_stats(db_session, user.id)
        assert global_stats.total_challenges_attempted == 1
        assert global_stats.challenges_won == 1
        assert global_stats.time_trial_rating == 1010
        assert global_stats.code_golf_rating == 1000

    async def test_counters_accumulate(self, db_session) -> None:
        user = await make_user(db_session)
        challenge = await make_challenge(db_session, challenge_type="time_trial")

        for winner in ("user", "user", "tie", "ai"):
            await persist_attempt(db_session, _record(user.id, challenge.id, winner), rating_delta=10)

        _, stats = await persist_attempt(db_session, _record(user.id, challenge.id, "ai"), rating_delta=10)
        assert (stats.attempts, stats.wins, stats.ties) == (5, 2, 1)
        assert stats.wins <= stats.attempts

        global_stats = await get_global_stats(db_session, user.id)
        assert global_stats.total_challenges_attempted == 5
        assert global_stats.challenges_won == 2
        assert global_stats.challenges_tied == 1
        assert global_stats.time_trial_rating == 1000

        count = await db_session.execute(select(func.count()).select_from(ChallengeAttempt))
        assert count.scalar_one() == 5

    async def test_rating_never_negative(self, db_session) -> None:
        user = await make_user(db_session)
        challenge = await make_challenge(db_session, challenge_type="code_golf")

        await persist_attempt(db_session, _record(user.id, challenge.id, "ai", "code_golf"), rating_delta=600)
        assert (await get_global_stats(db_session, user.id)).code_golf_rating == 400

        await persist_attempt(db_session, _record(user.id, challenge.id, "ai", "code_golf"), rating_delta=600)
        assert (await get_global_stats(db_session, user.id)).code_golf_rating == 0

    async def test_untagged_challenge_adjusts_no_rating(self, db_session) -> None:
        user = await make_user(db_session)
        challenge = await make_challenge(db_session, challenge_type=None)

        await persist_attempt(db_session, _record(user.id, challenge.id, "user", None), rating_delta=10)
        global_stats = await get_global_stats(db_session, user.id)
        assert global_stats.challenges_won == 1
        assert {
            global_stats.code_golf_rating,
            global_stats.time_trial_rating,
            global_stats.memory_opt_rating,
            global_stats.debugging_rating,
        } == {1000}


@pytest.mark.asyncio
class TestAtomicity:
    async def test_failed_global_upsert_leaves_nothing_behind(self, db_session, monkeypatch) -> None:
        """If the last write fails, the attempt and per-challenge stats are rolled back too."""
        user = await make_user(db_session)
        challenge = await make_challenge(db_session)

        async def broken_upsert(*args, **kwargs):
            raise OperationalError("UPDATE user_global_stats", {}, Exception("disk I/O error"))

        monkeypatch.setattr(stats_service, "upsert_global_stats", broken_upsert)

        with pytest.raises(PersistenceFailure):
            await persist_attempt(db_session, _record(user.id, challenge.id, "user"), rating_delta=10)

        attempts = await db_session.execute(select(func.count()).select_from(ChallengeAttempt))
        per_challenge = await db_session.execute(select(func.count()).select_from(UserChallengeStats))
        global_rows = await db_session.execute(select(func.count()).select_from(UserGlobalStats))
        assert attempts.scalar_one() == 0
        assert per_challenge.scalar_one() == 0
        assert global_rows.scalar_one() == 0

    async def test_session_usable_after_failure(self, db_session, monkeypatch) -> None:
        user = await make_user(db_session)
        challenge = await make_challenge(db_session)
        user_id, challenge_id = user.id, challenge.id
        original = stats_service.upsert_global_stats

        async def broken_upsert(*args, **kwargs):
            raise OperationalError("UPDATE user_global_stats", {}, Exception("locked"))

        monkeypatch.setattr(stats_service, "upsert_global_stats", broken_upsert)
        with pytest.raises(PersistenceFailure):
            await persist_attempt(db_session, _record(user_id, challenge_id, "user"), rating_delta=10)

        monkeypatch.setattr(stats_service, "upsert_global_stats", original)
        _, stats = await persist_attempt(db_session, _record(user_id, challenge_id, "user"), rating_delta=10)
        assert (stats.attempts, stats.wins) == (1, 1)


@pytest.mark.asyncio
class TestConcurrentSubmissions:
    async def test_parallel_attempts_from_one_user_all_count(self, db_session) -> None:
        """Simultaneous submissions on separate sessions lose no increments."""
        user = await make_user(db_session)
        challenge = await make_challenge(db_session, challenge_type="time_trial")
        user_id, challenge_id = user.id, challenge.id
        sessions = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
        n = 8

        async def submit(i: int) -> None:
            async with sessions() as session:
                winner = "user" if i % 2 == 0 else "ai"
                await persist_attempt(session, _record(user_id, challenge_id, winner), rating_delta=10)

        await asyncio.gather(*(submit(i) for i in range(n)))

        attempts = await db_session.execute(select(func.count()).select_from(ChallengeAttempt))
        assert attempts.scalar_one() == n

        result = await db_session.execute(
            select(UserChallengeStats).execution_options(populate_existing=True)
        )
        stats = result.scalar_one()
        assert stats.attempts == n
        assert stats.wins == n // 2
        assert stats.wins <= stats.attempts

        global_stats = await get_global_stats(db_session, user_id)
        assert global_stats.total_challenges_attempted == n
        assert global_stats.challenges_won == n // 2
        assert global_stats.challenges_won <= global_stats.total_challenges_attempted
        assert global_stats.time_trial_rating == 1000
