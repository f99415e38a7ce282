"""Daily challenge assignment against the database."""

from __future__ import annotations

import random
from datetime import date

import pytest

from codequest.challenges import daily_service
from codequest.db.models import UserGlobalStats
from codequest.errors import NotFound
from tests.conftest import make_challenge, make_user


@pytest.mark.asyncio
class TestPickChallenge:
    async def test_prefers_type_and_difficulty(self, db_session) -> None:
        wanted = await make_challenge(db_session, title="Wanted", challenge_type="time_trial", difficulty="Medium")
        await make_challenge(db_session, title="Other type", challenge_type="code_golf", difficulty="Medium")
        await make_challenge(db_session, title="Other level", challenge_type="time_trial", difficulty="Easy")

        for seed in range(5):
            picked = await daily_service.pick_challenge(db_session, "time_trial", "medium", random.Random(seed))
            assert picked == wanted.id

    async def test_relaxes_difficulty_then_type(self, db_session) -> None:
        golf = await make_challenge(db_session, title="Golf", challenge_type="code_golf", difficulty="Easy")

        assert await daily_service.pick_challenge(db_session, "code_golf", "expert") == golf.id
        assert await daily_service.pick_challenge(db_session, "memory_optimization", "easy") == golf.id

    async def test_no_active_challenges(self, db_session) -> None:
        await make_challenge(db_session, is_active=False)
        with pytest.raises(NotFound):
            await daily_service.pick_challenge(db_session, "code_golf", "easy")


@pytest.mark.asyncio
class TestAssignment:
    async def test_one_per_day(self, db_session) -> None:
        user = await make_user(db_session)
        await make_challenge(db_session)
        day = date(2026, 3, 1)

        first, created = await daily_service.get_or_assign_daily_challenge(db_session, user.id, today=day)
        again, created_again = await daily_service.get_or_assign_daily_challenge(db_session, user.id, today=day)

        assert created is True
        assert created_again is False
        assert again.id == first.id

        next_day, created_next = await daily_service.get_or_assign_daily_challenge(
            db_session, user.id, today=date(2026, 3, 2)
        )
        assert created_next is True
        assert next_day.id != first.id

    async def test_difficulty_follows_win_rate(self, db_session) -> None:
        user = await make_user(db_session)
        await make_challenge(db_session)
        db_session.add(UserGlobalStats(user_id=user.id, challenges_won=9, total_challenges_attempted=10))
        await db_session.commit()

        daily, _ = await daily_service.get_or_assign_daily_challenge(db_session, user.id, today=date(2026, 3, 1))

        assert daily.difficulty == "expert"
        assert daily.challenge_type in daily_service.DAILY_TYPES
