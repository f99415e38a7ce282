"""Journey progress service: idempotent creation and a forward-only frontier."""

from __future__ import annotations

import pytest
from sqlalchemy import func, select

from codequest.db.models import JourneyProgress, LevelProgress
from codequest.errors import NotFound
from codequest.journeys.journey_service import JourneyService
from tests.conftest import make_journey, make_user


@pytest.mark.asyncio
class TestEnsureProgress:
    async def test_idempotent(self, db_session) -> None:
        user = await make_user(db_session)
        await make_journey(db_session)
        svc = JourneyService(db_session)

        first = await svc.ensure_progress(user.id, "python")
        second = await svc.ensure_progress(user.id, "python")

        assert first.id == second.id
        assert (second.current_level_order, second.is_completed) == (1, False)
        count = await db_session.execute(select(func.count()).select_from(JourneyProgress))
        assert count.scalar_one() == 1

    async def test_unknown_slug(self, db_session) -> None:
        user = await make_user(db_session)
        with pytest.raises(NotFound):
            await JourneyService(db_session).ensure_progress(user.id, "cobol")

    async def test_reading_creates_no_rows(self, db_session) -> None:
        user = await make_user(db_session)
        await make_journey(db_session)

        journey, levels, level_progress, progress = await JourneyService(db_session).get_journey_with_progress(
            user.id, "python"
        )
        assert journey.slug == "python"
        assert [lv.order for lv in levels] == [1, 2, 3]
        assert level_progress == {}
        assert progress is None
        count = await db_session.execute(select(func.count()).select_from(JourneyProgress))
        assert count.scalar_one() == 0


@pytest.mark.asyncio
class TestCompleteLevel:
    async def test_advances_to_next_level(self, db_session) -> None:
        user = await make_user(db_session)
        _, levels = await make_journey(db_session)

        completion = await JourneyService(db_session).complete_level(user.id, "python", levels[0].id, "print(1)")

        assert completion.level_progress.is_completed
        assert completion.level_progress.attempts == 1
        assert completion.level_progress.last_submitted_code == "print(1)"
        assert completion.journey_progress.current_level_order == 2
        assert not completion.journey_progress.is_completed
        assert completion.next_level.id == levels[1].id

    async def test_last_level_completes_journey(self, db_session) -> None:
        user = await make_user(db_session)
        _, levels = await make_journey(db_session)
        svc = JourneyService(db_session)

        for level in levels:
            completion = await svc.complete_level(user.id, "python", level.id, "ok")

        assert completion.next_level is None
        assert completion.journey_progress.current_level_order == 3
        assert completion.journey_progress.is_completed

    async def test_recompleting_earlier_level_never_regresses(self, db_session) -> None:
        user = await make_user(db_session)
        _, levels = await make_journey(db_session)
        svc = JourneyService(db_session)
        for level in levels:
            await svc.complete_level(user.id, "python", level.id, "ok")

        again = await svc.complete_level(user.id, "python", levels[0].id, "print('again')")

        assert again.journey_progress.current_level_order == 3
        assert again.journey_progress.is_completed
        assert again.level_progress.attempts == 2
        assert again.level_progress.last_submitted_code == "print('again')"
        rows = await db_session.execute(select(func.count()).select_from(LevelProgress))
        assert rows.scalar_one() == 3

    async def test_skipping_ahead_moves_frontier_forward(self, db_session) -> None:
        user = await make_user(db_session)
        _, levels = await make_journey(db_session, level_count=4)
        svc = JourneyService(db_session)

        await svc.complete_level(user.id, "python", levels[2].id, "ok")
        completion = await svc.complete_level(user.id, "python", levels[0].id, "ok")

        assert completion.journey_progress.current_level_order == 4

    async def test_level_from_another_journey(self, db_session) -> None:
        user = await make_user(db_session)
        await make_journey(db_session, "python")
        _, html_levels = await make_journey(db_session, "html")

        with pytest.raises(NotFound, match="Level not found"):
            await JourneyService(db_session).complete_level(user.id, "python", html_levels[0].id, "ok")

    async def test_statuses_follow_progress(self, db_session) -> None:
        user = await make_user(db_session)
        _, levels = await make_journey(db_session, level_count=4)
        svc = JourneyService(db_session)
        await svc.complete_level(user.id, "python", levels[0].id, "ok")

        _, annotated = await svc.get_levels_with_status(user.id, "python")
        assert [status for _, status, _ in annotated] == ["completed", "next", "available", "locked"]
