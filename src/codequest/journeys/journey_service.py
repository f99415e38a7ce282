"""Journey progress: ordered levels, a per-user frontier, derived level status.

Progress rows are created with INSERT ... ON CONFLICT so concurrent first
visits cannot create duplicates. The frontier (current_level_order) only
moves forward, and a completed journey stays completed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.db.models import Journey, JourneyProgress, Level, LevelProgress
from codequest.db.upsert import insert_ignore, upsert
from codequest.errors import NotFound

logger = logging.getLogger(__name__)

LevelStatus = Literal["completed", "next", "available", "locked"]


def level_status(order: int, current_level_order: int, completed: bool) -> LevelStatus:
    """Display status of a level, derived from stored facts only."""
    if completed:
        return "completed"
    if order == current_level_order:
        return "next"
    if order == current_level_order + 1:
        return "available"
    return "locked"


@dataclass(frozen=True)
class LevelCompletion:
    level_progress: LevelProgress
    journey_progress: JourneyProgress
    next_level: Level | None


class JourneyService:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # --- Reads ---

    async def list_journeys(self) -> list[Journey]:
        result = await self.db.execute(
            select(Journey).where(Journey.is_active.is_(True)).order_by(Journey.order, Journey.id)
        )
        return list(result.scalars().all())

    async def get_journey(self, slug: str) -> Journey:
        result = await self.db.execute(
            select(Journey).where(Journey.slug == slug, Journey.is_active.is_(True))
        )
        journey = result.scalar_one_or_none()
        if journey is None:
            raise NotFound("Journey not found")
        return journey

    async def get_levels(self, journey_id: int) -> list[Level]:
        result = await self.db.execute(
            select(Level).where(Level.journey_id == journey_id).order_by(Level.order)
        )
        return list(result.scalars().all())

    async def get_level(self, journey_id: int, level_id: int) -> Level:
        result = await self.db.execute(
            select(Level).where(Level.id == level_id, Level.journey_id == journey_id)
        )
        level = result.scalar_one_or_none()
        if level is None:
            raise NotFound("Level not found")
        return level

    async def get_progress(self, user_id: int, journey_id: int) -> JourneyProgress | None:
        result = await self.db.execute(
            select(JourneyProgress)
            .where(JourneyProgress.user_id == user_id, JourneyProgress.journey_id == journey_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _require_progress(self, user_id: int, journey_id: int) -> JourneyProgress:
        result = await self.db.execute(
            select(JourneyProgress)
            .where(JourneyProgress.user_id == user_id, JourneyProgress.journey_id == journey_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def get_level_progress_map(self, user_id: int, level_ids: list[int]) -> dict[int, LevelProgress]:
        if not level_ids:
            return {}
        result = await self.db.execute(
            select(LevelProgress)
            .where(LevelProgress.user_id == user_id, LevelProgress.level_id.in_(level_ids))
            .execution_options(populate_existing=True)
        )
        return {lp.level_id: lp for lp in result.scalars()}

    async def get_journey_with_progress(
        self, user_id: int, slug: str
    ) -> tuple[Journey, list[Level], dict[int, LevelProgress], JourneyProgress | None]:
        """Journey, ordered levels, the user's level progress and frontier. Writes nothing."""
        journey = await self.get_journey(slug)
        levels = await self.get_levels(journey.id)
        level_progress = await self.get_level_progress_map(user_id, [lv.id for lv in levels])
        progress = await self.get_progress(user_id, journey.id)
        return journey, levels, level_progress, progress

    async def get_levels_with_status(
        self, user_id: int, slug: str
    ) -> tuple[Journey, list[tuple[Level, LevelStatus, LevelProgress | None]]]:
        journey, levels, level_progress, progress = await self.get_journey_with_progress(user_id, slug)
        current = progress.current_level_order if progress else 1
        annotated = []
        for level in levels:
            lp = level_progress.get(level.id)
            annotated.append((level, level_status(level.order, current, bool(lp and lp.is_completed)), lp))
        return journey, annotated

    # --- Writes ---

    async def ensure_progress(self, user_id: int, slug: str) -> JourneyProgress:
        """Read-or-create the user's progress row (frontier 1, not completed). Idempotent."""
        journey = await self.get_journey(slug)
        await insert_ignore(
            self.db,
            JourneyProgress,
            values={
                "user_id": user_id,
                "journey_id": journey.id,
                "current_level_order": 1,
                "is_completed": False,
                "updated_at": datetime.now(timezone.utc),
            },
            index_elements=["user_id", "journey_id"],
        )
        await self.db.commit()
        return await self._require_progress(user_id, journey.id)

    async def complete_level(
        self, user_id: int, slug: str, level_id: int, submitted_code: str
    ) -> LevelCompletion:
        """Mark a level completed and advance the journey frontier (never backwards)."""
        journey = await self.get_journey(slug)
        level = await self.get_level(journey.id, level_id)

        result = await self.db.execute(
            select(Level)
            .where(Level.journey_id == journey.id, Level.order > level.order)
            .order_by(Level.order)
            .limit(1)
        )
        next_level = result.scalar_one_or_none()
        target_order = next_level.order if next_level else level.order
        finished = next_level is None
        now = datetime.now(timezone.utc)

        await upsert(
            self.db,
            LevelProgress,
            values={
                "user_id": user_id,
                "level_id": level.id,
                "is_completed": True,
                "completed_at": now,
                "attempts": 1,
                "last_submitted_code": submitted_code,
            },
            index_elements=["user_id", "level_id"],
            set_={
                "is_completed": True,
                "completed_at": func.coalesce(LevelProgress.completed_at, now),
                "attempts": LevelProgress.attempts + 1,
                "last_submitted_code": submitted_code,
            },
        )
        await upsert(
            self.db,
            JourneyProgress,
            values={
                "user_id": user_id,
                "journey_id": journey.id,
                "current_level_order": target_order,
                "is_completed": finished,
                "updated_at": now,
            },
            index_elements=["user_id", "journey_id"],
            set_={
                "current_level_order": case(
                    (JourneyProgress.current_level_order < target_order, target_order),
                    else_=JourneyProgress.current_level_order,
                ),
                "is_completed": True if finished else JourneyProgress.is_completed,
                "updated_at": now,
            },
        )
        await self.db.commit()

        level_progress = (await self.get_level_progress_map(user_id, [level.id]))[level.id]
        journey_progress = await self._require_progress(user_id, journey.id)
        logger.info(
            "User %s completed level %s of %s (frontier %s)",
            user_id, level.order, slug, journey_progress.current_level_order,
        )
        return LevelCompletion(level_progress, journey_progress, next_level)
