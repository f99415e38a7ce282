"""Journey API endpoints: curricula, levels with derived status, completion."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.auth.dependencies import get_current_user
from codequest.database import get_session
from codequest.db.models import User
from codequest.journeys.journey_service import JourneyService
from codequest.journeys.schemas import (
    CompleteLevelRequest,
    JourneyDetailResponse,
    JourneyLevelsResponse,
    JourneyProgressResponse,
    JourneyResponse,
    LevelCompletionResponse,
    LevelDetailResponse,
    LevelPageResponse,
    LevelProgressResponse,
    LevelSummaryResponse,
    LevelWithStatusResponse,
)

router = APIRouter(prefix="/api/v1/journeys", tags=["Journeys"])


@router.get("", response_model=list[JourneyResponse])
async def list_journeys(db: AsyncSession = Depends(get_session)) -> list[JourneyResponse]:
    """Active journeys in display order. Public."""
    svc = JourneyService(db)
    return [JourneyResponse.model_validate(j) for j in await svc.list_journeys()]


@router.get("/{slug}", response_model=JourneyDetailResponse)
async def get_journey(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> JourneyDetailResponse:
    svc = JourneyService(db)
    journey, levels, level_progress, progress = await svc.get_journey_with_progress(user.id, slug)
    return JourneyDetailResponse(
        journey=JourneyResponse.model_validate(journey),
        levels=[
            LevelSummaryResponse(
                id=lv.id,
                order=lv.order,
                title=lv.title,
                difficulty=lv.difficulty,
                is_completed=bool(level_progress.get(lv.id) and level_progress[lv.id].is_completed),
            )
            for lv in levels
        ],
        progress=JourneyProgressResponse.model_validate(progress) if progress else None,
    )


@router.get("/{slug}/progress", response_model=JourneyProgressResponse)
async def get_progress(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> JourneyProgressResponse:
    """The caller's progress, created at level 1 on first visit."""
    progress = await JourneyService(db).ensure_progress(user.id, slug)
    return JourneyProgressResponse.model_validate(progress)


@router.get("/{slug}/levels", response_model=JourneyLevelsResponse)
async def list_levels(
    slug: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> JourneyLevelsResponse:
    """Levels annotated with completed / next / available / locked."""
    svc = JourneyService(db)
    journey, annotated = await svc.get_levels_with_status(user.id, slug)
    progress = await svc.get_progress(user.id, journey.id)
    return JourneyLevelsResponse(
        journey=JourneyResponse.model_validate(journey),
        current_level_order=progress.current_level_order if progress else 1,
        levels=[
            LevelWithStatusResponse(
                id=level.id,
                order=level.order,
                title=level.title,
                difficulty=level.difficulty,
                is_completed=status == "completed",
                status=status,
            )
            for level, status, _ in annotated
        ],
    )


@router.get("/{slug}/levels/{level_id}", response_model=LevelPageResponse)
async def get_level(
    slug: str,
    level_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LevelPageResponse:
    svc = JourneyService(db)
    journey = await svc.get_journey(slug)
    level = await svc.get_level(journey.id, level_id)
    lp = (await svc.get_level_progress_map(user.id, [level.id])).get(level.id)
    return LevelPageResponse(
        journey=JourneyResponse.model_validate(journey),
        level=LevelDetailResponse.model_validate(level),
        progress=LevelProgressResponse.model_validate(lp) if lp else None,
    )


@router.post("/{slug}/levels/{level_id}/complete", response_model=LevelCompletionResponse)
async def complete_level(
    slug: str,
    level_id: int,
    body: CompleteLevelRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LevelCompletionResponse:
    """Mark the level completed with the submitted code and advance the frontier."""
    completion = await JourneyService(db).complete_level(user.id, slug, level_id, body.submitted_code)
    return LevelCompletionResponse(
        level_progress=LevelProgressResponse.model_validate(completion.level_progress),
        journey_progress=JourneyProgressResponse.model_validate(completion.journey_progress),
        next_level_id=completion.next_level.id if completion.next_level else None,
        journey_completed=completion.journey_progress.is_completed,
    )
