"""Request and response models for the journey endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from codequest.schemas import CamelModel


class CompleteLevelRequest(CamelModel):
    submitted_code: str = Field(min_length=1)


class JourneyResponse(CamelModel):
    id: int
    slug: str
    title: str
    description: str | None
    icon: str | None
    difficulty_level: str | None
    order: int


class JourneyProgressResponse(CamelModel):
    journey_id: int
    current_level_order: int
    is_completed: bool
    updated_at: datetime


class LevelProgressResponse(CamelModel):
    level_id: int
    is_completed: bool
    completed_at: datetime | None
    attempts: int
    last_submitted_code: str | None


class LevelSummaryResponse(CamelModel):
    id: int
    order: int
    title: str
    difficulty: str | None
    is_completed: bool = False


class LevelWithStatusResponse(LevelSummaryResponse):
    status: str


class LevelDetailResponse(CamelModel):
    id: int
    journey_id: int
    order: int
    title: str
    description: str | None
    difficulty: str | None
    default_code: str | None
    expected_output: str | None
    hints: list[Any]


class JourneyDetailResponse(CamelModel):
    journey: JourneyResponse
    levels: list[LevelSummaryResponse]
    progress: JourneyProgressResponse | None


class JourneyLevelsResponse(CamelModel):
    journey: JourneyResponse
    current_level_order: int
    levels: list[LevelWithStatusResponse]


class LevelPageResponse(CamelModel):
    journey: JourneyResponse
    level: LevelDetailResponse
    progress: LevelProgressResponse | None


class LevelCompletionResponse(CamelModel):
    level_progress: LevelProgressResponse
    journey_progress: JourneyProgressResponse
    next_level_id: int | None
    journey_completed: bool
