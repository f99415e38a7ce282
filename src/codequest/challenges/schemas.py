"""Request and response models for the challenge endpoints."""

from __future__ import annotations

from datetime import date, datetime
from typing import Literal

from pydantic import Field

from codequest.schemas import CamelModel

# ── Requests ──


class AttemptRequest(CamelModel):
    language_id: int = Field(gt=0)
    user_code: str = Field(min_length=1)
    difficulty: str | None = None


class AISolutionRequest(CamelModel):
    challenge_id: str = Field(min_length=1)
    language_id: int = Field(gt=0)
    difficulty: str | None = None


# ── Catalogue ──


class SampleCaseResponse(CamelModel):
    id: int
    input: str
    expected_output: str


class ChallengeSummaryResponse(CamelModel):
    id: str
    title: str
    description: str
    difficulty: str | None
    types: list[str]


class ChallengeDetailResponse(ChallengeSummaryResponse):
    starter_code: str | None
    sample_input: str | None
    expected_output: str | None
    time_limit_ms: int | None
    memory_limit_kb: int | None
    test_cases: list[SampleCaseResponse]


class AttemptResponse(CamelModel):
    id: int
    challenge_id: str
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
    winner: Literal["user", "ai", "tie"]
    created_at: datetime


class UserChallengeStatsResponse(CamelModel):
    attempts: int
    wins: int
    ties: int


class TopPerformerResponse(CamelModel):
    rank: int | None = None
    user_id: int
    name: str | None
    wins: int
    attempts: int
    ties: int | None = None
    win_rate: int | None = None


class ChallengePageResponse(CamelModel):
    challenge: ChallengeDetailResponse
    recent_attempts: list[AttemptResponse]
    user_stats: UserChallengeStatsResponse | None
    leaderboard: list[TopPerformerResponse]


# ── Attempt result ──


class CompetitorResultResponse(CamelModel):
    correct: bool
    execution_time_ms: float | None
    memory_kb: int | None
    code_length: int
    passed_cases: int
    total_cases: int
    first_failure_status: str | None = None


class AIStatusResponse(CamelModel):
    status: Literal["ok", "failed"]
    reason: str | None = None


class AttemptResultResponse(CamelModel):
    attempt: AttemptResponse
    winner: Literal["user", "ai", "tie"]
    user_stats: UserChallengeStatsResponse
    ai_code: str
    ai_status: AIStatusResponse
    skill_level: str
    user_result: CompetitorResultResponse
    ai_result: CompetitorResultResponse


class AISolutionResponse(CamelModel):
    challenge_id: str
    language_id: int
    skill_level: str
    status: Literal["ok", "failed"]
    code: str
    reason: str | None = None


# ── Leaderboard / daily ──


class RankResponse(CamelModel):
    rank: int | None
    stats: dict | None


class ChallengeLeaderboardResponse(CamelModel):
    type: str | None
    time_frame: str
    entries: list[TopPerformerResponse]
    user_rank: RankResponse


class DailyChallengeResponse(CamelModel):
    challenge_date: date
    difficulty: str
    challenge_type: str
    created: bool
    challenge: ChallengeSummaryResponse
