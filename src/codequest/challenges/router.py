"""Challenge API endpoints: catalogue, detail, attempts, AI solution, daily, leaderboard."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic.alias_generators import to_camel
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.ai.solution_generator import GenerationOk, SolutionGenerator, get_solution_generator
from codequest.auth.dependencies import get_current_user
from codequest.challenges import leaderboard_service, repository
from codequest.challenges.daily_service import get_or_assign_daily_challenge
from codequest.challenges.schemas import (
    AIStatusResponse,
    AISolutionRequest,
    AISolutionResponse,
    AttemptRequest,
    AttemptResponse,
    AttemptResultResponse,
    ChallengeDetailResponse,
    ChallengeLeaderboardResponse,
    ChallengePageResponse,
    ChallengeSummaryResponse,
    CompetitorResultResponse,
    DailyChallengeResponse,
    RankResponse,
    SampleCaseResponse,
    TopPerformerResponse,
    UserChallengeStatsResponse,
)
from codequest.challenges.session_service import ChallengeSessionService
from codequest.config import get_settings
from codequest.database import get_session
from codequest.db.models import Challenge, ChallengeTestCase, User
from codequest.execution.judge0_client import Judge0Client, get_execution_client
from codequest.execution.schemas import ExecutionSummary
from codequest.redis_client import get_redis_optional

router = APIRouter(prefix="/api/v1/challenges", tags=["Challenges"])


def _summary(challenge: Challenge) -> ChallengeSummaryResponse:
    return ChallengeSummaryResponse(
        id=challenge.id,
        title=challenge.title,
        description=challenge.description,
        difficulty=challenge.difficulty,
        types=[t.type for t in challenge.challenge_types],
    )


def _detail(challenge: Challenge, cases: list[ChallengeTestCase]) -> ChallengeDetailResponse:
    return ChallengeDetailResponse(
        **_summary(challenge).model_dump(),
        starter_code=challenge.starter_code,
        sample_input=challenge.sample_input,
        expected_output=challenge.expected_output,
        time_limit_ms=challenge.time_limit_ms,
        memory_limit_kb=challenge.memory_limit_kb,
        test_cases=[SampleCaseResponse.model_validate(tc) for tc in cases],
    )


def _failure_status(summary: ExecutionSummary) -> str | None:
    failure = summary.first_failure
    if failure is None:
        return None
    # Judge0 reports a clean exit as Accepted even when the output is wrong
    if failure.result.accepted:
        return "Wrong Answer"
    return failure.result.status_description or None


def _competitor(summary: ExecutionSummary, code: str) -> CompetitorResultResponse:
    return CompetitorResultResponse(
        correct=summary.correct,
        execution_time_ms=summary.execution_time_ms,
        memory_kb=summary.memory_kb,
        code_length=len(code),
        passed_cases=sum(1 for c in summary.cases if c.passed),
        total_cases=len(summary.cases),
        first_failure_status=_failure_status(summary),
    )


def _rank(rank: dict[str, Any]) -> RankResponse:
    stats = rank["stats"]
    return RankResponse(
        rank=rank["rank"],
        stats={to_camel(k): v for k, v in stats.items()} if stats is not None else None,
    )


# ---- Catalogue ----


@router.get("", response_model=list[ChallengeSummaryResponse])
async def list_challenges(db: AsyncSession = Depends(get_session)) -> list[ChallengeSummaryResponse]:
    """Active challenges with their category tags. Public."""
    return [_summary(c) for c in await repository.list_active_challenges(db)]


# ---- Leaderboard (declared before /{challenge_id}) ----


@router.get("/leaderboard", response_model=ChallengeLeaderboardResponse)
async def challenge_leaderboard(
    challenge_type: str | None = Query(None, alias="type"),
    time_frame: str = Query("all", alias="timeFrame"),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_optional),
) -> ChallengeLeaderboardResponse:
    """Top entries globally or for one category, plus the caller's own rank."""
    settings = get_settings()
    challenge_type = challenge_type or None
    entries = await leaderboard_service.get_leaderboard(
        db,
        redis,
        challenge_type,
        time_frame,
        limit=settings.leaderboard_size,
        cache_ttl=settings.leaderboard_cache_ttl_seconds,
    )
    if challenge_type is None:
        rank = await leaderboard_service.get_global_rank(db, user.id)
    else:
        rank = await leaderboard_service.get_type_rank(db, user.id, challenge_type, time_frame)

    return ChallengeLeaderboardResponse(
        type=challenge_type,
        time_frame=time_frame,
        entries=[TopPerformerResponse(**e) for e in entries],
        user_rank=_rank(rank),
    )


# ---- AI solution (generated, not judged) ----


@router.post("/ai-solution", response_model=AISolutionResponse)
async def ai_solution(
    body: AISolutionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    executor: Judge0Client = Depends(get_execution_client),
    generator: SolutionGenerator = Depends(get_solution_generator),
) -> AISolutionResponse:
    svc = ChallengeSessionService(db, executor, generator)
    challenge, _ = await svc.start(body.challenge_id)
    generation, skill_level = await svc.generate_ai_code(challenge, body.language_id, body.difficulty)

    if isinstance(generation, GenerationOk):
        return AISolutionResponse(
            challenge_id=challenge.id,
            language_id=body.language_id,
            skill_level=skill_level.value,
            status="ok",
            code=generation.code,
        )
    return AISolutionResponse(
        challenge_id=challenge.id,
        language_id=body.language_id,
        skill_level=skill_level.value,
        status="failed",
        code="",
        reason=generation.reason,
    )


# ---- Daily ----


@router.post("/daily", response_model=DailyChallengeResponse)
async def daily_challenge(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> DailyChallengeResponse:
    """Today's challenge for the caller; assigned on first request of the UTC day."""
    daily, created = await get_or_assign_daily_challenge(db, user.id)
    return DailyChallengeResponse(
        challenge_date=daily.challenge_date,
        difficulty=daily.difficulty,
        challenge_type=daily.challenge_type,
        created=created,
        challenge=_summary(daily.challenge),
    )


# ---- Detail ----


@router.get("/{challenge_id}", response_model=ChallengePageResponse)
async def get_challenge(
    challenge_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ChallengePageResponse:
    """Challenge with visible cases only, the caller's history and stats, and top performers."""
    settings = get_settings()
    challenge = await repository.get_active_challenge(db, challenge_id)
    cases = await repository.get_visible_test_cases(db, challenge.id)
    attempts = await repository.get_recent_attempts(
        db, user.id, challenge.id, limit=settings.recent_attempts_limit
    )
    stats = await repository.get_user_challenge_stats(db, user.id, challenge.id)
    top = await repository.get_challenge_leaderboard(
        db, challenge.id, limit=settings.challenge_leaderboard_size
    )

    return ChallengePageResponse(
        challenge=_detail(challenge, cases),
        recent_attempts=[AttemptResponse.model_validate(a) for a in attempts],
        user_stats=UserChallengeStatsResponse.model_validate(stats) if stats else None,
        leaderboard=[TopPerformerResponse(**row) for row in leaderboard_service.assign_ranks(top, "wins")],
    )


# ---- Attempt ----


@router.post("/{challenge_id}/attempt", response_model=AttemptResultResponse)
async def submit_attempt(
    challenge_id: str,
    body: AttemptRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    executor: Judge0Client = Depends(get_execution_client),
    generator: SolutionGenerator = Depends(get_solution_generator),
    redis: Redis | None = Depends(get_redis_optional),
) -> AttemptResultResponse:
    """Judge the caller's code against the AI's and record the attempt."""
    svc = ChallengeSessionService(db, executor, generator, redis=redis)
    outcome = await svc.submit_attempt(
        user.id, challenge_id, body.language_id, body.user_code, difficulty=body.difficulty
    )

    generation = outcome.ai_generation
    ai_status = (
        AIStatusResponse(status="ok")
        if isinstance(generation, GenerationOk)
        else AIStatusResponse(status="failed", reason=generation.reason)
    )
    return AttemptResultResponse(
        attempt=AttemptResponse.model_validate(outcome.attempt),
        winner=outcome.winner,
        user_stats=UserChallengeStatsResponse.model_validate(outcome.user_stats),
        ai_code=outcome.ai_code,
        ai_status=ai_status,
        skill_level=outcome.skill_level.value,
        user_result=_competitor(outcome.user_result, body.user_code),
        ai_result=_competitor(outcome.ai_result, outcome.ai_code),
    )
