"""Human-vs-AI challenge session: load, generate, execute, judge, persist.

The AI side degrades gracefully. If generation fails, or the sandbox fails
while running the AI's code, the AI is judged incorrect and the attempt is
still recorded. Sandbox failures on the user's own code abort the attempt.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.ai.skill import SkillLevel, map_skill_level
from codequest.ai.solution_generator import (
    GENERATION_FAILED_CODE,
    GenerationFailed,
    GenerationOk,
    GenerationResult,
    SolutionGenerator,
)
from codequest.challenges import repository
from codequest.challenges.judging import Competitor, Winner, judge
from codequest.challenges.leaderboard_service import invalidate_leaderboard_cache
from codequest.challenges.stats_service import AttemptRecord, persist_attempt
from codequest.config import Settings, get_settings
from codequest.db.models import Challenge, ChallengeAttempt, ChallengeTestCase, UserChallengeStats
from codequest.errors import UpstreamFailure
from codequest.execution.judge0_client import Judge0Client
from codequest.execution.schemas import ExecutionSummary, GradingCase

logger = logging.getLogger(__name__)

NOT_RUN = ExecutionSummary(correct=False, execution_time_ms=None, memory_kb=None, cases=())


@dataclass(frozen=True)
class AttemptOutcome:
    attempt: ChallengeAttempt
    winner: Winner
    user_result: ExecutionSummary
    ai_result: ExecutionSummary
    ai_generation: GenerationResult
    skill_level: SkillLevel
    user_stats: UserChallengeStats

    @property
    def ai_code(self) -> str:
        if isinstance(self.ai_generation, GenerationOk):
            return self.ai_generation.code
        return GENERATION_FAILED_CODE


class ChallengeSessionService:
    def __init__(
        self,
        db: AsyncSession,
        executor: Judge0Client,
        generator: SolutionGenerator,
        redis: Redis | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.executor = executor
        self.generator = generator
        self.redis = redis
        self.settings = settings or get_settings()

    async def start(self, challenge_id: str) -> tuple[Challenge, list[ChallengeTestCase]]:
        """Load an active challenge with its visible cases. Read-only."""
        challenge = await repository.get_active_challenge(self.db, challenge_id)
        cases = await repository.get_visible_test_cases(self.db, challenge.id)
        await self._end_read()
        return challenge, cases

    async def _end_read(self) -> None:
        # Release the pooled connection before the sandbox and AI round trips
        await self.db.commit()

    async def generate_ai_code(
        self, challenge: Challenge, language_id: int, difficulty: str | None = None
    ) -> tuple[GenerationResult, SkillLevel]:
        """Ask the AI for a solution. Never raises; failure comes back as GenerationFailed."""
        skill_level = map_skill_level(difficulty if difficulty else challenge.difficulty)
        try:
            result = await self.generator.generate(
                title=challenge.title,
                description=challenge.description,
                challenge_type=challenge.primary_type,
                language_id=language_id,
                skill_level=skill_level,
                sample_input=challenge.sample_input,
                expected_output=challenge.expected_output,
            )
        except Exception as e:  # noqa: BLE001
            logger.exception("AI generation raised for challenge %s", challenge.id)
            result = GenerationFailed(f"AI generation error: {type(e).__name__}")
        if isinstance(result, GenerationFailed):
            logger.warning("AI generation failed for challenge %s: %s", challenge.id, result.reason)
        return result, skill_level

    async def execute(self, code: str, language_id: int, cases: list[GradingCase]) -> ExecutionSummary:
        """Grade ``code`` against every case. All must pass to be correct."""
        if not cases:
            return NOT_RUN
        return await self.executor.grade(code, language_id, cases)

    async def _run_ai(
        self, challenge: Challenge, language_id: int, difficulty: str | None, cases: list[GradingCase]
    ) -> tuple[GenerationResult, SkillLevel, ExecutionSummary]:
        generation, skill_level = await self.generate_ai_code(challenge, language_id, difficulty)
        if not isinstance(generation, GenerationOk):
            return generation, skill_level, NOT_RUN
        try:
            summary = await self.execute(generation.code, language_id, cases)
        except UpstreamFailure:
            logger.warning("Sandbox failed on AI code for challenge %s; AI judged incorrect", challenge.id)
            summary = NOT_RUN
        return generation, skill_level, summary

    async def submit_attempt(
        self,
        user_id: int,
        challenge_id: str,
        language_id: int,
        user_code: str,
        difficulty: str | None = None,
    ) -> AttemptOutcome:
        """Run one full attempt and persist it atomically."""
        challenge = await repository.get_active_challenge(self.db, challenge_id)
        cases = await repository.get_grading_cases(self.db, challenge)
        challenge_type = challenge.primary_type
        await self._end_read()

        # A sandbox failure on the user's side cancels the AI side
        try:
            async with asyncio.TaskGroup() as tg:
                user_task = tg.create_task(self.execute(user_code, language_id, cases))
                ai_task = tg.create_task(self._run_ai(challenge, language_id, difficulty, cases))
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None
        user_result = user_task.result()
        generation, skill_level, ai_result = ai_task.result()

        ai_code = generation.code if isinstance(generation, GenerationOk) else GENERATION_FAILED_CODE
        winner = judge(
            challenge_type,
            Competitor(
                correct=user_result.correct,
                execution_time_ms=user_result.execution_time_ms,
                memory_kb=user_result.memory_kb,
                code_length=len(user_code),
            ),
            Competitor(
                correct=ai_result.correct,
                execution_time_ms=ai_result.execution_time_ms,
                memory_kb=ai_result.memory_kb,
                code_length=len(ai_code),
            ),
        )

        record = AttemptRecord(
            user_id=user_id,
            challenge_id=challenge.id,
            challenge_type=challenge_type,
            language_id=language_id,
            user_code=user_code,
            ai_code=ai_code,
            ai_generation_failed=isinstance(generation, GenerationFailed),
            user_correct=user_result.correct,
            ai_correct=ai_result.correct,
            user_execution_time=user_result.execution_time_ms,
            user_memory=user_result.memory_kb,
            ai_execution_time=ai_result.execution_time_ms,
            ai_memory=ai_result.memory_kb,
            winner=winner,
        )
        attempt, user_stats = await persist_attempt(self.db, record, self.settings.rating_delta)
        await invalidate_leaderboard_cache(self.redis)

        logger.info(
            "Attempt %s recorded: user=%s challenge=%s winner=%s", attempt.id, user_id, challenge.id, winner
        )
        return AttemptOutcome(
            attempt=attempt,
            winner=winner,
            user_result=user_result,
            ai_result=ai_result,
            ai_generation=generation,
            skill_level=skill_level,
            user_stats=user_stats,
        )
