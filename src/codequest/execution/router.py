"""Code playground endpoints: run a snippet, list sandbox languages."""

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends
from redis.asyncio import Redis
from redis.exceptions import RedisError

from codequest.auth.dependencies import get_current_user
from codequest.config import get_settings
from codequest.db.models import User
from codequest.execution.judge0_client import Judge0Client, get_execution_client
from codequest.execution.schemas import ExecuteRequest, ExecuteResponse, LanguageResponse
from codequest.redis_client import get_redis_optional

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/code", tags=["Code"])

LANGUAGES_CACHE_KEY = "judge0:languages"


@router.post("/execute", response_model=ExecuteResponse)
async def execute_code(
    body: ExecuteRequest,
    user: User = Depends(get_current_user),
    client: Judge0Client = Depends(get_execution_client),
) -> ExecuteResponse:
    """Run a snippet once with the given stdin. Nothing is persisted."""
    result = await client.run(body.code, body.language_id, body.stdin)
    return ExecuteResponse(
        stdout=result.stdout,
        stderr=result.stderr,
        compile_output=result.compile_output,
        message=result.message,
        status_id=result.status_id,
        status_description=result.status_description,
        execution_time_ms=result.time_ms,
        memory_kb=result.memory,
    )


@router.get("/languages", response_model=list[LanguageResponse])
async def list_languages(
    client: Judge0Client = Depends(get_execution_client),
    redis: Redis | None = Depends(get_redis_optional),
) -> list[dict]:
    """Sandbox languages, cached in Redis when available."""
    if redis is not None:
        try:
            cached = await redis.get(LANGUAGES_CACHE_KEY)
            if cached:
                return json.loads(cached)
        except RedisError:
            logger.warning("Language cache read failed", exc_info=True)

    languages = await client.get_languages()

    if redis is not None:
        try:
            await redis.set(
                LANGUAGES_CACHE_KEY,
                json.dumps(languages),
                ex=get_settings().judge0_languages_cache_ttl_seconds,
            )
        except RedisError:
            logger.warning("Language cache write failed", exc_info=True)
    return languages
