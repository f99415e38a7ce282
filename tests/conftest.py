"""Shared test fixtures.

Each test gets a fresh SQLite database (aiosqlite) built from the ORM
metadata. Redis is not initialised, so rate limiting and caches are off.
The sandbox and the AI service are replaced through dependency overrides.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncGenerator
from pathlib import Path

os.environ.setdefault("CQ_SESSION_SECRET", "test-session-secret")
os.environ.setdefault("CQ_LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from codequest.ai.solution_generator import GenerationOk, GenerationResult, get_solution_generator
from codequest.auth.jwt import create_access_token
from codequest.auth.service import get_or_create_user
from codequest.config import get_settings
from codequest.database import close_db, get_engine, get_session, init_db
from codequest.db.base import Base
from codequest.db.models import (
    Challenge,
    ChallengeTestCase,
    ChallengeType,
    Journey,
    Level,
    User,
)
from codequest.execution.judge0_client import get_execution_client, summarize
from codequest.execution.schemas import (
    STATUS_ACCEPTED,
    CaseOutcome,
    ExecutionSummary,
    GradingCase,
    SandboxResult,
)
from codequest.main import create_app

get_settings.cache_clear()


# ---------------------------------------------------------------------------
# Fakes for the external services
# ---------------------------------------------------------------------------


class FakeExecutor:
    """Stands in for Judge0Client.

    ``verdicts`` maps source code to (correct, time_ms, memory_kb); code not
    in the map runs correctly in 10 ms / 1000 KB.
    """

    def __init__(self, verdicts: dict[str, tuple[bool, float, int]] | None = None) -> None:
        self.verdicts = verdicts or {}
        self.graded: list[tuple[str, int, list[GradingCase]]] = []

    async def grade(self, source_code: str, language_id: int, cases: list[GradingCase]) -> ExecutionSummary:
        self.graded.append((source_code, language_id, list(cases)))
        correct, time_ms, memory = self.verdicts.get(source_code, (True, 10.0, 1000))
        outcomes = [
            CaseOutcome(
                passed=correct,
                result=SandboxResult(
                    status_id=STATUS_ACCEPTED,
                    status_description="Accepted",
                    stdout=case.expected_output if correct else "wrong",
                    time=time_ms / 1000,
                    memory=memory,
                ),
            )
            for case in cases
        ]
        return summarize(outcomes)

    async def run(self, source_code: str, language_id: int, stdin: str = "") -> SandboxResult:
        return SandboxResult(status_id=STATUS_ACCEPTED, status_description="Accepted", stdout="ok\n", time=0.01, memory=900)

    async def get_languages(self) -> list[dict]:
        return [{"id": 28, "name": "Python (3.10)"}, {"id": 63, "name": "JavaScript (Node.js 12)"}]


class FakeGenerator:
    """Stands in for SolutionGenerator; returns a fixed result and records calls.

    ``delay`` simulates a slow completion API.
    """

    def __init__(self, result: GenerationResult, delay: float = 0) -> None:
        self.result = result
        self.delay = delay
        self.calls: list[dict] = []

    async def generate(self, **kwargs: object) -> GenerationResult:
        self.calls.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.result


# ---------------------------------------------------------------------------
# Database and HTTP client
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[None, None]:
    """Fresh SQLite schema for one test."""
    await init_db(f"sqlite+aiosqlite:///{tmp_path / 'codequest.db'}")
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for seeding and assertions."""
    async for session in get_session():
        yield session


@pytest.fixture
def executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator(GenerationOk("print(42)"))


@pytest_asyncio.fixture
async def client(
    database: None, executor: FakeExecutor, generator: FakeGenerator
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app with fake sandbox and AI services."""
    app = create_app()
    app.dependency_overrides[get_execution_client] = lambda: executor
    app.dependency_overrides[get_solution_generator] = lambda: generator

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Seed helpers
# ---------------------------------------------------------------------------


async def make_user(db: AsyncSession, email: str = "coder@example.com", name: str | None = None) -> User:
    user, _ = await get_or_create_user(db, email, name=name or email.split("@")[0])
    await db.commit()
    return user


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


async def _challenge_type(db: AsyncSession, type_name: str) -> ChallengeType:
    result = await db.execute(select(ChallengeType).where(ChallengeType.type == type_name))
    found = result.scalar_one_or_none()
    if found is None:
        found = ChallengeType(type=type_name)
        db.add(found)
        await db.flush()
    return found


async def make_challenge(
    db: AsyncSession,
    *,
    title: str = "Sum Two Numbers",
    challenge_type: str | None = "code_golf",
    difficulty: str = "Easy",
    cases: list[tuple[str, str, bool]] | None = None,
    is_active: bool = True,
) -> Challenge:
    """Create a challenge; ``cases`` are (input, expected_output, is_hidden)."""
    if cases is None:
        cases = [("1 2", "3", False), ("40 2", "42", True)]
    challenge = Challenge(
        title=title,
        description="Read two integers and print their sum.",
        difficulty=difficulty,
        starter_code="a, b = map(int, input().split())\n",
        sample_input="1 2",
        expected_output="3",
        time_limit_ms=1000,
        memory_limit_kb=256000,
        is_active=is_active,
    )
    if challenge_type is not None:
        challenge.challenge_types = [await _challenge_type(db, challenge_type)]
    db.add(challenge)
    await db.flush()
    for case_input, expected, hidden in cases:
        db.add(ChallengeTestCase(challenge_id=challenge.id, input=case_input, expected_output=expected, is_hidden=hidden))
    await db.commit()
    return challenge


async def make_journey(db: AsyncSession, slug: str = "python", level_count: int = 3) -> tuple[Journey, list[Level]]:
    journey = Journey(slug=slug, title=f"{slug.title()} Journey", description="Learn", order=1)
    db.add(journey)
    await db.flush()
    levels = [
        Level(journey_id=journey.id, order=i, title=f"Level {i}", difficulty="Beginner",
              default_code="", expected_output=str(i), hints=[f"hint {i}"])
        for i in range(1, level_count + 1)
    ]
    db.add_all(levels)
    await db.commit()
    return journey, levels

