"""Judge0 sandbox client.

Submits source code, polls until the verdict is final, and grades a program
against a list of cases with bounded concurrency. Every network call has a
timeout; timeouts surface as ``UpstreamTimeout`` and non-2xx responses as
``UpstreamFailure``. Connection errors get a bounded number of retries;
submissions are side-effect free on our side so a retry is safe.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

import httpx

from codequest.config import Settings, get_settings
from codequest.errors import UpstreamFailure, UpstreamTimeout
from codequest.execution.schemas import (
    PENDING_STATUS_IDS,
    CaseOutcome,
    ExecutionSummary,
    GradingCase,
    SandboxResult,
)

logger = logging.getLogger(__name__)

_BODY_LOG_LIMIT = 500


def normalize_output(text: str | None) -> str:
    """CRLF to LF, trailing whitespace stripped per line and overall."""
    if text is None:
        return ""
    lines = text.replace("\r\n", "\n").split("\n")
    return "\n".join(line.rstrip() for line in lines).strip()


def outputs_match(actual: str | None, expected: str | None) -> bool:
    return normalize_output(actual) == normalize_output(expected)


def summarize(outcomes: Sequence[CaseOutcome]) -> ExecutionSummary:
    """Fold per-case outcomes into one summary (all must pass; worst-case metrics)."""
    times = [o.result.time_ms for o in outcomes if o.result.time_ms is not None]
    memories = [o.result.memory for o in outcomes if o.result.memory is not None]
    return ExecutionSummary(
        correct=bool(outcomes) and all(o.passed for o in outcomes),
        execution_time_ms=max(times) if times else None,
        memory_kb=max(memories) if memories else None,
        cases=tuple(outcomes),
    )


class Judge0Client:
    """Thin async client for a Judge0 CE instance behind RapidAPI."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport
        self._semaphore = asyncio.Semaphore(max(1, self.settings.judge0_max_concurrency))

    def _headers(self) -> dict[str, str]:
        return {
            "X-RapidAPI-Key": self.settings.judge0_api_key,
            "X-RapidAPI-Host": self.settings.judge0_api_host,
            "Content-Type": "application/json",
        }

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self.settings.judge0_timeout_seconds, connect=5.0)
        return httpx.AsyncClient(
            base_url=self.settings.judge0_base_url.rstrip("/"),
            headers=self._headers(),
            timeout=timeout,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, **kwargs: object) -> httpx.Response:
        """Perform one request with a bounded retry on connection errors."""
        if not self.settings.judge0_api_key or not self.settings.judge0_base_url:
            raise UpstreamFailure(
                "Code execution service is not configured",
                detail="CQ_JUDGE0_API_KEY / CQ_JUDGE0_BASE_URL missing",
            )

        attempts = 1 + max(0, self.settings.judge0_retry_attempts)
        for attempt in range(attempts):
            try:
                async with self._client() as client:
                    response = await client.request(method, path, **kwargs)  # type: ignore[arg-type]
            except httpx.TimeoutException as e:
                raise UpstreamTimeout(detail=f"Judge0 {method} {path} timed out") from e
            except (httpx.ConnectError, httpx.RemoteProtocolError) as e:
                if attempt < attempts - 1:
                    logger.warning("Judge0 connection failed, retrying", extra={"path": path})
                    await asyncio.sleep(0.5 * (attempt + 1))
                    continue
                raise UpstreamFailure(detail=f"Judge0 unreachable: {e}") from e

            if response.status_code >= 400:
                logger.error(
                    "Judge0 %s %s returned %s: %s",
                    method,
                    path,
                    response.status_code,
                    response.text[:_BODY_LOG_LIMIT],
                )
                raise UpstreamFailure(detail=f"Judge0 returned HTTP {response.status_code}")
            return response

        raise UpstreamFailure(detail="Judge0 request retries exhausted")  # pragma: no cover

    # --- Single submissions ---

    async def submit(self, source_code: str, language_id: int, stdin: str = "") -> str:
        """Create a submission and return its token."""
        response = await self._request(
            "POST",
            "/submissions",
            params={"base64_encoded": "false", "wait": "false"},
            json={"source_code": source_code, "language_id": language_id, "stdin": stdin},
        )
        token = response.json().get("token")
        if not token:
            raise UpstreamFailure(detail="Judge0 submission response had no token")
        return token

    async def get_submission(self, token: str) -> SandboxResult:
        response = await self._request(
            "GET",
            f"/submissions/{token}",
            params={"base64_encoded": "false"},
        )
        return SandboxResult.from_payload(response.json())

    async def run(self, source_code: str, language_id: int, stdin: str = "") -> SandboxResult:
        """Submit code and poll until Judge0 reports a final status."""
        async with self._semaphore:
            token = await self.submit(source_code, language_id, stdin)
            for _ in range(self.settings.judge0_max_polls):
                result = await self.get_submission(token)
                if result.status_id not in PENDING_STATUS_IDS:
                    return result
                await asyncio.sleep(self.settings.judge0_poll_interval_seconds)

        raise UpstreamTimeout(
            detail=f"Judge0 submission {token} still pending after {self.settings.judge0_max_polls} polls"
        )

    # --- Grading ---

    async def grade(
        self,
        source_code: str,
        language_id: int,
        cases: Sequence[GradingCase],
    ) -> ExecutionSummary:
        """Run ``source_code`` against every case concurrently (bounded by the semaphore).

        The first sandbox failure cancels the runs still in flight and is
        re-raised as-is.
        """

        async def _one(case: GradingCase) -> CaseOutcome:
            result = await self.run(source_code, language_id, case.input)
            return CaseOutcome(
                passed=result.accepted and outputs_match(result.stdout, case.expected_output),
                result=result,
            )

        try:
            async with asyncio.TaskGroup() as tg:
                tasks = [tg.create_task(_one(case)) for case in cases]
        except ExceptionGroup as eg:
            raise eg.exceptions[0] from None
        return summarize([task.result() for task in tasks])

    async def get_languages(self) -> list[dict]:
        response = await self._request("GET", "/languages")
        return [{"id": int(lang["id"]), "name": lang["name"]} for lang in response.json()]


_default_client: Judge0Client | None = None


def get_execution_client() -> Judge0Client:
    """Process-wide client (FastAPI dependency); overridden in tests."""
    global _default_client  # noqa: PLW0603
    if _default_client is None:
        _default_client = Judge0Client()
    return _default_client
