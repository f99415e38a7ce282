"""AI competitor: asks an OpenAI-compatible chat completion API for a solution.

Generation never raises to the caller. Every failure (missing key, timeout,
non-2xx, empty answer) is returned as ``GenerationFailed`` so the human side
of a challenge can still be judged and recorded.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import httpx

from codequest.ai.skill import SkillLevel
from codequest.config import Settings, get_settings

logger = logging.getLogger(__name__)

# Stored as the AI's code when generation failed; never submitted to the sandbox.
GENERATION_FAILED_CODE = "# AI couldn't generate a solution for this challenge"

LANGUAGE_NAMES: dict[int, str] = {
    28: "python",
    63: "javascript",
    54: "c++",
    62: "java",
    50: "c",
}

_TYPE_GOALS: dict[str, str] = {
    "code_golf": "Write the SHORTEST possible correct program. Every character counts.",
    "time_trial": "Write the FASTEST correct program. Optimise for execution time.",
    "memory_optimization": "Write a correct program that uses as LITTLE memory as possible.",
    "debugging": "Write a clean, correct program that handles every edge case.",
}

_SKILL_STYLES: dict[SkillLevel, str] = {
    SkillLevel.BEGINNER: (
        "Solve it the way a beginner programmer would: straightforward, readable, "
        "not necessarily optimal."
    ),
    SkillLevel.INTERMEDIATE: "Solve it the way a competent programmer would, with reasonable efficiency.",
    SkillLevel.EXPERT: "Solve it the way an expert competitive programmer would, with an optimal approach.",
}

_FENCE_RE = re.compile(r"^```[\w+#-]*\s*\n(.*?)\n?```\s*$", re.DOTALL)


@dataclass(frozen=True)
class GenerationOk:
    code: str


@dataclass(frozen=True)
class GenerationFailed:
    reason: str


GenerationResult = GenerationOk | GenerationFailed


def language_name(language_id: int) -> str:
    return LANGUAGE_NAMES.get(language_id, "python")


def strip_code_fences(text: str) -> str:
    """Return the body of a fenced block if the whole answer is one, else the text."""
    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip("\n")
    return stripped


def build_messages(
    *,
    title: str,
    description: str,
    challenge_type: str | None,
    language_id: int,
    skill_level: SkillLevel,
    sample_input: str | None = None,
    expected_output: str | None = None,
) -> list[dict[str, str]]:
    """Chat messages for one solution request."""
    language = language_name(language_id)
    goal = _TYPE_GOALS.get(challenge_type or "", "Write a correct program.")
    system = (
        f"You are competing against a human in a {language} programming challenge. "
        f"{goal} {_SKILL_STYLES[skill_level]} "
        "The program reads from standard input and writes to standard output. "
        "Reply with code only: no explanations and no markdown."
    )
    parts = [f"Challenge: {title}", "", description]
    if sample_input:
        parts += ["", "Sample input:", sample_input]
    if expected_output:
        parts += ["", "Expected output:", expected_output]
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n".join(parts)},
    ]


class SolutionGenerator:
    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self._transport = transport

    async def generate(
        self,
        *,
        title: str,
        description: str,
        challenge_type: str | None,
        language_id: int,
        skill_level: SkillLevel,
        sample_input: str | None = None,
        expected_output: str | None = None,
    ) -> GenerationResult:
        if not self.settings.ai_api_key:
            return GenerationFailed("AI service is not configured")

        payload = {
            "model": self.settings.ai_model,
            "temperature": self.settings.ai_temperature,
            "messages": build_messages(
                title=title,
                description=description,
                challenge_type=challenge_type,
                language_id=language_id,
                skill_level=skill_level,
                sample_input=sample_input,
                expected_output=expected_output,
            ),
        }
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.ai_base_url.rstrip("/"),
                headers={"Authorization": f"Bearer {self.settings.ai_api_key}"},
                timeout=self.settings.ai_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.post("/chat/completions", json=payload)
        except httpx.TimeoutException:
            logger.warning("AI completion timed out after %ss", self.settings.ai_timeout_seconds)
            return GenerationFailed("AI service timed out")
        except httpx.HTTPError as e:
            logger.warning("AI completion request failed: %s", e)
            return GenerationFailed("AI service unreachable")

        if response.status_code >= 400:
            logger.error("AI completion returned %s: %s", response.status_code, response.text[:500])
            return GenerationFailed(f"AI service returned HTTP {response.status_code}")

        try:
            content = response.json()["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError):
            logger.error("AI completion response malformed: %s", response.text[:500])
            return GenerationFailed("AI service returned a malformed response")

        code = strip_code_fences(content)
        if not code:
            return GenerationFailed("AI service returned an empty solution")
        return GenerationOk(code)


_default_generator: SolutionGenerator | None = None


def get_solution_generator() -> SolutionGenerator:
    """Process-wide generator (FastAPI dependency); overridden in tests."""
    global _default_generator  # noqa: PLW0603
    if _default_generator is None:
        _default_generator = SolutionGenerator()
    return _default_generator
