"""Code execution request/response schemas."""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field

from codequest.schemas import CamelModel

# Judge0 status ids
STATUS_IN_QUEUE = 1
STATUS_PROCESSING = 2
STATUS_ACCEPTED = 3
PENDING_STATUS_IDS = frozenset({STATUS_IN_QUEUE, STATUS_PROCESSING})


class SandboxResult(BaseModel):
    """A finished Judge0 submission, as returned by GET /submissions/{token}."""

    token: str | None = None
    stdout: str | None = None
    stderr: str | None = None
    compile_output: str | None = None
    message: str | None = None
    status_id: int
    status_description: str = ""
    time: float | None = None  # seconds
    memory: int | None = None  # kilobytes

    @property
    def accepted(self) -> bool:
        return self.status_id == STATUS_ACCEPTED

    @property
    def time_ms(self) -> float | None:
        return self.time * 1000 if self.time is not None else None

    @classmethod
    def from_payload(cls, payload: dict) -> SandboxResult:
        """Build from Judge0 JSON, where ``status`` is nested and ``time`` is a string."""
        status = payload.get("status") or {}
        raw_time = payload.get("time")
        return cls(
            token=payload.get("token"),
            stdout=payload.get("stdout"),
            stderr=payload.get("stderr"),
            compile_output=payload.get("compile_output"),
            message=payload.get("message"),
            status_id=int(status.get("id", payload.get("status_id", 0))),
            status_description=status.get("description", ""),
            time=float(raw_time) if raw_time not in (None, "") else None,
            memory=int(payload["memory"]) if payload.get("memory") is not None else None,
        )


@dataclass(frozen=True)
class GradingCase:
    """Input and expected output for one graded run."""

    input: str
    expected_output: str


@dataclass(frozen=True)
class CaseOutcome:
    passed: bool
    result: SandboxResult


@dataclass(frozen=True)
class ExecutionSummary:
    """Aggregate of one program run against every grading case.

    ``correct`` requires every case to pass. Time and memory are the worst
    case across runs; None when no run reported the metric.
    """

    correct: bool
    execution_time_ms: float | None
    memory_kb: int | None
    cases: tuple[CaseOutcome, ...]

    @property
    def first_failure(self) -> CaseOutcome | None:
        return next((c for c in self.cases if not c.passed), None)


# --- HTTP schemas (playground) ---


class ExecuteRequest(CamelModel):
    code: str = Field(min_length=1)
    language_id: int = Field(gt=0)
    stdin: str = ""


class ExecuteResponse(CamelModel):
    stdout: str | None
    stderr: str | None
    compile_output: str | None
    message: str | None
    status_id: int
    status_description: str
    execution_time_ms: float | None
    memory_kb: int | None


class LanguageResponse(BaseModel):
    id: int
    name: str
