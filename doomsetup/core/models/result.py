"""
Result models — what the executor hands back.

``StepResult`` is the per-step receipt, produced exactly once per
step the executor reaches. ``RunReport`` is the whole-run outcome
and ``ExecutionSnapshot`` is the copy-out view readers get while a
run is in flight.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from doomsetup.core.models.plan import Step


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class StepOutcome(StrEnum):
    """Terminal state of one step."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"


class RunState(StrEnum):
    """Global executor state."""

    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"
    CANCELLED = "cancelled"


class StepResult(BaseModel):
    """Outcome of one step.

    Skipped steps carry no timestamps.
    """

    step: str
    outcome: StepOutcome
    output: str = ""
    error: str | None = None
    exit_code: int | None = None
    optional: bool = False

    started_at: str | None = None
    ended_at: str | None = None
    duration_ms: int = 0
    dropped_lines: int = 0

    @property
    def ok(self) -> bool:
        """Whether the step succeeded (or was skipped)."""
        return self.outcome in (StepOutcome.SUCCEEDED, StepOutcome.SKIPPED)

    @property
    def attempted(self) -> bool:
        """Whether the step's action was actually started."""
        return self.outcome != StepOutcome.SKIPPED

    @classmethod
    def skipped_for(cls, step: Step) -> StepResult:
        """Create the result of a step resolved as skipped."""
        return cls(
            step=step.name,
            outcome=StepOutcome.SKIPPED,
            output=step.skip_reason,
            optional=step.optional,
        )


class RollbackRecord(BaseModel):
    """Outcome of one inverse action."""

    step: str
    ok: bool
    error: str | None = None


class RunReport(BaseModel):
    """Result of executing a plan.

    ``error`` holds the ``PlanAborted`` / ``RunCancelled`` instance
    when the run did not complete; it is ``None`` otherwise.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    operation_id: str = ""
    state: RunState = RunState.IDLE
    results: list[StepResult] = Field(default_factory=list)
    error: Exception | None = None
    failed_step: str | None = None
    rollback: list[RollbackRecord] = Field(default_factory=list)
    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    @property
    def attempted(self) -> int:
        return sum(1 for r in self.results if r.attempted)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.outcome == StepOutcome.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(
            1 for r in self.results
            if r.outcome in (StepOutcome.FAILED, StepOutcome.TIMED_OUT)
        )

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.outcome == StepOutcome.SKIPPED)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def status(self) -> str:
        if self.state == RunState.COMPLETED:
            return "ok" if self.failed == 0 else "partial"
        return self.state.value

    def get(self, name: str) -> StepResult | None:
        """Result of the named step, if the run reached it."""
        for result in self.results:
            if result.step == name:
                return result
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "state": self.state.value,
            "status": self.status,
            "error": str(self.error) if self.error else None,
            "failed_step": self.failed_step,
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "duration_ms": self.duration_ms,
            "results": [r.model_dump(mode="json") for r in self.results],
            "rollback": [r.model_dump(mode="json") for r in self.rollback],
        }


class ExecutionSnapshot(BaseModel):
    """Consistent copy of the executor state for readers."""

    state: RunState
    current_step: int
    total_steps: int
    cancel_requested: bool
    results: list[StepResult] = Field(default_factory=list)
