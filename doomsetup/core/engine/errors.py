"""
Orchestration errors.

Step-level failures are recorded in ``StepResult`` and only become
one of these when they change the course of the run. Probe and
health-check failures are never raised: they are recorded as
degraded probes and failed ``CheckResult`` values.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from doomsetup.core.models.result import StepResult


class OrchestrationError(Exception):
    """Base class for executor errors."""


class StepFailed(OrchestrationError):
    """A step exited non-zero or could not be spawned."""

    def __init__(self, step_name: str, result: StepResult | None = None, message: str = ""):
        self.step_name = step_name
        self.result = result
        super().__init__(message or f"step '{step_name}' failed")


class StepTimedOut(StepFailed):
    """A step ran past its deadline."""

    def __init__(self, step_name: str, result: StepResult | None = None, timeout: float = 0.0):
        self.timeout = timeout
        super().__init__(step_name, result, f"step '{step_name}' timed out after {timeout:g}s")


class PlanAborted(OrchestrationError):
    """A required step failed; the rest of the plan was not attempted."""

    def __init__(self, step_name: str, result: StepResult | None = None, cause: StepFailed | None = None):
        self.step_name = step_name
        self.result = result
        self.cause = cause
        detail = f": {result.error}" if result is not None and result.error else ""
        super().__init__(f"step '{step_name}' failed{detail}")


class RunCancelled(OrchestrationError):
    """Cancellation was requested; no further step was started."""

    def __init__(self) -> None:
        super().__init__("installation cancelled")


class DetectionError(Exception):
    """The minimal host identity (OS, architecture) could not be obtained."""
