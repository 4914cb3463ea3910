"""
Engine executor — the central orchestration loop.

Takes a resolved ``StepPlan`` and runs it strictly in order through
a command adapter. Each step streams its output to the progress
callback while it runs, is bounded by its own deadline, and ends in
exactly one ``StepResult``.

Flow:
    plan → for each step: cancel check → start → drain + watch deadline
         → classify → continue / abort (+ rollback) → report

Execution state (current step, results, cancel flag) is owned by
the thread running ``run()``. Other threads only call ``cancel()``,
``get_results()``, ``get_current_step()`` and ``snapshot()``, which
take the single lock and copy out.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable
from contextlib import ExitStack
from datetime import UTC, datetime
from pathlib import Path
from typing import TextIO

from doomsetup.adapters.base import ActionHandle, CommandAdapter, Invocation
from doomsetup.core.engine.errors import PlanAborted, RunCancelled, StepFailed, StepTimedOut
from doomsetup.core.engine.output import OutputPump
from doomsetup.core.models.config import ExecutorSettings
from doomsetup.core.models.plan import Step, StepPlan
from doomsetup.core.models.result import (
    ExecutionSnapshot,
    RollbackRecord,
    RunReport,
    RunState,
    StepOutcome,
    StepResult,
)
from doomsetup.core.persistence.audit import AuditEntry, AuditWriter
from doomsetup.core.services.domain.rollback import rollback_order

logger = logging.getLogger(__name__)

# (position, total, step, line); position is 1-based
ProgressCallback = Callable[[int, int, Step, str], None]

_STDERR_TAIL = 20
_DRAIN_GRACE = 1.0   # seconds to wait for EOF once the action has exited

_MARKERS = {
    StepOutcome.SUCCEEDED: "✓",
    StepOutcome.FAILED: "✗",
    StepOutcome.TIMED_OUT: "✗",
    StepOutcome.CANCELLED: "⊘",
    StepOutcome.SKIPPED: "⊘",
}


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class StepExecutor:
    """Runs one plan, once.

    Args:
        adapter: Command adapter that starts step actions.
        project_root: Default working directory for steps without ``cwd``.
        settings: Queue, timeout and rollback tuning.
        transcript_path: Optional file that receives every output line.
    """

    def __init__(
        self,
        adapter: CommandAdapter,
        *,
        project_root: str | Path = ".",
        settings: ExecutorSettings | None = None,
        transcript_path: str | Path | None = None,
    ):
        self._adapter = adapter
        self._project_root = str(project_root)
        self._settings = settings or ExecutorSettings()
        self._transcript_path = Path(transcript_path) if transcript_path else None

        self._lock = threading.Lock()
        self._state = RunState.IDLE
        self._results: list[StepResult] = []
        self._current_step = 0
        self._total_steps = 0
        self._cancelled = False
        self._handle: ActionHandle | None = None

    # ── Reader API (any thread) ─────────────────────────────────

    @property
    def state(self) -> RunState:
        with self._lock:
            return self._state

    def cancel(self) -> None:
        """Request cooperative cancellation.

        No step starts after this is observed. A step already in
        flight is asked to terminate.
        """
        with self._lock:
            self._cancelled = True
            handle = self._handle
        if handle is not None:
            logger.info("Cancellation requested — asking the running step to stop")
            handle.terminate()

    def get_results(self) -> list[StepResult]:
        """Copy of the results recorded so far."""
        with self._lock:
            return [r.model_copy() for r in self._results]

    def get_current_step(self) -> int:
        """Index of the step being (or last) processed."""
        with self._lock:
            return self._current_step

    def snapshot(self) -> ExecutionSnapshot:
        """Consistent copy of the whole execution state."""
        with self._lock:
            return ExecutionSnapshot(
                state=self._state,
                current_step=self._current_step,
                total_steps=self._total_steps,
                cancel_requested=self._cancelled,
                results=[r.model_copy() for r in self._results],
            )

    # ── Plan loop (owner thread) ────────────────────────────────

    def run(
        self,
        plan: StepPlan,
        on_progress: ProgressCallback | None = None,
        operation_id: str = "",
    ) -> RunReport:
        """Execute every step of ``plan`` in order.

        Never raises for step failures: the report carries the
        results and, when the run did not complete, a
        ``PlanAborted`` or ``RunCancelled`` error.

        Raises:
            RuntimeError: If this executor already ran a plan.
        """
        with self._lock:
            if self._state != RunState.IDLE:
                raise RuntimeError("executor already ran a plan; create a new one")
            self._state = RunState.RUNNING
            self._total_steps = len(plan.steps)

        try:
            return self._run_plan(plan, on_progress, operation_id)
        except BaseException:
            # Never leave the state at running
            with self._lock:
                self._state = RunState.ABORTED
            raise

    def _run_plan(
        self,
        plan: StepPlan,
        on_progress: ProgressCallback | None,
        operation_id: str,
    ) -> RunReport:
        report = RunReport(operation_id=operation_id or generate_operation_id())
        start = time.monotonic()
        committed: list[Step] = []
        final_state = RunState.COMPLETED

        with ExitStack() as stack:
            transcript = self._open_transcript(stack)

            for index, step in enumerate(plan.steps):
                with self._lock:
                    if self._cancelled:
                        final_state = RunState.CANCELLED
                        break
                    self._current_step = index

                if step.skipped:
                    self._record(StepResult.skipped_for(step))
                    logger.info("⊘ %s → skipped (%s)", step.name, step.skip_reason)
                    continue

                logger.info("▶ [%d/%d] %s", index + 1, len(plan.steps), step.description or step.name)
                result = self._execute_step(step, index, len(plan.steps), on_progress, transcript)
                self._record(result)
                logger.info(
                    "%s %s → %s (%dms)",
                    _MARKERS[result.outcome], step.name, result.outcome.value, result.duration_ms,
                )

                if result.outcome == StepOutcome.SUCCEEDED:
                    if step.rollback:
                        committed.append(step)
                    continue

                if result.outcome == StepOutcome.CANCELLED:
                    final_state = RunState.CANCELLED
                    break

                if step.optional:
                    logger.warning("Optional step '%s' failed — continuing", step.name)
                    continue

                cause: StepFailed
                if result.outcome == StepOutcome.TIMED_OUT:
                    cause = StepTimedOut(step.name, result, step.timeout)
                else:
                    cause = StepFailed(step.name, result)
                report.error = PlanAborted(step.name, result, cause)
                report.failed_step = step.name
                final_state = RunState.ABORTED
                break
            else:
                # Empty plans still honour a cancel issued before run()
                with self._lock:
                    if not plan.steps and self._cancelled:
                        final_state = RunState.CANCELLED

        if final_state == RunState.CANCELLED:
            report.error = RunCancelled()
            logger.warning("Installation cancelled")
        elif final_state == RunState.ABORTED:
            logger.error("Plan aborted: %s", report.error)
            if self._settings.rollback and committed:
                report.rollback = self._rollback(committed)

        report.results = self.get_results()
        report.state = final_state
        report.duration_ms = int((time.monotonic() - start) * 1000)

        with self._lock:
            self._state = final_state
        return report

    def _record(self, result: StepResult) -> None:
        with self._lock:
            self._results.append(result)

    def _open_transcript(self, stack: ExitStack) -> TextIO | None:
        if self._transcript_path is None:
            return None
        try:
            self._transcript_path.parent.mkdir(parents=True, exist_ok=True)
            return stack.enter_context(self._transcript_path.open("a", encoding="utf-8"))
        except OSError as e:
            logger.warning("Cannot open transcript %s: %s", self._transcript_path, e)
            return None

    # ── Single step ─────────────────────────────────────────────

    def _execute_step(
        self,
        step: Step,
        index: int,
        total: int,
        on_progress: ProgressCallback | None,
        transcript: TextIO | None,
        cancellable: bool = True,
    ) -> StepResult:
        settings = self._settings
        started_at = _now_iso()
        t0 = time.monotonic()

        def finish(outcome: StepOutcome, **kwargs) -> StepResult:
            return StepResult(
                step=step.name,
                outcome=outcome,
                optional=step.optional,
                started_at=started_at,
                ended_at=_now_iso(),
                duration_ms=int((time.monotonic() - t0) * 1000),
                **kwargs,
            )

        invocation = Invocation(
            command=step.command,
            cwd=step.cwd or self._project_root,
            label=step.name,
        )
        try:
            handle = self._adapter.start(invocation)
        except Exception as e:
            logger.debug("Adapter %s could not start %s", self._adapter.name, step.name, exc_info=True)
            return finish(StepOutcome.FAILED, error=f"failed to start command: {e}")

        if cancellable:
            with self._lock:
                self._handle = handle
                cancel_pending = self._cancelled
            if cancel_pending:
                handle.terminate()

        opened: list[TextIO] = []
        pump = OutputPump(queue_size=settings.queue_size, overflow=settings.overflow)
        captured: deque[str] = deque(maxlen=settings.max_output_lines)
        stderr_tail: deque[str] = deque(maxlen=_STDERR_TAIL)

        try:
            try:
                opened.append(handle.open_stdout())
                opened.append(handle.open_stderr())
            except OSError as e:
                handle.kill()
                handle.wait(settings.kill_grace)
                return finish(StepOutcome.FAILED, error=f"failed to open output stream: {e}")

            pump.attach(opened[0], "stdout")
            pump.attach(opened[1], "stderr")
            opened.clear()   # readers own the streams from here on

            deadline = t0 + step.timeout
            timed_out = cancelled = killed = False
            terminate_at: float | None = None
            drain_until: float | None = None
            exit_code: int | None = None

            while True:
                item = pump.get(timeout=settings.poll_interval)
                if item is not None:
                    source, line = item
                    captured.append(line)
                    if source == "stderr":
                        stderr_tail.append(line)
                    logger.debug("[%s] %s", step.name, line)
                    if transcript is not None:
                        transcript.write(f"[{step.name}] {line}\n")
                    if on_progress is not None:
                        self._notify(on_progress, index + 1, total, step, line)

                if exit_code is None:
                    exit_code = handle.wait(0)

                now = time.monotonic()
                if exit_code is None:
                    if cancellable and not cancelled and self._cancel_requested():
                        cancelled = True
                        terminate_at = terminate_at or now
                    if not timed_out and now >= deadline:
                        # The deadline always wins, even over a pending cancel
                        timed_out = True
                        handle.terminate()
                        terminate_at = now
                    if (
                        terminate_at is not None
                        and not killed
                        and (timed_out or settings.force_cancel)
                        and now - terminate_at >= settings.kill_grace
                    ):
                        handle.kill()
                        killed = True
                    continue

                if pump.finished:
                    break
                if drain_until is None:
                    drain_until = now + _DRAIN_GRACE
                elif now >= drain_until:
                    # Background children of the step still hold the pipes
                    logger.warning(
                        "Step '%s' exited but its output is still open (%s); stopping what it left running",
                        step.name, ", ".join(pump.alive()),
                    )
                    handle.kill()
                    break

            if cancellable and not cancelled and exit_code != 0 and self._cancel_requested():
                # Exited from the terminate sent by cancel()
                cancelled = True
        finally:
            for stream in opened:
                try:
                    stream.close()
                except (OSError, ValueError):
                    pass
            pump.close(settings.kill_grace)
            if cancellable:
                with self._lock:
                    self._handle = None

        output = "\n".join(captured)
        dropped = pump.dropped
        if cancelled:
            return finish(StepOutcome.CANCELLED, output=output, exit_code=exit_code,
                          error="cancelled", dropped_lines=dropped)
        if timed_out:
            return finish(StepOutcome.TIMED_OUT, output=output, exit_code=exit_code,
                          error=f"Command timed out after {step.timeout:g}s", dropped_lines=dropped)
        if exit_code != 0:
            error = "\n".join(stderr_tail) or f"Command exited with code {exit_code}"
            return finish(StepOutcome.FAILED, output=output, exit_code=exit_code,
                          error=error, dropped_lines=dropped)
        return finish(StepOutcome.SUCCEEDED, output=output, exit_code=exit_code,
                      dropped_lines=dropped)

    def _cancel_requested(self) -> bool:
        with self._lock:
            return self._cancelled

    def _notify(self, on_progress: ProgressCallback, position: int, total: int, step: Step, line: str) -> None:
        try:
            on_progress(position, total, step, line)
        except Exception:
            logger.exception("Progress callback raised for step '%s'", step.name)

    # ── Rollback ────────────────────────────────────────────────

    def _rollback(self, committed: list[Step]) -> list[RollbackRecord]:
        """Run inverse actions of committed steps, newest first.

        Best effort: a failing inverse is logged and recorded, and
        the remaining entries still run.
        """
        records: list[RollbackRecord] = []
        for step in rollback_order(committed):
            inverse = Step(
                name=f"rollback:{step.name}",
                description=f"Undo {step.name}",
                command=step.rollback or (),
                cwd=step.cwd,
                timeout=step.timeout,
            )
            logger.info("↩ Rolling back %s", step.name)
            result = self._execute_step(inverse, 0, 0, None, None, cancellable=False)
            if result.outcome == StepOutcome.SUCCEEDED:
                records.append(RollbackRecord(step=step.name, ok=True))
            else:
                logger.error("Rollback of '%s' failed: %s", step.name, result.error)
                records.append(RollbackRecord(step=step.name, ok=False, error=result.error))
        return records


def write_audit_entries(
    report: RunReport,
    audit_writer: AuditWriter,
    mode: str = "",
    plan_fingerprint: str = "",
) -> None:
    """Write the run outcome to the audit ledger."""
    entry = AuditEntry(
        operation_id=report.operation_id,
        operation_type="install",
        mode=mode,
        status=report.status,
        steps_total=len(report.results),
        steps_attempted=report.attempted,
        steps_succeeded=report.succeeded,
        steps_failed=report.failed,
        steps_skipped=report.skipped,
        failed_step=report.failed_step,
        duration_ms=report.duration_ms,
        errors=[str(report.error)] if report.error else [],
        context={"plan": plan_fingerprint} if plan_fingerprint else {},
    )
    audit_writer.write(entry)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
