"""
Health verifier — run independent checks concurrently, report all.

Checks fan out on a thread pool and fan back in under two bounds:
each check's own timeout and the verifier's overall deadline. A
check that raises or runs out of time becomes a failed
``CheckResult``; the report always holds one entry per registered
check. Verification only reads state, so it can run any number of
times.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass

from doomsetup.core.models.health import CheckResult, HealthReport, HealthTarget

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthCheck:
    """A named, timeout-bounded probe."""

    name: str
    probe: Callable[[], CheckResult]
    timeout: float = 10.0


class HealthVerifier:
    """Registry of checks plus the concurrent runner."""

    def __init__(self, checks: Iterable[HealthCheck] = (), deadline: float = 30.0):
        self._checks: dict[str, HealthCheck] = {}
        self._deadline = deadline
        for check in checks:
            self.register(check)

    def register(self, check: HealthCheck) -> None:
        if check.name in self._checks:
            raise ValueError(f"Duplicate health check: {check.name}")
        self._checks[check.name] = check

    @property
    def names(self) -> list[str]:
        return list(self._checks)

    def verify(self) -> HealthReport:
        """Run every check and collect the results. Never raises."""
        if not self._checks:
            return HealthReport()

        start = time.monotonic()
        overall = start + self._deadline
        pool = ThreadPoolExecutor(max_workers=len(self._checks), thread_name_prefix="health")
        try:
            futures = {
                name: pool.submit(_run_probe, check)
                for name, check in self._checks.items()
            }
            checks = {
                name: self._collect(self._checks[name], future, start, overall)
                for name, future in futures.items()
            }
        finally:
            # Hung probes are abandoned, not waited for
            pool.shutdown(wait=False, cancel_futures=True)

        report = HealthReport(checks=checks)
        logger.info(
            "Health: %d/%d checks passed (%dms)",
            len(checks) - len(report.failed_checks), len(checks),
            int((time.monotonic() - start) * 1000),
        )
        return report

    def _collect(
        self, check: HealthCheck, future: Future, start: float, overall: float,
    ) -> CheckResult:
        limit = min(start + check.timeout, overall)
        try:
            return future.result(timeout=max(0.0, limit - time.monotonic()))
        except FutureTimeout:
            future.cancel()
            if limit == overall and overall < start + check.timeout:
                detail = f"health deadline of {self._deadline:g}s exceeded"
            else:
                detail = f"timed out after {check.timeout:g}s"
            logger.warning("Health check %s: %s", check.name, detail)
            return CheckResult.fail(detail)
        except Exception as e:
            logger.warning("Health check %s raised: %s", check.name, e)
            return CheckResult.fail(f"check error: {e}")


def _run_probe(check: HealthCheck) -> CheckResult:
    result = check.probe()
    if not isinstance(result, CheckResult):
        raise TypeError(f"probe returned {type(result).__name__}, expected CheckResult")
    return result


def verify(target: HealthTarget | None = None) -> HealthReport:
    """Run the default checks against ``target``."""
    from doomsetup.core.observability.health_checks import default_checks

    target = target or HealthTarget()
    return HealthVerifier(default_checks(target), deadline=target.deadline).verify()
