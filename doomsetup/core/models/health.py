"""
Health models — check results, the aggregate report, and the
verification target.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field


class CheckResult(BaseModel):
    """Outcome of one health check."""

    passed: bool
    detail: str = ""

    @classmethod
    def ok(cls, detail: str = "") -> CheckResult:
        return cls(passed=True, detail=detail)

    @classmethod
    def fail(cls, detail: str = "") -> CheckResult:
        return cls(passed=False, detail=detail)


class HealthReport(BaseModel):
    """Unordered mapping of check name to result."""

    checks: dict[str, CheckResult] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())

    @property
    def passed(self) -> bool:
        """True when every check passed."""
        return all(c.passed for c in self.checks.values())

    @property
    def failed_checks(self) -> list[str]:
        return sorted(name for name, c in self.checks.items() if not c.passed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "timestamp": self.timestamp,
            "checks": {
                name: {"passed": c.passed, "detail": c.detail}
                for name, c in sorted(self.checks.items())
            },
        }


class HealthTarget(BaseModel):
    """What the verifier should look at."""

    project_root: str = "."
    containers: list[str] = Field(
        default_factory=lambda: ["doom-tailscale", "doom-code-server", "doom-claude"]
    )
    code_server_container: str = "doom-code-server"
    code_server_port: int = 8443
    vpn_container: str = "doom-tailscale"
    hardening_file: str = "/etc/ssh/sshd_config.d/99-doom-hardening.conf"
    age_key_file: str = "~/.config/sops/age/keys.txt"

    check_timeout: float = 10.0   # seconds, per check
    deadline: float = 30.0        # seconds, whole report
