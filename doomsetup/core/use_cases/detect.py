"""
Detect use case — probe the host and derive recommendations.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from doomsetup.core.engine.errors import DetectionError
from doomsetup.core.models.capability import CapabilitySnapshot
from doomsetup.core.models.plan import DeploymentMode
from doomsetup.core.services.detection import detect
from doomsetup.core.services.domain.recommend import recommend_mode, warnings


@dataclass
class DetectResult:
    """Result of the detect use case."""

    snapshot: CapabilitySnapshot | None = None
    recommended_mode: DeploymentMode | None = None
    warnings: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.snapshot is not None
        return {
            "snapshot": self.snapshot.model_dump(mode="json"),
            "sandboxed": self.snapshot.sandboxed,
            "recommended_mode": self.recommended_mode.value if self.recommended_mode else None,
            "warnings": self.warnings,
        }


def run_detect() -> DetectResult:
    """Detect host capabilities."""
    try:
        snapshot = detect()
    except DetectionError as e:
        return DetectResult(error=str(e))

    return DetectResult(
        snapshot=snapshot,
        recommended_mode=recommend_mode(snapshot),
        warnings=warnings(snapshot),
    )
