"""
Domain models — Pydantic types for the installer.

All models are re-exported here for convenient access:

    from doomsetup.core.models import CapabilitySnapshot, StepPlan, RunReport
"""

from doomsetup.core.models.capability import (
    CapabilitySnapshot,
    ContainerContext,
    ServiceInfo,
    ServiceKind,
    ToolState,
)
from doomsetup.core.models.config import ComponentToggles, ExecutorSettings, InstallConfig
from doomsetup.core.models.health import CheckResult, HealthReport, HealthTarget
from doomsetup.core.models.plan import (
    COMPONENTS,
    DeploymentMode,
    Selections,
    Step,
    StepPlan,
)
from doomsetup.core.models.result import (
    ExecutionSnapshot,
    RollbackRecord,
    RunReport,
    RunState,
    StepOutcome,
    StepResult,
)

__all__ = [
    # capability.py
    "CapabilitySnapshot",
    "ContainerContext",
    "ServiceInfo",
    "ServiceKind",
    "ToolState",
    # config.py
    "ComponentToggles",
    "ExecutorSettings",
    "InstallConfig",
    # health.py
    "CheckResult",
    "HealthReport",
    "HealthTarget",
    # plan.py
    "COMPONENTS",
    "DeploymentMode",
    "Selections",
    "Step",
    "StepPlan",
    # result.py
    "ExecutionSnapshot",
    "RollbackRecord",
    "RunReport",
    "RunState",
    "StepOutcome",
    "StepResult",
]
