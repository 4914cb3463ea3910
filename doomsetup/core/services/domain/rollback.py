"""
Domain — rollback ordering (pure).

Derives the inverse actions to run from the steps that completed
before a plan aborted. No I/O, no subprocess.
"""

from __future__ import annotations

from doomsetup.core.models.plan import Step


def rollback_order(committed: list[Step]) -> list[Step]:
    """Steps whose inverse should run, newest first.

    Steps without a ``rollback`` action are left out.

    Args:
        committed: Steps that completed successfully, in execution order.
    """
    return [step for step in reversed(committed) if step.rollback]
