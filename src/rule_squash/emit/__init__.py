"""Artifact planning and emission."""

from rule_squash.emit.assembler import (
    Artifact,
    ArtifactKind,
    SquashContext,
    SquashOutcome,
    SquashPlan,
    plan_squash,
    squash,
    write_plan,
)

__all__ = [
    "Artifact",
    "ArtifactKind",
    "SquashContext",
    "SquashOutcome",
    "SquashPlan",
    "plan_squash",
    "squash",
    "write_plan",
]
