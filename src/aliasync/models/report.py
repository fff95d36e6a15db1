"""
Pydantic models for pass reports.

Serializable view of a PassResult, used by the CLI's json/yaml output and by
the unattended trigger's summary log line.
"""

import datetime

from pydantic import BaseModel, Field

from aliasync.models.enums import PassOutcome, RepairState


# =============================================================================
# Report Models
# =============================================================================


class PlanEntryReport(BaseModel):
    """One node's planned action."""

    node: str
    action: str
    current: str | None = None
    target: str | None = None
    reason: str = ""


class CollisionReport(BaseModel):
    """Nodes sharing one alias range."""

    alias: str
    nodes: list[str]


class MutationReport(BaseModel):
    """One attempted alias mutation."""

    node: str
    action: str
    old_alias: str | None = None
    new_alias: str | None = None
    outcome: str
    error: str | None = None
    collision: bool = False


class RepairReport(BaseModel):
    """Repair orchestrator summary."""

    state: RepairState
    rebooted: list[str] = Field(default_factory=list)
    recovered: list[str] = Field(default_factory=list)
    unreachable: list[str] = Field(default_factory=list)
    unresolved: list[str] = Field(default_factory=list)
    elapsed_seconds: float = 0.0
    error: str | None = None


class PassReport(BaseModel):
    """
    Summary of one reconciliation pass.

    Attributes:
        outcome: converged / noop_needed / partial_failure / recovery_failed.
        counts: Number of plan entries per action.
        skipped_reason: Set when the pass did nothing because the feature
            is disabled.
    """

    pass_id: str
    outcome: PassOutcome
    skipped_reason: str | None = None
    counts: dict[str, int] = Field(default_factory=dict)
    plan: list[PlanEntryReport] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    collisions: list[CollisionReport] = Field(default_factory=list)
    mutations: list[MutationReport] = Field(default_factory=list)
    repair: RepairReport | None = None
    started_at: datetime.datetime
    finished_at: datetime.datetime | None = None

    @classmethod
    def from_result(cls, result) -> "PassReport":
        """Build a report from a PassResult."""
        plan = result.plan
        return cls(
            pass_id=result.pass_id,
            outcome=result.outcome,
            skipped_reason=result.skipped_reason,
            counts=plan.counts() if plan else {},
            plan=[
                PlanEntryReport(
                    node=name,
                    action=entry.action.value,
                    current=entry.current,
                    target=entry.target,
                    reason=entry.reason,
                )
                for name, entry in (plan.entries.items() if plan else [])
            ],
            warnings=list(plan.warnings) if plan else [],
            collisions=[
                CollisionReport(alias=group.alias, nodes=list(group.nodes))
                for group in result.collisions
            ],
            mutations=[
                MutationReport(
                    node=record.node,
                    action=record.action.value,
                    old_alias=record.old_alias,
                    new_alias=record.new_alias,
                    outcome=record.outcome.value,
                    error=record.error,
                    collision=record.collision,
                )
                for record in result.records
            ],
            repair=(
                RepairReport(
                    state=result.repair.state,
                    rebooted=result.repair.rebooted,
                    recovered=result.repair.recovered,
                    unreachable=result.repair.unreachable,
                    unresolved=result.repair.unresolved,
                    elapsed_seconds=result.repair.elapsed_seconds,
                    error=result.repair.error,
                )
                if result.repair
                else None
            ),
            started_at=result.started_at,
            finished_at=result.finished_at,
        )
