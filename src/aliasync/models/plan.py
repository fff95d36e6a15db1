"""Data models for reconciliation plans, mutations and repair batches."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping

from aliasync.models.enums import MutationOutcome, PlanAction, RepairState


# =============================================================================
# Plan
# =============================================================================


@dataclass(frozen=True)
class PlanEntry:
    """Action for one node. `target` is set only for CONVERGE."""

    action: PlanAction
    target: str | None = None
    current: str | None = None
    reason: str = ""
    collision: bool = False


@dataclass(frozen=True)
class ReconciliationPlan:
    """
    Point-in-time plan for one pass.

    Built once from a node set and never mutated; the next pass builds a new
    one from fresh inventory.
    """

    entries: Mapping[str, PlanEntry]
    warnings: tuple[str, ...] = ()
    built_at: datetime = field(default_factory=datetime.now)

    def nodes_with(self, action: PlanAction) -> list[str]:
        return sorted(n for n, e in self.entries.items() if e.action == action)

    def actionable(self) -> dict[str, PlanEntry]:
        """Entries that require a cloud mutation."""
        return {
            name: entry
            for name, entry in self.entries.items()
            if entry.action in (PlanAction.CONVERGE, PlanAction.CLEAR_ONLY)
        }

    def counts(self) -> dict[str, int]:
        counts = {action.value: 0 for action in PlanAction}
        for entry in self.entries.values():
            counts[entry.action.value] += 1
        return counts


@dataclass(frozen=True)
class CollisionGroup:
    """Two or more nodes reporting the same alias range."""

    alias: str
    nodes: tuple[str, ...]


# =============================================================================
# Mutations
# =============================================================================


@dataclass(frozen=True)
class MutationRecord:
    """Audit record of one node's alias mutation."""

    node: str
    action: PlanAction
    old_alias: str | None
    new_alias: str | None
    outcome: MutationOutcome
    error: str | None = None
    collision: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def mutated(self) -> bool:
        """Whether the alias on the node changed at all."""
        return self.outcome not in (MutationOutcome.FAILED, MutationOutcome.SKIPPED)


@dataclass
class RepairBatch:
    """
    Nodes whose alias changed in this pass and must be rebooted.

    Created by the converger; the repair orchestrator fills in the resolved
    addresses and the deadline, then discards it at the end of the pass.
    """

    records: list[MutationRecord] = field(default_factory=list)
    addresses: dict[str, str] = field(default_factory=dict)
    deadline: float | None = None

    @property
    def members(self) -> list[str]:
        return [record.node for record in self.records]

    def __len__(self) -> int:
        return len(self.records)


# =============================================================================
# Repair Result
# =============================================================================


@dataclass
class RepairResult:
    """Final state of the repair orchestrator for one batch."""

    state: RepairState
    rebooted: list[str] = field(default_factory=list)
    recovered: list[str] = field(default_factory=list)
    unreachable: list[str] = field(default_factory=list)
    unresolved: list[str] = field(default_factory=list)
    error: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def failed(self) -> bool:
        return self.state == RepairState.RECOVERY_FAILED
