"""
Converger: apply alias mutations one node at a time.

A failure on one node is recorded and the remaining nodes are still
attempted. Every node whose alias changed, even only partially, joins the
repair batch, because the new state only takes effect after a reboot.
"""

import time
from collections.abc import Mapping
from dataclasses import dataclass, field

from aliasync.clients.base import ComputeClient
from aliasync.exceptions import CollisionUnresolved, MutationError
from aliasync.models.enums import MutationOutcome, PlanAction
from aliasync.models.node import is_assigned
from aliasync.models.plan import MutationRecord, PlanEntry, RepairBatch
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ConvergeResult:
    """Records of every attempted mutation plus the resulting repair batch."""

    records: list[MutationRecord] = field(default_factory=list)
    errors: list[MutationError] = field(default_factory=list)
    batch: RepairBatch = field(default_factory=RepairBatch)

    @property
    def attempted(self) -> int:
        return len(self.records)


def converge(
    actions: dict[str, PlanEntry],
    compute: ComputeClient,
    deadline: float | None = None,
    clock=time.monotonic,
) -> ConvergeResult:
    """
    Apply the mutations for every actionable entry.

    Args:
        actions: Node name -> CONVERGE or CLEAR_ONLY entry.
        compute: Cloud client used for the mutations.
        deadline: Absolute clock() value after which no further node is
            started. Nodes left over are recorded as SKIPPED.
        clock: Monotonic clock (injectable for tests).

    Returns:
        ConvergeResult with one record per node and the repair batch.
    """
    result = ConvergeResult()

    for name, entry in actions.items():
        if entry.action not in (PlanAction.CLEAR_ONLY, PlanAction.CONVERGE):
            continue

        if deadline is not None and clock() >= deadline:
            record, error = _skip(name, entry)
        elif entry.action == PlanAction.CLEAR_ONLY:
            record, error = _clear(name, entry, compute)
        else:
            record, error = _converge(name, entry, compute)

        result.records.append(record)
        if error is not None:
            result.errors.append(error)
        if record.mutated:
            result.batch.records.append(record)

    if result.records:
        logger.info(
            f"Applied {len(result.batch)}/{result.attempted} alias mutation(s), "
            f"{len(result.errors)} failure(s)"
        )
    return result


# =============================================================================
# Per-node Mutations
# =============================================================================


def _skip(name: str, entry: PlanEntry) -> tuple[MutationRecord, MutationError]:
    logger.warning(f"Pass deadline reached, not updating {name}")
    error = MutationError("pass deadline exceeded, not attempted", name)
    if entry.collision:
        error = CollisionUnresolved(
            "pass deadline exceeded, not attempted", name, entry.current or ""
        )
    return _record(name, entry, entry.current, MutationOutcome.SKIPPED, error), error


def _clear(
    name: str, entry: PlanEntry, compute: ComputeClient
) -> tuple[MutationRecord, MutationError | None]:
    logger.info(f"Clearing alias of {name} (was '{entry.current}', {entry.reason})")
    try:
        compute.set_node_alias(name, None)
    except MutationError as e:
        error = e
        if entry.collision:
            error = CollisionUnresolved(str(e), name, entry.current or "")
            logger.error(
                f"Collision on {entry.current} NOT resolved for {name}: {e}. "
                "Duplicate routes remain active."
            )
        else:
            logger.warning(str(e))
        return _record(name, entry, entry.current, MutationOutcome.FAILED, error), error

    return _record(name, entry, None, MutationOutcome.APPLIED), None


def _converge(
    name: str, entry: PlanEntry, compute: ComputeClient
) -> tuple[MutationRecord, MutationError | None]:
    logger.info(
        f"Refining alias of {name}: current='{entry.current or ''}', "
        f"target='{entry.target}'"
    )

    if entry.current:
        try:
            compute.set_node_alias(name, None)
        except MutationError as e:
            logger.warning(str(e))
            return _record(name, entry, entry.current, MutationOutcome.FAILED, e), e

    try:
        compute.set_node_alias(name, entry.target)
    except MutationError as e:
        logger.warning(str(e))
        # The old alias is already gone, so the node still needs a reboot.
        outcome = MutationOutcome.PARTIAL if entry.current else MutationOutcome.FAILED
        return _record(name, entry, None, outcome, e), e

    return _record(name, entry, entry.target, MutationOutcome.APPLIED), None


def _record(
    name: str,
    entry: PlanEntry,
    new_alias: str | None,
    outcome: MutationOutcome,
    error: Exception | None = None,
) -> MutationRecord:
    if outcome in (MutationOutcome.FAILED, MutationOutcome.SKIPPED):
        new_alias = entry.current
    return MutationRecord(
        node=name,
        action=entry.action,
        old_alias=entry.current,
        new_alias=new_alias,
        outcome=outcome,
        error=str(error) if error else None,
        collision=entry.collision,
    )


def clear_aliases(aliases: Mapping[str, str | None], compute: ComputeClient) -> ConvergeResult:
    """
    Clear every assigned alias in an inventory snapshot.

    No reboot is issued; the cleared nodes lose pod routing until the next
    reconciliation pass restores their alias and repairs them.
    """
    actions = {
        name: PlanEntry(action=PlanAction.CLEAR_ONLY, current=alias, reason="reset")
        for name, alias in sorted(aliases.items())
        if is_assigned(alias)
    }
    if not actions:
        logger.info("No alias ranges to clear.")
    return converge(actions, compute)
