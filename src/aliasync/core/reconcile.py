"""
Reconciliation pass.

One routine shared by the on-demand and the unattended triggers:

    fetch -> diff -> collision scan -> converge -> repair

The pass is sequential. Fetch failures abort it before any mutation; single
node mutation failures are recorded and the pass continues; a batch that does
not recover fails the pass.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

import peewee

from aliasync.clients.base import SyncClients
from aliasync.config import SyncConfig
from aliasync.core.collisions import find_collisions, plan_actions
from aliasync.core.converger import converge
from aliasync.core.diff import build_plan
from aliasync.core.readers import merge_node_states, read_desired_state, read_inventory
from aliasync.core.repair import RepairOrchestrator
from aliasync.exceptions import MutationError, PassDeadlineExceeded, RecoveryTimeout
from aliasync.models.enums import PassOutcome, RoutingMode
from aliasync.models.plan import (
    CollisionGroup,
    MutationRecord,
    PlanEntry,
    ReconciliationPlan,
    RepairResult,
)
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Pass Result
# =============================================================================


@dataclass
class PassResult:
    """Everything one pass decided and did."""

    pass_id: str
    outcome: PassOutcome = PassOutcome.NOOP_NEEDED
    plan: ReconciliationPlan | None = None
    collisions: list[CollisionGroup] = field(default_factory=list)
    records: list[MutationRecord] = field(default_factory=list)
    errors: list[MutationError] = field(default_factory=list)
    repair: RepairResult | None = None
    skipped_reason: str | None = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime | None = None

    @property
    def mutated(self) -> list[str]:
        return [record.node for record in self.records if record.mutated]

    @property
    def ok(self) -> bool:
        return self.outcome in (PassOutcome.CONVERGED, PassOutcome.NOOP_NEEDED)

    def raise_for_outcome(self) -> None:
        """
        Raise if the batch did not recover.

        Callers about to declare the cluster healthy must call this first.

        Raises:
            RecoveryTimeout: If the pass ended in RECOVERY_FAILED.
        """
        if self.outcome != PassOutcome.RECOVERY_FAILED:
            return
        repair = self.repair
        failed = (repair.unreachable + repair.unresolved) if repair else []
        timeout = repair.elapsed_seconds if repair else 0.0
        raise RecoveryTimeout(failed or self.mutated, timeout)


# =============================================================================
# Reconciliation
# =============================================================================


def reconcile(
    cfg: SyncConfig,
    clients: SyncClients,
    *,
    deadline: float | None = None,
    audit=None,
    clock=time.monotonic,
    sleep=time.sleep,
) -> PassResult:
    """
    Run one reconciliation pass.

    Args:
        cfg: Cluster identity, scopes and timings.
        clients: Cloud, cluster and probe clients.
        deadline: Absolute clock() value bounding the pass (None = no limit
            beyond the recovery window).
        audit: Optional sink with record(records, pass_id) for the audit log.
        clock: Monotonic clock (injectable for tests).
        sleep: Sleep function (injectable for tests).

    Returns:
        PassResult describing the outcome.

    Raises:
        FetchError: If inventory or cluster state cannot be read.
        PassDeadlineExceeded: If the deadline expires before mutations start.
    """
    result = PassResult(pass_id=uuid.uuid4().hex[:12])

    if not cfg.is_native_routing():
        result.skipped_reason = (
            "native routing not enabled "
            f"(ROUTING_MODE={RoutingMode(cfg.ROUTING_MODE).value})"
        )
        logger.info(f"Skipping alias sync: {result.skipped_reason}")
        return _finish(result)

    logger.info(
        f"Synchronizing alias ranges with pod ranges for cluster "
        f"'{cfg.CLUSTER_NAME}' (pass {result.pass_id})..."
    )

    actions = _plan(cfg, clients, result, deadline=deadline)

    if not actions:
        logger.info("All alias ranges are correct. No changes made.")
        return _finish(result)

    if deadline is not None and clock() >= deadline:
        raise PassDeadlineExceeded("convergence")

    # --- Converge ---
    converged = converge(actions, clients.compute, deadline=deadline, clock=clock)
    result.records = converged.records
    result.errors = converged.errors
    record_audit(audit, converged.records, result.pass_id)

    # --- Repair ---
    orchestrator = RepairOrchestrator(
        clients.compute,
        clients.prober,
        timeout=cfg.RECOVERY_TIMEOUT_SECONDS,
        poll_interval=cfg.RECOVERY_POLL_INTERVAL_SECONDS,
        probe_timeout=cfg.PROBE_TIMEOUT_SECONDS,
        clock=clock,
        sleep=sleep,
    )
    result.repair = orchestrator.run(converged.batch, deadline=deadline)

    if result.repair.failed:
        result.outcome = PassOutcome.RECOVERY_FAILED
        logger.error(
            "One or more nodes failed to recover after the alias repair. "
            "Aborting pass."
        )
        return _finish(result)

    if result.errors:
        result.outcome = PassOutcome.PARTIAL_FAILURE
        logger.warning(
            f"Alias sync finished with {len(result.errors)} failed node(s): "
            f"{', '.join(e.node for e in result.errors)}"
        )
    elif result.mutated:
        result.outcome = PassOutcome.CONVERGED

    if result.mutated:
        logger.info(
            f"Alias synchronization complete ({len(result.mutated)} update(s) "
            "with reboots)."
        )
        _settle(cfg.SETTLE_SECONDS, deadline, clock, sleep)

    return _finish(result)


def preview(cfg: SyncConfig, clients: SyncClients) -> tuple[PassResult, dict[str, PlanEntry]]:
    """
    Fetch, diff and scan for collisions without mutating anything.

    Returns:
        The PassResult (plan and collisions filled in) and the effective
        action set a pass would apply.

    Raises:
        FetchError: If inventory or cluster state cannot be read.
    """
    result = PassResult(pass_id=f"plan-{uuid.uuid4().hex[:7]}")
    if not cfg.is_native_routing():
        result.skipped_reason = "native routing not enabled"
        return _finish(result), {}

    actions = _plan(cfg, clients, result)
    return _finish(result), actions


def _plan(
    cfg: SyncConfig,
    clients: SyncClients,
    result: PassResult,
    deadline: float | None = None,
) -> dict[str, PlanEntry]:
    # --- Fetch (aborts the pass before any mutation) ---
    pod_ranges = read_desired_state(clients.cluster, deadline=deadline)
    aliases = read_inventory(clients.inventory, cfg.cluster_scope())
    wide_aliases = read_inventory(clients.inventory, cfg.network_scope())

    # --- Diff ---
    nodes = merge_node_states(aliases, pod_ranges, zone=cfg.ZONE)
    result.plan = build_plan(nodes)
    for warning in result.plan.warnings:
        logger.warning(warning)

    # --- Collisions ---
    result.collisions = find_collisions(wide_aliases)
    return plan_actions(result.plan, result.collisions)


def record_audit(audit, records: list[MutationRecord], pass_id: str) -> None:
    """Write mutation records; a database failure never stops the repair."""
    if audit is None or not records:
        return
    try:
        audit.record(records, pass_id)
    except peewee.PeeweeException as e:
        logger.error(f"Failed to write audit log for pass {pass_id}: {e}")


def _settle(seconds: float, deadline: float | None, clock, sleep) -> None:
    """Give the API server and etcd a moment after a repair."""
    if seconds <= 0:
        return
    if deadline is not None:
        seconds = min(seconds, max(0.0, deadline - clock()))
    if seconds > 0:
        sleep(seconds)


def _finish(result: PassResult) -> PassResult:
    result.finished_at = datetime.now()
    logger.info(f"Pass {result.pass_id} finished: {result.outcome.value}")
    return result
