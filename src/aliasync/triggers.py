"""
Pass triggers.

Two entry points run the same reconciliation pass:

    - run_on_demand: operator-initiated, bounded by an optional timeout,
      failures propagate to the caller.
    - run_unattended: periodic, no operator present; failures are logged
      and the next invocation simply tries again.

run_reset clears every alias in the cluster without a reboot, for operators
rebuilding alias state by hand.
"""

import time
import uuid

from aliasync.clients.base import SyncClients
from aliasync.config import SyncConfig
from aliasync.core.converger import ConvergeResult, clear_aliases
from aliasync.core.readers import read_inventory
from aliasync.core.reconcile import PassResult, reconcile, record_audit
from aliasync.exceptions import SyncError
from aliasync.models.enums import PassOutcome
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


def run_on_demand(
    cfg: SyncConfig,
    clients: SyncClients,
    timeout: float | None = None,
    audit=None,
) -> PassResult:
    """
    Run one pass for an operator.

    Args:
        cfg: Sync configuration.
        clients: Cloud, cluster and probe clients.
        timeout: Overall bound on the pass in seconds (None = unbounded).
        audit: Optional audit sink.

    Raises:
        FetchError: If inventory or cluster state cannot be read.
        PassDeadlineExceeded: If the timeout expires before mutations start.
    """
    deadline = time.monotonic() + timeout if timeout else None
    return reconcile(cfg, clients, deadline=deadline, audit=audit)


def run_unattended(
    cfg: SyncConfig,
    clients: SyncClients,
    audit=None,
) -> PassResult | None:
    """
    Run one pass with no operator present.

    Never raises SyncError: a failed pass is logged and retried by the next
    scheduled invocation.

    Returns:
        The PassResult, or None when the pass aborted before completing.
    """
    logger.info(f"Unattended alias sync starting for '{cfg.CLUSTER_NAME}'")

    try:
        result = reconcile(cfg, clients, audit=audit)
    except SyncError as e:
        logger.error(f"Unattended alias sync aborted: {e}")
        return None

    if result.outcome == PassOutcome.RECOVERY_FAILED:
        logger.error(
            f"Unattended alias sync {result.pass_id}: nodes did not recover "
            f"({result.repair.error if result.repair else 'unknown'})"
        )
    elif result.outcome == PassOutcome.PARTIAL_FAILURE:
        logger.warning(
            f"Unattended alias sync {result.pass_id}: "
            f"{len(result.errors)} node(s) failed, will retry next run"
        )
    else:
        logger.info(f"Unattended alias sync {result.pass_id}: {result.outcome.value}")

    return result


def run_reset(cfg: SyncConfig, clients: SyncClients, audit=None) -> ConvergeResult | None:
    """
    Clear every alias range in the cluster scope without rebooting.

    Returns:
        The ConvergeResult, or None when native routing is not enabled.

    Raises:
        FetchError: If the inventory cannot be read.
    """
    if not cfg.is_native_routing():
        logger.info("Skipping alias reset: native routing not enabled")
        return None

    logger.info(f"Resetting alias ranges for cluster '{cfg.CLUSTER_NAME}'...")
    aliases = read_inventory(clients.inventory, cfg.cluster_scope())
    result = clear_aliases(aliases, clients.compute)

    record_audit(audit, result.records, f"reset-{uuid.uuid4().hex[:6]}")
    if result.batch.members:
        logger.warning(
            f"Cleared aliases on {len(result.batch)} node(s) without reboot; "
            "run a sync to restore pod routing."
        )
    return result
