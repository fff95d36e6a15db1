"""
Repair orchestrator: batch reboot and recovery verification.

Changing the alias of a running node does not update its existing DHCP lease
and routes; only a reboot applies the new assignment. All nodes mutated in a
pass are therefore rebooted together with one bulk request, then polled until
every one of them answers again or the recovery window closes.

State machine:
    IDLE -> BATCHING -> IDLE                      (nothing mutated)
    BATCHING -> REBOOTING -> AWAITING_RECOVERY -> RECOVERED
    REBOOTING -> RECOVERY_FAILED                  (reboot request rejected)
    AWAITING_RECOVERY -> RECOVERY_FAILED          (deadline, unresolved address)
"""

import time

from aliasync.clients.base import ComputeClient, Prober
from aliasync.exceptions import AddressResolutionError, RebootError, RecoveryTimeout
from aliasync.models.enums import RepairState
from aliasync.models.plan import RepairBatch, RepairResult
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_RECOVERY_TIMEOUT = 300


class RepairOrchestrator:
    """
    Drives one repair batch through reboot and recovery.

    Args:
        compute: Cloud client for the reboot and address lookups.
        prober: Reachability probe.
        timeout: Recovery window in seconds.
        poll_interval: Pause between probe rounds.
        probe_timeout: Per-address probe timeout.
        clock: Monotonic clock (injectable for tests).
        sleep: Sleep function (injectable for tests).
    """

    def __init__(
        self,
        compute: ComputeClient,
        prober: Prober,
        timeout: float = DEFAULT_RECOVERY_TIMEOUT,
        poll_interval: float = 5,
        probe_timeout: float = 1,
        clock=time.monotonic,
        sleep=time.sleep,
    ):
        self.compute = compute
        self.prober = prober
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.probe_timeout = probe_timeout
        self.clock = clock
        self.sleep = sleep
        self.state = RepairState.IDLE

    def _enter(self, state: RepairState) -> None:
        logger.debug(f"Repair state: {self.state.value} -> {state.value}")
        self.state = state

    # =========================================================================
    # Entry Point
    # =========================================================================

    def run(self, batch: RepairBatch, deadline: float | None = None) -> RepairResult:
        """
        Reboot the batch and wait for it to recover.

        Args:
            batch: Nodes mutated in this pass.
            deadline: Absolute clock() value bounding the whole pass. The
                recovery window is clipped to it.

        Returns:
            RepairResult ending in IDLE, RECOVERED or RECOVERY_FAILED.
        """
        self._enter(RepairState.BATCHING)
        members = list(dict.fromkeys(batch.members))

        if not members:
            self._enter(RepairState.IDLE)
            return RepairResult(state=RepairState.IDLE)

        started = self.clock()

        # --- Reboot ---
        self._enter(RepairState.REBOOTING)
        logger.warning(f"Safe repair triggered for: {' '.join(members)}")
        logger.warning("Broadcasting REBOOT to restore connectivity...")
        try:
            self.compute.reboot_nodes(members)
        except RebootError as e:
            logger.error(f"{e}. Nodes keep a changed alias without a reboot.")
            self._enter(RepairState.RECOVERY_FAILED)
            return RepairResult(
                state=RepairState.RECOVERY_FAILED,
                unreachable=members,
                error=str(e),
                elapsed_seconds=self.clock() - started,
            )

        # --- Recovery ---
        self._enter(RepairState.AWAITING_RECOVERY)
        window_end = started + self.timeout
        if deadline is not None:
            window_end = min(window_end, deadline)
        batch.deadline = window_end

        unresolved = self._resolve_addresses(batch, members)
        recovered, unreachable = self._await_recovery(batch.addresses, window_end)

        result = RepairResult(
            state=RepairState.RECOVERED,
            rebooted=members,
            recovered=recovered,
            unreachable=unreachable,
            unresolved=unresolved,
            elapsed_seconds=self.clock() - started,
        )

        if unreachable or unresolved:
            failed = unreachable + unresolved
            error = RecoveryTimeout(failed, window_end - started)
            logger.error(
                f"{error}. Treat the cluster as degraded and do not continue "
                "with dependent operations."
            )
            result.state = RepairState.RECOVERY_FAILED
            result.error = str(error)
        else:
            logger.info(
                f"All {len(recovered)} node(s) recovered in "
                f"{result.elapsed_seconds:.0f}s"
            )

        self._enter(result.state)
        return result

    # =========================================================================
    # Helpers
    # =========================================================================

    def _resolve_addresses(self, batch: RepairBatch, members: list[str]) -> list[str]:
        """Resolve primary addresses; unresolved nodes count as not recovered."""
        unresolved = []
        for node in members:
            try:
                batch.addresses[node] = self.compute.resolve_primary_address(node)
            except AddressResolutionError as e:
                logger.warning(f"{e}. It counts as not recovered.")
                unresolved.append(node)
        return unresolved

    def _await_recovery(
        self, addresses: dict[str, str], window_end: float
    ) -> tuple[list[str], list[str]]:
        """Probe every pending address once per round until all answer."""
        pending = dict(addresses)
        recovered = []

        if not pending:
            return recovered, []

        logger.info(
            f"Waiting for nodes to recover (timeout: "
            f"{max(0.0, window_end - self.clock()):.0f}s)..."
        )

        # Every node gets one probe; later rounds stop as soon as the window
        # closes, even halfway through the pending nodes.
        first_round = True
        while True:
            for node, ip in list(pending.items()):
                if not first_round and self.clock() >= window_end:
                    break
                if self.prober.is_reachable(ip, self.probe_timeout):
                    logger.info(f"Node {node} ({ip}) is reachable")
                    recovered.append(node)
                    del pending[node]
            first_round = False

            if not pending:
                break

            now = self.clock()
            if now >= window_end:
                break

            logger.info(
                f"Waiting for {len(pending)} node(s): {', '.join(sorted(pending))}"
            )
            self.sleep(min(self.poll_interval, window_end - now))

        return recovered, sorted(pending)
