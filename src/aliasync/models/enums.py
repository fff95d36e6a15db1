"""
Enumeration types for aliasync.

This module defines the enumeration types shared by the reconciliation
pipeline, the triggers and the CLI for consistent status reporting.
"""

from enum import Enum


# =============================================================================
# Reconciliation Enums
# =============================================================================


class PlanAction(str, Enum):
    """
    Per-node action decided for one reconciliation pass.

    - CONVERGE: set the alias to the desired range (clearing any old one first)
    - CLEAR_ONLY: remove the alias without setting a new one (collisions)
    - PRESERVE_UNSAFE: alias kept because the desired range is not known yet
    - NOOP: nothing to do
    """

    CONVERGE = "converge"
    CLEAR_ONLY = "clear_only"
    PRESERVE_UNSAFE = "preserve_unsafe"
    NOOP = "noop"


class MutationOutcome(str, Enum):
    """Result of a single node's cloud mutation."""

    APPLIED = "applied"  # Alias now equals the intended value
    PARTIAL = "partial"  # Old alias cleared, new one failed to apply
    FAILED = "failed"  # Nothing changed on the node
    SKIPPED = "skipped"  # Not attempted, the pass deadline had passed


class RepairState(str, Enum):
    """
    Repair orchestrator state.

    State transitions:
        IDLE -> BATCHING -> IDLE (empty batch)
        BATCHING -> REBOOTING -> AWAITING_RECOVERY -> RECOVERED
        REBOOTING/AWAITING_RECOVERY -> RECOVERY_FAILED
    """

    IDLE = "idle"
    BATCHING = "batching"
    REBOOTING = "rebooting"
    AWAITING_RECOVERY = "awaiting_recovery"
    RECOVERED = "recovered"
    RECOVERY_FAILED = "recovery_failed"


class PassOutcome(str, Enum):
    """Outcome of a whole reconciliation pass as reported to the trigger."""

    CONVERGED = "converged"
    NOOP_NEEDED = "noop_needed"
    PARTIAL_FAILURE = "partial_failure"
    RECOVERY_FAILED = "recovery_failed"


# =============================================================================
# Configuration Enums
# =============================================================================


class RoutingMode(str, Enum):
    """
    Cluster pod routing mode.

    Alias reconciliation is only active in NATIVE mode, where pod traffic is
    routed by the cloud network through per-node alias ranges.
    """

    NATIVE = "native"
    TUNNEL = "tunnel"


class LogLevel(str, Enum):
    """
    Logging verbosity levels for aliasync.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
