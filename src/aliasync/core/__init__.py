"""
Reconciliation pipeline.

Stages of one pass, in order:
- Readers: fetch cloud aliases and cluster pod ranges
- Diff engine: per-node plan
- Collision detector: duplicate aliases across the network
- Converger: apply alias mutations
- Repair orchestrator: reboot the mutated batch and wait for recovery
"""

from aliasync.core.collisions import find_collisions, plan_actions
from aliasync.core.converger import ConvergeResult, clear_aliases, converge
from aliasync.core.diff import build_plan
from aliasync.core.readers import merge_node_states, read_desired_state, read_inventory
from aliasync.core.reconcile import PassResult, preview, reconcile
from aliasync.core.repair import RepairOrchestrator

__all__ = [
    "ConvergeResult",
    "PassResult",
    "RepairOrchestrator",
    "build_plan",
    "clear_aliases",
    "converge",
    "find_collisions",
    "merge_node_states",
    "plan_actions",
    "preview",
    "read_desired_state",
    "read_inventory",
    "reconcile",
]
