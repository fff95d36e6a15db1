"""
Diff engine: decide per-node alias actions.

build_plan() is a pure function of the node set. It never clears an alias
because the desired range is unknown; that case is preserved and reported.
"""

from aliasync.models.enums import PlanAction
from aliasync.models.node import NodeSet, NodeState, freeze, is_assigned, same_range
from aliasync.models.plan import PlanEntry, ReconciliationPlan


def build_plan(nodes: NodeSet) -> ReconciliationPlan:
    """
    Build the reconciliation plan for a node set.

    Rules, in order:
        1. alias set, range unset (node registered) -> PRESERVE_UNSAFE
        2. alias equals range -> NOOP
        3. alias differs from a set range -> CONVERGE(range)
        4. no alias, range set -> CONVERGE(range)
        5. anything else -> NOOP

    Args:
        nodes: Snapshot of node states.

    Returns:
        The immutable plan, with warnings for nodes whose alias is kept only
        because the cluster has not assigned a range yet.
    """
    entries = {}
    warnings = []

    for name in sorted(nodes):
        entry, warning = _decide(nodes[name])
        entries[name] = entry
        if warning:
            warnings.append(warning)

    return ReconciliationPlan(entries=freeze(entries), warnings=tuple(warnings))


def _decide(node: NodeState) -> tuple[PlanEntry, str | None]:
    alias = node.actual_alias if is_assigned(node.actual_alias) else None
    desired = node.desired_range if is_assigned(node.desired_range) else None

    if alias and desired is None:
        if node.registered:
            return (
                PlanEntry(
                    PlanAction.PRESERVE_UNSAFE,
                    current=alias,
                    reason="cluster reports no pod range",
                ),
                f"Node {node.name} has alias '{alias}' but the cluster reports no "
                "pod range (address management lagging). Preserving alias.",
            )
        return (
            PlanEntry(PlanAction.NOOP, current=alias, reason="not registered"),
            f"Node {node.name} has alias '{alias}' but is not registered in the "
            "cluster. Leaving it untouched.",
        )

    if alias and same_range(alias, desired):
        return PlanEntry(PlanAction.NOOP, current=alias, reason="in sync"), None

    if desired is not None:
        reason = "alias mismatch" if alias else "alias missing"
        return (
            PlanEntry(PlanAction.CONVERGE, target=desired, current=alias, reason=reason),
            None,
        )

    return PlanEntry(PlanAction.NOOP, current=alias, reason="nothing assigned"), None
