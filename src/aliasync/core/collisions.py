"""
Alias collision detection.

Scans the wider network scope (every instance on the VPC in the zone, not
only this cluster) for alias ranges held by more than one node. Duplicate
ranges mean duplicate routes, so every member of a group is cleared, even a
node whose range matches the cluster's assignment.
"""

import ipaddress
from collections import defaultdict
from typing import Mapping

from aliasync.models.enums import PlanAction
from aliasync.models.plan import CollisionGroup, PlanEntry, ReconciliationPlan
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


def find_collisions(aliases: Mapping[str, str | None]) -> list[CollisionGroup]:
    """
    Group nodes that share an alias range.

    Args:
        aliases: Instance name -> alias range over the wider scope.

    Returns:
        One group per shared range, sorted by range; members sorted by name.
    """
    index: dict[str, list[str]] = defaultdict(list)
    for name, alias in aliases.items():
        if alias:
            index[_canonical(alias)].append(name)

    groups = [
        CollisionGroup(alias=alias, nodes=tuple(sorted(names)))
        for alias, names in sorted(index.items())
        if len(names) > 1
    ]

    for group in groups:
        logger.warning(
            f"COLLISION DETECTED: alias {group.alias} is used by "
            f"{', '.join(group.nodes)}"
        )
    return groups


def plan_actions(
    plan: ReconciliationPlan,
    collisions: list[CollisionGroup],
) -> dict[str, PlanEntry]:
    """
    Fold collision groups into the plan's mutations.

    Collision members become CLEAR_ONLY for this pass, replacing whatever the
    diff engine decided for them; the next pass converges them again from
    fresh inventory. Members outside the cluster are included.

    Returns:
        Node name -> entry, for nodes that need a cloud mutation.
    """
    actions = dict(plan.actionable())

    for group in collisions:
        for name in group.nodes:
            previous = actions.get(name) or plan.entries.get(name)
            if previous is not None and previous.action != PlanAction.NOOP:
                logger.info(
                    f"Collision on {group.alias} overrides {previous.action.value} "
                    f"for {name}"
                )
            actions[name] = PlanEntry(
                PlanAction.CLEAR_ONLY,
                current=group.alias,
                reason=f"collision on {group.alias}",
                collision=True,
            )

    return dict(sorted(actions.items()))


def _canonical(alias: str) -> str:
    try:
        return str(ipaddress.ip_network(alias, strict=False))
    except ValueError:
        return alias
