"""
Inventory and desired-state readers.

Turn raw client results into read-only snapshots and merge them into the node
set the diff engine works on.
"""

from typing import Mapping

from aliasync.clients.base import ClusterClient, InventoryClient
from aliasync.exceptions import FetchError
from aliasync.models.node import NetworkScope, NodeSet, NodeState, freeze, normalize_range
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# Readers
# =============================================================================


def read_inventory(
    client: InventoryClient, scope: NetworkScope
) -> Mapping[str, str | None]:
    """
    Read the alias range of every instance in a scope.

    An empty result is valid and means the scope has no instances.

    Raises:
        FetchError: If the cloud inventory cannot be queried.
    """
    logger.debug(f"Fetching alias ranges for {scope.describe()}")
    raw = _call(client.list_node_aliases, "inventory", scope)

    aliases = {}
    for name, alias in raw.items():
        if not name:
            continue
        aliases[name] = normalize_range(alias)

    if not aliases:
        logger.info(f"No instances found in {scope.describe()}")
    else:
        with_alias = sum(1 for alias in aliases.values() if alias)
        logger.debug(f"Inventory: {len(aliases)} instance(s), {with_alias} with alias")

    return freeze(aliases)


def read_desired_state(
    client: ClusterClient, deadline: float | None = None
) -> Mapping[str, str | None]:
    """
    Read the pod range of every node registered in the cluster.

    The deadline (absolute monotonic time) bounds the wait for the API server.

    Nodes whose range is not assigned yet map to None; nodes that are not
    registered are absent from the result.

    Raises:
        FetchError: If the cluster API cannot be queried.
    """
    logger.debug("Fetching pod ranges from the cluster")
    raw = _call(client.list_node_pod_ranges, "cluster", deadline)

    ranges = {}
    for name, pod_range in raw.items():
        if not name:
            continue
        ranges[name] = normalize_range(pod_range)

    unassigned = sorted(name for name, value in ranges.items() if value is None)
    if unassigned:
        logger.debug(f"Nodes without pod range: {', '.join(unassigned)}")

    return freeze(ranges)


def merge_node_states(
    aliases: Mapping[str, str | None],
    pod_ranges: Mapping[str, str | None],
    zone: str = "",
) -> NodeSet:
    """
    Build the node set keyed by the cloud inventory.

    Cluster nodes with no instance in scope cannot be mutated here and are
    only reported.
    """
    nodes = {
        name: NodeState(
            name=name,
            desired_range=pod_ranges.get(name),
            actual_alias=alias,
            zone=zone,
            registered=name in pod_ranges,
        )
        for name, alias in aliases.items()
    }

    outside = sorted(set(pod_ranges) - set(aliases))
    if outside:
        logger.info(
            f"Skipping cluster node(s) without an instance in scope: {', '.join(outside)}"
        )

    return freeze(nodes)


# =============================================================================
# Helpers
# =============================================================================


def _call(func, source: str, *args) -> dict:
    """Invoke a client read and validate the shape of its result."""
    try:
        result = func(*args)
    except FetchError:
        raise
    except Exception as e:
        raise FetchError(str(e), source) from e

    if result is None:
        raise FetchError("client returned no data", source)
    if not isinstance(result, Mapping):
        raise FetchError(f"unexpected result type {type(result).__name__}", source)
    return dict(result)
