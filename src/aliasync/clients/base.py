"""
Client interfaces used by the reconciliation pipeline.

The pipeline only talks to these protocols, so it can run against the real
cloud and cluster clients or against in-memory fakes.

Error contract:
    - Read calls raise FetchError.
    - set_node_alias raises MutationError.
    - reboot_nodes raises RebootError.
    - resolve_primary_address raises AddressResolutionError.
    - is_reachable never raises; an unreachable or failed probe is False.
"""

from dataclasses import dataclass
from typing import Protocol

from aliasync.models.node import NetworkScope


class InventoryClient(Protocol):
    """Cloud inventory of alias ranges."""

    def list_node_aliases(self, scope: NetworkScope) -> dict[str, str | None]:
        """Return instance name -> alias range (None when no alias)."""
        ...


class ClusterClient(Protocol):
    """Cluster control plane view of pod ranges."""

    def list_node_pod_ranges(self, deadline: float | None = None) -> dict[str, str | None]:
        """
        Return node name -> pod CIDR (None when present but unassigned).

        Waiting for the control plane must end by the deadline (absolute
        time.monotonic() value, None = client default).
        """
        ...


class ComputeClient(Protocol):
    """Cloud mutations and instance lookups."""

    def set_node_alias(self, node: str, cidr: str | None) -> None:
        """Set the alias range of a node; None clears it."""
        ...

    def reboot_nodes(self, nodes: list[str]) -> None:
        """Reboot every node in one bulk request."""
        ...

    def resolve_primary_address(self, node: str) -> str:
        """Return the primary (non-alias) address of a node."""
        ...


class Prober(Protocol):
    """Reachability check for a node address."""

    def is_reachable(self, ip: str, timeout: float) -> bool: ...


@dataclass
class SyncClients:
    """Bundle of the clients one pass needs."""

    inventory: InventoryClient
    cluster: ClusterClient
    compute: ComputeClient
    prober: Prober
