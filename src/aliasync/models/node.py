"""
Node state snapshots shared between pipeline stages.

Every stage receives read-only snapshots and returns new ones; nothing in the
pipeline updates a shared map in place.
"""

import ipaddress
from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping

# Values reported by the control plane when a node has no pod range
UNSET_SENTINELS = frozenset({"", "none", "<none>"})


# =============================================================================
# Scope
# =============================================================================


@dataclass(frozen=True)
class NetworkScope:
    """
    Inventory scope for a cloud query.

    Attributes:
        project: Cloud project.
        zone: Zone of the instances.
        network: VPC name the primary interface must be attached to.
        name_prefix: Instance name prefix (None = every instance in the VPC).
    """

    project: str
    zone: str
    network: str
    name_prefix: str | None = None

    def describe(self) -> str:
        prefix = f"{self.name_prefix}*" if self.name_prefix else "*"
        return f"{prefix} in {self.project}/{self.zone} (vpc {self.network})"


# =============================================================================
# Node State
# =============================================================================


@dataclass(frozen=True)
class NodeState:
    """
    Cloud and cluster view of one node at fetch time.

    Attributes:
        name: Instance name, identical to the Kubernetes node name.
        desired_range: Pod CIDR assigned by the control plane (None = unset).
        actual_alias: Alias range on the primary interface (None = no alias).
        zone: Instance zone.
        registered: Whether the node exists in the cluster at all. A node
            missing from the cluster is never treated as "range unset".
    """

    name: str
    desired_range: str | None
    actual_alias: str | None
    zone: str = ""
    registered: bool = True


NodeSet = Mapping[str, NodeState]


def freeze(mapping: dict) -> Mapping:
    """Wrap a dict into a read-only view."""
    return MappingProxyType(dict(mapping))


# =============================================================================
# Range Helpers
# =============================================================================


def normalize_range(value: str | None) -> str | None:
    """Strip a reported range and map unset sentinels to None."""
    if value is None:
        return None
    value = value.strip()
    if value.lower() in UNSET_SENTINELS:
        return None
    return value


def is_assigned(value: str | None) -> bool:
    """Whether a range value denotes an actual CIDR."""
    return normalize_range(value) is not None


def same_range(a: str | None, b: str | None) -> bool:
    """
    Compare two ranges, ignoring formatting differences.

    "10.200.1.0/24" and "10.200.1.5/24" denote the same block. Values that are
    not valid CIDRs fall back to plain string comparison.
    """
    a, b = normalize_range(a), normalize_range(b)
    if a is None or b is None:
        return a is b
    try:
        return ipaddress.ip_network(a, strict=False) == ipaddress.ip_network(
            b, strict=False
        )
    except ValueError:
        return a == b
