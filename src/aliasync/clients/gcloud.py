"""
Compute Engine client built on the gcloud CLI.

The bastion and operator workstations both carry an authenticated gcloud
installation, so every cloud call shells out to it. Output is requested as
JSON (or a single value) and parsed here.

Implements InventoryClient and ComputeClient.
"""

import ipaddress
import json
import shlex
import subprocess

from aliasync.exceptions import (
    AddressResolutionError,
    FetchError,
    MutationError,
    RebootError,
)
from aliasync.models.node import NetworkScope
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)


class GCloudError(Exception):
    """A gcloud invocation failed."""

    pass


# =============================================================================
# CLI Runner
# =============================================================================


class GCloudCLI:
    """Thin runner for gcloud commands bound to one project."""

    def __init__(self, project: str, binary: str = "gcloud", timeout: float = 120):
        self.project = project
        self.binary = binary
        self.timeout = timeout

    def run(self, args: list[str], timeout: float | None = None) -> str:
        """
        Run a gcloud command and return its stdout.

        Raises:
            GCloudError: If gcloud is missing, times out, or exits non-zero.
        """
        cmd = [self.binary, *args, f"--project={self.project}", "--quiet"]
        timeout = timeout or self.timeout
        logger.trace(f"Running: {shlex.join(cmd)}")

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                check=True,
            )
        except FileNotFoundError as e:
            raise GCloudError(f"{self.binary} not found") from e
        except subprocess.TimeoutExpired as e:
            raise GCloudError(f"timed out after {timeout:.0f}s") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or "").strip()
            raise GCloudError(stderr or f"exit code {e.returncode}") from e

        return proc.stdout


# =============================================================================
# Instances
# =============================================================================


class GCloudInstances:
    """
    Alias inventory and mutations for instances in one zone.

    Args:
        cli: gcloud runner.
        zone: Zone of the instances.
        interface: Network interface carrying the pod alias.
        alias_range_name: Secondary range name used for the alias.
    """

    def __init__(
        self,
        cli: GCloudCLI,
        zone: str,
        interface: str = "nic0",
        alias_range_name: str = "pods",
    ):
        self.cli = cli
        self.zone = zone
        self.interface = interface
        self.alias_range_name = alias_range_name

    # -------------------------------------------------------------------------
    # Inventory
    # -------------------------------------------------------------------------

    def list_node_aliases(self, scope: NetworkScope) -> dict[str, str | None]:
        """List the alias range of every instance in a scope."""
        filters = [f"zone:({scope.zone})", f"networkInterfaces.network:({scope.network})"]
        if scope.name_prefix:
            filters.insert(0, f"name:({scope.name_prefix}*)")

        try:
            output = self.cli.run(
                [
                    "compute",
                    "instances",
                    "list",
                    f"--filter={' AND '.join(filters)}",
                    "--format=json",
                ]
            )
            instances = json.loads(output or "[]")
        except GCloudError as e:
            raise FetchError(str(e), "inventory") from e
        except json.JSONDecodeError as e:
            raise FetchError(f"unparseable instance list: {e}", "inventory") from e

        aliases = {}
        for instance in instances:
            name = instance.get("name")
            if not name:
                continue
            if scope.name_prefix and not name.startswith(scope.name_prefix):
                continue

            nic = self._primary_interface(instance)
            if nic is None or _last_segment(nic.get("network", "")) != scope.network:
                continue

            aliases[name] = self._alias_of(nic)

        return aliases

    def _primary_interface(self, instance: dict) -> dict | None:
        interfaces = instance.get("networkInterfaces") or []
        for nic in interfaces:
            if nic.get("name") == self.interface:
                return nic
        return interfaces[0] if interfaces else None

    def _alias_of(self, nic: dict) -> str | None:
        ranges = nic.get("aliasIpRanges") or []
        for alias in ranges:
            if alias.get("subnetworkRangeName") == self.alias_range_name:
                return alias.get("ipCidrRange")
        return ranges[0].get("ipCidrRange") if ranges else None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def set_node_alias(self, node: str, cidr: str | None) -> None:
        """Set (or clear, with None) the pod alias of a node."""
        aliases = f"{self.alias_range_name}:{cidr}" if cidr else ""
        try:
            self.cli.run(
                [
                    "compute",
                    "instances",
                    "network-interfaces",
                    "update",
                    node,
                    f"--zone={self.zone}",
                    f"--network-interface={self.interface}",
                    f"--aliases={aliases}",
                ]
            )
        except GCloudError as e:
            raise MutationError(str(e), node) from e

    def reboot_nodes(self, nodes: list[str]) -> None:
        """Hard-reset every node with a single request."""
        if not nodes:
            return
        try:
            self.cli.run(["compute", "instances", "reset", *nodes, f"--zone={self.zone}"])
        except GCloudError as e:
            raise RebootError(str(e), nodes) from e

    def resolve_primary_address(self, node: str) -> str:
        """Return the primary internal IP of a node."""
        try:
            output = self.cli.run(
                [
                    "compute",
                    "instances",
                    "describe",
                    node,
                    f"--zone={self.zone}",
                    "--format=value(networkInterfaces[0].networkIP)",
                ],
                timeout=30,
            )
        except GCloudError as e:
            raise AddressResolutionError(str(e), node) from e

        address = output.strip()
        try:
            ipaddress.ip_address(address)
        except ValueError as e:
            raise AddressResolutionError(f"invalid address {address!r}", node) from e
        return address


def _last_segment(url: str) -> str:
    return url.rstrip("/").rsplit("/", 1)[-1]
