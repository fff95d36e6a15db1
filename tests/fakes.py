"""In-memory implementations of the client protocols."""

from aliasync.clients.base import SyncClients
from aliasync.exceptions import (
    AddressResolutionError,
    FetchError,
    MutationError,
    RebootError,
)
from aliasync.models.node import NetworkScope


class FakeClock:
    """Monotonic clock advanced only by sleep()."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeInstance:
    def __init__(self, name: str, alias: str | None, network: str = "vpc", ip: str = ""):
        self.name = name
        self.alias = alias
        self.network = network
        self.ip = ip


class FakeCloud:
    """
    Inventory and compute client over a dict of instances.

    Records every call so tests can assert on mutations and reboots.
    """

    def __init__(self, instances: list[FakeInstance] | None = None):
        self.instances = {i.name: i for i in instances or []}
        self.calls: list[tuple] = []
        self.fail_set: set[str] = set()
        self.fail_clear: set[str] = set()
        self.fail_list = False
        self.fail_reboot = False
        self.unresolvable: set[str] = set()
        self.reboots: list[list[str]] = []

    @classmethod
    def with_aliases(cls, aliases: dict[str, str | None], network: str = "vpc") -> "FakeCloud":
        return cls(
            [
                FakeInstance(name, alias, network=network, ip=f"10.0.0.{i + 10}")
                for i, (name, alias) in enumerate(sorted(aliases.items()))
            ]
        )

    def add(self, name: str, alias: str | None, network: str = "vpc", ip: str = "") -> None:
        self.instances[name] = FakeInstance(name, alias, network, ip or f"10.0.1.{len(self.instances) + 10}")

    def aliases(self) -> dict[str, str | None]:
        return {name: inst.alias for name, inst in self.instances.items()}

    # InventoryClient

    def list_node_aliases(self, scope: NetworkScope) -> dict[str, str | None]:
        self.calls.append(("list", scope))
        if self.fail_list:
            raise FetchError("quota exceeded", "inventory")
        return {
            name: inst.alias
            for name, inst in self.instances.items()
            if inst.network == scope.network
            and (scope.name_prefix is None or name.startswith(scope.name_prefix))
        }

    # ComputeClient

    def set_node_alias(self, node: str, cidr: str | None) -> None:
        self.calls.append(("set", node, cidr))
        if cidr is None and node in self.fail_clear:
            raise MutationError("permission denied", node)
        if cidr is not None and node in self.fail_set:
            raise MutationError("range in use", node)
        self.instances[node].alias = cidr

    def reboot_nodes(self, nodes: list[str]) -> None:
        self.calls.append(("reboot", list(nodes)))
        if self.fail_reboot:
            raise RebootError("operation rejected", nodes)
        self.reboots.append(list(nodes))

    def resolve_primary_address(self, node: str) -> str:
        self.calls.append(("resolve", node))
        if node in self.unresolvable:
            raise AddressResolutionError("instance not found", node)
        return self.instances[node].ip

    @property
    def mutations(self) -> list[tuple]:
        return [call for call in self.calls if call[0] == "set"]


class FakeCluster:
    def __init__(self, pod_ranges: dict[str, str | None] | None = None, fail: bool = False):
        self.pod_ranges = dict(pod_ranges or {})
        self.fail = fail
        self.calls = 0
        self.deadlines: list[float | None] = []

    def list_node_pod_ranges(self, deadline: float | None = None) -> dict[str, str | None]:
        self.calls += 1
        self.deadlines.append(deadline)
        if self.fail:
            raise FetchError("connection refused", "cluster")
        return dict(self.pod_ranges)


class FakeProber:
    """
    Reachability by address.

    `down` addresses never answer; `recover_after` maps an address to the
    number of probes it fails before answering.
    """

    def __init__(self, down: set[str] | None = None, recover_after: dict[str, int] | None = None):
        self.down = set(down or ())
        self.recover_after = dict(recover_after or {})
        self.probes: list[str] = []

    def is_reachable(self, ip: str, timeout: float) -> bool:
        self.probes.append(ip)
        if ip in self.down:
            return False
        remaining = self.recover_after.get(ip, 0)
        if remaining > 0:
            self.recover_after[ip] = remaining - 1
            return False
        return True


def make_clients(cloud: FakeCloud, cluster: FakeCluster, prober: FakeProber | None = None) -> SyncClients:
    return SyncClients(
        inventory=cloud,
        cluster=cluster,
        compute=cloud,
        prober=prober or FakeProber(),
    )
