"""Tests for aliasync/core/reconcile.py - one full reconciliation pass."""

import peewee
import pytest
from fakes import FakeCloud, FakeCluster, FakeProber, make_clients

from aliasync.core.reconcile import preview, reconcile
from aliasync.exceptions import FetchError, PassDeadlineExceeded, RecoveryTimeout
from aliasync.models.enums import (
    MutationOutcome,
    PassOutcome,
    PlanAction,
    RepairState,
    RoutingMode,
)


def _run(cfg, clients, clock, **kwargs):
    return reconcile(cfg, clients, clock=clock, sleep=clock.sleep, **kwargs)


class RecordingAudit:
    def __init__(self):
        self.calls = []

    def record(self, records, pass_id):
        self.calls.append((pass_id, list(records)))


class LockedAudit:
    def record(self, records, pass_id):
        raise peewee.OperationalError("database is locked")


class SlowCloud(FakeCloud):
    """Every alias update takes `seconds` on the given clock."""

    def __init__(self, clock, seconds, instances=None):
        super().__init__(instances)
        self.clock = clock
        self.seconds = seconds

    def set_node_alias(self, node, cidr):
        self.clock.sleep(self.seconds)
        super().set_node_alias(node, cidr)


class TestReconcile:
    """End-to-end passes against in-memory clients."""

    def test_converges_mismatch_and_reboots_it(self, cfg, clock):
        """worker-2 moves from 10.200.1.0/24 to 10.200.5.0/24 and is rebooted."""
        cloud = FakeCloud.with_aliases(
            {"talos-worker-1": "10.200.2.0/24", "talos-worker-2": "10.200.1.0/24"}
        )
        cluster = FakeCluster(
            {"talos-worker-1": "10.200.2.0/24", "talos-worker-2": "10.200.5.0/24"}
        )

        result = _run(cfg, make_clients(cloud, cluster), clock)

        assert result.outcome == PassOutcome.CONVERGED
        assert cloud.aliases()["talos-worker-2"] == "10.200.5.0/24"
        assert cloud.reboots == [["talos-worker-2"]]
        assert result.repair.state == RepairState.RECOVERED

    def test_second_pass_is_noop(self, cfg, clock):
        """A converged cluster needs nothing on the next pass."""
        cloud = FakeCloud.with_aliases({"talos-w-0": None, "talos-w-1": "10.1.9.0/24"})
        cluster = FakeCluster({"talos-w-0": "10.1.0.0/24", "talos-w-1": "10.1.1.0/24"})
        clients = make_clients(cloud, cluster)

        first = _run(cfg, clients, clock)
        calls_after_first = len(cloud.mutations)
        second = _run(cfg, clients, clock)

        assert first.outcome == PassOutcome.CONVERGED
        assert second.outcome == PassOutcome.NOOP_NEEDED
        assert len(cloud.mutations) == calls_after_first
        assert len(cloud.reboots) == 1
        assert second.repair is None

    def test_unset_pod_range_preserves_alias(self, cfg, clock):
        """cp-0 keeps 10.200.3.0/24 while the cluster has no range for it."""
        cloud = FakeCloud.with_aliases({"talos-cp-0": "10.200.3.0/24"})
        cluster = FakeCluster({"talos-cp-0": None})

        result = _run(cfg, make_clients(cloud, cluster), clock)

        assert result.outcome == PassOutcome.NOOP_NEEDED
        assert result.plan.entries["talos-cp-0"].action == PlanAction.PRESERVE_UNSAFE
        assert cloud.mutations == []
        assert cloud.reboots == []

    def test_node_missing_from_cluster_is_never_cleared(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-w-7": "10.200.7.0/24"})

        result = _run(cfg, make_clients(cloud, FakeCluster({})), clock)

        assert cloud.mutations == []
        assert result.outcome == PassOutcome.NOOP_NEEDED

    def test_collision_clears_every_member(self, cfg, clock):
        """worker-0 and worker-3 share 10.200.9.0/24; both are cleared and rebooted."""
        cloud = FakeCloud.with_aliases(
            {
                "talos-worker-0": "10.200.9.0/24",
                "talos-worker-3": "10.200.9.0/24",
            }
        )
        cluster = FakeCluster(
            {"talos-worker-0": "10.200.9.0/24", "talos-worker-3": "10.200.4.0/24"}
        )

        result = _run(cfg, make_clients(cloud, cluster), clock)

        assert [g.nodes for g in result.collisions] == [("talos-worker-0", "talos-worker-3")]
        assert cloud.aliases() == {"talos-worker-0": None, "talos-worker-3": None}
        assert cloud.reboots == [["talos-worker-0", "talos-worker-3"]]
        assert all(r.collision for r in result.records)

    def test_collision_with_instance_outside_cluster(self, cfg, clock):
        """The wider scan sees other instances on the VPC and clears them too."""
        cloud = FakeCloud.with_aliases({"talos-w-0": "10.200.9.0/24"})
        cloud.add("legacy-vm", "10.200.9.0/24")
        cluster = FakeCluster({"talos-w-0": "10.200.9.0/24"})

        _run(cfg, make_clients(cloud, cluster), clock)

        assert cloud.aliases()["legacy-vm"] is None
        assert cloud.reboots == [["legacy-vm", "talos-w-0"]]

    def test_only_mutated_nodes_are_rebooted(self, cfg, clock):
        """Two converge entries, five in-sync nodes: exactly two reboots."""
        aliases = {f"talos-w-{i}": f"10.1.{i}.0/24" for i in range(5)}
        aliases.update({"talos-w-5": None, "talos-w-6": "10.9.9.0/24"})
        ranges = {f"talos-w-{i}": f"10.1.{i}.0/24" for i in range(7)}
        cloud = FakeCloud.with_aliases(aliases)

        result = _run(cfg, make_clients(cloud, FakeCluster(ranges)), clock)

        assert result.plan.counts()["converge"] == 2
        assert result.plan.counts()["noop"] == 5
        assert cloud.reboots == [["talos-w-5", "talos-w-6"]]

    def test_partial_failure(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-a": None, "talos-b": None})
        cloud.fail_set.add("talos-a")
        cluster = FakeCluster({"talos-a": "10.1.0.0/24", "talos-b": "10.1.1.0/24"})

        result = _run(cfg, make_clients(cloud, cluster), clock)

        assert result.outcome == PassOutcome.PARTIAL_FAILURE
        assert [e.node for e in result.errors] == ["talos-a"]
        assert cloud.reboots == [["talos-b"]]
        assert not result.ok

    def test_recovery_failure_fails_pass(self, cfg, clock):
        """A node that never answers bounds the pass and fails it."""
        cloud = FakeCloud.with_aliases({"talos-a": None})
        prober = FakeProber(down={cloud.instances["talos-a"].ip})
        cluster = FakeCluster({"talos-a": "10.1.0.0/24"})
        start = clock()

        result = _run(cfg, make_clients(cloud, cluster, prober), clock)

        assert result.outcome == PassOutcome.RECOVERY_FAILED
        assert clock() - start <= cfg.RECOVERY_TIMEOUT_SECONDS
        with pytest.raises(RecoveryTimeout) as exc_info:
            result.raise_for_outcome()
        assert exc_info.value.unreachable == ["talos-a"]

    def test_settles_after_repair(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-a": None})
        cluster = FakeCluster({"talos-a": "10.1.0.0/24"})

        _run(cfg, make_clients(cloud, cluster), clock)

        assert clock.sleeps == [cfg.SETTLE_SECONDS]

    def test_fetch_error_aborts_before_mutation(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-a": None})

        with pytest.raises(FetchError):
            _run(cfg, make_clients(cloud, FakeCluster(fail=True)), clock)
        assert cloud.mutations == []

    def test_inventory_error_aborts_before_mutation(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-a": None})
        cloud.fail_list = True

        with pytest.raises(FetchError):
            _run(cfg, make_clients(cloud, FakeCluster({"talos-a": "10.1.0.0/24"})), clock)
        assert cloud.mutations == []

    def test_expired_deadline_before_converge(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-a": None})
        cluster = FakeCluster({"talos-a": "10.1.0.0/24"})

        with pytest.raises(PassDeadlineExceeded):
            _run(cfg, make_clients(cloud, cluster), clock, deadline=clock() - 1)
        assert cloud.mutations == []

    def test_disabled_without_native_routing(self, cfg, clock):
        """Outside native routing mode the pass touches nothing at all."""
        cfg.ROUTING_MODE = RoutingMode.TUNNEL
        cloud = FakeCloud.with_aliases({"talos-a": None})
        cluster = FakeCluster({"talos-a": "10.1.0.0/24"})

        result = _run(cfg, make_clients(cloud, cluster), clock)

        assert result.outcome == PassOutcome.NOOP_NEEDED
        assert result.skipped_reason
        assert cloud.calls == []
        assert cluster.calls == 0

    def test_audit_receives_records(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-a": None})
        cluster = FakeCluster({"talos-a": "10.1.0.0/24"})
        audit = RecordingAudit()

        result = _run(cfg, make_clients(cloud, cluster), clock, audit=audit)

        assert len(audit.calls) == 1
        pass_id, records = audit.calls[0]
        assert pass_id == result.pass_id
        assert records[0].node == "talos-a"

    def test_audit_failure_does_not_block_repair(self, cfg, clock):
        """A locked audit database must not leave mutated nodes unrebooted."""
        cloud = FakeCloud.with_aliases({"talos-a": "10.1.9.0/24"})
        cluster = FakeCluster({"talos-a": "10.1.0.0/24"})

        result = _run(cfg, make_clients(cloud, cluster), clock, audit=LockedAudit())

        assert cloud.mutations == [("set", "talos-a", None), ("set", "talos-a", "10.1.0.0/24")]
        assert cloud.reboots == [["talos-a"]]
        assert result.outcome == PassOutcome.CONVERGED

    def test_deadline_stops_starting_new_nodes(self, cfg, clock):
        """Nodes not yet started when the deadline passes are skipped, not mutated."""
        cloud = SlowCloud(clock, seconds=50)
        for name in ("talos-a", "talos-b", "talos-c", "talos-d"):
            cloud.add(name, None)
        cluster = FakeCluster(
            {
                "talos-a": "10.1.0.0/24",
                "talos-b": "10.1.1.0/24",
                "talos-c": "10.1.2.0/24",
                "talos-d": "10.1.3.0/24",
            }
        )
        deadline = clock() + 60

        result = _run(cfg, make_clients(cloud, cluster), clock, deadline=deadline)

        assert [r.outcome for r in result.records] == [
            MutationOutcome.APPLIED,
            MutationOutcome.APPLIED,
            MutationOutcome.SKIPPED,
            MutationOutcome.SKIPPED,
        ]
        assert len(cloud.mutations) == 2
        assert cloud.reboots == [["talos-a", "talos-b"]]
        assert result.outcome == PassOutcome.PARTIAL_FAILURE
        assert cloud.aliases()["talos-c"] is None

    def test_deadline_bounds_cluster_read(self, cfg, clock):
        cloud = FakeCloud.with_aliases({"talos-a": "10.1.0.0/24"})
        cluster = FakeCluster({"talos-a": "10.1.0.0/24"})
        deadline = clock() + 30

        _run(cfg, make_clients(cloud, cluster), clock, deadline=deadline)

        assert cluster.deadlines == [deadline]


class TestPreview:
    def test_preview_does_not_mutate(self, cfg):
        cloud = FakeCloud.with_aliases({"talos-a": None, "talos-b": "10.1.9.0/24"})
        cloud.add("other", "10.1.9.0/24")
        cluster = FakeCluster({"talos-a": "10.1.0.0/24", "talos-b": "10.1.9.0/24"})

        result, actions = preview(cfg, make_clients(cloud, cluster))

        assert set(actions) == {"talos-a", "talos-b", "other"}
        assert actions["talos-b"].action == PlanAction.CLEAR_ONLY
        assert cloud.mutations == []
        assert cloud.reboots == []
