"""Tests for aliasync/core/converger.py - per-node alias mutations."""

from fakes import FakeClock, FakeCloud

from aliasync.core.converger import clear_aliases, converge
from aliasync.exceptions import CollisionUnresolved, MutationError
from aliasync.models.enums import MutationOutcome, PlanAction
from aliasync.models.plan import PlanEntry


def _converge(target, current=None):
    return PlanEntry(PlanAction.CONVERGE, target=target, current=current, reason="test")


def _clear(current, collision=False):
    return PlanEntry(PlanAction.CLEAR_ONLY, current=current, collision=collision)


class TestConverge:
    """Tests for converge()."""

    def test_mismatch_clears_then_sets(self):
        """An existing alias is removed before the new one is applied."""
        cloud = FakeCloud.with_aliases({"w-2": "10.200.1.0/24"})

        result = converge({"w-2": _converge("10.200.5.0/24", "10.200.1.0/24")}, cloud)

        assert cloud.mutations == [
            ("set", "w-2", None),
            ("set", "w-2", "10.200.5.0/24"),
        ]
        assert cloud.aliases()["w-2"] == "10.200.5.0/24"
        assert result.records[0].outcome == MutationOutcome.APPLIED
        assert result.batch.members == ["w-2"]

    def test_missing_alias_only_sets(self):
        cloud = FakeCloud.with_aliases({"w-1": None})

        converge({"w-1": _converge("10.200.2.0/24")}, cloud)

        assert cloud.mutations == [("set", "w-1", "10.200.2.0/24")]

    def test_clear_only(self):
        cloud = FakeCloud.with_aliases({"w-0": "10.200.9.0/24"})

        result = converge({"w-0": _clear("10.200.9.0/24")}, cloud)

        assert cloud.aliases()["w-0"] is None
        assert result.records[0].new_alias is None
        assert result.batch.members == ["w-0"]

    def test_failure_does_not_stop_other_nodes(self):
        """One failed node is recorded and the rest are still attempted."""
        cloud = FakeCloud.with_aliases({"a": None, "b": None})
        cloud.fail_set.add("a")

        result = converge(
            {"a": _converge("10.1.0.0/24"), "b": _converge("10.1.1.0/24")},
            cloud,
        )

        assert [r.outcome for r in result.records] == [
            MutationOutcome.FAILED,
            MutationOutcome.APPLIED,
        ]
        assert isinstance(result.errors[0], MutationError)
        assert result.errors[0].node == "a"
        assert result.batch.members == ["b"]

    def test_failed_set_after_clear_is_partial_and_batched(self):
        """The old alias is gone, so the node still needs a reboot."""
        cloud = FakeCloud.with_aliases({"w-2": "10.200.1.0/24"})
        cloud.fail_set.add("w-2")

        result = converge({"w-2": _converge("10.200.5.0/24", "10.200.1.0/24")}, cloud)

        record = result.records[0]
        assert record.outcome == MutationOutcome.PARTIAL
        assert record.new_alias is None
        assert result.batch.members == ["w-2"]
        assert len(result.errors) == 1

    def test_failed_clear_leaves_node_out_of_batch(self):
        cloud = FakeCloud.with_aliases({"w-2": "10.200.1.0/24"})
        cloud.fail_clear.add("w-2")

        result = converge({"w-2": _converge("10.200.5.0/24", "10.200.1.0/24")}, cloud)

        assert cloud.mutations == [("set", "w-2", None)]
        assert result.records[0].outcome == MutationOutcome.FAILED
        assert result.records[0].new_alias == "10.200.1.0/24"
        assert len(result.batch) == 0

    def test_failed_collision_clear_is_collision_unresolved(self):
        cloud = FakeCloud.with_aliases({"w-0": "10.200.9.0/24"})
        cloud.fail_clear.add("w-0")

        result = converge({"w-0": _clear("10.200.9.0/24", collision=True)}, cloud)

        assert isinstance(result.errors[0], CollisionUnresolved)
        assert result.errors[0].alias == "10.200.9.0/24"

    def test_noop_entries_are_ignored(self):
        cloud = FakeCloud.with_aliases({"a": "10.1.0.0/24"})

        result = converge({"a": PlanEntry(PlanAction.NOOP, current="10.1.0.0/24")}, cloud)

        assert cloud.mutations == []
        assert result.records == []

    def test_deadline_skips_nodes_not_started(self):
        """Past the deadline no further node is touched; leftovers are SKIPPED."""
        clock = FakeClock()
        cloud = FakeCloud.with_aliases({"a": None, "b": "10.1.9.0/24"})
        actions = {"a": _converge("10.1.0.0/24"), "b": _clear("10.1.9.0/24", collision=True)}

        result = converge(actions, cloud, deadline=clock() - 1, clock=clock)

        assert cloud.mutations == []
        assert [r.outcome for r in result.records] == [
            MutationOutcome.SKIPPED,
            MutationOutcome.SKIPPED,
        ]
        assert len(result.batch) == 0
        assert isinstance(result.errors[1], CollisionUnresolved)
        assert result.records[1].new_alias == "10.1.9.0/24"


class TestClearAliases:
    """Tests for clear_aliases()."""

    def test_clears_only_assigned(self):
        cloud = FakeCloud.with_aliases({"a": "10.1.0.0/24", "b": None})

        result = clear_aliases(cloud.aliases(), cloud)

        assert cloud.mutations == [("set", "a", None)]
        assert result.batch.members == ["a"]
        assert cloud.reboots == []
