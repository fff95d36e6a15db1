"""Tests for aliasync/clients/gcloud.py and aliasync/clients/probe.py."""

import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from aliasync.clients.gcloud import GCloudCLI, GCloudError, GCloudInstances
from aliasync.clients.probe import PingProber
from aliasync.exceptions import (
    AddressResolutionError,
    FetchError,
    MutationError,
    RebootError,
)
from aliasync.models.node import NetworkScope

NETWORK_URL = "https://www.googleapis.com/compute/v1/projects/p/global/networks/vpc"


def _completed(stdout: str = "") -> MagicMock:
    proc = MagicMock()
    proc.stdout = stdout
    proc.returncode = 0
    return proc


def _instance(name, alias=None, network=NETWORK_URL, range_name="pods"):
    nic = {"name": "nic0", "network": network, "networkIP": "10.0.0.2"}
    if alias:
        nic["aliasIpRanges"] = [{"ipCidrRange": alias, "subnetworkRangeName": range_name}]
    return {"name": name, "networkInterfaces": [nic]}


@pytest.fixture
def instances():
    return GCloudInstances(GCloudCLI("p"), zone="z")


class TestGCloudCLI:
    def test_appends_project_and_quiet(self):
        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed("ok")) as run:
            assert GCloudCLI("p", timeout=7).run(["compute", "zones", "list"]) == "ok"

        cmd = run.call_args.args[0]
        assert cmd == ["gcloud", "compute", "zones", "list", "--project=p", "--quiet"]
        assert run.call_args.kwargs["timeout"] == 7
        assert run.call_args.kwargs["check"] is True

    def test_non_zero_exit(self):
        error = subprocess.CalledProcessError(1, ["gcloud"], stderr="ERROR: denied\n")
        with patch("aliasync.clients.gcloud.subprocess.run", side_effect=error):
            with pytest.raises(GCloudError, match="ERROR: denied"):
                GCloudCLI("p").run(["x"])

    def test_timeout(self):
        error = subprocess.TimeoutExpired(["gcloud"], 5)
        with patch("aliasync.clients.gcloud.subprocess.run", side_effect=error):
            with pytest.raises(GCloudError, match="timed out"):
                GCloudCLI("p").run(["x"], timeout=5)

    def test_missing_binary(self):
        with patch("aliasync.clients.gcloud.subprocess.run", side_effect=FileNotFoundError()):
            with pytest.raises(GCloudError, match="not found"):
                GCloudCLI("p").run(["x"])


class TestGCloudInstances:
    def test_list_cluster_scope(self, instances):
        output = json.dumps(
            [
                _instance("talos-w-0", "10.200.0.0/24"),
                _instance("talos-w-1"),
                _instance("other", "10.200.9.0/24"),
                _instance("talos-w-2", "10.200.2.0/24", network=NETWORK_URL + "-2"),
            ]
        )
        scope = NetworkScope("p", "z", "vpc", name_prefix="talos-")

        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed(output)) as run:
            aliases = instances.list_node_aliases(scope)

        assert aliases == {"talos-w-0": "10.200.0.0/24", "talos-w-1": None}
        filter_arg = next(a for a in run.call_args.args[0] if a.startswith("--filter="))
        assert filter_arg == (
            "--filter=name:(talos-*) AND zone:(z) AND networkInterfaces.network:(vpc)"
        )

    def test_wide_scope_has_no_name_filter(self, instances):
        scope = NetworkScope("p", "z", "vpc")
        output = json.dumps([_instance("other", "10.200.9.0/24")])

        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed(output)) as run:
            aliases = instances.list_node_aliases(scope)

        assert aliases == {"other": "10.200.9.0/24"}
        assert not any("name:(" in a for a in run.call_args.args[0])

    def test_prefers_named_range(self, instances):
        inst = _instance("talos-a")
        inst["networkInterfaces"][0]["aliasIpRanges"] = [
            {"ipCidrRange": "10.9.0.0/24", "subnetworkRangeName": "services"},
            {"ipCidrRange": "10.200.1.0/24", "subnetworkRangeName": "pods"},
        ]
        scope = NetworkScope("p", "z", "vpc", name_prefix="talos-")

        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed(json.dumps([inst]))):
            assert instances.list_node_aliases(scope) == {"talos-a": "10.200.1.0/24"}

    def test_list_failure_is_fetch_error(self, instances):
        error = subprocess.CalledProcessError(1, ["gcloud"], stderr="quota")
        with patch("aliasync.clients.gcloud.subprocess.run", side_effect=error):
            with pytest.raises(FetchError):
                instances.list_node_aliases(NetworkScope("p", "z", "vpc"))

    def test_unparseable_output(self, instances):
        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed("not json")):
            with pytest.raises(FetchError, match="unparseable"):
                instances.list_node_aliases(NetworkScope("p", "z", "vpc"))

    def test_set_and_clear_alias(self, instances):
        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed()) as run:
            instances.set_node_alias("talos-a", "10.200.5.0/24")
            instances.set_node_alias("talos-a", None)

        set_cmd, clear_cmd = (c.args[0] for c in run.call_args_list)
        assert "--aliases=pods:10.200.5.0/24" in set_cmd
        assert "--aliases=" in clear_cmd
        assert "--network-interface=nic0" in set_cmd

    def test_set_failure_is_mutation_error(self, instances):
        error = subprocess.CalledProcessError(1, ["gcloud"], stderr="in use")
        with patch("aliasync.clients.gcloud.subprocess.run", side_effect=error):
            with pytest.raises(MutationError) as exc_info:
                instances.set_node_alias("talos-a", "10.200.5.0/24")
        assert exc_info.value.node == "talos-a"

    def test_reboot_is_one_call(self, instances):
        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed()) as run:
            instances.reboot_nodes(["a", "b"])

        assert run.call_count == 1
        assert run.call_args.args[0][:6] == ["gcloud", "compute", "instances", "reset", "a", "b"]

    def test_reboot_failure(self, instances):
        error = subprocess.CalledProcessError(1, ["gcloud"], stderr="nope")
        with patch("aliasync.clients.gcloud.subprocess.run", side_effect=error):
            with pytest.raises(RebootError):
                instances.reboot_nodes(["a"])

    def test_resolve_primary_address(self, instances):
        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed("10.0.0.7\n")):
            assert instances.resolve_primary_address("a") == "10.0.0.7"

    def test_resolve_rejects_garbage(self, instances):
        with patch("aliasync.clients.gcloud.subprocess.run", return_value=_completed("\n")):
            with pytest.raises(AddressResolutionError):
                instances.resolve_primary_address("a")


class TestPingProber:
    def test_local_ping(self):
        proc = MagicMock(returncode=0)
        with patch("aliasync.clients.probe.subprocess.run", return_value=proc) as run:
            assert PingProber().is_reachable("10.0.0.2", 1) is True

        assert run.call_args.args[0] == ["ping", "-c", "1", "-W", "1", "10.0.0.2"]

    def test_local_ping_failure(self):
        with patch("aliasync.clients.probe.subprocess.run", return_value=MagicMock(returncode=1)):
            assert PingProber().is_reachable("10.0.0.2", 1) is False

    def test_invalid_address_is_not_probed(self):
        with patch("aliasync.clients.probe.subprocess.run") as run:
            assert PingProber().is_reachable("10.0.0.2; reboot", 1) is False
        run.assert_not_called()

    def test_via_bastion(self):
        cli = MagicMock(spec=GCloudCLI)
        prober = PingProber(bastion_cli=cli, bastion_name="bastion", zone="z")

        assert prober.is_reachable("10.0.0.2", 1) is True

        args = cli.run.call_args.args[0]
        assert args[:3] == ["compute", "ssh", "bastion"]
        assert "--command=ping -c 1 -W 1 10.0.0.2" in args

    def test_via_bastion_failure(self):
        cli = MagicMock(spec=GCloudCLI)
        cli.run.side_effect = GCloudError("exit code 1")
        prober = PingProber(bastion_cli=cli, bastion_name="bastion", zone="z")

        assert prober.is_reachable("10.0.0.2", 1) is False
