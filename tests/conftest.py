import pytest
from fakes import FakeClock

from aliasync.config import SyncConfig
from aliasync.models.enums import RoutingMode


@pytest.fixture
def cfg(tmp_path) -> SyncConfig:
    """Config for cluster "talos" in project p / zone z / vpc "vpc"."""
    return SyncConfig(
        CLUSTER_NAME="talos",
        PROJECT_ID="p",
        ZONE="z",
        VPC_NAME="vpc",
        ROUTING_MODE=RoutingMode.NATIVE,
        RECOVERY_TIMEOUT_SECONDS=300,
        RECOVERY_POLL_INTERVAL_SECONDS=5,
        SETTLE_SECONDS=10,
        AUDIT_DB_FILE=str(tmp_path / "audit.db"),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
