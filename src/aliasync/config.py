"""
Reconciler configuration for aliasync.

This module defines the configuration dataclass shared by the on-demand and
unattended triggers, providing a centralized place for all configurable
parameters.

Configuration is layered: dataclass defaults, then a Python config file
(KohakuEngine module globals, see `aliasync init config`), then CLI
options. Entry points update the global instance before running a pass.

Usage:
    from aliasync.config import config

    config.CLUSTER_NAME = "talos-gcp-cluster"
    config.RECOVERY_TIMEOUT_SECONDS = 600
"""

import os
from dataclasses import dataclass, fields
from enum import Enum

from aliasync.exceptions import ConfigError
from aliasync.models.enums import LogLevel, RoutingMode
from aliasync.models.node import NetworkScope


DEFAULT_CONFIG_DIR = os.path.expanduser("~/.aliasync")
DEFAULT_CONFIG_FILE = os.path.join(DEFAULT_CONFIG_DIR, "config.py")


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class SyncConfig:
    """
    Alias reconciliation configuration.

    Attributes:
        CLUSTER_NAME: Cluster name, also the instance name prefix.
        PROJECT_ID: Cloud project holding the instances.
        ZONE: Zone of the cluster instances.
        VPC_NAME: Virtual network shared by the cluster (collision scope).
        ROUTING_MODE: Pod routing mode; reconciliation only runs in native mode.
        RECOVERY_TIMEOUT_SECONDS: Window for rebooted nodes to come back.
    """

    # -------------------------------------------------------------------------
    # Cluster Identity
    # -------------------------------------------------------------------------

    CLUSTER_NAME: str = "talos-gcp-cluster"
    PROJECT_ID: str = ""
    ZONE: str = ""
    VPC_NAME: str = ""

    # -------------------------------------------------------------------------
    # Networking
    # -------------------------------------------------------------------------

    ROUTING_MODE: RoutingMode = RoutingMode.NATIVE

    # Secondary range name used for pod aliases ("pods:<cidr>")
    ALIAS_RANGE_NAME: str = "pods"
    NETWORK_INTERFACE: str = "nic0"

    # -------------------------------------------------------------------------
    # Kubernetes API Access
    # -------------------------------------------------------------------------

    KUBECONFIG: str = ""  # Empty = default loading rules / in-cluster
    KUBE_CONTEXT: str = ""
    API_REQUEST_TIMEOUT_SECONDS: int = 10
    API_READY_TIMEOUT_SECONDS: int = 120
    API_PORT: int = 6443

    # Node whose primary address is tried when the API endpoint does not answer
    # Empty = "{CLUSTER_NAME}-cp-0"
    API_FALLBACK_NODE: str = ""

    # -------------------------------------------------------------------------
    # Cloud Operations
    # -------------------------------------------------------------------------

    CLOUD_OPERATION_TIMEOUT_SECONDS: int = 120

    # -------------------------------------------------------------------------
    # Repair / Recovery
    # -------------------------------------------------------------------------

    RECOVERY_TIMEOUT_SECONDS: int = 300
    RECOVERY_POLL_INTERVAL_SECONDS: int = 5
    PROBE_TIMEOUT_SECONDS: int = 1

    # Run reachability probes on the bastion (operator workstations usually
    # cannot reach node addresses directly)
    PROBE_VIA_BASTION: bool = False
    BASTION_NAME: str = ""

    # Pause after a repaired pass so the API server and etcd settle
    SETTLE_SECONDS: int = 10

    # -------------------------------------------------------------------------
    # Unattended Schedule
    # -------------------------------------------------------------------------

    SCHEDULE_INITIAL_DELAY_SECONDS: int = 300
    SCHEDULE_INTERVAL_SECONDS: int = 900

    # -------------------------------------------------------------------------
    # Audit / Logging
    # -------------------------------------------------------------------------

    AUDIT_DB_FILE: str = os.path.join(DEFAULT_CONFIG_DIR, "audit.db")
    LOG_LEVEL: LogLevel = LogLevel.INFO
    LOG_FILE: str = ""

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def is_native_routing(self) -> bool:
        """Whether alias reconciliation is enabled for this cluster."""
        return RoutingMode(self.ROUTING_MODE) == RoutingMode.NATIVE

    def cluster_scope(self) -> NetworkScope:
        """Scope covering only this cluster's instances."""
        return NetworkScope(
            project=self.PROJECT_ID,
            zone=self.ZONE,
            network=self.VPC_NAME,
            name_prefix=f"{self.CLUSTER_NAME}-",
        )

    def network_scope(self) -> NetworkScope:
        """Wider scope used for collision checks (whole VPC in the zone)."""
        return NetworkScope(
            project=self.PROJECT_ID,
            zone=self.ZONE,
            network=self.VPC_NAME,
        )

    def get_api_fallback_node(self) -> str:
        """Instance name used for the direct API server fallback."""
        return self.API_FALLBACK_NODE or f"{self.CLUSTER_NAME}-cp-0"

    def validate(self) -> None:
        """
        Check that the configuration can drive a pass.

        Raises:
            ConfigError: If an identifier is missing or a timing is not positive.
        """
        missing = [
            key
            for key in ("CLUSTER_NAME", "PROJECT_ID", "ZONE", "VPC_NAME")
            if not getattr(self, key)
        ]
        if missing:
            raise ConfigError(f"Missing required setting(s): {', '.join(missing)}")

        for key in (
            "RECOVERY_TIMEOUT_SECONDS",
            "RECOVERY_POLL_INTERVAL_SECONDS",
            "PROBE_TIMEOUT_SECONDS",
            "SCHEDULE_INTERVAL_SECONDS",
            "API_REQUEST_TIMEOUT_SECONDS",
        ):
            if getattr(self, key) <= 0:
                raise ConfigError(f"{key} must be positive")

        if self.PROBE_VIA_BASTION and not self.BASTION_NAME:
            raise ConfigError("PROBE_VIA_BASTION requires BASTION_NAME")

    def update(self, **overrides) -> None:
        """Apply overrides, skipping None values (unset CLI options)."""
        for key, value in overrides.items():
            if value is None:
                continue
            if not hasattr(self, key):
                raise ConfigError(f"Unknown setting: {key}")
            setattr(self, key, _coerce(key, value, getattr(self, key)))


# =============================================================================
# Config File Loading
# =============================================================================


def load_config_file(path: str, target: SyncConfig | None = None) -> SyncConfig:
    """
    Apply a KohakuEngine config file to a config instance.

    The file defines module-level UPPER_CASE variables and a config_gen()
    returning Config.from_globals() (see `aliasync init config`). Its globals
    are copied onto the config; other names (imports, helpers) are ignored.

    Args:
        path: Path to the config file.
        target: Config to update (defaults to the global instance).

    Returns:
        The updated config.

    Raises:
        ConfigError: If the file is missing, fails to load, or sets an
            unknown key or a value of the wrong type.
    """
    from kohakuengine import Config

    target = target if target is not None else config
    path = os.path.expanduser(path)

    if not os.path.isfile(path):
        raise ConfigError(f"Config file not found: {path}")

    try:
        loaded = Config.from_file(path)
    except Exception as e:
        raise ConfigError(f"Failed to load config file {path}: {e}") from e

    if not isinstance(loaded, Config):
        raise ConfigError(f"config_gen() in {path} must return a single Config")

    known = {f.name for f in fields(target)}
    for key, value in loaded.globals_dict.items():
        if not key.isupper():
            continue
        if key not in known:
            raise ConfigError(f"Unknown setting {key} in {path}")
        setattr(target, key, _coerce(key, value, getattr(target, key)))

    return target


def _coerce(key: str, value, current):
    """Convert a value to the type of the current setting."""
    if isinstance(current, Enum):
        try:
            return type(current)(value)
        except ValueError as e:
            raise ConfigError(f"Invalid value for {key}: {value!r}") from e

    if isinstance(current, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("1", "true", "yes", "on"):
            return True
        if isinstance(value, str) and value.lower() in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"Invalid boolean for {key}: {value!r}")

    if isinstance(current, int):
        if isinstance(value, bool):
            raise ConfigError(f"Invalid integer for {key}: {value!r}")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid integer for {key}: {value!r}") from e

    if isinstance(current, str):
        if not isinstance(value, str):
            raise ConfigError(f"Invalid string for {key}: {value!r}")
        return value

    return value


# =============================================================================
# Global Instance
# =============================================================================

# Global config instance - entry points update it before running a pass
config = SyncConfig()
