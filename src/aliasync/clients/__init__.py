"""
Cloud, cluster and probe clients.

build_clients() wires the concrete implementations for a configuration; the
pipeline itself only depends on the protocols in aliasync.clients.base.
"""

from aliasync.clients.base import (
    ClusterClient,
    ComputeClient,
    InventoryClient,
    Prober,
    SyncClients,
)
from aliasync.config import SyncConfig


def build_clients(cfg: SyncConfig) -> SyncClients:
    """Create gcloud, Kubernetes and ping clients for a configuration."""
    from aliasync.clients.gcloud import GCloudCLI, GCloudInstances
    from aliasync.clients.kube import KubeClusterClient
    from aliasync.clients.probe import PingProber

    cli = GCloudCLI(cfg.PROJECT_ID, timeout=cfg.CLOUD_OPERATION_TIMEOUT_SECONDS)
    instances = GCloudInstances(
        cli,
        zone=cfg.ZONE,
        interface=cfg.NETWORK_INTERFACE,
        alias_range_name=cfg.ALIAS_RANGE_NAME,
    )

    fallback_node = cfg.get_api_fallback_node()
    cluster = KubeClusterClient(
        kubeconfig=cfg.KUBECONFIG,
        context=cfg.KUBE_CONTEXT,
        request_timeout=cfg.API_REQUEST_TIMEOUT_SECONDS,
        ready_timeout=cfg.API_READY_TIMEOUT_SECONDS,
        fallback_address=lambda: instances.resolve_primary_address(fallback_node),
        api_port=cfg.API_PORT,
    )

    if cfg.PROBE_VIA_BASTION:
        prober = PingProber(bastion_cli=cli, bastion_name=cfg.BASTION_NAME, zone=cfg.ZONE)
    else:
        prober = PingProber()

    return SyncClients(
        inventory=instances,
        cluster=cluster,
        compute=instances,
        prober=prober,
    )


__all__ = [
    "ClusterClient",
    "ComputeClient",
    "InventoryClient",
    "Prober",
    "SyncClients",
    "build_clients",
]
