"""
Kubernetes cluster client.

Reads each node's pod CIDR through the Kubernetes API. Before every read
it waits for the API server to answer; when the configured endpoint (usually
the load-balanced VIP) is down, it falls back to the first control-plane
node's primary address with TLS verification disabled, since the serving
certificate does not cover that address.

Implements ClusterClient.
"""

import copy
import time

import urllib3
from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.config.config_exception import ConfigException

from aliasync.exceptions import AddressResolutionError, FetchError
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)

READY_PROBE_TIMEOUT = 5
READY_POLL_INTERVAL = 5


class KubeClusterClient:
    """
    Pod range reader for one cluster.

    Args:
        kubeconfig: Kubeconfig path (empty = default loading rules, then
            in-cluster config).
        context: Kubeconfig context (empty = current context).
        request_timeout: Timeout for each API request.
        ready_timeout: How long to wait for the API server to answer.
        fallback_address: Callable returning the address of a control-plane
            node for the direct fallback (None = no fallback).
        api_port: API server port on control-plane nodes.
    """

    def __init__(
        self,
        kubeconfig: str = "",
        context: str = "",
        request_timeout: float = 10,
        ready_timeout: float = 120,
        fallback_address=None,
        api_port: int = 6443,
        clock=time.monotonic,
        sleep=time.sleep,
    ):
        self.kubeconfig = kubeconfig
        self.context = context
        self.request_timeout = request_timeout
        self.ready_timeout = ready_timeout
        self.fallback_address = fallback_address
        self.api_port = api_port
        self.clock = clock
        self.sleep = sleep
        self._configuration: k8s_client.Configuration | None = None

    # =========================================================================
    # ClusterClient
    # =========================================================================

    def list_node_pod_ranges(self, deadline: float | None = None) -> dict[str, str | None]:
        """
        Return node name -> pod CIDR (None when not assigned yet).

        The API endpoint is chosen again on every call, so a pass returns to
        the load-balanced endpoint once it answers again.
        """
        api_client = self._connect(deadline)
        try:
            core_v1 = k8s_client.CoreV1Api(api_client)
            try:
                nodes = core_v1.list_node(_request_timeout=self.request_timeout)
            except ApiException as e:
                raise FetchError(f"HTTP {e.status}: {e.reason}", "cluster") from e
            except (urllib3.exceptions.HTTPError, OSError) as e:
                raise FetchError(str(e), "cluster") from e
        finally:
            api_client.close()

        ranges = {}
        for node in nodes.items:
            spec = node.spec
            pod_range = None
            if spec is not None:
                pod_range = spec.pod_cidr or next(iter(spec.pod_cid_rs or []), None)
            ranges[node.metadata.name] = pod_range
        return ranges

    # =========================================================================
    # Connection Setup
    # =========================================================================

    def _connect(self, deadline: float | None = None) -> k8s_client.ApiClient:
        if self._configuration is None:
            self._configuration = self._load_configuration()
        return self._wait_until_ready(self._configuration, deadline)

    def _load_configuration(self) -> k8s_client.Configuration:
        configuration = k8s_client.Configuration()
        try:
            k8s_config.load_kube_config(
                config_file=self.kubeconfig or None,
                context=self.context or None,
                client_configuration=configuration,
            )
            return configuration
        except (ConfigException, OSError) as e:
            if self.kubeconfig:
                raise FetchError(f"cannot load kubeconfig: {e}", "cluster") from e
            logger.debug(f"No usable kubeconfig ({e}), trying in-cluster config")

        try:
            k8s_config.load_incluster_config(client_configuration=configuration)
        except ConfigException as e:
            raise FetchError(f"no Kubernetes credentials found: {e}", "cluster") from e
        return configuration

    def _wait_until_ready(
        self,
        configuration: k8s_client.Configuration,
        deadline: float | None = None,
    ) -> k8s_client.ApiClient:
        """
        Wait for the API server, switching to the direct fallback if needed.

        The wait ends after ready_timeout, or at the deadline if that comes
        first.
        """
        logger.info("Waiting for the API server to be reachable...")
        started = self.clock()
        wait_end = started + self.ready_timeout
        if deadline is not None:
            wait_end = min(wait_end, deadline)

        api_client = k8s_client.ApiClient(configuration)
        if self._is_ready(api_client):
            return api_client

        fallback = self._fallback_client(configuration)
        if fallback is not None:
            api_client.close()
            return fallback

        while self.clock() < wait_end:
            self.sleep(min(READY_POLL_INTERVAL, wait_end - self.clock()))
            if self._is_ready(api_client):
                return api_client

        api_client.close()
        raise FetchError(
            f"API server not reachable after {self.clock() - started:.0f}s",
            "cluster",
        )

    def _fallback_client(
        self, configuration: k8s_client.Configuration
    ) -> k8s_client.ApiClient | None:
        if self.fallback_address is None:
            return None

        try:
            address = self.fallback_address()
        except AddressResolutionError as e:
            logger.debug(f"No direct API fallback: {e}")
            return None

        server = f"https://{address}:{self.api_port}"
        logger.info(f"API server endpoint not ready. Checking direct node IP ({server})...")

        direct = copy.deepcopy(configuration)
        direct.host = server
        direct.verify_ssl = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

        api_client = k8s_client.ApiClient(direct)
        if self._is_ready(api_client):
            logger.info("Using direct node IP for API requests.")
            return api_client
        api_client.close()
        return None

    def _is_ready(self, api_client: k8s_client.ApiClient) -> bool:
        try:
            k8s_client.VersionApi(api_client).get_code(
                _request_timeout=READY_PROBE_TIMEOUT
            )
        except (ApiException, urllib3.exceptions.HTTPError, OSError) as e:
            logger.debug(f"API server not ready: {e}")
            return False
        return True
