"""
Reachability probe.

Sends one ICMP echo per check. Node addresses are internal, so an operator
workstation runs the ping on the bastion through gcloud compute ssh, while
the unattended trigger (already on the bastion) pings locally.
"""

import ipaddress
import shlex
import subprocess

from aliasync.clients.gcloud import GCloudCLI, GCloudError
from aliasync.utils.logger import get_logger

logger = get_logger(__name__)

# Extra time allowed for an SSH round trip through the IAP tunnel
BASTION_OVERHEAD_SECONDS = 30


class PingProber:
    """
    ICMP reachability probe, local or through the bastion.

    Args:
        bastion_cli: gcloud runner used to reach the bastion (None = local).
        bastion_name: Bastion instance name.
        zone: Bastion zone.
    """

    def __init__(
        self,
        bastion_cli: GCloudCLI | None = None,
        bastion_name: str = "",
        zone: str = "",
    ):
        self.bastion_cli = bastion_cli
        self.bastion_name = bastion_name
        self.zone = zone

    def is_reachable(self, ip: str, timeout: float) -> bool:
        """Return True when the address answers a single ping."""
        try:
            ipaddress.ip_address(ip)
        except ValueError:
            logger.warning(f"Refusing to probe invalid address {ip!r}")
            return False

        cmd = ["ping", "-c", "1", "-W", str(max(1, round(timeout))), ip]
        if self.bastion_cli is not None:
            return self._probe_via_bastion(cmd, timeout)
        return self._probe_locally(cmd, timeout)

    def _probe_locally(self, cmd: list[str], timeout: float) -> bool:
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=timeout + 5)
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"Probe {cmd[-1]} failed: {e}")
            return False
        return proc.returncode == 0

    def _probe_via_bastion(self, cmd: list[str], timeout: float) -> bool:
        try:
            self.bastion_cli.run(
                [
                    "compute",
                    "ssh",
                    self.bastion_name,
                    f"--zone={self.zone}",
                    "--tunnel-through-iap",
                    f"--command={shlex.join(cmd)}",
                ],
                timeout=timeout + BASTION_OVERHEAD_SECONDS,
            )
        except GCloudError as e:
            logger.debug(f"Probe {cmd[-1]} via {self.bastion_name} failed: {e}")
            return False
        return True
