"""
aliasync Init CLI: Initialize configuration and services.

Usage:
    aliasync init config                  # Write ~/.aliasync/config.py
    aliasync init service                 # Generate and register the systemd timer
    aliasync init service --no-install    # Only write the unit files
"""

import os
import shutil
import subprocess
import sys
import tempfile
from typing import Annotated

import typer

from aliasync.cli.output import console, print_error, print_success, print_warning
from aliasync.config import DEFAULT_CONFIG_DIR

app = typer.Typer(help="Initialize configuration and services")

SERVICE_NAME = "aliasync"
SYSTEMD_DIR = "/etc/systemd/system/"
DEFAULT_LOG_FILE = "/var/log/aliasync.log"


# Template for the reconciler configuration - module globals + from_globals()
CONFIG_TEMPLATE = '''"""
aliasync Configuration

Loaded automatically from ~/.aliasync/config.py, or with:
    aliasync --config /path/to/this/file.py sync

Modify the module-level variables below; config_gen() must stay last.
"""
from kohakuengine import Config

from aliasync.models.enums import LogLevel, RoutingMode

# =============================================================================
# Cluster Identity
# =============================================================================

# Cluster name, also the instance name prefix ("<cluster>-cp-0", ...)
CLUSTER_NAME: str = "{cluster}"

# Cloud project, zone and VPC of the cluster instances
PROJECT_ID: str = "{project}"
ZONE: str = "{zone}"
VPC_NAME: str = "{network}"

# =============================================================================
# Networking
# =============================================================================

# Alias sync only runs in native routing mode
ROUTING_MODE: RoutingMode = RoutingMode.NATIVE

# Secondary range name and interface holding the pod alias
ALIAS_RANGE_NAME: str = "pods"
NETWORK_INTERFACE: str = "nic0"

# =============================================================================
# Kubernetes API Access
# =============================================================================

# Empty = default kubeconfig loading rules, then in-cluster config
KUBECONFIG: str = ""
KUBE_CONTEXT: str = ""

# How long to wait for the API server before giving up (seconds)
API_READY_TIMEOUT_SECONDS: int = 120

# Node tried directly when the API endpoint does not answer
# Empty = "<cluster>-cp-0"
API_FALLBACK_NODE: str = ""

# =============================================================================
# Repair / Recovery
# =============================================================================

# Window for rebooted nodes to answer a ping again (seconds)
RECOVERY_TIMEOUT_SECONDS: int = 300
RECOVERY_POLL_INTERVAL_SECONDS: int = 5

# Ping node addresses from the bastion (needed off-network)
PROBE_VIA_BASTION: bool = False
BASTION_NAME: str = ""

# Pause after a repaired pass (seconds)
SETTLE_SECONDS: int = 10

# =============================================================================
# Unattended Schedule (aliasync schedule)
# =============================================================================

SCHEDULE_INITIAL_DELAY_SECONDS: int = 300
SCHEDULE_INTERVAL_SECONDS: int = 900

# =============================================================================
# Audit / Logging
# =============================================================================

AUDIT_DB_FILE: str = "{audit_db}"

# Logging verbosity level: full, debug, info, warning
LOG_LEVEL: LogLevel = LogLevel.INFO

# Log file path (empty = console only)
LOG_FILE: str = ""


# =============================================================================
# KohakuEngine config_gen - DO NOT MODIFY
# =============================================================================

def config_gen():
    """Generate configuration from module globals."""
    return Config.from_globals()
'''


def render_config(
    cluster: str = "talos-gcp-cluster",
    project: str = "",
    zone: str = "",
    network: str = "",
    audit_db: str = "",
) -> str:
    """Fill the configuration template."""
    audit_db = audit_db or os.path.join(DEFAULT_CONFIG_DIR, "audit.db")
    return (
        CONFIG_TEMPLATE.replace("{cluster}", cluster)
        .replace("{project}", project)
        .replace("{zone}", zone)
        .replace("{network}", network)
        .replace("{audit_db}", audit_db)
    )


def render_units(
    exec_start: str,
    working_dir: str,
    user: str,
    path_env: str,
    boot_delay: str = "5min",
    interval: str = "15min",
) -> tuple[str, str]:
    """Return (service, timer) unit file contents."""
    service = f"""[Unit]
Description=aliasync: reconcile alias IP ranges with Kubernetes pod ranges
After=network-online.target
Wants=network-online.target

[Service]
Type=oneshot
User={user}
WorkingDirectory={working_dir}
ExecStart={exec_start}
Environment="PATH={path_env}"
"""

    timer = f"""[Unit]
Description=Run aliasync periodically

[Timer]
OnBootSec={boot_delay}
OnUnitActiveSec={interval}
Unit={SERVICE_NAME}.service

[Install]
WantedBy=timers.target
"""
    return service, timer


@app.command("config")
def init_config(
    cluster: Annotated[
        str,
        typer.Option("--cluster", help="Cluster name"),
    ] = "talos-gcp-cluster",
    project: Annotated[
        str,
        typer.Option("--project", help="Cloud project"),
    ] = "",
    zone: Annotated[
        str,
        typer.Option("--zone", help="Instance zone"),
    ] = "",
    network: Annotated[
        str,
        typer.Option("--network", help="VPC name"),
    ] = "",
    output_dir: Annotated[
        str | None,
        typer.Option("--output-dir", "-o", help="Output directory for the config file"),
    ] = None,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", help="Replace an existing config file"),
    ] = False,
):
    """Write a commented configuration file."""
    config_dir = os.path.expanduser(output_dir or DEFAULT_CONFIG_DIR)
    os.makedirs(config_dir, exist_ok=True)
    filepath = os.path.join(config_dir, "config.py")

    if os.path.exists(filepath) and not overwrite:
        print_warning(f"{filepath} already exists, skipping (use --overwrite).")
        return

    with open(filepath, "w") as f:
        f.write(
            render_config(
                cluster=cluster,
                project=project,
                zone=zone,
                network=network,
                audit_db=os.path.join(config_dir, "audit.db"),
            )
        )

    print_success(f"Configuration written to: {filepath}")
    console.print()
    console.print("[bold]Usage:[/bold]")
    console.print(f"  aliasync --config {filepath} plan")
    console.print(f"  [dim]Or auto-loaded if at {DEFAULT_CONFIG_DIR}/config.py[/dim]")
    console.print()
    console.print("Config files define module-level variables and a config_gen()")
    console.print("function that returns Config.from_globals().")


@app.command("service")
def init_service(
    config_file: Annotated[
        str | None,
        typer.Option("--config", help="Config file passed to the service"),
    ] = None,
    log_file: Annotated[
        str,
        typer.Option("--log-file", help="Local log file of unattended passes"),
    ] = DEFAULT_LOG_FILE,
    user: Annotated[
        str,
        typer.Option("--user", help="User running the service"),
    ] = "root",
    working_dir: Annotated[
        str | None,
        typer.Option("--working-dir", help="Working directory (default: ~/.aliasync)"),
    ] = None,
    boot_delay: Annotated[
        str,
        typer.Option("--boot-delay", help="First run after boot (systemd time span)"),
    ] = "5min",
    interval: Annotated[
        str,
        typer.Option("--interval", help="Time between runs (systemd time span)"),
    ] = "15min",
    no_install: Annotated[
        bool,
        typer.Option("--no-install", help="Only generate files, don't register with systemd"),
    ] = False,
    output_dir: Annotated[
        str | None,
        typer.Option("--output-dir", "-o", help="Where to write files with --no-install"),
    ] = None,
):
    """Create and register the systemd service and timer.

    By default, this command creates the unit files, copies them to
    /etc/systemd/system/, reloads the systemd daemon and enables the timer.

    Use --no-install to only generate the files without registering.
    """
    python_path = sys.executable
    venv_path = os.environ.get("VIRTUAL_ENV")
    env_path_base = os.environ.get("PATH", "")
    env_path_addition = f"{venv_path}/bin:" if venv_path else ""

    working_dir = os.path.expanduser(working_dir or DEFAULT_CONFIG_DIR)
    os.makedirs(working_dir, exist_ok=True)

    config_arg = f" --config {os.path.abspath(os.path.expanduser(config_file))}" if config_file else ""
    exec_start = f"{python_path} -m aliasync.cli.main{config_arg} unattended"
    service, timer = render_units(
        exec_start=exec_start,
        working_dir=working_dir,
        user=user,
        path_env=f"{env_path_addition}{env_path_base}",
        boot_delay=boot_delay,
        interval=interval,
    )
    service += f'Environment="ALIASYNC_LOG_FILE={log_file}"\n'

    if no_install:
        target_dir = os.path.expanduser(output_dir or ".")
        os.makedirs(target_dir, exist_ok=True)
    else:
        target_dir = tempfile.mkdtemp()

    created_files = []
    for filename, content in (
        (f"{SERVICE_NAME}.service", service),
        (f"{SERVICE_NAME}.timer", timer),
    ):
        path = os.path.join(target_dir, filename)
        with open(path, "w") as f:
            f.write(content)
        console.print(f"  Created: {path}")
        created_files.append(path)

    if no_install:
        console.print()
        console.print("[bold]Unit files created.[/bold]")
        console.print(f"To install manually, copy to {SYSTEMD_DIR} and run:")
        console.print("  sudo systemctl daemon-reload")
        console.print(f"  sudo systemctl enable --now {SERVICE_NAME}.timer")
        return

    # Auto-install to systemd
    console.print()
    console.print("Installing unit files to systemd...")
    success = True

    for filepath in created_files:
        result = subprocess.run(["sudo", "cp", filepath, SYSTEMD_DIR])
        if result.returncode != 0:
            print_error(f"Failed to copy {filepath} to {SYSTEMD_DIR}")
            success = False

    for cmd in (
        ["sudo", "systemctl", "daemon-reload"],
        ["sudo", "systemctl", "enable", "--now", f"{SERVICE_NAME}.timer"],
    ):
        if not success:
            break
        result = subprocess.run(cmd)
        if result.returncode != 0:
            print_error(f"Command failed: {' '.join(cmd)}")
            success = False

    shutil.rmtree(target_dir, ignore_errors=True)

    if not success:
        print_error("Failed to register the systemd units.")
        raise typer.Exit(1)

    print_success("Timer registered and started.")
    console.print()
    console.print("[bold]To run a pass now:[/bold]")
    console.print(f"  sudo systemctl start {SERVICE_NAME}.service")
    console.print()
    console.print("[bold]To view logs:[/bold]")
    console.print(f"  journalctl -u {SERVICE_NAME} -f")
    console.print(f"  tail -f {log_file}")
