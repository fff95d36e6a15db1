"""
aliasync CLI entry point.

Usage:
    aliasync [OPTIONS] COMMAND [ARGS]...

Commands:
    sync         Run one reconciliation pass now
    plan         Show what a pass would do, without mutating anything
    collisions   Report alias ranges shared by several instances
    reset        Clear every alias range in the cluster (no reboot)
    unattended   Single pass for a systemd timer; never fails loudly
    schedule     Foreground loop: pass after a delay, then every interval
    history      Show the audit log
    config       Configuration
    init         Initialize config and services

Exit codes:
    0  converged or nothing to do
    1  fetch or configuration error
    2  partial failure (some nodes not updated)
    3  recovery failed (rebooted nodes did not come back)
"""

import os
from typing import Annotated

import typer

from aliasync.cli import config as cli_config
from aliasync.cli.commands import config_cmd, init
from aliasync.cli.output import (
    OUTPUT_FORMATS,
    console,
    is_structured,
    print_error,
    print_structured,
    print_success,
    print_warning,
)
from aliasync.config import DEFAULT_CONFIG_FILE, config, load_config_file
from aliasync.exceptions import ConfigError, SyncError
from aliasync.models.enums import LogLevel, PassOutcome, RoutingMode
from aliasync.utils.logger import configure_logging

app = typer.Typer(
    name="aliasync",
    help="Keep cloud alias IP ranges in step with Kubernetes pod ranges",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.add_typer(config_cmd.app, name="config", help="Configuration")
app.add_typer(init.app, name="init", help="Initialize config and services")


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL = 2
EXIT_RECOVERY_FAILED = 3

EXIT_CODES = {
    PassOutcome.CONVERGED: EXIT_OK,
    PassOutcome.NOOP_NEEDED: EXIT_OK,
    PassOutcome.PARTIAL_FAILURE: EXIT_PARTIAL,
    PassOutcome.RECOVERY_FAILED: EXIT_RECOVERY_FAILED,
}


@app.callback()
def main(
    config_file: Annotated[
        str | None,
        typer.Option(
            "--config",
            "-c",
            help=f"Config file (default: {DEFAULT_CONFIG_FILE} if present)",
            envvar="ALIASYNC_CONFIG",
        ),
    ] = None,
    cluster: Annotated[
        str | None,
        typer.Option("--cluster", help="Cluster name", envvar="ALIASYNC_CLUSTER"),
    ] = None,
    project: Annotated[
        str | None,
        typer.Option("--project", help="Cloud project", envvar="ALIASYNC_PROJECT"),
    ] = None,
    zone: Annotated[
        str | None,
        typer.Option("--zone", help="Instance zone", envvar="ALIASYNC_ZONE"),
    ] = None,
    network: Annotated[
        str | None,
        typer.Option("--network", help="VPC name", envvar="ALIASYNC_NETWORK"),
    ] = None,
    routing_mode: Annotated[
        RoutingMode | None,
        typer.Option(
            "--routing-mode",
            help="Pod routing mode (sync only runs in native mode)",
            envvar="ALIASYNC_ROUTING_MODE",
        ),
    ] = None,
    log_level: Annotated[
        LogLevel | None,
        typer.Option("--log-level", "-l", help="Log verbosity", envvar="ALIASYNC_LOG_LEVEL"),
    ] = None,
    log_file: Annotated[
        str | None,
        typer.Option("--log-file", help="Also log to this file", envvar="ALIASYNC_LOG_FILE"),
    ] = None,
    output_format: Annotated[
        str,
        typer.Option("--format", "-f", help="Output format: table|json|yaml"),
    ] = "table",
):
    """
    aliasync: alias IP range reconciler.

    Reads pod ranges from the Kubernetes API, compares them with the alias
    ranges on the cluster's instances, fixes mismatches and collisions, and
    reboots the nodes it changed.
    """
    if output_format not in OUTPUT_FORMATS:
        print_error(f"Unknown output format: {output_format}")
        raise typer.Exit(EXIT_ERROR)
    cli_config.OUTPUT_FORMAT = output_format

    path = config_file or (DEFAULT_CONFIG_FILE if os.path.isfile(DEFAULT_CONFIG_FILE) else "")
    try:
        if path:
            load_config_file(path, config)
            cli_config.CONFIG_FILE = os.path.expanduser(path)
        config.update(
            CLUSTER_NAME=cluster,
            PROJECT_ID=project,
            ZONE=zone,
            VPC_NAME=network,
            ROUTING_MODE=routing_mode,
            LOG_LEVEL=log_level,
            LOG_FILE=log_file,
        )
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_ERROR)

    configure_logging(config.LOG_LEVEL, config.LOG_FILE)


# =============================================================================
# Helpers
# =============================================================================


def _prepare():
    """Validate the configuration and build clients and the audit log."""
    from aliasync.clients import build_clients
    from aliasync.db.audit import AuditLog
    from aliasync.db.base import initialize_database

    try:
        config.validate()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_ERROR)

    clients = build_clients(config)
    initialize_database(config.AUDIT_DB_FILE)
    return clients, AuditLog()


def _show_result(result) -> None:
    from aliasync.cli.formatters import format_pass_result
    from aliasync.models.report import PassReport

    if is_structured():
        print_structured(PassReport.from_result(result))
    else:
        console.print(format_pass_result(result))


# =============================================================================
# Commands
# =============================================================================


@app.command("sync")
def sync(
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", "-t", help="Overall bound on the pass in seconds"),
    ] = None,
):
    """Run one reconciliation pass now."""
    from aliasync.db.base import close_database
    from aliasync.triggers import run_on_demand

    clients, audit = _prepare()
    try:
        result = run_on_demand(config, clients, timeout=timeout, audit=audit)
    except SyncError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_ERROR)
    finally:
        close_database()

    _show_result(result)
    if result.outcome == PassOutcome.RECOVERY_FAILED:
        print_error("Nodes did not recover. Treat the cluster as degraded.")
    raise typer.Exit(EXIT_CODES[result.outcome])


@app.command("plan")
def plan():
    """Show what a pass would do, without mutating anything."""
    from aliasync.cli.formatters import format_collisions_table, format_plan_table
    from aliasync.clients import build_clients
    from aliasync.core.reconcile import preview
    from aliasync.models.report import PassReport

    try:
        config.validate()
        result, actions = preview(config, build_clients(config))
    except SyncError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_ERROR)

    if is_structured():
        print_structured(PassReport.from_result(result))
        return

    if result.skipped_reason:
        print_warning(f"Alias sync disabled: {result.skipped_reason}")
        return

    console.print(format_plan_table(result.plan, actions))
    if result.collisions:
        console.print(format_collisions_table(result.collisions))

    if actions:
        console.print(
            f"[bold]{len(actions)}[/bold] node(s) would be updated and rebooted: "
            f"{', '.join(actions)}"
        )
    else:
        print_success("All alias ranges are correct.")


@app.command("collisions")
def collisions():
    """Report alias ranges shared by several instances in the network."""
    from aliasync.cli.formatters import format_collisions_table
    from aliasync.clients import build_clients
    from aliasync.core.collisions import find_collisions
    from aliasync.core.readers import read_inventory
    from aliasync.models.report import CollisionReport

    try:
        config.validate()
        clients = build_clients(config)
        groups = find_collisions(read_inventory(clients.inventory, config.network_scope()))
    except SyncError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_ERROR)

    if is_structured():
        print_structured(
            [CollisionReport(alias=g.alias, nodes=list(g.nodes)) for g in groups]
        )
        return

    if not groups:
        print_success(f"No alias collisions in {config.network_scope().describe()}.")
        return
    console.print(format_collisions_table(groups))


@app.command("reset")
def reset(
    force: Annotated[
        bool,
        typer.Option("--force", "-y", help="Skip confirmation"),
    ] = False,
):
    """
    Clear every alias range in the cluster.

    Nodes are not rebooted; run `aliasync sync` afterwards to restore the
    ranges from the Kubernetes API and repair the nodes.
    """
    from aliasync.cli.formatters import format_reset_result
    from aliasync.db.base import close_database
    from aliasync.triggers import run_reset

    if not config.is_native_routing():
        print_warning("Native routing not enabled, nothing to reset.")
        return

    if not force:
        typer.confirm(
            f"Clear ALL alias ranges of cluster '{config.CLUSTER_NAME}'?",
            abort=True,
        )

    clients, audit = _prepare()
    try:
        result = run_reset(config, clients, audit=audit)
    except SyncError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_ERROR)
    finally:
        close_database()

    if result is None:
        return
    if is_structured():
        from aliasync.models.report import MutationReport

        print_structured(
            [
                MutationReport(
                    node=r.node,
                    action=r.action.value,
                    old_alias=r.old_alias,
                    new_alias=r.new_alias,
                    outcome=r.outcome.value,
                    error=r.error,
                )
                for r in result.records
            ]
        )
    elif result.records:
        console.print(format_reset_result(result))

    if result.errors:
        raise typer.Exit(EXIT_PARTIAL)


@app.command("unattended")
def unattended():
    """
    Run a single pass for a systemd timer.

    Failures are written to the log; the exit code stays 0 unless the
    configuration itself is invalid, so the timer keeps firing.
    """
    from aliasync.db.base import close_database
    from aliasync.triggers import run_unattended

    clients, audit = _prepare()
    try:
        run_unattended(config, clients, audit=audit)
    finally:
        close_database()


@app.command("schedule")
def schedule(
    interval: Annotated[
        int | None,
        typer.Option("--interval", "-i", help="Seconds between passes"),
    ] = None,
    initial_delay: Annotated[
        int | None,
        typer.Option("--initial-delay", help="Seconds before the first pass"),
    ] = None,
):
    """Run passes in the foreground until interrupted."""
    from aliasync.background.scheduler import serve
    from aliasync.db.base import close_database

    try:
        config.update(
            SCHEDULE_INTERVAL_SECONDS=interval,
            SCHEDULE_INITIAL_DELAY_SECONDS=initial_delay,
        )
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(EXIT_ERROR)

    clients, audit = _prepare()
    try:
        serve(config, clients, audit=audit)
    finally:
        close_database()


@app.command("history")
def history(
    limit: Annotated[
        int,
        typer.Option("--limit", "-n", help="Number of entries"),
    ] = 20,
    node: Annotated[
        str | None,
        typer.Option("--node", help="Only entries for this node"),
    ] = None,
):
    """Show the latest audit log entries."""
    from aliasync.cli.formatters import format_history_table
    from aliasync.db.audit import recent_entries
    from aliasync.db.base import close_database, initialize_database

    initialize_database(config.AUDIT_DB_FILE)
    try:
        entries = recent_entries(limit, node=node)
    finally:
        close_database()

    if is_structured():
        print_structured([entry.to_dict() for entry in entries])
        return

    if not entries:
        console.print("[dim]No audit entries.[/dim]")
        return
    console.print(format_history_table(entries))


@app.command("version")
def version():
    """Show version information."""
    from aliasync import __version__

    console.print(f"aliasync v{__version__}")


def run():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    run()
