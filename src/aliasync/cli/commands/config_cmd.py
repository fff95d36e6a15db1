"""Config management commands."""

import os
from dataclasses import fields
from enum import Enum

import typer

from aliasync.cli import config as cli_config
from aliasync.cli.output import console, is_structured, print_error, print_structured
from aliasync.config import SyncConfig, config
from aliasync.exceptions import ConfigError

app = typer.Typer(help="Configuration commands")

ENV_OPTIONS = {
    "CLUSTER_NAME": "ALIASYNC_CLUSTER",
    "PROJECT_ID": "ALIASYNC_PROJECT",
    "ZONE": "ALIASYNC_ZONE",
    "VPC_NAME": "ALIASYNC_NETWORK",
    "ROUTING_MODE": "ALIASYNC_ROUTING_MODE",
    "LOG_LEVEL": "ALIASYNC_LOG_LEVEL",
    "LOG_FILE": "ALIASYNC_LOG_FILE",
}


def _value(value) -> str:
    if isinstance(value, Enum):
        return value.value
    return str(value)


@app.command("show")
def show_config():
    """Show the effective configuration."""
    from rich.table import Table

    defaults = SyncConfig()

    if is_structured():
        print_structured({f.name: _value(getattr(config, f.name)) for f in fields(config)})
        return

    title = "Current Configuration"
    if cli_config.CONFIG_FILE:
        title += f" ({cli_config.CONFIG_FILE})"

    table = Table(title=title, show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Source")

    for f in fields(config):
        value = getattr(config, f.name)
        env_var = ENV_OPTIONS.get(f.name)
        if env_var and os.environ.get(env_var):
            source = "env"
        elif value != getattr(defaults, f.name):
            source = "file/option"
        else:
            source = "default"
        table.add_row(f.name, _value(value), source)

    console.print(table)


@app.command("validate")
def validate_config():
    """Check that the configuration can drive a pass."""
    try:
        config.validate()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(1)
    console.print("[green]Configuration is valid.[/green]")
