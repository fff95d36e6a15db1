"""Console output helpers shared by the CLI commands."""

import json

import yaml
from pydantic import BaseModel
from rich.console import Console

from aliasync.cli import config as cli_config

console = Console()
err_console = Console(stderr=True)

OUTPUT_FORMATS = ("table", "json", "yaml")


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]{message}[/green]")


def is_structured() -> bool:
    """Whether the current output format is machine readable."""
    return cli_config.OUTPUT_FORMAT in ("json", "yaml")


def print_structured(data) -> None:
    """Print a model or plain data as JSON or YAML."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    elif isinstance(data, list):
        data = [
            item.model_dump(mode="json") if isinstance(item, BaseModel) else item
            for item in data
        ]

    if cli_config.OUTPUT_FORMAT == "yaml":
        text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
    else:
        text = json.dumps(data, indent=2)
    console.print(text.rstrip("\n"), markup=False, highlight=False, soft_wrap=True)
