"""Shared helpers for CLI command modules.

Provides the Rich console, config/provisioner loading with command-line
overrides, and host rendering.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import EXITNODE_HOME
from ..config import ExitNodeConfig, load_config
from ..errors import ProvisionError, ValidationError
from ..models import ProvisionedHost
from ..providers import Provisioner, available_provisioners, provisioner_from_config
from ..status import ACTIVE_STATUS

logger = logging.getLogger(__name__)

console = Console()


def load_cli_config(
    home: str,
    region: Optional[str] = None,
    cleanup: Optional[bool] = None,
) -> ExitNodeConfig:
    """Load the config file and apply command-line overrides."""
    config = load_config(Path(home))
    if region:
        config = config.model_copy(
            update={"aws": config.aws.model_copy(update={"region": region})},
        )
    if cleanup is not None:
        config = config.model_copy(update={"cleanup_on_failure": cleanup})
    return config


def build_provisioner(config: ExitNodeConfig) -> Provisioner:
    """Instantiate the configured backend.

    Raises:
        ValidationError: If ``config.provider`` names no registered backend.
    """
    available = available_provisioners()
    if config.provider not in available:
        raise ValidationError(
            f"Unknown provisioner '{config.provider}' (available: {', '.join(available) or 'none'})",
            step="config",
        )
    return provisioner_from_config(config)


def status_markup(status: str) -> str:
    if status == ACTIVE_STATUS:
        return f"[bold green]{status}[/]"
    if status in ("pending", "stopping", "shutting-down"):
        return f"[yellow]{status}[/]"
    return f"[red]{status}[/]"


def print_host(host: ProvisionedHost, as_json: bool = False) -> None:
    """Render a host as a small table or as JSON."""
    if as_json:
        click.echo(json.dumps(host.model_dump(), indent=2))
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("ID", host.id)
    table.add_row("IP", host.ip or "[dim]not assigned yet[/]")
    table.add_row("Status", status_markup(host.status))
    console.print(table)


def fail(exc: ProvisionError) -> NoReturn:
    """Report a provisioning error and exit with status 1."""
    logger.debug("Command failed", exc_info=exc)
    console.print(f"\n  [red]Error:[/] {escape(str(exc))}\n")
    raise SystemExit(1)
