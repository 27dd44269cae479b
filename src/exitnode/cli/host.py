"""Exit node commands: create, status, delete."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click
from rich.markup import escape

from ..errors import ProvisionError
from ..models import TUNNEL_PORT_KEY, HostRequest
from ._common import EXITNODE_HOME, build_provisioner, console, fail, load_cli_config, print_host


def register_host_commands(main: click.Group) -> None:
    """Register the create/status/delete commands."""

    @main.command("create")
    @click.argument("name")
    @click.option("--os", "os_name", default=None, help="Image name (AMI name filter).")
    @click.option("--plan", default=None, help="Instance type, e.g. t3.nano.")
    @click.option("--tunnel-port", type=int, default=None, help="Tunnel control port.")
    @click.option(
        "--user-data-file", type=click.Path(exists=True, dir_okay=False), default=None,
        help="Boot script passed to the instance.",
    )
    @click.option("--region", default=None)
    @click.option("--cleanup/--no-cleanup", default=None,
                  help="Delete the security group again if the launch fails.")
    @click.option("--home", default=EXITNODE_HOME, type=click.Path())
    @click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
    def create(
        name: str,
        os_name: Optional[str],
        plan: Optional[str],
        tunnel_port: Optional[int],
        user_data_file: Optional[str],
        region: Optional[str],
        cleanup: Optional[bool],
        home: str,
        as_json: bool,
    ):
        """Provision a new exit node.

        Example:

            exitnode create tunnel-1 --tunnel-port 8123
        """
        config = load_cli_config(home, region=region, cleanup=cleanup)
        port = tunnel_port if tunnel_port is not None else config.tunnel_port
        user_data = Path(user_data_file).read_bytes() if user_data_file else b""

        try:
            request = HostRequest.from_parameters(
                name=name,
                os=os_name or config.os,
                plan=plan or config.plan,
                user_data=user_data,
                additional={TUNNEL_PORT_KEY: str(port)},
            )
            if not as_json:
                console.print(f"\n  Provisioning [cyan]{escape(name)}[/] on [bold]{config.provider}[/]...")
            host = build_provisioner(config).provision(request)
        except ProvisionError as exc:
            fail(exc)

        print_host(host, as_json=as_json)

    @main.command("status")
    @click.argument("instance_id")
    @click.option("--region", default=None)
    @click.option("--home", default=EXITNODE_HOME, type=click.Path())
    @click.option("--json", "as_json", is_flag=True, help="Print the result as JSON.")
    def status(instance_id: str, region: Optional[str], home: str, as_json: bool):
        """Show the current status of an exit node."""
        config = load_cli_config(home, region=region)
        try:
            host = build_provisioner(config).status(instance_id)
        except ProvisionError as exc:
            fail(exc)

        print_host(host, as_json=as_json)

    @main.command("delete")
    @click.argument("instance_id")
    @click.option("--region", default=None)
    @click.option("--home", default=EXITNODE_HOME, type=click.Path())
    def delete(instance_id: str, region: Optional[str], home: str):
        """Terminate an exit node."""
        config = load_cli_config(home, region=region)
        try:
            build_provisioner(config).delete(instance_id)
        except ProvisionError as exc:
            fail(exc)

        console.print(f"\n  [green]Termination requested for[/] {instance_id}\n")
