"""
exitnode CLI: create, inspect and delete tunnel exit nodes.

The main Click group is defined here; command modules register
themselves via register functions.

Entry point: exitnode.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="exitnode")
@click.option("-v", "--verbose", is_flag=True, help="Log each provisioning step.")
def main(verbose: bool):
    """exitnode: short-lived cloud exit nodes for tunnels."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


from .host import register_host_commands

register_host_commands(main)
