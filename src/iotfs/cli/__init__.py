"""
iotfs CLI.

The main Click group is defined here; each command group lives in its
own module and is attached through a register function.

Entry point: iotfs.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="iotfs")
def main():
    """iotfs: the IoT resource catalog as a file tree."""


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .browse import register_browse_commands
from .mount import register_mount_commands

register_mount_commands(main)
register_browse_commands(main)
