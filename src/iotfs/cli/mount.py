"""FUSE mount commands: start, stop, status."""

from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Optional

import click
from rich.panel import Panel
from rich.table import Table

from ..config import MountConfig
from ._common import apply_mount_point, connection_options, console, home_option


def _mount_point_option(func):
    return click.option(
        "--mount-point",
        default=None,
        type=click.Path(),
        help="Directory to mount at (default: from config, ~/iotfs).",
    )(func)


def register_mount_commands(main: click.Group) -> None:
    """Register the mount command group."""

    @main.group()
    def mount():
        """Mount the IoT catalog as a filesystem.

        \b
        Mount:    iotfs mount start --region eu-west-1
        Debug:    iotfs mount start --foreground
        Unmount:  iotfs mount stop
        Status:   iotfs mount status
        """

    @mount.command("start")
    @connection_options
    @_mount_point_option
    @home_option
    @click.option(
        "--foreground",
        "foreground",
        is_flag=True,
        default=False,
        help="Run in foreground (blocks; useful for debugging).",
    )
    def mount_start(config: MountConfig, mount_point: Optional[str], home: str, foreground: bool):
        """Mount things, certificates, policies, rules and topics.

        \b
        Requires: pip install iotfs[fuse]

        \b
        Examples:

            iotfs mount start --region eu-west-1

            iotfs mount start --topic sensors/temp --certificate dev.crt --private-key dev.key

            iotfs mount start --foreground
        """
        from ..mount import MountDaemon

        config = apply_mount_point(config, mount_point)
        daemon = MountDaemon(config, home=Path(home).expanduser())

        if foreground:
            console.print(
                f"[bold cyan]Mounting iotfs at [white]{daemon.mount_point}[/] "
                f"[dim](foreground, Ctrl-C to unmount)[/]"
            )
        else:
            console.print(f"[bold cyan]Mounting iotfs at [white]{daemon.mount_point}[/] ...")

        ok = daemon.start(foreground=foreground)

        if ok and not foreground:
            console.print("[green]Mounted.[/] [dim]Unmount with: iotfs mount stop[/]")
        elif not ok:
            console.print("[bold red]Mount failed.[/] Check logs or try --foreground for details.")
            sys.exit(1)

    @mount.command("stop")
    @connection_options
    @_mount_point_option
    @home_option
    def mount_stop(config: MountConfig, mount_point: Optional[str], home: str):
        """Unmount the filesystem."""
        from ..mount import MountDaemon

        config = apply_mount_point(config, mount_point)
        daemon = MountDaemon(config, home=Path(home).expanduser())
        console.print(f"[bold cyan]Unmounting {daemon.mount_point} ...[/]")

        if daemon.stop():
            console.print("[green]Unmounted.[/]")
        else:
            console.print(
                "[bold red]Unmount failed.[/] "
                f"[dim]Try manually: fusermount -u {daemon.mount_point}[/]"
            )
            sys.exit(1)

    @mount.command("status")
    @connection_options
    @_mount_point_option
    @home_option
    @click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
    def mount_status(config: MountConfig, mount_point: Optional[str], home: str, as_json: bool):
        """Show whether the filesystem is mounted."""
        from ..mount import MountDaemon

        config = apply_mount_point(config, mount_point)
        status = MountDaemon(config, home=Path(home).expanduser()).status()

        if as_json:
            click.echo(json.dumps(status, indent=2))
            return

        icon = "[bold green]MOUNTED[/]" if status.get("mounted") else "[bold red]NOT MOUNTED[/]"
        pid = status.get("pid")
        topics = status.get("topics") or []

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Key", style="dim")
        table.add_column("Value")

        table.add_row("Status", icon)
        table.add_row("Mount point", str(status.get("mount_point", "")))
        table.add_row("Region", status.get("region") or "[dim]default[/]")
        table.add_row("Topics", ", ".join(topics) if topics else "[dim]none[/]")
        table.add_row("PID", str(pid) if pid else "[dim]-[/]")
        table.add_row("Last updated", status.get("updated_at") or "[dim]-[/]")

        console.print()
        console.print(Panel(table, title="[bold]iotfs Status[/]", border_style="cyan"))
        console.print()
