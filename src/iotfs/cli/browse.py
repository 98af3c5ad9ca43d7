"""Browse commands: ls, cat, tree.

These drive the same dispatcher a mount uses, without FUSE, which makes
them handy for checking credentials and for scripting.
"""

from __future__ import annotations

import json
import os
import stat
import sys
from typing import Any, Dict, List

import click
from rich.table import Table
from rich.tree import Tree

from ..config import MountConfig
from ..dispatcher import Dispatcher
from ..filesystem import IotFS
from ._common import connection_options, console

READ_CHUNK = 64 * 1024


def _open_browser(config: MountConfig) -> IotFS:
    from ..mount import MountDaemon

    return MountDaemon(config.model_copy(update={"topics": []})).build_filesystem()


def _join(path: str, name: str) -> str:
    return f"{path.rstrip('/')}/{name}"


def _entry(ops: Dispatcher, path: str, name: str) -> Dict[str, Any]:
    full = _join(path, name)
    attrs = ops.getattr(full)
    mode = attrs["st_mode"]
    if stat.S_ISLNK(mode):
        kind, target = "link", ops.readlink(full)
    elif stat.S_ISDIR(mode):
        kind, target = "dir", ""
    else:
        kind, target = "file", ""
    return {"name": name, "type": kind, "size": attrs["st_size"], "target": target}


def _list(ops: Dispatcher, path: str) -> List[str]:
    return [name for name in ops.readdir(path) if name not in (".", "..")]


def _fail(path: str, exc: OSError) -> None:
    console.print(f"[bold red]{path}:[/] {exc.strerror or exc}")
    sys.exit(1)


def register_browse_commands(main: click.Group) -> None:
    """Register ls, cat and tree."""

    @main.command("ls")
    @connection_options
    @click.argument("path", default="/")
    @click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
    def ls(config: MountConfig, path: str, as_json: bool):
        """List a directory of the catalog tree.

        \b
        Examples:

            iotfs ls /things

            iotfs ls /certificates/abc123/policies --json
        """
        fs = _open_browser(config)
        try:
            entries = [_entry(fs.operations, path, name) for name in _list(fs.operations, path)]
        except OSError as exc:
            _fail(path, exc)
        finally:
            fs.close()

        if as_json:
            click.echo(json.dumps(entries, indent=2))
            return

        table = Table(box=None, padding=(0, 2))
        table.add_column("Name", style="bold")
        table.add_column("Type", style="dim")
        table.add_column("Size", justify="right")
        table.add_column("Target", style="cyan")
        for entry in entries:
            name = entry["name"] + ("/" if entry["type"] == "dir" else "")
            table.add_row(name, entry["type"], str(entry["size"]), entry["target"])
        console.print(table)

    @main.command("cat")
    @connection_options
    @click.argument("path")
    def cat(config: MountConfig, path: str):
        """Print a file of the catalog tree.

        \b
        Example:

            iotfs cat /things/lamp-1/state
        """
        fs = _open_browser(config)
        ops = fs.operations
        try:
            ops.open(path, os.O_RDONLY)
            offset = 0
            while True:
                chunk = ops.read(path, READ_CHUNK, offset)
                if not chunk:
                    break
                click.echo(chunk, nl=False)
                offset += len(chunk)
            ops.release(path)
        except OSError as exc:
            _fail(path, exc)
        finally:
            fs.close()

    @main.command("tree")
    @connection_options
    @click.argument("path", default="/")
    @click.option("--depth", default=2, show_default=True, help="Levels to descend.")
    def tree(config: MountConfig, path: str, depth: int):
        """Show the catalog tree below PATH.

        Links are shown with their target and not descended into.
        """
        fs = _open_browser(config)
        ops = fs.operations

        def walk(branch: Tree, current: str, level: int) -> None:
            for name in _list(ops, current):
                entry = _entry(ops, current, name)
                if entry["type"] == "link":
                    branch.add(f"[cyan]{name}[/] -> {entry['target']}")
                elif entry["type"] == "dir":
                    child = branch.add(f"[bold]{name}/[/]")
                    if level < depth:
                        walk(child, _join(current, name), level + 1)
                else:
                    branch.add(f"{name} [dim]({entry['size']} bytes)[/]")

        root = Tree(f"[bold cyan]{path}[/]")
        try:
            walk(root, path, 1)
        except OSError as exc:
            _fail(path, exc)
        finally:
            fs.close()
        console.print(root)
