"""Shared utilities for the CLI command modules.

Provides the Rich console and the connection options every command that
talks to the catalog accepts.
"""

from __future__ import annotations

import functools
from pathlib import Path
from typing import Any, Callable, Optional

import click
from rich.console import Console

from .. import IOTFS_HOME
from ..config import MountConfig, load_config

console = Console()


def connection_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add ``--config`` plus per-field overrides of ``MountConfig``.

    The wrapped command receives a single ``config`` argument instead.
    """

    @click.option("--config", "config_path", type=click.Path(), default=None,
                  help="Config file (default: $IOTFS_HOME/config.yaml).")
    @click.option("--region", default=None, help="AWS region.")
    @click.option("--access-key-id", default=None, help="AWS access key id.")
    @click.option("--secret-access-key", default=None, help="AWS secret access key.")
    @click.option("--certificate", type=click.Path(), default=None,
                  help="Device certificate (PEM) for topic access.")
    @click.option("--private-key", type=click.Path(), default=None,
                  help="Device private key (PEM) for topic access.")
    @click.option("--ca-file", type=click.Path(), default=None, help="CA bundle for MQTT TLS.")
    @click.option("--topic", "topics", multiple=True, help="Topic to expose (repeatable).")
    @functools.wraps(func)
    def wrapper(
        config_path: Optional[str],
        region: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        certificate: Optional[str],
        private_key: Optional[str],
        ca_file: Optional[str],
        topics: tuple,
        **kwargs: Any,
    ) -> Any:
        config = load_config(Path(config_path) if config_path else None).with_overrides(
            region=region,
            access_key_id=access_key_id,
            secret_access_key=secret_access_key,
            certificate=certificate,
            private_key=private_key,
            ca_file=ca_file,
            topics=topics,
        )
        return func(config=config, **kwargs)

    return wrapper


def home_option(func: Callable[..., Any]) -> Callable[..., Any]:
    return click.option(
        "--home",
        default=IOTFS_HOME,
        type=click.Path(),
        help="iotfs home directory.",
    )(func)


def apply_mount_point(config: MountConfig, mount_point: Optional[str]) -> MountConfig:
    return config.with_overrides(mount_point=Path(mount_point).expanduser() if mount_point else None)
