"""
Mount configuration.

Read from ``$IOTFS_HOME/config.yaml``; command-line options override
whatever the file says. Example::

    region: eu-west-1
    mount_point: ~/iot
    certificate: ~/.iotfs/device.pem.crt
    private_key: ~/.iotfs/device-private.pem.key
    topics:
      - sensors/temperature
      - sensors/humidity
    refresh_interval: 30
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List, Optional

import yaml
from pydantic import BaseModel, Field

from . import IOTFS_HOME

logger = logging.getLogger("iotfs.config")

CONFIG_FILE = "config.yaml"


class MountConfig(BaseModel):
    """Everything needed to build and mount the tree."""

    mount_point: Path = Path("~/iotfs")
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None
    certificate: Optional[Path] = None
    private_key: Optional[Path] = None
    ca_file: Optional[Path] = None
    topics: List[str] = Field(default_factory=list)
    refresh_interval: float = 30.0
    message_limit: int = 100
    log_level: str = "INFO"

    def with_overrides(self, **overrides: Any) -> "MountConfig":
        """Copy with every given, non-empty override applied."""
        data = self.model_dump()
        for key, value in overrides.items():
            if value is None or value == () or value == []:
                continue
            data[key] = list(value) if isinstance(value, tuple) else value
        return MountConfig(**data)


def default_home() -> Path:
    return Path(IOTFS_HOME).expanduser()


def load_config(path: Optional[Path] = None) -> MountConfig:
    """Load the mount configuration.

    Args:
        path: YAML file to read; ``$IOTFS_HOME/config.yaml`` by default.

    Returns:
        MountConfig: Parsed config, or defaults if the file is missing or bad.
    """
    config_file = Path(path).expanduser() if path else default_home() / CONFIG_FILE
    if config_file.exists():
        try:
            data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
            return MountConfig(**data)
        except (yaml.YAMLError, ValueError, TypeError) as exc:
            logger.warning("Failed to load config %s: %s, using defaults", config_file, exc)
    return MountConfig()


def save_config(config: MountConfig, path: Path) -> Path:
    """Write ``config`` as YAML, leaving out unset fields."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(mode="json", exclude_none=True)
    path.write_text(yaml.safe_dump(data, default_flow_style=False), encoding="utf-8")
    return path
