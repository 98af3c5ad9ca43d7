"""
FUSE mount of the IoT catalog.

Builds the tree from a ``MountConfig`` (boto3 catalog, MQTT transport
for the configured topics) and hands its dispatcher to fusepy.

Dependencies (optional):
    pip install iotfs[fuse]  # pulls in fusepy
"""

from __future__ import annotations

import json
import logging
import os
import re
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from .config import MountConfig, default_home, save_config
from .filesystem import IotFS

logger = logging.getLogger("iotfs.mount")

MOUNT_OPTIONS = {"direct_io": True, "nosuid": True, "nodev": True, "noexec": True}

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")


def _unescape_mount_path(field: str) -> str:
    """Undo the ``\\040``-style escaping used in ``/proc/mounts``."""
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


class MountDaemon:
    """Lifecycle manager for the iotfs FUSE mount.

    Handles mounting, unmounting, and status checks.

    Args:
        config: Mount configuration.
        home: iotfs home directory. Defaults to ``$IOTFS_HOME``.
    """

    _PID_FILE = "mount.pid"
    _STATE_FILE = "mount_state.json"
    _CONFIG_FILE = "mount_config.yaml"

    def __init__(self, config: MountConfig, home: Optional[Path] = None) -> None:
        self.config = config
        self._mount_point = Path(config.mount_point).expanduser()
        self._home = Path(home or default_home()).expanduser()
        self._state_dir = self._home / "mount"

    @property
    def mount_point(self) -> Path:
        return self._mount_point

    def _state_file(self) -> Path:
        return self._state_dir / self._STATE_FILE

    def _pid_file(self) -> Path:
        return self._state_dir / self._PID_FILE

    def _write_state(self, mounted: bool, pid: Optional[int] = None) -> None:
        """Persist the mount state to disk.

        Args:
            mounted: Whether the filesystem is currently mounted.
            pid: Process ID serving the mount (if any).
        """
        self._state_dir.mkdir(parents=True, exist_ok=True)
        state = {
            "mounted": mounted,
            "mount_point": str(self._mount_point),
            "home": str(self._home),
            "region": self.config.region,
            "topics": list(self.config.topics),
            "pid": pid,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        self._state_file().write_text(json.dumps(state, indent=2), encoding="utf-8")

    def _read_state(self) -> Optional[Dict[str, Any]]:
        """Saved mount state, or None when there is none or it is unreadable."""
        try:
            state = json.loads(self._state_file().read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable mount state: %s", exc)
            return None
        return state if isinstance(state, dict) else None

    def _is_mounted(self) -> bool:
        """Check whether the mount point is currently active.

        ``/proc/mounts`` escapes blanks in paths as octal (``\\040``), so
        entries are unescaped before comparing. Without ``/proc`` the
        output of ``mount`` is searched instead.
        """
        target = str(self._mount_point)
        proc_mounts = Path("/proc/mounts")
        if not proc_mounts.exists():
            try:
                result = subprocess.run(["mount"], capture_output=True, text=True, timeout=5)
            except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
                return False
            return f" on {target} " in result.stdout
        try:
            lines = proc_mounts.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            logger.debug("Cannot read %s: %s", proc_mounts, exc)
            return False
        for line in lines:
            fields = line.split()
            if len(fields) >= 2 and _unescape_mount_path(fields[1]) == target:
                return True
        return False

    def _clear_runtime_files(self) -> None:
        """Record the unmount and drop the pid file and the saved config."""
        self._write_state(mounted=False)
        for path in (self._pid_file(), self._state_dir / self._CONFIG_FILE):
            try:
                path.unlink()
            except FileNotFoundError:
                pass

    def _setup_logging(self) -> None:
        """Send log records to ``$IOTFS_HOME/logs/mount.log``."""
        log_dir = self._home / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_dir / "mount.log")
        handler.setFormatter(
            logging.Formatter("%(asctime)s [%(name)s] %(levelname)s: %(message)s")
        )
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(getattr(logging, self.config.log_level.upper(), logging.INFO))

    def build_filesystem(self) -> IotFS:
        """Create the catalog client, the transport and the tree.

        Raises:
            ValueError: Topics are configured without a certificate and key.
        """
        from .catalog.aws import AwsIotCatalog

        config = self.config
        catalog = AwsIotCatalog(
            region=config.region,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
        )
        transport = None
        if config.topics:
            if not (config.certificate and config.private_key):
                raise ValueError("topics need a device certificate and private key")
            from .transport.mqtt import MqttTransport

            transport = MqttTransport(
                host=catalog.describe_endpoint(),
                certificate=str(Path(config.certificate).expanduser()),
                private_key=str(Path(config.private_key).expanduser()),
                ca_file=str(Path(config.ca_file).expanduser()) if config.ca_file else None,
            )
        return IotFS(
            catalog,
            transport=transport,
            topics=config.topics,
            refresh_interval=config.refresh_interval,
            message_limit=config.message_limit,
        )

    def start(self, foreground: bool = False) -> bool:
        """Mount the catalog.

        Args:
            foreground: If True, serve the mount in this process (blocks
                until unmounted). Otherwise re-exec a detached child.

        Returns:
            True if the mount was initiated successfully.
        """
        try:
            import fuse as _fuse  # type: ignore[import]
        except ImportError:
            logger.error("fusepy is not installed. Install with: pip install iotfs[fuse]")
            return False

        if self._is_mounted():
            logger.info("Already mounted at %s", self._mount_point)
            return True

        self._mount_point.mkdir(parents=True, exist_ok=True)
        self._state_dir.mkdir(parents=True, exist_ok=True)

        if foreground:
            self._setup_logging()
            logger.info("Mounting iotfs at %s (foreground)", self._mount_point)
            fs: Optional[IotFS] = None
            try:
                fs = self.build_filesystem()
                fs.start()
                self._write_state(mounted=True, pid=os.getpid())
                _fuse.FUSE(
                    fs.operations,
                    str(self._mount_point),
                    foreground=True,
                    nothreads=False,
                    **MOUNT_OPTIONS,
                )
                return True
            except Exception as exc:
                logger.error("Failed to mount filesystem: %s", exc)
                return False
            finally:
                if fs is not None:
                    fs.close()
                self._clear_runtime_files()

        logger.info("Mounting iotfs at %s (background)", self._mount_point)
        config_file = save_config(self.config, self._state_dir / self._CONFIG_FILE)
        config_file.chmod(0o600)
        try:
            proc = subprocess.Popen(
                [
                    sys.executable,
                    "-c",
                    (
                        "from pathlib import Path; "
                        "from iotfs.config import load_config; "
                        "from iotfs.mount import MountDaemon; "
                        f"MountDaemon("
                        f"  load_config(Path({str(config_file)!r})), "
                        f"  home=Path({str(self._home)!r})"
                        f").start(foreground=True)"
                    ),
                ],
                start_new_session=True,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.error("Failed to start mount process: %s", exc)
            self._write_state(mounted=False)
            return False
        self._write_state(mounted=True, pid=proc.pid)
        self._pid_file().write_text(str(proc.pid), encoding="utf-8")
        logger.info("Mount process started with pid %d", proc.pid)
        return True

    def stop(self) -> bool:
        """Unmount and clean up the pid file and saved config.

        ``fusermount -u`` is tried first, then ``umount``. The saved config
        may hold credentials, so it is removed once nothing is mounted.

        Returns:
            True if the filesystem is no longer mounted.
        """
        if not self._is_mounted():
            logger.info("Not mounted at %s", self._mount_point)
            self._clear_runtime_files()
            return True

        target = str(self._mount_point)
        for cmd in (["fusermount", "-u", target], ["umount", target]):
            try:
                result = subprocess.run(cmd, capture_output=True, text=True, timeout=10)
            except (FileNotFoundError, subprocess.TimeoutExpired, OSError) as exc:
                logger.debug("%s unavailable: %s", cmd[0], exc)
                continue
            if result.returncode == 0:
                logger.info("Unmounted %s", target)
                self._clear_runtime_files()
                return True
            logger.debug("%s exited %d: %s", cmd[0], result.returncode, result.stderr.strip())

        pid = (self._read_state() or {}).get("pid")
        logger.error("Could not unmount %s (served by pid %s)", target, pid)
        return False

    def status(self) -> Dict[str, Any]:
        """Current mount status.

        Returns:
            Dictionary with ``mounted``, ``mount_point``, ``home``,
            ``region``, ``topics``, ``pid`` and ``updated_at``.
        """
        state = self._read_state() or {}
        return {
            "mounted": self._is_mounted(),
            "mount_point": str(self._mount_point),
            "home": str(self._home),
            "region": state.get("region", self.config.region),
            "topics": state.get("topics", list(self.config.topics)),
            "pid": state.get("pid"),
            "updated_at": state.get("updated_at"),
        }
