"""
The in-memory node tree.

A ``Node`` is one visible entry: a directory, a leaf document or a link.
Parents own their children through the ``children`` mapping; the child
keeps only weak references back to its parent and to the root.

Directories are filled lazily. ``ensure_fresh()`` runs ``refresh()`` the
first time a directory is touched and again after its refresh interval
has flipped it to stale. Refreshes of one node are serialized by that
node's lock; nothing is serialized across nodes.
"""

from __future__ import annotations

import logging
import os
import stat
import threading
import time
import weakref
from enum import Enum
from functools import partial
from typing import Any, Dict, Iterable, List, Optional

from ..errors import (
    DirectoryNotEmpty,
    InvalidArgument,
    NoSpace,
    NotADirectory,
    NotFound,
    PermissionDenied,
)
from .resolver import relative_target, resolve
from .staleness import ScheduledFlip, StalenessScheduler, default_scheduler

logger = logging.getLogger("iotfs.tree")


class NodeKind(str, Enum):
    """Tag used by relationship directories to guard link sources."""

    DIRECTORY = "directory"
    FILE = "file"
    LINK = "link"
    THING = "thing"
    CERTIFICATE = "certificate"
    POLICY = "policy"
    POLICY_VERSION = "policy_version"
    TOPIC_RULE = "topic_rule"


class CacheState(str, Enum):
    UNINITIALIZED = "uninitialized"
    FRESH = "fresh"
    STALE = "stale"


def _expire(ref: "weakref.ReferenceType[Node]") -> None:
    node = ref()
    if node is not None:
        node.mark_stale()


class Node:
    """A directory or leaf in the tree.

    Args:
        parent: Owning directory, ``None`` for the root.
        name: Entry name, unique among siblings.
        is_dir: Whether this node lists children.
        catalog: Catalog client. Inherited from the parent when omitted.
        transport: Message transport. Inherited from the parent when omitted.
        scheduler: Staleness scheduler. Inherited from the parent when omitted.
        refresh_interval: Seconds a refresh stays valid; ``None`` or
            non-positive means forever.
    """

    kind: Optional[NodeKind] = None
    is_link = False
    writable = True

    def __init__(
        self,
        parent: Optional["Node"],
        name: str,
        is_dir: bool = False,
        *,
        catalog: Any = None,
        transport: Any = None,
        scheduler: Optional[StalenessScheduler] = None,
        refresh_interval: Optional[float] = None,
    ) -> None:
        self.name = name
        self.is_dir = is_dir
        self.size = 0
        self.created_at = time.time()
        self.children: Dict[str, Node] = {}
        if self.kind is None:
            self.kind = NodeKind.DIRECTORY if is_dir else NodeKind.FILE

        self._lock = threading.RLock()
        self._state = CacheState.UNINITIALIZED
        self._refresh_interval: Optional[float] = None
        self._timer: Optional[ScheduledFlip] = None

        if parent is None:
            self._parent_ref = None
            self._root_ref = weakref.ref(self)
            self.catalog = catalog
            self.transport = transport
            self.scheduler = scheduler
        else:
            self._parent_ref = weakref.ref(parent)
            self._root_ref = parent._root_ref
            self.catalog = catalog if catalog is not None else parent.catalog
            self.transport = transport if transport is not None else parent.transport
            self.scheduler = scheduler if scheduler is not None else parent.scheduler

        if refresh_interval is not None:
            self.set_refresh_interval(refresh_interval)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.path!r}>"

    # -- structure -----------------------------------------------------------

    @property
    def parent(self) -> Optional["Node"]:
        return self._parent_ref() if self._parent_ref is not None else None

    @property
    def root(self) -> "Node":
        return self._root_ref() or self

    @property
    def path(self) -> str:
        """Absolute path, rebuilt from the parent chain."""
        names: List[str] = []
        node: Optional[Node] = self
        while node is not None and node.parent is not None:
            names.append(node.name)
            node = node.parent
        return "/" + "/".join(reversed(names))

    def get_child(self, name: str) -> Optional["Node"]:
        return self.children.get(name)

    def add_child(self, node: "Node") -> "Node":
        """Insert or replace the child called ``node.name``."""
        with self._lock:
            node._parent_ref = weakref.ref(self)
            self.children[node.name] = node
        return node

    def reconcile_children(self, nodes: Iterable["Node"]) -> None:
        """Merge a fresh listing into ``children``.

        Names already present keep their existing node instance, new names
        are inserted and names missing from ``nodes`` are dropped.
        """
        incoming = {node.name: node for node in nodes}
        with self._lock:
            merged: Dict[str, Node] = {}
            for name, node in incoming.items():
                existing = self.children.get(name)
                merged[name] = existing if existing is not None else node
            dropped = [node for name, node in self.children.items() if name not in merged]
            self.children = merged
        for node in dropped:
            node._discard()
        if dropped:
            logger.debug("%s: dropped %d stale entries", self.path, len(dropped))

    def list_entries(self) -> List[str]:
        """Names of the children, refreshing the directory first if needed."""
        self.ensure_fresh()
        with self._lock:
            return sorted(self.children)

    def resolve(self, path: str, follow: bool = True) -> "Node":
        return resolve(self, path, follow)

    def find(self, path: str, follow: bool = True) -> Optional["Node"]:
        """Like :meth:`resolve` but returns ``None`` for a missing path."""
        try:
            return resolve(self, path, follow)
        except (NotFound, NotADirectory):
            return None

    def remove(self) -> None:
        """Detach this node from its parent.

        Raises:
            PermissionDenied: This is the root.
            DirectoryNotEmpty: A directory that still has children.
        """
        parent = self.parent
        if parent is None:
            raise PermissionDenied("the root cannot be removed", self.path)
        if self.is_dir:
            self.ensure_fresh()
        with parent._lock:
            with self._lock:
                if self.is_dir and self.children:
                    raise DirectoryNotEmpty(path=self.path)
            parent._detach_child(self)
        logger.debug("Removed %s", self.path)

    def _detach_child(self, node: "Node") -> None:
        with self._lock:
            if self.children.get(node.name) is node:
                del self.children[node.name]
        node._discard()

    def _discard(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        for child in list(self.children.values()):
            child._discard()

    # -- caching -------------------------------------------------------------

    @property
    def state(self) -> CacheState:
        return self._state

    @property
    def init_done(self) -> bool:
        return self._state is CacheState.FRESH

    @property
    def refresh_interval(self) -> Optional[float]:
        return self._refresh_interval

    def set_refresh_interval(self, seconds: Optional[float]) -> None:
        """Change how long a refresh stays valid.

        Any pending timer is cancelled. ``None`` or a non-positive value
        means the node never goes stale again.
        """
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            if seconds is None or seconds <= 0:
                self._refresh_interval = None
                return
            self._refresh_interval = float(seconds)
            if self._state is CacheState.FRESH:
                self._arm_timer()

    def mark_stale(self) -> None:
        """Force a refresh on the next access."""
        if self._state is CacheState.FRESH:
            self._state = CacheState.STALE

    def ensure_fresh(self) -> None:
        """Refresh the node if it was never loaded or has gone stale.

        A failing refresh leaves the cached children and the cache state
        untouched and propagates the error.
        """
        if self._state is CacheState.FRESH:
            return
        with self._lock:
            if self._state is CacheState.FRESH:
                return
            logger.debug("Refreshing %s (%s)", self.path, self._state.value)
            self.refresh()
            self._state = CacheState.FRESH
            self._arm_timer()

    def refresh(self) -> None:
        """Load this node's content. Static nodes have nothing to load."""

    def _arm_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._refresh_interval is None:
            return
        scheduler = self.scheduler or default_scheduler()
        self._timer = scheduler.schedule(
            self._refresh_interval, partial(_expire, weakref.ref(self))
        )

    # -- attributes ----------------------------------------------------------

    def stat(self) -> Dict[str, Any]:
        """Stat dictionary in the shape fusepy's ``getattr`` expects."""
        if self.is_dir:
            mode, nlink = stat.S_IFDIR | 0o755, 2
        else:
            mode, nlink = stat.S_IFREG | (0o644 if self.writable else 0o444), 1
        return {
            "st_mode": mode,
            "st_nlink": nlink,
            "st_uid": os.getuid(),
            "st_gid": os.getgid(),
            "st_size": self.size,
            "st_atime": self.created_at,
            "st_mtime": self.created_at,
            "st_ctime": self.created_at,
        }

    # -- operations with neutral defaults ------------------------------------

    def open(self, flags: int) -> None:
        pass

    def read(self, size: int, offset: int) -> bytes:
        return b""

    def write(self, data: bytes, offset: int) -> int:
        return 0

    def truncate(self, length: int) -> None:
        pass

    def flush(self) -> None:
        pass

    def release(self) -> None:
        pass

    def create(self, name: str, mode: int) -> None:
        pass

    def mkdir(self, name: str, mode: int) -> None:
        pass

    def symlink(self, name: str, target: str) -> None:
        pass

    def symunlink(self, name: str) -> None:
        """Called before a link child is removed; may veto by raising."""

    def readlink(self, max_size: Optional[int] = None) -> str:
        raise InvalidArgument("not a link", self.path)


class LinkNode(Node):
    """A symbolic link to another node of the same tree.

    Content operations go to the source. The link does not keep its
    source alive; once the source leaves the tree the link dangles.
    """

    kind = NodeKind.LINK
    is_link = True

    def __init__(self, parent: Node, name: str, source: Node) -> None:
        super().__init__(parent, name, is_dir=False)
        self._source_ref = weakref.ref(source)

    @property
    def source(self) -> Optional[Node]:
        return self._source_ref()

    def target(self) -> Node:
        source = self.source
        if source is None:
            raise NotFound("dangling link", self.path)
        return source

    def readlink(self, max_size: Optional[int] = None) -> str:
        parent = self.parent
        source = self.target()
        text = relative_target(parent, source) if parent is not None else source.path
        if max_size is not None and len(text.encode("utf-8")) > max_size:
            raise NoSpace("link target longer than buffer", self.path)
        return text

    def stat(self) -> Dict[str, Any]:
        attrs = super().stat()
        attrs["st_mode"] = stat.S_IFLNK | 0o777
        source = self.source
        attrs["st_size"] = len(self.readlink().encode("utf-8")) if source is not None else 0
        return attrs

    def remove(self) -> None:
        parent = self.parent
        if parent is None:
            raise PermissionDenied("the root cannot be removed", self.path)
        with parent._lock:
            parent.symunlink(self.name)
            parent._detach_child(self)
        logger.debug("Unlinked %s", self.path)

    def list_entries(self) -> List[str]:
        return self.target().list_entries()

    def open(self, flags: int) -> None:
        self.target().open(flags)

    def read(self, size: int, offset: int) -> bytes:
        return self.target().read(size, offset)

    def write(self, data: bytes, offset: int) -> int:
        return self.target().write(data, offset)

    def truncate(self, length: int) -> None:
        self.target().truncate(length)

    def flush(self) -> None:
        self.target().flush()

    def release(self) -> None:
        self.target().release()
