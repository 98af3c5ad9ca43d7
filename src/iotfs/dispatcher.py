"""
Filesystem operations over the node tree.

``Dispatcher`` has the method names and signatures of fusepy's
``Operations`` and is callable the same way, so it can be handed to
``fuse.FUSE`` directly. Failures are raised as ``FSError`` (an
``OSError``), which fusepy reports as ``-errno``. :meth:`Dispatcher.invoke`
gives the same signed-integer convention to callers that are not fusepy.
"""

from __future__ import annotations

import errno
import logging
from typing import Any, Dict, List, Optional, Tuple

from .errors import AlreadyExists, FSError, IsADirectory, NotADirectory, NotFound, NotSupported
from .tree import Node, split_path

logger = logging.getLogger("iotfs.dispatcher")

OPERATIONS = frozenset(
    {
        "getattr",
        "readdir",
        "open",
        "read",
        "write",
        "truncate",
        "flush",
        "release",
        "create",
        "mkdir",
        "unlink",
        "rmdir",
        "symlink",
        "link",
        "readlink",
        "chmod",
        "chown",
        "utimens",
    }
)


class Dispatcher:
    """Translate filesystem calls into node operations.

    Args:
        root: Root of the tree to serve.
    """

    def __init__(self, root: Node) -> None:
        self.root = root

    def __call__(self, op: str, *args: Any) -> Any:
        if op not in OPERATIONS:
            raise NotSupported(f"unsupported operation {op}")
        try:
            return getattr(self, op)(*args)
        except FSError as exc:
            logger.debug("%s%r failed: %s", op, args[:1], errno.errorcode.get(exc.errno, exc.errno))
            raise

    def invoke(self, op: str, *args: Any) -> Any:
        """Run an operation, returning ``-errno`` instead of raising.

        Returns:
            The operation's result (``0`` when it has none), or a negative
            POSIX error code.
        """
        try:
            result = self(op, *args)
        except OSError as exc:
            return -(exc.errno or errno.EIO)
        return 0 if result is None else result

    # -- path helpers --------------------------------------------------------

    def _node(self, path: str, follow: bool = True) -> Node:
        return self.root.resolve(path, follow)

    def _parent_of(self, path: str) -> Tuple[Node, str]:
        parent_path, name = split_path(path)
        parent = self.root.resolve(parent_path)
        if not parent.is_dir:
            raise NotADirectory(path=path)
        return parent, name

    def _existing_child(self, path: str) -> Node:
        parent, name = self._parent_of(path)
        parent.ensure_fresh()
        node = parent.get_child(name)
        if node is None:
            raise NotFound(path=path)
        return node

    def _new_child(self, path: str) -> Tuple[Node, str]:
        parent, name = self._parent_of(path)
        parent.ensure_fresh()
        if parent.get_child(name) is not None:
            raise AlreadyExists(path=path)
        return parent, name

    def _leaf(self, path: str) -> Node:
        node = self._node(path)
        if node.is_dir:
            raise IsADirectory(path=path)
        return node

    # -- attributes and listing ----------------------------------------------

    def getattr(self, path: str, fh: Optional[int] = None) -> Dict[str, Any]:
        node = self._node(path, follow=False)
        node.ensure_fresh()
        return node.stat()

    def readdir(self, path: str, fh: Optional[int] = None) -> List[str]:
        node = self._node(path)
        if not node.is_dir:
            raise NotADirectory(path=path)
        return [".", ".."] + node.list_entries()

    def readlink(self, path: str) -> str:
        return self._node(path, follow=False).readlink()

    # -- file content --------------------------------------------------------

    def open(self, path: str, flags: int) -> int:
        node = self._node(path)
        node.open(flags)
        return 0

    def read(self, path: str, size: int, offset: int, fh: Optional[int] = None) -> bytes:
        return self._leaf(path).read(size, offset)

    def write(self, path: str, data: bytes, offset: int, fh: Optional[int] = None) -> int:
        return self._leaf(path).write(data, offset)

    def truncate(self, path: str, length: int, fh: Optional[int] = None) -> int:
        self._leaf(path).truncate(length)
        return 0

    def flush(self, path: str, fh: Optional[int] = None) -> int:
        self._node(path).flush()
        return 0

    def release(self, path: str, fh: Optional[int] = None) -> int:
        self._node(path).release()
        return 0

    # -- structure -----------------------------------------------------------

    def create(self, path: str, mode: int, fi: Optional[Any] = None) -> int:
        parent, name = self._new_child(path)
        parent.create(name, mode)
        return 0

    def mkdir(self, path: str, mode: int) -> int:
        parent, name = self._new_child(path)
        parent.mkdir(name, mode)
        return 0

    def symlink(self, target: str, source: str) -> int:
        """Create link ``target`` pointing at ``source`` (``ln -s source target``)."""
        parent, name = self._new_child(target)
        parent.symlink(name, source)
        return 0

    def link(self, target: str, source: str) -> int:
        """Hard links are treated as symlinks to the same node."""
        source_node = self._node(source)
        parent, name = self._new_child(target)
        parent.symlink(name, source_node.path)
        return 0

    def unlink(self, path: str) -> int:
        node = self._existing_child(path)
        if node.is_dir:
            raise IsADirectory(path=path)
        node.remove()
        return 0

    def rmdir(self, path: str) -> int:
        node = self._existing_child(path)
        if not node.is_dir:
            raise NotADirectory(path=path)
        node.remove()
        return 0

    # -- cosmetic metadata ---------------------------------------------------

    def chmod(self, path: str, mode: int) -> int:
        self._node(path, follow=False)
        return 0

    def chown(self, path: str, uid: int, gid: int) -> int:
        self._node(path, follow=False)
        return 0

    def utimens(self, path: str, times: Optional[Tuple[float, float]] = None) -> int:
        self._node(path, follow=False)
        return 0
