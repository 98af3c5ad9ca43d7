"""
Leaf nodes: fixed text, lazily fetched text and editable documents.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Union

from ..errors import NoSpace, PermissionDenied, remote_call
from .node import Node

logger = logging.getLogger("iotfs.tree")

Text = Union[str, bytes]


def _as_bytes(text: Text) -> bytes:
    return text.encode("utf-8") if isinstance(text, str) else bytes(text)


class InfoNode(Node):
    """Read-only text file.

    The content is either given up front or produced by ``loader`` on the
    first access (remote failures are translated).
    """

    writable = False

    def __init__(
        self,
        parent: Node,
        name: str,
        text: Optional[Text] = None,
        loader: Optional[Callable[[], Text]] = None,
    ) -> None:
        super().__init__(parent, name, is_dir=False)
        self._loader = loader
        self._content = b""
        if text is not None:
            self.set_text(text)

    @property
    def content(self) -> bytes:
        return self._content

    def set_text(self, text: Text) -> None:
        self._content = _as_bytes(text)
        self.size = len(self._content)

    def refresh(self) -> None:
        if self._loader is None:
            return
        with remote_call(f"load {self.name}", self.path):
            self.set_text(self._loader())

    def read(self, size: int, offset: int) -> bytes:
        self.ensure_fresh()
        return self._content[offset : offset + size]

    def write(self, data: bytes, offset: int) -> int:
        raise PermissionDenied("read-only file", self.path)

    def truncate(self, length: int) -> None:
        raise PermissionDenied("read-only file", self.path)


class DocumentNode(Node):
    """A remote document edited through a local byte buffer.

    Opening fetches the document unless there are unsaved edits. Writes
    and truncates only touch the buffer; ``release`` pushes it back. A
    failed push throws the edits away so the next open sees the remote
    copy again.

    Subclasses implement :meth:`fetch` and, if writable, :meth:`push`.
    """

    max_size = 64 * 1024
    pad = b" "

    def __init__(self, parent: Node, name: str, max_size: Optional[int] = None) -> None:
        super().__init__(parent, name, is_dir=False)
        if max_size is not None:
            self.max_size = max_size
        self._buffer = bytearray()
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def fetch(self) -> Text:
        raise NotImplementedError

    def push(self, data: bytes) -> None:
        raise PermissionDenied("read-only document", self.path)

    def _load(self) -> None:
        with remote_call(f"fetch {self.name}", self.path):
            data = _as_bytes(self.fetch())
        self._buffer = bytearray(data)
        self.size = len(self._buffer)

    def refresh(self) -> None:
        with self._lock:
            if not self._dirty:
                self._load()

    def open(self, flags: int) -> None:
        self.mark_stale()
        self.ensure_fresh()

    def read(self, size: int, offset: int) -> bytes:
        self.ensure_fresh()
        with self._lock:
            return bytes(self._buffer[offset : offset + size])

    def _check_writable(self) -> None:
        if not self.writable:
            raise PermissionDenied("read-only document", self.path)

    def write(self, data: bytes, offset: int) -> int:
        self._check_writable()
        end = offset + len(data)
        if end > self.max_size:
            raise NoSpace(f"document limit is {self.max_size} bytes", self.path)
        with self._lock:
            if offset > len(self._buffer):
                self._buffer.extend(self.pad * (offset - len(self._buffer)))
            self._buffer[offset:end] = data
            self.size = len(self._buffer)
            self._dirty = True
        return len(data)

    def truncate(self, length: int) -> None:
        self._check_writable()
        if length > self.max_size:
            raise NoSpace(f"document limit is {self.max_size} bytes", self.path)
        with self._lock:
            if length < len(self._buffer):
                del self._buffer[length:]
            else:
                self._buffer.extend(self.pad * (length - len(self._buffer)))
            self.size = length
            self._dirty = True

    def release(self) -> None:
        with self._lock:
            if not self._dirty:
                return
            data = bytes(self._buffer)
            self._dirty = False
            saved = False
            try:
                with remote_call(f"push {self.name}", self.path):
                    self.push(data)
                saved = True
            finally:
                if not saved:
                    self._buffer = bytearray()
                    self.size = 0
                    self.mark_stale()
        logger.info("Saved %s (%d bytes)", self.path, len(data))
