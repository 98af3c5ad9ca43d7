"""Building blocks shared by the catalog directories."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from ..errors import DirectoryNotEmpty, PermissionDenied, remote_call
from ..tree import InfoNode, Node

logger = logging.getLogger("iotfs.nodes")


class CollectionNode(Node):
    """Directory mirroring one remote collection.

    ``refresh`` lists the collection and merges it into the children,
    keeping node instances for names that are still there.
    """

    def __init__(self, parent: Node, name: str, refresh_interval: Optional[float] = None) -> None:
        super().__init__(parent, name, is_dir=True, refresh_interval=refresh_interval)

    def fetch_items(self) -> Iterable[Any]:
        raise NotImplementedError

    def build(self, item: Any) -> Node:
        raise NotImplementedError

    def refresh(self) -> None:
        with remote_call(f"list {self.name}", self.path):
            items = list(self.fetch_items())
        self.reconcile_children(self.build(item) for item in items)
        logger.debug("%s: %d entries", self.path, len(self.children))


class ResourceNode(Node):
    """Directory standing for a single remote resource.

    Removing the directory deletes the resource. When ``relationship``
    names a child directory of links, the resource is only deleted once
    that directory is empty.
    """

    relationship: Optional[str] = None

    def __init__(self, parent: Node, name: str) -> None:
        super().__init__(parent, name, is_dir=True)

    def info(self, name: str, text: Any) -> InfoNode:
        return self.add_child(InfoNode(self, name, "" if text is None else str(text)))

    def delete_remote(self) -> None:
        raise NotImplementedError

    def remove(self) -> None:
        parent = self.parent
        if parent is None:
            raise PermissionDenied("the root cannot be removed", self.path)
        path = self.path
        if self.relationship:
            links = self.get_child(self.relationship)
            if links is not None and links.list_entries():
                raise DirectoryNotEmpty(f"{self.relationship} still attached", path)
        with parent._lock:
            with remote_call(f"delete {self.name}", path):
                self.delete_remote()
            parent._detach_child(self)
        logger.info("Deleted %s", path)
