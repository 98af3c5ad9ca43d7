"""
Relationship directories.

Some directories do not hold resources of their own but record which
other resources are attached to their owner: the certificates of a
thing, the policies of a certificate, the default version of a policy.
Each entry is a symlink to the related node. Creating the link attaches
remotely, removing it detaches remotely; the local entry only changes
once the remote call has succeeded.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from ..errors import AlreadyExists, NoSuchDevice, remote_call
from .node import LinkNode, Node, NodeKind

logger = logging.getLogger("iotfs.links")


class RelationshipNode(Node):
    """Directory whose symlinks stand for remote relationships.

    Subclasses set ``accepts`` to the kind of node that may be linked and
    implement :meth:`establish` and :meth:`dissolve`.
    """

    accepts: NodeKind = NodeKind.DIRECTORY

    def __init__(self, parent: Node, name: str, **kwargs) -> None:
        super().__init__(parent, name, is_dir=True, **kwargs)

    def accepts_source(self, name: str, source: Node) -> bool:
        return source.kind is self.accepts

    def establish(self, name: str, source: Node) -> None:
        raise NotImplementedError

    def dissolve(self, name: str, source: Node) -> None:
        raise NotImplementedError

    def symlink(self, name: str, target: str) -> None:
        """Attach ``target`` remotely, then show it as link ``name``.

        Raises:
            NoSuchDevice: ``target`` does not resolve to an acceptable node.
            AlreadyExists: ``name`` is taken.
            FSError: The translated remote failure; nothing is linked.
        """
        source = self.find(target)
        link_path = f"{self.path.rstrip('/')}/{name}"
        if source is None or not self.accepts_source(name, source):
            raise NoSuchDevice(f"{target} cannot be linked here", link_path)
        with self._lock:
            if name in self.children:
                raise AlreadyExists(path=link_path)
            with remote_call(f"attach {source.path}", link_path):
                self.establish(name, source)
            self.add_child(LinkNode(self, name, source))
        logger.info("Linked %s -> %s", link_path, source.path)

    def symunlink(self, name: str) -> None:
        """Detach the relationship behind link ``name``.

        Called with this directory locked, before the link is dropped. A
        failure propagates and the link stays.
        """
        link = self.get_child(name)
        source = link.source if link is not None and link.is_link else None
        link_path = f"{self.path.rstrip('/')}/{name}"
        if source is None or not self.accepts_source(name, source):
            raise NoSuchDevice("link does not point at a related resource", link_path)
        with remote_call(f"detach {source.path}", link_path):
            self.dissolve(name, source)
        logger.info("Unlinked %s -> %s", link_path, source.path)

    def links_to(self, targets: Iterable[Tuple[str, Node]]) -> List[LinkNode]:
        """Build link nodes for a refresh listing."""
        return [LinkNode(self, name, source) for name, source in targets]
