"""
``/things``: registered devices.

Each thing directory carries its ARN, its attributes, its device state
document and a ``principals`` directory of links to the certificates
attached to it::

    ln -s ../../../certificates/<cert> /things/<thing>/principals/<cert>
"""

from __future__ import annotations

import logging
from typing import List, Optional

from ..catalog.base import CatalogError, ErrorKind
from ..catalog.models import ThingSummary
from ..errors import remote_call
from ..tree import DocumentNode, InfoNode, Node, NodeKind, RelationshipNode
from .base import CollectionNode, ResourceNode

logger = logging.getLogger("iotfs.nodes.things")

STATE_MAX_SIZE = 8 * 1024


class ThingsNode(CollectionNode):
    """All things in the account; ``mkdir`` registers a new one."""

    def __init__(self, parent: Node, refresh_interval: Optional[float] = None) -> None:
        super().__init__(parent, "things", refresh_interval)

    def fetch_items(self) -> List[ThingSummary]:
        return self.catalog.list_things()

    def build(self, item: ThingSummary) -> Node:
        return ThingNode(self, item)

    def mkdir(self, name: str, mode: int) -> None:
        with self._lock:
            with remote_call("create thing", f"{self.path}/{name}"):
                thing = self.catalog.create_thing(name)
            self.add_child(ThingNode(self, thing))
        logger.info("Created thing %s", name)


class ThingNode(ResourceNode):
    kind = NodeKind.THING
    relationship = "principals"

    def __init__(self, parent: Node, thing: ThingSummary) -> None:
        super().__init__(parent, thing.name)
        self.arn = thing.arn
        self.info("arn", thing.arn)
        if thing.type_name:
            self.info("type", thing.type_name)
        attributes = self.add_child(Node(self, "attributes", is_dir=True))
        for key, value in thing.attributes.items():
            attributes.add_child(InfoNode(attributes, key, value))
        self.add_child(StateNode(self, thing.name))
        self.add_child(
            PrincipalsNode(self, thing.name, refresh_interval=parent.refresh_interval)
        )

    def delete_remote(self) -> None:
        self.catalog.delete_thing(self.name)


class StateNode(DocumentNode):
    """The device state document of one thing.

    A thing that has never reported state reads as an empty file.
    """

    max_size = STATE_MAX_SIZE

    def __init__(self, parent: Node, thing_name: str) -> None:
        super().__init__(parent, "state")
        self.thing_name = thing_name

    def fetch(self) -> bytes:
        try:
            return self.catalog.get_thing_state(self.thing_name)
        except CatalogError as exc:
            if exc.kind is ErrorKind.NOT_FOUND:
                return b""
            raise

    def push(self, data: bytes) -> None:
        self.catalog.update_thing_state(self.thing_name, data)


class PrincipalsNode(RelationshipNode):
    """Certificates attached to a thing, as links into ``/certificates``."""

    accepts = NodeKind.CERTIFICATE

    def __init__(
        self, parent: Node, thing_name: str, refresh_interval: Optional[float] = None
    ) -> None:
        super().__init__(parent, "principals", refresh_interval=refresh_interval)
        self.thing_name = thing_name

    def refresh(self) -> None:
        with remote_call("list principals", self.path):
            arns = self.catalog.list_thing_principals(self.thing_name)
        certificates = self.root.find("/certificates")
        targets = []
        for arn in arns:
            certificate = certificates.find_certificate(arn=arn) if certificates else None
            if certificate is None:
                logger.debug("%s: no certificate directory for %s", self.path, arn)
                continue
            targets.append((certificate.name, certificate))
        self.reconcile_children(self.links_to(targets))

    def establish(self, name: str, source: Node) -> None:
        self.catalog.attach_thing_principal(self.thing_name, source.arn)

    def dissolve(self, name: str, source: Node) -> None:
        self.catalog.detach_thing_principal(self.thing_name, source.arn)
