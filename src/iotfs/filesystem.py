"""
Assembly of the full tree.

Virtual directory layout::

    /
    ├── endpoint          data endpoint host
    ├── things/           devices, their state and attached certificates
    ├── certificates/     certificates and their attached policies
    ├── policies/         policies and their versions
    ├── rules/            topic rules and their actions
    └── topics/           publish to / read from configured topics
"""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from .catalog.base import CatalogClient
from .dispatcher import Dispatcher
from .nodes import CertificatesNode, PoliciesNode, ThingsNode, TopicRulesNode, TopicsNode
from .nodes.topics import DEFAULT_MESSAGE_LIMIT
from .transport.base import MessageTransport
from .tree import InfoNode, Node, StalenessScheduler

logger = logging.getLogger("iotfs.filesystem")

DEFAULT_REFRESH_INTERVAL = 30.0


class IotFS:
    """The node tree plus the collaborators it was built with.

    Args:
        catalog: Remote catalog client.
        transport: Message transport; needed only when topics are given.
        topics: Topics to expose under ``/topics``.
        refresh_interval: Seconds before a collection listing goes stale.
        message_limit: Messages kept per topic.
        scheduler: Staleness scheduler; a private one is created if omitted.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        transport: Optional[MessageTransport] = None,
        topics: Iterable[str] = (),
        refresh_interval: Optional[float] = DEFAULT_REFRESH_INTERVAL,
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
        scheduler: Optional[StalenessScheduler] = None,
    ) -> None:
        self.catalog = catalog
        self.transport = transport
        self.scheduler = scheduler or StalenessScheduler()
        self.root = Node(
            None,
            "",
            is_dir=True,
            catalog=catalog,
            transport=transport,
            scheduler=self.scheduler,
        )
        root = self.root
        root.add_child(InfoNode(root, "endpoint", loader=catalog.describe_endpoint))
        root.add_child(ThingsNode(root, refresh_interval))
        root.add_child(CertificatesNode(root, refresh_interval))
        root.add_child(PoliciesNode(root, refresh_interval))
        root.add_child(TopicRulesNode(root, refresh_interval))
        self.topics = root.add_child(TopicsNode(root, topics, message_limit))
        if self.topics.children and transport is None:
            raise ValueError("topics need a message transport")
        self.operations = Dispatcher(root)

    def start(self) -> None:
        """Subscribe the topic directories and connect the transport."""
        if self.transport is None or not self.topics.children:
            return
        self.topics.subscribe_all()
        self.transport.connect()
        logger.info("Serving %d topics", len(self.topics.children))

    def close(self) -> None:
        if self.transport is not None and self.topics.children:
            self.transport.disconnect()
        self.scheduler.stop()
