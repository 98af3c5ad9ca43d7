"""
``/topics``: publish to and watch configured message topics.

Each configured topic gets a directory (slashes become underscores)::

    topics/<topic>/publish     write a payload, close to send it
    topics/<topic>/messages/   one file per received message

Messages are named by arrival order. Only the newest ``message_limit``
are kept; removing a message file discards it.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Deque, Iterable, List, Optional

from ..errors import NoSpace, remote_call
from ..tree import InfoNode, Node

logger = logging.getLogger("iotfs.nodes.topics")

PUBLISH_INITIAL_SIZE = 1024
PUBLISH_MAX_SIZE = 128 * 1024
DEFAULT_MESSAGE_LIMIT = 100


def topic_dir_name(topic: str) -> str:
    return topic.replace("/", "_")


class TopicsNode(Node):
    def __init__(
        self,
        parent: Node,
        topics: Iterable[str] = (),
        message_limit: int = DEFAULT_MESSAGE_LIMIT,
    ) -> None:
        super().__init__(parent, "topics", is_dir=True)
        for topic in topics:
            self.add_child(TopicNode(self, topic, message_limit))

    @property
    def topics(self) -> List["TopicNode"]:
        return [child for child in self.children.values() if isinstance(child, TopicNode)]

    def subscribe_all(self) -> None:
        """Route inbound messages for every topic into its ``messages`` directory."""
        for topic in self.topics:
            with remote_call(f"subscribe {topic.topic}", topic.path):
                self.transport.subscribe(topic.topic, topic.messages.deliver)
            logger.info("Subscribed to %s", topic.topic)


class TopicNode(Node):
    def __init__(self, parent: Node, topic: str, message_limit: int = DEFAULT_MESSAGE_LIMIT) -> None:
        super().__init__(parent, topic_dir_name(topic), is_dir=True)
        self.topic = topic
        self.publish = self.add_child(PublishNode(self, topic))
        self.messages = self.add_child(MessagesNode(self, message_limit))


class PublishNode(Node):
    """Outbound payload buffer.

    Writes collect into a buffer that grows up to ``PUBLISH_MAX_SIZE``.
    Releasing the file publishes the buffer once and empties it; reading
    returns the last payload sent.
    """

    def __init__(self, parent: Node, topic: str) -> None:
        super().__init__(parent, "publish", is_dir=False)
        self.topic = topic
        self._buffer = bytearray()
        self._buffer_capacity = PUBLISH_INITIAL_SIZE
        self._last = b""

    @property
    def last_payload(self) -> bytes:
        return self._last

    def _reserve(self, length: int) -> None:
        if length > PUBLISH_MAX_SIZE:
            raise NoSpace(f"payload limit is {PUBLISH_MAX_SIZE} bytes", self.path)
        while self._buffer_capacity < length:
            self._buffer_capacity = min(self._buffer_capacity * 2, PUBLISH_MAX_SIZE)

    def write(self, data: bytes, offset: int) -> int:
        end = offset + len(data)
        with self._lock:
            self._reserve(end)
            if offset > len(self._buffer):
                self._buffer.extend(b"\0" * (offset - len(self._buffer)))
            self._buffer[offset:end] = data
        return len(data)

    def truncate(self, length: int) -> None:
        with self._lock:
            self._reserve(length)
            if length < len(self._buffer):
                del self._buffer[length:]
            else:
                self._buffer.extend(b"\0" * (length - len(self._buffer)))

    def read(self, size: int, offset: int) -> bytes:
        return self._last[offset : offset + size]

    def release(self) -> None:
        with self._lock:
            if not self._buffer:
                return
            payload = bytes(self._buffer)
            self._buffer = bytearray()
            self._buffer_capacity = PUBLISH_INITIAL_SIZE
            with remote_call(f"publish {self.topic}", self.path):
                self.transport.publish(self.topic, payload)
            self._last = payload
            self.size = len(payload)
        logger.debug("Published %d bytes to %s", len(payload), self.topic)


class MessagesNode(Node):
    """Messages received on the topic, oldest first."""

    def __init__(self, parent: Node, limit: int = DEFAULT_MESSAGE_LIMIT) -> None:
        super().__init__(parent, "messages", is_dir=True)
        self.limit = limit
        self._sequence = 0
        self._order: Deque[str] = deque()

    def deliver(self, topic: str, payload: bytes) -> Optional[InfoNode]:
        """Transport callback: store one inbound message."""
        with self._lock:
            self._sequence += 1
            message = InfoNode(self, f"{self._sequence:08d}", payload)
            self.add_child(message)
            self._order.append(message.name)
            while self.limit > 0 and len(self._order) > self.limit:
                oldest = self.children.get(self._order.popleft())
                if oldest is not None:
                    self._detach_child(oldest)
        logger.debug("%s: message %s (%d bytes)", self.path, message.name, len(payload))
        return message
