"""Message transport interface used by the topic nodes."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

MessageHandler = Callable[[str, bytes], None]


class TransportError(Exception):
    """Publishing or subscribing failed."""


class MessageTransport(ABC):
    """Publish/subscribe collaborator.

    Handlers registered with :meth:`subscribe` are called from the
    transport's own thread with ``(topic, payload)``.
    """

    @abstractmethod
    def connect(self) -> None: ...

    @abstractmethod
    def disconnect(self) -> None: ...

    @abstractmethod
    def publish(self, topic: str, payload: bytes) -> None: ...

    @abstractmethod
    def subscribe(self, topic: str, handler: MessageHandler) -> None: ...
