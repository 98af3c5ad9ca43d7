"""Message transports feeding the topics tree."""

from .base import MessageHandler, MessageTransport, TransportError

__all__ = ["MessageHandler", "MessageTransport", "TransportError"]
