"""
MQTT transport over mutual TLS, powered by paho-mqtt.

Connects to the catalog's data endpoint with a device certificate and
private key. Subscriptions are remembered and issued again on every
successful (re)connect; each one gets its own paho message callback, so
wildcard filters work as the broker applies them.

Install::

    pip install paho-mqtt
"""

from __future__ import annotations

import logging
import os
import threading
from typing import Dict, Optional

from .base import MessageHandler, MessageTransport, TransportError

logger = logging.getLogger("iotfs.mqtt")

try:
    import paho.mqtt.client as _mqtt_client

    HAS_PAHO = True
except ImportError:
    HAS_PAHO = False

DEFAULT_PORT = 8883


class MqttTransport(MessageTransport):
    """Publish/subscribe against an MQTT broker.

    Args:
        host: Broker host (the IoT data endpoint).
        certificate: Path to the client certificate (PEM).
        private_key: Path to the client private key (PEM).
        ca_file: CA bundle; the system store is used when omitted.
        port: Broker port.
        client_id: MQTT client id (default: ``iotfs-<pid>``).
        qos: QoS for publishes and subscriptions.
        keepalive: Keepalive in seconds.
        connect_timeout: Seconds to wait for the broker's CONNACK.
    """

    def __init__(
        self,
        host: str,
        certificate: Optional[str] = None,
        private_key: Optional[str] = None,
        ca_file: Optional[str] = None,
        port: int = DEFAULT_PORT,
        client_id: Optional[str] = None,
        qos: int = 1,
        keepalive: int = 60,
        connect_timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._certificate = certificate
        self._private_key = private_key
        self._ca_file = ca_file
        self._client_id = client_id or f"iotfs-{os.getpid()}"
        self._qos = qos
        self._keepalive = keepalive
        self._connect_timeout = connect_timeout
        self._client = None
        self._connected = threading.Event()
        self._subscriptions: Dict[str, MessageHandler] = {}
        self._lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def connect(self) -> None:
        """Open the connection and wait for the broker to accept it.

        Raises:
            ImportError: paho-mqtt is missing.
            TransportError: The broker could not be reached in time.
        """
        if not HAS_PAHO:
            raise ImportError("paho-mqtt is not installed. Install with: pip install paho-mqtt")

        client = _mqtt_client.Client(
            _mqtt_client.CallbackAPIVersion.VERSION2, client_id=self._client_id
        )
        if self._certificate or self._ca_file:
            client.tls_set(
                ca_certs=self._ca_file,
                certfile=self._certificate,
                keyfile=self._private_key,
            )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        with self._lock:
            for topic, handler in self._subscriptions.items():
                client.message_callback_add(topic, self._callback_for(handler))
        self._client = client

        try:
            client.connect(self._host, self._port, self._keepalive)
        except OSError as exc:
            raise TransportError(f"cannot reach {self._host}:{self._port}: {exc}") from exc
        client.loop_start()

        if not self._connected.wait(self._connect_timeout):
            client.loop_stop()
            raise TransportError(
                f"MQTT: no connection to {self._host}:{self._port} within {self._connect_timeout:g} s"
            )
        logger.info("MQTT connected to %s:%d as %s", self._host, self._port, self._client_id)

    def disconnect(self) -> None:
        client, self._client = self._client, None
        if client is not None:
            client.loop_stop()
            client.disconnect()
        self._connected.clear()
        logger.info("MQTT disconnected")

    # ── Messaging ─────────────────────────────────────────────────────────────

    def publish(self, topic: str, payload: bytes) -> None:
        client = self._client
        if client is None or not self._connected.is_set():
            raise TransportError("MQTT transport is not connected")
        info = client.publish(topic, payload, qos=self._qos)
        if info.rc != _mqtt_client.MQTT_ERR_SUCCESS:
            raise TransportError(f"publish to {topic} failed: {_mqtt_client.error_string(info.rc)}")
        logger.debug("MQTT published %d bytes to %r", len(payload), topic)

    def subscribe(self, topic: str, handler: MessageHandler) -> None:
        with self._lock:
            self._subscriptions[topic] = handler
        client = self._client
        if client is None:
            return
        client.message_callback_add(topic, self._callback_for(handler))
        if self._connected.is_set():
            client.subscribe(topic, qos=self._qos)

    # ── paho callbacks (run on paho's network thread) ─────────────────────────

    def _callback_for(self, handler: MessageHandler):
        def on_message(client, userdata, msg):
            try:
                handler(msg.topic, bytes(msg.payload))
            except Exception:
                logger.exception("MQTT handler for %r failed", msg.topic)

        return on_message

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code == 0:
            with self._lock:
                topics = list(self._subscriptions)
            for topic in topics:
                client.subscribe(topic, qos=self._qos)
            self._connected.set()
            logger.debug("MQTT connected, subscribed to %r", topics)
        else:
            logger.error("MQTT connect failed: %s", reason_code)

    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code != 0:
            logger.warning("MQTT unexpected disconnect (%s), will auto-reconnect", reason_code)
        self._connected.clear()
