"""Tests for the paho-mqtt transport (paho client mocked)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from iotfs.transport.base import TransportError
from iotfs.transport.mqtt import MqttTransport


@pytest.fixture
def paho():
    """Patch the paho client module; ``paho.client`` is the client instance."""
    module = MagicMock()
    module.MQTT_ERR_SUCCESS = 0
    module.client = module.Client.return_value
    with patch("iotfs.transport.mqtt._mqtt_client", module, create=True), patch(
        "iotfs.transport.mqtt.HAS_PAHO", True
    ):
        yield module


def _accepting(transport: MqttTransport, client: MagicMock) -> None:
    """Make loop_start deliver a successful CONNACK."""
    client.loop_start.side_effect = lambda: transport._on_connect(client, None, {}, 0, None)


@pytest.fixture
def transport() -> MqttTransport:
    return MqttTransport(
        "abc-ats.iot.eu-west-1.amazonaws.com",
        certificate="/certs/device.pem.crt",
        private_key="/certs/device.pem.key",
        ca_file="/certs/root-ca.pem",
        client_id="iotfs-test",
        connect_timeout=0.05,
    )


class TestConnect:
    """Connection setup over mutual TLS."""

    def test_connect_configures_tls_and_waits(self, paho, transport: MqttTransport) -> None:
        _accepting(transport, paho.client)
        transport.connect()
        assert transport.connected
        paho.client.tls_set.assert_called_once_with(
            ca_certs="/certs/root-ca.pem",
            certfile="/certs/device.pem.crt",
            keyfile="/certs/device.pem.key",
        )
        paho.client.connect.assert_called_once_with(
            "abc-ats.iot.eu-west-1.amazonaws.com", 8883, 60
        )

    def test_uses_callback_api_v2(self, paho, transport: MqttTransport) -> None:
        _accepting(transport, paho.client)
        transport.connect()
        paho.Client.assert_called_once_with(
            paho.CallbackAPIVersion.VERSION2, client_id="iotfs-test"
        )

    def test_stored_subscriptions_issued_on_connect(self, paho, transport: MqttTransport) -> None:
        transport.subscribe("sensors/temp", MagicMock())
        _accepting(transport, paho.client)
        transport.connect()
        paho.client.message_callback_add.assert_called_once()
        paho.client.subscribe.assert_called_once_with("sensors/temp", qos=1)

    def test_timeout_raises(self, paho, transport: MqttTransport) -> None:
        with pytest.raises(TransportError):
            transport.connect()
        paho.client.loop_stop.assert_called_once()

    def test_unreachable_broker_raises(self, paho, transport: MqttTransport) -> None:
        paho.client.connect.side_effect = OSError("refused")
        with pytest.raises(TransportError):
            transport.connect()

    def test_refused_connack_does_not_connect(self, paho, transport: MqttTransport) -> None:
        transport._on_connect(paho.client, None, {}, 5, None)
        assert not transport.connected

    def test_missing_paho(self, transport: MqttTransport) -> None:
        with patch("iotfs.transport.mqtt.HAS_PAHO", False):
            with pytest.raises(ImportError):
                transport.connect()

    def test_disconnect(self, paho, transport: MqttTransport) -> None:
        _accepting(transport, paho.client)
        transport.connect()
        transport.disconnect()
        assert not transport.connected
        paho.client.disconnect.assert_called_once()

    def test_unexpected_disconnect_clears_flag(self, paho, transport: MqttTransport) -> None:
        _accepting(transport, paho.client)
        transport.connect()
        transport._on_disconnect(paho.client, None, {}, 7, None)
        assert not transport.connected


class TestMessaging:
    """Publishing and inbound delivery."""

    def test_publish_requires_connection(self, transport: MqttTransport) -> None:
        with pytest.raises(TransportError):
            transport.publish("sensors/temp", b"x")

    def test_publish(self, paho, transport: MqttTransport) -> None:
        _accepting(transport, paho.client)
        transport.connect()
        paho.client.publish.return_value.rc = 0
        transport.publish("sensors/temp", b'{"t": 1}')
        paho.client.publish.assert_called_once_with("sensors/temp", b'{"t": 1}', qos=1)

    def test_publish_failure_raises(self, paho, transport: MqttTransport) -> None:
        _accepting(transport, paho.client)
        transport.connect()
        paho.client.publish.return_value.rc = 4
        with pytest.raises(TransportError):
            transport.publish("sensors/temp", b"x")

    def test_subscribe_while_connected(self, paho, transport: MqttTransport) -> None:
        _accepting(transport, paho.client)
        transport.connect()
        transport.subscribe("alerts/#", MagicMock())
        paho.client.subscribe.assert_called_with("alerts/#", qos=1)

    def test_inbound_message_reaches_handler(self, transport: MqttTransport) -> None:
        handler = MagicMock()
        callback = transport._callback_for(handler)
        message = MagicMock(topic="sensors/temp", payload=bytearray(b"21"))
        callback(None, None, message)
        handler.assert_called_once_with("sensors/temp", b"21")

    def test_failing_handler_is_contained(self, transport: MqttTransport) -> None:
        handler = MagicMock(side_effect=RuntimeError("bad"))
        callback = transport._callback_for(handler)
        callback(None, None, MagicMock(topic="t", payload=b"x"))
        handler.assert_called_once()
