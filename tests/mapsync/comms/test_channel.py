"""Tests for MessageChannel — lifecycle, dispatch, send rules.

The paho client is replaced with a MagicMock; transport callbacks are
invoked directly the way paho's network thread would.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from mapsync.comms.channel import ChannelState, MessageChannel
from mapsync.config import Settings

OK = SimpleNamespace(is_failure=False)
REFUSED = SimpleNamespace(is_failure=True)

FEATURE = {
    "id": 1,
    "geometry": {"type": "Point", "coordinates": [1, 2]},
    "properties": {"type": "marker", "color": "#fff", "name": "A"},
}


def _msg(payload, topic="t/sub"):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    return SimpleNamespace(topic=topic, payload=body)


@pytest.fixture
def config():
    return Settings(
        broker_host="broker",
        broker_port=1883,
        subscribe_topic="t/sub",
        publish_topic="t/pub",
        reconnect_delay=5.0,
    )


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def factory(client):
    return MagicMock(return_value=client)


@pytest.fixture
def channel(config, factory):
    return MessageChannel(config, client_factory=factory)


def _connect(channel, client, on_ready=None):
    channel.connect(on_ready)
    channel._on_connect(client, None, {}, OK, None)


@pytest.mark.unit
class TestLifecycle:

    def test_initially_disconnected(self, channel):
        """A fresh channel is disconnected."""
        assert channel.state is ChannelState.DISCONNECTED
        assert channel.connected is False

    def test_connect_configures_fixed_reconnect(self, channel, client):
        """connect() sets a fixed reconnect delay and starts the loop."""
        channel.connect()
        client.reconnect_delay_set.assert_called_once_with(min_delay=5.0, max_delay=5.0)
        client.connect_async.assert_called_once_with("broker", 1883, keepalive=60)
        client.loop_start.assert_called_once()
        assert channel.state is ChannelState.CONNECTING

    def test_connect_is_idempotent(self, channel, factory):
        """A second connect() while connecting builds no new client."""
        channel.connect()
        channel.connect()
        assert factory.call_count == 1

    def test_connect_while_connected_is_noop(self, channel, client, factory):
        """connect() while connected keeps the existing client."""
        _connect(channel, client)
        channel.connect()
        assert factory.call_count == 1
        assert channel.connected

    def test_on_connect_subscribes(self, channel, client):
        """A successful connect subscribes at QoS 1."""
        _connect(channel, client)
        assert channel.state is ChannelState.CONNECTED
        client.subscribe.assert_called_once_with("t/sub", qos=1)

    def test_on_ready_runs_once_via_pump(self, channel, client):
        """on_ready fires once from pump(), not again on reconnect."""
        ready = MagicMock()
        _connect(channel, client, ready)
        ready.assert_not_called()
        channel.pump()
        ready.assert_called_once()
        # Reconnect: re-subscribe but no second ready
        channel._on_disconnect(client, None, None, REFUSED, None)
        channel._on_connect(client, None, {}, OK, None)
        channel.pump()
        ready.assert_called_once()
        assert client.subscribe.call_count == 2

    def test_refused_connection(self, channel, client, log_messages):
        """A refused connection is logged and stays unconnected."""
        channel.connect()
        channel._on_connect(client, None, {}, REFUSED, None)
        assert not channel.connected
        assert any(level == "ERROR" for level, _ in log_messages)

    def test_unexpected_disconnect_logs_retry(self, channel, client, log_messages):
        """An unexpected drop logs the retry interval."""
        _connect(channel, client)
        channel._on_disconnect(client, None, None, REFUSED, None)
        assert channel.state is ChannelState.DISCONNECTED
        assert any("retrying every 5s" in msg for _, msg in log_messages)

    def test_disconnect_tears_down(self, channel, client):
        """disconnect() stops the loop and closes the client."""
        _connect(channel, client)
        channel.disconnect()
        client.loop_stop.assert_called_once()
        client.disconnect.assert_called_once()
        assert channel.state is ChannelState.DISCONNECTED

    def test_disconnect_without_connect(self, channel):
        """disconnect() before connect() is harmless."""
        channel.disconnect()
        assert channel.state is ChannelState.DISCONNECTED

    def test_can_reconnect_after_disconnect(self, channel, factory, client):
        """connect() after disconnect() builds a new client."""
        _connect(channel, client)
        channel.disconnect()
        channel.connect()
        assert factory.call_count == 2

    def test_stale_client_callbacks_ignored(self, channel, client):
        """Callbacks from a discarded client do not change state."""
        _connect(channel, client)
        channel.disconnect()
        channel._on_connect(client, None, {}, OK, None)
        assert channel.state is ChannelState.DISCONNECTED


@pytest.mark.unit
class TestInbound:

    def test_messages_dispatched_in_order(self, channel, client):
        """Envelopes reach the handler on pump(), in receipt order."""
        received = []
        channel.register_handler(received.append)
        _connect(channel, client)
        channel._on_message(client, None, _msg({"type": "add", "data": FEATURE}))
        channel._on_message(client, None, _msg({"type": "remove", "id": 1}))
        assert received == []
        channel.pump()
        assert [e.type for e in received] == ["add", "remove"]

    def test_malformed_json_discarded(self, channel, client, log_messages):
        """Malformed bodies are counted and logged; later ones still arrive."""
        received = []
        channel.register_handler(received.append)
        _connect(channel, client)
        channel._on_message(client, None, _msg(b"{oops"))
        channel._on_message(client, None, _msg({"type": "remove", "id": 1}))
        channel.pump()
        assert [e.type for e in received] == ["remove"]
        assert channel.connected
        assert channel.stats["decode_failures"] == 1
        assert any(level == "ERROR" and "Failed to parse" in msg for level, msg in log_messages)

    def test_unknown_type_warned(self, channel, client, log_messages):
        """Unknown envelope types are warned about and not dispatched."""
        received = []
        channel.register_handler(received.append)
        _connect(channel, client)
        channel._on_message(client, None, _msg({"type": "explode"}))
        channel.pump()
        assert received == []
        assert any(level == "WARNING" for level, _ in log_messages)

    def test_register_handler_replaces(self, channel, client):
        """Only the most recently registered handler is called."""
        first, second = [], []
        channel.register_handler(first.append)
        channel.register_handler(second.append)
        _connect(channel, client)
        channel._on_message(client, None, _msg({"type": "remove", "id": 1}))
        channel.pump()
        assert first == []
        assert len(second) == 1

    def test_handler_error_does_not_stop_pump(self, channel, client):
        """A failing handler does not block later envelopes."""
        calls = []

        def handler(env):
            calls.append(env.id)
            if env.id == 1:
                raise RuntimeError("boom")

        channel.register_handler(handler)
        _connect(channel, client)
        channel._on_message(client, None, _msg({"type": "remove", "id": 1}))
        channel._on_message(client, None, _msg({"type": "remove", "id": 2}))
        channel.pump()
        assert calls == [1, 2]

    def test_disconnect_drops_pending(self, channel, client):
        """Undispatched envelopes are dropped on disconnect."""
        received = []
        channel.register_handler(received.append)
        _connect(channel, client)
        channel._on_message(client, None, _msg({"type": "remove", "id": 1}))
        channel.disconnect()
        assert channel.pump() == 0
        assert received == []

    def test_pump_max_items(self, channel, client):
        """pump(max_items) dispatches at most that many."""
        received = []
        channel.register_handler(received.append)
        _connect(channel, client)
        channel.pump()  # ready marker
        for i in range(3):
            channel._on_message(client, None, _msg({"type": "remove", "id": i}))
        assert channel.pump(max_items=2) == 2
        assert len(received) == 2
        channel.pump()
        assert len(received) == 3


@pytest.mark.unit
class TestSend:

    def test_send_when_disconnected_dropped(self, channel, client, log_messages):
        """send() while disconnected is dropped with a warning."""
        assert channel.send("add", FEATURE) is False
        client.publish.assert_not_called()
        assert any(level == "WARNING" for level, _ in log_messages)

    def test_send_while_connecting_dropped(self, channel, client):
        """send() before the broker accepts is dropped."""
        channel.connect()
        assert channel.send("remove", None, 1) is False
        client.publish.assert_not_called()

    def test_send_add(self, channel, client):
        """An add is published to the publish topic as JSON."""
        _connect(channel, client)
        assert channel.send("add", FEATURE) is True
        topic, body = client.publish.call_args.args
        assert topic == "t/pub"
        assert json.loads(body) == {"type": "add", "data": FEATURE}
        assert channel.stats["messages_published"] == 1

    def test_send_remove_without_data(self, channel, client):
        """A remove carries only type and id."""
        _connect(channel, client)
        channel.send("remove", FEATURE, 1)
        _, body = client.publish.call_args.args
        assert json.loads(body) == {"type": "remove", "id": 1}

    def test_bulk_add_non_array_rejected(self, channel, client, log_messages):
        """bulkAdd with non-array data is logged and not sent."""
        _connect(channel, client)
        assert channel.send("bulkAdd", FEATURE) is False
        client.publish.assert_not_called()
        assert any(level == "ERROR" and "bulkAdd" in msg for level, msg in log_messages)

    def test_unknown_type_rejected(self, channel, client):
        """Unknown types are never published."""
        _connect(channel, client)
        assert channel.send("explode", FEATURE) is False
        client.publish.assert_not_called()

    def test_send_after_disconnect_noop(self, channel, client):
        """send() after disconnect() publishes nothing."""
        _connect(channel, client)
        channel.disconnect()
        assert channel.send("remove", None, 1) is False
        client.publish.assert_not_called()
