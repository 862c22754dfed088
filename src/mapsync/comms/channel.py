"""MessageChannel — MQTT broadcast channel for map feature envelopes.

Clients publish envelopes to ``publish_topic``; the server side rebroadcasts
them on ``subscribe_topic``, which every client (including the sender)
listens to.

Threading: paho's network thread only decodes inbound bodies and queues
the resulting envelopes.  ``pump()`` drains the queue on the caller's
thread, so handlers never run concurrently with each other or with local
gesture handling.
"""

from __future__ import annotations

import queue
import time
from enum import Enum
from typing import Any, Callable

import paho.mqtt.client as mqtt
from loguru import logger

from mapsync.comms.envelope import Envelope, build, decode
from mapsync.config import Settings, settings as default_settings
from mapsync.errors import EnvelopeError, ProtocolError

EnvelopeHandler = Callable[[Envelope], None]

# Queued marker for the first successful connection of a session
_READY = object()


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class MessageChannel:
    """Connection lifecycle, subscribe/publish and envelope codec."""

    def __init__(
        self,
        config: Settings | None = None,
        client_factory: Callable[[str], Any] | None = None,
    ) -> None:
        self._config = config or default_settings
        self._client_factory = client_factory or self._make_client
        self._client = None
        self._state = ChannelState.DISCONNECTED
        self._handler: EnvelopeHandler | None = None
        self._on_ready: Callable[[], None] | None = None
        self._ready_sent = False
        self._inbox: queue.Queue = queue.Queue()
        # Stats
        self._messages_received: int = 0
        self._messages_published: int = 0
        self._messages_dropped: int = 0
        self._decode_failures: int = 0
        self._last_error: str = ""

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ChannelState.CONNECTED

    @property
    def stats(self) -> dict:
        return {
            "state": self._state.value,
            "broker": f"{self._config.broker_host}:{self._config.broker_port}",
            "messages_received": self._messages_received,
            "messages_published": self._messages_published,
            "messages_dropped": self._messages_dropped,
            "decode_failures": self._decode_failures,
            "pending": self._inbox.qsize(),
            "last_error": self._last_error,
        }

    def _make_client(self, client_id: str):
        client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            transport=self._config.broker_transport,
        )
        if self._config.broker_transport == "websockets":
            client.ws_set_options(path=self._config.broker_ws_path)
        return client

    # --- Lifecycle ---

    def connect(self, on_ready: Callable[[], None] | None = None) -> None:
        """Start a transport session.  No-op while one is already active.

        ``on_ready`` runs once, from ``pump()``, after the first successful
        connection.  Later reconnects only re-subscribe.
        """
        if self._client is not None:
            logger.debug(f"Channel already {self._state.value}; connect ignored")
            return

        client_id = f"{self._config.client_id_prefix}-{int(time.time() * 1000) % 1_000_000}"
        client = self._client_factory(client_id)
        if self._config.broker_username:
            client.username_pw_set(self._config.broker_username, self._config.broker_password)
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message
        delay = self._config.reconnect_delay
        client.reconnect_delay_set(min_delay=delay, max_delay=delay)

        self._on_ready = on_ready
        self._ready_sent = False
        self._client = client
        self._state = ChannelState.CONNECTING
        try:
            client.connect_async(self._config.broker_host, self._config.broker_port, keepalive=self._config.keepalive)
            client.loop_start()
            logger.info(f"Channel connecting to {self._config.broker_host}:{self._config.broker_port}")
        except (OSError, ValueError) as e:
            logger.error(f"Channel connection failed: {e}")
            self._last_error = str(e)
            self._client = None
            self._state = ChannelState.DISCONNECTED

    def disconnect(self) -> None:
        """Tear down the session and drop any undispatched envelopes."""
        client = self._client
        if client is None:
            return
        self._client = None
        self._state = ChannelState.DISCONNECTED
        try:
            client.loop_stop()
            client.disconnect()
        except OSError as e:
            logger.warning(f"Channel disconnect error: {e}")
        dropped = self._drain()
        if dropped:
            logger.debug(f"Dropped {dropped} undispatched envelope(s) on disconnect")
        logger.info("Channel disconnected")

    def register_handler(self, handler: EnvelopeHandler | None) -> None:
        """Set the single inbound handler, replacing any previous one."""
        self._handler = handler

    # --- Transport callbacks (network thread) ---

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if client is not self._client:
            return
        if reason_code.is_failure:
            self._state = ChannelState.CONNECTING
            self._last_error = f"Connection refused ({reason_code})"
            logger.error(f"Channel connection refused: {reason_code}")
            return
        self._state = ChannelState.CONNECTED
        client.subscribe(self._config.subscribe_topic, qos=1)
        logger.info(f"Channel connected; subscribed to {self._config.subscribe_topic}")
        if not self._ready_sent:
            self._ready_sent = True
            self._inbox.put(_READY)

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        if client is not self._client:
            return
        self._state = ChannelState.DISCONNECTED
        if reason_code.is_failure:
            self._last_error = f"Unexpected disconnect ({reason_code})"
            logger.warning(
                f"Channel lost connection ({reason_code}); retrying every {self._config.reconnect_delay:g}s"
            )

    def _on_message(self, client, userdata, msg) -> None:
        if client is not self._client:
            return
        self._messages_received += 1
        try:
            envelope = decode(msg.payload)
        except ProtocolError as e:
            self._decode_failures += 1
            logger.warning(f"Discarding message on {msg.topic}: {e}")
            return
        except EnvelopeError as e:
            self._decode_failures += 1
            logger.error(f"Failed to parse message on {msg.topic}: {e}")
            return
        self._inbox.put(envelope)

    # --- Dispatch (caller's thread) ---

    def pump(self, max_items: int | None = None) -> int:
        """Dispatch queued envelopes to the handler in receipt order.

        Returns:
            Number of queued items processed.
        """
        processed = 0
        while max_items is None or processed < max_items:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                break
            processed += 1
            if item is _READY:
                if self._on_ready is not None:
                    self._on_ready()
                continue
            if self._handler is None:
                logger.debug(f"No handler registered; dropping {item.type} message")
                continue
            try:
                self._handler(item)
            except Exception:
                logger.exception(f"Handler failed for {item.type} message")
        return processed

    def _drain(self) -> int:
        dropped = 0
        while True:
            try:
                self._inbox.get_nowait()
            except queue.Empty:
                return dropped
            dropped += 1

    # --- Outbound ---

    def send(self, msg_type: str, data: Any = None, feature_id: Any = None) -> bool:
        """Publish one envelope.  Fire-and-forget; never queued or retried.

        Returns:
            True if the envelope was handed to the transport.
        """
        if self._client is None or not self.connected:
            self._messages_dropped += 1
            logger.warning(f"Channel not connected; {msg_type} message for {feature_id} not sent")
            return False
        try:
            envelope = build(msg_type, data, feature_id)
        except ProtocolError as e:
            logger.error(str(e))
            return False
        logger.debug(f"Sending {msg_type} message for {feature_id}")
        try:
            self._client.publish(self._config.publish_topic, envelope.encode(), qos=1)
        except (OSError, ValueError) as e:
            self._last_error = str(e)
            logger.error(f"Channel publish failed: {e}")
            return False
        self._messages_published += 1
        return True
