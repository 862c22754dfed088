"""ClientSession — wires store, channel, engine and bulk loader together.

One session per connected client.  ``start()`` connects the channel and
performs the initial bulk load; ``pump()`` applies queued inbound
envelopes; ``stop()`` tears everything down.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from mapsync.comms import loader
from mapsync.comms.channel import MessageChannel
from mapsync.comms.envelope import ADD, BULK_ADD, MODIFY, REMOVE, Envelope
from mapsync.config import Settings, settings as default_settings
from mapsync.layers import validator
from mapsync.layers.feature import FeatureId
from mapsync.layers.stats import ShapeStats, project
from mapsync.layers.store import FeatureStore
from mapsync.sync.engine import ReconciliationEngine
from mapsync.sync.gestures import Gesture
from mapsync.sync.ids import IdAllocator
from mapsync.sync.renderer import Renderer


def _is_feature_id(value: Any) -> bool:
    return value is None or (isinstance(value, (int, str)) and not isinstance(value, bool))


def _is_feature_payload(data: Any) -> bool:
    if not (
        isinstance(data, dict)
        and isinstance(data.get("geometry"), dict)
        and isinstance(data["geometry"].get("type"), str)
    ):
        return False
    properties = data.get("properties")
    legacy_id = properties.get("id") if isinstance(properties, dict) else None
    return _is_feature_id(data.get("id")) and _is_feature_id(legacy_id)


class ClientSession:
    """A single client's view of the shared feature set."""

    def __init__(
        self,
        renderer: Renderer,
        channel: MessageChannel | None = None,
        config: Settings | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config or default_settings
        self.store = FeatureStore()
        self.channel = channel or MessageChannel(self._config)
        self.ids = IdAllocator(prefix=self._config.client_id_prefix)
        self.engine = ReconciliationEngine(renderer, self.store, publisher=self.channel, ids=self.ids)
        self._http_client = http_client
        self._ready = False

    @property
    def ready(self) -> bool:
        return self._ready

    # --- Lifecycle ---

    def start(self, bulk_load: bool = True) -> None:
        self.channel.register_handler(self.handle_envelope)
        self.channel.connect(on_ready=self._on_ready)
        if bulk_load:
            self.load_initial()

    def stop(self) -> None:
        self.channel.disconnect()
        self.channel.register_handler(None)
        self._ready = False

    def _on_ready(self) -> None:
        self._ready = True
        logger.info("Session ready")

    def pump(self, max_items: int | None = None) -> int:
        return self.channel.pump(max_items)

    def load_initial(self) -> bool:
        """Fetch and apply the initial bulk packet.  False if none arrived."""
        packet = loader.load_initial(
            self._config.bulk_load_url,
            client=self._http_client,
            timeout=self._config.bulk_load_timeout,
        )
        features = loader.bulk_features(packet)
        if features is None:
            return False
        self._replace_all(features)
        logger.info(f"Loaded {len(self.store)} feature(s) from {self._config.bulk_load_url}")
        return True

    # --- Inbound ---

    def handle_envelope(self, envelope: Envelope) -> None:
        """Apply one inbound envelope to the store (last write wins)."""
        if envelope.type in (ADD, MODIFY):
            data = envelope.data
            if not _is_feature_payload(data):
                logger.error(f"Received incomplete or invalid feature in {envelope.type} message")
                return
            feature = validator.clean(data)
            if envelope.type == ADD:
                self.store.add(feature)
            else:
                feature_id = envelope.id if envelope.id is not None else feature.id
                self.store.modify(feature_id, feature)
        elif envelope.type == REMOVE:
            self.store.remove(envelope.id)
        elif envelope.type == BULK_ADD:
            if not isinstance(envelope.data, list):
                logger.error("Invalid data for bulkAdd: expected an array")
                return
            self._replace_all(envelope.data)
        else:
            logger.warning(f"Unknown message type: {envelope.type}")

    def _replace_all(self, raw_features: list) -> None:
        features = []
        for raw in raw_features:
            if not _is_feature_payload(raw):
                logger.warning("Skipping invalid feature in bulk payload")
                continue
            features.append(validator.clean(raw))
        self.store.replace_all(features)

    # --- Local edits ---

    def handle_gesture(self, gesture: Gesture) -> None:
        self.engine.handle(gesture)

    def update_property(self, feature_id: FeatureId, key: str, value: Any) -> bool:
        """Change one property locally and broadcast the modified feature."""
        updated = self.store.update_property(feature_id, key, value)
        if updated is None:
            return False
        self.channel.send(MODIFY, updated, feature_id)
        return True

    def selected_stats(self) -> ShapeStats | None:
        selected = self.engine.selected_id
        if selected is None:
            return None
        return project(self.store.get(selected))
