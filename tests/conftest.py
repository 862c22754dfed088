"""Shared fixtures for mapsync tests."""

from __future__ import annotations

import pytest
from loguru import logger


@pytest.fixture
def log_messages():
    """Capture loguru output as a list of (level, message) tuples."""
    messages: list[tuple[str, str]] = []
    sink_id = logger.add(
        lambda msg: messages.append((msg.record["level"].name, msg.record["message"])),
        level="DEBUG",
    )
    yield messages
    logger.remove(sink_id)


def make_feature_dict(feature_id, geom_type="Point", coordinates=None, **properties) -> dict:
    """Wire-shaped feature dict for tests."""
    if coordinates is None:
        coordinates = [1, 2]
    props = {"type": "marker", "color": "#fff", "name": f"F{feature_id}"}
    props.update(properties)
    return {
        "id": feature_id,
        "geometry": {"type": geom_type, "coordinates": coordinates},
        "properties": props,
    }


@pytest.fixture
def feature_dict():
    return make_feature_dict
