"""Wire protocol: envelope codec, MQTT broadcast channel, bulk loader."""

from mapsync.comms.channel import ChannelState, MessageChannel
from mapsync.comms.envelope import Envelope

__all__ = ["ChannelState", "Envelope", "MessageChannel"]
