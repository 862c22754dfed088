"""mapsync — collaborative editing of shared map features.

Clients exchange add / modify / remove / bulkAdd envelopes over an MQTT
broadcast channel and reconcile the shared feature set into a renderer.
"""

__version__ = "0.1.0"
