"""Relay server producing transcript/translation event streams."""

from parley.relay.producer import generate_relay_frames
from parley.relay.server import RelayServer, create_app, serve

__all__ = ["RelayServer", "create_app", "generate_relay_frames", "serve"]
