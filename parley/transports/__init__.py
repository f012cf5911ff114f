"""Concrete event transports."""

from parley.transports.realtime_channel import RealtimeChannel
from parley.transports.relay_client import RelayClient

__all__ = ["RealtimeChannel", "RelayClient"]
