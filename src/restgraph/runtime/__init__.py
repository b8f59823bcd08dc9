"""
Runtime module - transports and the side channel used by generated resolvers.
"""

from __future__ import annotations

from .context import SIDE_CHANNEL_KEY, CallData, SideChannel, get_side_channel
from .pubsub import RedisEventTransport
from .transport import HttpTransport, TransportResponse

__all__ = [
    "SIDE_CHANNEL_KEY",
    "CallData",
    "SideChannel",
    "get_side_channel",
    "HttpTransport",
    "TransportResponse",
    "RedisEventTransport",
]
