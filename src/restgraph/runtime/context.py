"""
Side channel passed between generated resolvers.

Resolvers never store translation metadata in ``info.context`` or in the
caller's arguments. Every dict they return carries a ``SideChannel`` under the
``_restgraph`` key, which nested resolvers (viewer fields, link fields) read
from their ``source``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

SIDE_CHANNEL_KEY = "_restgraph"


@dataclass
class CallData:
    """What a resolver sent and received; used to evaluate link expressions."""
    operation_id: str
    url: str
    method: str
    status_code: int
    response_body: Any = None
    path_params: dict[str, Any] = field(default_factory=dict)
    query_params: dict[str, Any] = field(default_factory=dict)
    header_params: dict[str, Any] = field(default_factory=dict)
    request_body: Any = None


@dataclass
class SideChannel:
    """
    Carrier of credentials and call data between resolvers.

    - security: sanitized scheme key -> credentials captured by a viewer
    - call: the call that produced the object carrying this side channel
    """
    security: dict[str, dict[str, Any]] = field(default_factory=dict)
    call: Optional[CallData] = None

    def derive(self, call: Optional[CallData] = None) -> SideChannel:
        """New side channel inheriting credentials, with different call data."""
        return SideChannel(security=dict(self.security), call=call)


def get_side_channel(source: Any) -> SideChannel:
    """Side channel carried by a resolver source, or an empty one."""
    if isinstance(source, dict):
        carried = source.get(SIDE_CHANNEL_KEY)
        if isinstance(carried, SideChannel):
            return carried
    return SideChannel()


def attach_side_channel(result: Any, side_channel: SideChannel) -> Any:
    """Attach a side channel to a dict result, or to every dict in a list."""
    if isinstance(result, dict):
        result[SIDE_CHANNEL_KEY] = side_channel
    elif isinstance(result, list):
        for item in result:
            attach_side_channel(item, side_channel)
    return result


def context_value(context: Any, name: str, default: Any = None) -> Any:
    """Read a value from a request context that is a dict or an object."""
    if context is None:
        return default
    if isinstance(context, dict):
        return context.get(name, default)
    return getattr(context, name, default)
