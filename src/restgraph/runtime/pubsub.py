"""
Redis Pub/Sub event transport for subscription fields.

A subscription resolver asks the transport for an async iterator over one
topic; the transport owns the connection.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)


class RedisEventTransport:
    """
    Event transport backed by Redis Pub/Sub.

    Usage:
        transport = RedisEventTransport("redis://redis:6379")

        async for message in transport.subscribe("api/alice/devices/POST/200"):
            ...

        await transport.publish("api/alice/devices/POST/200", {"name": "Lamp"})
    """

    def __init__(self, redis_url: str, **connect_options: Any):
        """
        Initialize transport.

        Args:
            redis_url: Redis connection URL
            connect_options: Extra keyword arguments for ``redis.asyncio.from_url``
        """
        self.redis_url = redis_url
        self.connect_options = connect_options
        self._redis: Optional[aioredis.Redis] = None

    async def connect(self) -> aioredis.Redis:
        """Connect to Redis (once)."""
        if self._redis is None:
            logger.info(f"Connecting to Redis: {self.redis_url}")
            self._redis = aioredis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
                **self.connect_options,
            )
        return self._redis

    async def close(self):
        """Disconnect from Redis."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis event transport closed")

    async def publish(self, topic: str, data: Any) -> int:
        """
        Publish an event.

        Args:
            topic: Channel name
            data: Event data (JSON serialized unless already a string)

        Returns:
            Number of subscribers that received the message
        """
        client = await self.connect()
        payload = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
        count = await client.publish(topic, payload)
        logger.debug(f"Published to {topic}: {count} subscribers received")
        return count

    async def subscribe(self, topic: str) -> AsyncIterator[Any]:
        """
        Iterate over messages published to a topic.

        The subscription is closed when the iterator is closed.
        """
        client = await self.connect()
        pubsub = client.pubsub()
        await pubsub.subscribe(topic)
        logger.info(f"Subscribed to Redis channel: {topic}")
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue
                yield message["data"]
        finally:
            await pubsub.unsubscribe(topic)
            await pubsub.aclose()
            logger.info(f"Unsubscribed from Redis channel: {topic}")
