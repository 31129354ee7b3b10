"""
Redis connection management.

This module provides the Redis connection used by notification workers to
push realtime group events to connected clients via per-user channels.
"""

import redis
import json
import logging
from typing import Any, Dict, Iterable

from app.config.settings import settings

logger = logging.getLogger(__name__)


class RedisManager:
    """
    Redis connection manager with pub/sub helpers.

    Clients subscribe to their own channel; workers publish one message per
    recipient so delivery is independent of which node a client is attached to.
    """

    def __init__(self):
        """Initialize Redis connection pool."""
        self.redis_client = redis.from_url(
            settings.redis_url,
            decode_responses=True,  # Automatically decode responses to strings
            socket_connect_timeout=5,
            socket_timeout=5
        )

    @staticmethod
    def user_channel(user_id: int) -> str:
        """Channel name a user's realtime connection subscribes to."""
        return f"{settings.push_channel_prefix}{user_id}"

    def publish_to_users(self, user_ids: Iterable[int], message: Dict[str, Any]) -> Dict[int, int]:
        """
        Publish the same message to every user's channel in one pipeline.

        Returns:
            Mapping of user id to number of receiving subscribers
        """
        user_ids = list(user_ids)
        if not user_ids:
            return {}

        payload = json.dumps(message, default=str)
        pipe = self.redis_client.pipeline(transaction=False)
        for user_id in user_ids:
            pipe.publish(self.user_channel(user_id), payload)
        receivers = pipe.execute()

        logger.debug(f"Published {message.get('event')} to {len(user_ids)} channels")
        return dict(zip(user_ids, receivers))

    def ping(self) -> bool:
        """Check that Redis is reachable."""
        try:
            return bool(self.redis_client.ping())
        except redis.RedisError:
            return False


# Global Redis manager instance
redis_manager = RedisManager()
