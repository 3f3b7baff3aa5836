"""Redis-backed store for engine snapshots."""

import json
import logging
from typing import Optional

import redis

from .config import settings
from .engine import ElectionEngine
from .errors import SnapshotError

logger = logging.getLogger(__name__)


class RedisSnapshotStore:
    """Saves and loads full engine snapshots as a single JSON value."""

    def __init__(self, client: Optional[redis.Redis] = None, key: Optional[str] = None):
        """
        Initialize the store.

        Args:
            client: Redis client; one is built from settings when omitted
            key: Redis key holding the snapshot
        """
        self.client = client or redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            health_check_interval=30
        )
        self.key = key or settings.SNAPSHOT_KEY

    def save(self, engine: ElectionEngine) -> int:
        """
        Write the engine's current state.

        Returns:
            int: Size of the stored snapshot in bytes
        """
        payload = json.dumps(engine.snapshot())
        try:
            self.client.set(self.key, payload)
        except redis.RedisError as e:
            logger.error(f"Redis error saving snapshot: {e}")
            raise SnapshotError(f"Failed to save snapshot: {e}")
        logger.info(f"Snapshot saved to {self.key} ({len(payload)} bytes)")
        return len(payload)

    def load(self, **engine_kwargs) -> Optional[ElectionEngine]:
        """
        Restore an engine from the stored snapshot.

        Args:
            **engine_kwargs: Passed to ElectionEngine (verifier, clock, ...)

        Returns:
            The restored engine, or None when no snapshot is stored
        """
        try:
            payload = self.client.get(self.key)
        except redis.RedisError as e:
            logger.error(f"Redis error loading snapshot: {e}")
            raise SnapshotError(f"Failed to load snapshot: {e}")

        if payload is None:
            logger.info(f"No snapshot stored at {self.key}")
            return None

        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.error(f"Failed to decode snapshot: {e}")
            raise SnapshotError(f"Stored snapshot is not valid JSON: {e}")
        return ElectionEngine.restore(data, **engine_kwargs)

    def clear(self) -> None:
        try:
            self.client.delete(self.key)
        except redis.RedisError as e:
            logger.error(f"Redis error clearing snapshot: {e}")
            raise SnapshotError(f"Failed to clear snapshot: {e}")

    def check_health(self) -> bool:
        """True when Redis answers a ping."""
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.error(f"Redis health check error: {e}")
            return False
