"""
Known-Faces Store
Persists registered face descriptors in Redis. When Redis is not configured or
cannot be reached the store keeps profiles in process memory.
"""

import json
import logging
from typing import Dict, List, Optional

import redis

from .schemas import KnownFace

logger = logging.getLogger(__name__)


class FaceStore:
    """Stores {username: descriptor} pairs for the known-faces registry."""

    def __init__(self, redis_url: Optional[str] = None, key: str = "known_faces"):
        """
        Initialize face store.

        Args:
            redis_url: Redis connection URL; None keeps profiles in memory
            key: Redis hash holding the profiles
        """
        self.key = key
        self.redis_client = None
        self._memory: Dict[str, List[float]] = {}
        if redis_url:
            self._connect_to_redis(redis_url)

    def _connect_to_redis(self, redis_url: str) -> None:
        try:
            self.redis_client = redis.from_url(redis_url, decode_responses=True)
            self.redis_client.ping()
            logger.info("Connected to Redis successfully")
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            logger.warning("Redis not available - known faces will not be persistent")
            self.redis_client = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client else "memory"

    def save(self, username: str, descriptor: List[float]) -> bool:
        """
        Store or replace the descriptor for username.

        Returns:
            True if an existing profile was replaced
        """
        descriptor = [float(value) for value in descriptor]
        if self.redis_client:
            created = self.redis_client.hset(self.key, username, json.dumps(descriptor))
            replaced = not created
        else:
            replaced = username in self._memory
            self._memory[username] = descriptor

        logger.info(f"{'Updated' if replaced else 'Registered'} face profile: {username} "
                    f"({len(descriptor)}D, backend={self.backend})")
        return replaced

    def get(self, username: str) -> Optional[KnownFace]:
        if self.redis_client:
            raw = self.redis_client.hget(self.key, username)
            if raw is None:
                return None
            return KnownFace(username=username, descriptor=json.loads(raw))
        descriptor = self._memory.get(username)
        return KnownFace(username=username, descriptor=descriptor) if descriptor is not None else None

    def all(self) -> List[KnownFace]:
        if self.redis_client:
            entries = self.redis_client.hgetall(self.key)
            return [KnownFace(username=name, descriptor=json.loads(raw)) for name, raw in sorted(entries.items())]
        return [KnownFace(username=name, descriptor=list(desc)) for name, desc in sorted(self._memory.items())]

    def delete(self, username: str) -> bool:
        if self.redis_client:
            return bool(self.redis_client.hdel(self.key, username))
        return self._memory.pop(username, None) is not None

    def count(self) -> int:
        if self.redis_client:
            return int(self.redis_client.hlen(self.key))
        return len(self._memory)
