import json
import logging
from typing import Optional, Any

import redis

from ..config import settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Thin JSON-aware wrapper. Sessions and caches degrade to misses while
    Redis is unreachable; counters (incr/ttl) still raise."""

    def __init__(self):
        self.client = redis.from_url(settings.REDIS_URL, decode_responses=True)

    def get(self, key: str) -> Optional[Any]:
        try:
            value = self.client.get(key)
        except redis.ConnectionError as e:
            logger.warning("Redis unavailable on get %s: %s", key, e)
            return None
        if value:
            try:
                return json.loads(value)
            except ValueError:
                return value
        return None

    def set(self, key: str, value: Any, expire: Optional[int] = None):
        if isinstance(value, (dict, list)):
            value = json.dumps(value, default=str)
        try:
            if expire:
                self.client.setex(key, expire, value)
            else:
                self.client.set(key, value)
        except redis.ConnectionError as e:
            logger.warning("Redis unavailable on set %s: %s", key, e)

    def delete(self, *keys: str):
        if not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.ConnectionError as e:
            logger.warning("Redis unavailable on delete: %s", e)

    def delete_pattern(self, pattern: str):
        try:
            keys = self.client.keys(pattern)
            if keys:
                self.client.delete(*keys)
        except redis.ConnectionError as e:
            logger.warning("Redis unavailable on delete %s: %s", pattern, e)

    # Hash operations for sessions
    def hset(self, name: str, mapping: dict):
        try:
            self.client.hset(name, mapping=mapping)
        except redis.ConnectionError as e:
            logger.warning("Redis unavailable on hset %s: %s", name, e)

    def hgetall(self, name: str) -> dict:
        try:
            return self.client.hgetall(name)
        except redis.ConnectionError as e:
            logger.warning("Redis unavailable on hgetall %s: %s", name, e)
            return {}

    def expire(self, key: str, seconds: int):
        try:
            self.client.expire(key, seconds)
        except redis.ConnectionError as e:
            logger.warning("Redis unavailable on expire %s: %s", key, e)

    # Rate limiting
    def incr(self, key: str) -> int:
        return self.client.incr(key)

    def ttl(self, key: str) -> int:
        return self.client.ttl(key)

    def ping(self) -> bool:
        return self.client.ping()

redis_client = RedisClient()
