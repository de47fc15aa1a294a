from __future__ import annotations

from typing import Any

import redis

from stockpick_agent.cache.base import JSONCache
from stockpick_agent.utils import json_dumps, json_loads


class RedisJSONCache(JSONCache):
    """Shares cached values (the exchange rate) between worker processes."""

    def __init__(self, redis_url: str, client: redis.Redis | None = None):
        self._client = client if client is not None else redis.Redis.from_url(redis_url, decode_responses=True)

    def get_json(self, key: str) -> Any | None:
        raw = self._client.get(key)
        if raw is None:
            return None
        return json_loads(raw)

    def set_json(self, key: str, value: Any, ttl_seconds: int) -> None:
        # redis rejects ex=0; no ttl means keep until overwritten
        self._client.set(key, json_dumps(value), ex=int(ttl_seconds) or None)

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False
