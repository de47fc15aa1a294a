from .base import JSONCache
from .memory_cache import InMemoryJSONCache
from .redis_cache import RedisJSONCache

__all__ = ["JSONCache", "RedisJSONCache", "InMemoryJSONCache"]
