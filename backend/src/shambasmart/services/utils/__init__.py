from .cache import ResponseCache, make_cache_key
from .redis_cache import RedisResponseCache, build_response_cache

__all__ = ["ResponseCache", "RedisResponseCache", "build_response_cache", "make_cache_key"]
