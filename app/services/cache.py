"""
Cache Service Singleton - Award Assessment Platform
app/services/cache.py

Provides a singleton Redis cache instance with TTL constants and key helpers.
Gracefully handles Redis unavailability.
"""
import redis
from typing import Optional
from app.services.redis_cache import RedisCache
from app.config import settings

# TTL constants (in seconds)
TTL_RANKINGS = settings.CACHE_TTL_RANKINGS

RANKINGS_PREFIX = "award-rankings"

# Singleton instance
_cache: Optional[RedisCache] = None


def rankings_key(group_id: Optional[int] = None) -> str:
    """Leaderboard key, per nomination or for all nominations."""
    return f"{RANKINGS_PREFIX}:group:{group_id}" if group_id is not None else f"{RANKINGS_PREFIX}:all"


def get_cache() -> Optional[RedisCache]:
    """
    Get or create Redis cache instance.

    Returns:
        RedisCache instance if Redis is available, None otherwise.

    Note:
        Returns None if Redis is unavailable, allowing the application
        to continue functioning without caching (graceful degradation).
    """
    global _cache
    if _cache is None:
        try:
            _cache = RedisCache()
            _cache.client.ping()  # Test connection
        except (redis.RedisError, ConnectionError):
            _cache = None
    return _cache


def reset_cache() -> None:
    """
    Reset the cache singleton.

    Useful for testing or when Redis connection needs to be re-established.
    """
    global _cache
    _cache = None
