"""
Caching utilities for report computations
Uses Redis when configured, the local-memory cache otherwise
"""
from django.conf import settings
from django.core.cache import cache
from functools import wraps
import hashlib
import json
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
WORKFLOWS_CACHE_TTL = 3600  # 1 hour
REPORTS_CACHE_TTL = getattr(settings, 'GAMA_REPORTS_CACHE_TTL', 600)


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique cache key from arguments"""
    # JSON with sorted keys keeps equal payloads on the same key
    key_data = json.dumps([args, kwargs], sort_keys=True, default=str)
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive computations

    Usage:
        @cached_query(cache_ttl=120, key_prefix="profitability")
        def build_report(payload):
            return data
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            cache_key = make_cache_key(key_prefix, *args, **kwargs)

            cached_data = cache.get(cache_key)
            if cached_data is not None:
                logger.debug(f"Cache HIT for {key_prefix}: {cache_key}")
                return cached_data

            logger.debug(f"Cache MISS for {key_prefix}: {cache_key}")
            result = func(*args, **kwargs)

            cache.set(cache_key, result, cache_ttl)

            return result
        return wrapper
    return decorator


def invalidate_cache_pattern(pattern):
    """
    Invalidate all cache keys matching a pattern
    Only Redis supports pattern deletes; other backends are cleared entirely
    """
    try:
        from django_redis import get_redis_connection
        redis_conn = get_redis_connection("default")
    except NotImplementedError:
        # Not a django-redis backend
        cache.clear()
        logger.info(f"Cleared cache (pattern deletes unsupported): {pattern}")
        return

    keys = []
    cursor = 0
    while True:
        cursor, partial_keys = redis_conn.scan(cursor, match=f"*{pattern}*", count=100)
        keys.extend(partial_keys)
        if cursor == 0:
            break

    if keys:
        redis_conn.delete(*keys)
        logger.info(f"Invalidated {len(keys)} cache keys matching pattern: {pattern}")


def get_cached_report(report_name, payload):
    """
    Get a cached report result
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = make_cache_key(f"report_{report_name}", payload)
    return cache.get(cache_key), cache_key


def cache_report(cache_key, data, ttl=None):
    """Cache report data"""
    cache.set(cache_key, data, REPORTS_CACHE_TTL if ttl is None else ttl)
    logger.debug(f"Cached report: {cache_key}")


def invalidate_reports_cache():
    """Invalidate all report caches"""
    invalidate_cache_pattern("report_")
    logger.info("Invalidated reports cache")
