"""
Caching utilities for expensive queries.

Keys live in namespaces ("clients", "dashboard", ...). Each namespace carries
a version number stored in the cache itself; invalidating a namespace bumps
its version so every key built from the old version is simply never read
again. This works the same on Redis and on the local-memory backend.
"""
from django.core.cache import cache
from functools import wraps
import hashlib
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
CLIENT_CACHE_TTL = 600  # 10 minutes
CLIENT_LIST_CACHE_TTL = 300  # 5 minutes
DASHBOARD_CACHE_TTL = 300  # 5 minutes
REPORTS_CACHE_TTL = 600  # 10 minutes

# Namespaces
CLIENTS_NAMESPACE = 'clients'
DASHBOARD_NAMESPACE = 'dashboard'
REPORTS_NAMESPACE = 'reports'

VERSION_KEY_PREFIX = 'ns_version:'


def get_namespace_version(namespace):
    """Current version of a key namespace (1 when never invalidated)"""
    return cache.get_or_set(f"{VERSION_KEY_PREFIX}{namespace}", 1, None)


def invalidate_namespace(namespace):
    """Invalidate every key in a namespace by bumping its version"""
    version_key = f"{VERSION_KEY_PREFIX}{namespace}"
    try:
        cache.incr(version_key)
    except ValueError:
        # Version key evicted or never set
        cache.set(version_key, 2, None)
    logger.debug(f"Invalidated cache namespace: {namespace}")


def make_cache_key(prefix, *args, **kwargs):
    """Generate a unique, versioned cache key from arguments"""
    key_data = f"{prefix}:{args}:{sorted(kwargs.items())}"
    # Hash it to keep key length reasonable
    key_hash = hashlib.md5(key_data.encode()).hexdigest()
    return f"{prefix}:v{get_namespace_version(prefix)}:{key_hash}"


def cached_query(cache_ttl=60, key_prefix="query"):
    """
    Decorator to cache expensive queries

    Usage:
        @cached_query(cache_ttl=300, key_prefix=DASHBOARD_NAMESPACE)
        def build_dashboard(today):
            # expensive aggregation here
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


def invalidate_dashboard_cache():
    """Invalidate dashboard and report aggregates"""
    invalidate_namespace(DASHBOARD_NAMESPACE)
    invalidate_namespace(REPORTS_NAMESPACE)
