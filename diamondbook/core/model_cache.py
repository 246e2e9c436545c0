"""
Caching for client records, the most frequently read model.

Client detail and client list responses are cached under the "clients"
namespace; see ``cache_utils`` for how namespace invalidation works.
"""
from django.core.cache import cache
import logging

from .cache_utils import (
    CLIENTS_NAMESPACE, CLIENT_CACHE_TTL, CLIENT_LIST_CACHE_TTL,
    get_namespace_version, make_cache_key,
)

logger = logging.getLogger(__name__)


def get_client_cache_key(client_id: int) -> str:
    """Get cache key for client by ID"""
    return f"{CLIENTS_NAMESPACE}:v{get_namespace_version(CLIENTS_NAMESPACE)}:client:{client_id}"


def get_client_list_cache_key(search_query: str = '', ordering: str = '') -> str:
    """Get cache key for client list"""
    return make_cache_key(CLIENTS_NAMESPACE, 'list', search=search_query or 'all', ordering=ordering or 'default')


def cache_client_data(client_id: int, data: dict, ttl: int = None):
    """Cache serialized client data for fast retrieval"""
    cache.set(get_client_cache_key(client_id), data, ttl or CLIENT_CACHE_TTL)
    logger.debug(f"Cached client data (ID: {client_id})")


def get_cached_client(client_id: int):
    """Get cached client data by ID"""
    cached_data = cache.get(get_client_cache_key(client_id))
    if cached_data:
        logger.debug(f"Cache hit for client: {client_id}")
    return cached_data


def get_cached_client_list(search_query: str = '', ordering: str = ''):
    """Return (cached_data, cache_key) for a client list query"""
    cache_key = get_client_list_cache_key(search_query, ordering)
    return cache.get(cache_key), cache_key


def cache_client_list(cache_key: str, data, ttl: int = None):
    cache.set(cache_key, data, ttl or CLIENT_LIST_CACHE_TTL)
    logger.debug(f"Cached client list: {cache_key}")
