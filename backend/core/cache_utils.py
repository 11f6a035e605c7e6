"""
Caching helpers for expensive aggregate queries
Backed by Redis (django-redis) in production, local memory otherwise
"""
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)

# Cache TTLs (in seconds)
FINANCE_DASHBOARD_CACHE_TTL = 300  # 5 minutes


def get_finance_dashboard_cache_key(organization_id):
    return f"finance_dashboard:{organization_id}"


def get_cached_finance_dashboard(organization_id):
    """
    Get cached finance dashboard totals for one organization
    Returns tuple: (cached_data, cache_key)
    """
    cache_key = get_finance_dashboard_cache_key(organization_id)
    cached_data = cache.get(cache_key)
    if cached_data is not None:
        logger.debug(f"Cache HIT for finance dashboard: {cache_key}")
    return cached_data, cache_key


def cache_finance_dashboard(cache_key, data, ttl=FINANCE_DASHBOARD_CACHE_TTL):
    cache.set(cache_key, data, ttl)
    logger.debug(f"Cached finance dashboard: {cache_key}")


def invalidate_finance_dashboard(organization_id):
    """Drop the cached dashboard of one organization"""
    try:
        cache.delete(get_finance_dashboard_cache_key(organization_id))
        logger.info(f"Invalidated finance dashboard cache for organization {organization_id}")
    except Exception as e:
        logger.warning(f"Could not invalidate finance dashboard cache for organization {organization_id}: {str(e)}")
