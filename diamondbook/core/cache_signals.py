"""
Cache invalidation signals
Automatically invalidate cache when data changes
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import CLIENTS_NAMESPACE, invalidate_namespace, invalidate_dashboard_cache

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()


@contextmanager
def suspend_cache_signals():
    """
    Context manager to temporarily suspend cache invalidation signals.
    Useful for bulk operations to prevent excessive cache clearing.
    All namespaces are invalidated once when the block exits.
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False
        invalidate_all()


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


def invalidate_all():
    invalidate_namespace(CLIENTS_NAMESPACE)
    invalidate_dashboard_cache()


@receiver([post_save, post_delete], sender='clients.Client')
def invalidate_client_cache(sender, instance, **kwargs):
    if is_suspended():
        return
    invalidate_namespace(CLIENTS_NAMESPACE)
    invalidate_dashboard_cache()
    logger.debug(f"Client {instance.pk} changed - invalidated client and dashboard cache")


@receiver([post_save, post_delete], sender='diamonds.Diamond')
@receiver([post_save, post_delete], sender='pricing.MarketRate')
@receiver([post_save, post_delete], sender='invoices.Invoice')
def invalidate_aggregate_cache(sender, instance, **kwargs):
    if is_suspended():
        return
    invalidate_dashboard_cache()
    logger.debug(f"{sender.__name__} {instance.pk} changed - invalidated dashboard cache")
