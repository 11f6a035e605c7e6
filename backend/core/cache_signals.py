"""
Cache invalidation signals
Automatically invalidate the finance dashboard when finance rows change
"""
from django.db import transaction
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging
import threading
from contextlib import contextmanager

from .cache_utils import invalidate_finance_dashboard

logger = logging.getLogger(__name__)

# Thread-local storage to track signal suspension
_thread_locals = threading.local()

FINANCE_MODELS = {
    'AccountReceivable',
    'AccountPayable',
    'PaymentComplement',
    'Invoice',
    'FixedCost',
    'PurchaseOrder',
}


@contextmanager
def suspend_cache_signals():
    """
    Temporarily suspend cache invalidation signals.
    Useful for bulk operations; invalidate manually after the block.
    """
    try:
        _thread_locals.suspended = True
        yield
    finally:
        _thread_locals.suspended = False


def is_suspended():
    return getattr(_thread_locals, 'suspended', False)


@receiver([post_save, post_delete])
def invalidate_finance_cache(sender, instance, **kwargs):
    """Invalidate the organization's finance dashboard when finance data changes"""
    if is_suspended():
        return

    if sender.__name__ not in FINANCE_MODELS or sender._meta.app_label != 'finance':
        return

    organization_id = getattr(instance, 'organization_id', None)
    if not organization_id:
        return

    try:
        # Invalidate after commit so the cache is not repopulated with stale data
        transaction.on_commit(lambda: invalidate_finance_dashboard(organization_id))
    except Exception as e:
        logger.warning(f"Error in invalidate_finance_cache signal: {e}")
