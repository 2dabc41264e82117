from celery import shared_task
from django.conf import settings
from django.core.cache import cache
from django.db import OperationalError
from django.utils import timezone
from datetime import timedelta
import logging

logger = logging.getLogger(__name__)

TASK_LOCK_TIMEOUT = 300

def _acquire(lock_key):
    return cache.add(lock_key, 'locked', timeout=TASK_LOCK_TIMEOUT)

@shared_task(bind=True, max_retries=3)
def purge_cancelled_bookings(self, days=None):

    from .statistics import BookingStatistics

    lock_key = "celery_lock:purge_cancelled_bookings"
    if not _acquire(lock_key):
        logger.info("Another worker is already purging cancelled bookings - skipping")
        return "Skipped - lock held by another worker"

    try:
        if days is None:
            days = getattr(settings, 'CANCELLED_BOOKING_RETENTION_DAYS', 30)
        cutoff = timezone.now() - timedelta(days=days)

        purged = BookingStatistics.purge_cancelled(cutoff)
        return f"Purged {purged} cancelled bookings older than {days} days"

    except OperationalError as e:
        logger.error(f"Error in purge_cancelled_bookings task: {e}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))

    finally:
        cache.delete(lock_key)

@shared_task(bind=True, max_retries=3)
def reconcile_inventory(self):

    from movies.inventory import InventoryStore

    lock_key = "celery_lock:reconcile_inventory"
    if not _acquire(lock_key):
        logger.info("Another worker is already reconciling inventory - skipping")
        return "Skipped - lock held by another worker"

    try:
        changed = InventoryStore.recalculate_all()
        return f"Reconciled inventory: {changed} records corrected"

    except OperationalError as e:
        logger.error(f"Error in reconcile_inventory task: {e}")
        raise self.retry(exc=e, countdown=60 * (2 ** self.request.retries))

    finally:
        cache.delete(lock_key)
