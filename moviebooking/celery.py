import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'moviebooking.settings')

app = Celery('moviebooking')
app.config_from_object('django.conf:settings', namespace='CELERY')

app.autodiscover_tasks()

app.conf.beat_schedule = {
    'reconcile-inventory-hourly': {
        'task': 'bookings.tasks.reconcile_inventory',
        'schedule': 3600.0,  # Every hour
    },
    'purge-cancelled-bookings-daily': {
        'task': 'bookings.tasks.purge_cancelled_bookings',
        'schedule': crontab(hour=3, minute=0),  # Daily, off-peak
    },
}
