from moviebooking.settings import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",  # noqa: F405
        "OPTIONS": {
            "timeout": 20,
            "transaction_mode": "IMMEDIATE",
        },
        # file backed so threads in TransactionTestCase share one database
        "TEST": {
            "NAME": BASE_DIR / "test_moviebooking.sqlite3",  # noqa: F405
        },
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'moviebooking-tests',
    }
}

PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

BOOKING_RETRY_BACKOFF = 0.01

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

LOGGING['loggers']['bookings']['handlers'] = ['console']  # noqa: F405
LOGGING['loggers']['movies']['handlers'] = ['console']  # noqa: F405
LOGGING['loggers']['accounts']['handlers'] = ['console']  # noqa: F405
LOGGING['loggers']['custom_admin']['handlers'] = ['console']  # noqa: F405
