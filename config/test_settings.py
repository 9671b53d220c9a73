"""
Test settings: in-memory SQLite, eager Celery, tracing off.
"""
import os

# Set environment variables before importing settings
os.environ.setdefault("DJANGO_SECRET_KEY", "test-secret-key")
os.environ.setdefault("META_TRACKING_ENABLE_TRACING", "0")

from .settings import *

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

# -----------------------------------------------------------------------------
#  Celery configuration - run tasks eagerly and keep everything in-process
# -----------------------------------------------------------------------------

# Execute Celery tasks locally, synchronously (no broker connection required)
CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True  # Propagate exceptions to test runner

# Use in-memory transport / backend so Celery never attempts to connect to Redis
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

# Tracking stays off unless a test turns it on with override_settings.
META_TRACKING_ENABLED = False
META_TRACKING_ENABLE_TRACING = False
META_PIXEL_ID = ""
FACEBOOK_PIXEL_ID = ""
FACEBOOK_ACCESS_TOKEN = ""
FACEBOOK_APP_SECRET = ""
GTM_CONTAINER_ID = ""
