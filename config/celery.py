import logging
import os

from celery import Celery
from celery.signals import worker_process_init, worker_shutdown

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

logger = logging.getLogger(__name__)

app = Celery('meta_tracking')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()


@worker_process_init.connect
def worker_process_init_handler(**_):
    """
    Initialize OpenTelemetry for each worker process after forking.
    This ensures each worker child has its own BatchSpanProcessor thread.
    """
    from observability import init_tracing, tracing_enabled, MetaTrackingService
    from opentelemetry.instrumentation.celery import CeleryInstrumentor

    init_tracing(MetaTrackingService.WORKER)
    if tracing_enabled():
        CeleryInstrumentor().instrument()
    logger.info("OpenTelemetry initialization completed for worker PID %s", os.getpid())


@worker_shutdown.connect
def worker_shutdown_handler(**_):
    from observability import shutdown_tracing

    shutdown_tracing()
