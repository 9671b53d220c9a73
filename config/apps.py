import sys

import logging
from django.apps import AppConfig
from observability import init_tracing, MetaTrackingService


logger = logging.getLogger(__name__)

class TracingInitialization(AppConfig):
    name = "config"          # the dotted-path of the package
    verbose_name = "Tracing Initialization"

    def ready(self):
        if any(arg.find("celery") != -1 for arg in sys.argv):
            logger.info("Skipping OpenTelemetry initialization for Celery worker; will be initialized in worker_process_init_handler")
            return

        logger.debug("Initializing OpenTelemetry for service: %s", MetaTrackingService.WEB.value)
        init_tracing(MetaTrackingService.WEB)
