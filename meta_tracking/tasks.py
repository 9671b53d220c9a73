import logging
import time
from dataclasses import asdict
from typing import Any, Dict, List

from celery import shared_task
from django.conf import settings

from .config import TrackerConfig
from .conversions import ConversionTracker
from .errors import TrackingError
from .registry import get_default_tracker


logger = logging.getLogger(__name__)

# The Conversions API rejects events older than seven days.
MAX_EVENT_AGE_SECONDS = 7 * 24 * 3600


def _tracker() -> ConversionTracker:
    tracker = get_default_tracker()
    if isinstance(tracker, ConversionTracker):
        return tracker
    return ConversionTracker(TrackerConfig.from_settings())


def _is_stale(payload: Dict[str, Any]) -> bool:
    event_time = payload.get("event_time")
    return isinstance(event_time, (int, float)) and event_time < int(time.time()) - MAX_EVENT_AGE_SECONDS


@shared_task(bind=True, name="meta_tracking.tasks.send_conversion_event")
def send_conversion_event(self, payload: Dict[str, Any]) -> Dict[str, Any] | None:
    if not getattr(settings, "META_TRACKING_ENABLED", False):
        return None
    if _is_stale(payload):
        logger.info(
            "Dropping stale Meta CAPI event",
            extra={"event_name": payload.get("event_name"), "event_id": payload.get("event_id")},
        )
        return None

    try:
        response = _tracker().send_event(payload)
    except TrackingError as e:
        logger.warning(
            f"Meta CAPI event failed: {e}",
            extra={"event_id": payload.get("event_id"), "fbtrace_id": e.trace_id, "error_code": e.code},
        )
        raise
    return asdict(response)


@shared_task(bind=True, name="meta_tracking.tasks.send_conversion_batch")
def send_conversion_batch(self, payloads: List[Dict[str, Any]]) -> Dict[str, Any] | None:
    if not getattr(settings, "META_TRACKING_ENABLED", False):
        return None

    fresh = [payload for payload in payloads if not _is_stale(payload)]
    if len(fresh) != len(payloads):
        logger.info("Dropping %d stale Meta CAPI event(s) from batch", len(payloads) - len(fresh))
    if not fresh:
        return None

    try:
        response = _tracker().send_batch(fresh)
    except TrackingError as e:
        logger.warning(
            f"Meta CAPI batch failed: {e}",
            extra={"event_count": len(fresh), "fbtrace_id": e.trace_id, "error_code": e.code},
        )
        raise
    return asdict(response)
