from dataclasses import asdict
from typing import Any, Mapping

from django.conf import settings

from observability import traced

from .builder import current_timestamp, generate_event_id
from .context import event_source_url, user_data_from_request
from .schema import ActionSource
from .tasks import send_conversion_event
from .validation import validate_event


def _identity(user) -> dict:
    if user is None:
        return {}
    return {
        "external_id": str(getattr(user, "id", "") or "") or None,
        "email": getattr(user, "email", None),
        "phone": getattr(user, "phone", None),
        "first_name": getattr(user, "first_name", None),
        "last_name": getattr(user, "last_name", None),
    }


def track(
    event_name: str,
    *,
    user=None,
    request=None,
    user_data: Mapping[str, Any] | None = None,
    custom_data: Mapping[str, Any] | None = None,
    event_id: str | None = None,
    action_source: str | None = None,
) -> str | None:
    """
    Public entrypoint. Call from views/services to send a server-side event in the background.

    Returns the event id (share it with the pixel call for deduplication), or
    ``None`` when tracking is disabled. Invalid events raise ``ValidationError``
    here, before anything is queued.
    """
    if not getattr(settings, "META_TRACKING_ENABLED", False):
        return None

    identity = _identity(user) | dict(user_data or {})
    collected = user_data_from_request(request, **identity)

    payload = {
        "event_name": event_name,
        "event_time": current_timestamp(),
        "event_id": event_id or generate_event_id(),
        "event_source_url": event_source_url(request),
        "action_source": action_source
        or (ActionSource.WEBSITE.value if request else ActionSource.SYSTEM_GENERATED.value),
        "user_data": {key: value for key, value in asdict(collected).items() if value is not None},
        "custom_data": dict(custom_data or {}),
    }
    validate_event(payload)
    with traced("meta_tracking.enqueue", **{"meta.event_name": event_name, "event.id": payload["event_id"]}):
        send_conversion_event.delay(payload)
    return payload["event_id"]
