from typing import Any

from .schema import EventResponse


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _as_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def map_response(raw: Any) -> EventResponse:
    """Map a Conversions API reply onto :class:`EventResponse`. Never raises."""

    if not isinstance(raw, dict):
        return EventResponse()

    messages = raw.get("messages")
    if not isinstance(messages, (list, tuple)):
        messages = ()

    return EventResponse(
        events_received=_as_int(raw.get("events_received")),
        messages=tuple(str(message) for message in messages),
        trace_id=_as_str(raw.get("fbtrace_id")),
        id=_as_str(raw.get("id")),
        processed_count=_as_int(raw.get("num_processed_entries")),
    )
