from contextlib import contextmanager
from typing import Any, Dict, Sequence

from opentelemetry import trace

from observability import mark_span_failed_with_exception

_tracer = trace.get_tracer(__name__)


@contextmanager
def trace_submission(pixel_id: str, events: Sequence[Dict[str, Any]]):
    with _tracer.start_as_current_span(
        "meta_capi.submit", record_exception=False, set_status_on_exception=False
    ) as span:
        span.set_attribute("meta.pixel_id", pixel_id)
        span.set_attribute("meta.event_count", len(events))
        span.set_attribute("meta.event_names", sorted({str(evt.get("event_name")) for evt in events}))
        if len(events) == 1:
            span.set_attribute("event.id", str(events[0].get("event_id")))
        try:
            yield span
        except Exception as exc:
            mark_span_failed_with_exception(span, exc)
            trace_id = getattr(exc, "trace_id", None)
            if trace_id and span.is_recording():
                span.set_attribute("meta.fbtrace_id", trace_id)
            raise
