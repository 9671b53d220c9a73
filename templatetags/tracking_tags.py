from django import template
from django.conf import settings
from django.utils.html import format_html
from django.utils.safestring import mark_safe

from meta_tracking.context import event_source_url
from meta_tracking.errors import ConfigError
from meta_tracking.gtm import GTMTracker
from meta_tracking.pixel import PixelTracker

register = template.Library()


def _cached(context, attr: str, factory):
    """Tracker for this render: from the context, the request, or built once and kept on the request."""

    tracker = context.get(attr)
    if tracker is not None:
        return tracker

    request = context.get("request")
    tracker = getattr(request, attr, None) if request is not None else None
    if tracker is None:
        tracker = factory()
        if tracker is not None and request is not None:
            setattr(request, attr, tracker)
    return tracker


def _test_event_code():
    if not getattr(settings, "FACEBOOK_CAPI_TEST_MODE", False):
        return None
    return (getattr(settings, "FACEBOOK_TEST_EVENT_CODE", "") or "").strip() or None


def _settings_pixel():
    pixel_id = getattr(settings, "META_PIXEL_ID", "")
    if not pixel_id:
        return None
    return PixelTracker(
        pixel_id,
        debug=bool(getattr(settings, "META_TRACKING_DEBUG", False)),
        test_event_code=_test_event_code(),
    )


def _settings_gtm():
    if not getattr(settings, "GTM_CONTAINER_ID", ""):
        return None
    return GTMTracker.from_settings(auto_track_page_views=False)


@register.simple_tag(takes_context=True)
def meta_pixel(context, page_view: bool = True) -> str:
    try:
        pixel = _cached(context, "meta_pixel", _settings_pixel)
    except ConfigError as error:
        return format_html("<!-- Meta pixel disabled: {} -->", error)
    if pixel is None:
        return ""

    if page_view:
        pixel.track_page_view()
    return mark_safe(pixel.render_base_code() + pixel.render_events())


@register.simple_tag(takes_context=True)
def meta_pixel_events(context) -> str:
    try:
        pixel = _cached(context, "meta_pixel", _settings_pixel)
    except ConfigError:
        return ""
    if pixel is None:
        return ""
    return pixel.render_events()


@register.simple_tag(takes_context=True)
def gtm_head(context, page_view: bool = True) -> str:
    """Loader script plus any queued data-layer records.

    Trackers built from settings leave page views to this tag so the record
    can carry the request path; pass ``page_view=False`` when the tracker in
    the context already pushes its own.
    """
    gtm = _cached(context, "gtm_tracker", _settings_gtm)
    if gtm is None:
        return ""
    request = context.get("request")
    if page_view and request is not None:
        gtm.track_page_view(path=request.path, location=event_source_url(request))
    return mark_safe(gtm.render_data_layer() + gtm.render_head())


@register.simple_tag(takes_context=True)
def gtm_body(context) -> str:
    gtm = _cached(context, "gtm_tracker", _settings_gtm)
    if gtm is None:
        return ""
    return gtm.render_body()


@register.simple_tag(takes_context=True)
def gtm_data_layer(context) -> str:
    gtm = _cached(context, "gtm_tracker", _settings_gtm)
    if gtm is None:
        return ""
    return gtm.render_data_layer()
