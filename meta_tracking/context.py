import time
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from django.conf import settings

from .schema import UserData


SENSITIVE_QUERY_PARAMS = frozenset({"token", "key", "secret", "password", "auth"})


def _first_ip(meta):
    xff = meta.get("HTTP_X_FORWARDED_FOR")
    if xff:
        return xff.split(",")[0].strip()
    return meta.get("REMOTE_ADDR")


def click_ids(request) -> dict:
    if not request:
        return {}
    fbp = request.COOKIES.get(getattr(settings, "FBP_COOKIE_NAME", "_fbp")) or getattr(request, "fbp", None)
    fbc = request.COOKIES.get("_fbc")
    fbclid = request.GET.get("fbclid")
    if not fbc and fbclid:
        # synthesize per Meta guidance: fb.1.<ts>.<fbclid>
        fbc = f"fb.1.{int(time.time() * 1000)}.{fbclid}"
    return {"fbp": fbp, "fbc": fbc, "fbclid": fbclid}


def user_data_from_request(request, **fields) -> UserData:
    """Browser/network identifiers from a Django request, merged with ``fields``.

    Explicit ``fields`` win over values taken from the request. Unknown field
    names raise :class:`~meta_tracking.errors.ValidationError`.
    """
    if not request:
        return UserData.from_mapping(fields)

    ids = click_ids(request)
    collected = {
        "client_ip_address": _first_ip(request.META),
        "client_user_agent": request.META.get("HTTP_USER_AGENT"),
        "fbp": ids["fbp"],
        "fbc": ids["fbc"],
    }
    collected.update({key: value for key, value in fields.items() if value is not None})
    return UserData.from_mapping(collected)


def sanitize_url(url: str) -> str:
    """Drop credential-like query parameters (``token``, ``key``, ...) from ``url``."""

    parts = urlsplit(url)
    if not parts.query:
        return url
    query = [
        (name, value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
        if name.lower() not in SENSITIVE_QUERY_PARAMS
    ]
    return urlunsplit(parts._replace(query=urlencode(query)))


def event_source_url(request) -> str | None:
    if not request:
        return None
    return sanitize_url(request.build_absolute_uri())
