"""Typed configuration for the trackers."""

import logging
from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict, Mapping

from django.conf import settings

from .errors import ConfigError
from .schema import MAX_BATCH_SIZE
from .validation import validate_config


logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.facebook.com"
DEFAULT_API_VERSION = "v20.0"

_SECRET_FIELDS = ("access_token", "app_secret")
_ALIASES = {"account_id": "pixel_id"}


@dataclass(frozen=True)
class TrackerConfig:
    pixel_id: str
    access_token: str | None = None
    debug: bool = False
    test_event_code: str | None = None
    api_version: str = DEFAULT_API_VERSION
    app_secret: str | None = None
    partner_agent: str | None = None
    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    timeout: float = 6
    transport: str = "auto"
    graph_url: str = GRAPH_URL

    @property
    def endpoint_url(self) -> str:
        return f"{self.graph_url.rstrip('/')}/{self.api_version}/{self.pixel_id}/events"

    @property
    def batch_size_max(self) -> int:
        return MAX_BATCH_SIZE

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TrackerConfig":
        """Build a config from a plain mapping. Unknown keys are a ``ConfigError``."""

        if isinstance(data, cls):
            return data
        kwargs = _normalize_keys(data)
        if not kwargs.get("pixel_id"):
            raise ConfigError("Invalid configuration: Pixel ID is required")
        return cls(**kwargs)

    @classmethod
    def from_settings(cls) -> "TrackerConfig":
        """Read the ``META_*`` / ``FACEBOOK_*`` Django settings."""

        test_mode = bool(getattr(settings, "FACEBOOK_CAPI_TEST_MODE", False))
        test_code = (getattr(settings, "FACEBOOK_TEST_EVENT_CODE", "") or "").strip()

        return cls(
            pixel_id=getattr(settings, "FACEBOOK_PIXEL_ID", "") or getattr(settings, "META_PIXEL_ID", ""),
            access_token=getattr(settings, "FACEBOOK_ACCESS_TOKEN", "") or None,
            debug=bool(getattr(settings, "META_TRACKING_DEBUG", False)),
            test_event_code=test_code if test_mode and test_code else None,
            api_version=getattr(settings, "META_GRAPH_API_VERSION", "") or DEFAULT_API_VERSION,
            app_secret=getattr(settings, "FACEBOOK_APP_SECRET", "") or None,
            partner_agent=getattr(settings, "META_PARTNER_AGENT", "") or None,
            retry_attempts=int(getattr(settings, "META_TRACKING_RETRY_ATTEMPTS", 3)),
            retry_base_delay=float(getattr(settings, "META_TRACKING_RETRY_BASE_DELAY", 1.0)),
            timeout=float(getattr(settings, "META_TRACKING_TIMEOUT", 6)),
            transport=getattr(settings, "META_TRACKING_TRANSPORT", "auto") or "auto",
        )

    def with_changes(self, **changes: Any) -> "TrackerConfig":
        return replace(self, **_normalize_keys(changes))

    def validated(self, *, require_access_token: bool = False) -> "TrackerConfig":
        result = validate_config(self, require_access_token=require_access_token)
        if not result.is_valid:
            raise ConfigError(f"Invalid configuration: {', '.join(result.errors)}")
        if result.warnings and self.debug:
            logger.warning("Meta tracking configuration warnings: %s", "; ".join(result.warnings))
        return self

    def public_dict(self) -> Dict[str, Any]:
        """Return the config without secrets, for logs and diagnostics."""

        public = asdict(self)
        for name in _SECRET_FIELDS:
            public.pop(name)
        public["has_access_token"] = bool(self.access_token)
        public["has_app_secret"] = bool(self.app_secret)
        return public


def _normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(TrackerConfig)}
    kwargs: Dict[str, Any] = {}
    unknown = []
    for key, value in data.items():
        name = _ALIASES.get(key, key)
        if name not in known:
            unknown.append(key)
            continue
        kwargs[name] = value
    if unknown:
        raise ConfigError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")
    return kwargs
