import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Sequence

from .errors import ValidationError
from .hashing import clean_phone
from .schema import (
    ACTION_SOURCES,
    CUSTOM_EVENT_PREFIX,
    MAX_BATCH_SIZE,
    STANDARD_EVENTS,
    EventData,
)


logger = logging.getLogger(__name__)

MIN_EVENT_TIME = 1_000_000_000
MAX_FUTURE_SKEW_SECONDS = 3600
MIN_ACCESS_TOKEN_LENGTH = 50
TRANSPORT_CHOICES = ("auto", "requests", "socket")

SUPPORTED_CURRENCIES = frozenset({
    "USD", "EUR", "GBP", "CAD", "AUD", "JPY", "CNY", "INR", "BDT", "PKR", "NGN", "KES",
    "ZAR", "EGP", "AED", "SAR", "BRL", "MXN", "RUB", "TRY", "KRW", "SGD", "HKD", "NZD",
})

_PIXEL_ID_RE = re.compile(r"\d{15,16}")
_EMAIL_RE = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")


@dataclass
class ConfigValidation:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def is_valid_pixel_id(pixel_id: Any) -> bool:
    return isinstance(pixel_id, str) and bool(_PIXEL_ID_RE.fullmatch(pixel_id))


def is_valid_access_token(access_token: Any) -> bool:
    return isinstance(access_token, str) and len(access_token) >= MIN_ACCESS_TOKEN_LENGTH


def is_valid_email(email: Any) -> bool:
    return isinstance(email, str) and bool(_EMAIL_RE.fullmatch(email))


def is_valid_phone(phone: Any) -> bool:
    digits = clean_phone(phone)
    return 7 <= len(digits) <= 15


def is_valid_currency(currency: Any) -> bool:
    return isinstance(currency, str) and currency.upper() in SUPPORTED_CURRENCIES


def validate_config(config, *, require_access_token: bool = False) -> ConfigValidation:
    """Check a :class:`~meta_tracking.config.TrackerConfig` and collect every problem."""

    result = ConfigValidation()

    if not config.pixel_id:
        result.errors.append("Pixel ID is required")
    elif not is_valid_pixel_id(config.pixel_id):
        result.errors.append("Invalid Pixel ID format (expected 15-16 digits)")

    if config.access_token:
        if not is_valid_access_token(config.access_token):
            result.errors.append("Invalid access token format")
    elif require_access_token:
        result.errors.append("Access token is required for server-side tracking")

    if config.retry_attempts < 1:
        result.errors.append("retry_attempts must be at least 1")
    if config.retry_base_delay < 0:
        result.errors.append("retry_base_delay cannot be negative")
    if config.timeout <= 0:
        result.errors.append("timeout must be positive")
    if config.transport not in TRANSPORT_CHOICES:
        result.errors.append(f"transport must be one of: {', '.join(TRANSPORT_CHOICES)}")

    if config.app_secret and not config.access_token:
        result.warnings.append("app_secret has no effect without an access token")
    if config.test_event_code:
        result.warnings.append("test_event_code is set; events will land in Test Events only")

    return result


def validate_event(data: EventData | Mapping[str, Any], *, debug: bool = False) -> EventData:
    """Raise :class:`ValidationError` for an event the endpoint would reject.

    Returns the event as :class:`EventData` so callers can reuse the parsed form.
    """

    event = EventData.from_mapping(data)

    if not event.event_name:
        raise ValidationError("Event name is required")

    if not isinstance(event.event_name, str):
        raise ValidationError(f"Event name must be a string, got {type(event.event_name).__name__}")

    if event.event_name not in STANDARD_EVENTS and not event.event_name.startswith(CUSTOM_EVENT_PREFIX):
        if debug:
            logger.warning(
                "Consider using a standard event name or prefixing with %r: %s",
                CUSTOM_EVENT_PREFIX,
                event.event_name,
            )

    if event.action_source is not None and (
        not isinstance(event.action_source, str) or event.action_source not in ACTION_SOURCES
    ):
        raise ValidationError(f"Invalid action source: {event.action_source}")

    if event.event_time is not None:
        upper = int(time.time()) + MAX_FUTURE_SKEW_SECONDS
        if not isinstance(event.event_time, (int, float)) or not MIN_EVENT_TIME <= event.event_time <= upper:
            raise ValidationError("Event time must be a valid Unix timestamp within reasonable bounds")

    return event


def validate_batch(events: Sequence[EventData | Mapping[str, Any]], *, debug: bool = False) -> List[EventData]:
    if not events:
        raise ValidationError("Events list is required and cannot be empty")

    if len(events) > MAX_BATCH_SIZE:
        raise ValidationError(f"Maximum {MAX_BATCH_SIZE} events per batch allowed")

    validated = []
    for index, event in enumerate(events):
        try:
            validated.append(validate_event(event, debug=debug))
        except ValidationError as exc:
            raise ValidationError(f"Event {index}: {exc.message}") from exc
    return validated
