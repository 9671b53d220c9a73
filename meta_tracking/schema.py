"""Value objects for events sent to the pixel, the Conversions API and GTM."""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Mapping

from .errors import ValidationError


class ActionSource(str, Enum):
    WEBSITE = "website"
    EMAIL = "email"
    APP = "app"
    PHONE_CALL = "phone_call"
    CHAT = "chat"
    PHYSICAL_STORE = "physical_store"
    SYSTEM_GENERATED = "system_generated"
    BUSINESS_MESSAGING = "business_messaging"
    OTHER = "other"


ACTION_SOURCES = frozenset(source.value for source in ActionSource)

STANDARD_EVENTS = (
    "PageView",
    "ViewContent",
    "Search",
    "AddToCart",
    "AddToWishlist",
    "InitiateCheckout",
    "AddPaymentInfo",
    "Purchase",
    "Lead",
    "CompleteRegistration",
    "Contact",
    "CustomizeProduct",
    "Donate",
    "FindLocation",
    "Schedule",
    "StartTrial",
    "SubmitApplication",
    "Subscribe",
)

CUSTOM_EVENT_PREFIX = "Custom_"

MAX_BATCH_SIZE = 1000


def _from_mapping(cls, data: Mapping[str, Any] | None, label: str) -> Dict[str, Any]:
    """Return kwargs for ``cls`` from a loosely typed mapping, rejecting unknown keys."""

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValidationError(f"{label} must be a mapping, got {type(data).__name__}")

    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValidationError(f"Unknown {label} field(s): {', '.join(unknown)}")
    return dict(data)


@dataclass(frozen=True)
class UserData:
    """Identity fields used for matching.

    Matching fields are hashed by :func:`meta_tracking.hashing.normalize_user_data`;
    opaque tokens (click ids, browser ids, network details) are sent as-is.
    """

    email: str | None = None
    phone: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    date_of_birth: str | None = None
    gender: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    country: str | None = None
    external_id: str | None = None
    f5first: str | None = None
    f5last: str | None = None
    fi: str | None = None
    dobd: str | None = None
    dobm: str | None = None
    doby: str | None = None
    client_ip_address: str | None = None
    client_user_agent: str | None = None
    fbc: str | None = None
    fbp: str | None = None
    subscription_id: str | None = None
    fb_login_id: str | None = None
    lead_id: str | None = None
    madid: str | None = None
    anon_id: str | None = None
    ctwa_clid: str | None = None
    page_id: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "UserData":
        if isinstance(data, cls):
            return data
        return cls(**_from_mapping(cls, data, "user_data"))


@dataclass(frozen=True)
class Content:
    id: str
    quantity: int = 1
    item_price: float | None = None
    title: str | None = None
    category: str | None = None
    brand: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Content":
        if isinstance(data, cls):
            return data
        kwargs = _from_mapping(cls, data, "content")
        if not kwargs.get("id"):
            raise ValidationError("Content items require an id")
        return cls(**kwargs)


@dataclass(frozen=True)
class CustomData:
    value: float | None = None
    currency: str | None = None
    content_name: str | None = None
    content_category: str | None = None
    content_ids: tuple[str, ...] | None = None
    content_type: str | None = None
    contents: tuple[Content, ...] | None = None
    order_id: str | None = None
    search_string: str | None = None
    num_items: int | None = None
    status: str | None = None
    delivery_category: str | None = None
    custom_properties: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "CustomData":
        if isinstance(data, cls):
            return data
        kwargs = _from_mapping(cls, data, "custom_data")
        if isinstance(kwargs.get("content_ids"), str):
            kwargs["content_ids"] = (kwargs["content_ids"],)
        if kwargs.get("content_ids") is not None:
            kwargs["content_ids"] = tuple(str(content_id) for content_id in kwargs["content_ids"])
        if kwargs.get("contents") is not None:
            kwargs["contents"] = tuple(Content.from_mapping(item) for item in kwargs["contents"])
        kwargs["custom_properties"] = dict(kwargs.get("custom_properties") or {})
        return cls(**kwargs)


@dataclass(frozen=True)
class EventData:
    """Caller-supplied event, before defaults, hashing and key renaming."""

    event_name: str
    event_time: int | None = None
    event_id: str | None = None
    event_source_url: str | None = None
    action_source: str | None = None
    user_data: UserData = field(default_factory=UserData)
    custom_data: CustomData = field(default_factory=CustomData)
    opt_out: bool = False
    data_processing_options: tuple[str, ...] | None = None
    data_processing_options_country: int | None = None
    data_processing_options_state: int | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EventData":
        if isinstance(data, cls):
            return data
        kwargs = _from_mapping(cls, data, "event")
        if isinstance(kwargs.get("action_source"), ActionSource):
            kwargs["action_source"] = kwargs["action_source"].value
        kwargs["user_data"] = UserData.from_mapping(kwargs.get("user_data"))
        kwargs["custom_data"] = CustomData.from_mapping(kwargs.get("custom_data"))
        if kwargs.get("data_processing_options") is not None:
            kwargs["data_processing_options"] = tuple(kwargs["data_processing_options"])
        kwargs.setdefault("event_name", "")
        return cls(**kwargs)


@dataclass(frozen=True)
class EventResponse:
    events_received: int = 0
    messages: tuple[str, ...] = ()
    trace_id: str | None = None
    id: str | None = None
    processed_count: int = 0


@dataclass(frozen=True)
class Product:
    """Catalog item used by the client-side pixel and data-layer helpers."""

    id: str
    name: str | None = None
    price: float = 0.0
    quantity: int = 1
    currency: str | None = None
    category: str | None = None
    brand: str | None = None
    variant: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Product":
        if isinstance(data, cls):
            return data
        return cls(**_from_mapping(cls, data, "product"))
