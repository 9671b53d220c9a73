"""Turn caller-supplied events into Conversions API wire events."""

import logging
import time
import uuid
from typing import Any, Dict, Mapping

from .hashing import normalize_user_data
from .schema import ActionSource, CustomData, EventData, UserData


logger = logging.getLogger(__name__)

# UserData attribute -> wire key. Values arrive hashed from normalize_user_data.
HASHED_USER_KEYS = {
    "email": "em",
    "phone": "ph",
    "first_name": "fn",
    "last_name": "ln",
    "date_of_birth": "db",
    "gender": "ge",
    "city": "ct",
    "state": "st",
    "zip_code": "zp",
    "country": "country",
    "external_id": "external_id",
    "f5first": "f5first",
    "f5last": "f5last",
    "fi": "fi",
    "dobd": "dobd",
    "dobm": "dobm",
    "doby": "doby",
}

OPAQUE_USER_KEYS = {
    "client_ip_address": "client_ip_address",
    "client_user_agent": "client_user_agent",
    "fbc": "fbc",
    "fbp": "fbp",
    "subscription_id": "subscription_id",
    "fb_login_id": "fb_login_id",
    "lead_id": "lead_id",
    "madid": "madid",
    "anon_id": "anon_id",
    "ctwa_clid": "ctwa_clid",
    "page_id": "page_id",
}

CUSTOM_DATA_KEYS = (
    "value",
    "currency",
    "content_name",
    "content_category",
    "content_ids",
    "content_type",
    "order_id",
    "search_string",
    "num_items",
    "status",
    "delivery_category",
)

RESERVED_CUSTOM_KEYS = frozenset(CUSTOM_DATA_KEYS) | {"contents"}


def current_timestamp() -> int:
    return int(time.time())


def generate_event_id(prefix: str = "event") -> str:
    """Return a dedup key shaped ``<prefix>_<epoch ms>_<random>``."""

    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def build_user_data(user_data: UserData) -> Dict[str, Any]:
    normalized = normalize_user_data(user_data)
    wire: Dict[str, Any] = {}

    for attr, key in HASHED_USER_KEYS.items():
        value = getattr(normalized, attr)
        if value:
            wire[key] = value

    for attr, key in OPAQUE_USER_KEYS.items():
        value = getattr(normalized, attr)
        if value:
            wire[key] = value

    return wire


def build_custom_data(custom_data: CustomData) -> Dict[str, Any]:
    wire: Dict[str, Any] = {}

    for key in CUSTOM_DATA_KEYS:
        value = getattr(custom_data, key)
        if value is None or value == "":
            continue
        wire[key] = list(value) if isinstance(value, tuple) else value

    if custom_data.contents is not None:
        contents = []
        for content in custom_data.contents:
            item: Dict[str, Any] = {
                "id": content.id,
                "quantity": 1 if content.quantity is None else content.quantity,
                "item_price": content.item_price,
            }
            if content.title:
                item["title"] = content.title
            if content.category:
                item["category"] = content.category
            if content.brand:
                item["brand"] = content.brand
            contents.append(item)
        wire["contents"] = contents

    dropped = []
    for key, value in custom_data.custom_properties.items():
        if key in RESERVED_CUSTOM_KEYS:
            dropped.append(key)
            continue
        wire[key] = value

    if dropped:
        logger.warning(
            "Dropped custom properties that collide with reserved custom_data keys: %s",
            ", ".join(sorted(dropped)),
        )

    return wire


def build_event(data: EventData | Mapping[str, Any]) -> Dict[str, Any]:
    """Return the wire form of one event, filling in time, id and action source."""

    event = EventData.from_mapping(data)

    wire: Dict[str, Any] = {
        "event_name": event.event_name,
        "event_time": int(event.event_time) if event.event_time is not None else current_timestamp(),
        "event_id": event.event_id or generate_event_id(),
        "action_source": event.action_source or ActionSource.WEBSITE.value,
        "user_data": build_user_data(event.user_data),
        "custom_data": build_custom_data(event.custom_data),
    }

    if event.event_source_url:
        wire["event_source_url"] = event.event_source_url

    if event.opt_out:
        wire["opt_out"] = True

    if event.data_processing_options is not None:
        wire["data_processing_options"] = list(event.data_processing_options)
        if event.data_processing_options_country is not None:
            wire["data_processing_options_country"] = event.data_processing_options_country
        if event.data_processing_options_state is not None:
            wire["data_processing_options_state"] = event.data_processing_options_state

    return wire
