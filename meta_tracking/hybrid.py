"""Pixel and Conversions API tracking under one shared event id.

Meta deduplicates a browser event and a server event when both carry the
same event name and event id, so every ``track_*`` call here generates a
single id and hands it to both sides.
"""

import logging
from dataclasses import asdict, dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Mapping

from .builder import current_timestamp, generate_event_id
from .conversions import ConversionTracker
from .errors import TrackingError
from .pixel import PixelTracker
from .schema import Product, UserData


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HybridResult:
    event_id: str
    client_tracked: bool = False
    server_tracked: bool = False
    server_error: str | None = None


def _server_contents(products: List[Product]) -> List[Dict[str, Any]]:
    return [
        {
            "id": p.id,
            "quantity": 1 if p.quantity is None else p.quantity,
            "item_price": p.price,
            "title": p.name,
            "category": p.category,
            "brand": p.brand,
        }
        for p in products
    ]


class HybridTracker:
    def __init__(
        self,
        pixel: PixelTracker | None = None,
        server: ConversionTracker | None = None,
        *,
        enable_client_tracking: bool = True,
        enable_server_tracking: bool = True,
        use_task: bool = False,
        default_currency: str = "USD",
    ):
        self.pixel = pixel
        self.server = server
        self.enable_client_tracking = enable_client_tracking
        self.enable_server_tracking = enable_server_tracking
        self.use_task = use_task
        self.default_currency = default_currency

    def set_client_tracking_enabled(self, enabled: bool) -> None:
        self.enable_client_tracking = enabled

    def set_server_tracking_enabled(self, enabled: bool) -> None:
        self.enable_server_tracking = enabled

    def is_client_tracking_ready(self) -> bool:
        return self.pixel is not None

    def is_server_tracking_configured(self) -> bool:
        return self.enable_server_tracking and (self.server is not None or self.use_task)

    def tracking_status(self) -> Dict[str, bool]:
        return {
            "client_tracking": self.enable_client_tracking,
            "server_tracking": self.enable_server_tracking,
            "pixel_ready": self.is_client_tracking_ready(),
            "server_configured": self.is_server_tracking_configured(),
        }

    def _send_to_server(self, payload: Dict[str, Any]) -> None:
        if self.use_task:
            from .tasks import send_conversion_event

            send_conversion_event.delay(payload)
        else:
            self.server.send_event(payload)

    def _track(
        self,
        event_id: str,
        client_call: Callable[[str], Any],
        event_name: str,
        custom_data: Mapping[str, Any] | None,
        user_data: UserData | Mapping[str, Any] | None,
        event_source_url: str | None,
    ) -> HybridResult:
        client_tracked = False
        if self.enable_client_tracking and self.pixel is not None:
            client_call(event_id)
            client_tracked = True

        if not self.is_server_tracking_configured():
            return HybridResult(event_id, client_tracked=client_tracked)

        user = UserData.from_mapping(user_data)
        payload = {
            "event_name": event_name,
            "event_time": current_timestamp(),
            "event_id": event_id,
            "event_source_url": event_source_url,
            "action_source": "website",
            "user_data": {k: v for k, v in asdict(user).items() if v is not None},
            "custom_data": {k: v for k, v in (custom_data or {}).items() if v is not None},
        }
        try:
            self._send_to_server(payload)
        except TrackingError as e:
            logger.warning("Server-side %s tracking failed: %s", event_name, e, exc_info=True)
            return HybridResult(event_id, client_tracked=client_tracked, server_error=str(e))
        return HybridResult(event_id, client_tracked=client_tracked, server_tracked=True)

    def track_page_view(self, *, user_data=None, event_source_url=None) -> HybridResult:
        event_id = generate_event_id("pv")
        return self._track(
            event_id,
            lambda eid: self.pixel.track_page_view(event_id=eid),
            "PageView",
            None,
            user_data,
            event_source_url,
        )

    def track_product_view(self, product, *, user_data=None, event_source_url=None) -> HybridResult:
        product = Product.from_mapping(product)
        event_id = generate_event_id("pv")
        custom = {
            "content_ids": [product.id],
            "content_name": product.name,
            "content_type": "product",
            "contents": _server_contents([replace(product, quantity=1)]),
            "value": product.price,
            "currency": product.currency or self.default_currency,
        }
        return self._track(
            event_id,
            lambda eid: self.pixel.track_product_view(product, event_id=eid),
            "ViewContent",
            custom,
            user_data,
            event_source_url,
        )

    def track_add_to_cart(self, product, *, user_data=None, event_source_url=None) -> HybridResult:
        product = Product.from_mapping(product)
        event_id = generate_event_id("atc")
        quantity = 1 if product.quantity is None else product.quantity
        custom = {
            "content_ids": [product.id],
            "content_type": "product",
            "contents": _server_contents([product]),
            "value": product.price * quantity,
            "currency": product.currency or self.default_currency,
        }
        return self._track(
            event_id,
            lambda eid: self.pixel.track_add_to_cart(product, event_id=eid),
            "AddToCart",
            custom,
            user_data,
            event_source_url,
        )

    def track_initiate_checkout(
        self,
        products: Iterable[Product | Mapping[str, Any]],
        value: float,
        currency: str | None = None,
        *,
        event_id: str | None = None,
        custom_data: Mapping[str, Any] | None = None,
        user_data=None,
        event_source_url=None,
    ) -> HybridResult:
        items = [Product.from_mapping(p) for p in products]
        currency = currency or self.default_currency
        event_id = event_id or generate_event_id("ic")
        custom = {
            "content_ids": [p.id for p in items],
            "contents": _server_contents(items),
            "value": value,
            "currency": currency,
            "num_items": len(items),
            "custom_properties": dict(custom_data or {}),
        }
        return self._track(
            event_id,
            lambda eid: self.pixel.track_initiate_checkout(items, value, currency, event_id=eid, custom_data=custom_data),
            "InitiateCheckout",
            custom,
            user_data,
            event_source_url,
        )

    def track_purchase(
        self,
        order_id: str,
        products: Iterable[Product | Mapping[str, Any]],
        value: float,
        currency: str | None = None,
        *,
        event_id: str | None = None,
        custom_data: Mapping[str, Any] | None = None,
        user_data=None,
        event_source_url=None,
    ) -> HybridResult:
        items = [Product.from_mapping(p) for p in products]
        currency = currency or self.default_currency
        event_id = event_id or generate_event_id("purchase")
        custom = {
            "content_ids": [p.id for p in items],
            "contents": _server_contents(items),
            "value": value,
            "currency": currency,
            "num_items": len(items),
            "order_id": order_id,
            "custom_properties": dict(custom_data or {}),
        }
        return self._track(
            event_id,
            lambda eid: self.pixel.track_purchase(order_id, items, value, currency, event_id=eid, custom_data=custom_data),
            "Purchase",
            custom,
            user_data,
            event_source_url,
        )

    def track_search(
        self,
        search_term: str,
        *,
        event_id: str | None = None,
        custom_data: Mapping[str, Any] | None = None,
        user_data=None,
        event_source_url=None,
    ) -> HybridResult:
        event_id = event_id or generate_event_id("search")
        custom = {"search_string": search_term, "custom_properties": dict(custom_data or {})}
        return self._track(
            event_id,
            lambda eid: self.pixel.track_search(search_term, event_id=eid, custom_data=custom_data),
            "Search",
            custom,
            user_data,
            event_source_url,
        )

    def track_registration(
        self,
        method: str | None = None,
        status: str | None = None,
        *,
        event_id: str | None = None,
        custom_data: Mapping[str, Any] | None = None,
        user_data=None,
        event_source_url=None,
    ) -> HybridResult:
        event_id = event_id or generate_event_id("reg")
        properties = {"registration_method": method, **(custom_data or {})}
        custom = {
            "status": status,
            "custom_properties": {k: v for k, v in properties.items() if v is not None},
        }
        return self._track(
            event_id,
            lambda eid: self.pixel.track_registration(method, status, event_id=eid, custom_data=custom_data),
            "CompleteRegistration",
            custom,
            user_data,
            event_source_url,
        )

    def track_add_to_wishlist(self, product, *, user_data=None, event_source_url=None) -> HybridResult:
        product = Product.from_mapping(product)
        event_id = generate_event_id("atw")
        custom = {
            "content_ids": [product.id],
            "content_name": product.name,
            "content_type": "product",
            "value": product.price,
            "currency": product.currency or self.default_currency,
        }
        return self._track(
            event_id,
            lambda eid: self.pixel.track_add_to_wishlist(product, event_id=eid),
            "AddToWishlist",
            custom,
            user_data,
            event_source_url,
        )

    def track_lead(self, data: Mapping[str, Any] | None = None, *, user_data=None, event_source_url=None) -> HybridResult:
        data = dict(data or {})
        event_id = generate_event_id("lead")
        extra = {k: v for k, v in data.items() if k not in ("value", "currency")}
        custom = {
            "value": data.get("value"),
            "currency": data.get("currency") or self.default_currency,
            "custom_properties": extra,
        }
        return self._track(
            event_id,
            lambda eid: self.pixel.track_lead(data, event_id=eid),
            "Lead",
            custom,
            user_data,
            event_source_url,
        )

    def track_custom_event(
        self,
        event_name: str,
        parameters: Mapping[str, Any] | None = None,
        event_id: str | None = None,
        *,
        user_data=None,
        event_source_url=None,
    ) -> HybridResult:
        event_id = event_id or generate_event_id("custom")
        custom = {"custom_properties": dict(parameters or {})}
        return self._track(
            event_id,
            lambda eid: self.pixel.track_event(event_name, parameters, eid),
            event_name,
            custom,
            user_data,
            event_source_url,
        )
