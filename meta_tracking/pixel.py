"""Client-side Meta Pixel: bootstrap snippet and queued ``fbq`` calls for a page."""

import logging
from typing import Any, Dict, Iterable, List, Mapping, Tuple
from urllib.parse import urlencode

from django.utils.html import format_html
from django.utils.safestring import SafeString, mark_safe

from .builder import generate_event_id
from .errors import ConfigError
from .schema import CUSTOM_EVENT_PREFIX, STANDARD_EVENTS, Product
from .snippets import drop_none, js_literal
from .validation import is_valid_pixel_id


logger = logging.getLogger(__name__)

PIXEL_SCRIPT_URL = "https://connect.facebook.net/en_US/fbevents.js"
PIXEL_NOSCRIPT_URL = "https://www.facebook.com/tr"
SCRIPT_ELEMENT_ID = "meta-pixel-script"
LOADER_ELEMENT_ID = "meta-pixel-loader"
NOSCRIPT_ELEMENT_ID = "meta-pixel-noscript"

# Standard fbq stub; the loader is only inserted when no element carries LOADER_ELEMENT_ID.
_BOOTSTRAP_JS = (
    "!function(f,b,e,v,n,t,s){{if(f.fbq)return;n=f.fbq=function(){{n.callMethod?"
    "n.callMethod.apply(n,arguments):n.queue.push(arguments)}};if(!f._fbq)f._fbq=n;"
    "n.push=n;n.loaded=!0;n.version={version};n.agent={agent};n.queue=[];"
    "if(b.getElementById({loader_id}))return;t=b.createElement(e);t.id={loader_id};"
    "t.async=!0;t.src=v;s=b.getElementsByTagName(e)[0];s.parentNode.insertBefore(t,s)}}"
    "(window,document,'script',{url});"
    "fbq('init',{pixel_id},{{}},{{agent:{agent}}});"
)


def _products(products: Iterable[Product | Mapping[str, Any]]) -> List[Product]:
    return [Product.from_mapping(product) for product in products]


def _contents(products: List[Product]) -> List[Dict[str, Any]]:
    return [{"id": p.id, "quantity": 1 if p.quantity is None else p.quantity, "item_price": p.price} for p in products]


class PixelTracker:
    """Collects pixel events during a request and renders them for the page.

    The base code is rendered once per tracker; the script it emits also
    checks for an existing loader element, so pages that include it twice
    still load ``fbevents.js`` once.
    """

    def __init__(
        self,
        pixel_id: str,
        *,
        debug: bool = False,
        agent: str = "meta-tracking",
        version: str = "2.0",
        test_event_code: str | None = None,
        default_currency: str = "USD",
    ):
        if not pixel_id:
            raise ConfigError("Invalid configuration: Pixel ID is required")
        if not is_valid_pixel_id(pixel_id):
            raise ConfigError("Invalid configuration: Invalid Pixel ID format")

        self.pixel_id = pixel_id
        self.debug = debug
        self.agent = agent
        self.version = version
        self.test_event_code = test_event_code
        self.default_currency = default_currency
        self._base_rendered = False
        self._queue: List[Tuple[Any, ...]] = []

    @property
    def pending(self) -> List[Tuple[Any, ...]]:
        return list(self._queue)

    def update_config(self, **changes: Any) -> None:
        for name in ("debug", "agent", "version", "test_event_code", "default_currency"):
            if name in changes:
                setattr(self, name, changes.pop(name))
        if changes:
            raise ConfigError(f"Unknown pixel option(s): {', '.join(sorted(changes))}")

    def render_base_code(self) -> SafeString:
        if self._base_rendered:
            return mark_safe("")
        self._base_rendered = True

        script = _BOOTSTRAP_JS.format(
            version=js_literal(self.version),
            agent=js_literal(self.agent),
            loader_id=js_literal(LOADER_ELEMENT_ID),
            url=js_literal(PIXEL_SCRIPT_URL),
            pixel_id=js_literal(self.pixel_id),
        )
        noscript_src = f"{PIXEL_NOSCRIPT_URL}?{urlencode({'id': self.pixel_id, 'ev': 'PageView', 'noscript': 1})}"
        return format_html(
            '<script id="{}">{}</script>\n'
            '<noscript id="{}"><img height="1" width="1" style="display:none" src="{}"/></noscript>',
            SCRIPT_ELEMENT_ID,
            mark_safe(script),
            NOSCRIPT_ELEMENT_ID,
            noscript_src,
        )

    def render_events(self) -> SafeString:
        """Render and clear the queued ``fbq`` calls."""

        if not self._queue:
            return mark_safe("")
        calls = "".join(f"fbq({','.join(js_literal(arg) for arg in call)});" for call in self._queue)
        self._queue.clear()
        return format_html("<script>{}</script>", mark_safe(calls))

    def track_event(
        self,
        event_name: str,
        parameters: Mapping[str, Any] | None = None,
        event_id: str | None = None,
    ) -> str:
        """Queue an ``fbq`` call and return its event id (the dedup key)."""

        event_id = event_id or generate_event_id("px")
        params = drop_none(dict(parameters or {}))
        if self.test_event_code:
            params["test_event_code"] = self.test_event_code

        method = "track" if event_name in STANDARD_EVENTS else "trackCustom"
        if method == "trackCustom" and self.debug and not event_name.startswith(CUSTOM_EVENT_PREFIX):
            logger.warning("Pixel event %s is not a standard event; sending with trackCustom", event_name)

        self._queue.append((method, event_name, params, {"eventID": event_id}))
        if self.debug:
            logger.debug("Queued pixel event %s", event_name, extra={"event_id": event_id, "params": params})
        return event_id

    def track_page_view(self, event_id: str | None = None) -> str:
        return self.track_event("PageView", event_id=event_id)

    def track_product_view(self, product: Product | Mapping[str, Any], event_id: str | None = None) -> str:
        product = Product.from_mapping(product)
        return self.track_event(
            "ViewContent",
            {
                "content_ids": [product.id],
                "content_name": product.name,
                "content_type": "product",
                "value": product.price,
                "currency": product.currency or self.default_currency,
                "content_category": product.category,
                "brand": product.brand,
            },
            event_id or generate_event_id("pv"),
        )

    def track_add_to_cart(self, product: Product | Mapping[str, Any], event_id: str | None = None) -> str:
        product = Product.from_mapping(product)
        quantity = 1 if product.quantity is None else product.quantity
        return self.track_event(
            "AddToCart",
            {
                "content_ids": [product.id],
                "content_name": product.name,
                "content_type": "product",
                "value": product.price * quantity,
                "currency": product.currency or self.default_currency,
                "content_category": product.category,
                "brand": product.brand,
                "contents": [{"id": product.id, "quantity": quantity, "item_price": product.price}],
            },
            event_id or generate_event_id("atc"),
        )

    def track_initiate_checkout(
        self,
        products: Iterable[Product | Mapping[str, Any]],
        value: float,
        currency: str | None = None,
        *,
        event_id: str | None = None,
        custom_data: Mapping[str, Any] | None = None,
    ) -> str:
        items = _products(products)
        return self.track_event(
            "InitiateCheckout",
            {
                "content_ids": [p.id for p in items],
                "contents": _contents(items),
                "value": value,
                "currency": currency or self.default_currency,
                "num_items": len(items),
                **(custom_data or {}),
            },
            event_id or generate_event_id("ic"),
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
    ) -> str:
        items = _products(products)
        return self.track_event(
            "Purchase",
            {
                "content_ids": [p.id for p in items],
                "contents": _contents(items),
                "value": value,
                "currency": currency or self.default_currency,
                "num_items": len(items),
                "order_id": order_id,
                **(custom_data or {}),
            },
            event_id or generate_event_id("purchase"),
        )

    def track_search(self, search_term: str, *, event_id: str | None = None, custom_data=None) -> str:
        return self.track_event(
            "Search",
            {"search_string": search_term, **(custom_data or {})},
            event_id or generate_event_id("search"),
        )

    def track_registration(
        self,
        method: str | None = None,
        status: str | None = None,
        *,
        event_id: str | None = None,
        custom_data: Mapping[str, Any] | None = None,
    ) -> str:
        return self.track_event(
            "CompleteRegistration",
            {"registration_method": method, "status": status, **(custom_data or {})},
            event_id or generate_event_id("reg"),
        )

    def track_add_to_wishlist(self, product: Product | Mapping[str, Any], event_id: str | None = None) -> str:
        product = Product.from_mapping(product)
        return self.track_event(
            "AddToWishlist",
            {
                "content_ids": [product.id],
                "content_name": product.name,
                "content_type": "product",
                "value": product.price,
                "currency": product.currency or self.default_currency,
                "content_category": product.category,
                "brand": product.brand,
            },
            event_id or generate_event_id("atw"),
        )

    def track_lead(self, data: Mapping[str, Any] | None = None, event_id: str | None = None) -> str:
        data = dict(data or {})
        params = {"currency": self.default_currency, **data}
        return self.track_event("Lead", params, event_id or generate_event_id("lead"))
