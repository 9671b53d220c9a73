"""Google Tag Manager loader and data-layer records."""

import logging
from typing import Any, Dict, Iterable, List, Mapping
from urllib.parse import urlencode

from django.conf import settings
from django.utils.html import format_html
from django.utils.safestring import SafeString, mark_safe

from .errors import ConfigError
from .schema import Product
from .snippets import js_literal


logger = logging.getLogger(__name__)

GTM_SCRIPT_URL = "https://www.googletagmanager.com/gtm.js"
GTM_NOSCRIPT_URL = "https://www.googletagmanager.com/ns.html"
SCRIPT_ELEMENT_ID = "gtm-script"
LOADER_ELEMENT_ID = "gtm-loader"
NOSCRIPT_ELEMENT_ID = "gtm-noscript"
DEFAULT_DATA_LAYER = "dataLayer"

_LOADER_JS = (
    "(function(w,d,s,l,i){{if(d.getElementById({loader_id}))return;"
    "w[l]=w[l]||[];w[l].push({{'gtm.start':new Date().getTime(),event:'gtm.js'}});"
    "var f=d.getElementsByTagName(s)[0],j=d.createElement(s),dl=l!='dataLayer'?'&l='+l:'';"
    "j.id={loader_id};j.async=true;j.src={url}+'?id='+i+dl;f.parentNode.insertBefore(j,f);"
    "}})(window,document,'script',{data_layer},{gtm_id});"
)


class GTMTracker:
    """Builds the records a GTM container reads from its data layer.

    Records are kept in :attr:`data_layer` (the server-side mirror of the
    page's array) and emitted by :meth:`render_data_layer`.
    """

    def __init__(
        self,
        gtm_id: str,
        *,
        debug: bool = False,
        auto_track_page_views: bool = True,
        data_layer_name: str = DEFAULT_DATA_LAYER,
        default_currency: str = "USD",
        auto_init: bool = True,
    ):
        if not gtm_id:
            raise ConfigError("GTM ID is required")

        self.gtm_id = gtm_id
        self.debug = debug
        self.auto_track_page_views = auto_track_page_views
        self.data_layer_name = data_layer_name or DEFAULT_DATA_LAYER
        self.default_currency = default_currency
        self.data_layer: List[Dict[str, Any]] = []
        self._rendered_count = 0
        self._initialized = False
        self._head_rendered = False
        self._body_rendered = False

        if auto_init:
            self.init()

    @classmethod
    def from_settings(cls, **overrides: Any) -> "GTMTracker":
        options = {
            "debug": bool(getattr(settings, "META_TRACKING_DEBUG", False)),
            "data_layer_name": getattr(settings, "GTM_DATA_LAYER_NAME", DEFAULT_DATA_LAYER),
        }
        options.update(overrides)
        return cls(getattr(settings, "GTM_CONTAINER_ID", ""), **options)

    def init(self) -> None:
        if self._initialized:
            if self.debug:
                logger.warning("GTM already initialized")
            return
        self._initialized = True
        if self.debug:
            logger.info("GTM debug mode enabled for container %s", self.gtm_id)
        if self.auto_track_page_views:
            self.track_page_view()

    def is_ready(self) -> bool:
        return self._initialized

    def update_config(self, **changes: Any) -> None:
        for name in ("debug", "auto_track_page_views", "data_layer_name", "default_currency"):
            if name in changes:
                setattr(self, name, changes.pop(name))
        if changes:
            raise ConfigError(f"Unknown GTM option(s): {', '.join(sorted(changes))}")

    def push_event(self, event: Mapping[str, Any]) -> None:
        record = dict(event)
        self.data_layer.append(record)
        if self.debug:
            logger.debug("GTM data layer event: %s", record)

    # Rendering

    def render_head(self) -> SafeString:
        if self._head_rendered:
            return mark_safe("")
        self._head_rendered = True
        script = _LOADER_JS.format(
            loader_id=js_literal(LOADER_ELEMENT_ID),
            url=js_literal(GTM_SCRIPT_URL),
            data_layer=js_literal(self.data_layer_name),
            gtm_id=js_literal(self.gtm_id),
        )
        return format_html('<script id="{}">{}</script>', SCRIPT_ELEMENT_ID, mark_safe(script))

    def render_body(self) -> SafeString:
        if self._body_rendered:
            return mark_safe("")
        self._body_rendered = True
        src = f"{GTM_NOSCRIPT_URL}?{urlencode({'id': self.gtm_id})}"
        return format_html(
            '<noscript id="{}"><iframe src="{}" height="0" width="0" '
            'style="display:none;visibility:hidden"></iframe></noscript>',
            NOSCRIPT_ELEMENT_ID,
            src,
        )

    def render_data_layer(self) -> SafeString:
        """Render the records pushed since the last call."""

        pending = self.data_layer[self._rendered_count:]
        if not pending:
            return mark_safe("")
        self._rendered_count = len(self.data_layer)

        name = js_literal(self.data_layer_name)
        pushes = "".join(f"window[{name}].push({js_literal(record)});" for record in pending)
        return format_html("<script>window[{}]=window[{}]||[];{}</script>", mark_safe(name), mark_safe(name), mark_safe(pushes))

    # Events

    def _item(self, product: Product, quantity: int | None = None) -> Dict[str, Any]:
        if quantity is None:
            quantity = 1 if product.quantity is None else product.quantity
        return {
            "item_id": product.id,
            "item_name": product.name,
            "price": product.price,
            "currency": product.currency or self.default_currency,
            "quantity": quantity,
            "item_category": product.category,
            "item_brand": product.brand,
        }

    def _items(self, products: Iterable[Product | Mapping[str, Any]]) -> List[Dict[str, Any]]:
        return [self._item(Product.from_mapping(product)) for product in products]

    def track_page_view(self, path: str = "", title: str = "", location: str = "") -> None:
        self.push_event(
            {
                "event": "page_view",
                "page_location": location,
                "page_title": title,
                "page_path": path,
                "page": {"path": path, "title": title, "location": location},
            }
        )

    def track_product_view(self, product: Product | Mapping[str, Any], location: str = "") -> None:
        item = self._item(Product.from_mapping(product), quantity=1)
        self.push_event(
            {
                "event": "view_item",
                "ecommerce": {"currency": item["currency"], "value": item["price"], "items": [item]},
                "page_title": item["item_name"],
                "page_location": location,
                "content_type": "product",
            }
        )
        self.push_event(
            {
                "event": "view_content",
                "content_type": "product",
                "content_ids": [item["item_id"]],
                "content_name": item["item_name"],
                "content_category": item["item_category"],
                "value": item["price"],
                "currency": item["currency"],
                "ecommerce": {"items": [item]},
            }
        )

    def track_add_to_cart(self, product: Product | Mapping[str, Any]) -> None:
        item = self._item(Product.from_mapping(product))
        value = item["price"] * item["quantity"]
        self.push_event(
            {
                "event": "add_to_cart",
                "ecommerce": {"currency": item["currency"], "value": value, "items": [item]},
            }
        )
        self.push_event(
            {
                "event": "add_to_cart_fb",
                "content_type": "product",
                "content_ids": [item["item_id"]],
                "content_name": item["item_name"],
                "value": value,
                "currency": item["currency"],
                "ecommerce": {"items": [item]},
            }
        )

    def track_initiate_checkout(
        self,
        products: Iterable[Product | Mapping[str, Any]],
        value: float,
        currency: str | None = None,
    ) -> None:
        items = self._items(products)
        currency = currency or self.default_currency
        self.push_event(
            {
                "event": "begin_checkout",
                "ecommerce": {"currency": currency, "value": value, "items": items},
            }
        )
        self.push_event(
            {
                "event": "initiate_checkout",
                "content_type": "product",
                "content_ids": [item["item_id"] for item in items],
                "value": value,
                "currency": currency,
                "num_items": len(items),
                "ecommerce": {"items": items},
            }
        )

    def track_purchase(
        self,
        order_id: str,
        products: Iterable[Product | Mapping[str, Any]],
        value: float,
        currency: str | None = None,
        *,
        tax: float = 0,
        shipping: float = 0,
    ) -> None:
        items = self._items(products)
        currency = currency or self.default_currency
        self.push_event(
            {
                "event": "purchase",
                "ecommerce": {
                    "transaction_id": order_id,
                    "value": value,
                    "tax": tax,
                    "shipping": shipping,
                    "currency": currency,
                    "items": items,
                },
            }
        )
        self.push_event(
            {
                "event": "purchase_fb",
                "content_type": "product",
                "content_ids": [item["item_id"] for item in items],
                "value": value,
                "currency": currency,
                "num_items": len(items),
                "transaction_id": order_id,
                "ecommerce": {"items": items},
            }
        )

    def track_search(self, search_term: str, results_count: int = 0) -> None:
        self.push_event({"event": "search", "search_term": search_term, "search_results_count": results_count})

    def track_registration(self, method: str = "email", user_id: str = "") -> None:
        self.push_event(
            {
                "event": "sign_up",
                "user_id": user_id,
                "signup_method": method,
                "event_category": "engagement",
                "event_label": "user_registration",
            }
        )
        self.push_event(
            {
                "event": "complete_registration",
                "registration_method": method,
                "user_properties": {"user_id": user_id, "signup_method": method},
                "content_name": "Registration",
                "value": 0,
                "currency": self.default_currency,
            }
        )

    def track_custom_event(self, event_name: str, parameters: Mapping[str, Any] | None = None) -> None:
        self.push_event({"event": event_name, **(parameters or {})})

    def set_user_data(
        self,
        *,
        is_logged_in: bool,
        user_id: str | None = None,
        user_type: str | None = None,
        email: str | None = None,
    ) -> None:
        # Raw email is only pushed when the caller passes it; GTM containers may forward it.
        self.push_event(
            {
                "event": "set_user_data",
                "user_id": user_id,
                "user_type": user_type or "customer",
                "user_email": email,
                "is_logged_in": is_logged_in,
            }
        )

    def track_add_to_wishlist(self, product: Product | Mapping[str, Any]) -> None:
        product = Product.from_mapping(product)
        self.push_event(
            {
                "event": "add_to_wishlist",
                "ecommerce": {
                    "items": [
                        {
                            "item_id": product.id,
                            "item_name": product.name,
                            "price": product.price,
                            "currency": product.currency or self.default_currency,
                            "item_category": product.category,
                        }
                    ]
                },
            }
        )
