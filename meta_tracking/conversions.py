"""Server-side tracking through Meta's Conversions API."""

import hashlib
import hmac
import logging
import time
from typing import Any, Callable, Dict, Iterable, List, Mapping, Sequence

from .builder import build_event, current_timestamp, generate_event_id
from .config import TrackerConfig
from .errors import TrackingError
from .response import map_response
from .retry import with_retry
from .schema import CustomData, EventData, EventResponse, UserData
from .telemetry import trace_submission
from .transport import Transport, select_transport
from .validation import validate_batch, validate_event


logger = logging.getLogger(__name__)

RECOMMENDED_EVENTS = {
    "ecommerce": ("PageView", "ViewContent", "Search", "AddToCart", "InitiateCheckout", "AddPaymentInfo", "Purchase"),
    "saas": ("PageView", "ViewContent", "Lead", "CompleteRegistration", "StartTrial", "Subscribe", "Purchase"),
    "lead_generation": ("PageView", "ViewContent", "Lead", "Contact", "SubmitApplication", "CompleteRegistration"),
    "content": ("PageView", "ViewContent", "Search", "Subscribe", "Contact"),
    "app": ("PageView", "ViewContent", "CompleteRegistration", "AddToCart", "Purchase", "Subscribe"),
}
DEFAULT_RECOMMENDED_EVENTS = ("PageView", "ViewContent", "Purchase")


def appsecret_proof(app_secret: str, access_token: str) -> str:
    """HMAC-SHA256 of the access token keyed by the app secret, as the Graph API expects."""

    return hmac.new(app_secret.encode("utf-8"), access_token.encode("utf-8"), hashlib.sha256).hexdigest()


class ConversionTracker:
    """Validates, builds and submits events to ``/{pixel_id}/events``.

    The configuration and transport are replaced together by
    :meth:`update_config`; a call in flight keeps the pair it started with.
    """

    def __init__(
        self,
        config: TrackerConfig | Mapping[str, Any],
        *,
        transport: Transport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._config = TrackerConfig.from_mapping(config).validated(require_access_token=True)
        self._fixed_transport = transport is not None
        self._transport = transport or select_transport(self._config)
        self._sleep = sleep

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def transport(self) -> Transport:
        return self._transport

    def update_config(self, **changes: Any) -> TrackerConfig:
        config = self._config.with_changes(**changes).validated(require_access_token=True)
        transport = self._transport if self._fixed_transport else select_transport(config)
        self._config, self._transport = config, transport
        if config.debug:
            logger.info("Meta CAPI configuration updated", extra={"config": config.public_dict()})
        return config

    def public_config(self) -> Dict[str, Any]:
        return self._config.public_dict()

    @staticmethod
    def build_request_body(wire_events: Sequence[Dict[str, Any]], config: TrackerConfig) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "data": list(wire_events),
            "access_token": config.access_token,
        }
        if config.test_event_code:
            body["test_event_code"] = config.test_event_code
        if config.partner_agent:
            body["partner_agent"] = config.partner_agent
        if config.app_secret:
            body["appsecret_proof"] = appsecret_proof(config.app_secret, config.access_token)
        return body

    def send_event(self, event: EventData | Mapping[str, Any]) -> EventResponse:
        config, transport = self._config, self._transport
        parsed = validate_event(event, debug=config.debug)
        return self._submit([build_event(parsed)], config, transport)

    def send_batch(self, events: Sequence[EventData | Mapping[str, Any]]) -> EventResponse:
        """Submit up to 1000 events in one request; the batch is retried as a whole."""

        config, transport = self._config, self._transport
        parsed = validate_batch(events, debug=config.debug)
        return self._submit([build_event(event) for event in parsed], config, transport)

    def _submit(self, wire_events: List[Dict[str, Any]], config: TrackerConfig, transport: Transport) -> EventResponse:
        body = self.build_request_body(wire_events, config)

        logger.info(
            "Meta CAPI submitting events",
            extra={
                "pixel_id": config.pixel_id,
                "event_count": len(wire_events),
                "event_ids": [evt["event_id"] for evt in wire_events[:20]],
                "test_mode": bool(config.test_event_code),
                "transport": transport.name,
            },
        )

        with trace_submission(config.pixel_id, wire_events):
            raw = with_retry(
                lambda: transport.send(body),
                config.retry_attempts,
                config.retry_base_delay,
                sleep=self._sleep,
            )

        response = map_response(raw)
        if config.debug:
            logger.info(
                "Meta CAPI response",
                extra={
                    "events_received": response.events_received,
                    "fbtrace_id": response.trace_id,
                    "messages": list(response.messages),
                },
            )
        return response

    def test_connection(self) -> Dict[str, Any]:
        """Send a PageView and report whether the endpoint accepted it."""

        test_event = EventData(
            event_name="PageView",
            event_time=current_timestamp(),
            event_id=generate_event_id("test"),
            action_source="website",
            event_source_url="https://example.com/test",
            user_data=UserData(email="test@example.com"),
            custom_data=CustomData(value=0, currency="USD"),
        )
        try:
            response = self.send_event(test_event)
        except TrackingError as exc:
            logger.warning("Meta CAPI connection test failed: %s", exc, exc_info=self._config.debug)
            return {"success": False, "error": str(exc), "fbtrace_id": exc.trace_id}

        return {
            "success": True,
            "details": {
                "events_received": response.events_received,
                "fbtrace_id": response.trace_id,
                "test_mode": bool(self._config.test_event_code),
            },
        }

    def validate_pixel_access(self) -> Dict[str, Any]:
        result = self.test_connection()
        if result["success"]:
            return {"valid": True, "permissions": ["ADVERTISE", "ANALYZE"]}
        return {"valid": False, "error": result["error"]}

    @staticmethod
    def recommended_events(business_type: str) -> tuple[str, ...]:
        return RECOMMENDED_EVENTS.get(business_type, DEFAULT_RECOMMENDED_EVENTS)

    # Shortcuts for the common standard events.

    def _track(
        self,
        event_name: str,
        user_data: UserData | Mapping[str, Any] | None,
        custom_data: CustomData | Mapping[str, Any] | None,
        event_source_url: str | None,
        event_id: str | None,
    ) -> EventResponse:
        return self.send_event(
            EventData(
                event_name=event_name,
                event_id=event_id,
                event_source_url=event_source_url,
                user_data=UserData.from_mapping(user_data),
                custom_data=CustomData.from_mapping(custom_data),
            )
        )

    def track_page_view(self, user_data=None, custom_data=None, *, event_source_url=None, event_id=None):
        return self._track("PageView", user_data, custom_data, event_source_url, event_id)

    def track_lead(self, user_data=None, custom_data=None, *, event_source_url=None, event_id=None):
        return self._track("Lead", user_data, custom_data, event_source_url, event_id)

    def track_purchase(
        self,
        value: float,
        currency: str = "USD",
        user_data=None,
        *,
        event_source_url=None,
        event_id=None,
        **custom_fields,
    ):
        custom = {"value": value, "currency": currency, **custom_fields}
        return self._track("Purchase", user_data, custom, event_source_url, event_id)

    def track_add_to_cart(
        self,
        content_ids: Iterable[str],
        value: float | None = None,
        currency: str = "USD",
        user_data=None,
        *,
        event_source_url=None,
        event_id=None,
        **custom_fields,
    ):
        custom = {"content_ids": list(content_ids), "currency": currency, **custom_fields}
        if value is not None:
            custom["value"] = value
        return self._track("AddToCart", user_data, custom, event_source_url, event_id)

    def track_view_content(
        self,
        content_id: str,
        content_type: str | None = None,
        value: float | None = None,
        currency: str = "USD",
        user_data=None,
        *,
        event_source_url=None,
        event_id=None,
        **custom_fields,
    ):
        custom = {"content_ids": [content_id], "currency": currency, **custom_fields}
        if content_type:
            custom["content_type"] = content_type
        if value is not None:
            custom["value"] = value
        return self._track("ViewContent", user_data, custom, event_source_url, event_id)
