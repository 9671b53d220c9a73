from unittest.mock import patch

from django.test import SimpleTestCase, tag

from meta_tracking.conversions import ConversionTracker
from meta_tracking.errors import ApiError
from meta_tracking.hybrid import HybridTracker
from meta_tracking.pixel import PixelTracker
from meta_tracking.transport import Transport

PIXEL_ID = "123456789012345"
ACCESS_TOKEN = "EAAB" + "x" * 60


class RecordingTransport(Transport):
    name = "recording"

    def __init__(self, error=None):
        super().__init__("https://graph.facebook.test/events")
        self.error = error
        self.calls = []

    def send(self, payload):
        self.calls.append(payload)
        if self.error:
            raise self.error
        return {"events_received": 1}


@tag("batch_meta_tracking")
class HybridTrackerTests(SimpleTestCase):
    def setUp(self):
        self.transport = RecordingTransport()
        self.pixel = PixelTracker(PIXEL_ID)
        self.server = ConversionTracker(
            {"pixel_id": PIXEL_ID, "access_token": ACCESS_TOKEN, "retry_attempts": 1},
            transport=self.transport,
        )
        self.hybrid = HybridTracker(self.pixel, self.server)

    def test_pixel_and_server_share_event_id(self):
        result = self.hybrid.track_purchase(
            "order-1",
            [{"id": "p1", "name": "Mug", "price": 10.0, "quantity": 2}],
            20.0,
            user_data={"email": "buyer@example.com"},
            event_source_url="https://shop.example.com/thanks",
        )

        self.assertTrue(result.client_tracked)
        self.assertTrue(result.server_tracked)
        self.assertEqual(self.pixel.pending[0][3], {"eventID": result.event_id})
        server_event = self.transport.calls[0]["data"][0]
        self.assertEqual(server_event["event_id"], result.event_id)
        self.assertEqual(server_event["event_name"], "Purchase")
        self.assertEqual(server_event["custom_data"]["order_id"], "order-1")
        self.assertEqual(
            server_event["custom_data"]["contents"],
            [{"id": "p1", "quantity": 2, "item_price": 10.0, "title": "Mug"}],
        )
        self.assertEqual(server_event["event_source_url"], "https://shop.example.com/thanks")
        self.assertIn("em", server_event["user_data"])

    def test_every_shortcut_shares_its_id(self):
        product = {"id": "p1", "price": 4.0}
        results = [
            self.hybrid.track_page_view(),
            self.hybrid.track_product_view(product),
            self.hybrid.track_add_to_cart(product),
            self.hybrid.track_initiate_checkout([product], 4.0),
            self.hybrid.track_search("mugs"),
            self.hybrid.track_registration(method="email"),
            self.hybrid.track_add_to_wishlist(product),
            self.hybrid.track_lead({"value": 9, "source": "footer"}),
            self.hybrid.track_custom_event("Custom_Demo", {"tier": "gold"}),
        ]

        client_ids = [call[3]["eventID"] for call in self.pixel.pending]
        server_ids = [call["data"][0]["event_id"] for call in self.transport.calls]
        self.assertEqual(client_ids, [result.event_id for result in results])
        self.assertEqual(server_ids, client_ids)
        lead = self.transport.calls[7]["data"][0]["custom_data"]
        self.assertEqual(lead, {"value": 9, "currency": "USD", "source": "footer"})
        registration = self.transport.calls[5]["data"][0]["custom_data"]
        self.assertEqual(registration, {"registration_method": "email"})

    def test_server_failure_is_reported_not_raised(self):
        transport = RecordingTransport(error=ApiError("down", status=500))
        server = ConversionTracker(
            {"pixel_id": PIXEL_ID, "access_token": ACCESS_TOKEN, "retry_attempts": 1},
            transport=transport,
        )
        hybrid = HybridTracker(self.pixel, server)

        with self.assertLogs("meta_tracking.hybrid", level="WARNING"):
            result = hybrid.track_page_view()

        self.assertTrue(result.client_tracked)
        self.assertFalse(result.server_tracked)
        self.assertEqual(result.server_error, "500: down")
        self.assertEqual(len(self.pixel.pending), 1)

    def test_sides_can_be_switched_off(self):
        self.hybrid.set_server_tracking_enabled(False)
        self.hybrid.track_page_view()
        self.assertEqual(self.transport.calls, [])
        self.assertEqual(len(self.pixel.pending), 1)

        self.hybrid.set_server_tracking_enabled(True)
        self.hybrid.set_client_tracking_enabled(False)
        result = self.hybrid.track_page_view()
        self.assertFalse(result.client_tracked)
        self.assertEqual(len(self.pixel.pending), 1)
        self.assertEqual(len(self.transport.calls), 1)

    def test_tracking_status(self):
        self.assertEqual(
            self.hybrid.tracking_status(),
            {"client_tracking": True, "server_tracking": True, "pixel_ready": True, "server_configured": True},
        )
        self.assertFalse(HybridTracker().tracking_status()["server_configured"])

    @patch("meta_tracking.tasks.send_conversion_event.delay")
    def test_can_hand_server_side_to_celery(self, mock_delay):
        hybrid = HybridTracker(self.pixel, use_task=True)

        result = hybrid.track_page_view(user_data={"email": "a@example.com"})

        self.assertTrue(result.server_tracked)
        mock_delay.assert_called_once()
        payload = mock_delay.call_args.args[0]
        self.assertEqual(payload["event_id"], result.event_id)
        self.assertEqual(payload["user_data"], {"email": "a@example.com"})
