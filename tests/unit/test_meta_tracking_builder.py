import re
import time

from django.test import SimpleTestCase, tag

from meta_tracking.builder import build_custom_data, build_event, generate_event_id
from meta_tracking.errors import ValidationError
from meta_tracking.hashing import hash_value
from meta_tracking.schema import CustomData, EventData


@tag("batch_meta_tracking")
class BuildEventTests(SimpleTestCase):
    def test_fills_in_time_id_and_action_source(self):
        before = time.time()
        wire = build_event({"event_name": "PageView"})

        self.assertLessEqual(abs(wire["event_time"] - before), 1)
        self.assertEqual(wire["action_source"], "website")
        self.assertRegex(wire["event_id"], r"^event_\d{13}_[0-9a-f]{9}$")
        self.assertEqual(wire["user_data"], {})
        self.assertEqual(wire["custom_data"], {})
        self.assertNotIn("event_source_url", wire)
        self.assertNotIn("opt_out", wire)

    def test_keeps_caller_values(self):
        wire = build_event(
            EventData(
                event_name="Lead",
                event_time=1_700_000_000,
                event_id="lead-1",
                action_source="system_generated",
                event_source_url="https://example.com/signup",
                opt_out=True,
            )
        )

        self.assertEqual(wire["event_time"], 1_700_000_000)
        self.assertEqual(wire["event_id"], "lead-1")
        self.assertEqual(wire["action_source"], "system_generated")
        self.assertEqual(wire["event_source_url"], "https://example.com/signup")
        self.assertTrue(wire["opt_out"])

    def test_user_data_goes_out_hashed_under_short_keys(self):
        wire = build_event(
            {
                "event_name": "Purchase",
                "user_data": {"email": "Buyer@Example.com", "zip_code": "94107", "fbc": "fb.1.1.abc"},
            }
        )

        self.assertEqual(
            wire["user_data"],
            {
                "em": hash_value("buyer@example.com"),
                "zp": hash_value("94107"),
                "fbc": "fb.1.1.abc",
            },
        )

    def test_contents_are_mapped_with_prices(self):
        wire = build_event(
            {
                "event_name": "Purchase",
                "custom_data": {
                    "value": 99.98,
                    "currency": "USD",
                    "content_ids": ["p1"],
                    "contents": [{"id": "p1", "quantity": 2, "item_price": 49.99}],
                },
            }
        )

        self.assertEqual(wire["custom_data"]["contents"], [{"id": "p1", "quantity": 2, "item_price": 49.99}])
        self.assertEqual(wire["custom_data"]["content_ids"], ["p1"])
        self.assertEqual(wire["custom_data"]["value"], 99.98)

    def test_explicit_zero_quantity_is_kept(self):
        wire = build_event(
            {
                "event_name": "AddToCart",
                "custom_data": {"contents": [{"id": "p1", "quantity": 0, "item_price": 5}]},
            }
        )

        self.assertEqual(wire["custom_data"]["contents"], [{"id": "p1", "quantity": 0, "item_price": 5}])

    def test_single_content_id_string_is_not_split(self):
        wire = build_event({"event_name": "ViewContent", "custom_data": {"content_ids": "sku-1"}})

        self.assertEqual(wire["custom_data"]["content_ids"], ["sku-1"])

    def test_data_processing_options_are_passed_through(self):
        wire = build_event(
            {
                "event_name": "PageView",
                "data_processing_options": ["LDU"],
                "data_processing_options_country": 1,
                "data_processing_options_state": 1000,
            }
        )

        self.assertEqual(wire["data_processing_options"], ["LDU"])
        self.assertEqual(wire["data_processing_options_country"], 1)
        self.assertEqual(wire["data_processing_options_state"], 1000)

    def test_unknown_event_fields_are_rejected(self):
        with self.assertRaises(ValidationError):
            build_event({"event_name": "PageView", "eventName": "PageView"})


@tag("batch_meta_tracking")
class BuildCustomDataTests(SimpleTestCase):
    def test_custom_properties_cannot_override_reserved_keys(self):
        custom = CustomData(currency="EUR", custom_properties={"currency": "USD", "plan": "pro"})

        with self.assertLogs("meta_tracking.builder", level="WARNING") as logs:
            wire = build_custom_data(custom)

        self.assertEqual(wire, {"currency": "EUR", "plan": "pro"})
        self.assertIn("currency", logs.output[0])


@tag("batch_meta_tracking")
class GenerateEventIdTests(SimpleTestCase):
    def test_shape_and_uniqueness(self):
        ids = {generate_event_id("px") for _ in range(50)}

        self.assertEqual(len(ids), 50)
        for event_id in ids:
            self.assertTrue(re.fullmatch(r"px_\d{13}_[0-9a-f]{9}", event_id), event_id)
