from django.test import SimpleTestCase, tag

from meta_tracking.errors import ConfigError
from meta_tracking.pixel import PixelTracker
from meta_tracking.snippets import js_literal

PIXEL_ID = "123456789012345"


@tag("batch_meta_tracking")
class PixelTrackerSetupTests(SimpleTestCase):
    def test_requires_valid_pixel_id(self):
        with self.assertRaises(ConfigError):
            PixelTracker("")
        with self.assertRaises(ConfigError):
            PixelTracker("12345")

    def test_update_config(self):
        pixel = PixelTracker(PIXEL_ID)

        pixel.update_config(debug=True, test_event_code="TEST1")

        self.assertTrue(pixel.debug)
        self.assertEqual(pixel.test_event_code, "TEST1")
        with self.assertRaises(ConfigError):
            pixel.update_config(pixelId="1")


@tag("batch_meta_tracking")
class PixelRenderTests(SimpleTestCase):
    def test_base_code_renders_once(self):
        pixel = PixelTracker(PIXEL_ID)

        html = pixel.render_base_code()

        self.assertIn('<script id="meta-pixel-script">', html)
        self.assertIn("t.id=\"meta-pixel-loader\"", html)
        self.assertIn("https://connect.facebook.net/en_US/fbevents.js", html)
        self.assertIn(f"fbq('init',\"{PIXEL_ID}\"", html)
        self.assertIn('<noscript id="meta-pixel-noscript">', html)
        self.assertIn(f"id={PIXEL_ID}&amp;ev=PageView", html)
        self.assertEqual(pixel.render_base_code(), "")

    def test_events_render_and_clear(self):
        pixel = PixelTracker(PIXEL_ID)
        pixel.track_page_view(event_id="pv-1")

        html = pixel.render_events()

        self.assertEqual(html, '<script>fbq("track","PageView",{},{"eventID":"pv-1"});</script>')
        self.assertEqual(pixel.pending, [])
        self.assertEqual(pixel.render_events(), "")

    def test_values_cannot_break_out_of_the_script(self):
        pixel = PixelTracker(PIXEL_ID)
        pixel.track_event("Custom_Note", {"text": "</script><script>alert(1)</script>"})

        html = pixel.render_events()

        self.assertEqual(html.count("</script>"), 1)
        self.assertIn("\\u003C/script\\u003E", html)

    def test_js_literal_escapes_html_significant_characters(self):
        self.assertEqual(js_literal("a<b>&c"), '"a\\u003Cb\\u003E\\u0026c"')


@tag("batch_meta_tracking")
class PixelEventTests(SimpleTestCase):
    def setUp(self):
        self.pixel = PixelTracker(PIXEL_ID)

    def test_standard_and_custom_events(self):
        standard_id = self.pixel.track_event("Purchase", {"value": 10, "currency": "USD"})
        custom_id = self.pixel.track_event("Custom_Upgrade", {"plan": "pro", "note": None})

        (method, name, params, options), (custom_method, custom_name, custom_params, custom_options) = self.pixel.pending
        self.assertEqual((method, name), ("track", "Purchase"))
        self.assertEqual(params, {"value": 10, "currency": "USD"})
        self.assertEqual(options, {"eventID": standard_id})
        self.assertEqual((custom_method, custom_name), ("trackCustom", "Custom_Upgrade"))
        self.assertEqual(custom_params, {"plan": "pro"})
        self.assertEqual(custom_options, {"eventID": custom_id})

    def test_non_standard_name_warns_in_debug(self):
        self.pixel.update_config(debug=True)

        with self.assertLogs("meta_tracking.pixel", level="WARNING"):
            self.pixel.track_event("Upgrade")

        self.assertEqual(self.pixel.pending[0][0], "trackCustom")

    def test_test_event_code_is_attached(self):
        pixel = PixelTracker(PIXEL_ID, test_event_code="TEST77")

        pixel.track_page_view()

        self.assertEqual(pixel.pending[0][2], {"test_event_code": "TEST77"})

    def test_generated_ids_carry_event_prefix(self):
        self.assertTrue(self.pixel.track_page_view().startswith("px_"))
        self.assertTrue(self.pixel.track_purchase("o-1", [{"id": "p1", "price": 5.0}], 5.0).startswith("purchase_"))

    def test_add_to_cart_multiplies_quantity(self):
        self.pixel.track_add_to_cart({"id": "p1", "name": "Mug", "price": 12.5, "quantity": 2})

        params = self.pixel.pending[0][2]
        self.assertEqual(params["value"], 25.0)
        self.assertEqual(params["currency"], "USD")
        self.assertEqual(params["contents"], [{"id": "p1", "quantity": 2, "item_price": 12.5}])
        self.assertNotIn("brand", params)

    def test_add_to_cart_keeps_zero_quantity(self):
        self.pixel.track_add_to_cart({"id": "p1", "price": 12.5, "quantity": 0})

        params = self.pixel.pending[0][2]
        self.assertEqual(params["value"], 0)
        self.assertEqual(params["contents"], [{"id": "p1", "quantity": 0, "item_price": 12.5}])

    def test_purchase_lists_every_product(self):
        products = [{"id": "p1", "price": 10.0, "quantity": 2}, {"id": "p2", "price": 5.0}]

        self.pixel.track_purchase("order-9", products, 25.0, "EUR", custom_data={"coupon": "SPRING"})

        name, params = self.pixel.pending[0][1:3]
        self.assertEqual(name, "Purchase")
        self.assertEqual(params["content_ids"], ["p1", "p2"])
        self.assertEqual(params["num_items"], 2)
        self.assertEqual(params["order_id"], "order-9")
        self.assertEqual(params["currency"], "EUR")
        self.assertEqual(params["coupon"], "SPRING")

    def test_search_registration_wishlist_and_lead(self):
        self.pixel.track_search("mugs")
        self.pixel.track_registration(method="google")
        self.pixel.track_add_to_wishlist({"id": "p1", "price": 3.0})
        self.pixel.track_lead({"value": 15})

        pending = self.pixel.pending
        self.assertEqual([call[1] for call in pending], ["Search", "CompleteRegistration", "AddToWishlist", "Lead"])
        self.assertEqual(pending[0][2], {"search_string": "mugs"})
        self.assertEqual(pending[1][2], {"registration_method": "google"})
        self.assertEqual(pending[3][2], {"currency": "USD", "value": 15})
