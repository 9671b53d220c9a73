from django.template import Context, Template
from django.test import RequestFactory, SimpleTestCase, override_settings, tag

from meta_tracking.pixel import PixelTracker

PIXEL_ID = "123456789012345"


def render(source, **context):
    return Template("{% load tracking_tags %}" + source).render(Context(context))


@tag("batch_meta_tracking")
class MetaPixelTagTests(SimpleTestCase):
    def setUp(self):
        self.request = RequestFactory().get("/landing")

    @override_settings(META_PIXEL_ID="")
    def test_renders_nothing_without_pixel(self):
        self.assertEqual(render("{% meta_pixel %}", request=self.request), "")

    @override_settings(META_PIXEL_ID=PIXEL_ID)
    def test_renders_base_code_and_page_view(self):
        html = render("{% meta_pixel %}", request=self.request)

        self.assertIn('<script id="meta-pixel-script">', html)
        self.assertIn('fbq("track","PageView"', html)

    @override_settings(META_PIXEL_ID=PIXEL_ID)
    def test_base_code_is_rendered_once_per_request(self):
        render("{% meta_pixel %}", request=self.request)

        html = render("{% meta_pixel page_view=False %}", request=self.request)

        self.assertEqual(html, "")

    @override_settings(META_PIXEL_ID="12345")
    def test_invalid_pixel_leaves_a_comment(self):
        html = render("{% meta_pixel %}", request=self.request)

        self.assertTrue(html.startswith("<!-- Meta pixel disabled:"))

    @override_settings(META_PIXEL_ID=PIXEL_ID, FACEBOOK_CAPI_TEST_MODE=False, FACEBOOK_TEST_EVENT_CODE="TEST77")
    def test_test_event_code_needs_test_mode(self):
        render("{% meta_pixel %}", request=self.request)

        self.assertIsNone(self.request.meta_pixel.test_event_code)

    @override_settings(META_PIXEL_ID=PIXEL_ID, FACEBOOK_CAPI_TEST_MODE=True, FACEBOOK_TEST_EVENT_CODE="TEST77")
    def test_test_event_code_in_test_mode(self):
        html = render("{% meta_pixel %}", request=self.request)

        self.assertEqual(self.request.meta_pixel.test_event_code, "TEST77")
        self.assertIn("TEST77", html)

    def test_uses_tracker_from_context(self):
        pixel = PixelTracker(PIXEL_ID)
        pixel.track_event("Purchase", {"value": 5}, "purchase-1")

        html = render("{% meta_pixel_events %}", request=self.request, meta_pixel=pixel)

        self.assertIn('fbq("track","Purchase",{"value":5},{"eventID":"purchase-1"});', html)
        self.assertEqual(pixel.pending, [])


@tag("batch_meta_tracking")
class GTMTagTests(SimpleTestCase):
    def setUp(self):
        self.request = RequestFactory().get("/landing")

    @override_settings(GTM_CONTAINER_ID="")
    def test_renders_nothing_without_container(self):
        self.assertEqual(render("{% gtm_head %}{% gtm_body %}", request=self.request), "")

    @override_settings(GTM_CONTAINER_ID="GTM-ABC123")
    def test_head_and_body(self):
        html = render("{% gtm_head %}{% gtm_body %}", request=self.request)

        self.assertIn('"event":"page_view"', html)
        self.assertIn('"page_path":"/landing"', html)
        self.assertIn('<script id="gtm-script">', html)
        self.assertIn('<noscript id="gtm-noscript">', html)
        self.assertEqual(html.count("page_view"), 1)

    @override_settings(GTM_CONTAINER_ID="GTM-ABC123")
    def test_data_layer_tag_flushes_later_pushes(self):
        render("{% gtm_head %}", request=self.request)
        self.request.gtm_tracker.track_search("mugs")

        html = render("{% gtm_data_layer %}", request=self.request)

        self.assertIn('"event":"search"', html)
        self.assertNotIn("page_view", html)
