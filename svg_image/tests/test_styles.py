from __future__ import annotations

from django.test import SimpleTestCase, override_settings

from svg_image.cache import CacheMetadata, merge_cache_tags
from svg_image.styles import ImageStyle, SettingsImageStyleStorage


def test_style_cache_tags_and_derivative_url():
    style = ImageStyle("medium", 220, 220)
    assert style.cache_tags == ["config:image.style.medium"]
    assert style.derivative_url("/media/a/b.png") == "/media/styles/medium/a/b.png"
    assert style.derivative_url("https://cdn.example/a.png").endswith("styles/medium/https://cdn.example/a.png")


def test_transform_dimensions_keeps_aspect_ratio():
    assert ImageStyle("s", 100, 100).transform_dimensions(400, 200) == (100, 50)
    assert ImageStyle("s", 100, None).transform_dimensions(50, 20) == (100, 40)
    assert ImageStyle("s", None, None).transform_dimensions(10, 20) == (10, 20)
    assert ImageStyle("s", 80, 60).transform_dimensions(None, None) == (80, 60)


def test_merge_cache_tags_is_a_sorted_union():
    assert merge_cache_tags(["file:2", "file:1"], None, ["file:1", ""]) == ["file:1", "file:2"]
    merged = CacheMetadata(["a"], ["url.site"]).merge(CacheMetadata(["b", "a"], []))
    assert merged.as_dict() == {"tags": ["a", "b"], "contexts": ["url.site"]}


class SettingsImageStyleStorageTests(SimpleTestCase):
    @override_settings(SVG_IMAGE_STYLES={"wide": {"width": "640", "height": 0}})
    def test_loads_styles_from_settings(self):
        style = SettingsImageStyleStorage().load("wide")
        self.assertEqual(style, ImageStyle("wide", 640, None))

    def test_unknown_style_logs_and_returns_none(self):
        with self.assertLogs("svg_image.styles", level="WARNING"):
            self.assertIsNone(SettingsImageStyleStorage({}).load("missing"))

    def test_empty_style_id_is_no_style(self):
        self.assertIsNone(SettingsImageStyleStorage({}).load(None))
