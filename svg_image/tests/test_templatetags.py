from __future__ import annotations

from types import SimpleNamespace
import uuid

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage, storages
from django.template import Context, Template
from django.test import SimpleTestCase, override_settings


@override_settings(SVG_IMAGE_METRICS_PATH=None)
class SvgImageTagTests(SimpleTestCase):
    def setUp(self):
        name = f"tag-tests/{uuid.uuid4().hex}.svg"
        self.name = default_storage.save(
            name,
            ContentFile(b'<svg xmlns="http://www.w3.org/2000/svg" onload="alert(1)"><circle r="4"/></svg>'),
        )
        self.field_file = SimpleNamespace(name=self.name)

    def tearDown(self):
        default_storage.delete(self.name)

    def _render(self, source: str, **context) -> str:
        return Template("{% load svg_image_tags %}" + source).render(Context(context))

    def test_inline_rendering_with_alt_title(self):
        html = self._render(
            "{% svg_image_field logo alt='Brand' render_as_image=False alt_as_title=True width=32 %}",
            logo=self.field_file,
        )
        self.assertIn("<title>Brand</title>", html)
        self.assertIn('width="32"', html)
        self.assertIn('<circle r="4"/>', html)
        self.assertNotIn("onload", html)

    def test_default_rendering_is_an_img_tag(self):
        html = self._render("{% svg_image_field logo alt='Brand' %}", logo=self.field_file)
        self.assertIn("<img", html)
        self.assertIn(f'src="/media/{self.name}"', html)

    def test_empty_field_renders_nothing(self):
        html = self._render("{% svg_image_field logo %}", logo=None)
        self.assertEqual(html, "")

    def test_sanitize_filter(self):
        html = self._render(
            "{{ raw|sanitize_svg }}",
            raw='<?xml version="1.0"?><svg><script>alert(1)</script><path d="M0 0"/></svg>',
        )
        self.assertEqual(html, '<svg><path d="M0 0"/></svg>')

    def test_sanitize_filter_drops_unsafe_input(self):
        self.assertEqual(self._render("{{ raw|sanitize_svg }}", raw="<svg><broken></svg>"), "")

    def test_field_file_in_non_default_storage(self):
        private = storages["private"]
        name = private.save(f"tag-tests/{uuid.uuid4().hex}.svg", ContentFile(b"<svg><path d='M0 0'/></svg>"))
        self.addCleanup(private.delete, name)
        self.assertFalse(default_storage.exists(name))
        field_file = SimpleNamespace(name=name, storage=private)

        inline = self._render("{% svg_image_field logo render_as_image=False %}", logo=field_file)
        self.assertEqual(inline, '<svg><path d="M0 0"/></svg>')

        image = self._render("{% svg_image_field logo %}", logo=field_file)
        self.assertIn(f'src="/system/files/{name}"', image)
