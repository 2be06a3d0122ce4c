from __future__ import annotations

from django.test import SimpleTestCase
from django.utils.safestring import SafeData, mark_safe

from svg_image.markup import override_title, post_process, strip_prolog


class StripPrologTests(SimpleTestCase):
    def test_removes_declaration_and_doctype_anywhere(self):
        markup = (
            '<?xml version="1.0" encoding="utf-8"?>\n'
            '<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN"\n  "http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">\n'
            "<svg><rect/></svg>\n<?XML version='1.0'?>"
        )
        result = post_process(markup)
        self.assertEqual(result, "<svg><rect/></svg>")

    def test_doctype_with_internal_subset_is_removed(self):
        markup = '<!doctype svg [ <!ATTLIST svg x CDATA "1"> ]><svg/>'
        self.assertEqual(strip_prolog(markup), "<svg/>")

    def test_stripping_is_idempotent(self):
        for markup in (
            '  <?xml version="1.0"?><!DOCTYPE svg><svg width="1"><title>t</title></svg>  ',
            "<<?xml?>?xml?><svg/>",
            "<!DOC<!DOCTYPE a>TYPE b><svg/>",
        ):
            with self.subTest(markup=markup):
                once = post_process(markup)
                self.assertEqual(post_process(once), once)
        self.assertEqual(post_process("<<?xml?>?xml?><svg/>"), "<svg/>")

    def test_strip_can_be_disabled(self):
        markup = '<?xml version="1.0"?><svg/>'
        self.assertEqual(post_process(markup, strip=False), markup)


class TitleOverrideTests(SimpleTestCase):
    def test_existing_title_is_replaced(self):
        result = override_title('<svg width="10"><title>Old</title></svg>', "New")
        self.assertEqual(result.count("<title>New</title>"), 1)
        self.assertNotIn("Old", result)

    def test_only_first_title_is_replaced(self):
        result = override_title("<svg><title>A</title><g><title>B</title></g></svg>", "New")
        self.assertEqual(result, "<svg><title>New</title><g><title>B</title></g></svg>")

    def test_self_closing_title_is_filled_without_touching_later_markup(self):
        result = override_title("<svg><title/><rect/><g><title>B</title></g></svg>", "New")
        self.assertEqual(result, "<svg><title>New</title><rect/><g><title>B</title></g></svg>")

    def test_self_closing_title_with_attributes_keeps_them(self):
        result = override_title('<svg><title id="a/b" /><rect/></svg>', "New")
        self.assertEqual(result, '<svg><title id="a/b">New</title><rect/></svg>')

    def test_multiline_title_is_replaced_entirely(self):
        result = override_title('<svg><title id="t">line one\nline two</title></svg>', "New")
        self.assertEqual(result, '<svg><title id="t">New</title></svg>')

    def test_title_inserted_after_opening_tag(self):
        result = override_title('<svg width="10" height="5"></svg>', "Cap")
        self.assertEqual(result, '<svg width="10" height="5"><title>Cap</title></svg>')

    def test_opening_tag_with_quoted_gt_is_kept_verbatim(self):
        result = override_title('<svg data-x="a>b" width="3"><rect/></svg>', "Cap")
        self.assertEqual(result, '<svg data-x="a>b" width="3"><title>Cap</title><rect/></svg>')

    def test_self_closing_svg_is_expanded(self):
        self.assertEqual(override_title('<svg width="1"/>', "Cap"), '<svg width="1"><title>Cap</title></svg>')

    def test_no_svg_tag_is_a_no_op(self):
        markup = "<div><p>not an svg</p></div>"
        self.assertEqual(override_title(markup, "Cap"), markup)

    def test_title_text_is_escaped(self):
        result = override_title("<svg></svg>", '<script>alert("x")</script> & co')
        self.assertNotIn("<script>", result)
        self.assertIn("<title>&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt; &amp; co</title>", result)

    def test_trust_is_preserved(self):
        result = post_process(mark_safe('<?xml version="1.0"?><svg></svg>'), title_override="Cap")
        self.assertIsInstance(result, SafeData)
        self.assertEqual(result, "<svg><title>Cap</title></svg>")

    def test_plain_strings_stay_plain(self):
        result = post_process("<svg></svg>", title_override="Cap")
        self.assertNotIsInstance(result, SafeData)
