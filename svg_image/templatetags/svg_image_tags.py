from __future__ import annotations

from django import template
from django.utils.safestring import SafeString, mark_safe

from ..conf import RenderSettings, default_render_settings
from ..elements import render_elements
from ..files import FileItem
from ..formatter import FieldItem, SvgImageFormatter
from ..markup import post_process
from ..sanitizer import SanitizationFailure, sanitize_svg

register = template.Library()

_TAG_SETTING_KEYS = {
    "render_as_image": "svg_render_as_image",
    "alt_as_title": "alt_as_title",
    "image_style": "image_style",
    "image_link": "image_link",
    "image_loading": "image_loading",
}


@register.simple_tag
def svg_image_field(field_file, alt: str = "", title: str = "", **options) -> SafeString:
    """
    Render one image field value.

        {% svg_image_field page.logo alt=page.logo_alt render_as_image=False %}

    Keyword arguments override the project defaults; ``width``/``height``
    set the SVG dimensions.
    """
    if not field_file:
        return mark_safe("")
    overrides: dict = {}
    for key, setting_key in _TAG_SETTING_KEYS.items():
        if key in options:
            overrides[setting_key] = options[key]
    if "width" in options or "height" in options:
        overrides["svg_attributes"] = {
            "width": options.get("width", ""),
            "height": options.get("height", ""),
        }
    settings = RenderSettings.from_mapping(overrides, base=default_render_settings())
    item = FieldItem(file=FileItem.from_field_file(field_file), alt=alt or "", title=title or "")
    entity = options.get("entity") or getattr(field_file, "instance", None)
    elements = SvgImageFormatter().render([item], settings, entity=entity)
    return render_elements(elements)


@register.filter(name="sanitize_svg")
def sanitize_svg_filter(value) -> str:
    """Sanitize raw SVG text for inline use; empty string when it cannot be made safe."""
    if not value:
        return ""
    cleaned = sanitize_svg(value if isinstance(value, (bytes, str)) else str(value))
    if isinstance(cleaned, SanitizationFailure):
        return ""
    return post_process(cleaned)
