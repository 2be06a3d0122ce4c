"""Render elements produced per field item."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Union

from django.forms.utils import flatatt
from django.utils.html import format_html
from django.utils.safestring import SafeString, mark_safe

from .cache import CacheMetadata


@dataclass(slots=True)
class ImageElement:
    """Conventional ``<img>`` reference, optionally wrapped in a link."""

    delta: int
    src: str
    alt: str = ""
    attributes: dict[str, str] = field(default_factory=dict)
    image_style: str | None = None
    url: str | None = None
    cache: CacheMetadata = field(default_factory=CacheMetadata)

    def render(self) -> SafeString:
        attrs = {"src": self.src, "alt": self.alt}
        attrs.update({k: v for k, v in self.attributes.items() if v not in (None, "")})
        img = format_html("<img{}>", flatatt(attrs))
        if self.url:
            return format_html('<a href="{}">{}</a>', self.url, img)
        return img


@dataclass(slots=True)
class LinkElement:
    """Link whose content is sanitized inline SVG markup."""

    delta: int
    url: str
    markup: SafeString
    cache: CacheMetadata = field(default_factory=CacheMetadata)

    def render(self) -> SafeString:
        return format_html('<a href="{}">{}</a>', self.url, self.markup)


@dataclass(slots=True)
class MarkupElement:
    """Bare sanitized inline SVG markup."""

    delta: int
    markup: SafeString
    cache: CacheMetadata = field(default_factory=CacheMetadata)

    def render(self) -> SafeString:
        return format_html("{}", self.markup)


ViewElement = Union[ImageElement, LinkElement, MarkupElement]


def render_elements(elements: Iterable[ViewElement]) -> SafeString:
    return mark_safe("".join(element.render() for element in elements))


def collect_cache(elements: Iterable[ViewElement]) -> CacheMetadata:
    merged = CacheMetadata()
    for element in elements:
        merged = merged.merge(element.cache)
    return merged
