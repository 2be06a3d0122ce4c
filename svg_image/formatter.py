"""
Image field formatter with inline SVG support.

For every item of an image field the formatter decides between a regular
``<img>`` reference and the SVG document itself, sanitized and inlined:

* not an SVG, or ``render_as_image`` set -> ``ImageElement``
* inline SVG that cannot be read or sanitized -> nothing for that item
* inline SVG with a resolved link -> ``LinkElement``
* inline SVG otherwise -> ``MarkupElement``

Items are independent. A broken file only removes its own element and the
rest of the field still renders.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Any, Sequence

from django.utils.safestring import SafeString

from .cache import CacheMetadata, merge_cache_tags
from .conf import ImageLink, RenderSettings, default_render_settings
from .detection import declares_svg, is_svg, probe_raster_size
from .elements import ImageElement, LinkElement, MarkupElement, ViewElement
from .files import FileItem, FileUnavailable, StorageFileGateway
from .markup import post_process
from .observability import record_metric
from .sanitizer import SanitizationFailure, SvgSanitizer
from .styles import BaseImageStyleStorage, ImageStyle, SettingsImageStyleStorage

LOGGER = logging.getLogger(__name__)

URL_SITE_CONTEXT = "url.site"


@dataclass(slots=True)
class FieldItem:
    file: FileItem
    alt: str = ""
    title: str = ""
    width: int | None = None
    height: int | None = None
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class FieldItemView:
    """Per-delta values computed while rendering one item."""

    delta: int
    alt: str
    url: str | None
    attributes: dict[str, str]
    cache: CacheMetadata


class UrlResolver:
    def __init__(self, gateway: StorageFileGateway):
        self.gateway = gateway

    def content_url(self, entity: Any) -> str | None:
        if entity is None or getattr(entity, "pk", None) is None:
            return None
        get_url = getattr(entity, "get_absolute_url", None)
        if not callable(get_url):
            return None
        return get_url()

    def file_url(self, file: FileItem) -> str:
        return self.gateway.url(file)


class FieldRenderer:
    def render(
        self,
        items: Sequence[FieldItem],
        settings: RenderSettings | None = None,
        entity: Any = None,
    ) -> list[ViewElement]:
        raise NotImplementedError


class SvgImageFormatter(FieldRenderer):
    def __init__(
        self,
        gateway: StorageFileGateway | None = None,
        sanitizer: SvgSanitizer | None = None,
        image_styles: BaseImageStyleStorage | None = None,
        urls: UrlResolver | None = None,
        logger: logging.Logger | None = None,
    ):
        self.logger = logger or LOGGER
        self.gateway = gateway or StorageFileGateway(logger=self.logger)
        self.sanitizer = sanitizer or SvgSanitizer(logger=self.logger)
        self.image_styles = image_styles or SettingsImageStyleStorage()
        self.urls = urls or UrlResolver(self.gateway)

    def render(
        self,
        items: Sequence[FieldItem],
        settings: RenderSettings | None = None,
        entity: Any = None,
    ) -> list[ViewElement]:
        settings = settings or default_render_settings()
        elements: list[ViewElement] = []
        if not items:
            return elements

        style = self.image_styles.load(settings.image_style)
        style_tags = style.cache_tags if style else []
        content_url = None
        if settings.image_link is ImageLink.CONTENT:
            content_url = self.urls.content_url(entity)

        for delta, item in enumerate(items):
            element = self._render_item(delta, item, settings, style, style_tags, content_url)
            if element is not None:
                elements.append(element)
        return elements

    def _render_item(
        self,
        delta: int,
        item: FieldItem,
        settings: RenderSettings,
        style: ImageStyle | None,
        style_tags: list[str],
        content_url: str | None,
    ) -> ViewElement | None:
        loaded = self.gateway.load(item.file)
        if isinstance(loaded, FileUnavailable):
            if settings.renders_inline and declares_svg(item.file):
                return None
            file = item.file
            svg = False
        else:
            file = loaded
            svg = is_svg(file)

        view = self._build_view(delta, item, file, settings, svg, style_tags, content_url)

        if not svg or settings.render_as_image:
            return self._image_element(view, item, file, settings, style if not svg else None)

        markup = self._inline_markup(file, item, settings)
        if markup is None:
            return None
        if view.url:
            return LinkElement(delta=delta, url=view.url, markup=markup, cache=view.cache)
        return MarkupElement(delta=delta, markup=markup, cache=view.cache)

    def _build_view(
        self,
        delta: int,
        item: FieldItem,
        file: FileItem,
        settings: RenderSettings,
        svg: bool,
        style_tags: list[str],
        content_url: str | None,
    ) -> FieldItemView:
        attributes = dict(settings.svg_attributes.as_attributes()) if svg else {}
        for key, value in item.attributes.items():
            attributes.setdefault(key, value)

        contexts: list[str] = []
        url = content_url
        if settings.image_link is ImageLink.FILE:
            url = self.urls.file_url(file)
            contexts.append(URL_SITE_CONTEXT)

        return FieldItemView(
            delta=delta,
            alt=item.alt,
            url=url,
            attributes=attributes,
            cache=CacheMetadata(tags=merge_cache_tags(style_tags, file.cache_tags), contexts=contexts),
        )

    def _image_element(
        self,
        view: FieldItemView,
        item: FieldItem,
        file: FileItem,
        settings: RenderSettings,
        style: ImageStyle | None,
    ) -> ImageElement:
        src = self.urls.file_url(file)
        width, height = item.width, item.height
        if (not width or not height) and file.content is not None:
            probed = probe_raster_size(file.content)
            if probed:
                width, height = probed
        if style is not None:
            src = style.derivative_url(src)
            width, height = style.transform_dimensions(width, height)

        attributes = dict(view.attributes)
        if width and "width" not in attributes:
            attributes["width"] = str(width)
        if height and "height" not in attributes:
            attributes["height"] = str(height)
        if item.title:
            attributes.setdefault("title", item.title)
        attributes.setdefault("loading", settings.image_loading.value)
        return ImageElement(
            delta=view.delta,
            src=src,
            alt=view.alt,
            attributes=attributes,
            image_style=style.style_id if style else None,
            url=view.url,
            cache=view.cache,
        )

    def _inline_markup(self, file: FileItem, item: FieldItem, settings: RenderSettings) -> SafeString | None:
        sanitized = self.sanitizer.sanitize(
            file.content or b"",
            root_attributes=settings.svg_attributes.as_attributes(),
        )
        if isinstance(sanitized, SanitizationFailure):
            self.logger.warning(
                "SVG file %s (ID: %s) could not be sanitized: %s",
                file.uri,
                file.file_id,
                sanitized.reason,
                extra={"file_uri": file.uri, "file_id": file.file_id},
            )
            record_metric(
                "svg_image.sanitization_failed",
                file_id=file.file_id,
                file_uri=file.uri,
                reason=sanitized.reason,
            )
            return None
        title = item.alt if settings.alt_as_title else None
        return post_process(sanitized, strip=True, title_override=title)
