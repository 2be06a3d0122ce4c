"""
Image style lookup.

Raster derivatives are produced elsewhere; this module only knows what a
style is called, which cache tags invalidate it and where its derivative of
a given file lives.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Mapping

from django.conf import settings

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ImageStyle:
    style_id: str
    width: int | None = None
    height: int | None = None

    @property
    def cache_tags(self) -> list[str]:
        return [f"config:image.style.{self.style_id}"]

    def derivative_url(self, file_url: str) -> str:
        """``/media/logos/a.png`` -> ``/media/styles/<id>/logos/a.png``."""
        media = (getattr(settings, "MEDIA_URL", "") or "/").rstrip("/") + "/"
        if media != "/" and file_url.startswith(media):
            return f"{media}styles/{self.style_id}/{file_url[len(media):]}"
        return f"{media}styles/{self.style_id}/{file_url.lstrip('/')}"

    def transform_dimensions(self, width: int | None, height: int | None) -> tuple[int | None, int | None]:
        """Scale (width, height) into the style box, keeping the aspect ratio."""
        if not width or not height:
            return self.width or width, self.height or height
        if not self.width and not self.height:
            return width, height
        ratios = []
        if self.width:
            ratios.append(self.width / width)
        if self.height:
            ratios.append(self.height / height)
        ratio = min(ratios)
        return max(1, round(width * ratio)), max(1, round(height * ratio))


class BaseImageStyleStorage:
    def load(self, style_id: str | None) -> ImageStyle | None:
        raise NotImplementedError


def _coerce_dimension(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class SettingsImageStyleStorage(BaseImageStyleStorage):
    """Styles declared in ``settings.SVG_IMAGE_STYLES``."""

    def __init__(self, styles: Mapping[str, Mapping[str, Any]] | None = None):
        self._styles = styles

    def _definitions(self) -> Mapping[str, Mapping[str, Any]]:
        if self._styles is not None:
            return self._styles
        return getattr(settings, "SVG_IMAGE_STYLES", None) or {}

    def load(self, style_id: str | None) -> ImageStyle | None:
        if not style_id:
            return None
        definition = self._definitions().get(style_id)
        if definition is None:
            LOGGER.warning("Image style %s is not defined.", style_id)
            return None
        return ImageStyle(
            style_id=style_id,
            width=_coerce_dimension(definition.get("width")),
            height=_coerce_dimension(definition.get("height")),
        )
