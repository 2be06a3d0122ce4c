"""
Formatter settings.

The host hands settings around as a loose mapping (``svg_render_as_image``,
``svg_attributes`` ...). ``RenderSettings`` turns that mapping into a typed,
immutable value once, so the render loop never has to probe keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import math
from typing import Any, Mapping

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured


class ImageLink(str, Enum):
    NONE = "none"
    CONTENT = "content"
    FILE = "file"


class ImageLoading(str, Enum):
    LAZY = "lazy"
    EAGER = "eager"


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off", ""}:
            return False
    if isinstance(value, (int, float)):
        return bool(value)
    return default


def _coerce_dimension(value: Any, name: str) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    if not text:
        return ""
    if text.lower().endswith("px"):
        text = text[:-2].strip()
    try:
        number = float(text)
    except ValueError:
        raise ValueError(f"svg_attributes.{name} must be a number, got {value!r}") from None
    if not math.isfinite(number):
        raise ValueError(f"svg_attributes.{name} must be a finite number, got {value!r}")
    if number < 0:
        raise ValueError(f"svg_attributes.{name} must not be negative, got {value!r}")
    if number.is_integer():
        return str(int(number))
    return text


def _coerce_choice(enum_cls: type[Enum], value: Any, default: Enum, name: str) -> Any:
    if value is None or value == "":
        return default
    raw = value.value if isinstance(value, Enum) else str(value).strip().lower()
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ValueError(f"{name} must be one of {allowed}, got {value!r}") from None


@dataclass(frozen=True, slots=True)
class SvgAttributes:
    width: str = ""
    height: str = ""

    def as_attributes(self) -> dict[str, str]:
        """Non-empty dimensions as an HTML attribute map."""
        attrs: dict[str, str] = {}
        if self.width:
            attrs["width"] = self.width
        if self.height:
            attrs["height"] = self.height
        return attrs


@dataclass(frozen=True, slots=True)
class RenderSettings:
    render_as_image: bool = True
    alt_as_title: bool = False
    svg_attributes: SvgAttributes = field(default_factory=SvgAttributes)
    image_style: str | None = None
    image_link: ImageLink = ImageLink.NONE
    image_loading: ImageLoading = ImageLoading.LAZY

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any] | None, *, base: "RenderSettings | None" = None) -> "RenderSettings":
        """
        Build settings from the host's key format.

        Keys missing from ``payload`` keep the value from ``base`` (or the
        defaults). Raises ``ValueError`` for dimensions or choices that can
        never render correctly.
        """
        base = base or cls()
        payload = payload or {}

        raw_attrs = payload.get("svg_attributes")
        if raw_attrs is None:
            svg_attributes = base.svg_attributes
        elif isinstance(raw_attrs, Mapping):
            svg_attributes = SvgAttributes(
                width=_coerce_dimension(raw_attrs.get("width", base.svg_attributes.width), "width"),
                height=_coerce_dimension(raw_attrs.get("height", base.svg_attributes.height), "height"),
            )
        else:
            raise ValueError("svg_attributes must be a mapping with width/height keys")

        style = payload.get("image_style", base.image_style)
        style = str(style).strip() if style else None

        return cls(
            render_as_image=_coerce_bool(payload.get("svg_render_as_image"), base.render_as_image),
            alt_as_title=_coerce_bool(payload.get("alt_as_title"), base.alt_as_title),
            svg_attributes=svg_attributes,
            image_style=style or None,
            image_link=_coerce_choice(ImageLink, payload.get("image_link"), base.image_link, "image_link"),
            image_loading=_coerce_choice(
                ImageLoading, payload.get("image_loading"), base.image_loading, "image_loading"
            ),
        )

    def to_mapping(self) -> dict[str, Any]:
        return {
            "svg_render_as_image": self.render_as_image,
            "alt_as_title": self.alt_as_title,
            "svg_attributes": {
                "width": self.svg_attributes.width,
                "height": self.svg_attributes.height,
            },
            "image_style": self.image_style or "",
            "image_link": self.image_link.value,
            "image_loading": self.image_loading.value,
        }

    @property
    def renders_inline(self) -> bool:
        return not self.render_as_image

    def summary(self) -> list[str]:
        lines: list[str] = []
        if self.image_style:
            lines.append(f"Image style: {self.image_style}")
        else:
            lines.append("Original image")
        if self.image_link is ImageLink.CONTENT:
            lines.append("Linked to content")
        elif self.image_link is ImageLink.FILE:
            lines.append("Linked to file")
        lines.append(f"Image loading: {self.image_loading.value}")
        if self.render_as_image:
            lines.append("SVG images rendered as <img>")
        else:
            lines.append("SVG images rendered inline as <svg>")
            if self.alt_as_title:
                lines.append("Alt text used as SVG title")
        dims = self.svg_attributes
        if dims.width or dims.height:
            lines.append(f"SVG dimensions: {dims.width or 'auto'} x {dims.height or 'auto'}")
        return lines


def default_render_settings() -> RenderSettings:
    """Defaults overlaid with the project's ``SVG_IMAGE_FORMATTER`` mapping."""
    configured = getattr(settings, "SVG_IMAGE_FORMATTER", None) or {}
    if not isinstance(configured, Mapping):
        raise ImproperlyConfigured("SVG_IMAGE_FORMATTER must be a mapping")
    try:
        return RenderSettings.from_mapping(configured)
    except ValueError as exc:
        raise ImproperlyConfigured(f"Invalid SVG_IMAGE_FORMATTER: {exc}") from exc
