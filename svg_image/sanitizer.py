"""
SVG sanitization.

Uploaded SVG is XML that browsers execute: ``<script>``, ``on*`` handlers,
``javascript:`` links and external references all run or leak when the
markup is inlined into a page. The sanitizer rebuilds the document from a
whitelist of SVG elements and attributes and drops everything else.

Failures (malformed XML, entity declarations, a root that is not ``<svg>``)
come back as ``SanitizationFailure`` values rather than exceptions so a bad
upload only costs its own field item.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Mapping

from bleach.css_sanitizer import ALLOWED_CSS_PROPERTIES, ALLOWED_SVG_PROPERTIES, CSSSanitizer
from defusedxml import DefusedXmlException
from defusedxml import ElementTree as DefusedET
from django.utils.safestring import SafeString, mark_safe
from lxml import etree
import tinycss2

LOGGER = logging.getLogger(__name__)

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"
XML_NS = "http://www.w3.org/XML/1998/namespace"

ALLOWED_ELEMENTS = frozenset(
    [
        # Structure
        "svg", "g", "defs", "symbol", "use", "title", "desc", "metadata", "switch", "view",
        # Shapes
        "circle", "ellipse", "line", "path", "polygon", "polyline", "rect",
        # Text
        "text", "tspan", "textPath",
        # Paint servers and containers
        "image", "clipPath", "mask", "pattern", "marker",
        "linearGradient", "radialGradient", "stop", "style",
        # Filters
        "filter", "feBlend", "feColorMatrix", "feComponentTransfer",
        "feComposite", "feConvolveMatrix", "feDiffuseLighting",
        "feDisplacementMap", "feDistantLight", "feDropShadow", "feFlood",
        "feFuncA", "feFuncB", "feFuncG", "feFuncR", "feGaussianBlur",
        "feImage", "feMerge", "feMergeNode", "feMorphology", "feOffset",
        "fePointLight", "feSpecularLighting", "feSpotLight", "feTile",
        "feTurbulence",
        # Declarative animation
        "animate", "animateMotion", "animateTransform", "set", "mpath",
    ]
)

ALLOWED_ATTRIBUTES = frozenset(
    [
        # Core
        "id", "class", "style", "lang", "tabindex", "role", "focusable",
        "aria-label", "aria-labelledby", "aria-describedby", "aria-hidden",
        # Presentation
        "fill", "stroke", "stroke-width", "stroke-linecap", "stroke-linejoin",
        "stroke-dasharray", "stroke-dashoffset", "stroke-miterlimit",
        "stroke-opacity", "fill-opacity", "fill-rule", "opacity",
        "color", "display", "visibility", "overflow", "clip", "clip-path",
        "clip-rule", "mask", "filter", "flood-color", "flood-opacity",
        "lighting-color", "stop-color", "stop-opacity", "color-interpolation",
        "color-interpolation-filters", "shape-rendering", "text-rendering",
        "image-rendering", "vector-effect", "paint-order", "mix-blend-mode",
        "marker-start", "marker-mid", "marker-end",
        "font-family", "font-size", "font-style", "font-weight", "font-variant",
        "font-stretch", "text-anchor", "text-decoration", "dominant-baseline",
        "alignment-baseline", "baseline-shift", "letter-spacing",
        "word-spacing", "writing-mode", "direction", "unicode-bidi",
        # Geometry
        "x", "y", "x1", "y1", "x2", "y2", "cx", "cy", "r", "rx", "ry", "fx", "fy", "fr",
        "width", "height", "d", "points", "pathLength", "rotate", "textLength",
        "lengthAdjust", "startOffset", "method", "spacing",
        "viewBox", "preserveAspectRatio", "transform", "transform-origin",
        # References
        "href", "gradientUnits", "gradientTransform",
        "spreadMethod", "patternUnits", "patternContentUnits", "patternTransform",
        "markerUnits", "markerWidth", "markerHeight", "refX", "refY",
        "orient", "maskUnits", "maskContentUnits",
        "clipPathUnits", "filterUnits", "primitiveUnits",
        # Filters
        "in", "in2", "result", "mode", "operator", "k1", "k2", "k3", "k4",
        "stdDeviation", "dx", "dy", "specularExponent", "specularConstant",
        "surfaceScale", "diffuseConstant", "azimuth", "elevation",
        "pointsAtX", "pointsAtY", "pointsAtZ", "limitingConeAngle", "z",
        "type", "values", "tableValues", "slope", "intercept",
        "amplitude", "exponent", "offset", "order", "kernelMatrix",
        "divisor", "bias", "targetX", "targetY", "edgeMode",
        "kernelUnitLength", "preserveAlpha", "radius", "scale",
        "xChannelSelector", "yChannelSelector", "baseFrequency",
        "numOctaves", "seed", "stitchTiles",
        # Animation
        "attributeName", "attributeType", "begin", "dur", "end", "min", "max",
        "restart", "repeatCount", "repeatDur", "calcMode",
        "keyTimes", "keySplines", "keyPoints", "path", "from", "to", "by",
        "additive", "accumulate",
        # Document
        "version", "baseProfile", "media", "requiredFeatures",
        "requiredExtensions", "systemLanguage",
    ]
)

_ALLOWED_ELEMENTS_LOWER = frozenset(e.lower() for e in ALLOWED_ELEMENTS)
_ALLOWED_ATTRIBUTES_LOWER = frozenset(a.lower() for a in ALLOWED_ATTRIBUTES)
_ANIMATION_ELEMENTS = frozenset(["animate", "animatemotion", "animatetransform", "set"])
_REFERENCE_ATTRIBUTES = frozenset(["href"])
_NAMESPACED_ATTRIBUTES = {
    (XLINK_NS, "href"): "href",
    (XML_NS, "space"): "xml:space",
    (XML_NS, "lang"): "xml:lang",
}

DANGEROUS_PATTERNS = [
    re.compile(r"javascript\s*:", re.IGNORECASE),
    re.compile(r"vbscript\s*:", re.IGNORECASE),
    re.compile(r"data\s*:\s*text/html", re.IGNORECASE),
    re.compile(r"data\s*:\s*application", re.IGNORECASE),
    re.compile(r"expression\s*\(", re.IGNORECASE),
]
_SAFE_DATA_IMAGE = re.compile(r"^data:image/(?:png|jpe?g|gif|webp);base64,[a-z0-9+/=\s]*$", re.IGNORECASE)

SVG_CSS_PROPERTIES = frozenset(ALLOWED_SVG_PROPERTIES) | frozenset(
    [
        "clip-path", "clip-rule", "color-interpolation-filters", "dominant-baseline",
        "filter", "flood-color", "flood-opacity", "font-size", "letter-spacing",
        "lighting-color", "marker-end", "marker-mid", "marker-start", "mask",
        "opacity", "paint-order", "stop-color", "stop-opacity", "stroke-dasharray",
        "stroke-dashoffset", "stroke-miterlimit", "text-anchor", "transform",
        "transform-origin", "visibility",
    ]
)
# CSS functions that fetch a resource from their arguments.
_FETCHING_FUNCTIONS = frozenset(
    ["expression", "image", "image-set", "-webkit-image-set", "cross-fade", "element", "src", "paint"]
)
_CSS_SANITIZER = CSSSanitizer(
    allowed_css_properties=ALLOWED_CSS_PROPERTIES,
    allowed_svg_properties=SVG_CSS_PROPERTIES,
)


@dataclass(frozen=True, slots=True)
class SanitizationFailure:
    reason: str

    def __bool__(self) -> bool:
        return False


def _is_fragment_reference(value: str) -> bool:
    return value.strip().startswith("#")


def _references_remote(tokens) -> bool:
    """True when parsed CSS tokens load anything but a same-document fragment."""
    for token in tokens or ():
        if token.type == "url":
            if not _is_fragment_reference(token.value):
                return True
        elif token.type == "function":
            if token.lower_name == "url":
                arguments = [arg for arg in token.arguments if arg.type not in ("whitespace", "comment")]
                if len(arguments) != 1 or arguments[0].type != "string":
                    return True
                if not _is_fragment_reference(arguments[0].value):
                    return True
            elif token.lower_name in _FETCHING_FUNCTIONS or _references_remote(token.arguments):
                return True
        elif token.type in ("() block", "[] block", "{} block"):
            if _references_remote(token.content):
                return True
    return False


def _sanitize_declarations(css: str) -> str:
    kept = []
    whitelisted = _CSS_SANITIZER.sanitize_css(css)
    for node in tinycss2.parse_blocks_contents(whitelisted, skip_comments=True, skip_whitespace=True):
        if node.type != "declaration" or _references_remote(node.value):
            continue
        value = tinycss2.serialize(node.value).strip()
        if not value or _has_dangerous_value(value):
            continue
        kept.append(f"{node.lower_name}: {value}{' !important' if node.important else ''}")
    return "; ".join(kept).replace("<", "")


def _sanitize_stylesheet(css: str) -> str:
    """Keep plain style rules; at-rules (``@import``, ``@font-face``...) are dropped."""
    rules = []
    for node in tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True):
        if node.type != "qualified-rule" or _references_remote(node.prelude):
            continue
        selector = tinycss2.serialize(node.prelude).strip()
        declarations = _sanitize_declarations(tinycss2.serialize(node.content))
        if selector and declarations:
            rules.append(f"{selector} {{ {declarations} }}")
    return "\n".join(rules).replace("<", "")


def _has_dangerous_value(value: str) -> bool:
    return any(pattern.search(value) for pattern in DANGEROUS_PATTERNS)


def _has_external_url(value: str) -> bool:
    # Presentation attributes are parsed as CSS, escapes included.
    return _references_remote(tinycss2.parse_component_value_list(value, skip_comments=True))


def _local_name(tag: str) -> tuple[str | None, str]:
    qname = etree.QName(tag)
    return qname.namespace, qname.localname


def _drop(element: etree._Element) -> None:
    """Remove ``element`` but keep the text that followed it."""
    parent = element.getparent()
    if parent is None:
        return
    tail = element.tail
    if tail:
        previous = element.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail
    parent.remove(element)


class SvgSanitizer:
    """
    Whitelist SVG sanitizer.

    ``remove_remote_references`` (the default) limits ``href`` to
    same-document fragments and inline raster data URIs; turning it off
    also keeps ``http(s)`` references for trusted sources.
    """

    def __init__(self, *, remove_remote_references: bool = True, logger: logging.Logger | None = None):
        self.remove_remote_references = remove_remote_references
        self.logger = logger or LOGGER

    def sanitize(
        self,
        raw: bytes | str,
        *,
        root_attributes: Mapping[str, str] | None = None,
    ) -> SafeString | SanitizationFailure:
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        if not raw or not raw.strip():
            return SanitizationFailure("empty document")

        try:
            DefusedET.fromstring(raw)
        except DefusedXmlException as exc:
            return SanitizationFailure(f"forbidden XML construct: {exc}")
        except (DefusedET.ParseError, ValueError) as exc:
            return SanitizationFailure(f"malformed XML: {exc}")

        parser = etree.XMLParser(
            remove_comments=True,
            remove_pis=True,
            strip_cdata=True,
            resolve_entities=False,
            no_network=True,
            load_dtd=False,
            huge_tree=False,
        )
        try:
            root = etree.fromstring(raw, parser)
        except (etree.XMLSyntaxError, ValueError) as exc:
            return SanitizationFailure(f"malformed XML: {exc}")

        namespace, local = _local_name(root.tag)
        if local != "svg" or namespace not in (None, SVG_NS):
            return SanitizationFailure(f"root element is <{local}>, not <svg>")

        self._sanitize_element(root)
        for name, value in (root_attributes or {}).items():
            if value:
                root.set(name, str(value))
        etree.cleanup_namespaces(root)
        markup = etree.tostring(root, encoding="unicode")
        return mark_safe(markup)

    def _sanitize_element(self, element: etree._Element) -> None:
        self._sanitize_attributes(element)
        _, local = _local_name(element.tag)
        if local.lower() == "style" and element.text:
            element.text = _sanitize_stylesheet(element.text)

        for child in list(element):
            if not self._keep_element(child):
                _drop(child)
                continue
            self._sanitize_element(child)

    def _keep_element(self, element: etree._Element) -> bool:
        # Entities and other non-element nodes carry a non-string tag.
        if not isinstance(element.tag, str):
            return False
        namespace, local = _local_name(element.tag)
        if namespace not in (None, SVG_NS):
            return False
        lowered = local.lower()
        if lowered not in _ALLOWED_ELEMENTS_LOWER:
            return False
        if lowered in _ANIMATION_ELEMENTS:
            target = (element.get("attributeName") or "").strip().lower()
            if target.split(":")[-1] == "href" or target.startswith("on"):
                return False
        return True

    def _sanitize_attributes(self, element: etree._Element) -> None:
        for attr_name, attr_value in list(element.attrib.items()):
            if not self._keep_attribute(attr_name, attr_value):
                del element.attrib[attr_name]
        if "style" in element.attrib:
            cleaned = _sanitize_declarations(element.attrib["style"])
            if cleaned:
                element.attrib["style"] = cleaned
            else:
                del element.attrib["style"]

    def _keep_attribute(self, attr_name: str, attr_value: str) -> bool:
        namespace, local = _local_name(attr_name)
        if namespace is not None:
            canonical = _NAMESPACED_ATTRIBUTES.get((namespace, local))
            if canonical is None:
                return False
            if canonical.startswith("xml:"):
                return True
            local = canonical
        lowered = local.lower()
        if lowered.startswith("on"):
            return False
        if lowered not in _ALLOWED_ATTRIBUTES_LOWER:
            return False
        if _has_dangerous_value(attr_value):
            return False
        if lowered in _REFERENCE_ATTRIBUTES:
            return self._reference_allowed(attr_value)
        if lowered != "style" and _has_external_url(attr_value):
            return False
        return True

    def _reference_allowed(self, value: str) -> bool:
        text = value.strip()
        if _is_fragment_reference(text):
            return True
        if _SAFE_DATA_IMAGE.match(text):
            return True
        if not self.remove_remote_references:
            return text.lower().startswith(("https://", "http://"))
        return False


_DEFAULT_SANITIZER = SvgSanitizer()


def sanitize_svg(raw: bytes | str, **kwargs) -> SafeString | SanitizationFailure:
    return _DEFAULT_SANITIZER.sanitize(raw, **kwargs)
