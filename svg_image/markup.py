"""
Post-processing of sanitized SVG markup before it is inlined into HTML.

Only two things happen here: the XML prolog/DOCTYPE is stripped (both are
invalid inside an HTML document) and the ``<title>`` is optionally replaced
with the field's alt text. The alt text is escaped, never parsed, so trust
carried by a ``SafeString`` input survives into the output.
"""

from __future__ import annotations

import logging
import re

from django.utils.html import escape
from django.utils.safestring import SafeData, mark_safe

LOGGER = logging.getLogger(__name__)

_XML_DECLARATION = re.compile(r"<\?xml\b.*?\?>", re.IGNORECASE | re.DOTALL)
_DOCTYPE = re.compile(r"<!DOCTYPE\b[^\[>]*(?:\[.*?\])?\s*>", re.IGNORECASE | re.DOTALL)
_TITLE = re.compile(
    r"(?P<empty><title\b(?:[^>\"']|\"[^\"]*\"|'[^']*')*/>)"
    r"|(?P<open><title\b(?:[^>/\"']|\"[^\"]*\"|'[^']*')*>).*?(?P<close></title\s*>)",
    re.IGNORECASE | re.DOTALL,
)
_SVG_OPEN = re.compile(
    r"<svg(?=[\s/>])(?:[^>\"']|\"[^\"]*\"|'[^']*')*?(/?)>",
    re.IGNORECASE,
)


def _preserve_trust(original: str, result: str) -> str:
    if isinstance(original, SafeData):
        return mark_safe(result)
    return result


def strip_prolog(markup: str) -> str:
    # A removal can splice the surrounding text into a new declaration.
    result = str(markup)
    while True:
        stripped = _DOCTYPE.sub("", _XML_DECLARATION.sub("", result))
        if stripped == result:
            break
        result = stripped
    return _preserve_trust(markup, result)


def override_title(markup: str, title: str) -> str:
    """
    Put ``title`` into the SVG's ``<title>``.

    The first existing ``<title>`` keeps its opening tag and gets new
    content; without one, a ``<title>`` is inserted right after the first
    ``<svg ...>`` opening tag. Markup with no ``<svg`` tag is returned as is.
    """
    text = escape(title or "")
    match = _TITLE.search(markup)
    if match:
        if match.group("empty"):
            # <title/> has no content; expand it in place.
            opening = match.group("empty")[:-2].rstrip() + ">"
            replaced = f"{opening}{text}</title>"
        else:
            replaced = f"{match.group('open')}{text}{match.group('close')}"
        result = f"{markup[:match.start()]}{replaced}{markup[match.end():]}"
        return _preserve_trust(markup, result)

    match = _SVG_OPEN.search(markup)
    if not match:
        LOGGER.debug("No <svg> opening tag found; title override skipped.")
        return markup
    opening = match.group(0)
    if match.group(1):
        # <svg .../> has no content to hold a title; expand it.
        opening = opening[:-2].rstrip() + ">"
        inserted = f"{opening}<title>{text}</title></svg>"
    else:
        inserted = f"{opening}<title>{text}</title>"
    result = f"{markup[:match.start()]}{inserted}{markup[match.end():]}"
    return _preserve_trust(markup, result)


def post_process(markup: str, strip: bool = True, title_override: str | None = None) -> str:
    result = strip_prolog(markup) if strip else markup
    result = _preserve_trust(markup, result.strip())
    if title_override is not None:
        result = override_title(result, title_override)
    return result
