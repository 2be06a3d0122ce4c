"""SVG detection by content, with the declared MIME type as a veto."""

from __future__ import annotations

from io import BytesIO
import mimetypes
import re

from PIL import Image, UnidentifiedImageError

from .files import FileItem

SVG_MIME_TYPE = "image/svg+xml"
# Types that say nothing about the payload; content sniffing decides.
GENERIC_MIME_TYPES = frozenset(
    {
        "application/octet-stream",
        "application/xml",
        "text/xml",
        "text/plain",
    }
)
SNIFF_BYTES = 8192

_LEADING_NOISE = re.compile(
    r"""\A(?:
        \s+
      | <\?xml.*?\?>
      | <!--.*?-->
      | <!DOCTYPE[^\[>]*(?:\[.*?\])?\s*>
    )""",
    re.IGNORECASE | re.DOTALL | re.VERBOSE,
)
_SVG_ROOT = re.compile(r"\A<(?:[A-Za-z_][\w.-]*:)?svg[\s/>]")

mimetypes.add_type(SVG_MIME_TYPE, ".svg")
mimetypes.add_type(SVG_MIME_TYPE, ".svgz")


def declared_mime_type(file: FileItem) -> str | None:
    if file.mime_type:
        return file.mime_type.split(";", 1)[0].strip().lower() or None
    guessed, _ = mimetypes.guess_type(file.name)
    return guessed


def declares_svg(file: FileItem) -> bool:
    """Metadata-only hint. Never use it to trust content."""
    return declared_mime_type(file) == SVG_MIME_TYPE


def _mime_allows_svg(file: FileItem) -> bool:
    declared = declared_mime_type(file)
    if declared is None:
        return True
    return declared == SVG_MIME_TYPE or declared in GENERIC_MIME_TYPES


def probe_raster_size(content: bytes | None) -> tuple[int, int] | None:
    """Width/height of a raster image from its header, or None."""
    if not content:
        return None
    try:
        with Image.open(BytesIO(content)) as image:
            return image.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError):
        return None


def sniff_svg(content: bytes | None) -> bool:
    if not content:
        return False
    head = content[:SNIFF_BYTES]
    if b"\x00" in head:
        return False
    text = head.decode("utf-8", errors="ignore").lstrip("\ufeff")
    while True:
        match = _LEADING_NOISE.match(text)
        if not match or not match.group(0):
            break
        text = text[match.end():]
    return bool(_SVG_ROOT.match(text))


def is_svg(file: FileItem) -> bool:
    """
    Classify a loaded file as SVG.

    The extension alone never decides: the payload has to open with an
    ``<svg>`` root element and must not be a raster image Pillow can read.
    A declared raster MIME type vetoes the match. Unloaded or empty files
    are not SVG.
    """
    content = file.content
    if not content:
        return False
    if not _mime_allows_svg(file):
        return False
    if probe_raster_size(content) is not None:
        return False
    return sniff_svg(content)
