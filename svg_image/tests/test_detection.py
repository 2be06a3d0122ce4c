from __future__ import annotations

from io import BytesIO

from PIL import Image

from svg_image.detection import declares_svg, is_svg, probe_raster_size, sniff_svg
from svg_image.files import FileItem

SVG = b'<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 10 10"><rect width="10" height="10"/></svg>'


def _png_bytes(size=(4, 2)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, "red").save(buffer, format="PNG")
    return buffer.getvalue()


def test_svg_extension_with_binary_content_is_not_svg():
    file = FileItem(file_id="1", uri="public://fake.svg", content=_png_bytes())
    assert not is_svg(file)


def test_svg_content_with_arbitrary_extension_and_svg_mime_is_svg():
    file = FileItem(file_id="2", uri="public://upload.bin", mime_type="image/svg+xml", content=SVG)
    assert is_svg(file)


def test_declared_raster_mime_vetoes_svg_content():
    file = FileItem(file_id="3", uri="public://logo.png", mime_type="image/png", content=SVG)
    assert not is_svg(file)


def test_generic_mime_falls_back_to_content():
    file = FileItem(file_id="4", uri="public://logo", mime_type="application/octet-stream", content=SVG)
    assert is_svg(file)


def test_empty_or_unloaded_files_fail_closed():
    assert not is_svg(FileItem(file_id="5", uri="public://a.svg"))
    assert not is_svg(FileItem(file_id="6", uri="public://a.svg", content=b""))


def test_prolog_comments_and_doctype_are_skipped():
    content = (
        b"\xef\xbb\xbf<?xml version=\"1.0\" encoding=\"UTF-8\"?>\n"
        b"<!-- Generator: Illustrator -->\n"
        b'<!DOCTYPE svg PUBLIC "-//W3C//DTD SVG 1.1//EN" "http://www.w3.org/Graphics/SVG/1.1/DTD/svg11.dtd">\n'
        b"<svg><rect/></svg>"
    )
    assert sniff_svg(content)


def test_other_xml_roots_are_not_svg():
    assert not sniff_svg(b"<?xml version='1.0'?><html><svg/></html>")
    assert not sniff_svg(b"<svgfoo/>")


def test_nul_bytes_are_rejected():
    assert not sniff_svg(b"<svg>\x00</svg>")


def test_declares_svg_uses_mime_or_extension():
    assert declares_svg(FileItem(file_id="7", uri="public://a.svg"))
    assert declares_svg(FileItem(file_id="8", uri="public://a", mime_type="image/svg+xml; charset=utf-8"))
    assert not declares_svg(FileItem(file_id="9", uri="public://a.png"))


def test_probe_raster_size_reads_png_header():
    assert probe_raster_size(_png_bytes((7, 3))) == (7, 3)
    assert probe_raster_size(SVG) is None
    assert probe_raster_size(None) is None
