import io
import logging
import zipfile
from typing import Any, Optional, Union
from xml.sax.saxutils import quoteattr

from PIL import Image

logging.basicConfig(level=logging.DEBUG)

Entry = Union[bytes, str, Image.Image]


def png_bytes(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def solid(
    size: tuple[int, int], color: tuple[int, int, int, int] = (255, 0, 0, 255)
) -> Image.Image:
    return Image.new("RGBA", size, color)


def make_archive(entries: dict[str, Entry], mimetype: Optional[str] = "image/openraster") -> bytes:
    """Build a zip archive in memory. Images are stored as PNG."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as z:
        if mimetype is not None:
            z.writestr("mimetype", mimetype, compress_type=zipfile.ZIP_STORED)
        for name, value in entries.items():
            if isinstance(value, Image.Image):
                value = png_bytes(value)
            z.writestr(name, value, compress_type=zipfile.ZIP_DEFLATED)
    return buffer.getvalue()


def _attrs(attrs: dict[str, Any]) -> str:
    return "".join(" %s=%s" % (k, quoteattr(str(v))) for k, v in attrs.items())


def stack_xml(children: list[Any], size: tuple[int, int] = (4, 4)) -> str:
    """
    Build stack.xml text. ``children`` lists layer attribute dicts in
    document order, i.e. topmost first. A ``(attrs, children)`` tuple
    describes a nested stack.
    """

    def _render(items: list[Any]) -> str:
        parts = []
        for item in items:
            if isinstance(item, tuple):
                attrs, sub = item
                parts.append("<stack%s>%s</stack>" % (_attrs(attrs), _render(sub)))
            else:
                parts.append("<layer%s/>" % _attrs(item))
        return "".join(parts)

    return '<?xml version="1.0" encoding="UTF-8"?><image w="%d" h="%d"><stack>%s</stack></image>' % (
        size[0],
        size[1],
        _render(children),
    )


def make_ora(
    layers: list[tuple[dict[str, Any], Optional[Image.Image]]],
    size: tuple[int, int] = (4, 4),
    merged: Optional[Image.Image] = None,
    thumbnail: Optional[Image.Image] = None,
) -> bytes:
    """
    Build an OpenRaster archive. ``layers`` lists ``(attributes, raster)``
    pairs topmost first, as in stack.xml. A `None` raster leaves the ``src``
    entry out of the archive.
    """
    entries: dict[str, Entry] = {"stack.xml": stack_xml([a for a, _ in layers], size)}
    for attrs, image in layers:
        if image is not None:
            entries[attrs["src"]] = image
    if merged is not None:
        entries["mergedimage.png"] = merged
    if thumbnail is not None:
        entries["Thumbnails/thumbnail.png"] = thumbnail
    return make_archive(entries)
