"""
Archive access module.

:py:class:`Archive` is a thin adapter over :py:class:`zipfile.ZipFile` and
Pillow that exposes what the loader needs from an OpenRaster container:
looking up entries by name, reading XML entries, and decoding RGBA images.

Example::

    from ora_tools.ora import Archive, parse_stack

    with Archive.open('drawing.ora') as archive:
        entry = archive.find('stack.xml')
        stack = parse_stack(archive.read_xml(entry))
"""

import io
import logging
import os
import zipfile
import zlib
from typing import BinaryIO, Optional, Union

from PIL import Image

from ora_tools.constants import MIMETYPE, Entry
from ora_tools.errors import LayerDecodeFailure, MalformedArchive

logger = logging.getLogger(__name__)


class Archive:
    """
    OpenRaster zip container.

    Reading entries is safe from several threads at once, which the loader
    relies on to decode layers concurrently.
    """

    def __init__(self, data: zipfile.ZipFile):
        if not isinstance(data, zipfile.ZipFile):
            raise TypeError(f"Expected ZipFile instance, got {type(data).__name__}")
        self._zipfile = data

    @classmethod
    def open(
        cls, fp: Union[BinaryIO, str, bytes, bytearray, os.PathLike]
    ) -> "Archive":
        """
        Open an OpenRaster archive.

        :param fp: archive contents as `bytes`, a filename, or a binary
            file-like object.
        :return: :py:class:`Archive`
        :raises MalformedArchive: If the data is not a readable zip file.
        """
        if isinstance(fp, (bytes, bytearray)):
            fp = io.BytesIO(bytes(fp))
        try:
            data = zipfile.ZipFile(fp)
        except (zipfile.BadZipFile, OSError) as e:
            raise MalformedArchive("Failed to read archive: %s" % e) from e
        archive = cls(data)
        archive._check_mimetype()
        return archive

    def __enter__(self) -> "Archive":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        self._zipfile.close()

    def names(self) -> list[str]:
        """Names of all the entries."""
        return self._zipfile.namelist()

    def find(self, path: str) -> Optional[zipfile.ZipInfo]:
        """
        Look up an entry.

        :param path: entry name, such as ``'stack.xml'``.
        :return: :py:class:`zipfile.ZipInfo`, or `None` if not found.
        """
        if not path:
            return None
        try:
            return self._zipfile.getinfo(path.lstrip("/"))
        except KeyError:
            return None

    def read_bytes(self, entry: zipfile.ZipInfo) -> bytes:
        return self._zipfile.read(entry)

    def read_xml(self, entry: zipfile.ZipInfo) -> bytes:
        """
        Read an XML entry undecoded, so that the parser applies the encoding
        the document declares.

        :raises MalformedArchive: If the entry is corrupted.
        """
        try:
            return self.read_bytes(entry)
        except (zipfile.BadZipFile, zlib.error) as e:
            raise MalformedArchive(
                "Failed to read %s: %s" % (entry.filename, e)
            ) from e

    def read_image(self, entry: zipfile.ZipInfo) -> Image.Image:
        """
        Decode an image entry.

        :return: :py:class:`PIL.Image` in ``RGBA`` mode.
        :raises LayerDecodeFailure: If the entry cannot be decoded.
        """
        try:
            with Image.open(io.BytesIO(self.read_bytes(entry))) as image:
                image.load()
                if image.mode == "RGBA":
                    return image.copy()
                return image.convert("RGBA")
        except (
            OSError,
            ValueError,
            zlib.error,
            zipfile.BadZipFile,
            Image.DecompressionBombError,
        ) as e:
            raise LayerDecodeFailure(entry.filename, str(e)) from e

    def _check_mimetype(self) -> None:
        entry = self.find(Entry.MIMETYPE.value)
        if entry is None:
            logger.debug("Archive has no mimetype entry")
            return
        try:
            mimetype = self.read_bytes(entry).decode("ascii").strip()
        except (zipfile.BadZipFile, zlib.error, UnicodeDecodeError) as e:
            logger.warning("Failed to read mimetype: %s", e)
            return
        if mimetype != MIMETYPE:
            logger.warning("Unexpected mimetype %r, expected %r", mimetype, MIMETYPE)
