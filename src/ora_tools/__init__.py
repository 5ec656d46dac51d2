"""
ora-tools: Python package for reading and rendering OpenRaster documents.

An OpenRaster (``.ora``) file is a zip archive bundling PNG layer rasters,
a ``stack.xml`` layer description, and optionally a thumbnail and a merged
image. This package parses the archive into a layer model and composites
it into a single RGBA raster.

Basic usage::

    from ora_tools import OpenRasterImage

    # Open and read an OpenRaster file
    image = OpenRasterImage.open('example.ora')

    # Iterate through layers, bottommost first
    for layer in image:
        print(layer.name)

    # Export to PNG
    image.composite().save('output.png')

Within a coroutine, await :py:func:`load` instead::

    image = await load('example.ora')

Architecture:

- :py:mod:`ora_tools.ora`: Low-level archive and stack.xml parsing
- :py:mod:`ora_tools.api`: High-level user-facing API (primary interface)
- :py:mod:`ora_tools.composite`: Layer rendering and blending engine

Advanced users can access the parsed stack.xml via the ``_record`` attribute.
"""

from ora_tools.api.loader import load
from ora_tools.api.ora_image import OpenRasterImage
from ora_tools.version import __version__

open = OpenRasterImage.open

__all__ = ["OpenRasterImage", "load", "open", "__version__"]
