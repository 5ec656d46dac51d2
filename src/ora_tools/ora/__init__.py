"""
Low-level API that translates the OpenRaster archive to Python structures.

Structures parsed from ``stack.xml`` inherit from
:py:class:`~ora_tools.ora.base.BaseElement`. Archive access is wrapped by
:py:class:`~ora_tools.ora.archive.Archive`.
"""

from .archive import Archive as Archive
from .stack import (
    ImageElement as ImageElement,
    LayerElement as LayerElement,
    StackElement as StackElement,
    parse_stack as parse_stack,
)

__all__ = [
    "Archive",
    "ImageElement",
    "LayerElement",
    "StackElement",
    "parse_stack",
]
