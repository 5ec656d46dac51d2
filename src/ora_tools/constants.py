"""
Various constants for ora_tools
"""

from enum import Enum


class Entry(str, Enum):
    """
    Well-known archive entries of an OpenRaster document.
    """

    MIMETYPE = "mimetype"
    STACK = "stack.xml"
    THUMBNAIL = "Thumbnails/thumbnail.png"
    MERGED_IMAGE = "mergedimage.png"


MIMETYPE = "image/openraster"


class CompositeOp(str, Enum):
    """
    Composite operators defined by the OpenRaster format.

    Values are the literal ``composite-op`` attribute strings.
    """

    SRC_OVER = "svg:src-over"
    MULTIPLY = "svg:multiply"
    SCREEN = "svg:screen"
    OVERLAY = "svg:overlay"
    DARKEN = "svg:darken"
    LIGHTEN = "svg:lighten"
    COLOR_DODGE = "svg:color-dodge"
    COLOR_BURN = "svg:color-burn"
    HARD_LIGHT = "svg:hard-light"
    SOFT_LIGHT = "svg:soft-light"
    DIFFERENCE = "svg:difference"
    EXCLUSION = "svg:exclusion"
    COLOR = "svg:color"
    LUMINOSITY = "svg:luminosity"
    HUE = "svg:hue"
    SATURATION = "svg:saturation"
    PLUS = "svg:plus"
    DST_IN = "svg:dst-in"
    DST_OUT = "svg:dst-out"
    SRC_ATOP = "svg:src-atop"
    DST_ATOP = "svg:dst-atop"


class Visibility(str, Enum):
    """
    Layer visibility.

    Only the literal ``hidden`` hides a layer. Unrecognized values are kept
    as :py:attr:`OTHER` and render as visible.
    """

    VISIBLE = "visible"
    HIDDEN = "hidden"
    OTHER = "other"

    @classmethod
    def from_attribute(cls, value):
        if value is None:
            return cls.VISIBLE
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class Isolation(str, Enum):
    """Group isolation."""

    AUTO = "auto"
    ISOLATE = "isolate"


class TaskStatus(str, Enum):
    """Outcome of one loading task."""

    LOADED = "loaded"
    ABSENT = "absent"
    FAILED = "failed"
