"""
Exceptions raised while reading OpenRaster documents.
"""


class MalformedArchive(ValueError):
    """
    The archive cannot be read, or its ``stack.xml`` is missing or invalid.

    Fatal to loading; no partial document is returned.
    """


class LayerDecodeFailure(ValueError):
    """
    A layer raster entry is missing or cannot be decoded.

    The loader recovers from this: the layer keeps its attributes but has no
    pixels, and it is skipped during compositing.
    """

    def __init__(self, src: str, reason: str = "") -> None:
        self.src = src
        self.reason = reason
        message = "Failed to decode layer raster %r" % src
        if reason:
            message += ": %s" % reason
        super().__init__(message)
