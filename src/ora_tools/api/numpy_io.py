import logging
from typing import TYPE_CHECKING, Optional, Union

import numpy as np
from PIL import Image

if TYPE_CHECKING:
    from ora_tools.api.layers import Layer
    from ora_tools.api.ora_image import OpenRasterImage

logger = logging.getLogger(__name__)


def get_array(
    layer: Union["Layer", "OpenRasterImage"], channel: Optional[str]
) -> Optional[np.ndarray]:
    # Import at runtime to avoid circular imports
    from ora_tools.api.layers import GroupMixin

    if isinstance(layer, GroupMixin):
        image = layer.composite()
    else:
        image = layer.topil()
    if image is None:
        return None
    return get_image_data(image, channel)


def get_image_data(image: Image.Image, channel: Optional[str]) -> np.ndarray:
    """
    Convert a PIL Image to a float32 array in [0, 1].

    :param channel: 'color' for RGB, 'shape' or 'alpha' for the alpha
        channel, `None` for RGBA.
    """
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    array = np.asarray(image, dtype=np.uint8).astype(np.float32) / 255.0
    array = array.reshape((image.height, image.width, 4))
    if channel == "color":
        return array[:, :, :3]
    elif channel in ("shape", "alpha"):
        return array[:, :, 3:4]
    elif channel is not None:
        raise ValueError("Unknown channel: %r" % channel)
    return array


def get_pixel_buffer(layer: "Layer", width: int, height: int) -> np.ndarray:
    """
    Render the layer raster, translated by its offset, into a transparent
    ``(height, width, 4)`` `uint8` buffer. Out-of-canvas pixels are clipped.
    """
    buffer = np.zeros((max(height, 0), max(width, 0), 4), dtype=np.uint8)
    image = layer.topil()
    if image is None:
        return buffer
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    source = np.asarray(image, dtype=np.uint8).reshape((image.height, image.width, 4))

    left, top = layer.offset
    x1, y1 = max(left, 0), max(top, 0)
    x2, y2 = min(left + image.width, width), min(top + image.height, height)
    if x1 >= x2 or y1 >= y2:
        logger.debug("%s is outside of the canvas", layer)
        return buffer
    buffer[y1:y2, x1:x2, :] = source[y1 - top : y2 - top, x1 - left : x2 - left, :]
    return buffer
