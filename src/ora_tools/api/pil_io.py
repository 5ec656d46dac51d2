"""
PIL IO module.
"""

import logging
from typing import Optional

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)


def convert_array_to_pil(
    color: np.ndarray, alpha: Optional[np.ndarray] = None
) -> Image.Image:
    """
    Convert straight color and alpha arrays in [0, 1] to an ``RGBA`` image.

    Fully transparent pixels are written as transparent black.
    """
    height, width = color.shape[0], color.shape[1]
    if height == 0 or width == 0:
        return Image.new("RGBA", (width, height))
    if color.shape[2] == 1:
        color = np.repeat(color, 3, axis=2)
    if alpha is None:
        alpha = np.ones((height, width, 1), dtype=np.float32)
    array = np.concatenate((color[:, :, :3], alpha), axis=2)
    array[alpha[:, :, 0] <= 0.0] = 0.0
    array = np.round(255 * np.clip(array, 0.0, 1.0)).astype(np.uint8)
    return Image.fromarray(array)


def fit_canvas(image: Image.Image, size: tuple[int, int]) -> Image.Image:
    """
    Return a copy of ``image`` in ``RGBA`` mode with the given size.

    When the sizes differ, the image is pasted at the top-left corner of a
    transparent canvas and cropped.
    """
    if image.mode != "RGBA":
        image = image.convert("RGBA")
    else:
        image = image.copy()
    if image.size == size:
        return image
    logger.warning("Image size %s differs from canvas size %s", image.size, size)
    canvas = Image.new("RGBA", size)
    canvas.paste(image, (0, 0))
    return canvas
