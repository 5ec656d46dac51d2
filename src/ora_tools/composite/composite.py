"""Composite implementation for layer rendering and blending."""

import logging
from typing import Callable, Optional, Union

import numpy as np
from PIL import Image

from ora_tools.api import pil_io
from ora_tools.api.layers import GroupMixin, Layer
from ora_tools.api.ora_image import OpenRasterImage
from ora_tools.composite import blend
from ora_tools.config import DEFAULT_CONFIG, Config

logger = logging.getLogger(__name__)


def composite_pil(
    layer: Union[Layer, OpenRasterImage],
    color: Union[float, tuple[float, ...], np.ndarray],
    alpha: Union[float, np.ndarray],
    viewport: Optional[tuple[int, int, int, int]],
    layer_filter: Optional[Callable],
    config: Optional[Config] = None,
    as_layer: bool = False,
) -> Union[Image.Image, None]:
    """
    Composite layers and return a PIL Image.

    Args:
        layer: Layer or OpenRasterImage to composite
        color: Initial backdrop color (0.0-1.0). Can be scalar, tuple, or ndarray
        alpha: Initial backdrop alpha (0.0-1.0). Can be scalar or ndarray
        viewport: Bounding box (left, top, right, bottom) to composite. If None, uses layer bounds
        layer_filter: Optional callable to filter which layers to composite. Should return True to include
        config: Rendering configuration. If None, uses the document config
        as_layer: If True, apply the layer's own opacity and blend mode

    Returns:
        PIL Image in RGBA mode, or None if a layer has an empty viewport.
        A document always yields an image, possibly of zero size.
    """
    color, alpha = composite(
        layer,
        color=color,
        alpha=alpha,
        viewport=viewport,
        layer_filter=layer_filter,
        config=config,
        as_layer=as_layer,
    )
    if not isinstance(layer, OpenRasterImage) and (
        color.shape[0] == 0 or color.shape[1] == 0
    ):
        return None
    return pil_io.convert_array_to_pil(color, alpha)


def composite(
    group: Union[Layer, OpenRasterImage],
    color: Union[float, tuple[float, ...], np.ndarray] = 0.0,
    alpha: Union[float, np.ndarray] = 0.0,
    viewport: Optional[tuple[int, int, int, int]] = None,
    layer_filter: Optional[Callable] = None,
    config: Optional[Config] = None,
    as_layer: bool = False,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Composite layers and return NumPy arrays.

    Layers are painted back-to-front onto the backdrop. Each layer's raster
    is placed at its offset and clipped to the viewport, then blended with
    its composite operator and opacity.

    Args:
        group: Layer or OpenRasterImage to composite
        color: Initial backdrop color (0.0-1.0, default: 0.0). Can be:
            - Scalar (float): Applied to all channels
            - Tuple: Per-channel RGB values
            - ndarray: Full backdrop image
        alpha: Initial backdrop alpha (0.0-1.0, default: 0.0). Can be scalar or ndarray
        viewport: Bounding box (left, top, right, bottom) to composite. If None, uses the
            canvas for a document and the layer bounds otherwise
        layer_filter: Optional callable(layer) -> bool to filter which layers to composite
        config: Rendering configuration. If None, uses the document config
        as_layer: If True, treat the group as a layer (apply its blend mode to backdrop)

    Returns:
        Tuple of (color, alpha) as float32 ndarrays with shape (height, width, channels):
            - color: straight RGB values in range [0.0, 1.0]
            - alpha: Composite alpha channel in range [0.0, 1.0]

    Examples:
        >>> from ora_tools import OpenRasterImage
        >>> image = OpenRasterImage.open('example.ora')
        >>> color, alpha = composite(image)
        >>> # Apply custom backdrop
        >>> color, alpha = composite(image, color=(1.0, 1.0, 1.0), alpha=1.0)
        >>> # Composite only layers that are not locked
        >>> color, alpha = composite(image, layer_filter=lambda l: not l.selected)
    """
    if viewport is None:
        if isinstance(group, OpenRasterImage):
            viewport = group.viewbox
        else:
            viewport = group.bbox
            if viewport == (0, 0, 0, 0) and isinstance(group, GroupMixin):
                viewport = group._ora.viewbox
    assert viewport is not None

    if config is None:
        config = group._ora.config

    layer_filter = layer_filter or Layer.is_visible

    compositor = Compositor(viewport, color, alpha, layer_filter, config)
    target_group = group if isinstance(group, GroupMixin) and not as_layer else [group]
    for layer in target_group:  # type: ignore
        compositor.apply(layer)  # type: ignore[arg-type]
    return compositor.finish()


def intersect(
    a: tuple[int, int, int, int], b: tuple[int, int, int, int]
) -> tuple[int, int, int, int]:
    """Overlap of two boxes, or (0, 0, 0, 0) when they do not overlap."""
    left, top = max(a[0], b[0]), max(a[1], b[1])
    right, bottom = min(a[2], b[2]), min(a[3], b[3])
    if right <= left or bottom <= top:
        return (0, 0, 0, 0)
    return left, top, right, bottom


def paste(
    viewport: tuple[int, int, int, int],
    bbox: tuple[int, int, int, int],
    values: np.ndarray,
) -> np.ndarray:
    """Place ``values`` spanning ``bbox`` on a transparent viewport."""
    shape = (viewport[3] - viewport[1], viewport[2] - viewport[0], values.shape[2])
    view = np.zeros(shape, dtype=np.float32)
    inter = intersect(viewport, bbox)
    if inter == (0, 0, 0, 0):
        return view

    v = (
        inter[0] - viewport[0],
        inter[1] - viewport[1],
        inter[2] - viewport[0],
        inter[3] - viewport[1],
    )
    b = (inter[0] - bbox[0], inter[1] - bbox[1], inter[2] - bbox[0], inter[3] - bbox[1])
    view[v[1] : v[3], v[0] : v[2], :] = values[b[1] : b[3], b[0] : b[2], :]
    return view


class Compositor(object):
    """Composite context.

    Example::

        compositor = Compositor(image.viewbox)
        for layer in image:
            compositor.apply(layer)
        color, alpha = compositor.finish()
    """

    def __init__(
        self,
        viewport: tuple[int, int, int, int],
        color: Union[float, tuple[float, ...], np.ndarray] = 0.0,
        alpha: Union[float, np.ndarray] = 0.0,
        layer_filter: Optional[Callable] = None,
        config: Config = DEFAULT_CONFIG,
    ):
        self._viewport = viewport
        self._layer_filter = layer_filter
        self._config = config

        if isinstance(alpha, np.ndarray):
            self._alpha = alpha.astype(np.float32)
        else:
            self._alpha = np.full((self.height, self.width, 1), alpha, dtype=np.float32)

        if isinstance(color, np.ndarray):
            self._color = color.astype(np.float32)
        else:
            self._color = np.full((self.height, self.width, 3), color, dtype=np.float32)
        if self._color.shape[2] == 1:
            self._color = np.repeat(self._color, 3, axis=2)

    def apply(self, layer: Layer) -> None:
        logger.debug("Compositing %s" % layer)

        if self._layer_filter is not None and not self._layer_filter(layer):
            logger.debug("Ignore %s" % layer)
            return
        if intersect(self._viewport, layer.bbox) == (0, 0, 0, 0):
            logger.debug("Out of viewport %s" % (layer))
            return

        if isinstance(layer, GroupMixin):
            if not layer.is_isolated(self._config):  # type: ignore[attr-defined]
                for child in layer:
                    self.apply(child)
                return
            color, alpha = self._get_group(layer)
        else:
            if not layer.has_pixels():
                logger.debug("No pixels %s" % layer)
                return
            color, alpha = self._get_object(layer)

        self._apply_source(color, alpha, layer.opacity, layer.composite_op)

    def _apply_source(
        self,
        color: np.ndarray,
        alpha: np.ndarray,
        opacity: float,
        composite_op: str,
    ) -> None:
        blend_fn = blend.get_blend_func(composite_op, self._config.blend_overrides)
        composite_fn = blend.get_composite_func(composite_op)
        self._color, self._alpha = blend.blend(
            color,
            alpha,
            self._color,
            self._alpha,
            opacity=opacity,
            blend_fn=blend_fn,
            composite_fn=composite_fn,
        )

    def finish(self) -> tuple[np.ndarray, np.ndarray]:
        return self.color, self.alpha

    @property
    def width(self) -> int:
        return self._viewport[2] - self._viewport[0]

    @property
    def height(self) -> int:
        return self._viewport[3] - self._viewport[1]

    @property
    def color(self) -> np.ndarray:
        return self._color

    @property
    def alpha(self) -> np.ndarray:
        return self._alpha

    def _get_group(self, layer: Layer) -> tuple[np.ndarray, np.ndarray]:
        """Render an isolated group into a transparent buffer."""
        viewport = intersect(self._viewport, layer.bbox)
        compositor = Compositor(
            viewport, 0.0, 0.0, layer_filter=self._layer_filter, config=self._config
        )
        for child in layer:  # type: ignore[attr-defined]
            compositor.apply(child)
        color, alpha = compositor.finish()
        return paste(self._viewport, viewport, color), paste(
            self._viewport, viewport, alpha
        )

    def _get_object(self, layer: Layer) -> tuple[np.ndarray, np.ndarray]:
        """Get object attributes."""
        rgba = layer.numpy()
        assert rgba is not None
        color = paste(self._viewport, layer.bbox, rgba[:, :, :3])
        alpha = paste(self._viewport, layer.bbox, rgba[:, :, 3:4])
        return color, alpha
