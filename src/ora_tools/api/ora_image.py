"""
OpenRaster image module.

This module provides the main :py:class:`OpenRasterImage` class, which is
the primary entry point for users of ora-tools. It represents a complete
OpenRaster document: the canvas, the layer tree, and the optional thumbnail
and merged images bundled by the authoring tool.

Key functionality:

- **Opening files**: :py:meth:`OpenRasterImage.open` (or the asynchronous
  :py:func:`~ora_tools.api.loader.load`)
- **Layer access**: Iterate, index, and search layers, bottommost first
- **Compositing**: Render to PIL Images via :py:meth:`~OpenRasterImage.composite`
- **Editing**: Insert blank layers with :py:meth:`~OpenRasterImage.add_layer`

Example usage::

    from ora_tools import OpenRasterImage

    image = OpenRasterImage.open('drawing.ora')

    print(f"Size: {image.width}x{image.height}")
    for layer in image:
        print(f"{layer.name}: {layer.kind}")

    # Bundled merged image if present, else composited from the layers
    image.composite().save('output.png')

    # Always composite from the layers
    image.composite(prefer_precomposited=False).save('rendered.png')
"""

import asyncio
import logging
import os
from typing import Any, BinaryIO, Callable, Literal, Optional, Union

try:
    from typing import Self  # type: ignore[attr-defined]
except ImportError:
    from typing_extensions import Self

import numpy as np
from PIL import Image

from ora_tools.api import layers, numpy_io, pil_io
from ora_tools.config import DEFAULT_CONFIG, Config
from ora_tools.ora.stack import ImageElement, LayerElement

logger = logging.getLogger(__name__)


class OpenRasterImage(layers.GroupMixin):
    """
    OpenRaster document.

    The parsed ``stack.xml`` is accessible at
    :py:attr:`OpenRasterImage._record`.

    Example::

        from ora_tools import OpenRasterImage

        image = OpenRasterImage.open('example.ora')
        flat = image.composite()

        for layer in image:
            layer_image = layer.composite()
    """

    def __init__(self, data: ImageElement, config: Optional[Config] = None):
        if not isinstance(data, ImageElement):
            raise TypeError(
                f"Expected ImageElement instance, got {type(data).__name__}"
            )
        self._record = data
        self._layers: list[layers.Layer] = []
        self._ora = self  # For GroupMixin compatibility.
        self.config: Config = config if config is not None else DEFAULT_CONFIG
        self.thumbnail: Optional[Image.Image] = None
        self.precomposited: Optional[Image.Image] = None
        self.load_report: list = []
        self._build_children(data.stack)

    @classmethod
    def new(cls, size: tuple[int, int], config: Optional[Config] = None) -> Self:
        """
        Create a new empty document.

        :param size: A tuple containing (width, height) in pixels.
        :return: A :py:class:`~ora_tools.api.ora_image.OpenRasterImage` object.
        """
        return cls(ImageElement(width=size[0], height=size[1]), config=config)

    @classmethod
    def open(
        cls,
        fp: Union[BinaryIO, str, bytes, bytearray, os.PathLike],
        config: Optional[Config] = None,
    ) -> Self:
        """
        Open an OpenRaster document.

        This runs :py:func:`~ora_tools.api.loader.load` in a new event loop;
        within a coroutine, await ``load`` instead.

        :param fp: filename, archive contents as `bytes`, or file-like object.
        :param config: optional :py:class:`~ora_tools.config.Config`.
        :return: A :py:class:`~ora_tools.api.ora_image.OpenRasterImage` object.
        :raises MalformedArchive: If the archive or its stack.xml is invalid.
        """
        from ora_tools.api.loader import load

        return asyncio.run(load(fp, config=config, image_class=cls))

    def topil(self) -> Optional[Image.Image]:
        """
        Get the bundled merged image.

        :return: :py:class:`PIL.Image`, or `None` if the archive has no
            ``mergedimage.png``.
        """
        return self.precomposited

    def render_thumbnail(self) -> Optional[Image.Image]:
        """
        Get the bundled thumbnail.

        :return: :py:class:`PIL.Image` in ``RGBA`` mode, or `None` if the
            archive has no thumbnail.
        """
        if self.thumbnail is None:
            return None
        return pil_io.fit_canvas(self.thumbnail, self.thumbnail.size)

    def numpy(
        self, channel: Optional[Literal["color", "shape", "alpha"]] = None
    ) -> np.ndarray:
        """
        Get NumPy array of the flattened image.

        :param channel: Which channel to return, can be 'color',
            'shape', or 'alpha'. Default is 'color+alpha'.
        :return: :py:class:`numpy.ndarray`
        """
        array = numpy_io.get_array(self, channel)
        assert array is not None
        return array

    def composite(
        self,
        prefer_precomposited: Optional[bool] = None,
        viewport: Optional[tuple[int, int, int, int]] = None,
        color: Union[float, tuple[float, ...], np.ndarray] = 0.0,
        alpha: Union[float, np.ndarray] = 0.0,
        layer_filter: Optional[Callable] = None,
        config: Optional[Config] = None,
    ) -> Image.Image:
        """
        Composite the document.

        :param prefer_precomposited: Return the bundled merged image when it
            is available. Default is ``config.prefer_precomposited``. Ignored
            when any of viewport, color, alpha, or layer_filter is given.
        :param viewport: Viewport bounding box specified by (x1, y1, x2, y2)
            tuple. Default is the canvas.
        :param color: Backdrop color specified by scalar or tuple of scalar.
            The color value should be in [0.0, 1.0]. For example, (1., 1., 1.)
            specifies white.
        :param alpha: Backdrop alpha in [0.0, 1.0].
        :param layer_filter: Callable that takes a layer as argument and
            returns whether if the layer is composited. Default is
            :py:func:`~ora_tools.api.layers.Layer.is_visible`.
        :param config: Rendering configuration, default is the document's.
        :return: :py:class:`PIL.Image` in ``RGBA`` mode.
        """
        from ora_tools.composite import composite_pil

        config = config if config is not None else self.config
        if prefer_precomposited is None:
            prefer_precomposited = config.prefer_precomposited
        customized = (
            viewport is not None
            or layer_filter is not None
            or isinstance(color, np.ndarray)
            or isinstance(alpha, np.ndarray)
            or color != 0.0
            or alpha != 0.0
        )
        if prefer_precomposited and not customized and self.has_preview():
            assert self.precomposited is not None
            return pil_io.fit_canvas(self.precomposited, self.size)
        result = composite_pil(
            self, color, alpha, viewport, layer_filter, config=config
        )
        assert result is not None
        return result

    def add_layer(self, name: str, index: Optional[int] = None) -> layers.PixelLayer:
        """
        Insert a new blank layer of the canvas size.

        :param name: Name of the new layer.
        :param index: Position in the back-to-front layer list; 0 makes the
            layer the bottommost. `None`, negative, or out-of-range values
            append the layer on top.
        :return: The created :py:class:`~ora_tools.api.layers.PixelLayer`.
        """
        record = LayerElement(name=name)
        layer = layers.PixelLayer(self, record)
        layer._set_image(Image.new("RGBA", self.size))
        if index is not None and 0 <= index < len(self._layers):
            self._layers.insert(index, layer)
            self._record.stack.children.insert(index, record)
        else:
            self._layers.append(layer)
            self._record.stack.children.append(record)
        logger.debug("Added %s", layer)
        return layer

    def has_preview(self) -> bool:
        """
        Returns if the document has a bundled merged image. When True,
        `topil()` returns it.
        """
        return self.precomposited is not None

    def has_thumbnail(self) -> bool:
        """True if the document has a bundled thumbnail."""
        return self.thumbnail is not None

    @property
    def parent(self) -> None:
        """Parent of this layer."""
        return None

    @property
    def name(self) -> str:
        """
        Element name.

        :return: `'Root'`
        """
        return "Root"

    @property
    def kind(self) -> str:
        """
        Kind.

        :return: `'openrasterimage'`
        """
        return self.__class__.__name__.lower()

    @property
    def visible(self) -> bool:
        """
        Visibility.

        :return: `True`
        """
        return True

    @property
    def left(self) -> int:
        return 0

    @property
    def top(self) -> int:
        return 0

    @property
    def right(self) -> int:
        return self.width

    @property
    def bottom(self) -> int:
        return self.height

    @property
    def width(self) -> int:
        """
        Document width, 0 when stack.xml does not specify it.

        :return: `int`
        """
        return self._record.width

    @property
    def height(self) -> int:
        """
        Document height, 0 when stack.xml does not specify it.

        :return: `int`
        """
        return self._record.height

    @property
    def size(self) -> tuple[int, int]:
        """
        (width, height) tuple.

        :return: `tuple`
        """
        return self.width, self.height

    @property
    def offset(self) -> tuple[int, int]:
        return self.left, self.top

    @property
    def bbox(self) -> tuple[int, int, int, int]:
        """
        Minimal bounding box that contains all the visible layers.

        Use :py:attr:`~ora_tools.api.ora_image.OpenRasterImage.viewbox` to
        get the canvas bounding box. When the document is empty, bbox is
        equal to the canvas bounding box.

        :return: (left, top, right, bottom) `tuple`.
        """
        bbox = layers.Group.extract_bbox(self)
        if bbox == (0, 0, 0, 0):
            bbox = self.viewbox
        return bbox

    @property
    def viewbox(self) -> tuple[int, int, int, int]:
        """
        Return bounding box of the canvas.

        :return: (left, top, right, bottom) `tuple`.
        """
        return self.left, self.top, self.right, self.bottom

    @property
    def version(self) -> str:
        """OpenRaster version declared in stack.xml."""
        return self._record.version

    @property
    def resolution(self) -> tuple[int, int]:
        """(xres, yres) in pixels per inch."""
        return self._record.xres, self._record.yres

    def __repr__(self) -> str:
        return "%s(size=%dx%d layers=%d%s%s)" % (
            self.__class__.__name__,
            self.width,
            self.height,
            len(self),
            " thumbnail" if self.has_thumbnail() else "",
            " merged" if self.has_preview() else "",
        )

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text(self.__repr__())
            return

        def _pretty(layer: Union[layers.Layer, "OpenRasterImage"], p: Any) -> None:
            p.text(layer.__repr__())
            if isinstance(layer, layers.GroupMixin):
                with p.indent(2):
                    for idx, child in enumerate(layer):
                        p.break_()
                        p.text("[%d] " % idx)
                        _pretty(child, p)

        _pretty(self, p)
