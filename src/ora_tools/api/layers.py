"""
Layer module.

This module implements the high-level layer API for ora-tools. It wraps the
records parsed from ``stack.xml`` together with the decoded layer rasters.

Key classes:

- :py:class:`Layer`: Base class for all layer types
- :py:class:`GroupMixin`: Mixin for layers that contain children (groups, documents)
- :py:class:`Group`: Nested ``<stack>`` containing other layers
- :py:class:`PixelLayer`: Regular raster layer backed by a PNG entry

Layers are stored back-to-front: the first child of a group is painted
first. This is the reverse of the order in ``stack.xml``.

Example usage::

    from ora_tools import OpenRasterImage

    image = OpenRasterImage.open('drawing.ora')

    # Iterate through layers, bottommost first
    for layer in image:
        print(layer.name, layer.composite_op, layer.opacity)

    # Get pixel data
    layer = image[0]
    pixels = layer.numpy()  # NumPy array
    raster = layer.topil()  # PIL Image

    # Work with nested stacks
    for layer in image.descendants():
        if layer.kind == 'group':
            print(f"Group: {layer.name} with {len(layer)} layers")
"""

import logging
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Iterator,
    Literal,
    Optional,
    Sequence,
    Union,
)

import numpy as np
from PIL import Image

from ora_tools.api import numpy_io
from ora_tools.config import Config
from ora_tools.constants import CompositeOp, Isolation, Visibility
from ora_tools.ora.stack import LayerElement, StackElement

if TYPE_CHECKING:
    from ora_tools.api.ora_image import OpenRasterImage

logger = logging.getLogger(__name__)


class Layer:
    def __init__(
        self,
        parent: "GroupMixin",
        record: Union[LayerElement, StackElement],
    ):
        self._ora: "OpenRasterImage" = parent._ora
        self._parent: Optional["GroupMixin"] = parent
        self._record = record

    @property
    def name(self) -> str:
        """
        Layer name.

        :return: `str`
        """
        return self._record.name

    @property
    def kind(self) -> str:
        """
        Kind of this layer, either group or pixel. Class name without `layer`
        suffix.

        :return: `str`
        """
        return self.__class__.__name__.lower().replace("layer", "")

    @property
    def parent(self) -> Optional["GroupMixin"]:
        """Parent of this layer."""
        return self._parent

    @property
    def visibility(self) -> Visibility:
        """
        Raw visibility attribute.

        :return: :py:class:`~ora_tools.constants.Visibility`
        """
        return self._record.visibility

    @property
    def visible(self) -> bool:
        """
        Layer visibility. Doesn't take group visibility in account. Anything
        but an explicit ``hidden`` is visible.

        :return: `bool`
        """
        return self._record.visibility != Visibility.HIDDEN

    def is_visible(self) -> bool:
        """
        Layer visibility. Takes group visibility in account.

        :return: `bool`
        """
        if not self.visible:
            return False
        elif self.parent is not None:
            return self.parent.is_visible()
        return True

    @property
    def opacity(self) -> float:
        """
        Opacity of this layer in [0.0, 1.0] range.

        :return: float
        """
        return self._record.opacity

    @property
    def composite_op(self) -> str:
        """
        Composite operator name, such as ``'svg:src-over'``. Unrecognized
        names are kept as is and render as source-over.

        :return: `str`
        """
        return self._record.composite_op

    @property
    def selected(self) -> bool:
        """Whether the authoring tool had this layer selected."""
        return self._record.selected

    @property
    def left(self) -> int:
        """
        Left coordinate on the canvas.

        :return: int
        """
        return self._record.x + self._parent_offset()[0]

    @property
    def top(self) -> int:
        """
        Top coordinate on the canvas.

        :return: int
        """
        return self._record.y + self._parent_offset()[1]

    @property
    def right(self) -> int:
        """
        Right coordinate.

        :return: int
        """
        return self.left + self.width

    @property
    def bottom(self) -> int:
        """
        Bottom coordinate.

        :return: int
        """
        return self.top + self.height

    @property
    def width(self) -> int:
        """
        Width of the layer raster, 0 until the raster is decoded.

        :return: int
        """
        return 0

    @property
    def height(self) -> int:
        """
        Height of the layer raster, 0 until the raster is decoded.

        :return: int
        """
        return 0

    @property
    def offset(self) -> tuple[int, int]:
        """
        (left, top) tuple.

        :return: `tuple`
        """
        return self.left, self.top

    @property
    def size(self) -> tuple[int, int]:
        """
        (width, height) tuple.

        :return: `tuple`
        """
        return self.width, self.height

    @property
    def bbox(self) -> tuple[int, int, int, int]:
        """(left, top, right, bottom) tuple."""
        return self.left, self.top, self.right, self.bottom

    def is_group(self) -> bool:
        """
        Return True if the layer is a group.

        :return: `bool`
        """
        return False

    def has_pixels(self) -> bool:
        """
        Returns True if the layer has a decoded raster. When this is True,
        `topil` method returns :py:class:`PIL.Image.Image`.

        :return: `bool`
        """
        return False

    def topil(self) -> Optional[Image.Image]:
        """
        Get PIL Image of the layer.

        :return: :py:class:`PIL.Image` in ``RGBA`` mode, or `None` if the
            layer has no pixels.
        """
        return None

    def numpy(
        self, channel: Optional[Literal["color", "shape", "alpha"]] = None
    ) -> Optional[np.ndarray]:
        """
        Get NumPy array of the layer.

        :param channel: Which channel to return, can be 'color',
            'shape', or 'alpha'. Default is 'color+alpha'.
        :return: :py:class:`numpy.ndarray` or None if there is no pixel.
        """
        return numpy_io.get_array(self, channel)

    def composite(
        self,
        viewport: Optional[tuple[int, int, int, int]] = None,
        color: Union[float, tuple[float, ...], np.ndarray] = 0.0,
        alpha: Union[float, np.ndarray] = 0.0,
        layer_filter: Optional[Callable] = None,
    ) -> Optional[Image.Image]:
        """
        Composite the layer and its children, if any.

        :param viewport: Viewport bounding box specified by (x1, y1, x2, y2)
            tuple. Default is the layer's bbox.
        :param color: Backdrop color specified by scalar or tuple of scalar.
            The color value should be in [0.0, 1.0].
        :param alpha: Backdrop alpha in [0.0, 1.0].
        :param layer_filter: Callable that takes a layer as argument and
            returns whether if the layer is composited. Default is
            :py:func:`~ora_tools.api.layers.Layer.is_visible`.
        :return: :py:class:`PIL.Image`, or `None` if the layer has no pixels.
        """
        from ora_tools.composite import composite_pil

        return composite_pil(
            self,
            color,
            alpha,
            viewport,
            layer_filter,
            config=self._ora.config,
            as_layer=True,
        )

    def _parent_offset(self) -> tuple[int, int]:
        if isinstance(self._parent, GroupMixin):
            return self._parent._offset()
        return (0, 0)

    def __repr__(self) -> str:
        has_size = self.width > 0 and self.height > 0
        return "%s(%r%s%s%s%s)" % (
            self.__class__.__name__,
            self.name,
            " size=%dx%d" % (self.width, self.height) if has_size else "",
            " invisible" if not self.visible else "",
            " op=%s" % self.composite_op
            if self.composite_op != CompositeOp.SRC_OVER.value
            else "",
            " opacity=%g" % self.opacity if self.opacity < 1.0 else "",
        )


class GroupMixin:
    _ora: "OpenRasterImage"
    _layers: list[Layer]

    def __len__(self) -> int:
        return self._layers.__len__()

    def __iter__(self) -> Iterator[Layer]:
        return self._layers.__iter__()

    def __reversed__(self) -> Iterator[Layer]:
        return self._layers.__reversed__()

    def __contains__(self, item: object) -> bool:
        return item in self._layers

    def __getitem__(self, key: int) -> Layer:
        return self._layers.__getitem__(key)

    def is_visible(self) -> bool:
        """Returns visibility of the element."""
        return Layer.is_visible(self)  # type: ignore

    def is_group(self) -> bool:
        """Return True if this is a group."""
        return True

    def descendants(self) -> Iterator[Layer]:
        """
        Return a generator to iterate over all descendant layers,
        back-to-front and depth-first.

        Example::

            for layer in image.descendants():
                print(layer)
        """
        for layer in self:
            yield layer
            if isinstance(layer, GroupMixin):
                yield from layer.descendants()

    def find(self, name: str) -> Optional[Layer]:
        """
        Returns the first layer found for the given layer name

        :param name:
        """
        for layer in self.findall(name):
            return layer
        return None

    def findall(self, name: str) -> Iterator[Layer]:
        """
        Return a generator to iterate over all layers with the given name.

        :param name:
        """
        for layer in self.descendants():
            if layer.name == name:
                yield layer

    def _offset(self) -> tuple[int, int]:
        """Canvas offset applied to the children."""
        return (0, 0)

    def _build_children(self, record: StackElement) -> None:
        """Create child layers from a stack record."""
        self._layers = []
        for child in record.children:
            layer: Layer
            if isinstance(child, StackElement):
                layer = Group(self, child)
            else:
                layer = PixelLayer(self, child)
            self._layers.append(layer)


class Group(GroupMixin, Layer):
    """
    Group of layers, from a nested ``<stack>`` element.

    Example::

        group = image[1]
        for layer in group:
            if layer.kind == 'pixel':
                print(layer.name)
    """

    _record: StackElement

    def __init__(self, parent: GroupMixin, record: StackElement):
        super().__init__(parent, record)
        self._build_children(record)

    @property
    def isolation(self) -> Isolation:
        """
        Isolation attribute.

        :return: :py:class:`~ora_tools.constants.Isolation`
        """
        return self._record.isolation

    def is_isolated(self, config: Optional[Config] = None) -> bool:
        """
        Returns True if children are composited into a separate buffer.

        With ``isolation="auto"``, a fully opaque source-over group is
        composited pass-through, straight onto the backdrop.

        :param config: rendering configuration whose blend overrides apply,
            default is the document's.
        """
        if config is None:
            config = self._ora.config
        if self.isolation == Isolation.ISOLATE or self.opacity < 1.0:
            return True
        from ora_tools.composite.blend import (
            get_blend_func,
            get_composite_func,
            normal,
            src_over,
        )

        blend_fn = get_blend_func(self.composite_op, config.blend_overrides)
        composite_fn = get_composite_func(self.composite_op)
        return blend_fn is not normal or composite_fn is not src_over

    @property
    def left(self) -> int:
        return self.bbox[0]

    @property
    def top(self) -> int:
        return self.bbox[1]

    @property
    def right(self) -> int:
        return self.bbox[2]

    @property
    def bottom(self) -> int:
        return self.bbox[3]

    @property
    def width(self) -> int:
        return self.bbox[2] - self.bbox[0]

    @property
    def height(self) -> int:
        return self.bbox[3] - self.bbox[1]

    @property
    def bbox(self) -> tuple[int, int, int, int]:
        """(left, top, right, bottom) tuple computed from children."""
        return Group.extract_bbox(self)

    def _offset(self) -> tuple[int, int]:
        x, y = self._parent_offset()
        return (x + self._record.x, y + self._record.y)

    @staticmethod
    def extract_bbox(
        layers: Union[Sequence[Layer], GroupMixin], include_invisible: bool = False
    ) -> tuple[int, int, int, int]:
        """
        Returns a bounding box for ``layers`` or (0, 0, 0, 0) if the layers
        have no bounding box.

        :param layers: sequence of layers or a group.
        :param include_invisible: include invisible layers in calculation.
        :return: tuple of four int
        """

        def _get_bbox(layer: Layer, **kwargs: Any) -> tuple[int, int, int, int]:
            if isinstance(layer, GroupMixin):
                return Group.extract_bbox(layer, **kwargs)
            else:
                return layer.bbox

        bboxes = [
            _get_bbox(layer, include_invisible=include_invisible)
            for layer in layers
            if include_invisible or layer.is_visible()
        ]
        bboxes = [bbox for bbox in bboxes if bbox[0] < bbox[2] and bbox[1] < bbox[3]]
        if len(bboxes) == 0:  # Empty bounding box.
            return (0, 0, 0, 0)
        lefts, tops, rights, bottoms = zip(*bboxes)
        return (min(lefts), min(tops), max(rights), max(bottoms))

    def __repr__(self) -> str:
        return "%s(%r%s%s%s)" % (
            self.__class__.__name__,
            self.name,
            " invisible" if not self.visible else "",
            " op=%s" % self.composite_op
            if self.composite_op != CompositeOp.SRC_OVER.value
            else "",
            " isolate" if self.isolation == Isolation.ISOLATE else "",
        )


class PixelLayer(Layer):
    """
    Layer that has a PNG raster.

    The raster is decoded by the loader; until then, or when decoding
    failed, the layer keeps its attributes but :py:meth:`has_pixels` is
    False and the compositor skips it.
    """

    _record: LayerElement

    def __init__(self, parent: GroupMixin, record: LayerElement):
        super().__init__(parent, record)
        self._image: Optional[Image.Image] = None

    @property
    def src(self) -> str:
        """
        Archive path of the layer raster.

        :return: `str`
        """
        return self._record.src

    @property
    def edit_locked(self) -> bool:
        """Whether the authoring tool locked this layer."""
        return self._record.edit_locked

    @property
    def width(self) -> int:
        return self._image.width if self._image is not None else 0

    @property
    def height(self) -> int:
        return self._image.height if self._image is not None else 0

    def has_pixels(self) -> bool:
        return self._image is not None

    def topil(self) -> Optional[Image.Image]:
        return self._image

    def get_pixel_buffer(
        self, width: Optional[int] = None, height: Optional[int] = None
    ) -> np.ndarray:
        """
        Render the raster at its offset into a canvas-sized buffer.

        :param width: canvas width, default is the document width.
        :param height: canvas height, default is the document height.
        :return: `uint8` :py:class:`numpy.ndarray` of shape
            ``(height, width, 4)``. Pixels outside the canvas are clipped.
        """
        if width is None:
            width = self._ora.width
        if height is None:
            height = self._ora.height
        return numpy_io.get_pixel_buffer(self, width, height)

    def _set_image(self, image: Optional[Image.Image]) -> None:
        if image is not None and image.mode != "RGBA":
            image = image.convert("RGBA")
        self._image = image
