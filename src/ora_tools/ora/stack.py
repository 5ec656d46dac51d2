"""
Stack descriptor module.

``stack.xml`` describes the canvas and the layer tree of an OpenRaster
document::

    <image w="640" h="480">
      <stack>
        <layer name="Ink" src="data/ink.png" x="12" y="4" opacity="0.8"/>
        <stack name="Colors" composite-op="svg:multiply">
          <layer name="Flat" src="data/flat.png"/>
        </stack>
        <layer name="Paper" src="data/paper.png"/>
      </stack>
    </image>

The descriptor lists children top-to-bottom. The records built here store
them back-to-front, i.e. ``children[0]`` is painted first. Every recognized
attribute and its default is declared once as an attrs field, so that code
downstream never needs to look at the XML again.
"""

import logging
import math
from typing import Any, Callable, Optional, Union
from xml.etree import ElementTree

from attrs import define, field

from ora_tools.constants import CompositeOp, Isolation, Visibility
from ora_tools.errors import MalformedArchive
from ora_tools.ora.base import BaseElement

logger = logging.getLogger(__name__)


def _to_int(value: str) -> int:
    return int(round(float(value)))


def _to_float(value: str) -> float:
    result = float(value)
    if not math.isfinite(result):
        raise ValueError(value)
    return result


def _to_bool(value: str) -> bool:
    if value.lower() in ("true", "1", "yes"):
        return True
    if value.lower() in ("false", "0", "no"):
        return False
    raise ValueError(value)


def _to_isolation(value: str) -> Isolation:
    return Isolation(value)


def _clamp_opacity(value: float) -> float:
    return min(max(float(value), 0.0), 1.0)


def _get(
    element: ElementTree.Element,
    key: str,
    convert: Callable[[str], Any],
    default: Any,
) -> Any:
    """Read an attribute, falling back to ``default`` when absent or invalid."""
    value = element.get(key)
    if value is None:
        return default
    try:
        return convert(value)
    except (ValueError, OverflowError):
        logger.warning(
            "Invalid %s=%r in <%s>, using %r", key, value, element.tag, default
        )
        return default


@define(repr=False)
class LayerElement(BaseElement):
    """
    Record of a ``<layer>`` element.

    .. py:attribute:: name
    .. py:attribute:: src

        Archive path of the PNG raster.

    .. py:attribute:: x
    .. py:attribute:: y
    .. py:attribute:: composite_op

        Raw ``composite-op`` string, unrecognized values are preserved.

    .. py:attribute:: opacity

        Float in [0, 1].

    .. py:attribute:: visibility

        See :py:class:`~ora_tools.constants.Visibility`.

    .. py:attribute:: selected
    .. py:attribute:: edit_locked
    """

    name: str = ""
    src: str = ""
    x: int = 0
    y: int = 0
    composite_op: str = CompositeOp.SRC_OVER.value
    opacity: float = field(default=1.0, converter=_clamp_opacity)
    visibility: Visibility = Visibility.VISIBLE
    selected: bool = False
    edit_locked: bool = False

    @classmethod
    def from_xml(cls, element: ElementTree.Element) -> "LayerElement":
        return cls(
            name=element.get("name", ""),
            src=element.get("src", ""),
            x=_get(element, "x", _to_int, 0),
            y=_get(element, "y", _to_int, 0),
            composite_op=element.get("composite-op") or CompositeOp.SRC_OVER.value,
            opacity=_get(element, "opacity", _to_float, 1.0),
            visibility=Visibility.from_attribute(element.get("visibility")),
            selected=_get(element, "selected", _to_bool, False),
            edit_locked=_get(element, "edit-locked", _to_bool, False),
        )


@define(repr=False)
class StackElement(BaseElement):
    """
    Record of a ``<stack>`` element.

    .. py:attribute:: children

        List of :py:class:`LayerElement` and :py:class:`StackElement` in
        back-to-front order.

    .. py:attribute:: isolation

        See :py:class:`~ora_tools.constants.Isolation`.
    """

    name: str = ""
    x: int = 0
    y: int = 0
    composite_op: str = CompositeOp.SRC_OVER.value
    opacity: float = field(default=1.0, converter=_clamp_opacity)
    visibility: Visibility = Visibility.VISIBLE
    isolation: Isolation = Isolation.AUTO
    selected: bool = False
    children: list[Union[LayerElement, "StackElement"]] = field(factory=list)

    @classmethod
    def from_xml(cls, element: ElementTree.Element) -> "StackElement":
        children: list[Union[LayerElement, StackElement]] = []
        for child in reversed(list(element)):
            if child.tag == "layer":
                children.append(LayerElement.from_xml(child))
            elif child.tag == "stack":
                children.append(StackElement.from_xml(child))
            else:
                logger.debug("Ignore <%s> element in stack", child.tag)
        return cls(
            name=element.get("name", ""),
            x=_get(element, "x", _to_int, 0),
            y=_get(element, "y", _to_int, 0),
            composite_op=element.get("composite-op") or CompositeOp.SRC_OVER.value,
            opacity=_get(element, "opacity", _to_float, 1.0),
            visibility=Visibility.from_attribute(element.get("visibility")),
            isolation=_get(element, "isolation", _to_isolation, Isolation.AUTO),
            selected=_get(element, "selected", _to_bool, False),
            children=children,
        )

    def layers(self) -> list[LayerElement]:
        """All the layer records below this stack, back-to-front."""
        result = []
        for child in self.children:
            if isinstance(child, StackElement):
                result.extend(child.layers())
            else:
                result.append(child)
        return result


@define(repr=False)
class ImageElement(BaseElement):
    """
    Record of the root ``<image>`` element.

    .. py:attribute:: width
    .. py:attribute:: height

        Canvas size, 0 when the attribute is absent.

    .. py:attribute:: version
    .. py:attribute:: xres
    .. py:attribute:: yres
    .. py:attribute:: stack

        The top-level :py:class:`StackElement`.
    """

    width: int = 0
    height: int = 0
    version: str = "0.0.1"
    xres: int = 72
    yres: int = 72
    stack: StackElement = field(factory=StackElement)

    @classmethod
    def from_xml(cls, element: ElementTree.Element) -> "ImageElement":
        if element.tag != "image":
            raise MalformedArchive(
                "Expected <image> root element, got <%s>" % element.tag
            )
        stack = element.find("stack")
        if stack is None:
            raise MalformedArchive("stack.xml has no top-level <stack> element")
        return cls(
            width=max(_get(element, "w", _to_int, 0), 0),
            height=max(_get(element, "h", _to_int, 0), 0),
            version=element.get("version", "0.0.1"),
            xres=_get(element, "xres", _to_int, 72),
            yres=_get(element, "yres", _to_int, 72),
            stack=StackElement.from_xml(stack),
        )


def parse_stack(text: Union[str, bytes], source: Optional[str] = None) -> ImageElement:
    """
    Parse ``stack.xml`` contents.

    :param text: XML document.
    :param source: Optional name used in error messages.
    :return: :py:class:`ImageElement`
    :raises MalformedArchive: If the XML is invalid or has an unexpected
        structure.
    """
    try:
        root = ElementTree.fromstring(text)
    except ElementTree.ParseError as e:
        raise MalformedArchive(
            "Failed to parse %s: %s" % (source or "stack.xml", e)
        ) from e
    return ImageElement.from_xml(root)
