import logging

import numpy as np
import pytest

from ora_tools import OpenRasterImage
from ora_tools.api.layers import Group, PixelLayer
from ora_tools.config import Config
from ora_tools.constants import Isolation, Visibility

from ..utils import make_archive, solid, stack_xml

logger = logging.getLogger(__name__)

RED = (255, 0, 0, 255)
GREEN = (0, 255, 0, 255)


@pytest.fixture
def image() -> OpenRasterImage:
    data = make_archive(
        {
            "stack.xml": stack_xml(
                [
                    {"name": "Hidden", "src": "data/hidden.png", "visibility": "hidden"},
                    (
                        {"name": "Group", "x": "1", "y": "2", "opacity": "0.5"},
                        [
                            {"name": "Inner", "src": "data/inner.png", "x": "1"},
                            (
                                {"name": "Folded", "visibility": "hidden"},
                                [{"name": "Deep", "src": "data/deep.png"}],
                            ),
                        ],
                    ),
                    {
                        "name": "Base",
                        "src": "data/base.png",
                        "composite-op": "svg:multiply",
                        "opacity": "0.75",
                        "selected": "true",
                        "edit-locked": "true",
                    },
                ],
                size=(6, 6),
            ),
            "data/hidden.png": solid((6, 6), GREEN),
            "data/inner.png": solid((2, 2), RED),
            "data/deep.png": solid((1, 1), RED),
            "data/base.png": solid((6, 6), GREEN),
        }
    )
    return OpenRasterImage.open(data)


def test_pixel_layer_properties(image: OpenRasterImage) -> None:
    base = image[0]
    assert isinstance(base, PixelLayer)
    assert base.name == "Base"
    assert base.kind == "pixel"
    assert base.src == "data/base.png"
    assert base.composite_op == "svg:multiply"
    assert base.opacity == 0.75
    assert base.selected is True
    assert base.edit_locked is True
    assert base.visibility == Visibility.VISIBLE
    assert base.visible and base.is_visible()
    assert base.parent is image
    assert base.size == (6, 6)
    assert base.bbox == (0, 0, 6, 6)
    assert not base.is_group()
    assert base.has_pixels()


def test_group_properties(image: OpenRasterImage) -> None:
    group = image[1]
    assert isinstance(group, Group)
    assert group.kind == "group"
    assert group.is_group()
    assert group.isolation == Isolation.AUTO
    assert len(group) == 2
    assert [layer.name for layer in group] == ["Folded", "Inner"]
    assert group.opacity == 0.5


def test_group_offset_translates_children(image: OpenRasterImage) -> None:
    group = image[1]
    inner = group[1]
    assert inner.offset == (2, 2)
    assert inner.bbox == (2, 2, 4, 4)
    assert group.bbox == (2, 2, 4, 4)
    deep = image.find("Deep")
    assert deep is not None
    assert deep.offset == (1, 2)


def test_visibility_inherited(image: OpenRasterImage) -> None:
    hidden = image.find("Hidden")
    assert hidden is not None
    assert hidden.visibility == Visibility.HIDDEN
    assert not hidden.visible
    assert not hidden.is_visible()

    deep = image.find("Deep")
    assert deep is not None
    assert deep.visible
    assert not deep.is_visible()


def test_descendants(image: OpenRasterImage) -> None:
    assert [layer.name for layer in image.descendants()] == [
        "Base",
        "Group",
        "Folded",
        "Deep",
        "Inner",
        "Hidden",
    ]
    assert [layer.name for layer in image.findall("Inner")] == ["Inner"]


def test_is_isolated(image: OpenRasterImage) -> None:
    group = image[1]
    assert group.is_isolated()  # opacity < 1
    folded = image.find("Folded")
    assert isinstance(folded, Group)
    assert not folded.is_isolated()


def test_is_isolated_with_blend_override() -> None:
    data = make_archive(
        {
            "stack.xml": stack_xml(
                [({"name": "Group", "composite-op": "svg:src-over"}, [])]
            )
        }
    )
    assert not OpenRasterImage.open(data)[0].is_isolated()

    config = Config(blend_overrides={"svg:src-over": lambda Cb, Cs: Cb})
    assert OpenRasterImage.open(data, config=config)[0].is_isolated()


def test_layer_numpy(image: OpenRasterImage) -> None:
    inner = image.find("Inner")
    assert inner is not None
    array = inner.numpy()
    assert array.shape == (2, 2, 4)
    assert array.dtype == np.float32
    assert np.allclose(array[0, 0], (1.0, 0.0, 0.0, 1.0))
    assert inner.numpy("color").shape == (2, 2, 3)
    assert inner.numpy("shape").shape == (2, 2, 1)


def test_layer_composite(image: OpenRasterImage) -> None:
    inner = image.find("Inner")
    assert inner is not None
    result = inner.composite()
    assert result is not None
    assert result.size == (2, 2)
    assert result.getpixel((0, 0)) == RED

    group = image[1]
    result = group.composite()
    assert result is not None
    assert result.size == (2, 2)
    # Group opacity 0.5 applied to the red layer.
    assert result.getpixel((0, 0)) == (255, 0, 0, 128)


def test_layer_composite_without_pixels() -> None:
    data = make_archive({"stack.xml": stack_xml([{"name": "Empty", "src": "x.png"}])})
    layer = OpenRasterImage.open(data)[0]
    assert layer.composite() is None
    assert layer.numpy() is None
    assert layer.bbox == (0, 0, 0, 0)


def test_get_pixel_buffer(image: OpenRasterImage) -> None:
    inner = image.find("Inner")
    assert isinstance(inner, PixelLayer)
    buffer = inner.get_pixel_buffer()
    assert buffer.shape == (6, 6, 4)
    assert buffer.dtype == np.uint8
    assert tuple(buffer[2, 2]) == RED
    assert tuple(buffer[3, 3]) == RED
    assert tuple(buffer[1, 1]) == (0, 0, 0, 0)
    assert tuple(buffer[4, 4]) == (0, 0, 0, 0)


def test_get_pixel_buffer_clipped(image: OpenRasterImage) -> None:
    inner = image.find("Inner")
    assert isinstance(inner, PixelLayer)
    buffer = inner.get_pixel_buffer(3, 3)
    assert buffer.shape == (3, 3, 4)
    assert tuple(buffer[2, 2]) == RED
    assert inner.get_pixel_buffer(2, 2).sum() == 0


def test_repr(image: OpenRasterImage) -> None:
    assert repr(image[0]) == "PixelLayer('Base' size=6x6 op=svg:multiply opacity=0.75)"
    assert repr(image[2]) == "PixelLayer('Hidden' size=6x6 invisible)"
    assert repr(image[1]) == "Group('Group')"


def test_is_isolated_with_render_config(image: OpenRasterImage) -> None:
    folded = image.find("Folded")
    assert isinstance(folded, Group)
    config = Config(blend_overrides={"svg:src-over": lambda Cb, Cs: Cb})
    assert not folded.is_isolated()
    assert folded.is_isolated(config)
    assert not folded.is_isolated(Config())
