import logging
from typing import Any, Optional

import imagehash
import numpy as np
import pytest
from PIL import Image

from ora_tools import OpenRasterImage
from ora_tools.composite import composite, composite_pil
from ora_tools.composite.composite import Compositor, intersect, paste
from ora_tools.config import Config

from ..utils import make_archive, make_ora, solid, stack_xml

logger = logging.getLogger(__name__)

GRAY = (128, 128, 128, 255)
RED = (255, 0, 0, 255)
TRANSPARENT = (0, 0, 0, 0)


def _mse(x: np.ndarray, y: np.ndarray) -> float:
    return float(np.nanmean((x - y) ** 2))


def _random_image(size: tuple[int, int], seed: int, opaque: bool = True) -> Image.Image:
    rng = np.random.default_rng(seed)
    array = rng.integers(0, 256, size=(size[1], size[0], 4), dtype=np.uint8)
    if opaque:
        array[:, :, 3] = 255
    return Image.fromarray(array)


def _open(
    layers: list[tuple[dict[str, Any], Optional[Image.Image]]],
    size: tuple[int, int] = (4, 4),
    **kwargs: Any,
) -> OpenRasterImage:
    return OpenRasterImage.open(make_ora(layers, size=size, **kwargs))


def _render(image: OpenRasterImage) -> np.ndarray:
    return np.asarray(image.composite(prefer_precomposited=False))


def test_single_opaque_layer_is_identity() -> None:
    raster = _random_image((8, 5), seed=0)
    image = _open([({"name": "A", "src": "data/a.png"}, raster)], size=(8, 5))
    assert np.array_equal(_render(image), np.asarray(raster))


def test_swapping_layers_changes_result() -> None:
    red = solid((4, 4), (255, 0, 0, 128))
    blue = solid((4, 4), (0, 0, 255, 128))
    first = _open(
        [({"name": "R", "src": "r.png"}, red), ({"name": "B", "src": "b.png"}, blue)]
    )
    second = _open(
        [({"name": "B", "src": "b.png"}, blue), ({"name": "R", "src": "r.png"}, red)]
    )
    result1, result2 = _render(first), _render(second)
    assert not np.array_equal(result1, result2)
    # The top layer dominates.
    assert result1[0, 0, 0] > result1[0, 0, 2]
    assert result2[0, 0, 2] > result2[0, 0, 0]


def test_hidden_layers_are_excluded() -> None:
    base = ({"name": "Base", "src": "base.png"}, solid((4, 4), GRAY))
    hidden = (
        {"name": "Hidden", "src": "hidden.png", "visibility": "hidden"},
        solid((4, 4), RED),
    )
    with_hidden = _open([hidden, base])
    without = _open([base])
    assert np.array_equal(_render(with_hidden), _render(without))
    assert with_hidden.composite(prefer_precomposited=False).getpixel((0, 0)) == GRAY


def test_other_visibility_renders() -> None:
    image = _open(
        [({"name": "A", "src": "a.png", "visibility": "collapsed"}, solid((4, 4), RED))]
    )
    assert image.composite().getpixel((0, 0)) == RED


def test_hidden_group_hides_children() -> None:
    data = make_archive(
        {
            "stack.xml": stack_xml(
                [({"name": "G", "visibility": "hidden"}, [{"name": "A", "src": "a.png"}])]
            ),
            "a.png": solid((4, 4), RED),
        }
    )
    image = OpenRasterImage.open(data)
    assert image.composite().getpixel((0, 0)) == TRANSPARENT


@pytest.mark.parametrize("op", ["svg:unknown", "foo", "source-over"])
def test_unknown_composite_op_is_source_over(op: str) -> None:
    layers = [
        ({"name": "Top", "src": "top.png", "opacity": "0.6"}, _random_image((4, 4), 1)),
        ({"name": "Base", "src": "base.png"}, _random_image((4, 4), 2)),
    ]
    reference = _open(layers)
    layers[0][0]["composite-op"] = op
    unknown = _open(layers)
    assert np.array_equal(_render(reference), _render(unknown))


def test_layer_offset_and_clipping() -> None:
    image = _open(
        [
            ({"name": "A", "src": "a.png", "x": "3", "y": "-1"}, solid((2, 2), RED)),
        ]
    )
    result = image.composite()
    assert result.size == (4, 4)
    assert result.getpixel((3, 0)) == RED
    assert result.getpixel((2, 0)) == TRANSPARENT
    assert result.getpixel((3, 1)) == TRANSPARENT


def test_layer_outside_canvas() -> None:
    image = _open([({"name": "A", "src": "a.png", "x": "10"}, solid((2, 2), RED))])
    assert image.composite().getextrema()[3] == (0, 0)


def test_opacity() -> None:
    image = _open(
        [
            ({"name": "Top", "src": "top.png", "opacity": "0.5"}, solid((4, 4), RED)),
            ({"name": "Base", "src": "base.png"}, solid((4, 4), (0, 0, 255, 255))),
        ]
    )
    assert image.composite().getpixel((0, 0)) == (128, 0, 128, 255)


def test_zero_opacity() -> None:
    image = _open(
        [
            ({"name": "Top", "src": "top.png", "opacity": "0"}, solid((4, 4), RED)),
            ({"name": "Base", "src": "base.png"}, solid((4, 4), GRAY)),
        ]
    )
    assert image.composite().getpixel((0, 0)) == GRAY


def test_multiply() -> None:
    image = _open(
        [
            (
                {"name": "Top", "src": "top.png", "composite-op": "svg:multiply"},
                solid((4, 4), (255, 128, 0, 255)),
            ),
            ({"name": "Base", "src": "base.png"}, solid((4, 4), (128, 255, 255, 255))),
        ]
    )
    assert image.composite().getpixel((0, 0)) == (128, 128, 0, 255)


def test_dst_out_erases_backdrop() -> None:
    image = _open(
        [
            (
                {"name": "Eraser", "src": "eraser.png", "composite-op": "svg:dst-out"},
                solid((2, 4), RED),
            ),
            ({"name": "Base", "src": "base.png"}, solid((4, 4), GRAY)),
        ]
    )
    result = image.composite()
    assert result.getpixel((0, 0)) == TRANSPARENT
    assert result.getpixel((3, 0)) == GRAY


def test_blend_overrides() -> None:
    layers = [
        (
            {"name": "Top", "src": "top.png", "composite-op": "svg:multiply"},
            solid((4, 4), RED),
        ),
        ({"name": "Base", "src": "base.png"}, solid((4, 4), GRAY)),
    ]
    image = _open(layers)
    config = Config(blend_overrides={"svg:multiply": lambda Cb, Cs: Cb})
    assert image.composite(config=config).getpixel((0, 0)) == GRAY
    assert image.composite().getpixel((0, 0)) == (128, 0, 0, 255)


def _group_document(isolation: str) -> OpenRasterImage:
    data = make_archive(
        {
            "stack.xml": stack_xml(
                [
                    (
                        {"name": "Group", "isolation": isolation},
                        [
                            {
                                "name": "Red",
                                "src": "red.png",
                                "composite-op": "svg:multiply",
                            }
                        ],
                    ),
                    {"name": "Base", "src": "base.png"},
                ]
            ),
            "red.png": solid((4, 4), RED),
            "base.png": solid((4, 4), GRAY),
        }
    )
    return OpenRasterImage.open(data)


def test_pass_through_group() -> None:
    image = _group_document("auto")
    assert not image[1].is_isolated()
    assert image.composite().getpixel((0, 0)) == (128, 0, 0, 255)


def test_render_config_decides_isolation() -> None:
    image = _group_document("auto")
    config = Config(blend_overrides={"svg:src-over": lambda Cb, Cs: Cb})
    assert not image[1].is_isolated()
    assert image[1].is_isolated(config)
    # Isolated, the multiply child no longer reaches the base layer.
    assert image.composite(config=config).getpixel((0, 0)) == GRAY
    assert image.composite().getpixel((0, 0)) == (128, 0, 0, 255)


def test_isolated_group() -> None:
    image = _group_document("isolate")
    assert image[1].is_isolated()
    assert image.composite().getpixel((0, 0)) == RED


def test_group_opacity() -> None:
    data = make_archive(
        {
            "stack.xml": stack_xml(
                [
                    (
                        {"name": "Group", "opacity": "0.5"},
                        [
                            {"name": "A", "src": "a.png"},
                            {"name": "B", "src": "b.png"},
                        ],
                    )
                ]
            ),
            "a.png": solid((4, 4), RED),
            "b.png": solid((4, 4), GRAY),
        }
    )
    image = OpenRasterImage.open(data)
    # Children are flattened first, so the bottom child does not show through.
    assert image.composite().getpixel((0, 0)) == (255, 0, 0, 128)


def test_group_offset() -> None:
    data = make_archive(
        {
            "stack.xml": stack_xml(
                [({"name": "Group", "x": "2", "y": "1"}, [{"name": "A", "src": "a.png"}])]
            ),
            "a.png": solid((1, 1), RED),
        }
    )
    result = OpenRasterImage.open(data).composite()
    assert result.getpixel((2, 1)) == RED
    assert result.getpixel((0, 0)) == TRANSPARENT


def test_layer_without_pixels_is_skipped() -> None:
    image = _open(
        [
            ({"name": "Missing", "src": "missing.png"}, None),
            ({"name": "Base", "src": "base.png"}, solid((4, 4), GRAY)),
        ]
    )
    assert image.composite().getpixel((0, 0)) == GRAY


def test_composite_arrays() -> None:
    image = _open([({"name": "A", "src": "a.png", "x": "2"}, solid((2, 4), RED))])
    color, alpha = composite(image)
    assert color.shape == (4, 4, 3)
    assert alpha.shape == (4, 4, 1)
    assert color.dtype == np.float32
    assert np.allclose(alpha[:, 2:], 1.0)
    assert np.allclose(alpha[:, :2], 0.0)

    color, alpha = composite(image, color=1.0, alpha=1.0, viewport=(1, 0, 3, 2))
    assert color.shape == (2, 2, 3)
    assert np.allclose(color[:, 0], 1.0)
    assert np.allclose(color[:, 1], (1.0, 0.0, 0.0))
    assert np.allclose(alpha, 1.0)


def test_composite_pil() -> None:
    image = _open([({"name": "A", "src": "a.png"}, solid((4, 4), RED))])
    result = composite_pil(image, 0.0, 0.0, None, None)
    assert result is not None
    assert result.mode == "RGBA"
    assert result.getpixel((1, 1)) == RED


def test_compositor_layer_filter() -> None:
    image = _open(
        [
            ({"name": "Top", "src": "top.png"}, solid((4, 4), RED)),
            ({"name": "Base", "src": "base.png"}, solid((4, 4), GRAY)),
        ]
    )
    compositor = Compositor(image.viewbox, layer_filter=lambda l: l.name == "Base")
    for layer in image:
        compositor.apply(layer)
    color, alpha = compositor.finish()
    assert np.allclose(color, 128 / 255)
    assert np.allclose(alpha, 1.0)


def test_intersect() -> None:
    assert intersect((0, 0, 4, 4), (2, 2, 6, 6)) == (2, 2, 4, 4)
    assert intersect((0, 0, 4, 4), (4, 0, 6, 4)) == (0, 0, 0, 0)
    assert intersect((0, 0, 0, 0), (0, 0, 4, 4)) == (0, 0, 0, 0)


def test_paste() -> None:
    values = np.ones((2, 2, 1), dtype=np.float32)
    view = paste((0, 0, 3, 3), (2, 2, 4, 4), values)
    assert view.shape == (3, 3, 1)
    assert view.sum() == 1.0
    assert view[2, 2, 0] == 1.0
    assert paste((0, 0, 2, 2), (5, 5, 6, 6), values).sum() == 0.0


def _gradient(size: tuple[int, int]) -> Image.Image:
    x = np.linspace(0, 255, size[0], dtype=np.float32)
    array = np.zeros((size[1], size[0], 4), dtype=np.uint8)
    array[:, :, 0] = x.astype(np.uint8)
    array[:, :, 1] = (255 - x).astype(np.uint8)
    array[:, :, 2] = 96
    array[:, :, 3] = 255
    return Image.fromarray(array)


def _flatten_with_pil(layers: list[Image.Image], size: tuple[int, int]) -> Image.Image:
    result = Image.new("RGBA", size)
    for layer in layers:
        result = Image.alpha_composite(result, layer)
    return result


def test_composite_quality_against_merged_image() -> None:
    size = (32, 24)
    back = _gradient(size)
    middle = Image.new("RGBA", size)
    middle.paste((200, 40, 40, 160), (4, 4, 20, 16))
    top = Image.new("RGBA", size)
    top.paste((30, 60, 220, 96), (12, 8, 30, 22))
    merged = _flatten_with_pil([back, middle, top], size)
    image = _open(
        [
            ({"name": "Top", "src": "top.png"}, top),
            ({"name": "Middle", "src": "middle.png"}, middle),
            ({"name": "Back", "src": "back.png"}, back),
        ],
        size=size,
        merged=merged,
    )
    reference = image.composite()
    rendered = image.composite(prefer_precomposited=False)
    assert np.array_equal(np.asarray(reference), np.asarray(merged))

    error = _mse(
        np.asarray(reference, dtype=np.float32) / 255.0,
        np.asarray(rendered, dtype=np.float32) / 255.0,
    )
    logger.debug("MSE %g", error)
    assert error <= 1e-4

    hash1 = imagehash.average_hash(reference.convert("RGB"))
    hash2 = imagehash.average_hash(rendered.convert("RGB"))
    assert hash1 - hash2 <= 6
