"""
Blend mode implementations.

Two lookup tables resolve a ``composite-op`` name:

- :py:data:`BLEND_FUNC` maps a name to a blend function ``B(Cb, Cs)`` that
  mixes the backdrop colour ``Cb`` with the source colour ``Cs``. Both are
  straight (non-premultiplied) float arrays of shape ``(height, width, 3)``
  in [0, 1]; the result has the same shape. Separable functions work per
  channel, non-separable ones (hue, saturation, color, luminosity) need all
  three RGB channels.
- :py:data:`COMPOSITE_FUNC` maps a name to a Porter-Duff operator
  ``F(alpha_s, alpha_b) -> (Fa, Fb)`` giving the source and backdrop
  fractions.

Names are the OpenRaster ``svg:`` operators, also accepted without the
prefix. Blend modes use source-over compositing, Porter-Duff operators use
the normal blend function. Anything else resolves to source-over; an
unknown name is never an error.

See https://www.w3.org/TR/compositing-1/ for the formulas.
"""

import logging
from typing import Callable, Mapping, Optional, Union

import numpy as np

from ora_tools.constants import CompositeOp
from ora_tools.registry import new_registry

logger = logging.getLogger(__name__)

BlendFunc = Callable[[np.ndarray, np.ndarray], np.ndarray]
Alpha = Union[float, np.ndarray]
CompositeFunc = Callable[[Alpha, Alpha], tuple[Alpha, Alpha]]

BLEND_FUNC, _register_blend = new_registry(attribute="composite_op")
COMPOSITE_FUNC, _register_composite = new_registry(attribute="composite_op")


def _names(op: CompositeOp) -> tuple[str, str]:
    return op.value, op.value.split(":", 1)[1]


# Separable blend functions
@_register_blend(*_names(CompositeOp.SRC_OVER), "source-over")
def normal(Cb, Cs):
    return Cs


@_register_blend(*_names(CompositeOp.MULTIPLY))
def multiply(Cb, Cs):
    return Cb * Cs


@_register_blend(*_names(CompositeOp.SCREEN))
def screen(Cb, Cs):
    return Cb + Cs - (Cb * Cs)


@_register_blend(*_names(CompositeOp.OVERLAY))
def overlay(Cb, Cs):
    return hard_light(Cs, Cb)


@_register_blend(*_names(CompositeOp.DARKEN))
def darken(Cb, Cs):
    return np.minimum(Cb, Cs)


@_register_blend(*_names(CompositeOp.LIGHTEN))
def lighten(Cb, Cs):
    return np.maximum(Cb, Cs)


@_register_blend(*_names(CompositeOp.COLOR_DODGE))
def color_dodge(Cb, Cs):
    B = np.zeros_like(Cb, dtype=np.float32)
    B[Cs == 1] = 1
    B[Cb == 0] = 0
    index = (Cs != 1) & (Cb != 0)
    B[index] = np.minimum(1, Cb[index] / (1 - Cs[index]))
    return B


@_register_blend(*_names(CompositeOp.COLOR_BURN))
def color_burn(Cb, Cs):
    B = np.zeros_like(Cb, dtype=np.float32)
    B[Cb == 1] = 1
    index = (Cb != 1) & (Cs != 0)
    B[index] = 1 - np.minimum(1, (1 - Cb[index]) / Cs[index])
    return B


@_register_blend(*_names(CompositeOp.HARD_LIGHT))
def hard_light(Cb, Cs):
    index = Cs > 0.5
    B = multiply(Cb, 2 * Cs)
    B[index] = screen(Cb, 2 * Cs - 1)[index]
    return B


@_register_blend(*_names(CompositeOp.SOFT_LIGHT))
def soft_light(Cb, Cs):
    index = Cb <= 0.25
    index_not = ~index
    D = np.zeros_like(Cb, dtype=np.float32)
    D[index] = ((16 * Cb[index] - 12) * Cb[index] + 4) * Cb[index]
    D[index_not] = np.sqrt(Cb[index_not])

    index = Cs <= 0.5
    index_not = ~index
    B = np.zeros_like(Cb, dtype=np.float32)
    B[index] = Cb[index] - (1 - 2 * Cs[index]) * Cb[index] * (1 - Cb[index])
    B[index_not] = Cb[index_not] + (2 * Cs[index_not] - 1) * (
        D[index_not] - Cb[index_not]
    )
    return B


@_register_blend(*_names(CompositeOp.DIFFERENCE))
def difference(Cb, Cs):
    return np.abs(Cb - Cs)


@_register_blend(*_names(CompositeOp.EXCLUSION))
def exclusion(Cb, Cs):
    return Cb + Cs - 2 * Cb * Cs


# Non-separable blend functions, RGB only.
@_register_blend(*_names(CompositeOp.HUE))
def hue(Cb, Cs):
    return _set_lum(_set_sat(Cs, _sat(Cb)), _lum(Cb))


@_register_blend(*_names(CompositeOp.SATURATION))
def saturation(Cb, Cs):
    return _set_lum(_set_sat(Cb, _sat(Cs)), _lum(Cb))


@_register_blend(*_names(CompositeOp.COLOR))
def color(Cb, Cs):
    return _set_lum(Cs, _lum(Cb))


@_register_blend(*_names(CompositeOp.LUMINOSITY))
def luminosity(Cb, Cs):
    return _set_lum(Cb, _lum(Cs))


# Helper functions from PDF reference.
def _lum(C):
    return 0.3 * C[:, :, 0:1] + 0.59 * C[:, :, 1:2] + 0.11 * C[:, :, 2:3]


def _set_lum(C, l):
    d = l - _lum(C)
    return _clip_color(C + d)


def _clip_color(C):
    L = np.repeat(_lum(C), 3, axis=2)
    C_min = np.repeat(np.min(C, axis=2, keepdims=True), 3, axis=2)
    C_max = np.repeat(np.max(C, axis=2, keepdims=True), 3, axis=2)

    with np.errstate(divide="ignore", invalid="ignore"):
        index = C_min < 0.0
        L_i = L[index]
        C[index] = L_i + (C[index] - L_i) * L_i / (L_i - C_min[index])

        index = C_max > 1.0
        L_i = L[index]
        C[index] = L_i + (C[index] - L_i) * (1 - L_i) / (C_max[index] - L_i)

    # For numerical stability.
    C[~np.isfinite(C)] = 0
    return np.clip(C, 0.0, 1.0)


def _sat(C):
    return np.max(C, axis=2, keepdims=True) - np.min(C, axis=2, keepdims=True)


def _set_sat(C, s):
    C_max = np.max(C, axis=2, keepdims=True)
    C_min = np.min(C, axis=2, keepdims=True)
    delta = C_max - C_min
    # Maps min to 0, max to s and mid linearly in between.
    with np.errstate(divide="ignore", invalid="ignore"):
        B = np.where(delta > 0, (C - C_min) * s / delta, 0.0)
    return B.astype(np.float32)


# Porter-Duff operators
@_register_composite(*_names(CompositeOp.SRC_OVER), "source-over")
def src_over(alpha_s, alpha_b):
    return 1.0, 1.0 - alpha_s


@_register_composite(*_names(CompositeOp.PLUS))
def plus(alpha_s, alpha_b):
    return 1.0, 1.0


@_register_composite(*_names(CompositeOp.DST_IN))
def dst_in(alpha_s, alpha_b):
    return 0.0, alpha_s


@_register_composite(*_names(CompositeOp.DST_OUT))
def dst_out(alpha_s, alpha_b):
    return 0.0, 1.0 - alpha_s


@_register_composite(*_names(CompositeOp.SRC_ATOP))
def src_atop(alpha_s, alpha_b):
    return alpha_b, 1.0 - alpha_s


@_register_composite(*_names(CompositeOp.DST_ATOP))
def dst_atop(alpha_s, alpha_b):
    return 1.0 - alpha_b, alpha_s


def get_blend_func(
    composite_op: str, overrides: Optional[Mapping[str, BlendFunc]] = None
) -> BlendFunc:
    """
    Resolve the blend function of a ``composite-op``.

    :param composite_op: operator name, e.g. ``'svg:multiply'``.
    :param overrides: optional mapping consulted before the built-in table.
    :return: blend function; :py:func:`normal` for Porter-Duff operators and
        unknown names.
    """
    if overrides and composite_op in overrides:
        return overrides[composite_op]
    func = BLEND_FUNC.get(composite_op)
    if func is not None:
        return func
    if composite_op not in COMPOSITE_FUNC:
        logger.debug("Unknown composite op %r, using source-over", composite_op)
    return normal


def get_composite_func(composite_op: str) -> CompositeFunc:
    """
    Resolve the Porter-Duff operator of a ``composite-op``.

    :return: operator function; :py:func:`src_over` for blend modes and
        unknown names.
    """
    return COMPOSITE_FUNC.get(composite_op, src_over)


def blend(
    color_s: np.ndarray,
    alpha_s: Alpha,
    color_b: np.ndarray,
    alpha_b: Alpha,
    opacity: float = 1.0,
    blend_fn: BlendFunc = normal,
    composite_fn: CompositeFunc = src_over,
) -> tuple[np.ndarray, np.ndarray]:
    """
    Composite a source onto a backdrop.

    Colours are straight; alphas have shape ``(height, width, 1)`` or are
    scalars. Opacity scales the source alpha before mixing.

    :return: tuple of (color, alpha) of the result.
    """
    alpha_s = alpha_s * opacity
    B = np.clip(blend_fn(color_b, color_s), 0.0, 1.0)
    mixed = (1.0 - alpha_b) * color_s + alpha_b * B
    fa, fb = composite_fn(alpha_s, alpha_b)
    alpha = np.clip(alpha_s * fa + alpha_b * fb, 0.0, 1.0)
    color = np.clip(
        divide(alpha_s * fa * mixed + alpha_b * fb * color_b, alpha), 0.0, 1.0
    )
    return color.astype(np.float32), np.asarray(alpha, dtype=np.float32)


def divide(a: np.ndarray, b: Alpha) -> np.ndarray:
    """Un-premultiply ``a`` by ``b``; where ``b`` is zero the result is 1."""
    with np.errstate(divide="ignore", invalid="ignore"):
        c = np.true_divide(a, b)
    return np.where(np.isfinite(c), c, 1.0)
