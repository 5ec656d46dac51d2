"""
Rendering and loading configuration.

A :py:class:`Config` is an immutable value passed to
:py:func:`~ora_tools.api.loader.load` or to
:py:meth:`~ora_tools.api.ora_image.OpenRasterImage.composite`. There is no
module-level state; every document carries its own config.

Example::

    from ora_tools import OpenRasterImage
    from ora_tools.config import Config

    def average(Cb, Cs):
        return (Cb + Cs) / 2

    config = Config(
        prefer_precomposited=False,
        blend_overrides={"svg:average": average},
    )
    image = OpenRasterImage.open("drawing.ora", config=config)
"""

from typing import Callable, Mapping, Optional

import numpy as np
from attrs import field, frozen

BlendFunc = Callable[[np.ndarray, np.ndarray], np.ndarray]


def _positive_or_none(instance: "Config", attribute, value: Optional[float]) -> None:
    if value is not None and value <= 0:
        raise ValueError("'%s' must be positive or None: %r" % (attribute.name, value))


@frozen
class Config:
    """
    Configuration value.

    .. py:attribute:: prefer_precomposited

        Return the bundled ``mergedimage.png`` instead of compositing layers
        when it is available. Default ``True``.

    .. py:attribute:: blend_overrides

        Mapping from ``composite-op`` names to blend functions ``B(Cb, Cs)``
        that take precedence over the built-in table. See
        :py:mod:`ora_tools.composite.blend` for the function contract.

    .. py:attribute:: decode_timeout

        Seconds allowed for each archive entry decode during loading, or
        ``None`` to wait indefinitely. Default ``30``.
    """

    prefer_precomposited: bool = True
    blend_overrides: Mapping[str, BlendFunc] = field(factory=dict, converter=dict, hash=False)
    decode_timeout: Optional[float] = field(default=30.0, validator=_positive_or_none)


DEFAULT_CONFIG = Config()
