"""
Composite module for layer rendering and blending.

This subpackage provides the rendering engine that flattens an OpenRaster
layer stack into a single raster. It implements the OpenRaster composite
operators: the separable and non-separable blend modes, and the Porter-Duff
operators.

Key modules:

- :py:mod:`ora_tools.composite.composite`: Main compositing functions
- :py:mod:`ora_tools.composite.blend`: Blend mode registry and implementations

Example usage::

    from ora_tools import OpenRasterImage

    image = OpenRasterImage.open('drawing.ora')

    # Composite entire document to PIL Image, ignoring mergedimage.png
    flat = image.composite(prefer_precomposited=False)
    flat.save('output.png')

    # Composite specific layer
    layer_image = image[0].composite()

The compositing engine uses NumPy arrays for pixel manipulation. Layers are
painted strictly back-to-front; blending with straight alpha is not
commutative, so the order matters.
"""

from ora_tools.composite.composite import composite, composite_pil

__all__ = [
    "composite",
    "composite_pil",
]
