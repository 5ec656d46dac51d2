"""
High-level API for working with OpenRaster documents.

This subpackage provides the user-facing API. The main entry point is
:py:class:`~ora_tools.api.ora_image.OpenRasterImage`, which represents a
complete document and gives access to its layers, bundled images, and
rendering.

Key modules:

- :py:mod:`ora_tools.api.ora_image`: Main OpenRasterImage class
- :py:mod:`ora_tools.api.layers`: Layer hierarchy (Group, PixelLayer)
- :py:mod:`ora_tools.api.loader`: Asynchronous loading
- :py:mod:`ora_tools.api.numpy_io`: NumPy array conversion
- :py:mod:`ora_tools.api.pil_io`: PIL Image conversion
"""
