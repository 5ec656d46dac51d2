"""
Registry pattern utility for creating lookup tables.

This module provides the ``new_registry`` function which creates a registry
dictionary and a decorator for registering handlers. The blend mode tables
in :py:mod:`ora_tools.composite.blend` are built with it.

Usage example::

    from ora_tools.registry import new_registry

    FUNCS, register = new_registry(attribute='composite_op')

    @register('svg:multiply')
    def multiply(Cb, Cs):
        return Cb * Cs

    FUNCS['svg:multiply'] is multiply  # True
"""

from typing import Any, Callable, Tuple, TypeVar, Union

T = TypeVar("T")


def new_registry(attribute: Union[str, None] = None) -> Tuple[dict, Callable]:
    """
    Returns an empty dict and a @register decorator.

    The register decorator accepts one or more keys, so a single function can
    be registered under several aliases.

    :param attribute: Optional attribute name to set on registered objects.
                     The first key will be stored as this attribute.
    :return: Tuple of (registry_dict, register_decorator)
    """
    registry = {}

    def register(*keys: Any) -> Callable[[Callable[..., T]], Callable[..., T]]:
        def decorator(func: Callable[..., T]) -> Callable[..., T]:
            for key in keys:
                registry[key] = func
            if attribute:
                setattr(func, attribute, keys[0])
            return func

        return decorator

    return registry, register
