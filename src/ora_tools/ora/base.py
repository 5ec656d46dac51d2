"""
Base data structures intended for inheritance.

All the records parsed from ``stack.xml`` inherit from
:py:class:`~ora_tools.ora.base.BaseElement` and get attrs_ decoration to
have data fields.

.. _attrs: https://www.attrs.org/en/stable/index.html
"""

import logging
from enum import Enum
from typing import Any, Callable, Generator, Optional, TypeVar
from xml.etree import ElementTree

from attrs import fields, has

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="BaseElement")


class BaseElement:
    """
    Base element of ``stack.xml`` records.

    .. py:classmethod:: from_xml(cls, element)

        Build the record from a parsed :py:class:`xml.etree.ElementTree.Element`.
    """

    @classmethod
    def from_xml(cls: type[T], element: ElementTree.Element) -> T:
        raise NotImplementedError()

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("{name}(...)".format(name=self.__class__.__name__))
            return

        with p.group(2, "{name}(".format(name=self.__class__.__name__), ")"):
            p.breakable("")
            field_list = [f for f in fields(self.__class__) if f.repr]  # type: ignore[arg-type]
            for idx, field_item in enumerate(field_list):
                if idx:
                    p.text(",")
                    p.breakable()
                p.text("{field}=".format(field=field_item.name))
                value = getattr(self, field_item.name)
                if isinstance(value, Enum):
                    p.text(value.name)
                else:
                    p.pretty(value)
            p.breakable("")

    def _find(
        self, condition: Optional[Callable[[Any], bool]] = None
    ) -> Generator[Any, None, None]:
        """
        Traversal API intended for debugging.
        """
        for _ in BaseElement._traverse(self, condition):
            yield _

    @staticmethod
    def _traverse(
        element: Any, condition: Optional[Callable[[Any], bool]] = None
    ) -> Generator[Any, None, None]:
        """
        Traversal API intended for debugging.
        """
        if condition is None or condition(element):
            yield element
        if isinstance(element, list):
            for child in element:
                for _ in BaseElement._traverse(child, condition):
                    yield _
        elif has(element.__class__):
            for field_item in fields(element.__class__):
                child = getattr(element, field_item.name)
                for _ in BaseElement._traverse(child, condition):
                    yield _
