"""
Collection shapes.

Turns "some values" into whichever concrete container a field's declared type
requires. The catalog is walked in priority order and the first shape whose
class is assignable to the declared type is used; the selection is made once,
when the builder is configured, and the container itself is constructed again
on every build.
"""
from __future__ import annotations

import logging
from collections import UserList, deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Callable

from .errors import FieldTypeError, UnsupportedShapeError
from .typing_defs import element_hint, hint_class, strip_optional, value_matches_hint

__all__ = [
    "Stack",
    "ReadOnlyList",
    "ShapeEntry",
    "SHAPE_CATALOG",
    "CollectionMaterializer",
    "is_collection_hint",
]

_log = logging.getLogger("fixtura.shapes")


class Stack(list):
    """
    LIFO stack. Elements are kept bottom-first, so ``Stack([1, 2, 3])`` has
    ``3`` on top; iteration goes from the bottom up.
    """

    def push(self, item: Any) -> None:
        self.append(item)

    def peek(self) -> Any:
        if not self:
            raise IndexError("peek from empty stack")
        return self[-1]


class ReadOnlyList(Sequence):
    """Read-only view over a private tuple of elements."""

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[Any] = ()) -> None:
        self._items = tuple(items)

    def __getitem__(self, index):
        if isinstance(index, slice):
            return ReadOnlyList(self._items[index])
        return self._items[index]

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReadOnlyList):
            return self._items == other._items
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._items)

    def __repr__(self) -> str:
        return f"ReadOnlyList({list(self._items)!r})"


_ListIterator = type(iter([]))


@dataclass(frozen=True)
class ShapeEntry:
    """One concrete container shape and how to build it from an iterable."""
    name: str
    concrete: type
    construct: Callable[[Iterable[Any]], Any]

    def label(self, element: Any) -> str:
        elem = _elem_name(element)
        if self.concrete is tuple:
            return f"tuple[{elem}, ...]"
        return f"{self.name}[{elem}]"


# Constructors always go through a new list first: tuple(t) and frozenset(f)
# hand back the very same object when given one of their own type.
SHAPE_CATALOG: tuple[ShapeEntry, ...] = (
    ShapeEntry("list", list, lambda vals: list(vals)),
    ShapeEntry("iterator", _ListIterator, lambda vals: iter(list(vals))),
    ShapeEntry("tuple", tuple, lambda vals: tuple(list(vals))),
    ShapeEntry("set", set, lambda vals: set(vals)),
    ShapeEntry("frozenset", frozenset, lambda vals: frozenset(list(vals))),
    ShapeEntry("deque", deque, lambda vals: deque(vals)),
    ShapeEntry("Stack", Stack, lambda vals: Stack(vals)),
    ShapeEntry("UserList", UserList, lambda vals: UserList(list(vals))),
    ShapeEntry("ReadOnlyList", ReadOnlyList, lambda vals: ReadOnlyList(vals)),
)


def _elem_name(element: Any) -> str:
    if element is Any:
        return "Any"
    if isinstance(element, type) and not getattr(element, "__args__", None):
        return element.__qualname__
    return repr(element).replace("typing.", "")


def _assignable(concrete: type, declared: type) -> bool:
    try:
        return issubclass(concrete, declared)
    except TypeError:
        return False


def is_collection_hint(hint: Any) -> bool:
    """
    True when a declared type asks for a container of elements: an iterable
    class other than ``str``/``bytes``/mappings.
    """
    cls = hint_class(hint)
    if cls is None or cls in (str, bytes, bytearray, memoryview):
        return False
    if _assignable(cls, Mapping):
        return False
    return _assignable(cls, Iterable)


class CollectionMaterializer:
    """
    Shape selection for one declared field type.

    ``CollectionMaterializer.for_hint(hint)`` fails fast with
    UnsupportedShapeError when no catalog entry fits; ``materialize(values)``
    then builds a brand-new container holding `values`.
    """

    def __init__(self, declared: Any, entry: ShapeEntry, field: str = "<field>") -> None:
        self.declared = declared
        self.entry = entry
        self.element = element_hint(declared)
        self.field = field

    @classmethod
    def for_hint(
        cls,
        declared: Any,
        field: str = "<field>",
        catalog: Sequence[ShapeEntry] = SHAPE_CATALOG,
    ) -> "CollectionMaterializer":
        target = hint_class(declared)
        element = element_hint(declared)
        if target is not None:
            for entry in catalog:
                if _assignable(entry.concrete, target):
                    _log.debug("shape for %s (%r): %s", field, declared, entry.name)
                    return cls(declared, entry, field)
        raise UnsupportedShapeError(
            strip_optional(declared), element, [e.label(element) for e in catalog]
        )

    def materialize(self, values: Iterable[Any]) -> Any:
        elements = list(values)
        for item in elements:
            if not value_matches_hint(item, self.element):
                raise FieldTypeError(item, f"{self.field}[]", self.element)
        return self.entry.construct(elements)

    def __repr__(self) -> str:
        return f"CollectionMaterializer({self.field}: {self.entry.label(self.element)})"

