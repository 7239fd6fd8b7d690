from __future__ import annotations

from typing import Sequence


class FixturaError(Exception):
    """Base exception for fixtura."""


class ConfigError(FixturaError):
    pass


class SelectorError(ConfigError):
    """A selector did not resolve to exactly one assignable field."""
    pass


class UnsupportedShapeError(ConfigError):
    """
    Raised at configuration time when none of the shapes in the catalog can be
    assigned to the declared type of a collection field.

    The message explains the mechanism, lists every shape the catalog knows
    (parameterized with the element type) and names the declared field type.
    """

    def __init__(self, declared: object, element: object, shapes: Sequence[str]) -> None:
        self.declared = declared
        self.element = element
        self.shapes: list[str] = list(shapes)
        elem_name = _type_name(element)
        message = (
            f"From the {elem_name} values provided, the collection handler knows how to create "
            f"{', '.join(self.shapes)}. "
            "Your field type can't be populated by any of those types, and is thus unsupported "
            "by this method. Please use a standard .with_shared_ref() or .with_factory() call. "
            f"Field type was: {_type_name(declared)}"
        )
        super().__init__(message)


class FieldTypeError(FixturaError, TypeError):
    """A value cannot be assigned to a field because of its runtime type."""

    def __init__(self, value: object, field: str, declared: object) -> None:
        self.value_type = type(value)
        self.field = field
        self.declared = declared
        super().__init__(
            f"Value of type '{_type_name(type(value))}' cannot be used for assignment "
            f"to field '{field}' of type '{_type_name(declared)}'"
        )


class CollectionAddError(FixturaError):
    """
    Wraps any failure raised while adding to the existing collection of a field
    (missing collection, fixed-size container, ...). The original exception is
    chained as ``__cause__``.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Error occurred when attempting to add to the field '{field}'.")


class RegistryError(FixturaError):
    pass


class AmbiguousBuilderError(RegistryError):
    pass


def _type_name(tp: object) -> str:
    if isinstance(tp, type) and not getattr(tp, "__args__", None):
        return tp.__qualname__
    return repr(tp).replace("typing.", "")
