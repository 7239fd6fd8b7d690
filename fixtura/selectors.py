"""
Property selectors.

A selector names exactly one assignable attribute of a class. Two spellings are
accepted::

    "colour"                  # the attribute name
    lambda monster: monster.colour

Lambdas are resolved once, at configuration time, by calling them on a probe
object that records attribute access. Anything other than a single attribute
read (nested access, arithmetic, method calls, returning something else) is a
``SelectorError``.
"""
from __future__ import annotations

import inspect
import keyword
import typing
from dataclasses import dataclass
from typing import Any

from .errors import FieldTypeError, SelectorError
from .typing_defs import Selector, type_hints_for_class, value_matches_hint

__all__ = ["Field", "resolve_field"]


@dataclass(frozen=True)
class Field:
    """A resolved selector: attribute `name` of `owner`, declared as `hint`."""
    owner: type
    name: str
    hint: Any

    @property
    def label(self) -> str:
        return f"{self.owner.__qualname__}.{self.name}"

    def get(self, instance: Any) -> Any:
        return getattr(instance, self.name)

    def set(self, instance: Any, value: Any) -> None:
        setattr(instance, self.name, value)

    def check(self, value: Any) -> Any:
        """Return `value` unchanged, or raise FieldTypeError if it cannot be assigned."""
        if not value_matches_hint(value, self.hint):
            raise FieldTypeError(value, self.label, self.hint)
        return value

    def assign(self, instance: Any, value: Any) -> None:
        self.set(instance, self.check(value))


class _Probe:
    """Records the attribute path a selector lambda walks through."""

    # name-mangled, so it cannot shadow a field of the selected class
    __slots__ = ("__path",)

    def __init__(self, path: tuple[str, ...] = ()) -> None:
        object.__setattr__(self, "_Probe__path", path)

    def __getattr__(self, name: str) -> "_Probe":
        if name.startswith("__") and name.endswith("__"):
            raise AttributeError(name)
        return _Probe(self.__path + (name,))

    def __setattr__(self, name: str, value: Any) -> None:
        raise TypeError("selectors must read a field, not assign to it")


def _path_of(owner: type, selector: Any) -> tuple[str, ...]:
    root = _Probe()
    try:
        out = selector(root)
    except Exception as exc:
        raise SelectorError(
            f"The selector passed for {owner.__qualname__} is not a simple field access. "
            "Pass fields ONLY in the form `lambda obj: obj.field` or as the field name. "
            f"Evaluating it failed with: {exc!r}"
        ) from exc
    path = out._Probe__path if isinstance(out, _Probe) else ()
    if not path:
        raise SelectorError(
            f"The selector passed for {owner.__qualname__} did not return a field of its "
            "argument. Pass fields ONLY in the form `lambda obj: obj.field`."
        )
    return path


def _check_assignable(owner: type, name: str, hints: dict[str, Any]) -> Any:
    """Return the static class attribute behind `name` (or None) once it is known to be settable."""
    if not name.isidentifier() or keyword.iskeyword(name):
        raise SelectorError(f"{name!r} is not a valid attribute name")
    raw = inspect.getattr_static(owner, name, None)
    # Classes without any annotation (attributes set in __init__) cannot be checked.
    if raw is None and hints and name not in hints:
        raise SelectorError(
            f"{owner.__qualname__} declares no field named {name!r} "
            f"(known fields: {', '.join(sorted(hints))})"
        )
    if isinstance(raw, property):
        if raw.fset is None:
            raise SelectorError(f"{owner.__qualname__}.{name} is a read-only property")
    elif isinstance(raw, (staticmethod, classmethod)) or inspect.isfunction(raw):
        raise SelectorError(f"{owner.__qualname__}.{name} is a method, not a field")
    return raw


def resolve_field(owner: type, selector: Selector) -> Field:
    """Resolve `selector` against `owner` into a Field carrying the declared type."""
    if isinstance(selector, str):
        name = selector
    elif callable(selector):
        path = _path_of(owner, selector)
        if len(path) != 1:
            raise SelectorError(
                f"The selector for {owner.__qualname__} reaches through "
                f"{'.'.join(path)!r}; only direct fields can be set. "
                "Configure nested objects with .with_builder() instead."
            )
        name = path[0]
    else:
        raise SelectorError(f"Unsupported selector {selector!r}: expected a field name or a lambda")

    hints = type_hints_for_class(owner)
    raw = _check_assignable(owner, name, hints)
    hint = hints.get(name, Any)
    if isinstance(raw, property):
        hint = _property_hint(raw, hint)
    return Field(owner=owner, name=name, hint=hint)


def _property_hint(prop: property, fallback: Any) -> Any:
    """Declared type of a settable property: the getter's return annotation, else the setter's value."""
    try:
        getter = typing.get_type_hints(prop.fget) if prop.fget else {}
        if "return" in getter:
            return getter["return"]
        setter = typing.get_type_hints(prop.fset)
    except Exception:
        return fallback
    params = list(inspect.signature(prop.fset).parameters)[1:]
    if params and params[0] in setter:
        return setter[params[0]]
    return fallback
