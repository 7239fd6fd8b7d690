from __future__ import annotations

import dataclasses
import datetime as _dt
import decimal
import enum
import fractions
import inspect
import pathlib
import types
import typing
import uuid
from typing import (
    Any,
    Callable,
    Literal,
    Protocol,
    TypeVar,
    Union,
    get_args,
    get_origin,
    runtime_checkable,
)

__all__ = [
    "T",
    "V",
    "Step",
    "Selector",
    "BuilderLike",
    "BuilderFactory",
    "strip_optional",
    "hint_class",
    "element_hint",
    "is_value_like_hint",
    "is_value_like",
    "value_matches_hint",
    "type_hints_for_class",
]

T = TypeVar("T")
V = TypeVar("V")

# A step mutates one instance in place; its return value is ignored.
Step = Callable[[Any], None]

# Either an attribute name or a one-attribute accessor: ``lambda m: m.colour``.
Selector = Union[str, Callable[[Any], Any]]


@runtime_checkable
class BuilderLike(Protocol):
    """Anything the deferred resolver can call ``build()`` on."""

    def build(self) -> Any:
        ...


BuilderFactory = Callable[[], BuilderLike]


# ----------------------------- Value-likeness --------------------------------

# Immutable types whose single instance may be shared by every built object.
_VALUE_TYPES: tuple[type, ...] = (
    int,
    float,
    complex,
    str,
    bytes,
    type(None),
    decimal.Decimal,
    fractions.Fraction,
    _dt.date,
    _dt.time,
    _dt.timedelta,
    _dt.tzinfo,
    uuid.UUID,
    enum.Enum,
    range,
    pathlib.PurePath,
    tuple,
    frozenset,
)


def _is_frozen_dataclass(cls: type) -> bool:
    params = getattr(cls, "__dataclass_params__", None)
    return dataclasses.is_dataclass(cls) and bool(params and params.frozen)


def _is_union(origin: Any) -> bool:
    return origin is Union or origin is types.UnionType


def strip_optional(hint: Any) -> Any:
    """
    Drop ``Annotated`` metadata and a ``None`` member from a union:
    ``Optional[list[int]]`` -> ``list[int]``. Unions with several non-None
    members are returned unchanged.
    """
    origin = get_origin(hint)
    if origin is typing.Annotated:
        return strip_optional(get_args(hint)[0])
    if _is_union(origin):
        members = [a for a in get_args(hint) if a is not type(None)]
        if len(members) == 1:
            return strip_optional(members[0])
    return hint


def hint_class(hint: Any) -> type | None:
    """Runtime class behind a hint (``list[int]`` -> ``list``), or None."""
    hint = strip_optional(hint)
    origin = get_origin(hint)
    if isinstance(origin, type):
        return origin
    # typing.Any is itself a class on 3.11+
    if isinstance(hint, type) and hint is not Any:
        return hint
    return None


def element_hint(hint: Any) -> Any:
    """Element type of a container hint; ``Any`` when unparameterized."""
    args = get_args(strip_optional(hint))
    if not args:
        return Any
    first = args[0]
    return Any if first is Ellipsis else first


def is_value_like_hint(hint: Any) -> bool | None:
    """
    True/False when the declared type settles the question, None when it does
    not (``Any``, type variables, unresolved forward references).
    """
    hint = strip_optional(hint)
    origin = get_origin(hint)
    if origin is Literal:
        return True
    if _is_union(origin):
        verdicts = [is_value_like_hint(a) for a in get_args(hint) if a is not type(None)]
        if any(v is False for v in verdicts):
            return False
        return None if any(v is None for v in verdicts) else True
    cls = hint_class(hint)
    if cls is None:
        return None
    if cls is object:
        return None
    return issubclass(cls, _VALUE_TYPES) or _is_frozen_dataclass(cls)


def is_value_like(value: Any) -> bool:
    return isinstance(value, _VALUE_TYPES) or _is_frozen_dataclass(type(value))


# ----------------------------- Runtime matching ------------------------------

def value_matches_hint(value: Any, hint: Any) -> bool:
    """
    Loose runtime check of ``value`` against a declared hint.

    - ``None`` is always accepted;
    - unions/Optional: any member;
    - ``Literal``: membership;
    - classes and parameterized generics: ``isinstance`` against the origin
      class (element types are not inspected here);
    - ``int`` is accepted for ``float`` and ``complex`` (numeric promotion);
    - anything that cannot be checked at runtime accepts everything.
    """
    if value is None or hint is Any:
        return True
    origin = get_origin(hint)
    if origin is typing.Annotated:
        return value_matches_hint(value, get_args(hint)[0])
    if _is_union(origin):
        return any(value_matches_hint(value, a) for a in get_args(hint))
    if origin is Literal:
        return value in get_args(hint)
    cls = origin if isinstance(origin, type) else hint
    if not isinstance(cls, type):
        return True
    if cls is float and isinstance(value, int):
        return True
    if cls is complex and isinstance(value, (int, float)):
        return True
    try:
        return isinstance(value, cls)
    except TypeError:
        # non-runtime protocols and the like
        return True


def type_hints_for_class(cls: type) -> dict[str, Any]:
    """
    Resolve type hints for `cls`, handling forward references.
    Falls back to raw annotations (merged along the MRO) if get_type_hints fails;
    unresolved string annotations then behave like ``Any``.
    """
    try:
        mod = inspect.getmodule(cls)
        globalns = vars(mod) if mod else {}
        return typing.get_type_hints(cls, globalns=globalns, include_extras=True)
    except Exception:
        out: dict[str, Any] = {}
        for klass in reversed(cls.__mro__):
            for name, ann in (getattr(klass, "__annotations__", {}) or {}).items():
                out[name] = Any if isinstance(ann, str) else ann
        return out
