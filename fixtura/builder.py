"""
The builder engine.

A ``Builder`` is an immutable recipe for instances of one class::

    monsters = (
        Builder.new(Monster)
        .with_sequential_ids("id")
        .with_("colour", "green")
        .with_create_collection_from(lambda m: m.tags, ["scary", "hairy"])
    )
    first, second = monsters.build_many(2)

Every ``with_*`` call returns a new builder whose step chain is the old chain
plus one node. Steps may close over mutable state (id counters, cursors, memo
cells): that state is created by the ``with_*`` call itself, so builders
derived from the result share it, while running the same configuration code
twice gives two independent builders.

Build order for one instance: ``T()``, pre-build steps (newest first),
blueprint steps (registration order), post-build steps (registration order).
"""
from __future__ import annotations

import inspect
import itertools
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field as dc_field
from typing import Any, Callable, Generic, Optional, Union

from .config import get_settings
from .errors import CollectionAddError, ConfigError, FieldTypeError, _type_name
from .selectors import Field, resolve_field
from .shapes import CollectionMaterializer, is_collection_hint
from .steps import Cursor, DeferredBuilder, StepChain, times
from .typing_defs import (
    BuilderFactory,
    BuilderLike,
    Selector,
    Step,
    T,
    element_hint,
    hint_class,
    is_value_like,
    is_value_like_hint,
    strip_optional,
    value_matches_hint,
)

__all__ = ["Builder"]

_log = logging.getLogger("fixtura.builder")


def _require_default_constructible(cls: type, what: str) -> None:
    """Raise ConfigError unless ``cls()`` can be called without arguments."""
    if inspect.isabstract(cls):
        raise ConfigError(f"{what}: {cls.__qualname__} is abstract and cannot be instantiated")
    try:
        sig = inspect.signature(cls)
    except (TypeError, ValueError):
        # builtins without introspectable signatures
        return
    required = [
        p.name
        for p in sig.parameters.values()
        if p.default is p.empty and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    ]
    if required:
        raise ConfigError(
            f"{what}: {cls.__qualname__} cannot be constructed without arguments "
            f"(required: {', '.join(required)})"
        )


def _safe_issubclass(cls: Any, parent: Any) -> bool:
    try:
        return isinstance(cls, type) and issubclass(cls, parent)
    except TypeError:
        return False


def _require_callable(obj: Any, what: str) -> None:
    if not callable(obj):
        raise ConfigError(f"{what} must be callable, got {type(obj).__name__}")


def _adder(field: Field, value: Any) -> Step:
    def step(obj: Any) -> None:
        try:
            target = field.get(obj)
            if target is None:
                raise TypeError(f"{field.label} is None; there is no collection to add to")
            add = getattr(target, "append", None) or getattr(target, "add", None)
            if add is None:
                raise TypeError(f"{type(target).__name__} does not support adding elements")
            add(value)
        except Exception as exc:
            raise CollectionAddError(field.label) from exc
    return step


@dataclass(frozen=True, eq=False, repr=False)
class Builder(Generic[T]):
    """
    Immutable chain of setup steps producing instances of `target`.

    Create one with ``Builder.new(cls)``; never mutate it, derive from it.
    """

    target: type
    _pre: StepChain = dc_field(default=StepChain.EMPTY)
    _blueprint: StepChain = dc_field(default=StepChain.EMPTY)
    _post: StepChain = dc_field(default=StepChain.EMPTY)

    @classmethod
    def new(cls, target: type) -> "Builder[Any]":
        if not isinstance(target, type):
            raise ConfigError(f"Builders target a class, got {target!r}")
        _require_default_constructible(target, "Builder.new")
        return cls(target)

    def __repr__(self) -> str:
        return (
            f"Builder[{self.target.__qualname__}](pre={len(self._pre)}, "
            f"steps={len(self._blueprint)}, post={len(self._post)})"
        )

    # ---------- execution ----------

    def build(self) -> Any:
        return self.build_from_base(self.target())

    def build_many(self, count: int) -> list[Any]:
        """`count` instances, each fully built before the next one starts."""
        if isinstance(count, bool) or not isinstance(count, int):
            raise TypeError(f"count must be an int, got {type(count).__name__}")
        if count < 0:
            raise ValueError(f"count must be >= 0, got {count}")
        return times(count, self.build)

    def build_from_base(self, instance: Any) -> Any:
        """Apply every step to an instance the caller already created."""
        if not isinstance(instance, self.target):
            raise TypeError(
                f"build_from_base expects a {self.target.__qualname__}, "
                f"got {type(instance).__qualname__}"
            )
        for step in self._pre.newest_first():
            step(instance)
        for step in self._blueprint:
            step(instance)
        for step in self._post:
            step(instance)
        return instance

    # ---------- derivation helpers ----------

    def _derive(
        self,
        pre: Optional[StepChain] = None,
        blueprint: Optional[StepChain] = None,
        post: Optional[StepChain] = None,
    ) -> "Builder[Any]":
        return type(self)(
            self.target,
            self._pre if pre is None else pre,
            self._blueprint if blueprint is None else blueprint,
            self._post if post is None else post,
        )

    def _then(self, step: Step) -> "Builder[Any]":
        return self._derive(blueprint=self._blueprint.plus(step))

    def _field(self, selector: Selector) -> Field:
        return resolve_field(self.target, selector)

    @staticmethod
    def _count(count: Optional[int]) -> int:
        if count is None:
            return get_settings().collection_count
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ConfigError(f"count must be a non-negative int, got {count!r}")
        return count

    # ---------- plain values ----------

    def with_(self, selector: Selector, value: Any) -> "Builder[Any]":
        """
        Assign the same `value` to the field on every build.

        Only for value-like fields (numbers, strings, enums, dates, tuples,
        frozen dataclasses, ...): a mutable object would end up shared by every
        instance. Use ``with_shared_ref`` to share one on purpose, or
        ``with_factory`` to create one per build.
        """
        field = self._field(selector)
        verdict = is_value_like_hint(field.hint)
        if value is not None and (verdict is False or (verdict is None and not is_value_like(value))):
            raise ConfigError(
                f"{field.label} holds {_type_name(type(value))} values, which are not value types: "
                "one object would be shared by every built instance. Use .with_shared_ref() to "
                "share it deliberately, or .with_factory() to create one per build."
            )
        field.check(value)
        _log.debug("%s: with_ %r", field.label, value)
        return self._then(lambda obj: field.set(obj, value))

    def with_shared_ref(self, selector: Selector, value: Any) -> "Builder[Any]":
        """Assign one object, shared by every built instance, to the field."""
        field = self._field(selector)
        field.check(value)
        _log.debug("%s: with_shared_ref %s", field.label, type(value).__qualname__)
        return self._then(lambda obj: field.set(obj, value))

    def with_factory(self, selector: Selector, factory: Callable[[], Any]) -> "Builder[Any]":
        field = self._field(selector)
        _require_callable(factory, f"factory for {field.label}")
        return self._then(lambda obj: field.assign(obj, factory()))

    def with_factory_collection(
        self,
        selector: Selector,
        element_factory: Callable[[], Any],
        count: Optional[int] = None,
    ) -> "Builder[Any]":
        """
        Fill a collection field with `count` elements from `element_factory`,
        wrapped in whichever container shape the field's type accepts.
        """
        field = self._field(selector)
        _require_callable(element_factory, f"element factory for {field.label}")
        shape = CollectionMaterializer.for_hint(field.hint, field.label)
        n = self._count(count)
        return self._then(lambda obj: field.set(obj, shape.materialize(times(n, element_factory))))

    # ---------- sequences ----------

    def with_sequential_from(self, selector: Selector, values: Iterable[Any]) -> "Builder[Any]":
        """
        One element of `values` per build, in order, starting over once every
        element has been used. `values` is not read until the first build.
        """
        field = self._field(selector)
        cursor = Cursor(values, field.label)
        return self._then(lambda obj: field.assign(obj, cursor.next()))

    def with_one_of(self, selector: Selector, *values: Any) -> "Builder[Any]":
        if not values:
            raise ConfigError("with_one_of needs at least one value")
        return self.with_sequential_from(selector, values)

    def with_sequential_ids(
        self,
        selector: Selector,
        transform: Optional[Callable[[int], Any]] = None,
        first_value: Optional[int] = None,
    ) -> "Builder[Any]":
        """
        ``first_value, first_value + 1, ...`` (passed through `transform` if
        given), one per build. The counter belongs to this call and is shared
        by every builder derived from the result.
        """
        field = self._field(selector)
        if transform is not None:
            _require_callable(transform, f"transform for {field.label}")
        start = get_settings().sequential_ids_start if first_value is None else first_value
        counter = itertools.count(start)

        def step(obj: Any) -> None:
            n = next(counter)
            field.assign(obj, n if transform is None else transform(n))

        _log.debug("%s: sequential ids from %s", field.label, start)
        return self._then(step)

    # ---------- collections ----------

    def with_create_collection_from(self, selector: Selector, values: Iterable[Any]) -> "Builder[Any]":
        """
        A new container holding `values` on every build. The container shape
        is chosen now; single-pass iterators are read once, on the first build.
        """
        field = self._field(selector)
        shape = CollectionMaterializer.for_hint(field.hint, field.label)
        if not isinstance(values, Iterable):
            raise ConfigError(f"values for {field.label} must be iterable, got {type(values).__name__}")
        single_pass = iter(values) is values
        snapshot: list[Any] = []
        taken = False

        def step(obj: Any) -> None:
            nonlocal taken
            if single_pass and not taken:
                snapshot.extend(values)
                taken = True
            field.set(obj, shape.materialize(snapshot if single_pass else values))

        return self._then(step)

    def with_add_to_collection(self, selector: Selector, *values: Any) -> "Builder[Any]":
        """
        Add each of `values` to the container the field already holds (via
        ``append`` or ``add``), one step per value.
        """
        field = self._field(selector)
        element = element_hint(field.hint)
        builder: Builder[Any] = self
        for value in values:
            if not value_matches_hint(value, element):
                raise FieldTypeError(value, f"{field.label}[]", element)
            builder = builder._then(_adder(field, value))
        return builder

    # ---------- nested objects ----------

    def with_builder(
        self,
        selector: Selector,
        builder: Union[BuilderLike, BuilderFactory],
        count: Optional[int] = None,
    ) -> "Builder[Any]":
        """
        Populate the field from a sub-builder, given directly or as a
        zero-argument factory. A factory is called once, on the first build,
        and the builder it returns is reused from then on, so the sub-builder's
        own counters keep running across builds.

        For a collection field, `count` elements (default 3) are built per
        instance and wrapped in a matching container.
        """
        field = self._field(selector)
        if isinstance(builder, BuilderLike):
            cell = DeferredBuilder.of(builder, field.label)
            sub_target = getattr(builder, "target", None)
        elif callable(builder):
            cell = DeferredBuilder(builder, field.label)
            sub_target = None
        else:
            raise ConfigError(
                f"with_builder for {field.label} expects a builder or a function returning one, "
                f"got {type(builder).__name__}"
            )
        return self._with_sub_builder(field, cell, count, sub_target)

    def with_built(
        self,
        selector: Selector,
        count: Optional[int] = None,
        registry: Any = None,
    ) -> "Builder[Any]":
        """
        Like ``with_builder``, with the sub-builder looked up in the builder
        registry by the field's declared type (the element type for
        collections). The lookup happens on the first build.
        """
        field = self._field(selector)
        collection = is_collection_hint(field.hint)
        value_hint = element_hint(field.hint) if collection else strip_optional(field.hint)
        value_type = hint_class(value_hint)
        if value_type is None:
            raise ConfigError(
                f"Cannot tell which builder to use for {field.label}: its declared type "
                f"{_type_name(field.hint)} does not name a class"
            )

        def resolve() -> Any:
            from .registry import default_registry

            return (registry if registry is not None else default_registry()).resolve(value_type)

        cell = DeferredBuilder(resolve, field.label)
        return self._with_sub_builder(field, cell, count, None, collection=collection)

    def _with_sub_builder(
        self,
        field: Field,
        cell: DeferredBuilder,
        count: Optional[int],
        sub_target: Any,
        collection: Optional[bool] = None,
    ) -> "Builder[Any]":
        if collection is None:
            declared = hint_class(field.hint)
            # a builder of the field's own type fills it directly, even if that type is iterable
            if declared is not None and _safe_issubclass(sub_target, declared):
                collection = False
            else:
                collection = is_collection_hint(field.hint)
        if collection:
            shape = CollectionMaterializer.for_hint(field.hint, field.label)
            n = self._count(count)
            _log.debug("%s: %d built element(s) per instance as %s", field.label, n, shape.entry.name)
            return self._then(lambda obj: field.set(obj, shape.materialize(cell.build_many(n))))
        if count is not None:
            raise ConfigError(f"{field.label} is not a collection field, so count cannot be given")
        return self._then(lambda obj: field.assign(obj, cell.build()))

    def with_new(self, selector: Selector) -> "Builder[Any]":
        """Set the field to a fresh instance of its declared type, ``Type()``."""
        field = self._field(selector)
        cls = hint_class(field.hint)
        if cls is None:
            raise ConfigError(
                f"with_new needs a concrete declared type for {field.label}, "
                f"got {_type_name(field.hint)}"
            )
        _require_default_constructible(cls, f"with_new({field.label})")
        return self._then(lambda obj: field.set(obj, cls()))

    # ---------- arbitrary actions ----------

    def with_pre_build_setup(self, action: Step) -> "Builder[Any]":
        """Run `action` before every other step, including ones added earlier."""
        _require_callable(action, "pre-build action")
        return self._derive(pre=self._pre.plus(action))

    def with_setup(self, action: Step) -> "Builder[Any]":
        _require_callable(action, "setup action")
        return self._then(action)

    def with_post_build_setup(self, action: Step) -> "Builder[Any]":
        """Run `action` after every blueprint step."""
        _require_callable(action, "post-build action")
        return self._derive(post=self._post.plus(action))
