"""
Step plumbing shared by every builder.

- ``StepChain``: persistent, append-only linked list of steps. Appending
  returns a new head that points at the old one, so builders derived from a
  common ancestor share the ancestor's nodes instead of copying them.
- ``Cursor``: a cyclic, lazily advanced position over a value source.
- ``DeferredBuilder``: single-assignment memo cell around a builder factory.

Cursors and deferred cells are the only mutable state a step closes over; they
live outside the chain, so sharing a chain shares that state.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Iterator, Optional

from .errors import ConfigError
from .typing_defs import BuilderFactory, BuilderLike, Step

__all__ = ["StepChain", "Cursor", "DeferredBuilder", "times"]

_log = logging.getLogger("fixtura.steps")


class StepChain:
    """
    Immutable chain of steps. ``EMPTY.plus(a).plus(b)`` iterates ``a, b``;
    ``newest_first()`` walks the other way.
    """

    __slots__ = ("_step", "_parent", "_length")

    EMPTY: "StepChain"

    def __init__(self, step: Optional[Step] = None, parent: Optional["StepChain"] = None) -> None:
        self._step = step
        self._parent = parent
        self._length = 0 if parent is None else parent._length + 1

    def plus(self, step: Step) -> "StepChain":
        return StepChain(step, self)

    def newest_first(self) -> Iterator[Step]:
        node: Optional[StepChain] = self
        while node is not None and node._parent is not None:
            yield node._step  # type: ignore[misc]
            node = node._parent

    def __iter__(self) -> Iterator[Step]:
        return reversed(list(self.newest_first()))

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        return f"StepChain(len={self._length})"


StepChain.EMPTY = StepChain()


class Cursor:
    """
    Endless, cyclic reader over `source`.

    Nothing is iterated until the first ``next()``. When the current pass runs
    dry a fresh ``iter(source)`` is started. Sources that cannot be restarted
    (single-pass iterators and generators, where ``iter(x) is x``) raise
    ConfigError once exhausted; an empty source raises on the first pull.
    """

    __slots__ = ("_source", "_it", "_label", "_pulled")

    def __init__(self, source: Iterable[Any], label: str = "<field>") -> None:
        if not isinstance(source, Iterable):
            raise ConfigError(f"values for {label} must be iterable, got {type(source).__name__}")
        self._source = source
        self._it: Optional[Iterator[Any]] = None
        self._label = label
        self._pulled = 0

    def next(self) -> Any:
        if self._it is None:
            self._it = iter(self._source)
        try:
            value = next(self._it)
        except StopIteration:
            value = self._restart()
        self._pulled += 1
        return value

    def _restart(self) -> Any:
        if self._it is self._source:
            raise ConfigError(
                f"The values supplied for {self._label} were a single-pass iterator and ran out "
                f"after {self._pulled} build(s); it cannot be restarted. Pass a re-iterable "
                "collection (list, tuple, range, ...) to cycle through the values."
            ) from None
        _log.debug("restarting value source for %s after %d values", self._label, self._pulled)
        self._it = iter(self._source)
        try:
            return next(self._it)
        except StopIteration:
            raise ConfigError(f"No values were supplied for {self._label}") from None


class DeferredBuilder:
    """
    Runs `factory` at most once, on the first ``build()``, and keeps the builder
    it returned for every later call. All steps created from one
    ``with_builder``/``with_built`` call share one cell, so the sub-builder's own
    counters keep advancing across parent builds.
    """

    __slots__ = ("_factory", "_builder", "_label")

    def __init__(self, factory: BuilderFactory, label: str = "<field>") -> None:
        self._factory = factory
        self._builder: Optional[BuilderLike] = None
        self._label = label

    @classmethod
    def of(cls, builder: BuilderLike, label: str = "<field>") -> "DeferredBuilder":
        return cls(lambda: builder, label)

    def resolve(self) -> BuilderLike:
        if self._builder is None:
            builder = self._factory()
            if not isinstance(builder, BuilderLike):
                raise ConfigError(
                    f"The builder factory for {self._label} returned {type(builder).__name__}, "
                    "which has no build() method"
                )
            _log.debug("resolved sub-builder for %s: %r", self._label, builder)
            self._builder = builder
        return self._builder

    def build(self) -> Any:
        return self.resolve().build()

    def build_many(self, count: int) -> list[Any]:
        builder = self.resolve()
        return [builder.build() for _ in range(count)]


def times(count: int, produce: Callable[[], Any]) -> list[Any]:
    """Call `produce` `count` times, in order, and collect the results."""
    return [produce() for _ in range(count)]
