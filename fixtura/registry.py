"""
Type -> default builder lookup.

Builders are declared explicitly, either one function at a time::

    @register_builder(Monster)
    def monster() -> Builder[Monster]:
        return Builder.new(Monster).with_sequential_ids("id")

or as a tagged class whose marked static/class methods are accessors::

    @builder_provider
    class MonsterBuilders:
        @staticmethod
        @builds(Monster, canonical=True)
        def green() -> Builder[Monster]:
            ...

A registry is populated lazily: the first lookup imports the modules listed in
``[registry] modules`` (so their declarations run) and freezes the table.
Accessors are called again on every lookup, so each ``resolve`` hands out an
independent builder.
"""
from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional, TypeVar

from .builder import Builder
from .config import AMBIGUITY_POLICIES, get_settings
from .errors import AmbiguousBuilderError, RegistryError

__all__ = [
    "Registration",
    "BuilderRegistry",
    "builds",
    "builder_provider",
    "register_builder",
    "resolve_builder",
    "default_registry",
    "reset_default_registry",
]

_log = logging.getLogger("fixtura.registry")

C = TypeVar("C", bound=type)
F = TypeVar("F", bound=Callable[..., Any])

_MARKER = "__fixtura_builds__"


@dataclass(frozen=True)
class Registration:
    target: type
    factory: Callable[[], Builder]
    canonical: bool = False
    name: str = ""

    def __str__(self) -> str:
        return f"{self.name}{' (canonical)' if self.canonical else ''}"


class BuilderRegistry:
    """
    Lazily initialized ``type -> [Registration]`` table.

    `modules` and `on_ambiguity` default to the ``[registry]`` section of the
    layered configuration, read when the table is first built.
    """

    def __init__(
        self,
        modules: Optional[Iterable[str]] = None,
        on_ambiguity: Optional[str] = None,
    ) -> None:
        if on_ambiguity is not None and on_ambiguity not in AMBIGUITY_POLICIES:
            raise RegistryError(
                f"on_ambiguity must be one of {', '.join(AMBIGUITY_POLICIES)}, got {on_ambiguity!r}"
            )
        self._modules = tuple(modules) if modules is not None else None
        self._on_ambiguity = on_ambiguity
        self._pending: list[Registration] = []
        self._table: Optional[dict[type, tuple[Registration, ...]]] = None

    # ---------- registration ----------

    @property
    def initialized(self) -> bool:
        return self._table is not None

    def register(
        self,
        target: type,
        factory: Callable[[], Builder],
        *,
        canonical: bool = False,
        name: Optional[str] = None,
    ) -> Registration:
        if self._table is not None:
            raise RegistryError(
                f"Cannot register a builder for {target.__qualname__}: the registry was already "
                "initialized by a lookup. Declare builders in modules imported before the first "
                "build, or list them under [registry] modules."
            )
        if not isinstance(target, type):
            raise RegistryError(f"Builders are registered per class, got {target!r}")
        reg = Registration(
            target=target,
            factory=factory,
            canonical=canonical,
            name=name or getattr(factory, "__qualname__", repr(factory)),
        )
        self._pending.append(reg)
        _log.debug("registered builder %s for %s", reg, target.__qualname__)
        return reg

    def register_builder(self, target: type, *, canonical: bool = False) -> Callable[[F], F]:
        """Decorator form of `register` for zero-argument functions."""
        def decorator(func: F) -> F:
            self.register(target, func, canonical=canonical)
            return func
        return decorator

    def builder_provider(self, cls: C) -> C:
        """
        Register every static/class method of `cls` marked with `builds`, in
        declaration order. A provider without any marked accessor is an error.
        """
        found = 0
        for attr, raw in vars(cls).items():
            func = raw.__func__ if isinstance(raw, (staticmethod, classmethod)) else raw
            marker = getattr(func, _MARKER, None)
            if marker is None:
                continue
            if not isinstance(raw, (staticmethod, classmethod)):
                raise RegistryError(
                    f"{cls.__qualname__}.{attr} is marked with @builds but is neither a "
                    "staticmethod nor a classmethod"
                )
            target, canonical = marker
            self.register(target, getattr(cls, attr), canonical=canonical,
                          name=f"{cls.__qualname__}.{attr}")
            found += 1
        if not found:
            raise RegistryError(
                f"The type '{cls.__module__}.{cls.__qualname__}' is marked as a builder provider, "
                "but has no @builds accessor returning a Builder"
            )
        return cls

    # ---------- lookup ----------

    def _ensure(self) -> dict[type, tuple[Registration, ...]]:
        if self._table is None:
            settings = get_settings()
            modules = self._modules if self._modules is not None else settings.registry_modules
            for mod in modules:
                try:
                    importlib.import_module(mod)
                except ImportError as exc:
                    raise RegistryError(f"Cannot import builder module {mod!r}: {exc}") from exc
            table: dict[type, list[Registration]] = {}
            for reg in self._pending:
                table.setdefault(reg.target, []).append(reg)
            self._table = {k: tuple(v) for k, v in table.items()}
            self._pending = []
            _log.info(
                "builder registry initialized: %d type(s), %d builder(s), modules=%s",
                len(self._table), sum(len(v) for v in self._table.values()), list(modules),
            )
        return self._table

    @property
    def on_ambiguity(self) -> str:
        return self._on_ambiguity or get_settings().on_ambiguity

    def registered_types(self) -> list[type]:
        return list(self._ensure())

    def registrations(self, target: type) -> tuple[Registration, ...]:
        return self._ensure().get(target, ())

    def select(self, target: type) -> Optional[Registration]:
        """
        The registration `resolve` would use for `target`, or None.
        A single canonical accessor wins; otherwise a lone accessor; otherwise
        the ambiguity policy decides.
        """
        regs = self.registrations(target)
        if not regs:
            return None
        canonical = [r for r in regs if r.canonical]
        if len(canonical) == 1:
            return canonical[0]
        if len(canonical) > 1:
            raise AmbiguousBuilderError(
                f"There are multiple canonical builders registered for type '{target.__qualname__}' "
                f"({', '.join(r.name for r in canonical)}). Only one may be canonical."
            )
        if len(regs) == 1 or self.on_ambiguity == "first":
            return regs[0]
        raise AmbiguousBuilderError(
            f"There are multiple builders registered for type '{target.__qualname__}' "
            f"({', '.join(r.name for r in regs)}). Mark one as canonical, or use `.with_builder()` "
            "to specify which one should be used, rather than `.with_built()` since it is unable "
            "to infer the correct one."
        )

    def resolve(self, target: type) -> Builder:
        """
        A fresh default builder for `target`: the selected accessor's result, or
        an empty ``Builder.new(target)`` when nothing is registered.
        """
        reg = self.select(target)
        if reg is None:
            return Builder.new(target)
        builder = reg.factory()
        if not isinstance(builder, Builder) or not issubclass(builder.target, target):
            raise RegistryError(
                f"Builder accessor {reg.name} registered for {target.__qualname__} "
                f"returned {builder!r}"
            )
        return builder


# ---------- Tagging & process-wide registry ----------

def builds(target: type, *, canonical: bool = False) -> Callable[[F], F]:
    """Mark a provider method as the accessor of a default builder for `target`."""
    def decorator(func: F) -> F:
        setattr(func, _MARKER, (target, canonical))
        return func
    return decorator


_DEFAULT: Optional[BuilderRegistry] = None


def default_registry() -> BuilderRegistry:
    global _DEFAULT
    if _DEFAULT is None:
        _DEFAULT = BuilderRegistry()
    return _DEFAULT


def reset_default_registry() -> None:
    global _DEFAULT
    _DEFAULT = None


def register_builder(
    target: type, *, canonical: bool = False, registry: Optional[BuilderRegistry] = None
) -> Callable[[F], F]:
    return (registry or default_registry()).register_builder(target, canonical=canonical)


def builder_provider(cls: Optional[C] = None, *, registry: Optional[BuilderRegistry] = None):
    """Class decorator, usable bare (``@builder_provider``) or with a registry."""
    def decorator(klass: C) -> C:
        return (registry or default_registry()).builder_provider(klass)
    return decorator(cls) if cls is not None else decorator


def resolve_builder(target: type) -> Builder:
    return default_registry().resolve(target)
