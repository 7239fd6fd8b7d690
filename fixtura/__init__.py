"""fixtura: composable, immutable builders for test-fixture object graphs."""
from .builder import Builder
from .config import Settings, get_settings, reset_settings
from .errors import (
    AmbiguousBuilderError,
    CollectionAddError,
    ConfigError,
    FieldTypeError,
    FixturaError,
    RegistryError,
    SelectorError,
    UnsupportedShapeError,
)
from .registry import (
    BuilderRegistry,
    builder_provider,
    builds,
    default_registry,
    register_builder,
    resolve_builder,
)
from .shapes import SHAPE_CATALOG, ReadOnlyList, Stack

__version__ = "0.1.0"

__all__ = [
    "Builder",
    "BuilderRegistry",
    "builder_provider",
    "builds",
    "default_registry",
    "register_builder",
    "resolve_builder",
    "Settings",
    "get_settings",
    "reset_settings",
    "SHAPE_CATALOG",
    "Stack",
    "ReadOnlyList",
    "FixturaError",
    "ConfigError",
    "SelectorError",
    "UnsupportedShapeError",
    "FieldTypeError",
    "CollectionAddError",
    "RegistryError",
    "AmbiguousBuilderError",
]
