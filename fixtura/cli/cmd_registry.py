# fixtura/cli/cmd_registry.py
from __future__ import annotations

import argparse
import importlib

from ..config import get_settings
from ..errors import RegistryError
from ..logconf import configure_logger
from ..registry import default_registry


def _handle(args: argparse.Namespace) -> None:
    settings = get_settings()
    log = configure_logger(settings.log_level, name="fixtura.cli.registry")

    extra = list(getattr(args, "module", None) or [])
    for mod in extra:
        try:
            importlib.import_module(mod)
        except ImportError as exc:
            raise RegistryError(f"Cannot import builder module {mod!r}: {exc}") from exc
        log.info("imported %s", mod)

    registry = default_registry()
    targets = registry.registered_types()
    if not targets:
        print("(no builders registered)")
        return
    for target in sorted(targets, key=lambda t: (t.__module__, t.__qualname__)):
        print(f"{target.__module__}.{target.__qualname__}")
        for reg in registry.registrations(target):
            print(f"  - {reg}")


def add_registry_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Register the `registry` subcommand."""
    p = subparsers.add_parser("registry", help="list the registered default builders")
    p.add_argument(
        "-m",
        "--module",
        action="append",
        default=argparse.SUPPRESS,
        help="extra module declaring builders (repeatable); [registry] modules are always imported",
    )
    p.set_defaults(handler=_handle)
