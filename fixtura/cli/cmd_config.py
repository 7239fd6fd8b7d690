# fixtura/cli/cmd_config.py
from __future__ import annotations

import argparse
from pathlib import Path

from ..config import (
    SECTIONS,
    Settings,
    effective_section,
    load_layered_config,
    render_config_debug_report,
)
from ..logconf import configure_logger


def _handle(args: argparse.Namespace) -> None:
    log = configure_logger(name="fixtura.cli.config")

    start = getattr(args, "start", None) or Path.cwd()
    ctx = load_layered_config(start)
    log.debug("config loaded from %s", ctx.source_path or "<packaged defaults>")

    if getattr(args, "debug", False):
        print(render_config_debug_report(ctx))
        return

    # validates the values the library will actually use
    Settings.from_context(ctx)

    sections = [args.section] if getattr(args, "section", None) else list(SECTIONS)
    print(f"# project root: {ctx.project_root}")
    print(f"# config file : {ctx.source_path or '<none>'}")
    for sec in sections:
        eff = effective_section(ctx, sec)
        print(f"[{sec}]")
        if not eff:
            print("  <empty>")
        for key in sorted(eff):
            print(f"  {key} = {eff[key]!r}")


def add_config_subparser(subparsers: argparse._SubParsersAction) -> None:
    """Register the `config` subcommand."""
    p = subparsers.add_parser("config", help="show the effective layered configuration")
    p.add_argument(
        "--start",
        type=Path,
        default=argparse.SUPPRESS,
        help="directory to search upward from for .fixtura/config.* (default: CWD)",
    )
    p.add_argument(
        "--section",
        choices=list(SECTIONS),
        default=argparse.SUPPRESS,
        help="only print this section",
    )
    p.add_argument(
        "--debug",
        action="store_true",
        help="print the full discovery/parsing report instead",
    )
    p.set_defaults(handler=_handle)
