# fixtura/cli/main.py
import argparse
import sys as _sys
from typing import List, Optional

from ..errors import FixturaError
from ..logconf import configure_logger
from .cmd_config import add_config_subparser
from .cmd_registry import add_registry_subparser


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="fixtura")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_config_subparser(subparsers)
    add_registry_subparser(subparsers)

    args = parser.parse_args(argv)
    try:
        args.handler(args)
    except FixturaError as exc:
        logger = configure_logger(name="fixtura")
        logger.error("%s", exc)
        _sys.exit(1)
