import logging
from typing import Union

_FORMAT = "[fixtura] %(levelname)s: %(message)s"


def _as_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else logging.INFO


def configure_logger(level: Union[int, str] = logging.INFO, name: str = "fixtura") -> logging.Logger:
    """
    Attach the ``[fixtura] LEVEL: msg`` stream handler to the package logger
    (once) and set its level. Library modules never call this; the CLI does.
    """
    root = logging.getLogger("fixtura")
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(handler)
    root.setLevel(_as_level(level))
    return logging.getLogger(name)
