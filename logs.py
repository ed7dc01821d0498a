# logs.py
# Diagnostic logging to stderr via rich; scan results go to stdout through the Reporter

from __future__ import annotations
import logging

from rich.console import Console
from rich.logging import RichHandler

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def setup_logging(verbosity: int = 0, colorize: bool = True) -> logging.Logger:
    level = _LEVELS.get(verbosity, logging.DEBUG)
    root = logging.getLogger()
    root.setLevel(level)

    # Prevent duplicate handlers if called more than once
    for h in list(root.handlers):
        if getattr(h, "_portsweep", False):
            root.removeHandler(h)

    handler = RichHandler(
        console=Console(stderr=True, no_color=not colorize),
        show_path=verbosity > 1,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler._portsweep = True  # type: ignore[attr-defined]
    root.addHandler(handler)
    return root
