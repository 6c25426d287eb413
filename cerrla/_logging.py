"""Logging setup for the CLI — one RichHandler on the root logger."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOG_FORMAT = "%(name)s: %(message)s"


def configure_logging(verbose: bool = False, console: Console | None = None) -> None:
    """
    Installs a RichHandler on the root logger (replacing earlier handlers).

    verbose → DEBUG everywhere; otherwise WARNING for the library and
    INFO for the cerrla package itself.
    """
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))

    root = logging.getLogger()
    for old in list(root.handlers):
        root.removeHandler(old)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.getLogger("cerrla").setLevel(logging.DEBUG if verbose else logging.INFO)
