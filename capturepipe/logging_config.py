"""Logging setup for the command line entry point."""

import logging

from rich.console import Console
from rich.logging import RichHandler

HANDLER_NAME = "capturepipe"
PLAIN_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO", rich: bool = True, console: Console | None = None) -> None:
    """Install a root handler for the given level.

    Uses a RichHandler writing to stderr when rich is True, otherwise a
    plain timestamped stream handler. Calling it again replaces the
    handler installed by the previous call.
    """
    if rich:
        handler: logging.Handler = RichHandler(
            console=console or Console(stderr=True),
            rich_tracebacks=True,
            show_path=False,
        )
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))

    handler.set_name(HANDLER_NAME)
    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)
