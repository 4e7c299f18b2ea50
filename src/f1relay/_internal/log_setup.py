"""Root logger configuration for the CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# Third-party loggers that are noisy at DEBUG.
_QUIET_LOGGERS = ("websockets", "asyncio")


def configure_logging(*, verbose: bool = False, console: Console | None = None) -> None:
    """Send log records to stderr through a :class:`~rich.logging.RichHandler`.

    Safe to call more than once; an existing handler installed by this
    function is replaced rather than duplicated.
    """
    level = logging.DEBUG if verbose else logging.INFO
    root = logging.getLogger()
    for handler in list(root.handlers):
        if getattr(handler, "_f1relay", False):
            root.removeHandler(handler)

    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=verbose,
        rich_tracebacks=verbose,
    )
    handler._f1relay = True  # type: ignore[attr-defined]
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    root.addHandler(handler)
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
