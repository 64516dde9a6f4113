"""Logging setup shared by the CLI and library modules."""
import logging

from rich.logging import RichHandler

LOG_FORMAT = "%(name)s: %(message)s"


def configure_logging(level: str = "WARNING") -> None:
    """Route all package loggers through a single rich handler."""
    root = logging.getLogger("english_quiz")
    root.setLevel(getattr(logging, level.upper(), logging.WARNING))
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        handler = RichHandler(show_path=False, rich_tracebacks=True)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.propagate = False
