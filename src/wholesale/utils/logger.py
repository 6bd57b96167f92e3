import logging
import os
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "wholesale"


class CenteredFormatter(logging.Formatter):
    """Centers the logger name in a column that grows to the longest name seen."""

    def __init__(self, fmt=None, datefmt=None, style="%", initial_width=14):
        super().__init__(fmt, datefmt, style)
        self.width = initial_width

    def format(self, record):
        self.width = max(self.width, len(record.name))
        record.name = record.name.center(self.width)
        return super().format(record)


def _make_console(log_file: Optional[str]) -> Console:
    # the TUI owns stdout
    if log_file:
        return Console(file=open(log_file, "a", encoding="utf-8"), width=120)
    return Console(stderr=True)


def _configure_root() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER)
    if root.handlers:
        return root

    log_level = logging.DEBUG if os.getenv("DEBUG") else logging.INFO
    handler = RichHandler(
        console=_make_console(os.getenv("WHOLESALE_LOG_FILE")),
        show_time=True,
        show_level=True,
        show_path=False,
        rich_tracebacks=True,
        log_time_format="[%X]",
    )
    handler.setFormatter(CenteredFormatter("[%(name)s]  %(message)s"))
    handler.setLevel(log_level)

    root.setLevel(log_level)
    root.addHandler(handler)
    root.propagate = False
    root.debug("Logging initialized with RichHandler.")
    return root


def get_logger(name=None) -> logging.Logger:
    """
    Return a logger under the ``wholesale`` namespace. The rich handler is
    attached once to the namespace root; DEBUG switches the level and
    WHOLESALE_LOG_FILE sends the output to a file instead of stderr.
    """
    root = _configure_root()
    if not name or name == ROOT_LOGGER:
        return root
    if not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
