"""Common utility functions for the project."""

import logging
import os
from enum import Enum
from typing import Any


class AnsiColors(Enum):
    """
    ANSI color codes for terminal output.
    """

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[33m"
    BLUE = "\033[94m"
    CYAN = "\033[36m"
    GRAY = "\033[90m"

    def __str__(self) -> str:
        return self.value


_RESET = "\033[0m"


def colors_enabled() -> bool:
    """Return *False* when the ``NO_COLOR`` convention asks for plain output."""
    return not os.environ.get("NO_COLOR")


def colored_print(text: str, color: AnsiColors, *args: Any, **kwargs: Any) -> None:
    """
    Print text in color.

    Args:
        text: The text to print
        color: The color to use (AnsiColors enum)
        args: Additional positional arguments for print
        kwargs: Additional keyword arguments for print
    """
    if not colors_enabled():
        print(text, *args, **kwargs)
        return
    print(f"{color}{text}{_RESET}", *args, **kwargs)  # ANSI reset at the end


class ColorFormatter(logging.Formatter):
    """Compact one-line log formatter that colours the level name."""

    LEVEL_COLORS = {
        logging.DEBUG: AnsiColors.GRAY,
        logging.INFO: AnsiColors.GREEN,
        logging.WARNING: AnsiColors.YELLOW,
        logging.ERROR: AnsiColors.RED,
        logging.CRITICAL: AnsiColors.RED,
    }

    def __init__(self, fmt: str | None = None, use_color: bool | None = None) -> None:
        super().__init__(fmt or "%(asctime)s | %(name)s | %(levelname)s | %(message)s")
        self.use_color = colors_enabled() if use_color is None else use_color

    def format(self, record: logging.LogRecord) -> str:
        if not self.use_color:
            return super().format(record)
        original = record.levelname
        color = self.LEVEL_COLORS.get(record.levelno, AnsiColors.CYAN)
        record.levelname = f"{color}{original}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = original
