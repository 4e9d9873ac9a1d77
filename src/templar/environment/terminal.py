"""ANSI colouring for diagnostics.

Colours are used only when stdout is a TTY. ``NO_COLOR`` disables them and
``FORCE_COLOR`` wins over both.
"""

from __future__ import annotations

import os
import re
import sys
from typing import Literal

_CODES = {
    "reset": "\033[0m",
    "bold": "\033[1m",
    "dim": "\033[2m",
    "yellow": "\033[33m",
    "cyan": "\033[36m",
    "green": "\033[32m",
    "bright_red": "\033[91m",
}

Style = Literal[
    "reset", "bold", "dim", "yellow", "cyan", "green",
    "bright_red",
]

_ANSI_RE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def _detect() -> bool:
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("NO_COLOR"):
        return False
    return sys.stdout.isatty()


_USE_COLORS = _detect()


def supports_color() -> bool:
    """True if diagnostics will be coloured."""
    return _USE_COLORS


def colorize(text: str, *styles: Style) -> str:
    """Wrap ``text`` in the given styles, or return it unchanged."""
    if not _USE_COLORS or not styles:
        return text
    prefix = "".join(_CODES.get(s, "") for s in styles)
    if not prefix:
        return text
    return f"{prefix}{text}{_CODES['reset']}"


def strip_colors(text: str) -> str:
    return _ANSI_RE.sub("", text)


def error_code(text: str) -> str:
    return colorize(text, "bright_red", "bold")


def location(text: str) -> str:
    return colorize(text, "cyan")


def line_number(text: str) -> str:
    return colorize(text, "yellow")


def error_line(text: str) -> str:
    return colorize(text, "bright_red")


def hint(text: str) -> str:
    return colorize(text, "green")


def dim_text(text: str) -> str:
    return colorize(text, "dim")


def format_error_header(code: str | None, message: str) -> str:
    """Prefix ``message`` with a coloured error code when one is given."""
    if code:
        return f"{error_code(code)}: {message}"
    return message


def format_source_line(lineno: int, content: str, is_error: bool = False) -> str:
    """Format one numbered source line; the error line gets a ``>`` marker."""
    marker = ">" if is_error else " "
    num = line_number(f"{marker}{lineno:>3}")
    body = error_line(content) if is_error else dim_text(content)
    return f"{num} | {body}"
