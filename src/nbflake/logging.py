# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Console output for lint results and Rich routing of package log records."""

from __future__ import annotations

import logging
import sys
from functools import lru_cache
from typing import Final, NamedTuple

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

PACKAGE_LOGGER = "nbflake"


class _Tone(NamedTuple):
    glyph: str
    style: str


_INFO: Final = _Tone("ℹ️ ", "cyan")
_OK: Final = _Tone("✅ ", "green")
_WARN: Final = _Tone("⚠️ ", "yellow")
_FAIL: Final = _Tone("❌ ", "red")


def stdout_is_terminal() -> bool:
    """Return ``True`` when stdout is attached to a terminal."""

    try:
        return sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


@lru_cache(maxsize=8)
def shared_console(*, color: bool, emoji: bool, stderr: bool = False) -> Console:
    """Return the process-wide console for one combination of output settings.

    Args:
        color: Render styles when ``True``; plain text otherwise.
        emoji: Let Rich substitute ``:name:`` emoji codes.
        stderr: Write to stderr instead of stdout.

    Returns:
        Console: Console reused by every caller asking for the same settings.
    """

    return Console(stderr=stderr, no_color=not color, emoji=emoji, soft_wrap=True, highlight=False)


def emoji(symbol: str, enable: bool) -> str:
    """Return *symbol* when emoji output is enabled, otherwise blank."""

    return symbol if enable else ""


def _announce(
    tone: _Tone,
    msg: str,
    *,
    use_emoji: bool,
    use_color: bool | None,
    console: Console | None,
) -> None:
    color = stdout_is_terminal() if use_color is None else use_color
    target = console or shared_console(color=color, emoji=use_emoji)
    text = Text(f"{emoji(tone.glyph, use_emoji)}{msg}")
    if color:
        text.stylize(tone.style)
    target.print(text)


def info(msg: str, *, use_emoji: bool, use_color: bool | None = None, console: Console | None = None) -> None:
    """Print a neutral status line such as the selected dialect."""

    _announce(_INFO, msg, use_emoji=use_emoji, use_color=use_color, console=console)


def ok(msg: str, *, use_emoji: bool, use_color: bool | None = None, console: Console | None = None) -> None:
    """Print a line announcing a clean lint cycle."""

    _announce(_OK, msg, use_emoji=use_emoji, use_color=use_color, console=console)


def warn(msg: str, *, use_emoji: bool, use_color: bool | None = None, console: Console | None = None) -> None:
    """Print a retryable lint failure."""

    _announce(_WARN, msg, use_emoji=use_emoji, use_color=use_color, console=console)


def fail(msg: str, *, use_emoji: bool, use_color: bool | None = None, console: Console | None = None) -> None:
    """Print a lint failure that needs the user's attention.

    Args:
        msg: Failure message, usually a :class:`~nbflake.core.errors.LintFailure` rendered to text.
        use_emoji: Prefix the message with a cross mark.
        use_color: Force colour on or off; stdout TTY detection decides when ``None``.
        console: Console overriding the shared one.
    """

    _announce(_FAIL, msg, use_emoji=use_emoji, use_color=use_color, console=console)


def configure_logging(*, verbose: bool, console: Console | None = None) -> logging.Logger:
    """Route package log records through Rich.

    Args:
        verbose: Log terminal traffic at DEBUG when ``True``; warnings only otherwise.
        console: Console receiving the records; the shared stderr console when omitted.

    Returns:
        logging.Logger: The configured package logger.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    target = console or shared_console(color=stdout_is_terminal(), emoji=False, stderr=True)
    handler = RichHandler(console=target, show_path=False, markup=False)
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    return logger


__all__ = ["configure_logging", "emoji", "fail", "info", "ok", "shared_console", "stdout_is_terminal", "warn"]
