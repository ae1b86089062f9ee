# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for user-facing logging helpers."""

from __future__ import annotations

import logging
import sys
from io import StringIO

import pytest
from rich.console import Console
from rich.logging import RichHandler

from nbflake.logging import configure_logging, emoji, fail, info, ok, shared_console, stdout_is_terminal, warn


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=100, color_system=None), buffer


def test_emoji_toggle() -> None:
    assert emoji("✅ ", True) == "✅ "
    assert emoji("✅ ", False) == ""


def test_helpers_print_plain_messages() -> None:
    console, buffer = _console()

    info("probing", use_emoji=False, use_color=False, console=console)
    ok("ready", use_emoji=False, use_color=False, console=console)
    warn("slow terminal", use_emoji=False, use_color=False, console=console)
    fail("flake8 missing", use_emoji=False, use_color=False, console=console)

    assert buffer.getvalue().splitlines() == ["probing", "ready", "slow terminal", "flake8 missing"]


def test_helpers_prefix_emoji_when_enabled() -> None:
    console, buffer = _console()

    ok("ready", use_emoji=True, use_color=False, console=console)

    assert buffer.getvalue().startswith("✅ ready")


def test_shared_console_is_reused_per_settings() -> None:
    plain = shared_console(color=False, emoji=False)

    assert shared_console(color=False, emoji=False) is plain
    assert shared_console(color=True, emoji=False) is not plain
    assert shared_console(color=False, emoji=False, stderr=True).stderr


def test_stdout_is_terminal_handles_detached_stream(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "stdout", StringIO())

    assert stdout_is_terminal() is False


def test_configure_logging_replaces_rich_handler() -> None:
    console, buffer = _console()
    logger = configure_logging(verbose=False, console=console)
    logger = configure_logging(verbose=True, console=console)

    try:
        handlers = [handler for handler in logger.handlers if isinstance(handler, RichHandler)]
        assert len(handlers) == 1
        assert logger.level == logging.DEBUG
        logging.getLogger("nbflake.protocol").debug("sending %d characters", 12)
        assert "sending 12 characters" in buffer.getvalue()
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
