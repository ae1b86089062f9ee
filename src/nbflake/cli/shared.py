# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared CLI helpers."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Final

from ..channels.shell import ShellChannel
from ..config import ConfigError, LintConfig, load_config
from ..interfaces.channel import Channel

EXIT_CLEAN: Final[int] = 0
EXIT_DIAGNOSTICS: Final[int] = 1
EXIT_FAILURE: Final[int] = 2


class CLIError(RuntimeError):
    """Error raised when a CLI command fails and should exit with a status code."""

    def __init__(self, message: str, *, exit_code: int = EXIT_FAILURE) -> None:
        """Initialise the error with a message and exit code.

        Args:
            message: Human-readable error message shown to the user.
            exit_code: Exit status associated with the failure.
        """

        super().__init__(message)
        self.exit_code = exit_code


def build_channel(root: Path) -> Channel:
    """Return an unopened shell channel rooted at ``root``."""

    return ShellChannel(cwd=root)


def resolve_config(root: Path, overrides: dict[str, Any]) -> LintConfig:
    """Load the layered configuration, converting failures into :class:`CLIError`."""

    try:
        return load_config(root, overrides=overrides)
    except ConfigError as exc:
        raise CLIError(str(exc)) from exc


__all__ = [
    "CLIError",
    "EXIT_CLEAN",
    "EXIT_DIAGNOSTICS",
    "EXIT_FAILURE",
    "build_channel",
    "resolve_config",
]
