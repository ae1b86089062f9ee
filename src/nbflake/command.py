# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Synthesize shell-safe flake8 commands for Posix and Windows shells."""

from __future__ import annotations

import re
import shlex
from pathlib import Path
from typing import Final

from nbflake.core.models import Dialect, LintCommand

TOOL_NAME: Final[str] = "flake8"
SUCCESS_SENTINEL: Final[str] = "@nbflake:lint-finished"
FAILURE_SENTINEL: Final[str] = "@nbflake:lint-failed"
PROBE_COMMAND: Final[str] = 'python -c "import os; print(os.name)"'
PROBE_ECHO_MARKER: Final[str] = "os.name"

_ESCAPE_LEADER: Final[dict[Dialect, str]] = {
    Dialect.POSIX: "\\",
    Dialect.WINDOWS: "`",
}
# Backtick and backslash pair, then the string delimiter and variable sigil.
_ESCAPED_CHARACTERS: Final[re.Pattern[str]] = re.compile(r'[`\\"$]')
_NEWLINE: Final[dict[Dialect, str]] = {
    Dialect.POSIX: "\n",
    Dialect.WINDOWS: "`n",
}


def escape_body(body: str, dialect: Dialect) -> str:
    """Escape ``body`` for embedding inside a double-quoted shell string.

    Carriage returns are stripped and a single trailing newline is dropped,
    since the pipeline's own output statement terminates the last line.

    Args:
        body: Flattened source text.
        dialect: Shell dialect whose quoting rules apply.

    Returns:
        str: Text safe to place between double quotes in ``dialect``.
    """

    text = body.replace("\r", "")
    if text.endswith("\n"):
        text = text[:-1]
    leader = _ESCAPE_LEADER[dialect]
    escaped = _ESCAPED_CHARACTERS.sub(lambda match: f"{leader}{match.group(0)}", text)
    if dialect is Dialect.WINDOWS:
        escaped = escaped.replace("\n", _NEWLINE[dialect])
    return escaped


def _echo_sentinel(sentinel: str, dialect: Dialect) -> str:
    """Return a statement printing ``sentinel`` without containing it verbatim.

    Terminals echo the command back, so the literal sentinel must only appear
    in the statement's output, never in its source text.
    """

    middle = len(sentinel) // 2
    head, tail = sentinel[:middle], sentinel[middle:]
    if dialect is Dialect.WINDOWS:
        return f'echo ("{head}" + "{tail}")'
    return f'echo "{head}""{tail}"'


def _config_option(config_path: str | Path | None, dialect: Dialect) -> str:
    if config_path is None or not str(config_path):
        return ""
    return f'--config="{escape_body(str(config_path), dialect)}" '


def build_lint_command(
    body: str,
    dialect: Dialect,
    config_path: str | Path | None = None,
    *,
    tool: str = TOOL_NAME,
) -> LintCommand:
    """Build the command that pipes ``body`` into flake8 and reports completion.

    Args:
        body: Flattened source text to lint.
        dialect: Shell dialect of the target terminal.
        config_path: Optional flake8 configuration file.
        tool: Executable name of the linter.

    Returns:
        LintCommand: Command text plus the sentinels it will print.
    """

    escaped = escape_body(body, dialect)
    config = _config_option(config_path, dialect)
    ok = _echo_sentinel(SUCCESS_SENTINEL, dialect)
    failed = _echo_sentinel(FAILURE_SENTINEL, dialect)
    if dialect is Dialect.WINDOWS:
        text = f'echo "{escaped}" | {tool} {config}--exit-zero - ; if ($?) {{ {ok} }} else {{ {failed} }}'
    else:
        text = f"(printf '%s\\n' \"{escaped}\" | {tool} {config}--exit-zero - && {ok}) || {failed}"
    return LintCommand(
        text=text,
        dialect=dialect,
        success_sentinel=SUCCESS_SENTINEL,
        failure_sentinel=FAILURE_SENTINEL,
    )


def build_setup_commands(dialect: Dialect, environment: str | None = None) -> list[str]:
    """Return the terminal preparation commands issued after probing.

    Args:
        dialect: Shell dialect detected for the terminal.
        environment: Optional conda environment to activate.

    Returns:
        list[str]: Commands to send in order.
    """

    commands: list[str] = []
    if dialect is Dialect.POSIX:
        commands.append("case $- in *H*) set +H;; esac; HISTFILE=")
    if environment and environment != "base":
        if dialect is Dialect.POSIX:
            commands.append(f"conda activate {shlex.quote(environment)}")
        else:
            commands.append(f'conda activate "{escape_body(environment, dialect)}"')
    return commands


__all__ = [
    "FAILURE_SENTINEL",
    "PROBE_COMMAND",
    "PROBE_ECHO_MARKER",
    "SUCCESS_SENTINEL",
    "TOOL_NAME",
    "build_lint_command",
    "build_setup_commands",
    "escape_body",
]
