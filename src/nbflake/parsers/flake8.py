# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Classify terminal output produced while flake8 runs behind a shell.

Classification works on one logical line at a time and is derived from the
line text alone. Assembling logical lines out of arbitrarily split terminal
chunks is the job of :class:`LineBuffer`.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Final

from ..command import FAILURE_SENTINEL, PROBE_ECHO_MARKER, SUCCESS_SENTINEL
from ..core.models import Dialect, RawDiagnostic

STREAM_SEPARATOR: Final[str] = "stdin:"
TRACEBACK_MARKER: Final[str] = "Traceback"

_NOT_FOUND_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"command not found|: not found\s*$|is not recognized as (?:the name of|an internal)",
    re.IGNORECASE,
)
_ANSI_PATTERN: Final[re.Pattern[str]] = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b\[[0-?]*[ -/]*[@-~]|\x1b[@-_]")


class LineKind(str, Enum):
    """Enumerate the dispositions of one logical terminal line."""

    NOISE = "noise"
    TRACEBACK = "traceback"
    COMMAND_NOT_FOUND = "command_not_found"
    DIAGNOSTIC = "diagnostic"
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class ClassifiedLine:
    """Pair a terminal line with its disposition and parsed diagnostic."""

    kind: LineKind
    text: str
    diagnostic: RawDiagnostic | None = None


def strip_control_sequences(text: str) -> str:
    """Remove ANSI escape sequences and carriage returns from ``text``."""

    return _ANSI_PATTERN.sub("", text).replace("\r", "")


def parse_diagnostic(line: str) -> RawDiagnostic | None:
    """Extract a diagnostic from a ``stdin:<line>:<column>: <code> <message>`` line.

    Args:
        line: Logical terminal line that may be prefixed by prompt noise.

    Returns:
        RawDiagnostic | None: Parsed diagnostic, or ``None`` when the line
        does not carry numeric coordinates and a code.
    """

    start = line.find(STREAM_SEPARATOR)
    if start < 0:
        return None
    parts = line[start:].split(":", 3)
    if len(parts) < 4:
        return None
    _, raw_line, raw_column, rest = parts
    try:
        line_no = int(raw_line)
        column = int(raw_column)
    except ValueError:
        return None
    tokens = rest.strip().split(maxsplit=1)
    if not tokens:
        return None
    message = tokens[1].strip() if len(tokens) > 1 else ""
    return RawDiagnostic(line=line_no, column=column, code=tokens[0], message=message)


def classify_line(
    line: str,
    *,
    success_sentinel: str = SUCCESS_SENTINEL,
    failure_sentinel: str = FAILURE_SENTINEL,
) -> ClassifiedLine:
    """Classify one logical terminal line.

    Args:
        line: Logical line with control sequences already removed.
        success_sentinel: Marker printed when the lint pipeline succeeded.
        failure_sentinel: Marker printed when the lint pipeline failed.

    Returns:
        ClassifiedLine: Disposition of ``line``; diagnostic-shaped lines whose
        coordinates fail to parse are reported as noise.
    """

    if STREAM_SEPARATOR in line:
        diagnostic = parse_diagnostic(line)
        if diagnostic is not None:
            return ClassifiedLine(LineKind.DIAGNOSTIC, line, diagnostic)
    if TRACEBACK_MARKER in line:
        return ClassifiedLine(LineKind.TRACEBACK, line)
    if _NOT_FOUND_PATTERN.search(line):
        return ClassifiedLine(LineKind.COMMAND_NOT_FOUND, line)
    if failure_sentinel in line:
        return ClassifiedLine(LineKind.FAILURE, line)
    if success_sentinel in line:
        return ClassifiedLine(LineKind.SUCCESS, line)
    return ClassifiedLine(LineKind.NOISE, line)


class LineBuffer:
    """Reassemble logical lines from terminal chunks without framing."""

    def __init__(self) -> None:
        self._pending = ""

    @property
    def pending(self) -> str:
        """Return the text received since the last line terminator."""

        return self._pending

    def feed(self, chunk: str) -> list[str]:
        """Append ``chunk`` and return every line it completes.

        Args:
            chunk: Raw text delivered by the channel.

        Returns:
            list[str]: Completed lines with control sequences removed.
        """

        data = self._pending + chunk
        *complete, self._pending = data.split("\n")
        return [strip_control_sequences(line) for line in complete]

    def flush(self) -> list[str]:
        """Return the unterminated remainder as a final line, if any."""

        remainder, self._pending = self._pending, ""
        cleaned = strip_control_sequences(remainder)
        return [cleaned] if cleaned.strip() else []

    def clear(self) -> None:
        """Discard any partial line."""

        self._pending = ""


@dataclass(frozen=True, slots=True)
class EchoFilter:
    """Recognise terminal echoes of significant lines of a sent command.

    Only command lines that would classify as something other than noise are
    remembered; a received line is an echo when it ends with one of them,
    which tolerates prompt prefixes added by the terminal.
    """

    fragments: tuple[str, ...] = ()

    @classmethod
    def for_command(
        cls,
        text: str,
        *,
        success_sentinel: str = SUCCESS_SENTINEL,
        failure_sentinel: str = FAILURE_SENTINEL,
    ) -> EchoFilter:
        """Build a filter for the command ``text`` about to be sent."""

        fragments: list[str] = []
        for raw in text.split("\n"):
            stripped = strip_control_sequences(raw).strip()
            if not stripped:
                continue
            kind = classify_line(
                stripped,
                success_sentinel=success_sentinel,
                failure_sentinel=failure_sentinel,
            ).kind
            if kind is not LineKind.NOISE:
                fragments.append(stripped)
        return cls(fragments=tuple(fragments))

    def matches(self, line: str) -> bool:
        """Return whether ``line`` is an echo of the command."""

        stripped = line.strip()
        return bool(stripped) and any(stripped.endswith(fragment) for fragment in self.fragments)


class ProbeOutcome(str, Enum):
    """Enumerate the dispositions of a line received while probing."""

    POSIX = "posix"
    WINDOWS = "windows"
    MISSING = "missing"
    INCONCLUSIVE = "inconclusive"
    IGNORED = "ignored"

    @property
    def dialect(self) -> Dialect | None:
        """Return the dialect this outcome identifies, if any."""

        if self is ProbeOutcome.POSIX:
            return Dialect.POSIX
        if self is ProbeOutcome.WINDOWS:
            return Dialect.WINDOWS
        return None


def classify_probe_line(line: str) -> ProbeOutcome:
    """Classify a line received in reply to the ``os.name`` probe.

    Args:
        line: Logical line with control sequences removed.

    Returns:
        ProbeOutcome: Dialect identified by the line, a terminal outcome for
        missing Python or a crash, or :attr:`ProbeOutcome.IGNORED`.
    """

    stripped = line.strip()
    if not stripped or PROBE_ECHO_MARKER in stripped:
        return ProbeOutcome.IGNORED
    if _NOT_FOUND_PATTERN.search(stripped):
        return ProbeOutcome.MISSING
    if TRACEBACK_MARKER in stripped:
        return ProbeOutcome.INCONCLUSIVE
    dialect = Dialect.from_os_name(stripped.split()[-1])
    if dialect is Dialect.POSIX:
        return ProbeOutcome.POSIX
    if dialect is Dialect.WINDOWS:
        return ProbeOutcome.WINDOWS
    return ProbeOutcome.IGNORED


def parse_lines(lines: Sequence[str]) -> list[RawDiagnostic]:
    """Return every diagnostic found in ``lines`` in order.

    Args:
        lines: Logical lines of captured flake8 output.

    Returns:
        list[RawDiagnostic]: Parsed diagnostics; unparsable lines are skipped.
    """

    results: list[RawDiagnostic] = []
    for line in lines:
        classified = classify_line(strip_control_sequences(line))
        if classified.diagnostic is not None:
            results.append(classified.diagnostic)
    return results


__all__ = [
    "ClassifiedLine",
    "EchoFilter",
    "LineBuffer",
    "LineKind",
    "ProbeOutcome",
    "STREAM_SEPARATOR",
    "TRACEBACK_MARKER",
    "classify_line",
    "classify_probe_line",
    "parse_diagnostic",
    "parse_lines",
    "strip_control_sequences",
]
