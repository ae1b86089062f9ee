# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Console rendering of lint results."""

from __future__ import annotations

from collections.abc import Sequence
from itertools import groupby
from typing import Final

from rich import box
from rich.console import Console
from rich.table import Table

from .core.errors import LintFailure
from .core.models import ResolvedDiagnostic
from .core.severity import Severity
from .logging import fail, ok, shared_console, stdout_is_terminal, warn

MISSING_CODE_PLACEHOLDER: Final[str] = "-"


def severity_color(sev: Severity) -> str:
    """Return the rich colour name associated with a severity level."""

    return {
        Severity.ERROR: "red",
        Severity.WARNING: "yellow",
        Severity.NOTICE: "blue",
    }.get(sev, "yellow")


def segment_label(segment_index: int, *, single: bool) -> str:
    """Return the heading used for diagnostics of one segment."""

    return "source" if single else f"cell {segment_index + 1}"


def build_table(diagnostics: Sequence[ResolvedDiagnostic], *, title: str | None = None) -> Table:
    """Render ``diagnostics`` as a Rich table with 1-based document coordinates.

    Args:
        diagnostics: Diagnostics of one segment or a whole document.
        title: Optional table title.

    Returns:
        Table: Table with one row per diagnostic.
    """

    table = Table(title=title, box=box.SIMPLE, expand=False)
    table.add_column("Line", justify="right")
    table.add_column("Col", justify="right")
    table.add_column("Code", style="bold")
    table.add_column("Message", overflow="fold")
    for diagnostic in diagnostics:
        color = severity_color(diagnostic.severity)
        table.add_row(
            str(diagnostic.local_line + 1),
            str(diagnostic.local_column + 1),
            f"[{color}]{diagnostic.code or MISSING_CODE_PLACEHOLDER}[/]",
            diagnostic.message,
        )
    return table


class ConsoleSink:
    """Diagnostics sink printing each cycle's results to a Rich console."""

    def __init__(
        self,
        console: Console | None = None,
        *,
        use_emoji: bool = True,
        use_color: bool | None = None,
        single_segment: bool = False,
    ) -> None:
        self._use_color = stdout_is_terminal() if use_color is None else use_color
        self._use_emoji = use_emoji
        self._console = console or shared_console(color=self._use_color, emoji=use_emoji)
        self._single_segment = single_segment
        self._diagnostics: tuple[ResolvedDiagnostic, ...] = ()
        self._failures: list[LintFailure] = []

    @property
    def diagnostics(self) -> tuple[ResolvedDiagnostic, ...]:
        """Return the diagnostics most recently published."""

        return self._diagnostics

    @property
    def failures(self) -> tuple[LintFailure, ...]:
        """Return every failure reported so far."""

        return tuple(self._failures)

    def clear(self) -> None:
        self._diagnostics = ()

    def publish(self, diagnostics: Sequence[ResolvedDiagnostic]) -> None:
        self._diagnostics = tuple(diagnostics)
        if not self._diagnostics:
            ok("No flake8 diagnostics", use_emoji=self._use_emoji, use_color=self._use_color, console=self._console)
            return
        ordered = sorted(
            self._diagnostics,
            key=lambda item: (item.segment_index, item.local_line, item.local_column),
        )
        for segment_index, group in groupby(ordered, key=lambda item: item.segment_index):
            title = segment_label(segment_index, single=self._single_segment)
            self._console.print(build_table(list(group), title=title))

    def report_failure(self, failure: LintFailure) -> None:
        self._failures.append(failure)
        message = str(failure)
        if failure.detail:
            message = f"{message}: {failure.detail.strip()}"
        if failure.retryable:
            warn(message, use_emoji=self._use_emoji, use_color=self._use_color, console=self._console)
        else:
            fail(message, use_emoji=self._use_emoji, use_color=self._use_color, console=self._console)


__all__ = ["ConsoleSink", "build_table", "segment_label", "severity_color"]
