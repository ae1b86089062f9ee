# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for console rendering of lint results."""

from __future__ import annotations

from io import StringIO

from rich.console import Console

from nbflake.core.errors import LintTimeoutError, ToolMissingError
from nbflake.core.models import ResolvedDiagnostic
from nbflake.core.severity import Severity
from nbflake.reporting import ConsoleSink, build_table, segment_label, severity_color


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=120, color_system=None, force_terminal=False), buffer


def _diagnostic(code: str, segment: int, line: int, column: int, message: str = "msg") -> ResolvedDiagnostic:
    return ResolvedDiagnostic(
        line=line + 1,
        column=column + 1,
        code=code,
        message=message,
        segment_index=segment,
        local_line=line,
        local_column=column,
    )


def test_severity_color_mapping() -> None:
    assert severity_color(Severity.ERROR) == "red"
    assert severity_color(Severity.WARNING) == "yellow"
    assert severity_color(Severity.NOTICE) == "blue"


def test_segment_label() -> None:
    assert segment_label(0, single=False) == "cell 1"
    assert segment_label(3, single=True) == "source"


def test_build_table_uses_one_based_coordinates() -> None:
    table = build_table([_diagnostic("E225", 0, 4, 7)])

    assert table.row_count == 1
    assert list(table.columns[0].cells) == ["5"]
    assert list(table.columns[1].cells) == ["8"]


def test_publish_groups_by_cell() -> None:
    console, buffer = _console()
    sink = ConsoleSink(console, use_emoji=False, use_color=False)

    sink.publish([_diagnostic("E225", 2, 0, 1, "missing whitespace"), _diagnostic("F401", 0, 0, 0, "'os' unused")])

    output = buffer.getvalue()
    assert output.index("cell 1") < output.index("cell 3")
    assert "F401" in output
    assert "missing whitespace" in output
    assert len(sink.diagnostics) == 2


def test_publish_without_diagnostics_reports_clean() -> None:
    console, buffer = _console()
    sink = ConsoleSink(console, use_emoji=False, use_color=False)

    sink.publish([])

    assert "No flake8 diagnostics" in buffer.getvalue()


def test_clear_forgets_previous_diagnostics() -> None:
    console, _ = _console()
    sink = ConsoleSink(console, use_emoji=False, use_color=False)
    sink.publish([_diagnostic("W291", 0, 0, 3)])

    sink.clear()

    assert sink.diagnostics == ()


def test_report_failure_prints_message_and_detail() -> None:
    console, buffer = _console()
    sink = ConsoleSink(console, use_emoji=False, use_color=False)

    sink.report_failure(ToolMissingError("flake8 was not found", detail="sh: 1: flake8: not found\n"))
    sink.report_failure(LintTimeoutError("no reply"))

    output = buffer.getvalue()
    assert "flake8 was not found: sh: 1: flake8: not found" in output
    assert "no reply" in output
    assert [type(failure) for failure in sink.failures] == [ToolMissingError, LintTimeoutError]
