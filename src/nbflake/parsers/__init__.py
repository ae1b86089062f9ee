# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parsers for terminal output emitted while linting."""

from __future__ import annotations

from .flake8 import (
    ClassifiedLine,
    EchoFilter,
    LineBuffer,
    LineKind,
    ProbeOutcome,
    classify_line,
    classify_probe_line,
    parse_diagnostic,
    parse_lines,
    strip_control_sequences,
)

__all__ = [
    "ClassifiedLine",
    "EchoFilter",
    "LineBuffer",
    "LineKind",
    "ProbeOutcome",
    "classify_line",
    "classify_probe_line",
    "parse_diagnostic",
    "parse_lines",
    "strip_control_sequences",
]
