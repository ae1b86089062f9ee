# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Severity related types and helpers."""

from __future__ import annotations

from enum import Enum
from typing import Final


class Severity(str, Enum):
    """Severity levels normalising flake8 code families."""

    ERROR = "error"
    WARNING = "warning"
    NOTICE = "notice"


_NOTICE_PREFIXES: Final[frozenset[str]] = frozenset({"C", "N", "D"})


def severity_from_code(code: str | None, default: Severity = Severity.ERROR) -> Severity:
    """Infer severity from conventional code prefixes (e.g. E, W).

    Args:
        code: Diagnostic code such as ``E225`` or ``F401``.
        default: Severity returned when the prefix is unknown.

    Returns:
        Severity: Severity implied by the first letter of ``code``.
    """

    if not code:
        return default
    head = code[0].upper()
    if head in {"E", "F"}:
        return Severity.ERROR
    if head == "W":
        return Severity.WARNING
    if head in _NOTICE_PREFIXES:
        return Severity.NOTICE
    return default


__all__ = ["Severity", "severity_from_code"]
