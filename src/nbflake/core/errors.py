# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Failure taxonomy surfaced by the channel protocol and lint sessions."""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum
from typing import ClassVar

from nbflake.core.models import RawDiagnostic


class FailureKind(str, Enum):
    """Enumerate the failure categories a lint cycle can end with."""

    CAPABILITY_UNAVAILABLE = "capability_unavailable"
    TOOL_MISSING = "tool_missing"
    TOOL_CRASHED = "tool_crashed"
    TOOL_EXITED_NON_ZERO = "tool_exited_non_zero"
    TIMEOUT = "timeout"
    UNMAPPABLE_DIAGNOSTIC = "unmappable_diagnostic"


class LintFailure(RuntimeError):
    """Base class for failures reported to diagnostics sinks.

    Subclasses pin :attr:`kind` together with two policy flags: whether the
    caller may simply retry, and whether the session stops reacting to
    automatic triggers until it is re-enabled.
    """

    kind: ClassVar[FailureKind]
    retryable: ClassVar[bool] = False
    disables_session: ClassVar[bool] = False

    def __init__(self, message: str, *, detail: str | None = None) -> None:
        """Initialise the failure with a user-facing message.

        Args:
            message: Human-readable description of the failure.
            detail: Optional raw terminal text that triggered the failure.
        """

        super().__init__(message)
        self.detail = detail


class CapabilityUnavailableError(LintFailure):
    """Raised when the channel cannot be opened; the session cannot continue."""

    kind = FailureKind.CAPABILITY_UNAVAILABLE
    disables_session = True


class ToolMissingError(LintFailure):
    """Raised when the shell reports that flake8 is not installed."""

    kind = FailureKind.TOOL_MISSING
    disables_session = True


class ToolCrashedError(LintFailure):
    """Raised when the terminal output contains a Python traceback."""

    kind = FailureKind.TOOL_CRASHED
    disables_session = True


class ToolExitedNonZeroError(LintFailure):
    """Reported when the lint pipeline exited unsuccessfully after emitting output."""

    kind = FailureKind.TOOL_EXITED_NON_ZERO

    def __init__(
        self,
        message: str,
        *,
        diagnostics: Sequence[RawDiagnostic] = (),
        detail: str | None = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.diagnostics = tuple(diagnostics)


class LintTimeoutError(LintFailure):
    """Raised when no completion marker arrives before the deadline."""

    kind = FailureKind.TIMEOUT
    retryable = True


class ProtocolStateError(RuntimeError):
    """Raised when the channel protocol is driven from the wrong state."""


__all__ = [
    "CapabilityUnavailableError",
    "FailureKind",
    "LintFailure",
    "LintTimeoutError",
    "ProtocolStateError",
    "ToolCrashedError",
    "ToolExitedNonZeroError",
    "ToolMissingError",
]
