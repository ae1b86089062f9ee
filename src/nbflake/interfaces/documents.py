# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Document sources and diagnostic sinks surrounding a lint session."""

# pylint: disable=too-few-public-methods -- Protocol definitions intentionally expose minimal method surfaces.

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from ..core.errors import LintFailure
from ..core.models import Document, ResolvedDiagnostic


@runtime_checkable
class DocumentProvider(Protocol):
    """Supply immutable document snapshots on demand."""

    def snapshot(self) -> Document:
        """Return the current contents of the document."""

        raise NotImplementedError


@runtime_checkable
class DiagnosticsSink(Protocol):
    """Receive the outcome of each lint cycle."""

    def clear(self) -> None:
        """Drop every diagnostic published by the previous cycle."""

        raise NotImplementedError

    def publish(self, diagnostics: Sequence[ResolvedDiagnostic]) -> None:
        """Replace the displayed diagnostics with ``diagnostics``."""

        raise NotImplementedError

    def report_failure(self, failure: LintFailure) -> None:
        """Surface ``failure`` to the user."""

        raise NotImplementedError


__all__ = ["DiagnosticsSink", "DocumentProvider"]
