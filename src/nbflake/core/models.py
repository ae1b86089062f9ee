# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Core data models shared across the nbflake package."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from nbflake.core.severity import Severity, severity_from_code


class SegmentKind(str, Enum):
    """Enumerate the kinds of segment a document may contain."""

    CODE = "code"
    OTHER = "other"


class Segment(BaseModel):
    """Describe one addressable unit of source text, such as a notebook cell."""

    model_config = ConfigDict(frozen=True)

    index: int
    kind: SegmentKind = SegmentKind.CODE
    text: str = ""

    @property
    def is_code(self) -> bool:
        """Return whether the segment holds source code.

        Returns:
            bool: ``True`` when :attr:`kind` is :attr:`SegmentKind.CODE`.
        """

        return self.kind is SegmentKind.CODE


class Document(BaseModel):
    """Capture an immutable, ordered snapshot of segments for one lint attempt."""

    model_config = ConfigDict(frozen=True)

    segments: tuple[Segment, ...] = Field(default_factory=tuple)

    @model_validator(mode="after")
    def _check_unique_indices(self) -> Document:
        """Reject snapshots that address two segments with the same index.

        Returns:
            Document: The validated snapshot.

        Raises:
            ValueError: If two segments share an index.
        """

        seen: set[int] = set()
        for segment in self.segments:
            if segment.index in seen:
                raise ValueError(f"duplicate segment index {segment.index}")
            seen.add(segment.index)
        return self

    @classmethod
    def from_texts(cls, texts: Iterable[str], *, kind: SegmentKind = SegmentKind.CODE) -> Document:
        """Build a document whose segments all share ``kind``.

        Args:
            texts: Segment texts in document order.
            kind: Segment kind applied to every text.

        Returns:
            Document: Snapshot with segments indexed from zero.
        """

        return cls(segments=tuple(Segment(index=idx, kind=kind, text=text) for idx, text in enumerate(texts)))


class SegmentPosition(BaseModel):
    """Locate a flattened line inside the originating segment (0-based line)."""

    model_config = ConfigDict(frozen=True)

    segment_index: int
    local_line: int


class FlattenedText(BaseModel):
    """Linear text blob plus the line map used to walk back to segments."""

    model_config = ConfigDict(frozen=True)

    body: str
    line_map: dict[int, SegmentPosition] = Field(default_factory=dict)

    @property
    def line_count(self) -> int:
        """Return the number of flattened lines carrying a map entry."""

        return len(self.line_map)


class Dialect(str, Enum):
    """Shell quoting and escaping ruleset in effect for a session."""

    POSIX = "posix"
    WINDOWS = "windows"

    @classmethod
    def from_os_name(cls, name: str) -> Dialect | None:
        """Return the dialect matching a Python ``os.name`` value.

        Args:
            name: Value printed by ``os.name`` on the remote side.

        Returns:
            Dialect | None: Matching dialect, or ``None`` when unrecognised.
        """

        return {"posix": cls.POSIX, "nt": cls.WINDOWS}.get(name.strip().lower())


class LintCommand(BaseModel):
    """Shell-safe lint command together with the sentinels it echoes."""

    model_config = ConfigDict(frozen=True)

    text: str
    dialect: Dialect
    success_sentinel: str
    failure_sentinel: str

    def __str__(self) -> str:
        return self.text


class RawDiagnostic(BaseModel):
    """Diagnostic exactly as reported by the external tool (1-based)."""

    model_config = ConfigDict(frozen=True)

    line: int
    column: int
    code: str
    message: str


class ResolvedPosition(BaseModel):
    """Document coordinates of a diagnostic (0-based line and column)."""

    model_config = ConfigDict(frozen=True)

    segment_index: int
    local_line: int
    column: int


class ResolvedDiagnostic(BaseModel):
    """Raw diagnostic remapped into document coordinates."""

    model_config = ConfigDict(frozen=True)

    line: int
    column: int
    code: str
    message: str
    segment_index: int
    local_line: int
    local_column: int

    @classmethod
    def from_raw(cls, raw: RawDiagnostic, position: ResolvedPosition) -> ResolvedDiagnostic:
        """Combine ``raw`` with the document ``position`` it maps to.

        Args:
            raw: Diagnostic parsed from tool output.
            position: Resolved document coordinates.

        Returns:
            ResolvedDiagnostic: Diagnostic ready to publish.
        """

        return cls(
            line=raw.line,
            column=raw.column,
            code=raw.code,
            message=raw.message,
            segment_index=position.segment_index,
            local_line=position.local_line,
            local_column=position.column,
        )

    @property
    def severity(self) -> Severity:
        """Return the severity implied by the diagnostic code prefix."""

        return severity_from_code(self.code, Severity.WARNING)


class ReplyStatus(str, Enum):
    """Enumerate how a completed lint request finished."""

    COMPLETED = "completed"
    EXITED_NON_ZERO = "exited_non_zero"


class LintReply(BaseModel):
    """Diagnostics accumulated for one request and how the request ended."""

    model_config = ConfigDict(frozen=True)

    status: ReplyStatus = ReplyStatus.COMPLETED
    diagnostics: tuple[RawDiagnostic, ...] = Field(default_factory=tuple)


class SessionState(str, Enum):
    """Lifecycle states of a lint session and its channel protocol."""

    IDLE = "idle"
    STARTING = "starting"
    PROBING_DIALECT = "probing_dialect"
    READY = "ready"
    LINTING = "linting"
    DISPOSED = "disposed"


__all__ = [
    "Dialect",
    "Document",
    "FlattenedText",
    "LintCommand",
    "LintReply",
    "RawDiagnostic",
    "ReplyStatus",
    "ResolvedDiagnostic",
    "ResolvedPosition",
    "Segment",
    "SegmentKind",
    "SegmentPosition",
    "SessionState",
]
