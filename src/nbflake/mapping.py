# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Translate flattened-text coordinates back into document coordinates."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from nbflake.core.models import RawDiagnostic, ResolvedDiagnostic, ResolvedPosition, SegmentPosition

LOGGER = logging.getLogger(__name__)


def resolve(line_map: Mapping[int, SegmentPosition], line: int, column: int) -> ResolvedPosition | None:
    """Return the document position of a 1-based flattened ``line``/``column``.

    Args:
        line_map: Line map produced by :func:`nbflake.flatten.flatten`.
        line: 1-based line number reported by the tool.
        column: 1-based column reported by the tool.

    Returns:
        ResolvedPosition | None: Segment, local line and 0-based column, or
        ``None`` when ``line`` has no entry.
    """

    entry = line_map.get(line)
    if entry is None:
        return None
    return ResolvedPosition(
        segment_index=entry.segment_index,
        local_line=entry.local_line,
        column=max(column - 1, 0),
    )


def resolve_diagnostics(
    line_map: Mapping[int, SegmentPosition],
    diagnostics: Iterable[RawDiagnostic],
) -> tuple[ResolvedDiagnostic, ...]:
    """Resolve every diagnostic, dropping those whose line cannot be mapped.

    Args:
        line_map: Line map produced by :func:`nbflake.flatten.flatten`.
        diagnostics: Raw diagnostics in tool order.

    Returns:
        tuple[ResolvedDiagnostic, ...]: Mapped diagnostics in tool order.
    """

    resolved: list[ResolvedDiagnostic] = []
    for diagnostic in diagnostics:
        position = resolve(line_map, diagnostic.line, diagnostic.column)
        if position is None:
            LOGGER.debug("dropping unmappable diagnostic %s at line %d", diagnostic.code, diagnostic.line)
            continue
        resolved.append(ResolvedDiagnostic.from_raw(diagnostic, position))
    return tuple(resolved)


__all__ = ["resolve", "resolve_diagnostics"]
