# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Flatten multi-segment documents into a single lintable text blob.

Segments are joined with one blank separator line. Every flattened line,
separators included, receives a :class:`~nbflake.core.models.SegmentPosition`
so that tool coordinates can be walked back to the originating segment.
Separator lines are attributed to the segment above them, one line past its
last line.

IPython magics are neutralised without changing line counts: a segment whose
first non-blank line is a non-whitelisted cell magic (``%%bash``) is commented
out wholesale, and any remaining line starting with ``%`` or ``!`` is
commented out on its own.
"""

from __future__ import annotations

from collections.abc import Collection, Sequence
from typing import Final

from nbflake.core.models import Document, FlattenedText, Segment, SegmentPosition

CELL_MAGIC_PREFIX: Final[str] = "%%"
LINE_MAGIC_PREFIXES: Final[tuple[str, ...]] = ("%", "!")
COMMENT_PREFIX: Final[str] = "# "
SEGMENT_SEPARATOR: Final[str] = "\n\n"

# Cell magics whose body is still Python source.
DEFAULT_CELL_MAGIC_WHITELIST: Final[frozenset[str]] = frozenset({"capture", "time", "timeit", "prun", "debug"})


def split_segment_lines(text: str) -> list[str]:
    """Split ``text`` into lines, treating one trailing newline as a terminator.

    Args:
        text: Raw segment text.

    Returns:
        list[str]: Lines of the segment without newline characters.
    """

    lines = text.split("\n")
    if len(lines) > 1 and not lines[-1]:
        lines.pop()
    return lines


def cell_magic_name(lines: Sequence[str]) -> str | None:
    """Return the cell magic named on the first non-blank line, if any.

    Args:
        lines: Segment lines in order.

    Returns:
        str | None: Magic name without the ``%%`` prefix (possibly empty),
        or ``None`` when the segment does not open with a cell magic.
    """

    for line in lines:
        stripped = line.strip()
        if not stripped:
            continue
        if not stripped.startswith(CELL_MAGIC_PREFIX):
            return None
        tokens = stripped[len(CELL_MAGIC_PREFIX) :].split()
        return tokens[0] if tokens else ""
    return None


def _comment(line: str) -> str:
    return f"{COMMENT_PREFIX}{line}" if line.strip() else line


def neutralise_magics(lines: Sequence[str], *, whitelist: Collection[str] = DEFAULT_CELL_MAGIC_WHITELIST) -> list[str]:
    """Comment out IPython magics in ``lines`` while preserving the line count.

    Args:
        lines: Segment lines in order.
        whitelist: Cell magics whose bodies remain visible to the linter.

    Returns:
        list[str]: Lines safe to hand to a Python linter.
    """

    magic = cell_magic_name(lines)
    if magic is not None and magic not in whitelist:
        return [_comment(line) for line in lines]
    return [_comment(line) if line.startswith(LINE_MAGIC_PREFIXES) else line for line in lines]


def _contributes(segment: Segment) -> bool:
    return segment.is_code and bool(segment.text)


def flatten(
    document: Document,
    *,
    whitelist: Collection[str] = DEFAULT_CELL_MAGIC_WHITELIST,
) -> FlattenedText:
    """Concatenate the code segments of ``document`` and index every line.

    Args:
        document: Immutable snapshot of the document being linted.
        whitelist: Cell magics whose bodies remain visible to the linter.

    Returns:
        FlattenedText: Joined body and a contiguous 1-based line map.
    """

    segments = document.segments
    if not segments:
        return FlattenedText(body="", line_map={})

    contributing = [
        (segment.index, neutralise_magics(split_segment_lines(segment.text), whitelist=whitelist))
        for segment in segments
        if _contributes(segment)
    ]

    line_map: dict[int, SegmentPosition] = {}
    line_no = 0
    previous: tuple[int, list[str]] | None = None
    for segment_index, lines in contributing:
        if previous is not None:
            prev_index, prev_lines = previous
            line_no += 1
            line_map[line_no] = SegmentPosition(segment_index=prev_index, local_line=len(prev_lines))
        for local_line in range(len(lines)):
            line_no += 1
            line_map[line_no] = SegmentPosition(segment_index=segment_index, local_line=local_line)
        previous = (segment_index, lines)

    last = segments[-1]
    if not _contributes(last):
        line_map[line_no + 1] = SegmentPosition(segment_index=last.index, local_line=0)

    body = SEGMENT_SEPARATOR.join("\n".join(lines) for _, lines in contributing)
    return FlattenedText(body=body, line_map=line_map)


__all__ = [
    "CELL_MAGIC_PREFIX",
    "DEFAULT_CELL_MAGIC_WHITELIST",
    "LINE_MAGIC_PREFIXES",
    "SEGMENT_SEPARATOR",
    "cell_magic_name",
    "flatten",
    "neutralise_magics",
    "split_segment_lines",
]
