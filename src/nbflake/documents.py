# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Build document snapshots from notebooks and Python source files."""

from __future__ import annotations

import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from .core.models import Document, Segment, SegmentKind

NOTEBOOK_SUFFIX: Final[str] = ".ipynb"
PYTHON_SUFFIXES: Final[frozenset[str]] = frozenset({".py", ".pyw", ".pyi"})
_PYTHON_LANGUAGES: Final[frozenset[str]] = frozenset({"python", "ipython", "python3"})


class DocumentError(ValueError):
    """Raised when a file cannot be turned into a lintable document."""


def _cell_source(cell: Mapping[str, Any]) -> str:
    source = cell.get("source", "")
    if isinstance(source, list):
        return "".join(str(part) for part in source)
    return str(source or "")


def _notebook_language(payload: Mapping[str, Any]) -> str | None:
    metadata = payload.get("metadata")
    if not isinstance(metadata, Mapping):
        return None
    language_info = metadata.get("language_info")
    if isinstance(language_info, Mapping) and isinstance(language_info.get("name"), str):
        return str(language_info["name"]).lower()
    kernelspec = metadata.get("kernelspec")
    if isinstance(kernelspec, Mapping) and isinstance(kernelspec.get("language"), str):
        return str(kernelspec["language"]).lower()
    return None


def document_from_notebook(payload: Mapping[str, Any]) -> Document:
    """Return a document with one segment per notebook cell.

    Args:
        payload: Parsed ``.ipynb`` JSON.

    Returns:
        Document: Code cells become code segments, every other cell is kept
        as a non-code segment so indices match the notebook.

    Raises:
        DocumentError: If the payload has no cell list or targets another language.
    """

    language = _notebook_language(payload)
    if language is not None and language not in _PYTHON_LANGUAGES:
        raise DocumentError(f"notebook language '{language}' is not Python")
    cells = payload.get("cells")
    if not isinstance(cells, list):
        raise DocumentError("notebook has no cell list")
    segments = []
    for index, cell in enumerate(cells):
        if not isinstance(cell, Mapping):
            raise DocumentError(f"notebook cell {index} is not an object")
        kind = SegmentKind.CODE if cell.get("cell_type") == "code" else SegmentKind.OTHER
        segments.append(Segment(index=index, kind=kind, text=_cell_source(cell)))
    return Document(segments=tuple(segments))


def document_from_source(text: str) -> Document:
    """Return a single-segment document for a flat Python buffer."""

    return Document(segments=(Segment(index=0, kind=SegmentKind.CODE, text=text),))


def load_document(path: Path) -> Document:
    """Read ``path`` as a notebook or Python source file.

    Args:
        path: File to read.

    Returns:
        Document: Snapshot of the file contents.

    Raises:
        DocumentError: If the file is unreadable, malformed or not Python.
    """

    suffix = path.suffix.lower()
    if suffix != NOTEBOOK_SUFFIX and suffix not in PYTHON_SUFFIXES:
        raise DocumentError(f"{path} is not a Python file or notebook")
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentError(f"unable to read {path}: {exc}") from exc
    if suffix != NOTEBOOK_SUFFIX:
        return document_from_source(text)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DocumentError(f"{path} is not valid notebook JSON: {exc}") from exc
    if not isinstance(payload, Mapping):
        raise DocumentError(f"{path} is not a notebook object")
    return document_from_notebook(payload)


class FileDocumentProvider:
    """Snapshot a document from disk each time it is requested."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """Return the file backing the provider."""

        return self._path

    def snapshot(self) -> Document:
        """Return the current contents of the file."""

        return load_document(self._path)


__all__ = [
    "DocumentError",
    "FileDocumentProvider",
    "NOTEBOOK_SUFFIX",
    "document_from_notebook",
    "document_from_source",
    "load_document",
]
