# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Typer application exposing the lint and probe commands."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import typer

from ..config import LintConfig
from ..core.errors import LintFailure, ToolExitedNonZeroError
from ..core.models import Document
from ..documents import NOTEBOOK_SUFFIX, DocumentError, load_document
from ..logging import configure_logging, fail, info, ok, warn
from ..reporting import ConsoleSink
from ..session import LintSession
from . import shared
from .shared import EXIT_CLEAN, EXIT_DIAGNOSTICS, EXIT_FAILURE, CLIError

app = typer.Typer(help="Lint notebooks and Python files with flake8 running in a shell.", no_args_is_help=True)


def _overrides(
    *,
    config_file: Path | None,
    timeout_ms: int | None,
    dialect: str | None,
    environment: str | None,
    verbose: bool,
) -> dict[str, Any]:
    return {
        "config_file": config_file,
        "timeout_ms": timeout_ms,
        "dialect": dialect,
        "environment": environment,
        "verbose": True if verbose else None,
    }


def _exit_code(diagnostics: int, failure: LintFailure | None) -> int:
    if failure is not None and not isinstance(failure, ToolExitedNonZeroError):
        return EXIT_FAILURE
    if diagnostics:
        return EXIT_DIAGNOSTICS
    return EXIT_FAILURE if failure is not None else EXIT_CLEAN


async def _lint_document(document: Document, root: Path, config: LintConfig, sink: ConsoleSink) -> int:
    # The first timeout ends a one-shot run.
    one_shot = config.model_copy(update={"max_consecutive_timeouts": 1})
    session = LintSession(lambda: shared.build_channel(root), sink, one_shot)
    try:
        await session.start()
    except LintFailure:
        return EXIT_FAILURE
    try:
        result = await session.on_trigger(document)
    finally:
        await session.dispose()
    if result is None:
        raise CLIError("the lint terminal was not ready")
    return _exit_code(len(result.diagnostics), result.failure)


@app.command("lint")
def lint_command(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Notebook or Python file to lint."),
    root: Path | None = typer.Option(None, "--root", "-r", help="Project root; defaults to the working directory."),
    config_file: Path | None = typer.Option(None, "--config-file", help="flake8 configuration file."),
    timeout_ms: int | None = typer.Option(None, "--timeout-ms", help="Milliseconds to wait for flake8."),
    dialect: str | None = typer.Option(None, "--dialect", help="Skip probing: 'posix' or 'windows'."),
    environment: str | None = typer.Option(None, "--environment", help="Conda environment to activate."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log terminal traffic."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Toggle emoji output."),
) -> None:
    """Lint PATH once and print its diagnostics.

    Exits 0 when clean, 1 when diagnostics were found and 2 on failure.
    """

    root = root or Path.cwd()
    overrides = _overrides(
        config_file=config_file,
        timeout_ms=timeout_ms,
        dialect=dialect,
        environment=environment,
        verbose=verbose,
    )
    try:
        config = shared.resolve_config(root, overrides)
        configure_logging(verbose=config.verbose)
        try:
            document = load_document(path)
        except DocumentError as exc:
            raise CLIError(str(exc)) from exc
        sink = ConsoleSink(use_emoji=emoji, single_segment=path.suffix.lower() != NOTEBOOK_SUFFIX)
        code = asyncio.run(_lint_document(document, root, config, sink))
    except CLIError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=exc.exit_code) from exc
    raise typer.Exit(code=code)


async def _probe(root: Path, config: LintConfig, sink: ConsoleSink) -> tuple[str, bool]:
    session = LintSession(lambda: shared.build_channel(root), sink, config)
    async with session:
        dialect = session.dialect
        return (dialect.value if dialect is not None else "unknown"), session.environment_usable


@app.command("probe")
def probe_command(
    root: Path | None = typer.Option(None, "--root", "-r", help="Project root; defaults to the working directory."),
    environment: str | None = typer.Option(None, "--environment", help="Conda environment to activate."),
    timeout_ms: int | None = typer.Option(None, "--timeout-ms", help="Milliseconds to wait for the probe."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log terminal traffic."),
    emoji: bool = typer.Option(True, "--emoji/--no-emoji", help="Toggle emoji output."),
) -> None:
    """Report which shell dialect the lint terminal speaks."""

    root = root or Path.cwd()
    overrides = _overrides(
        config_file=None,
        timeout_ms=timeout_ms,
        dialect=None,
        environment=environment,
        verbose=verbose,
    )
    try:
        config = shared.resolve_config(root, overrides)
    except CLIError as exc:
        fail(str(exc), use_emoji=emoji)
        raise typer.Exit(code=exc.exit_code) from exc
    configure_logging(verbose=config.verbose)
    sink = ConsoleSink(use_emoji=emoji)
    try:
        dialect, usable = asyncio.run(_probe(root, config, sink))
    except LintFailure as exc:
        raise typer.Exit(code=EXIT_FAILURE) from exc
    info(f"dialect: {dialect}", use_emoji=emoji)
    if not usable:
        warn("the terminal did not confirm a usable Python environment", use_emoji=emoji)
        raise typer.Exit(code=EXIT_FAILURE)
    ok("terminal ready", use_emoji=emoji)


def main() -> None:
    """Console script entry point."""

    app()


__all__ = ["app", "lint_command", "main", "probe_command"]
