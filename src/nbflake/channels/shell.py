# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Channel backed by a local shell process."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import shutil
from asyncio.subprocess import PIPE, STDOUT, Process
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Final

from ..core.errors import CapabilityUnavailableError
from ..interfaces.channel import MessageListener

LOGGER = logging.getLogger(__name__)

POSIX_SHELL: Final[tuple[str, ...]] = ("sh",)
WINDOWS_SHELL: Final[tuple[str, ...]] = ("powershell", "-NoLogo", "-NoProfile", "-Command", "-")
_CLOSE_TIMEOUT: Final[float] = 2.0


def default_shell_command(os_name: str | None = None) -> tuple[str, ...]:
    """Return the shell spawned for the current platform.

    Args:
        os_name: Value of ``os.name`` to select for; defaults to the host.

    Returns:
        tuple[str, ...]: Executable and arguments of the shell.
    """

    return WINDOWS_SHELL if (os_name or os.name) == "nt" else POSIX_SHELL


def _resolve_command(command: Sequence[str]) -> list[str]:
    if not command:
        raise CapabilityUnavailableError("shell command requires at least one argument")
    head, *rest = command
    if Path(head).is_absolute():
        return [head, *rest]
    resolved = shutil.which(head)
    if resolved is None:
        raise CapabilityUnavailableError(f"Shell '{head}' was not found on PATH")
    return [resolved, *rest]


class ShellChannel:
    """Drive a local shell through pipes; stderr is merged into stdout."""

    def __init__(
        self,
        command: Sequence[str] | None = None,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        newline: str = "\n",
        read_size: int = 4096,
    ) -> None:
        """Configure the shell without spawning it.

        Args:
            command: Shell executable and arguments; platform default when omitted.
            cwd: Working directory of the shell.
            env: Environment of the shell; inherits the current one when omitted.
            newline: Sequence appended to submit a command line.
            read_size: Maximum number of bytes delivered per chunk.
        """

        self._command = tuple(command) if command else default_shell_command()
        self._cwd = cwd
        self._env = dict(env) if env is not None else None
        self._newline = newline
        self._read_size = read_size
        self._listeners: list[MessageListener] = []
        self._process: Process | None = None
        self._reader: asyncio.Task[None] | None = None
        self._drain: asyncio.Future[None] | None = None

    @property
    def newline(self) -> str:
        """Return the sequence that submits a command line."""

        return self._newline

    @property
    def command(self) -> tuple[str, ...]:
        """Return the shell command line."""

        return self._command

    @property
    def pending_bytes(self) -> int:
        """Return how many written bytes the shell has not yet read."""

        process = self._process
        if process is None or process.stdin is None:
            return 0
        return process.stdin.transport.get_write_buffer_size()

    async def open(self) -> None:
        """Spawn the shell and start pumping its output to listeners.

        Raises:
            CapabilityUnavailableError: If the shell cannot be found or spawned.
        """

        if self._process is not None:
            return
        args = _resolve_command(self._command)
        try:
            # Bandit: argument vector comes from configuration, no shell expansion happens here.
            self._process = await asyncio.create_subprocess_exec(  # nosec B603
                *args,
                stdin=PIPE,
                stdout=PIPE,
                stderr=STDOUT,
                cwd=str(self._cwd) if self._cwd is not None else None,
                env=self._env,
            )
        except OSError as exc:
            raise CapabilityUnavailableError(f"Unable to start shell '{args[0]}': {exc}") from exc
        LOGGER.debug("spawned shell %s (pid %s)", args[0], self._process.pid)
        self._reader = asyncio.create_task(self._pump())

    async def _pump(self) -> None:
        process = self._process
        if process is None or process.stdout is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            data = await process.stdout.read(self._read_size)
            if not data:
                break
            self._dispatch(decoder.decode(data))
        self._dispatch(decoder.decode(b"", final=True))
        LOGGER.debug("shell output closed")

    def _dispatch(self, text: str) -> None:
        if not text:
            return
        for listener in tuple(self._listeners):
            try:
                listener(text)
            except Exception:  # pylint: disable=broad-exception-caught -- keep pumping output for other listeners
                LOGGER.exception("terminal listener raised while handling output")

    def send(self, text: str) -> None:
        """Write ``text`` to the shell's stdin.

        Raises:
            BrokenPipeError: If the shell is not running.
        """

        process = self._process
        if process is None or process.stdin is None or process.returncode is not None:
            raise BrokenPipeError("shell is not running")
        process.stdin.write(text.encode("utf-8"))
        if self._drain is None or self._drain.done():
            self._drain = asyncio.ensure_future(process.stdin.drain())
            self._drain.add_done_callback(self._on_drained)

    def _on_drained(self, drain: asyncio.Future[None]) -> None:
        if drain.cancelled():
            return
        exc = drain.exception()
        if exc is not None:
            LOGGER.warning("shell stopped reading its input: %s", exc)

    async def flush(self) -> None:
        """Wait until the shell's stdin has room for more input.

        Raises:
            ConnectionError: If the shell closed its input first.
        """

        drain = self._drain
        if drain is not None:
            await asyncio.shield(drain)

    def connect(self, listener: MessageListener) -> None:
        """Register ``listener`` for every output chunk."""

        if listener not in self._listeners:
            self._listeners.append(listener)

    def disconnect(self, listener: MessageListener) -> None:
        """Unregister ``listener``; unknown listeners are ignored."""

        if listener in self._listeners:
            self._listeners.remove(listener)

    async def close(self) -> None:
        """Terminate the shell and stop delivering output."""

        self._listeners.clear()
        process, self._process = self._process, None
        drain, self._drain = self._drain, None
        if drain is not None and not drain.done():
            drain.cancel()
            await asyncio.gather(drain, return_exceptions=True)
        if process is not None:
            if process.stdin is not None and not process.stdin.is_closing():
                process.stdin.close()
            try:
                await asyncio.wait_for(process.wait(), _CLOSE_TIMEOUT)
            except TimeoutError:
                process.kill()
                await process.wait()
        reader, self._reader = self._reader, None
        if reader is not None:
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)


__all__ = ["POSIX_SHELL", "ShellChannel", "WINDOWS_SHELL", "default_shell_command"]
