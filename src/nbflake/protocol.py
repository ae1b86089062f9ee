# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Request/response protocol recovered from an untyped terminal stream.

:class:`ChannelProtocol` owns one :class:`~nbflake.interfaces.Channel`. It
opens the channel, probes which shell dialect is on the other end, prepares
the terminal, and then serves one lint request at a time. Replies are
buffered into logical lines, stripped of command echoes, classified, and
used to resolve the outstanding request exactly once: with a
:class:`~nbflake.core.models.LintReply`, or with a
:class:`~nbflake.core.errors.LintFailure` for crashes, a missing tool and
timeouts.

Message delivery and the timeout callback both run on the event loop that
called :meth:`ChannelProtocol.submit`, so state changes never interleave.
At most one listener is connected to the channel at any time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Final

from .command import PROBE_COMMAND, build_setup_commands
from .config import LintConfig
from .core.errors import (
    CapabilityUnavailableError,
    LintFailure,
    LintTimeoutError,
    ProtocolStateError,
    ToolCrashedError,
    ToolMissingError,
)
from .core.models import Dialect, LintCommand, LintReply, RawDiagnostic, ReplyStatus, SessionState
from .interfaces.channel import Channel, MessageListener
from .parsers.flake8 import EchoFilter, LineBuffer, LineKind, ProbeOutcome, classify_line, classify_probe_line

LOGGER = logging.getLogger(__name__)

DEFAULT_DIALECT: Final[Dialect] = Dialect.POSIX


class ChannelProtocol:
    """Drive flake8 through ``channel`` one request at a time."""

    def __init__(self, channel: Channel, config: LintConfig | None = None) -> None:
        """Bind the protocol to ``channel`` without opening it.

        Args:
            channel: Terminal-like transport to drive.
            config: Session options; defaults apply when omitted.
        """

        self._channel = channel
        self._config = config or LintConfig()
        self._state = SessionState.IDLE
        self._dialect: Dialect | None = None
        self._environment_usable = True
        self._listener: MessageListener | None = None
        self._probe_future: asyncio.Future[ProbeOutcome] | None = None
        self._pending: asyncio.Future[LintReply] | None = None
        self._command: LintCommand | None = None
        self._buffer = LineBuffer()
        self._echo = EchoFilter()
        self._diagnostics: list[RawDiagnostic] = []
        self._timer: asyncio.TimerHandle | None = None

    @property
    def state(self) -> SessionState:
        """Return the current protocol state."""

        return self._state

    @property
    def dialect(self) -> Dialect:
        """Return the dialect selected while starting.

        Raises:
            ProtocolStateError: If the protocol has not finished probing.
        """

        if self._dialect is None:
            raise ProtocolStateError("dialect is unknown until the protocol has started")
        return self._dialect

    @property
    def environment_usable(self) -> bool:
        """Return ``False`` when the probe could not confirm a working Python."""

        return self._environment_usable

    @property
    def channel(self) -> Channel:
        """Return the channel driven by this protocol."""

        return self._channel

    def _transition(self, state: SessionState) -> None:
        LOGGER.debug("protocol state %s -> %s", self._state.value, state.value)
        self._state = state

    def _attach(self, listener: MessageListener) -> None:
        self._detach()
        self._listener = listener
        self._channel.connect(listener)

    def _detach(self) -> None:
        if self._listener is not None:
            self._channel.disconnect(self._listener)
            self._listener = None

    def _send(self, text: str) -> None:
        LOGGER.debug("sending %d characters to terminal", len(text))
        self._channel.send(f"{text}{self._channel.newline}")

    def _ensure_alive(self) -> None:
        if self._state is SessionState.DISPOSED:
            raise ProtocolStateError("protocol was disposed while starting")

    async def start(self) -> Dialect:
        """Open the channel, probe the dialect and prepare the terminal.

        Returns:
            Dialect: Dialect used for every command of this protocol.

        Raises:
            CapabilityUnavailableError: If the channel cannot be opened; the
                protocol is disposed.
            ProtocolStateError: If the protocol was already started or was
                disposed while starting.
        """

        if self._state is not SessionState.IDLE:
            raise ProtocolStateError(f"cannot start protocol in state {self._state.value}")
        self._transition(SessionState.STARTING)
        try:
            await self._channel.open()
        except (CapabilityUnavailableError, OSError) as exc:
            LOGGER.warning("terminal unavailable: %s", exc)
            await self.dispose()
            if isinstance(exc, CapabilityUnavailableError):
                raise
            raise CapabilityUnavailableError(f"Unable to open a terminal for linting: {exc}") from exc
        self._ensure_alive()

        self._transition(SessionState.PROBING_DIALECT)
        if self._config.dialect is not None:
            self._dialect = self._config.dialect
            LOGGER.debug("dialect overridden to %s", self._dialect.value)
        else:
            await self._discard_startup_output()
            self._ensure_alive()
            self._dialect = await self._probe_dialect()
        self._ensure_alive()

        commands = build_setup_commands(self._dialect, self._config.environment)
        for command in commands:
            self._send(command)
        if commands and self._config.setup_delay:
            await asyncio.sleep(self._config.setup_delay)
        self._ensure_alive()

        self._transition(SessionState.READY)
        return self._dialect

    async def _discard_startup_output(self) -> None:
        """Swallow whatever the terminal prints while it finishes loading."""

        def _discard(chunk: str) -> None:
            LOGGER.debug("discarding startup output: %r", chunk)

        self._attach(_discard)
        try:
            await asyncio.sleep(self._config.startup_delay)
        finally:
            self._detach()

    async def _probe_dialect(self) -> Dialect:
        """Ask the terminal for ``os.name`` and map the reply to a dialect."""

        loop = asyncio.get_running_loop()
        future: asyncio.Future[ProbeOutcome] = loop.create_future()
        buffer = LineBuffer()

        def _resolve(outcome: ProbeOutcome) -> None:
            if future.done():
                return
            self._detach()
            future.set_result(outcome)

        def _on_probe_message(chunk: str) -> None:
            for line in buffer.feed(chunk):
                outcome = classify_probe_line(line)
                LOGGER.debug("probe reply %r classified as %s", line, outcome.value)
                if outcome is not ProbeOutcome.IGNORED:
                    _resolve(outcome)
                    return

        self._probe_future = future
        self._attach(_on_probe_message)
        timer = loop.call_later(self._config.timeout, _resolve, ProbeOutcome.INCONCLUSIVE)
        try:
            self._send(PROBE_COMMAND)
            outcome = await future
        except asyncio.CancelledError:
            task = asyncio.current_task()
            if task is not None and task.cancelling():
                raise
            raise ProtocolStateError("protocol was disposed while probing") from None
        finally:
            timer.cancel()
            self._detach()
            self._probe_future = None

        dialect = outcome.dialect
        if dialect is None:
            self._environment_usable = False
            LOGGER.warning(
                "dialect probe was %s; falling back to %s and treating the environment as unusable",
                outcome.value,
                DEFAULT_DIALECT.value,
            )
            return DEFAULT_DIALECT
        LOGGER.debug("dialect detected: %s", dialect.value)
        return dialect

    def submit(self, command: LintCommand) -> asyncio.Future[LintReply]:
        """Send ``command`` and return a future resolved by its reply.

        Args:
            command: Command produced by :func:`nbflake.command.build_lint_command`.

        Returns:
            asyncio.Future[LintReply]: Resolved with the accumulated diagnostics,
            or failed with :class:`ToolCrashedError`, :class:`ToolMissingError`
            or :class:`LintTimeoutError`.

        Raises:
            ProtocolStateError: If a request is already outstanding or the
                protocol is not ready; nothing is sent and the state is kept.
            CapabilityUnavailableError: If the channel rejects the command.
        """

        if self._state is SessionState.LINTING:
            raise ProtocolStateError("a lint request is already outstanding")
        if self._state is not SessionState.READY:
            raise ProtocolStateError(f"cannot submit while {self._state.value}")

        loop = asyncio.get_running_loop()
        future: asyncio.Future[LintReply] = loop.create_future()
        self._pending = future
        self._command = command
        self._diagnostics = []
        self._buffer.clear()
        self._echo = EchoFilter.for_command(
            command.text,
            success_sentinel=command.success_sentinel,
            failure_sentinel=command.failure_sentinel,
        )
        self._transition(SessionState.LINTING)
        self._attach(self._on_lint_message)
        self._timer = loop.call_later(self._config.timeout, self._on_timeout)
        try:
            self._send(command.text)
        except OSError as exc:
            self._finish()
            future.cancel()
            raise CapabilityUnavailableError(f"Terminal rejected the lint command: {exc}") from exc
        return future

    def _on_lint_message(self, chunk: str) -> None:
        for line in self._buffer.feed(chunk):
            if self._state is not SessionState.LINTING:
                return
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        command = self._command
        if command is None:
            return
        if self._echo.matches(line):
            LOGGER.debug("ignoring command echo %r", line)
            return
        classified = classify_line(
            line,
            success_sentinel=command.success_sentinel,
            failure_sentinel=command.failure_sentinel,
        )
        kind = classified.kind
        if kind is LineKind.TRACEBACK:
            self._fail(ToolCrashedError("flake8 raised a Python error", detail=line))
        elif kind is LineKind.COMMAND_NOT_FOUND:
            self._fail(ToolMissingError("flake8 was not found in this environment", detail=line))
        elif kind is LineKind.DIAGNOSTIC and classified.diagnostic is not None:
            self._diagnostics.append(classified.diagnostic)
        elif kind is LineKind.SUCCESS:
            self._complete(ReplyStatus.COMPLETED)
        elif kind is LineKind.FAILURE:
            self._complete(ReplyStatus.EXITED_NON_ZERO)
        else:
            LOGGER.debug("ignoring terminal output %r", line)

    def _on_timeout(self) -> None:
        self._timer = None
        if self._state is not SessionState.LINTING:
            return
        LOGGER.warning("lint command timed out after %d ms", self._config.timeout_ms)
        self._fail(LintTimeoutError(f"No reply from the terminal within {self._config.timeout_ms} ms"))

    def _finish(self) -> asyncio.Future[LintReply] | None:
        """Cancel the deadline, drop the listener and return to ``Ready``."""

        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._detach()
        self._buffer.clear()
        future, self._pending = self._pending, None
        self._command = None
        if self._state is SessionState.LINTING:
            self._transition(SessionState.READY)
        return future

    def _complete(self, status: ReplyStatus) -> None:
        diagnostics = tuple(self._diagnostics)
        self._diagnostics = []
        future = self._finish()
        if future is not None and not future.done():
            future.set_result(LintReply(status=status, diagnostics=diagnostics))

    def _fail(self, failure: LintFailure) -> None:
        self._diagnostics = []
        future = self._finish()
        if future is not None and not future.done():
            future.set_exception(failure)

    def cancel(self) -> bool:
        """Abandon the outstanding request without resolving it.

        Partially accumulated diagnostics are discarded and the pending
        future is cancelled.

        Returns:
            bool: ``True`` when a request was outstanding.
        """

        if self._state is not SessionState.LINTING:
            return False
        LOGGER.debug("cancelling outstanding lint request")
        self._diagnostics = []
        future = self._finish()
        if future is not None:
            future.cancel()
        return True

    async def dispose(self) -> None:
        """Tear the protocol down from any state and close the channel."""

        if self._state is SessionState.DISPOSED:
            return
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._detach()
        self._diagnostics = []
        for future in (self._pending, self._probe_future):
            if future is not None and not future.done():
                future.cancel()
        self._pending = None
        self._command = None
        self._transition(SessionState.DISPOSED)
        await self._channel.close()


__all__ = ["ChannelProtocol", "DEFAULT_DIALECT"]
