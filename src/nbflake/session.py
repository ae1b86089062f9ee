# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Lint session coordinating flattening, the channel protocol and remapping."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from types import TracebackType

from .command import build_lint_command
from .config import LintConfig
from .core.errors import (
    CapabilityUnavailableError,
    LintFailure,
    LintTimeoutError,
    ProtocolStateError,
    ToolExitedNonZeroError,
)
from .core.models import Dialect, Document, FlattenedText, LintReply, ReplyStatus, ResolvedDiagnostic, SessionState
from .flatten import flatten
from .interfaces.channel import Channel
from .interfaces.documents import DiagnosticsSink, DocumentProvider
from .mapping import resolve_diagnostics
from .protocol import ChannelProtocol

LOGGER = logging.getLogger(__name__)

ChannelFactory = Callable[[], Channel]


@dataclass(frozen=True, slots=True)
class LintCycleResult:
    """Outcome of one completed lint cycle."""

    diagnostics: tuple[ResolvedDiagnostic, ...] = ()
    failure: LintFailure | None = None

    @property
    def ok(self) -> bool:
        """Return ``True`` when the cycle finished without a failure."""

        return self.failure is None


class LintSession:
    """Single-flight lint session for one document.

    The session owns the current diagnostics, the text of the last linted
    body and the in-flight flag. Triggers whose flattened body matches the
    last linted body are no-ops; triggers arriving while a request is in
    flight are dropped rather than queued. A timeout restarts the channel
    protocol on a fresh channel; a missing or crashing tool disables
    automatic triggers until :meth:`enable` is called.
    """

    def __init__(
        self,
        channel_factory: ChannelFactory,
        sink: DiagnosticsSink,
        config: LintConfig | None = None,
    ) -> None:
        """Create an idle session.

        Args:
            channel_factory: Callable returning a fresh, unopened channel.
            sink: Receiver of published diagnostics and failures.
            config: Session options; defaults apply when omitted.
        """

        self._channel_factory = channel_factory
        self._sink = sink
        self._config = config or LintConfig()
        self._protocol: ChannelProtocol | None = None
        self._last_linted_text: str | None = None
        self._in_flight = False
        self._enabled = True
        self._disposed = False
        self._diagnostics: tuple[ResolvedDiagnostic, ...] = ()
        self._consecutive_timeouts = 0
        self._debounce_handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[LintCycleResult | None]] = set()

    @property
    def state(self) -> SessionState:
        """Return the lifecycle state of the session."""

        if self._disposed:
            return SessionState.DISPOSED
        if self._protocol is None:
            return SessionState.IDLE
        return self._protocol.state

    @property
    def dialect(self) -> Dialect | None:
        """Return the dialect of the running protocol, if it finished probing."""

        if self._protocol is None or self._protocol.state not in (SessionState.READY, SessionState.LINTING):
            return None
        return self._protocol.dialect

    @property
    def environment_usable(self) -> bool:
        """Return ``False`` when the terminal could not confirm a working Python."""

        return self._protocol is not None and self._protocol.environment_usable

    @property
    def diagnostics(self) -> tuple[ResolvedDiagnostic, ...]:
        """Return the diagnostics published by the last successful cycle."""

        return self._diagnostics

    @property
    def in_flight(self) -> bool:
        """Return whether a lint request is outstanding."""

        return self._in_flight

    @property
    def enabled(self) -> bool:
        """Return whether triggers are currently acted upon."""

        return self._enabled

    @property
    def last_linted_text(self) -> str | None:
        """Return the flattened body of the last resolved cycle."""

        return self._last_linted_text

    async def __aenter__(self) -> LintSession:
        await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        await self.dispose()

    async def start(self) -> Dialect:
        """Start a channel protocol on a fresh channel.

        Returns:
            Dialect: Dialect selected for the session.

        Raises:
            CapabilityUnavailableError: If no terminal can be opened. The
                failure is also reported to the sink and the session is
                disposed.
            ProtocolStateError: If a terminal is already running.
        """

        if self._disposed:
            raise CapabilityUnavailableError("lint session has been disposed")
        if self._protocol is not None and self._protocol.state is not SessionState.DISPOSED:
            raise ProtocolStateError("lint session is already started")
        protocol = ChannelProtocol(self._channel_factory(), self._config)
        self._protocol = protocol
        try:
            dialect = await protocol.start()
        except CapabilityUnavailableError as exc:
            self._enabled = False
            self._disposed = True
            self._sink.report_failure(exc)
            raise
        if not protocol.environment_usable:
            LOGGER.warning("terminal did not confirm a usable Python environment")
        return dialect

    async def restart(self) -> Dialect:
        """Dispose the current protocol and start a new one."""

        if self._protocol is not None:
            await self._protocol.dispose()
            self._protocol = None
        LOGGER.info("restarting lint terminal")
        return await self.start()

    async def on_trigger(self, document: Document) -> LintCycleResult | None:
        """Lint ``document`` unless nothing changed or a lint is running.

        Args:
            document: Fresh snapshot of the document.

        Returns:
            LintCycleResult | None: Outcome of the cycle, or ``None`` when the
            trigger was a no-op or the cycle was cancelled.
        """

        if not self._enabled or self._disposed:
            LOGGER.debug("ignoring trigger: automatic linting is disabled")
            return None
        flattened = flatten(document)
        if flattened.body == self._last_linted_text:
            LOGGER.debug("ignoring trigger: text unchanged")
            return None
        if self._in_flight:
            LOGGER.debug("ignoring trigger: flake8 is already running")
            return None
        if not flattened.body.strip():
            return self._publish_blank(flattened.body)
        protocol = self._protocol
        if protocol is None or protocol.state is not SessionState.READY:
            LOGGER.debug("ignoring trigger: terminal is not ready")
            return None

        self._in_flight = True
        self._diagnostics = ()
        self._sink.clear()
        try:
            command = build_lint_command(flattened.body, protocol.dialect, self._config.config_file)
            try:
                reply = await protocol.submit(command)
            except asyncio.CancelledError:
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    raise
                LOGGER.debug("lint cycle cancelled")
                return None
            except LintTimeoutError as exc:
                return await self._handle_timeout(exc)
            except LintFailure as exc:
                return self._handle_failure(exc, flattened.body)
            return self._handle_reply(reply, flattened)
        finally:
            self._in_flight = False

    def _publish_blank(self, body: str) -> LintCycleResult:
        # Blank text is never sent to flake8.
        self._consecutive_timeouts = 0
        self._last_linted_text = body
        self._diagnostics = ()
        self._sink.clear()
        self._sink.publish(())
        LOGGER.debug("document is blank; published no diagnostics")
        return LintCycleResult()

    def _handle_reply(self, reply: LintReply, flattened: FlattenedText) -> LintCycleResult:
        resolved = resolve_diagnostics(flattened.line_map, reply.diagnostics)
        self._consecutive_timeouts = 0
        self._last_linted_text = flattened.body
        self._diagnostics = resolved
        self._sink.publish(resolved)
        failure: LintFailure | None = None
        if reply.status is ReplyStatus.EXITED_NON_ZERO:
            failure = ToolExitedNonZeroError(
                "flake8 exited with a failure status; showing partial results",
                diagnostics=reply.diagnostics,
            )
            self._sink.report_failure(failure)
        LOGGER.debug("published %d of %d diagnostics", len(resolved), len(reply.diagnostics))
        return LintCycleResult(diagnostics=resolved, failure=failure)

    def _handle_failure(self, failure: LintFailure, body: str) -> LintCycleResult:
        self._consecutive_timeouts = 0
        self._last_linted_text = body
        if failure.disables_session:
            self._enabled = False
            LOGGER.warning("disabling automatic linting: %s", failure)
        self._sink.report_failure(failure)
        return LintCycleResult(failure=failure)

    async def _handle_timeout(self, failure: LintTimeoutError) -> LintCycleResult:
        self._consecutive_timeouts += 1
        self._sink.report_failure(failure)
        if self._consecutive_timeouts >= self._config.max_consecutive_timeouts:
            LOGGER.warning(
                "terminal timed out %d times in a row; disabling automatic linting",
                self._consecutive_timeouts,
            )
            self._enabled = False
            if self._protocol is not None:
                await self._protocol.dispose()
            return LintCycleResult(failure=failure)
        try:
            await self.restart()
        except CapabilityUnavailableError:
            LOGGER.warning("terminal could not be restarted after a timeout")
        return LintCycleResult(failure=failure)

    def schedule(self, source: Document | DocumentProvider) -> None:
        """Trigger a lint after the debounce window, coalescing rapid calls.

        Args:
            source: Document snapshot, or a provider snapshotted when the
                window elapses.
        """

        if not self._enabled or self._disposed:
            return
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
        loop = asyncio.get_running_loop()
        self._debounce_handle = loop.call_later(self._config.debounce, self._fire, source)

    def _fire(self, source: Document | DocumentProvider) -> None:
        self._debounce_handle = None
        document = source if isinstance(source, Document) else source.snapshot()
        task = asyncio.ensure_future(self.on_trigger(document))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[LintCycleResult | None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error("scheduled lint failed: %s", exc, exc_info=exc)

    async def wait_idle(self) -> None:
        """Wait for scheduled triggers and their lint cycles to finish."""

        while self._debounce_handle is not None or self._tasks:
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            else:
                await asyncio.sleep(self._config.debounce / 2 or 0)

    def cancel(self) -> bool:
        """Abandon the in-flight lint without publishing its diagnostics.

        Returns:
            bool: ``True`` when a request was outstanding.
        """

        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None
        if self._protocol is None:
            return False
        return self._protocol.cancel()

    def disable(self) -> None:
        """Stop acting on triggers until :meth:`enable` is called."""

        self._enabled = False
        if self._debounce_handle is not None:
            self._debounce_handle.cancel()
            self._debounce_handle = None

    async def enable(self) -> None:
        """Resume acting on triggers, restarting the terminal if it was torn down."""

        if self._disposed:
            raise CapabilityUnavailableError("lint session has been disposed")
        self._enabled = True
        self._last_linted_text = None
        self._consecutive_timeouts = 0
        if self._protocol is None or self._protocol.state is SessionState.DISPOSED:
            await self.restart()

    async def dispose(self) -> None:
        """Cancel pending work and release the terminal."""

        if self._disposed and self._protocol is None:
            return
        self.cancel()
        for task in list(self._tasks):
            task.cancel()
        self._disposed = True
        self._enabled = False
        if self._protocol is not None:
            await self._protocol.dispose()
            self._protocol = None


__all__ = ["ChannelFactory", "LintCycleResult", "LintSession"]
