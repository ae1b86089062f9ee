# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the channel protocol state machine."""

from __future__ import annotations

import asyncio

import pytest

from helpers.channels import ScriptedChannel, fake_shell
from nbflake.command import PROBE_COMMAND, SUCCESS_SENTINEL, build_lint_command
from nbflake.config import LintConfig
from nbflake.core.errors import (
    CapabilityUnavailableError,
    LintTimeoutError,
    ProtocolStateError,
    ToolCrashedError,
    ToolMissingError,
)
from nbflake.core.models import Dialect, ReplyStatus, SessionState
from nbflake.protocol import ChannelProtocol


async def _ready(channel: ScriptedChannel, config: LintConfig) -> ChannelProtocol:
    protocol = ChannelProtocol(channel, config)
    await protocol.start()
    return protocol


@pytest.mark.asyncio
async def test_start_probes_posix_and_prepares_terminal(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(os_name="posix"))

    protocol = ChannelProtocol(channel, fast_config)
    assert protocol.state is SessionState.IDLE
    dialect = await protocol.start()

    assert dialect is Dialect.POSIX
    assert protocol.state is SessionState.READY
    assert protocol.environment_usable
    assert channel.sent[0] == f"{PROBE_COMMAND}\n"
    assert channel.sent[1].startswith("case $- in *H*) set +H")
    assert channel.listeners == []


@pytest.mark.asyncio
async def test_start_probes_windows(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(os_name="nt"))

    protocol = await _ready(channel, fast_config)

    assert protocol.dialect is Dialect.WINDOWS
    assert channel.sent == [f"{PROBE_COMMAND}\n"]


@pytest.mark.asyncio
async def test_environment_activation_follows_probe(fast_config: LintConfig) -> None:
    fast_config.environment = "ml"
    channel = ScriptedChannel(fake_shell(os_name="nt"))

    await _ready(channel, fast_config)

    assert channel.sent[-1] == 'conda activate "ml"\n'


@pytest.mark.asyncio
async def test_missing_python_falls_back_to_posix(fast_config: LintConfig) -> None:
    def respond(text: str, channel: ScriptedChannel) -> None:
        if "os.name" in text:
            channel.deliver("sh: 1: python: not found\n")

    protocol = await _ready(ScriptedChannel(respond), fast_config)

    assert protocol.dialect is Dialect.POSIX
    assert not protocol.environment_usable
    assert protocol.state is SessionState.READY


@pytest.mark.asyncio
async def test_probe_timeout_falls_back_to_posix() -> None:
    config = LintConfig(startup_delay_ms=0, setup_delay_ms=0, timeout_ms=30)

    protocol = await _ready(ScriptedChannel(fake_shell(os_name=None)), config)

    assert protocol.dialect is Dialect.POSIX
    assert not protocol.environment_usable


@pytest.mark.asyncio
async def test_probe_ignores_unrelated_output(fast_config: LintConfig) -> None:
    def respond(text: str, channel: ScriptedChannel) -> None:
        if "os.name" in text:
            channel.deliver("Welcome back\n$ python -c \"import os; print(os.name)\"\n")
            channel.deliver("n")
            channel.deliver("t\r\n")

    protocol = await _ready(ScriptedChannel(respond), fast_config)

    assert protocol.dialect is Dialect.WINDOWS
    assert protocol.environment_usable


@pytest.mark.asyncio
async def test_dialect_override_skips_probe(fast_config: LintConfig) -> None:
    fast_config.dialect = Dialect.WINDOWS
    channel = ScriptedChannel(fake_shell(os_name="posix"))

    protocol = await _ready(channel, fast_config)

    assert protocol.dialect is Dialect.WINDOWS
    assert channel.sent == []


@pytest.mark.asyncio
async def test_open_failure_disposes_protocol(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(open_error=OSError("no terminal"))
    protocol = ChannelProtocol(channel, fast_config)

    with pytest.raises(CapabilityUnavailableError):
        await protocol.start()

    assert protocol.state is SessionState.DISPOSED
    assert channel.closed


@pytest.mark.asyncio
async def test_start_twice_is_rejected(fast_config: LintConfig) -> None:
    protocol = await _ready(ScriptedChannel(fake_shell()), fast_config)

    with pytest.raises(ProtocolStateError):
        await protocol.start()


def test_dialect_is_unknown_before_start(fast_config: LintConfig) -> None:
    protocol = ChannelProtocol(ScriptedChannel(), fast_config)

    with pytest.raises(ProtocolStateError):
        _ = protocol.dialect


@pytest.mark.asyncio
async def test_lint_reply_collects_diagnostics_until_sentinel(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(
        fake_shell(
            lint_lines=[
                "stdin:1:1: F401 'os' imported but unused",
                "stdin:3:1: E302 expected 2 blank lines, found 1",
            ]
        )
    )
    protocol = await _ready(channel, fast_config)

    reply = await protocol.submit(build_lint_command("import os\n\ndef f(): pass", Dialect.POSIX))

    assert reply.status is ReplyStatus.COMPLETED
    assert [(d.line, d.column, d.code) for d in reply.diagnostics] == [(1, 1, "F401"), (3, 1, "E302")]
    assert protocol.state is SessionState.READY
    assert channel.listeners == []
    assert channel.max_listeners == 1


@pytest.mark.asyncio
async def test_failure_sentinel_resolves_with_partial_diagnostics(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(lint_lines=["stdin:1:1: F401 'os' imported but unused"], finish="failure"))
    protocol = await _ready(channel, fast_config)

    reply = await protocol.submit(build_lint_command("import os", Dialect.POSIX))

    assert reply.status is ReplyStatus.EXITED_NON_ZERO
    assert len(reply.diagnostics) == 1


@pytest.mark.asyncio
async def test_traceback_fails_request(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(
        fake_shell(lint_lines=["Traceback (most recent call last):", '  File "flake8"'], finish="failure")
    )
    protocol = await _ready(channel, fast_config)

    with pytest.raises(ToolCrashedError):
        await protocol.submit(build_lint_command("x = 1", Dialect.POSIX))

    assert protocol.state is SessionState.READY


@pytest.mark.asyncio
async def test_diagnostic_about_traceback_name_does_not_fail_request(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(lint_lines=["stdin:1:7: F821 undefined name 'Traceback'"]))
    protocol = await _ready(channel, fast_config)

    reply = await protocol.submit(build_lint_command("raise Traceback", Dialect.POSIX))

    assert reply.status is ReplyStatus.COMPLETED
    assert [(d.line, d.column, d.code) for d in reply.diagnostics] == [(1, 7, "F821")]


@pytest.mark.asyncio
async def test_missing_tool_fails_request(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(lint_lines=["sh: 1: flake8: not found"], finish="failure"))
    protocol = await _ready(channel, fast_config)

    with pytest.raises(ToolMissingError) as excinfo:
        await protocol.submit(build_lint_command("x = 1", Dialect.POSIX))

    assert excinfo.value.detail == "sh: 1: flake8: not found"


@pytest.mark.asyncio
async def test_timeout_fails_request_and_ignores_late_output() -> None:
    config = LintConfig(startup_delay_ms=0, setup_delay_ms=0, timeout_ms=30)
    channel = ScriptedChannel(fake_shell(finish=None))
    protocol = await _ready(channel, config)

    with pytest.raises(LintTimeoutError):
        await protocol.submit(build_lint_command("x = 1", Dialect.POSIX))

    assert protocol.state is SessionState.READY
    assert channel.listeners == []
    channel.deliver(f"{SUCCESS_SENTINEL}\n")
    assert protocol.state is SessionState.READY


@pytest.mark.asyncio
async def test_echoed_command_is_not_mistaken_for_a_crash(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(lint_lines=["stdin:2:1: E305 expected 2 blank lines"]))
    protocol = await _ready(channel, fast_config)
    body = "x = 1\nmsg = 'Traceback here'\ny = 2"

    reply = await protocol.submit(build_lint_command(body, Dialect.POSIX))

    assert reply.status is ReplyStatus.COMPLETED
    assert [d.code for d in reply.diagnostics] == ["E305"]


@pytest.mark.asyncio
async def test_reply_split_across_arbitrary_chunks(fast_config: LintConfig) -> None:
    def respond(text: str, channel: ScriptedChannel) -> None:
        if "os.name" in text:
            channel.deliver("posix\n")
        elif "flake8" in text:
            for chunk in ("stdi", "n:2:5: E2", "25 missing whitespace\n@nbflake:lint-fin", "ished\n"):
                channel.deliver(chunk)

    protocol = await _ready(ScriptedChannel(respond), fast_config)

    reply = await protocol.submit(build_lint_command("x = 1\ny=2", Dialect.POSIX))

    assert [(d.line, d.column, d.code, d.message) for d in reply.diagnostics] == [
        (2, 5, "E225", "missing whitespace")
    ]


@pytest.mark.asyncio
async def test_submit_while_linting_is_rejected(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(finish=None))
    protocol = await _ready(channel, fast_config)
    pending = protocol.submit(build_lint_command("x = 1", Dialect.POSIX))
    sent_before = len(channel.sent)

    with pytest.raises(ProtocolStateError):
        protocol.submit(build_lint_command("y = 2", Dialect.POSIX))

    assert len(channel.sent) == sent_before
    assert protocol.state is SessionState.LINTING
    assert protocol.cancel()
    assert pending.cancelled()


@pytest.mark.asyncio
async def test_submit_before_start_is_rejected(fast_config: LintConfig) -> None:
    protocol = ChannelProtocol(ScriptedChannel(), fast_config)

    with pytest.raises(ProtocolStateError):
        protocol.submit(build_lint_command("x = 1", Dialect.POSIX))


@pytest.mark.asyncio
async def test_cancel_returns_to_ready(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(lint_lines=["stdin:1:1: F401 unused"], finish=None))
    protocol = await _ready(channel, fast_config)
    pending = protocol.submit(build_lint_command("import os", Dialect.POSIX))
    await asyncio.sleep(0.01)

    assert protocol.cancel()
    assert not protocol.cancel()
    assert pending.cancelled()
    assert protocol.state is SessionState.READY
    assert channel.listeners == []


@pytest.mark.asyncio
async def test_dispose_while_linting_cancels_request(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell(finish=None))
    protocol = await _ready(channel, fast_config)
    pending = protocol.submit(build_lint_command("x = 1", Dialect.POSIX))

    await protocol.dispose()
    await protocol.dispose()

    assert pending.cancelled()
    assert protocol.state is SessionState.DISPOSED
    assert channel.closed
    with pytest.raises(ProtocolStateError):
        protocol.submit(build_lint_command("x = 1", Dialect.POSIX))


@pytest.mark.asyncio
async def test_closed_channel_reports_capability_failure(fast_config: LintConfig) -> None:
    channel = ScriptedChannel(fake_shell())
    protocol = await _ready(channel, fast_config)
    channel.closed = True

    with pytest.raises(CapabilityUnavailableError):
        protocol.submit(build_lint_command("x = 1", Dialect.POSIX))

    assert protocol.state is SessionState.READY
