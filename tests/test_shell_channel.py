# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Tests for the subprocess-backed shell channel."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from helpers.channels import RecordingSink, wait_until
from nbflake.channels.shell import POSIX_SHELL, WINDOWS_SHELL, ShellChannel, default_shell_command
from nbflake.config import LintConfig
from nbflake.core.errors import CapabilityUnavailableError
from nbflake.core.models import Dialect, SessionState
from nbflake.interfaces import Channel
from nbflake.session import LintSession

requires_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="requires a POSIX shell")


def test_default_shell_follows_platform() -> None:
    assert default_shell_command("posix") == POSIX_SHELL
    assert default_shell_command("nt") == WINDOWS_SHELL


def test_shell_channel_satisfies_channel_protocol() -> None:
    assert isinstance(ShellChannel(("sh",)), Channel)


@pytest.mark.asyncio
async def test_missing_shell_is_a_capability_failure() -> None:
    channel = ShellChannel(("nbflake-no-such-shell",))

    with pytest.raises(CapabilityUnavailableError):
        await channel.open()


def test_send_before_open_raises() -> None:
    with pytest.raises(BrokenPipeError):
        ShellChannel(("sh",)).send("echo hi\n")


@requires_sh
@pytest.mark.asyncio
async def test_shell_output_reaches_listeners(tmp_path: Path) -> None:
    channel = ShellChannel(("sh",), cwd=tmp_path)
    received: list[str] = []
    channel.connect(received.append)
    await channel.open()
    try:
        channel.send("echo hello; echo oops 1>&2\n")
        await wait_until(lambda: "oops" in "".join(received), timeout=5.0)
    finally:
        await channel.close()

    assert "hello\n" in "".join(received)


@requires_sh
@pytest.mark.asyncio
async def test_large_command_is_fully_delivered(tmp_path: Path) -> None:
    channel = ShellChannel(("sh",), cwd=tmp_path)
    received: list[str] = []
    channel.connect(received.append)
    await channel.open()
    try:
        channel.send(": " + "x" * 500_000 + "\n")
        assert channel.pending_bytes > 0
        channel.send("echo done\n")
        await wait_until(lambda: "done" in "".join(received), timeout=10.0)
        await channel.flush()

        assert channel.pending_bytes == 0
    finally:
        await channel.close()


@requires_sh
@pytest.mark.asyncio
async def test_session_probes_real_shell(tmp_path: Path) -> None:
    if shutil.which("python") is None:
        pytest.skip("requires python on PATH")
    config = LintConfig(startup_delay_ms=0, setup_delay_ms=50, timeout_ms=10000)
    session = LintSession(lambda: ShellChannel(("sh",), cwd=tmp_path), RecordingSink(), config)

    async with session:
        assert session.dialect is Dialect.POSIX
        assert session.environment_usable
        assert session.state is SessionState.READY
