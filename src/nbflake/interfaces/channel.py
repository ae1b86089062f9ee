# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Bidirectional text channel consumed by the lint protocol."""

# pylint: disable=too-few-public-methods -- Protocol definitions intentionally expose minimal method surfaces.

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

MessageListener = Callable[[str], None]


@runtime_checkable
class Channel(Protocol):
    """Interactive terminal-like transport delivering text chunks to listeners.

    Chunks carry no framing: one logical line may span several deliveries and
    one delivery may hold several lines. Listeners are invoked on the event
    loop that owns the channel, in FIFO order.
    """

    @property
    def newline(self) -> str:
        """Return the character sequence that submits a command line."""

        raise NotImplementedError

    async def open(self) -> None:
        """Open or attach to the underlying terminal."""

        raise NotImplementedError

    def send(self, text: str) -> None:
        """Write ``text`` to the terminal."""

        raise NotImplementedError

    def connect(self, listener: MessageListener) -> None:
        """Register ``listener`` for every received chunk."""

        raise NotImplementedError

    def disconnect(self, listener: MessageListener) -> None:
        """Unregister ``listener``; unknown listeners are ignored."""

        raise NotImplementedError

    async def close(self) -> None:
        """Release the terminal and drop every listener."""

        raise NotImplementedError


__all__ = ["Channel", "MessageListener"]
