# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Interfaces implemented by nbflake collaborators."""

from __future__ import annotations

from .channel import Channel, MessageListener
from .documents import DiagnosticsSink, DocumentProvider

__all__ = ["Channel", "DiagnosticsSink", "DocumentProvider", "MessageListener"]
