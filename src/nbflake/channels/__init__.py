# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Concrete channel implementations."""

from __future__ import annotations

from .shell import ShellChannel, default_shell_command

__all__ = ["ShellChannel", "default_shell_command"]
