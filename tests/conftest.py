# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from nbflake.config import LintConfig


@pytest.fixture
def fast_config() -> LintConfig:
    """Return a configuration without warm-up or settle delays."""
    return LintConfig(startup_delay_ms=0, setup_delay_ms=0, timeout_ms=1000)
