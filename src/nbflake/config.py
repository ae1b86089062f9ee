# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration model and layered loading for lint sessions."""

from __future__ import annotations

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from .core.models import Dialect

PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PROJECT_CONFIG_FILENAME: Final[str] = ".nbflake.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "nbflake"


class ConfigError(Exception):
    """Raised when configuration input is invalid."""


class LintConfig(BaseModel):
    """Options recognised by lint sessions; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore", validate_assignment=True)

    dialect: Dialect | None = None
    config_file: Path | None = None
    timeout_ms: int = Field(default=5000, gt=0)
    environment: str | None = None
    startup_delay_ms: int = Field(default=1500, ge=0)
    setup_delay_ms: int = Field(default=500, ge=0)
    debounce_ms: int = Field(default=0, ge=0)
    max_consecutive_timeouts: int = Field(default=3, ge=1)
    verbose: bool = Field(default=False, validation_alias=AliasChoices("verbose", "logging"))

    @field_validator("dialect", mode="before")
    @classmethod
    def _coerce_dialect(cls, value: object) -> object:
        """Accept ``os.name`` spellings alongside dialect names.

        Args:
            value: Raw dialect override.

        Returns:
            object: Normalised dialect value for pydantic to validate.
        """

        if isinstance(value, str):
            if not value.strip():
                return None
            return Dialect.from_os_name(value) or value.strip().lower()
        return value

    @field_validator("config_file", mode="before")
    @classmethod
    def _blank_config_file(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def timeout(self) -> float:
        """Return the lint timeout in seconds."""

        return self.timeout_ms / 1000

    @property
    def startup_delay(self) -> float:
        """Return the terminal warm-up delay in seconds."""

        return self.startup_delay_ms / 1000

    @property
    def setup_delay(self) -> float:
        """Return the post-setup settle delay in seconds."""

        return self.setup_delay_ms / 1000

    @property
    def debounce(self) -> float:
        """Return the trigger coalescing window in seconds."""

        return self.debounce_ms / 1000


def _read_toml(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Configuration at {path} is not valid TOML: {exc}") from exc


def _normalise_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).replace("-", "_"): value for key, value in data.items()}


def _pyproject_section(root: Path) -> dict[str, Any]:
    data = _read_toml(root / PYPROJECT_FILENAME)
    tool_section = data.get(PYPROJECT_TOOL_KEY)
    if not isinstance(tool_section, Mapping):
        return {}
    section = tool_section.get(PYPROJECT_SECTION_KEY)
    if not isinstance(section, Mapping):
        return {}
    return _normalise_keys(section)


def load_config(root: Path, *, overrides: Mapping[str, Any] | None = None) -> LintConfig:
    """Load configuration for ``root`` with layered precedence.

    Sources, lowest precedence first: built-in defaults, ``[tool.nbflake]`` in
    ``pyproject.toml``, ``.nbflake.toml``, then ``overrides`` (``None`` values
    in ``overrides`` leave lower layers untouched).

    Args:
        root: Project directory holding the configuration files.
        overrides: Explicit option values, typically CLI flags.

    Returns:
        LintConfig: Validated configuration with ``config_file`` resolved
        against ``root``.

    Raises:
        ConfigError: If a file cannot be parsed or a value is invalid.
    """

    merged: dict[str, Any] = {}
    merged.update(_pyproject_section(root))
    merged.update(_normalise_keys(_read_toml(root / PROJECT_CONFIG_FILENAME)))
    if overrides:
        merged.update({key: value for key, value in _normalise_keys(overrides).items() if value is not None})
    try:
        config = LintConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid nbflake configuration: {exc}") from exc
    if config.config_file is not None and not config.config_file.is_absolute():
        config.config_file = (root / config.config_file).resolve()
    return config


__all__ = [
    "ConfigError",
    "LintConfig",
    "PROJECT_CONFIG_FILENAME",
    "PYPROJECT_SECTION_KEY",
    "load_config",
]
