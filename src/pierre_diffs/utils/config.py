from __future__ import annotations

import os
from typing import Final

from .logger import log


class ConfigError(Exception):
    """Configuration validation error."""

    pass


_TRUE_VALUES: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})


class Config:
    """pierre-diffs configuration with environment variable support and validation."""

    # Default values
    _DEFAULT_MAX_CONCURRENCY: Final[int] = 10
    _DEFAULT_EDIT_READ_CONCURRENCY: Final[int] = 3
    _DEFAULT_DIFF_STYLE: Final[str] = "unified"
    _DEFAULT_OVERFLOW: Final[str] = "wrap"
    _DEFAULT_LINE_HEIGHT: Final[float] = 22.0
    _DEFAULT_DARK_THEME: Final[str] = "pierre-dark"
    _DEFAULT_LIGHT_THEME: Final[str] = "pierre-light"
    _DEFAULT_BRIDGE_PORT: Final[int] = 8765
    _DEFAULT_MAX_MESSAGE_SIZE: Final[int] = 16 * 1024 * 1024
    _DEFAULT_LENIENT_WRITE_READS: Final[bool] = False

    # Validation bounds
    _MIN_CONCURRENCY: Final[int] = 1
    _MAX_CONCURRENCY: Final[int] = 256
    _MIN_LINE_HEIGHT: Final[float] = 1.0
    _MAX_LINE_HEIGHT: Final[float] = 200.0
    _MIN_PORT: Final[int] = 1
    _MAX_PORT: Final[int] = 65535
    _MIN_MESSAGE_SIZE: Final[int] = 1024
    _MAX_MESSAGE_SIZE: Final[int] = 512 * 1024 * 1024

    _DIFF_STYLES: Final[tuple[str, ...]] = ("split", "unified")
    _OVERFLOW_MODES: Final[tuple[str, ...]] = ("scroll", "wrap")

    def __init__(self):
        """Initialize configuration with environment variable overrides."""
        self.max_concurrency = self._get_int_env("PIERRE_MAX_CONCURRENCY", self._DEFAULT_MAX_CONCURRENCY)
        self.edit_read_concurrency = self._get_int_env(
            "PIERRE_EDIT_READ_CONCURRENCY", self._DEFAULT_EDIT_READ_CONCURRENCY
        )
        self.default_diff_style = self._get_choice_env(
            "PIERRE_DIFF_STYLE", self._DEFAULT_DIFF_STYLE, self._DIFF_STYLES
        )
        self.default_overflow = self._get_choice_env("PIERRE_OVERFLOW", self._DEFAULT_OVERFLOW, self._OVERFLOW_MODES)
        self.line_height = self._get_float_env("PIERRE_LINE_HEIGHT", self._DEFAULT_LINE_HEIGHT)
        self.dark_theme = os.environ.get("PIERRE_DARK_THEME") or self._DEFAULT_DARK_THEME
        self.light_theme = os.environ.get("PIERRE_LIGHT_THEME") or self._DEFAULT_LIGHT_THEME
        self.bridge_port = self._get_int_env("PIERRE_BRIDGE_PORT", self._DEFAULT_BRIDGE_PORT)
        self.max_message_size = self._get_int_env("PIERRE_MAX_MESSAGE_SIZE", self._DEFAULT_MAX_MESSAGE_SIZE)
        self.lenient_write_reads = self._get_bool_env("PIERRE_LENIENT_WRITE_READS", self._DEFAULT_LENIENT_WRITE_READS)

        self._validate_all()

    def _get_int_env(self, key: str, default: int) -> int:
        """Get integer environment variable with fallback to default."""
        value = os.environ.get(key)
        if value is None:
            return default

        try:
            return int(value)
        except ValueError as e:
            log.warning(f"Invalid integer value for {key}='{value}', using default {default}: {e}")
            return default

    def _get_float_env(self, key: str, default: float) -> float:
        """Get float environment variable with fallback to default."""
        value = os.environ.get(key)
        if value is None:
            return default

        try:
            return float(value)
        except ValueError as e:
            log.warning(f"Invalid float value for {key}='{value}', using default {default}: {e}")
            return default

    def _get_bool_env(self, key: str, default: bool) -> bool:
        """Get boolean environment variable with fallback to default."""
        value = os.environ.get(key)
        if value is None:
            return default

        normalized = value.strip().lower()
        if normalized in _TRUE_VALUES:
            return True
        if normalized in _FALSE_VALUES:
            return False
        log.warning(f"Invalid boolean value for {key}='{value}', using default {default}")
        return default

    def _get_choice_env(self, key: str, default: str, choices: tuple[str, ...]) -> str:
        """Get an enumerated string environment variable with fallback to default."""
        value = os.environ.get(key)
        if value is None:
            return default

        normalized = value.strip().lower()
        if normalized not in choices:
            log.warning(f"Invalid value for {key}='{value}' (expected one of {', '.join(choices)}), using {default}")
            return default
        return normalized

    def _validate_all(self) -> None:
        """Validate all configuration values."""
        self._validate_int("max_concurrency", self.max_concurrency, self._MIN_CONCURRENCY, self._MAX_CONCURRENCY)
        self._validate_int(
            "edit_read_concurrency", self.edit_read_concurrency, self._MIN_CONCURRENCY, self._MAX_CONCURRENCY
        )
        self._validate_float("line_height", self.line_height, self._MIN_LINE_HEIGHT, self._MAX_LINE_HEIGHT)
        self._validate_int("bridge_port", self.bridge_port, self._MIN_PORT, self._MAX_PORT)
        self._validate_int(
            "max_message_size", self.max_message_size, self._MIN_MESSAGE_SIZE, self._MAX_MESSAGE_SIZE
        )
        if not self.dark_theme or not self.light_theme:
            raise ConfigError("theme names cannot be empty")

    def _validate_int(self, name: str, value: int, min_val: int, max_val: int) -> None:
        """Validate integer configuration value."""
        if not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer, got {type(value).__name__}")
        if not (min_val <= value <= max_val):
            raise ConfigError(f"{name} must be between {min_val} and {max_val}, got {value}")

    def _validate_float(self, name: str, value: float, min_val: float, max_val: float) -> None:
        """Validate float configuration value."""
        if not isinstance(value, (int, float)):
            raise ConfigError(f"{name} must be a number, got {type(value).__name__}")
        if not (min_val <= value <= max_val):
            raise ConfigError(f"{name} must be between {min_val} and {max_val}, got {value}")

    def __repr__(self) -> str:
        """String representation of configuration."""
        return (
            f"Config(max_concurrency={self.max_concurrency}, "
            f"edit_read_concurrency={self.edit_read_concurrency}, "
            f"default_diff_style={self.default_diff_style!r}, "
            f"default_overflow={self.default_overflow!r}, "
            f"line_height={self.line_height}, "
            f"dark_theme={self.dark_theme!r}, "
            f"light_theme={self.light_theme!r}, "
            f"bridge_port={self.bridge_port}, "
            f"max_message_size={self.max_message_size}, "
            f"lenient_write_reads={self.lenient_write_reads})"
        )


# Global configuration instance
config = Config()
