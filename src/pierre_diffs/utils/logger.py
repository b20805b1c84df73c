from __future__ import annotations

import os
import sys
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any, TextIO

# Leveled logger with timestamps and optional file output
# Use: from pierre_diffs.utils.logger import log, LogLevel
# log.info("[BRIDGE] renderer ready")
# log.debug("queued command", extra={"command": "setTheme"})
# log.error("read failed", exc_info=sys.exc_info())


class LogLevel(IntEnum):
    """Log severity levels."""
    DEBUG = 10
    INFO = 20
    WARN = 30
    WARNING = 30  # Alias for WARN
    ERROR = 40
    CRITICAL = 50


DEBUG_LOG_PATH = Path("/tmp/pierre_diffs_debug.log")


class Logger:
    """Leveled logger writing to stderr and, optionally, a file."""

    def __init__(self, stream: TextIO | None = None):
        self._level = LogLevel.INFO
        self._stream = stream
        self._file_handle: TextIO | None = None
        self._file_path: Path | None = None
        self._format_string = "{timestamp} [{level:8}] {message}"
        self._quiet = False

        self._configure_from_env()

    def _configure_from_env(self) -> None:
        """Configure logger from environment variables."""
        if os.environ.get("PIERRE_DEBUG") == "1":
            self._level = LogLevel.DEBUG
            self.set_file_output(DEBUG_LOG_PATH)

        # LOG_LEVEL wins over PIERRE_DEBUG
        level_str = os.environ.get("LOG_LEVEL", "").upper()
        if level_str in ["DEBUG", "INFO", "WARN", "WARNING", "ERROR", "CRITICAL"]:
            self._level = LogLevel[level_str]

        if os.environ.get("PIERRE_LOG_QUIET") == "1":
            self._quiet = True

    @property
    def level(self) -> LogLevel:
        return self._level

    def set_level(self, level: LogLevel) -> None:
        """Set the minimum log level."""
        self._level = level

    def set_quiet(self, quiet: bool) -> None:
        """Silence stream output; file output is unaffected."""
        self._quiet = quiet

    def set_stream(self, stream: TextIO | None) -> None:
        """Redirect stream output (None means the current sys.stderr)."""
        self._stream = stream

    def set_file_output(self, path: Path, append: bool = True) -> None:
        """Enable file output for logging."""
        try:
            if self._file_handle:
                self._file_handle.close()

            mode = "a" if append else "w"
            self._file_handle = open(path, mode, encoding="utf-8")
            self._file_path = path
        except OSError:
            # Can't log errors about logging setup
            self._file_handle = None
            self._file_path = None

    def close(self) -> None:
        """Close file output if enabled."""
        if self._file_handle:
            try:
                self._file_handle.close()
            except OSError:
                pass
        self._file_handle = None
        self._file_path = None

    def _format_message(
        self,
        level: LogLevel,
        message: str,
        extra: dict | None = None,
        exc_info: tuple | None = None
    ) -> str:
        """Format a log message with timestamp and level."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        formatted = self._format_string.format(
            timestamp=timestamp,
            level=level.name,
            message=message
        )

        if extra:
            formatted += f" | {extra}"

        if exc_info and exc_info[0] is not None:
            import traceback
            exc_str = "".join(traceback.format_exception(*exc_info))
            formatted += f"\n{exc_str}"

        return formatted

    def _write(
        self,
        level: LogLevel,
        *args: Any,
        sep: str = " ",
        extra: dict | None = None,
        exc_info: tuple | None = None
    ) -> None:
        """Write a log message at the specified level."""
        if level < self._level:
            return

        message = sep.join(str(a) for a in args)
        formatted = self._format_message(level, message, extra, exc_info)

        if self._file_handle:
            try:
                self._file_handle.write(formatted + "\n")
                self._file_handle.flush()
            except OSError:
                # Can't log errors about logging
                pass

        if self._quiet:
            return

        stream = self._stream or sys.stderr
        try:
            color_codes = {
                LogLevel.DEBUG: "\033[90m",    # Gray
                LogLevel.INFO: "\033[0m",       # Default
                LogLevel.WARN: "\033[93m",      # Yellow
                LogLevel.ERROR: "\033[91m",     # Red
                LogLevel.CRITICAL: "\033[95m",  # Magenta
            }
            color = color_codes.get(level, "\033[0m")
            reset = "\033[0m"

            isatty = getattr(stream, "isatty", None)
            if callable(isatty) and isatty():
                stream.write(f"{color}{formatted}{reset}\n")
            else:
                stream.write(formatted + "\n")
            stream.flush()
        except (OSError, ValueError):
            # Never raise from logging
            pass

    def debug(self, *args: Any, **kwargs) -> None:
        """Log a debug message."""
        self._write(LogLevel.DEBUG, *args, **kwargs)

    def info(self, *args: Any, **kwargs) -> None:
        """Log an info message."""
        self._write(LogLevel.INFO, *args, **kwargs)

    def warn(self, *args: Any, **kwargs) -> None:
        """Log a warning message."""
        self._write(LogLevel.WARN, *args, **kwargs)

    def warning(self, *args: Any, **kwargs) -> None:
        """Alias for warn()."""
        self.warn(*args, **kwargs)

    def error(self, *args: Any, **kwargs) -> None:
        """Log an error message."""
        self._write(LogLevel.ERROR, *args, **kwargs)

    def critical(self, *args: Any, **kwargs) -> None:
        """Log a critical message."""
        self._write(LogLevel.CRITICAL, *args, **kwargs)

    def __call__(self, *args: Any, sep: str = " ", end: str = "\n") -> None:
        """Shorthand: log at INFO level."""
        self.info(*args, sep=sep)


# Create singleton logger instance
log = Logger()
