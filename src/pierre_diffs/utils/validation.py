"""Input validation utilities for pierre-diffs.

Network settings for the renderer transport are checked here, along with the
field-level checks used when decoding tool payloads. Network problems raise
``ValidationError``; payload problems raise ``DecodingError`` so they surface
through the normal processing error path.
"""

from __future__ import annotations

import re
import socket
from typing import Any, Mapping

from .error_handling import DecodingError
from .logger import log


class ValidationError(Exception):
    """Raised when input validation fails."""

    pass


def validate_port(port: int | str, name: str = "Port") -> int:
    """Validate a network port number.

    Args:
        port: Port number to validate (int or string)
        name: Human-readable name for error messages

    Returns:
        Validated port number as integer

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(port, str):
        port = port.strip()
        if not port:
            raise ValidationError(f"{name} cannot be empty")
        try:
            port = int(port)
        except ValueError as e:
            raise ValidationError(f"{name} must be a number, got: {port}") from e

    if isinstance(port, bool) or not isinstance(port, int):
        raise ValidationError(f"{name} must be an integer")

    if port < 1 or port > 65535:
        raise ValidationError(f"{name} must be between 1 and 65535, got: {port}")

    if port < 1024:
        log.warning(f"{name} {port} is a privileged port and may require elevated permissions")

    return port


def validate_hostname(hostname: str, name: str = "Hostname") -> str:
    """Validate a hostname or IP address.

    Args:
        hostname: Hostname or IP to validate
        name: Human-readable name for error messages

    Returns:
        Validated hostname

    Raises:
        ValidationError: If validation fails
    """
    if not hostname or not hostname.strip():
        raise ValidationError(f"{name} cannot be empty")

    hostname = hostname.strip().lower()

    if len(hostname) > 253:
        raise ValidationError(f"{name} is too long (max 253 characters)")

    if any(ord(c) < 32 for c in hostname):
        raise ValidationError(f"{name} contains invalid characters")

    try:
        socket.inet_aton(hostname)
        return hostname  # Valid IPv4 address
    except OSError:
        pass

    try:
        socket.inet_pton(socket.AF_INET6, hostname)
        return hostname  # Valid IPv6 address
    except (OSError, AttributeError):
        pass

    if not re.match(r'^[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?(\.[a-z0-9]([a-z0-9\-]{0,61}[a-z0-9])?)*$', hostname):
        raise ValidationError(f"{name} is not a valid hostname or IP address: {hostname}")

    return hostname


def validate_network_config(host: str, port: int | str) -> tuple[str, int]:
    """Validate network configuration (host and port).

    Returns:
        Tuple of (validated_host, validated_port)

    Raises:
        ValidationError: If validation fails
    """
    validated_host = validate_hostname(host, "Host")
    validated_port = validate_port(port, "Port")

    return validated_host, validated_port


def require_mapping(value: Any, name: str = "payload") -> Mapping[str, Any]:
    """Ensure a decoded JSON value is an object."""
    if not isinstance(value, Mapping):
        raise DecodingError(f"{name} must be a JSON object, got {type(value).__name__}")
    return value


def require_string(data: Mapping[str, Any], key: str) -> str:
    """Return a required string field or raise DecodingError."""
    if key not in data or data[key] is None:
        raise DecodingError(f"Missing required field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise DecodingError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value


def optional_string(data: Mapping[str, Any], key: str) -> str | None:
    """Return an optional string field (None when absent or null)."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise DecodingError(f"Field '{key}' must be a string, got {type(value).__name__}")
    return value


def optional_bool(data: Mapping[str, Any], key: str) -> bool | None:
    """Return an optional boolean field (None when absent or null)."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise DecodingError(f"Field '{key}' must be a boolean, got {type(value).__name__}")
    return value
