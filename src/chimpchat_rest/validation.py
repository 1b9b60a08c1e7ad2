"""Validation helpers for command parameters."""

from __future__ import annotations

import re
from collections.abc import Mapping

from chimpchat_rest.device.driver import PressType
from chimpchat_rest.errors import invalid_param_error, missing_param_error

# Optionally signed ASCII digits; rejects "1_000", whitespace and non-ASCII digits
INT_PATTERN = re.compile(r"[+-]?[0-9]+")


def require_param(params: Mapping[str, str], name: str) -> str:
    """Return a required parameter.

    Raises:
        CommandError: If the parameter is absent
    """
    value = params.get(name)
    if value is None:
        raise missing_param_error(name)
    return value


def optional_param(params: Mapping[str, str], name: str, default: str | None = None) -> str | None:
    """Return a parameter or its default when absent."""
    return params.get(name, default)


def parse_int(params: Mapping[str, str], name: str, default: int) -> int:
    """Parse an integer parameter.

    Args:
        params: Request parameters
        name: Parameter name
        default: Value used when the parameter is absent

    Returns:
        Parsed integer

    Raises:
        CommandError: If the parameter is present but not an integer
    """
    value = params.get(name)
    if value is None:
        return default
    if not INT_PATTERN.fullmatch(value):
        raise invalid_param_error(name, value, "an integer")
    return int(value)


def parse_press_type(params: Mapping[str, str], name: str = "t") -> PressType:
    """Parse a press-type token, defaulting to downAndUp.

    Raises:
        CommandError: If the token is not one of down, up, move, downAndUp
    """
    value = params.get(name, PressType.DOWN_AND_UP.value)
    try:
        return PressType.from_identifier(value)
    except ValueError as err:
        expected = ", ".join(p.value for p in PressType)
        raise invalid_param_error(name, value, f"one of {expected}") from err


def compile_serial_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a device serial regex.

    Raises:
        CommandError: If the pattern is not a valid regular expression
    """
    try:
        return re.compile(pattern)
    except re.error as err:
        raise invalid_param_error("serialno", pattern, "a regular expression") from err
