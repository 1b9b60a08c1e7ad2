"""Error model - command failures that map onto a response status."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any


class ResponseStatus(IntEnum):
    """Response classification, valued by the HTTP status it travels as."""

    OK = 200
    CLIENT_ERROR = 400
    NOT_READY = 403
    NOT_FOUND = 404
    METHOD_NOT_ALLOWED = 405
    SERVER_ERROR = 500


@dataclass
class CommandError(Exception):
    """
    Base error for a command that cannot produce a success response.

    The message is what the caller sees as the plain-text body, so it should
    read well on its own.
    """

    code: str
    message: str
    status: ResponseStatus = ResponseStatus.SERVER_ERROR
    context: dict[str, Any] = field(default_factory=dict)
    remediation: str = ""

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


# Specific error constructors for common cases


def not_ready_error(command: str) -> CommandError:
    """Create error for a gated command issued without a session."""
    return CommandError(
        code="ERR_NOT_READY",
        message="device not connected.",
        status=ResponseStatus.NOT_READY,
        context={"command": command},
        remediation="Connect a device with /init first",
    )


def unknown_command_error(command: str) -> CommandError:
    """Create error for an unrecognized command name."""
    return CommandError(
        code="ERR_UNKNOWN_COMMAND",
        message="not supported.",
        status=ResponseStatus.NOT_FOUND,
        context={"command": command},
    )


def missing_param_error(name: str) -> CommandError:
    """Create error for a required parameter that was not supplied."""
    return CommandError(
        code="ERR_MISSING_PARAM",
        message=f"missing parameter: {name}",
        status=ResponseStatus.CLIENT_ERROR,
        context={"param": name},
        remediation=f"Pass ?{name}=<value> in the query string",
    )


def invalid_param_error(name: str, value: str, expected: str) -> CommandError:
    """Create error for a parameter that does not parse."""
    return CommandError(
        code="ERR_INVALID_PARAM",
        message=f"invalid parameter {name}={value!r}: expected {expected}",
        status=ResponseStatus.CLIENT_ERROR,
        context={"param": name, "value": value, "expected": expected},
    )


def use_post_error() -> CommandError:
    """Create error for a shell command sent without a request body."""
    return CommandError(
        code="ERR_USE_POST",
        message="use POST",
        status=ResponseStatus.METHOD_NOT_ALLOWED,
        remediation="Send the shell command as the POST body",
    )


def unsupported_press_type_error(operation: str, press_type: str) -> CommandError:
    """Create error for a press type the driver cannot deliver for an operation."""
    return CommandError(
        code="ERR_UNSUPPORTED_PRESS_TYPE",
        message=f"press type {press_type} is not supported for {operation}",
        status=ResponseStatus.CLIENT_ERROR,
        context={"operation": operation, "press_type": press_type},
        remediation="Use t=downAndUp",
    )


def transfer_unavailable_error(direction: str) -> CommandError:
    """Create error for a handle that exposes no file transfer capability."""
    return CommandError(
        code="ERR_TRANSFER_UNAVAILABLE",
        message=f"Failed to control the device to {direction} file",
        context={"direction": direction},
    )


def transfer_failed_error(direction: str, category: str, reason: str) -> CommandError:
    """Create error for a failed push or pull."""
    return CommandError(
        code="ERR_TRANSFER_FAILED",
        message=f"SERVER INTERNAL ERROR: {category}: {reason}",
        context={"direction": direction, "category": category, "reason": reason},
        remediation="Check both paths are absolute and the device is online",
    )


def connect_timeout_error(serial_pattern: str, timeout_ms: int, attempts: int) -> CommandError:
    """Create error for a connect sequence that ran out of time."""
    return CommandError(
        code="ERR_CONNECT_TIMEOUT",
        message="device not connected within timeout",
        context={"serialno": serial_pattern, "timeout_ms": timeout_ms, "attempts": attempts},
        remediation="Check the device with 'adb devices' or raise ?timeout=",
    )


def driver_error(exc: BaseException) -> CommandError:
    """Wrap an unexpected driver exception."""
    return CommandError(
        code="ERR_DRIVER",
        message=f"SERVER INTERNAL ERROR: {type(exc).__name__}: {exc}",
        context={"exception": type(exc).__name__},
    )
