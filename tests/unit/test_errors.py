"""Tests for error model."""

from __future__ import annotations

from chimpchat_rest.errors import (
    CommandError,
    ResponseStatus,
    connect_timeout_error,
    driver_error,
    invalid_param_error,
    missing_param_error,
    not_ready_error,
    transfer_failed_error,
    unknown_command_error,
    use_post_error,
)


class TestCommandError:
    """Tests for CommandError."""

    def test_error_str(self) -> None:
        """Should format error as string."""
        error = CommandError(code="ERR_TEST", message="Test error")

        assert str(error) == "[ERR_TEST] Test error"
        assert error.status == ResponseStatus.SERVER_ERROR

    def test_error_fields(self) -> None:
        """Should keep status, context and remediation."""
        error = CommandError(
            code="ERR_TEST",
            message="Test error",
            status=ResponseStatus.CLIENT_ERROR,
            context={"key": "value"},
            remediation="Fix it",
        )

        assert error.status == 400
        assert error.context == {"key": "value"}
        assert error.remediation == "Fix it"


class TestErrorConstructors:
    """Tests for error constructor functions."""

    def test_not_ready_error(self) -> None:
        """Should create a 403 error."""
        error = not_ready_error("touch")

        assert error.status == ResponseStatus.NOT_READY
        assert error.message == "device not connected."
        assert "init" in error.remediation

    def test_unknown_command_error(self) -> None:
        """Should create a 404 error."""
        error = unknown_command_error("startActivity")

        assert error.status == ResponseStatus.NOT_FOUND
        assert error.context["command"] == "startActivity"

    def test_param_errors(self) -> None:
        """Should create 400 errors naming the parameter."""
        missing = missing_param_error("apk")
        invalid = invalid_param_error("x", "abc", "an integer")

        assert missing.status == ResponseStatus.CLIENT_ERROR
        assert missing.message == "missing parameter: apk"
        assert invalid.status == ResponseStatus.CLIENT_ERROR
        assert "x='abc'" in invalid.message

    def test_use_post_error(self) -> None:
        """Should create a 405 error."""
        error = use_post_error()

        assert error.status == ResponseStatus.METHOD_NOT_ALLOWED
        assert error.message == "use POST"

    def test_transfer_failed_error(self) -> None:
        """Should name the failure category in the message."""
        error = transfer_failed_error("pull", "SyncException", "remote object does not exist")

        assert error.message == (
            "SERVER INTERNAL ERROR: SyncException: remote object does not exist"
        )
        assert error.context["direction"] == "pull"

    def test_connect_timeout_error(self) -> None:
        """Should carry the connect budget."""
        error = connect_timeout_error(".*", 5000, attempts=4)

        assert error.message == "device not connected within timeout"
        assert error.context == {"serialno": ".*", "timeout_ms": 5000, "attempts": 4}

    def test_driver_error(self) -> None:
        """Should name the exception type."""
        error = driver_error(OSError("broken pipe"))

        assert error.status == ResponseStatus.SERVER_ERROR
        assert error.message == "SERVER INTERNAL ERROR: OSError: broken pipe"
