"""Device driver interfaces - what the dispatcher needs from a connected device."""

from __future__ import annotations

from enum import Enum
from typing import Protocol


class PressType(Enum):
    """Gesture phase for a touch or key event."""

    DOWN = "down"
    UP = "up"
    MOVE = "move"
    DOWN_AND_UP = "downAndUp"

    @classmethod
    def from_identifier(cls, identifier: str) -> PressType:
        """Parse a wire token such as 'downAndUp'.

        Raises:
            ValueError: If the token is not a known press type
        """
        for press_type in cls:
            if press_type.value == identifier:
                return press_type
        raise ValueError(f"Unknown press type: {identifier}")


class TransferFailure(Enum):
    """Failure categories for a file transfer, valued by their reported name."""

    IO = "IOException"
    COMMAND_REJECTED = "AdbCommandRejectedException"
    TIMEOUT = "TimeoutException"
    SYNC = "SyncException"


class TransferError(Exception):
    """A push or pull that failed in one of the known categories."""

    def __init__(self, category: TransferFailure, message: str) -> None:
        super().__init__(message)
        self.category = category
        self.message = message


class SnapshotImage(Protocol):
    """A captured screen image."""

    def write_to_file(self, path: str, fmt: str) -> None: ...


class FileTransfer(Protocol):
    """Low-level file copy between host and device.

    Both methods raise TransferError on failure.
    """

    def pull(self, remote_path: str, local_path: str) -> None: ...

    def push(self, local_path: str, remote_path: str) -> None: ...


class DeviceHandle(Protocol):
    """Capability set of one connected device.

    All methods block; callers on the event loop run them in a worker thread.
    """

    serial: str

    def dispose(self) -> None: ...

    def reboot(self, into: str | None) -> None: ...

    def wake(self) -> None: ...

    def install_package(self, apk_path: str) -> None: ...

    def remove_package(self, package: str) -> bool: ...

    def get_property(self, name: str) -> str: ...

    def get_system_property(self, name: str) -> str: ...

    def type(self, text: str) -> None: ...

    def press(self, keyname: str, press_type: PressType) -> None: ...

    def touch(self, x: int, y: int, press_type: PressType) -> None: ...

    def drag(
        self, start_x: int, start_y: int, end_x: int, end_y: int, steps: int, duration_ms: int
    ) -> None: ...

    def take_snapshot(self) -> SnapshotImage: ...

    def shell(self, command: str) -> str: ...

    def file_transfer(self) -> FileTransfer | None: ...


class DeviceDriver(Protocol):
    """Factory for device handles."""

    def wait_for_connection(self, timeout_ms: int, serial_pattern: str) -> DeviceHandle | None:
        """Block until a device whose serial matches the regex is online.

        Returns None when no such device shows up within the timeout.
        """
        ...
