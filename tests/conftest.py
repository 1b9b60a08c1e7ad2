"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from chimpchat_rest.config import ServerConfig
from chimpchat_rest.daemon.dispatcher import CommandDispatcher
from chimpchat_rest.device.driver import PressType


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeHandle:
    """In-memory device handle recording every call."""

    def __init__(self, serial: str = "emulator-5554", model: str | None = "Pixel_7") -> None:
        self.serial = serial
        self.model = model
        self.calls: list[tuple[Any, ...]] = []
        self.disposed = False
        self.removed = True
        self.properties: dict[str, str] = {}
        self.shell_output = ""
        self.transfer: Any = MagicMock()
        self.snapshot = MagicMock()
        self.fail_with: dict[str, Exception] = {}

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        if name in self.fail_with:
            raise self.fail_with[name]

    def dispose(self) -> None:
        self._record("dispose")
        self.disposed = True

    def reboot(self, into: str | None) -> None:
        self._record("reboot", into)

    def wake(self) -> None:
        self._record("wake")

    def install_package(self, apk_path: str) -> None:
        self._record("install_package", apk_path)

    def remove_package(self, package: str) -> bool:
        self._record("remove_package", package)
        return self.removed

    def get_property(self, name: str) -> str:
        self._record("get_property", name)
        return self.properties.get(name, "")

    def get_system_property(self, name: str) -> str:
        self._record("get_system_property", name)
        if name == "ro.product.model":
            return self.model or ""
        return self.properties.get(name, "")

    def type(self, text: str) -> None:
        self._record("type", text)

    def press(self, keyname: str, press_type: PressType) -> None:
        self._record("press", keyname, press_type)

    def touch(self, x: int, y: int, press_type: PressType) -> None:
        self._record("touch", x, y, press_type)

    def drag(
        self, start_x: int, start_y: int, end_x: int, end_y: int, steps: int, duration_ms: int
    ) -> None:
        self._record("drag", start_x, start_y, end_x, end_y, steps, duration_ms)

    def take_snapshot(self) -> Any:
        self._record("take_snapshot")
        return self.snapshot

    def shell(self, command: str) -> str:
        self._record("shell", command)
        return self.shell_output

    def file_transfer(self) -> Any:
        self._record("file_transfer")
        return self.transfer

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


class FakeDriver:
    """Driver replaying a script of connection outcomes.

    Each entry is a handle, None, or an exception to raise. The last entry
    repeats once the script runs out. Every attempt advances the clock.
    """

    def __init__(
        self,
        outcomes: list[Any] | None = None,
        clock: FakeClock | None = None,
        attempt_seconds: float = 0.5,
        **_: Any,
    ) -> None:
        self.outcomes = outcomes if outcomes is not None else [FakeHandle()]
        self.clock = clock
        self.attempt_seconds = attempt_seconds
        self.calls: list[tuple[int, str]] = []

    def wait_for_connection(self, timeout_ms: int, serial_pattern: str) -> Any:
        index = min(len(self.calls), len(self.outcomes) - 1)
        self.calls.append((timeout_ms, serial_pattern))
        if self.clock is not None:
            self.clock.advance(self.attempt_seconds)
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_handle() -> FakeHandle:
    return FakeHandle()


@pytest.fixture
def make_dispatcher(
    fake_clock: FakeClock,
) -> Callable[..., tuple[CommandDispatcher, FakeDriver]]:
    """Build a dispatcher over a scripted driver with a controllable clock."""

    def _make(
        outcomes: list[Any] | None = None,
        **config_overrides: Any,
    ) -> tuple[CommandDispatcher, FakeDriver]:
        driver = FakeDriver(outcomes, clock=fake_clock)
        settings = {"init_attempt_interval_ms": 1000, **config_overrides}
        config = ServerConfig(**settings)

        async def _sleep(seconds: float) -> None:
            fake_clock.advance(seconds)

        dispatcher = CommandDispatcher(driver, config, clock=fake_clock, sleep=_sleep)
        return dispatcher, driver

    return _make


@pytest.fixture
def mock_adb() -> Generator[MagicMock, None, None]:
    """Mock adbutils for unit tests."""
    with patch("adbutils.adb") as mock:
        mock_device = MagicMock()
        mock_device.serial = "emulator-5554"
        mock.device_list.return_value = [mock_device]
        yield mock


@pytest.fixture
def mock_adb_device() -> MagicMock:
    """Mock adbutils AdbDevice for unit tests."""
    device = MagicMock()
    device.serial = "emulator-5554"
    device.shell.return_value = ""
    return device
