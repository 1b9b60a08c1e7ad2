"""Command dispatcher - routes plain-text commands to the connected device."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from chimpchat_rest.config import ServerConfig
from chimpchat_rest.device.driver import DeviceDriver, DeviceHandle, FileTransfer, TransferError
from chimpchat_rest.device.session import SessionSlot
from chimpchat_rest.errors import (
    CommandError,
    ResponseStatus,
    connect_timeout_error,
    driver_error,
    not_ready_error,
    transfer_failed_error,
    transfer_unavailable_error,
    unknown_command_error,
    use_post_error,
)
from chimpchat_rest.validation import (
    compile_serial_pattern,
    optional_param,
    parse_int,
    parse_press_type,
    require_param,
)

logger = structlog.get_logger()

BANNER = "chimpchat-rest: control an Android device via REST APIs"
DEFAULT_SERIAL_PATTERN = ".*"
DEFAULT_KEYNAME = "KEYCODE_HOME"


@dataclass(frozen=True)
class CommandRequest:
    """Normalized inbound call: method, path segments, string params, optional body."""

    method: str
    segments: tuple[str, ...] = ()
    params: Mapping[str, str] = field(default_factory=dict)
    body: str | None = None

    @classmethod
    def from_path(
        cls,
        method: str,
        path: str,
        params: Mapping[str, str] | None = None,
        body: str | None = None,
    ) -> CommandRequest:
        segments = tuple(part for part in path.split("/") if part)
        return cls(method=method.upper(), segments=segments, params=dict(params or {}), body=body)

    @property
    def command(self) -> str:
        return self.segments[0] if self.segments else ""


@dataclass(frozen=True)
class CommandResponse:
    """Status classification plus plain-text body."""

    status: ResponseStatus
    body: str

    @classmethod
    def ok(cls, body: str) -> CommandResponse:
        return cls(ResponseStatus.OK, body)

    @classmethod
    def from_error(cls, error: CommandError) -> CommandResponse:
        return cls(error.status, error.message)


Handler = Callable[[CommandRequest, DeviceHandle], Awaitable[str]]


class CommandDispatcher:
    """Owns the device session and maps each request to exactly one response."""

    def __init__(
        self,
        driver: DeviceDriver,
        config: ServerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.driver = driver
        self.config = config or ServerConfig()
        self.session = SessionSlot()
        self._clock = clock
        self._sleep = sleep
        self._handlers: dict[str, Handler] = {
            "reboot": self._reboot,
            "wake": self._wake,
            "install": self._install,
            "remove": self._remove,
            "pull": self._pull,
            "push": self._push,
            "getVar": self._get_var,
            "getProp": self._get_prop,
            "type": self._type,
            "press": self._press,
            "takeSnapshot": self._take_snapshot,
            "touch": self._touch,
            "drag": self._drag,
            "shell": self._shell,
        }

    @property
    def commands(self) -> list[str]:
        """Every recognized command name."""
        return ["init", "dispose", *self._handlers]

    async def handle(self, request: CommandRequest) -> CommandResponse:
        """Dispatch one request. Never raises."""
        command = request.command
        if not command:
            return CommandResponse.ok(BANNER)
        if command == "favicon.ico":
            return CommandResponse.ok("")

        try:
            if command == "init":
                body = await self._init(request)
            elif command == "dispose":
                body = await self._dispose()
            elif command in self._handlers:
                async with self.session.lease(command) as device:
                    body = await self._handlers[command](request, device)
            else:
                raise unknown_command_error(command)
        except CommandError as err:
            logger.info(
                "command_rejected",
                command=command,
                code=err.code,
                status=int(err.status),
                context=err.context,
                remediation=err.remediation,
            )
            return CommandResponse.from_error(err)
        except Exception as exc:
            logger.error("command_failed", command=command, error=str(exc), exc_info=True)
            return CommandResponse.from_error(driver_error(exc))

        logger.info("command_handled", command=command)
        return CommandResponse.ok(body)

    async def shutdown(self) -> None:
        """Dispose any live session, e.g. when the server stops."""
        async with self.session.transition_lock:
            handle = await self.session.release()
        if handle is not None:
            await asyncio.to_thread(handle.dispose)

    # Session lifecycle

    async def _init(self, request: CommandRequest) -> str:
        async with self.session.transition_lock:
            if self.session.connected:
                return "already connected"
            timeout_ms = parse_int(request.params, "timeout", self.config.init_timeout_ms)
            serial_pattern = (
                optional_param(request.params, "serialno", DEFAULT_SERIAL_PATTERN)
                or DEFAULT_SERIAL_PATTERN
            )
            compile_serial_pattern(serial_pattern)
            handle = await self._connect(timeout_ms, serial_pattern)
            self.session.commit(handle)
        return "connected"

    async def _connect(self, timeout_ms: int, serial_pattern: str) -> DeviceHandle:
        start = self._clock()
        attempt = 0
        while True:
            attempt += 1
            logger.info("device_connect_attempt", serialno=serial_pattern, attempt=attempt)
            handle = await self._connect_once(timeout_ms, serial_pattern)
            if handle is not None:
                logger.info("device_connected", serial=handle.serial, attempts=attempt)
                return handle
            if not self.config.init_retry:
                break
            if (self._clock() - start) * 1000 >= timeout_ms:
                break
        logger.warning(
            "device_not_connected",
            serialno=serial_pattern,
            timeout_ms=timeout_ms,
            attempts=attempt,
        )
        raise connect_timeout_error(serial_pattern, timeout_ms, attempt)

    async def _connect_once(self, timeout_ms: int, serial_pattern: str) -> DeviceHandle | None:
        handle: DeviceHandle | None = None
        try:
            handle = await asyncio.to_thread(
                self.driver.wait_for_connection, timeout_ms, serial_pattern
            )
        except CommandError:
            raise
        except Exception as exc:
            logger.warning("device_connect_error", error=str(exc), exc_info=True)

        if not self.config.init_retry:
            return handle

        await self._sleep(self.config.init_attempt_interval_ms / 1000)
        if handle is None:
            return None

        probe = self.config.probe_property
        try:
            value = await asyncio.to_thread(handle.get_system_property, probe)
        except Exception as exc:
            logger.warning("device_probe_error", prop=probe, error=str(exc))
            value = None
        if value is None or not value.strip():
            logger.info("device_probe_blank", serial=handle.serial, prop=probe)
            await self._discard(handle)
            return None
        logger.info("device_probe_ok", serial=handle.serial, prop=probe, value=value.strip())
        return handle

    async def _discard(self, handle: DeviceHandle) -> None:
        try:
            await asyncio.to_thread(handle.dispose)
        except Exception as exc:
            logger.warning("device_discard_error", serial=handle.serial, error=str(exc))

    async def _dispose(self) -> str:
        async with self.session.transition_lock:
            if not self.session.connected:
                raise not_ready_error("dispose")
            handle = await self.session.release()
        if handle is not None:
            await asyncio.to_thread(handle.dispose)
        return "disposed"

    # Device commands

    async def _reboot(self, request: CommandRequest, device: DeviceHandle) -> str:
        into = optional_param(request.params, "into")
        await asyncio.to_thread(device.reboot, into)
        return "rebooted"

    async def _wake(self, request: CommandRequest, device: DeviceHandle) -> str:
        await asyncio.to_thread(device.wake)
        return "morning"

    async def _install(self, request: CommandRequest, device: DeviceHandle) -> str:
        apk = require_param(request.params, "apk")
        await asyncio.to_thread(device.install_package, apk)
        return "installed"

    async def _remove(self, request: CommandRequest, device: DeviceHandle) -> str:
        package = require_param(request.params, "pkg")
        removed = await asyncio.to_thread(device.remove_package, package)
        return "true" if removed else "false"

    async def _pull(self, request: CommandRequest, device: DeviceHandle) -> str:
        src = require_param(request.params, "src")
        dst = require_param(request.params, "dst")
        await self._transfer("pull", device, lambda transfer: transfer.pull(src, dst))
        return "done"

    async def _push(self, request: CommandRequest, device: DeviceHandle) -> str:
        src = require_param(request.params, "src")
        dst = require_param(request.params, "dst")
        await self._transfer("push", device, lambda transfer: transfer.push(src, dst))
        return "done"

    async def _transfer(
        self, direction: str, device: DeviceHandle, run: Callable[[FileTransfer], None]
    ) -> None:
        transfer = await asyncio.to_thread(device.file_transfer)
        if transfer is None:
            raise transfer_unavailable_error(direction)
        try:
            await asyncio.to_thread(run, transfer)
        except TransferError as err:
            raise transfer_failed_error(direction, err.category.value, err.message) from err

    async def _get_var(self, request: CommandRequest, device: DeviceHandle) -> str:
        name = require_param(request.params, "var")
        value = await asyncio.to_thread(device.get_property, name)
        return value or ""

    async def _get_prop(self, request: CommandRequest, device: DeviceHandle) -> str:
        name = require_param(request.params, "prop")
        value = await asyncio.to_thread(device.get_system_property, name)
        return value or ""

    async def _type(self, request: CommandRequest, device: DeviceHandle) -> str:
        text = require_param(request.params, "s")
        await asyncio.to_thread(device.type, text)
        return "typed"

    async def _press(self, request: CommandRequest, device: DeviceHandle) -> str:
        keyname = optional_param(request.params, "keyname", DEFAULT_KEYNAME) or DEFAULT_KEYNAME
        press_type = parse_press_type(request.params)
        await asyncio.to_thread(device.press, keyname, press_type)
        return "sent"

    async def _take_snapshot(self, request: CommandRequest, device: DeviceHandle) -> str:
        path = require_param(request.params, "path")
        fmt = require_param(request.params, "format")
        image = await asyncio.to_thread(device.take_snapshot)
        await asyncio.to_thread(image.write_to_file, path, fmt)
        return "taken"

    async def _touch(self, request: CommandRequest, device: DeviceHandle) -> str:
        x = parse_int(request.params, "x", 0)
        y = parse_int(request.params, "y", 0)
        press_type = parse_press_type(request.params)
        await asyncio.to_thread(device.touch, x, y, press_type)
        return "sent"

    async def _drag(self, request: CommandRequest, device: DeviceHandle) -> str:
        params = request.params
        start_x = parse_int(params, "startx", 0)
        start_y = parse_int(params, "starty", 0)
        end_x = parse_int(params, "endx", 200)
        end_y = parse_int(params, "endy", 200)
        steps = parse_int(params, "steps", 10)
        duration_ms = parse_int(params, "ms", 100)
        await asyncio.to_thread(device.drag, start_x, start_y, end_x, end_y, steps, duration_ms)
        return "sent"

    async def _shell(self, request: CommandRequest, device: DeviceHandle) -> str:
        if request.body is None:
            raise use_post_error()
        output = await asyncio.to_thread(device.shell, request.body)
        return output or ""
