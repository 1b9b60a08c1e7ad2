"""ADB device driver - adbutils transport with uiautomator2 for touch and screenshots."""

from __future__ import annotations

import re
import time
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any

import adbutils
import structlog

from chimpchat_rest.device.driver import PressType, TransferError, TransferFailure
from chimpchat_rest.errors import unsupported_press_type_error
from chimpchat_rest.validation import compile_serial_pattern

if TYPE_CHECKING:
    import uiautomator2 as u2
    from adbutils import AdbDevice

logger = structlog.get_logger()

# Device variables that are not plain system properties
BUILD_VARIABLES = {
    "build.board": "ro.product.board",
    "build.brand": "ro.product.brand",
    "build.device": "ro.product.device",
    "build.fingerprint": "ro.build.fingerprint",
    "build.host": "ro.build.host",
    "build.ID": "ro.build.id",
    "build.model": "ro.product.model",
    "build.product": "ro.product.name",
    "build.tags": "ro.build.tags",
    "build.type": "ro.build.type",
    "build.user": "ro.build.user",
    "build.CPU_ABI": "ro.product.cpu.abi",
    "build.manufacturer": "ro.product.manufacturer",
    "build.version.incremental": "ro.build.version.incremental",
    "build.version.release": "ro.build.version.release",
    "build.version.sdk": "ro.build.version.sdk",
    "build.version.codename": "ro.build.version.codename",
}

_WM_SIZE_PATTERN = re.compile(r"(Physical|Override) size:\s*(\d+)x(\d+)")
_WM_DENSITY_PATTERN = re.compile(r"(Physical|Override) density:\s*(\d+)")
_REJECTION_MARKERS = ("device offline", "not found", "unauthorized", "no devices", "closed")

_IMAGE_FORMATS = {"jpg": "JPEG", "jpeg": "JPEG", "png": "PNG", "bmp": "BMP", "gif": "GIF"}


def classify_transfer_error(exc: BaseException) -> TransferFailure | None:
    """Map an adbutils or OS exception onto a transfer failure category.

    Returns None for exceptions outside the known categories.
    """
    if isinstance(exc, (adbutils.AdbTimeout, TimeoutError)):
        return TransferFailure.TIMEOUT
    if isinstance(exc, adbutils.AdbError):
        message = str(exc).lower()
        if any(marker in message for marker in _REJECTION_MARKERS):
            return TransferFailure.COMMAND_REJECTED
        return TransferFailure.SYNC
    if isinstance(exc, OSError):
        return TransferFailure.IO
    return None


def _pick_wm_value(output: str, pattern: re.Pattern[str]) -> tuple[str, ...] | None:
    # An override (wm size 720x1280) wins over the physical value
    values: dict[str, tuple[str, ...]] = {}
    for match in pattern.finditer(output):
        values[match.group(1)] = match.groups()[1:]
    return values.get("Override") or values.get("Physical")


class AdbSnapshotImage:
    """Screenshot captured through uiautomator2 (a PIL image)."""

    def __init__(self, image: Any) -> None:
        self._image = image

    def write_to_file(self, path: str, fmt: str) -> None:
        """Save the image, e.g. fmt='png' or 'jpg'."""
        pil_format = _IMAGE_FORMATS.get(fmt.lower(), fmt.upper())
        image = self._image
        if pil_format == "JPEG" and image.mode not in ("RGB", "L"):
            image = image.convert("RGB")
        image.save(path, format=pil_format)
        logger.info("snapshot_written", path=path, format=pil_format)


class AdbFileTransfer:
    """Push and pull files over the adb sync protocol."""

    def __init__(self, device: AdbDevice) -> None:
        self._device = device

    def pull(self, remote_path: str, local_path: str) -> None:
        self._run("pull", lambda: self._device.sync.pull(remote_path, local_path))
        logger.info("file_pulled", serial=self._device.serial, remote=remote_path, local=local_path)

    def push(self, local_path: str, remote_path: str) -> None:
        local = Path(local_path)
        if not local.is_file():
            raise TransferError(TransferFailure.IO, f"Local file not found: {local_path}")
        self._run("push", lambda: self._device.sync.push(str(local), remote_path))
        logger.info("file_pushed", serial=self._device.serial, local=local_path, remote=remote_path)

    def _run(self, direction: str, transfer: Callable[[], object]) -> None:
        try:
            transfer()
        except Exception as exc:
            category = classify_transfer_error(exc)
            if category is None:
                raise
            logger.warning(
                "file_transfer_failed",
                direction=direction,
                category=category.value,
                error=str(exc),
            )
            raise TransferError(category, str(exc)) from exc


class AdbDeviceHandle:
    """One connected device: adbutils for shell/sync/install, uiautomator2 for input."""

    def __init__(self, device: AdbDevice) -> None:
        self._device = device
        self._u2_device: u2.Device | None = None
        self.serial = device.serial

    def _u2(self) -> u2.Device:
        if self._u2_device is None:
            import uiautomator2 as u2

            self._u2_device = u2.connect(self.serial)
        return self._u2_device

    def dispose(self) -> None:
        self._u2_device = None
        logger.info("device_disposed", serial=self.serial)

    def reboot(self, into: str | None) -> None:
        command = ["reboot", into] if into else ["reboot"]
        self._device.shell(command)

    def wake(self) -> None:
        self._device.shell("input keyevent KEYCODE_WAKEUP")

    def install_package(self, apk_path: str) -> None:
        self._device.install(apk_path, nolaunch=True)

    def remove_package(self, package: str) -> bool:
        output = self._device.shell(["pm", "uninstall", package])
        return "Success" in output

    def get_property(self, name: str) -> str:
        """Read a device variable such as 'build.model' or 'display.width'.

        Unknown names are read as system properties.
        """
        if name in BUILD_VARIABLES:
            return self.get_system_property(BUILD_VARIABLES[name])
        if name in ("display.width", "display.height"):
            size = _pick_wm_value(self._device.shell("wm size"), _WM_SIZE_PATTERN)
            if size is None:
                return ""
            return size[0] if name == "display.width" else size[1]
        if name == "display.density":
            density = _pick_wm_value(self._device.shell("wm density"), _WM_DENSITY_PATTERN)
            return density[0] if density else ""
        if name in ("am.current.package", "am.current.activity"):
            current = self._device.app_current()
            return current.package if name == "am.current.package" else current.activity
        return self.get_system_property(name)

    def get_system_property(self, name: str) -> str:
        return self._device.shell(["getprop", name]).strip()

    def type(self, text: str) -> None:
        """Type text through `input text`, which reads %s as a space.

        `input text` has no escape for %s, so a literal "%s" in `text` is
        typed as a space on the device.
        """
        self._device.shell(["input", "text", text.replace(" ", "%s")])

    def press(self, keyname: str, press_type: PressType) -> None:
        if press_type != PressType.DOWN_AND_UP:
            raise unsupported_press_type_error("press", press_type.value)
        self._device.shell(["input", "keyevent", keyname])

    def touch(self, x: int, y: int, press_type: PressType) -> None:
        touch = self._u2().touch
        if press_type == PressType.DOWN:
            touch.down(x, y)
        elif press_type == PressType.UP:
            touch.up(x, y)
        elif press_type == PressType.MOVE:
            touch.move(x, y)
        else:
            touch.down(x, y)
            touch.up(x, y)

    def drag(
        self, start_x: int, start_y: int, end_x: int, end_y: int, steps: int, duration_ms: int
    ) -> None:
        """Press at start, move in `steps` increments spread over `duration_ms`, release at end."""
        steps = max(steps, 1)
        pause = max(duration_ms, 0) / 1000 / steps
        touch = self._u2().touch
        touch.down(start_x, start_y)
        for step in range(1, steps + 1):
            x = start_x + (end_x - start_x) * step // steps
            y = start_y + (end_y - start_y) * step // steps
            time.sleep(pause)
            touch.move(x, y)
        touch.up(end_x, end_y)

    def take_snapshot(self) -> AdbSnapshotImage:
        image = self._u2().screenshot()
        if image is None:
            raise RuntimeError("Failed to capture screenshot from device")
        return AdbSnapshotImage(image)

    def shell(self, command: str) -> str:
        return self._device.shell(command)

    def file_transfer(self) -> AdbFileTransfer:
        return AdbFileTransfer(self._device)


class AdbDeviceDriver:
    """Finds devices through the local adb server."""

    def __init__(self, poll_interval_ms: int = 200) -> None:
        self.poll_interval_ms = poll_interval_ms

    def wait_for_connection(self, timeout_ms: int, serial_pattern: str) -> AdbDeviceHandle | None:
        pattern = compile_serial_pattern(serial_pattern)
        deadline = time.monotonic() + timeout_ms / 1000
        while True:
            for device in adbutils.adb.device_list():
                if device.serial and pattern.fullmatch(device.serial):
                    logger.info("device_found", serial=device.serial, pattern=serial_pattern)
                    return AdbDeviceHandle(device)
            if time.monotonic() >= deadline:
                logger.info("device_not_found", pattern=serial_pattern, timeout_ms=timeout_ms)
                return None
            time.sleep(self.poll_interval_ms / 1000)
