"""Session slot - the single optional device handle and its lifecycle guards."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import structlog

from chimpchat_rest.device.driver import DeviceHandle
from chimpchat_rest.errors import not_ready_error

logger = structlog.get_logger()


class SessionSlot:
    """Holds at most one connected device handle.

    `transition_lock` serializes connect and dispose. Commands borrow the
    handle through `lease()`; `release()` clears the slot right away and then
    waits for outstanding leases before handing the old handle back for disposal.
    All bookkeeping happens on the event loop thread.
    """

    def __init__(self) -> None:
        self._handle: DeviceHandle | None = None
        self._connected_at: datetime | None = None
        self._leases = 0
        self._drained = asyncio.Event()
        self._drained.set()
        self.transition_lock = asyncio.Lock()

    @property
    def handle(self) -> DeviceHandle | None:
        """Current handle, or None when disconnected."""
        return self._handle

    @property
    def connected(self) -> bool:
        return self._handle is not None

    @property
    def connected_at(self) -> datetime | None:
        return self._connected_at

    @property
    def active_leases(self) -> int:
        return self._leases

    def commit(self, handle: DeviceHandle) -> None:
        """Install a freshly connected handle. Caller holds transition_lock."""
        if self._handle is not None:
            raise RuntimeError("Session slot already holds a device handle")
        self._handle = handle
        self._connected_at = datetime.now()
        logger.info("session_committed", serial=handle.serial)

    async def release(self) -> DeviceHandle | None:
        """Clear the slot and wait until no command still uses the old handle.

        Caller holds transition_lock.
        """
        handle = self._handle
        connected_at = self._connected_at
        self._handle = None
        self._connected_at = None
        if handle is None:
            return None
        if self._leases:
            logger.info("session_release_waiting", serial=handle.serial, leases=self._leases)
        await self._drained.wait()
        logger.info(
            "session_released",
            serial=handle.serial,
            connected_at=connected_at.isoformat() if connected_at else None,
        )
        return handle

    @asynccontextmanager
    async def lease(self, command: str) -> AsyncIterator[DeviceHandle]:
        """Borrow the current handle for the duration of one command.

        Raises:
            CommandError: If no device is connected
        """
        handle = self._handle
        if handle is None:
            raise not_ready_error(command)
        self._leases += 1
        self._drained.clear()
        try:
            yield handle
        finally:
            self._leases -= 1
            if self._leases == 0:
                self._drained.set()
