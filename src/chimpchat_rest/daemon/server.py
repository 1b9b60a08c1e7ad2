"""FastAPI server - plain-text REST front end for the command dispatcher."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from chimpchat_rest import __version__
from chimpchat_rest.config import ServerConfig
from chimpchat_rest.daemon.dispatcher import CommandDispatcher, CommandRequest
from chimpchat_rest.device.adb import AdbDeviceDriver
from chimpchat_rest.errors import ResponseStatus

logger = structlog.get_logger()

ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Create the dispatcher and dispose the device session on shutdown."""
    config = ServerConfig.from_env()
    logger.info("server_starting", init_retry=config.init_retry, probe=config.probe_property)
    driver = AdbDeviceDriver(poll_interval_ms=config.connect_poll_interval_ms)
    app.state.dispatcher = CommandDispatcher(driver, config)
    yield
    logger.info("server_stopping")
    await app.state.dispatcher.shutdown()


app = FastAPI(
    title="chimpchat-rest",
    version=__version__,
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
    openapi_url=None,
)


def _first_values(request: Request) -> dict[str, str]:
    # A repeated query key keeps its first value
    params: dict[str, str] = {}
    for key, value in request.query_params.multi_items():
        params.setdefault(key, value)
    return params


async def _read_body(request: Request) -> str | None:
    if request.method != "POST":
        return None
    raw = await request.body()
    return raw.decode("utf-8", errors="replace")


@app.api_route("/{path:path}", methods=ALL_METHODS)
async def dispatch(path: str, request: Request) -> PlainTextResponse:
    """Hand every request to the dispatcher and render its plain-text response."""
    dispatcher: CommandDispatcher = request.app.state.dispatcher
    try:
        command_request = CommandRequest.from_path(
            request.method,
            path,
            params=_first_values(request),
            body=await _read_body(request),
        )
        response = await dispatcher.handle(command_request)
    except Exception as exc:
        logger.error("request_failed", path=path, error=str(exc), exc_info=True)
        return PlainTextResponse(
            f"SERVER INTERNAL ERROR: {type(exc).__name__}: {exc}",
            status_code=int(ResponseStatus.SERVER_ERROR),
        )
    return PlainTextResponse(response.body, status_code=int(response.status))
