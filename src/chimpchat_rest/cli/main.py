"""CLI entry point using Typer."""

from __future__ import annotations

import logging

import httpx
import structlog
import typer

from chimpchat_rest.config import ServerConfig

app = typer.Typer(
    name="chimpchat-rest",
    help="Control an Android device via REST APIs",
    no_args_is_help=True,
)

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}
DEFAULT_SERVER_URL = "http://127.0.0.1:8080"


def configure_logging(level: str) -> None:
    """Filter structlog output below the given level."""
    if level not in LOG_LEVELS:
        raise typer.BadParameter(f"log level must be one of {', '.join(LOG_LEVELS)}")
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(LOG_LEVELS[level]))


def parse_params(pairs: list[str]) -> dict[str, str]:
    """Turn ['x=1', 'y=2'] into {'x': '1', 'y': '2'}."""
    params: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"expected key=value, got {pair!r}", param_hint="--param")
        params[key] = value
    return params


@app.command()
def version() -> None:
    """Show version information."""
    from chimpchat_rest import __version__

    typer.echo(f"chimpchat-rest v{__version__}")


@app.command()
def serve(
    host: str | None = typer.Argument(None, help="Bind host (default 0.0.0.0)"),
    port: int | None = typer.Argument(None, help="Bind port (default 8080)"),
    log_level: str = typer.Option("info", "--log-level", help="debug|info|warning|error"),
) -> None:
    """Run the REST server."""
    import uvicorn

    config = ServerConfig.from_env()
    configure_logging(log_level)
    bind_host = host or config.host
    bind_port = port if port is not None else config.port
    typer.echo(f"server starts at {bind_host}:{bind_port}")
    uvicorn.run(
        "chimpchat_rest.daemon.server:app",
        host=bind_host,
        port=bind_port,
        log_level=log_level,
    )


@app.command()
def send(
    path: str = typer.Argument(..., help="Command path, e.g. init or touch"),
    param: list[str] | None = typer.Option(None, "--param", "-p", help="Query parameter key=value"),
    body: str | None = typer.Option(None, "--body", help="POST body (shell command text)"),
    url: str = typer.Option(DEFAULT_SERVER_URL, "--url", help="Server base URL"),
    timeout: float = typer.Option(60.0, "--timeout", help="Request timeout in seconds"),
) -> None:
    """Send one command to a running server and print the response body."""
    params = parse_params(param or [])
    method = "POST" if body is not None else "GET"
    with httpx.Client(base_url=url, timeout=timeout) as client:
        try:
            resp = client.request(method, "/" + path.lstrip("/"), params=params, content=body)
        except httpx.HTTPError as exc:
            typer.echo(f"Request failed: {exc}", err=True)
            raise typer.Exit(code=1) from exc
    typer.echo(resp.text)
    if resp.status_code != 200:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
