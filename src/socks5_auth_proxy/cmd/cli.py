"""Command-line interface for the SOCKS5 proxy server.

Settings start from the ``PROXY_*`` environment variables (see
``Settings.from_env``) and any option given on the command line overrides
them, so the proxy can be configured entirely from the environment in
container deployments.

Example:
    # Run from command line:
    $ socks5-auth-proxy proxy --port 1080 --username alice --password secret
"""

import dataclasses
import sys

import typer
from loguru import logger
from rich.console import Console

from socks5_auth_proxy import __version__
from socks5_auth_proxy.core.exceptions import ConfigError
from socks5_auth_proxy.core.proxy import Settings, create_proxy_server
from socks5_auth_proxy.core.utils.log_config import LOG_DIR, setup_logging

console = Console()
app = typer.Typer(help="SOCKS5 proxy with username/password authentication")


@app.callback(invoke_without_command=True)
def version_callback():
    """Show version information."""
    console.print(f"[cyan]SOCKS5 Auth Proxy v{__version__}[/cyan]")


@app.command(name="proxy")
def start_proxy(
    host: str | None = typer.Option(None, "--host", help="Address to listen on [env: PROXY_HOST]"),
    port: int | None = typer.Option(None, "--port", help="Port to listen on [env: PROXY_PORT]"),
    username: str | None = typer.Option(
        None, "--username", "-u", help="Username clients must send [env: PROXY_USERNAME]"
    ),
    password: str | None = typer.Option(
        None, "--password", "-P", help="Password clients must send [env: PROXY_PASSWORD]"
    ),
    connect_timeout: float | None = typer.Option(
        None, "--connect-timeout", help="Outbound connect timeout in seconds [env: PROXY_CONNECT_TIMEOUT]"
    ),
    idle_timeout: float | None = typer.Option(
        None, "--idle-timeout", help="Close relays idle for this many seconds [env: PROXY_IDLE_TIMEOUT]"
    ),
    dashboard: bool = typer.Option(
        default=False,
        help="Show live connection statistics",
    ),
    debug: bool = typer.Option(
        default=False,
        help="Enable debug logging",
    ),
):
    """Start the SOCKS5 proxy server."""
    setup_logging(debug=debug, log_file=LOG_DIR / "proxy.log" if debug else None)

    overrides = {
        "host": host,
        "port": port,
        "username": username,
        "password": password,
        "connect_timeout": connect_timeout,
        "idle_timeout": idle_timeout,
    }
    try:
        settings = dataclasses.replace(
            Settings.from_env(),
            **{name: value for name, value in overrides.items() if value is not None},
        )
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        console.print(f"[red]Invalid configuration: {e}")
        sys.exit(2)

    logger.info("Starting SOCKS5 proxy server")
    try:
        create_proxy_server(settings, dashboard=dashboard)
    except OSError as e:
        logger.exception("Error starting proxy server")
        console.print(f"[red]Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    app()
