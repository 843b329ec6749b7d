"""Threaded SOCKS5 proxy server.

One listening socket, one thread per accepted connection. Sessions share
nothing but the read-only settings and the statistics object, so a failing
session never affects the listener or its neighbours.

The server shuts down gracefully on SIGINT and SIGTERM: it stops accepting,
closes the listening socket and lets the daemon session threads die with
the process.

Example:
    # Start a proxy on all interfaces, port 1080
    create_proxy_server(Settings(username="alice", password="secret"))
"""

import contextlib
import signal
import socket
import socketserver
import threading

from loguru import logger
from rich.console import Console

from socks5_auth_proxy.core.config import Settings

from .socks_handler import SocksHandler

console = Console()


class SocksProxy(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """SOCKS5 proxy server implementation."""

    allow_reuse_address = True
    daemon_threads = True
    request_queue_size = 100

    def __init__(self, settings: Settings, handler_class: type[socketserver.BaseRequestHandler] = SocksHandler):
        """Bind the listening socket.

        Args:
            settings: Proxy configuration shared by all sessions
            handler_class: Request handler to instantiate per connection
        """
        self.settings = settings
        if ":" in settings.host:
            self.address_family = socket.AF_INET6
        super().__init__((settings.host, settings.port), handler_class)

    def server_bind(self) -> None:
        """Bind the server socket with reuse options."""
        self.socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        super().server_bind()

    @property
    def port(self) -> int:
        """Port actually bound, useful when settings.port is 0."""
        return self.server_address[1]


def _install_signal_handlers(server: SocksProxy) -> None:
    """Shut the server down on SIGINT/SIGTERM.

    ``shutdown`` blocks until ``serve_forever`` returns, so it must run on a
    thread other than the one serving.
    """

    def _shutdown(signum, _frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down gracefully...")
        threading.Thread(target=server.shutdown, daemon=True).start()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT, _shutdown)
        signal.signal(signal.SIGTERM, _shutdown)


def run_server(settings: Settings) -> None:
    """Run the proxy until a shutdown signal arrives.

    Args:
        settings: Proxy configuration
    """
    server: SocksProxy | None = None
    try:
        server = SocksProxy(settings)
        _install_signal_handlers(server)
        logger.info(f"SOCKS5 proxy server listening on {settings.host}:{server.port}")
        logger.info(f"Authentication: username {settings.username!r}")
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Server stopping")
    finally:
        if server:
            with contextlib.suppress(Exception):
                server.server_close()
                logger.info("Server closed")


def create_proxy_server(settings: Settings, dashboard: bool = False) -> None:
    """Create and start the SOCKS5 proxy server.

    Args:
        settings: Proxy configuration
        dashboard: Show the live statistics panel while serving
    """
    if dashboard:
        # The dashboard reads proxy_stats from this package
        from socks5_auth_proxy.core.utils.prompt.proxy_ui import create_proxy_ui

        ui_thread = create_proxy_ui(settings.host, settings.port)
        ui_thread.start()

    console.print(f"[bold green]Starting SOCKS5 proxy on {settings.host}:{settings.port}")
    run_server(settings)
    console.print("[yellow]SOCKS5 proxy stopped")
