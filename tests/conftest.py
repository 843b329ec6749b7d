"""Shared fixtures: a live proxy and throwaway target servers on loopback."""

import socket
import socketserver
import threading

import pytest

from socks5_auth_proxy.core.config import Settings
from socks5_auth_proxy.core.lib.proxy_server import SocksProxy
from tests.helpers import PASSWORD, TIMEOUT, USERNAME


class EchoHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        while data := self.request.recv(4096):
            self.request.sendall(data)


class GreetAndCloseHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        self.request.sendall(b"bye")


class RecordingHandler(socketserver.BaseRequestHandler):
    def handle(self) -> None:
        received = bytearray()
        while data := self.request.recv(4096):
            received += data
        self.server.received = bytes(received)
        self.server.finished.set()


def _serve(handler: type[socketserver.BaseRequestHandler]) -> socketserver.ThreadingTCPServer:
    server = socketserver.ThreadingTCPServer(("127.0.0.1", 0), handler)
    server.daemon_threads = True
    server.received = b""
    server.finished = threading.Event()
    threading.Thread(target=server.serve_forever, daemon=True).start()
    return server


@pytest.fixture
def target_server(request):
    """A target server; parametrize indirectly with a handler class."""
    server = _serve(getattr(request, "param", EchoHandler))
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def proxy_server():
    settings = Settings(host="127.0.0.1", port=0, username=USERNAME, password=PASSWORD)
    server = SocksProxy(settings)
    threading.Thread(target=server.serve_forever, daemon=True).start()
    yield server
    server.shutdown()
    server.server_close()


@pytest.fixture
def proxy_client(proxy_server):
    sock = socket.create_connection(("127.0.0.1", proxy_server.port), timeout=TIMEOUT)
    yield sock
    sock.close()


@pytest.fixture
def free_port() -> int:
    """A loopback port with nothing listening on it."""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
