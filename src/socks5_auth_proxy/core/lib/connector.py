"""Outbound connections to CONNECT targets.

Resolution failures, refused connections and unreachable hosts all surface
as ``UpstreamConnectFailed`` so the session has a single failure path.
Attempts are not retried.
"""

import socket

from loguru import logger

from socks5_auth_proxy.core.exceptions import UpstreamConnectFailed
from socks5_auth_proxy.core.lib.dns_handler import dns_resolver


def _connect_one(family: socket.AddressFamily, sockaddr: tuple, timeout: float | None) -> socket.socket:
    remote = socket.socket(family, socket.SOCK_STREAM)
    try:
        remote.settimeout(timeout)
        remote.connect(sockaddr)
        # The relay works on blocking sockets from here on
        remote.settimeout(None)
    except OSError:
        remote.close()
        raise
    return remote


def open_connection(host: str, port: int, timeout: float | None = None) -> socket.socket:
    """Open a TCP connection to host:port.

    Resolved addresses are tried in order and the first one that accepts
    the connection is used.

    Args:
        host: IP literal or domain name
        port: Target port
        timeout: Per-attempt connect timeout, None for the OS default

    Returns:
        socket.socket: The connected socket

    Raises:
        UpstreamConnectFailed: If resolution or every connect attempt fails
    """
    addresses = dns_resolver.resolve(host, port)

    last_error: OSError | None = None
    for family, sockaddr in addresses:
        try:
            return _connect_one(family, sockaddr, timeout)
        except OSError as e:
            logger.debug(f"Connect to {sockaddr[0]}:{sockaddr[1]} failed: {e}")
            last_error = e

    raise UpstreamConnectFailed(f"Could not connect to {host}:{port}: {last_error}")
