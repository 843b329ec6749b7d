"""Bidirectional byte relay between a client and its target.

Once the handshake is done the relay owns both sockets. It forwards bytes in
both directions, preserving order within each direction, until either side
closes or fails, and then closes both.

Writes use ``sendall``: when one side reads slower than the other sends, the
relay waits for it instead of dropping data.
"""

import contextlib
import selectors
import socket

from loguru import logger

from socks5_auth_proxy.core.exceptions import ChannelError
from socks5_auth_proxy.core.lib.proxy_stats import proxy_stats

BUFFER_SIZE = 4096


class Relay:
    """Forward data between the client and target sockets."""

    def __init__(
        self,
        client: socket.socket,
        target: socket.socket,
        client_address: str = "client",
        target_address: str = "target",
        idle_timeout: float | None = None,
    ) -> None:
        self.client = client
        self.target = target
        self.client_address = client_address
        self.target_address = target_address
        self.idle_timeout = idle_timeout

    def run(self, initial: bytes = b"") -> None:
        """Relay until either side closes, then close both.

        Args:
            initial: Client bytes received before the relay started, sent to
                the target first

        Raises:
            ChannelError: If either socket fails; both are closed regardless
        """
        try:
            if initial:
                self.target.sendall(initial)
                proxy_stats.update_bytes(upstream=len(initial))
            self._forward()
        except OSError as e:
            raise ChannelError(f"Relay error {self.client_address} -> {self.target_address}: {e}") from e
        finally:
            self.close()

    def close(self) -> None:
        for sock in (self.client, self.target):
            with contextlib.suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            sock.close()

    def _forward(self) -> None:
        with selectors.DefaultSelector() as selector:
            selector.register(self.client, selectors.EVENT_READ, self.target)
            selector.register(self.target, selectors.EVENT_READ, self.client)

            while True:
                events = selector.select(self.idle_timeout)

                if not events:
                    logger.debug(f"Idle timeout: {self.client_address} -> {self.target_address}")
                    return

                for key, _ in events:
                    sock, other = key.fileobj, key.data
                    upstream = sock is self.client
                    data = sock.recv(BUFFER_SIZE)
                    if not data:
                        side = "Client" if upstream else "Target"
                        logger.debug(f"{side} disconnected: {self.client_address} -> {self.target_address}")
                        return
                    other.sendall(data)
                    if upstream:
                        proxy_stats.update_bytes(upstream=len(data))
                    else:
                        proxy_stats.update_bytes(downstream=len(data))
