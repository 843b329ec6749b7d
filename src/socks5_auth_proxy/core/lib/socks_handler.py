"""SOCKS5 request handler for the threaded proxy server.

Each accepted connection gets its own ``SocksHandler`` running in its own
thread. The handler reads from the client and feeds the bytes to a
``Session`` until the handshake either fails or reaches RELAYING, then hands
both sockets to a ``Relay``.

Example:
    # The handler is automatically used by the SocksProxy server class
    server = SocksProxy(settings)
    server.serve_forever()
"""

import functools
import socketserver

from loguru import logger

from socks5_auth_proxy.core.exceptions import ChannelError
from socks5_auth_proxy.core.lib.connector import open_connection
from socks5_auth_proxy.core.lib.proxy_stats import proxy_stats
from socks5_auth_proxy.core.lib.relay import BUFFER_SIZE, Relay
from socks5_auth_proxy.core.lib.session import Session, SessionState


class SocksHandler(socketserver.BaseRequestHandler):
    """Handle incoming SOCKS5 connections."""

    def _negotiate(self, session: Session) -> None:
        """Drive the handshake until it fails or the relay can start."""
        while session.state not in (SessionState.RELAYING, SessionState.CLOSED):
            try:
                data = self.request.recv(BUFFER_SIZE)
            except OSError as e:
                logger.info(f"Client socket error from {session.client_address}: {e}")
                session.close()
                return
            if not data:
                logger.debug(f"Client {session.client_address} closed during handshake")
                session.close()
                return
            session.feed(data)

    def handle(self) -> None:
        """Handle incoming SOCKS5 connection."""
        settings = self.server.settings
        client_addr = f"{self.client_address[0]}:{self.client_address[1]}"
        logger.info(f"New connection from {client_addr}")
        proxy_stats.connection_started(client_addr)

        connector = functools.partial(open_connection, timeout=settings.connect_timeout)
        session = Session(self.request, settings.credentials, connector, client_addr)
        try:
            self._negotiate(session)

            if session.state is SessionState.RELAYING:
                relay = Relay(
                    self.request,
                    session.target,
                    client_address=client_addr,
                    target_address=session.target_address,
                    idle_timeout=settings.idle_timeout,
                )
                relay.run(session.pending_payload)
        except ChannelError as e:
            logger.info(str(e))
        except Exception:
            logger.exception(f"Error handling connection from {client_addr}")
        finally:
            session.close()
            proxy_stats.connection_ended(client_addr)
            logger.info(f"Connection closed: {client_addr}")
