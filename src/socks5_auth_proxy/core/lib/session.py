"""Per-connection SOCKS5 state machine.

A ``Session`` owns one client connection from the first byte of the
handshake until the relay takes over. Input arrives through ``feed`` one
chunk at a time; the session buffers it, hands complete frames to the wire
codec and performs the resulting side effects (replies, the outbound
connect, closing).

States only ever move forward:

    NEGOTIATING_METHOD -> AUTHENTICATING -> AWAITING_REQUEST -> RELAYING -> CLOSED

Any failure jumps straight to CLOSED. A frame is consumed whole or not at
all, and bytes that follow a complete frame are processed in the next state,
so the way the client's writes are split into TCP segments never changes the
outcome.

Example:
    session = Session(client_sock, settings.credentials, open_connection)
    while session.state is not SessionState.CLOSED:
        session.feed(client_sock.recv(BUFFER_SIZE))
        if session.state is SessionState.RELAYING:
            break
"""

import contextlib
import enum
import socket
from collections.abc import Callable
from typing import Protocol

from loguru import logger

from socks5_auth_proxy.core.config import Credentials
from socks5_auth_proxy.core.exceptions import (
    AuthenticationFailed,
    ProtocolError,
    UnacceptableAuthMethod,
    UpstreamConnectFailed,
)
from socks5_auth_proxy.core.lib import codec
from socks5_auth_proxy.core.lib.proxy_stats import proxy_stats


class Channel(Protocol):
    """The subset of the socket API a session needs."""

    def sendall(self, data: bytes, /) -> None: ...

    def close(self) -> None: ...


Connector = Callable[[str, int], socket.socket]


class SessionState(enum.IntEnum):
    """Lifecycle of a client connection, in transition order."""

    NEGOTIATING_METHOD = 1
    AUTHENTICATING = 2
    AWAITING_REQUEST = 3
    RELAYING = 4
    CLOSED = 5


class Session:
    """SOCKS5 handshake for a single client connection."""

    def __init__(
        self,
        client: Channel,
        credentials: Credentials,
        connector: Connector,
        client_address: str = "client",
    ) -> None:
        """Initialize the session.

        Args:
            client: Socket connected to the client
            credentials: The username/password pair to accept
            connector: Callable opening the outbound socket for (host, port)
            client_address: Peer description used in log messages
        """
        self.client = client
        self.target: socket.socket | None = None
        self.state = SessionState.NEGOTIATING_METHOD
        self.request: codec.ConnectRequest | None = None
        self.pending_payload = b""
        self.client_address = client_address
        self._credentials = credentials
        self._connector = connector
        self._connecting = False
        self._inbound = bytearray()
        self._handlers = {
            SessionState.NEGOTIATING_METHOD: self._handle_method_selection,
            SessionState.AUTHENTICATING: self._handle_authentication,
            SessionState.AWAITING_REQUEST: self._handle_request,
        }

    @property
    def inbound(self) -> bytes:
        """Bytes received but not yet consumed by a complete frame."""
        return bytes(self._inbound)

    @property
    def target_address(self) -> str | None:
        if self.request is None:
            return None
        return f"{self.request.host}:{self.request.port}"

    def feed(self, data: bytes) -> None:
        """Process bytes received from the client."""
        if self.state is SessionState.CLOSED:
            return

        self._inbound += data
        if self.state is SessionState.RELAYING or self._connecting:
            return

        try:
            self._advance()
        except ProtocolError as e:
            logger.info(f"Closing {self.client_address}: {type(e).__name__}: {e}")
            self.close()
        except OSError as e:
            logger.info(f"Client channel error from {self.client_address}: {e}")
            self.close()
        except Exception:
            logger.exception(f"Error handling connection from {self.client_address}")
            self.close()

    def connect_succeeded(self, target: socket.socket) -> None:
        """Finish the handshake once the outbound socket is connected."""
        if self.state is not SessionState.AWAITING_REQUEST or not self._connecting:
            # The client went away while we were connecting
            target.close()
            return

        self._connecting = False
        self.target = target
        try:
            bound_addr, bound_port = target.getsockname()[:2]
            self._send(codec.serialize_connect_reply(codec.REPLY_SUCCESS, bound_addr, bound_port))
        except OSError as e:
            logger.info(f"Client channel error from {self.client_address}: {e}")
            self.close()
            return

        logger.info(f"Connection established: {self.client_address} -> {self.target_address}")
        self.pending_payload = bytes(self._inbound)
        self._inbound.clear()
        self._transition(SessionState.RELAYING)

    def connect_failed(self, error: Exception) -> None:
        """Report a failed outbound connect to the client and close."""
        if self.state is not SessionState.AWAITING_REQUEST:
            return

        self._connecting = False
        proxy_stats.connect_failed()
        logger.warning(f"Failed to connect to {self.target_address}: {error}")
        with contextlib.suppress(OSError):
            self._send(codec.serialize_connect_reply(codec.REPLY_FAILURE))
        self.close()

    def close(self) -> None:
        """Close both channels. Safe to call any number of times."""
        if self.state is SessionState.CLOSED:
            return

        self.state = SessionState.CLOSED
        self._connecting = False
        self._inbound.clear()
        for channel in (self.client, self.target):
            if channel is not None:
                with contextlib.suppress(OSError):
                    channel.close()

    def _advance(self) -> None:
        # A handler returns True when it consumed a frame and the next state
        # should look at whatever is left in the buffer.
        while not self._connecting:
            handler = self._handlers.get(self.state)
            if handler is None or not handler():
                return

    def _handle_method_selection(self) -> bool:
        frame = codec.parse_method_selection(self._inbound)
        if frame is None:
            return False
        self._consume(frame.consumed_length)

        if codec.METHOD_USERNAME_PASSWORD not in frame.methods:
            self._send(codec.serialize_method_selection_reply(codec.METHOD_NO_ACCEPTABLE))
            raise UnacceptableAuthMethod(f"offered methods {list(frame.methods)}")

        self._send(codec.serialize_method_selection_reply(codec.METHOD_USERNAME_PASSWORD))
        self._transition(SessionState.AUTHENTICATING)
        return True

    def _handle_authentication(self) -> bool:
        frame = codec.parse_user_pass_auth(self._inbound)
        if frame is None:
            return False
        self._consume(frame.consumed_length)

        ok = self._credentials.matches(frame.username, frame.password)
        self._send(codec.serialize_auth_reply(ok))
        if not ok:
            proxy_stats.auth_failed()
            logger.warning(f"Authentication failed for user: {frame.username}")
            raise AuthenticationFailed(f"bad credentials for user {frame.username!r}")

        self._transition(SessionState.AWAITING_REQUEST)
        return True

    def _handle_request(self) -> bool:
        try:
            frame = codec.parse_connect_request(self._inbound)
        except ProtocolError:
            self._send(codec.serialize_connect_reply(codec.REPLY_FAILURE))
            raise
        if frame is None:
            return False
        self._consume(frame.consumed_length)

        self.request = frame
        logger.info(f"Connection request: {self.client_address} -> {self.target_address}")
        self._connecting = True
        try:
            target = self._connector(frame.host, frame.port)
        except (UpstreamConnectFailed, OSError) as e:
            self.connect_failed(e)
        else:
            self.connect_succeeded(target)
        return False

    def _consume(self, length: int) -> None:
        del self._inbound[:length]

    def _send(self, data: bytes) -> None:
        self.client.sendall(data)

    def _transition(self, new_state: SessionState) -> None:
        if new_state <= self.state:
            raise RuntimeError(f"Invalid transition {self.state.name} -> {new_state.name}")
        logger.debug(f"{self.client_address}: {self.state.name} -> {new_state.name}")
        self.state = new_state
