"""Custom exceptions for the proxy server.

Every error below is local to one session: the session that raised it is
terminated (both channels closed) and the listener keeps serving. Errors are
grouped so callers can react to a whole family at once:

- ``ProtocolError``: the client sent something the wire codec rejects
- ``UpstreamConnectFailed``: the CONNECT target could not be reached
- ``ChannelError``: an I/O fault on an established socket

Example:
    try:
        remote = open_connection("example.org", 443)
    except UpstreamConnectFailed as e:
        logger.warning(f"Connect failed: {e}")
"""


class ProxyError(Exception):
    """Base exception for proxy errors."""


class ConfigError(ProxyError):
    """Raised when the proxy settings are invalid."""


class ProtocolError(ProxyError):
    """Base class for SOCKS5 wire protocol faults."""


class MalformedFrame(ProtocolError):
    """Raised when a frame cannot be decoded."""


class ProtocolVersionMismatch(MalformedFrame):
    """Raised when a frame carries an unexpected version byte."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"expected version {expected:#04x}, got {actual:#04x}")
        self.expected = expected
        self.actual = actual


class UnacceptableAuthMethod(ProtocolError):
    """Raised when the client offers no method the server accepts."""


class AuthenticationFailed(ProtocolError):
    """Raised when the client credentials do not match."""


class UnsupportedCommand(ProtocolError):
    """Raised for SOCKS5 commands other than CONNECT."""

    def __init__(self, command: int) -> None:
        super().__init__(f"unsupported command {command:#04x}")
        self.command = command


class UnsupportedAddressType(ProtocolError):
    """Raised for an ATYP outside IPv4, domain name and IPv6."""

    def __init__(self, address_type: int) -> None:
        super().__init__(f"unsupported address type {address_type:#04x}")
        self.address_type = address_type


class UpstreamConnectFailed(ProxyError):
    """Raised when the outbound connection to the target fails."""


class DNSResolutionError(UpstreamConnectFailed):
    """Raised when DNS resolution fails."""


class ChannelError(ProxyError):
    """Raised on an I/O fault on the client or target socket."""
