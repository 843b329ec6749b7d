"""SOCKS5 wire codec.

Stateless parse/serialize functions for the fixed frame shapes of RFC 1928
(method selection, CONNECT request/reply) and RFC 1929 (username/password
sub-negotiation). No I/O happens here.

Every ``parse_*`` function takes the bytes accumulated so far for the current
frame and returns either a parsed frame or ``None`` when more bytes are
needed. Returning ``None`` never consumes anything, so the caller can append
the next chunk and parse again from the start of the frame. Frames that can
never become valid raise a ``ProtocolError`` subclass.

Frame layouts:

    method selection   05 NMETHODS METHOD...
    method reply       05 METHOD
    auth request       01 ULEN UNAME... PLEN PASSWD...
    auth reply         01 STATUS
    connect request    05 CMD RSV ATYP ADDR PORT(2, big-endian)
    connect reply      05 STATUS 00 01 ADDR(4) PORT(2, big-endian)

Example:
    frame = parse_method_selection(buffer)
    if frame is None:
        return  # wait for more data
    del buffer[: frame.consumed_length]
"""

import ipaddress
import socket
import struct
from dataclasses import dataclass
from typing import Final

from socks5_auth_proxy.core.exceptions import (
    MalformedFrame,
    ProtocolVersionMismatch,
    UnsupportedAddressType,
    UnsupportedCommand,
)

# SOCKS protocol constants
SOCKS_VERSION: Final = 5
AUTH_VERSION: Final = 1

# Authentication methods
METHOD_USERNAME_PASSWORD: Final = 0x02
METHOD_NO_ACCEPTABLE: Final = 0xFF

# Commands
CMD_CONNECT: Final = 1

# Address types
ATYP_IPV4: Final = 1
ATYP_DOMAIN: Final = 3
ATYP_IPV6: Final = 4

# Response codes
REPLY_SUCCESS: Final = 0
REPLY_FAILURE: Final = 1
AUTH_SUCCESS: Final = 0
AUTH_FAILURE: Final = 1

# Reply address used whenever there is nothing better to report
UNSPECIFIED_ADDR: Final = "0.0.0.0"

_REQUEST_HEADER_LEN: Final = 4
_PORT_LEN: Final = 2
_IPV4_LEN: Final = 4
_IPV6_LEN: Final = 16


@dataclass(frozen=True)
class MethodSelection:
    """Client greeting listing the offered authentication methods."""

    methods: tuple[int, ...]
    consumed_length: int

    @property
    def n_methods(self) -> int:
        return len(self.methods)


@dataclass(frozen=True)
class UserPassAuth:
    """RFC 1929 username/password request."""

    username: str
    password: str
    consumed_length: int


@dataclass(frozen=True)
class ConnectRequest:
    """SOCKS5 request naming the target to connect to."""

    command: int
    address_type: int
    host: str
    port: int
    consumed_length: int


def parse_method_selection(data: bytes) -> MethodSelection | None:
    """Parse the client greeting.

    Args:
        data: Bytes received so far for this frame

    Returns:
        MethodSelection | None: Parsed frame, or None if incomplete

    Raises:
        ProtocolVersionMismatch: If the first byte is not 5
    """
    if not data:
        return None
    if data[0] != SOCKS_VERSION:
        raise ProtocolVersionMismatch(SOCKS_VERSION, data[0])
    if len(data) < 2:
        return None

    n_methods = data[1]
    end = 2 + n_methods
    if len(data) < end:
        return None
    return MethodSelection(methods=tuple(data[2:end]), consumed_length=end)


def serialize_method_selection_reply(method: int) -> bytes:
    """Build the method selection reply (0xFF means no acceptable method)."""
    return struct.pack("!BB", SOCKS_VERSION, method)


def parse_user_pass_auth(data: bytes) -> UserPassAuth | None:
    """Parse an RFC 1929 username/password request.

    Args:
        data: Bytes received so far for this frame

    Returns:
        UserPassAuth | None: Parsed frame, or None if incomplete

    Raises:
        ProtocolVersionMismatch: If the sub-negotiation version is not 1
        MalformedFrame: If username or password is not valid UTF-8
    """
    if not data:
        return None
    if data[0] != AUTH_VERSION:
        raise ProtocolVersionMismatch(AUTH_VERSION, data[0])
    if len(data) < 2:
        return None

    username_len = data[1]
    password_len_pos = 2 + username_len
    if len(data) < password_len_pos + 1:
        return None

    password_len = data[password_len_pos]
    end = password_len_pos + 1 + password_len
    if len(data) < end:
        return None

    username = _decode_text(data[2:password_len_pos], "username")
    password = _decode_text(data[password_len_pos + 1 : end], "password")
    return UserPassAuth(username=username, password=password, consumed_length=end)


def serialize_auth_reply(ok: bool) -> bytes:
    """Build the username/password reply."""
    return struct.pack("!BB", AUTH_VERSION, AUTH_SUCCESS if ok else AUTH_FAILURE)


def parse_connect_request(data: bytes) -> ConnectRequest | None:
    """Parse a SOCKS5 request.

    The version, command and address type are validated as soon as the
    four header bytes are available, before the address arrives.

    Args:
        data: Bytes received so far for this frame

    Returns:
        ConnectRequest | None: Parsed frame, or None if incomplete

    Raises:
        ProtocolVersionMismatch: If the version byte is not 5
        UnsupportedCommand: If the command is not CONNECT
        UnsupportedAddressType: If ATYP is not IPv4, domain or IPv6
        MalformedFrame: If a domain name is not valid UTF-8
    """
    if len(data) < _REQUEST_HEADER_LEN:
        return None

    version, command, _, address_type = struct.unpack_from("!BBBB", data)
    if version != SOCKS_VERSION:
        raise ProtocolVersionMismatch(SOCKS_VERSION, version)
    if command != CMD_CONNECT:
        raise UnsupportedCommand(command)

    offset = _REQUEST_HEADER_LEN
    if address_type == ATYP_IPV4:
        addr_end = offset + _IPV4_LEN
        if len(data) < addr_end + _PORT_LEN:
            return None
        host = socket.inet_ntoa(bytes(data[offset:addr_end]))
    elif address_type == ATYP_DOMAIN:
        if len(data) < offset + 1:
            return None
        domain_len = data[offset]
        offset += 1
        addr_end = offset + domain_len
        if len(data) < addr_end + _PORT_LEN:
            return None
        host = _decode_text(data[offset:addr_end], "domain name")
    elif address_type == ATYP_IPV6:
        addr_end = offset + _IPV6_LEN
        if len(data) < addr_end + _PORT_LEN:
            return None
        host = str(ipaddress.IPv6Address(bytes(data[offset:addr_end])))
    else:
        raise UnsupportedAddressType(address_type)

    (port,) = struct.unpack_from("!H", data, addr_end)
    return ConnectRequest(
        command=command,
        address_type=address_type,
        host=host,
        port=port,
        consumed_length=addr_end + _PORT_LEN,
    )


def serialize_connect_reply(status: int, bound_address: str = UNSPECIFIED_ADDR, bound_port: int = 0) -> bytes:
    """Build a CONNECT reply.

    The reply always uses ATYP=IPv4. IPv6 bound addresses are reported
    through their IPv4-mapped form when they have one, otherwise as 0.0.0.0.

    Args:
        status: Reply code (0 success, 1 general failure)
        bound_address: Local address of the outbound socket
        bound_port: Local port of the outbound socket

    Returns:
        bytes: The 10-byte reply frame
    """
    response = struct.pack("!BBBB", SOCKS_VERSION, status, 0, ATYP_IPV4)
    return response + _ipv4_bytes(bound_address) + struct.pack("!H", bound_port)


def _ipv4_bytes(address: str) -> bytes:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return socket.inet_aton(UNSPECIFIED_ADDR)
    if isinstance(ip, ipaddress.IPv6Address):
        ip = ip.ipv4_mapped or ipaddress.IPv4Address(UNSPECIFIED_ADDR)
    return ip.packed


def _decode_text(raw: bytes, what: str) -> str:
    try:
        return bytes(raw).decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedFrame(f"{what} is not valid UTF-8") from e
