"""Frame builders and socket helpers for the tests."""

import socket
import struct

USERNAME = "user"
PASSWORD = "password"
TIMEOUT = 5.0

GREETING = b"\x05\x01\x02"


def recv_exact(sock: socket.socket, size: int) -> bytes:
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            raise ConnectionError(f"EOF after {len(data)} of {size} bytes")
        data += chunk
    return data


def recv_until_eof(sock: socket.socket) -> bytes:
    data = b""
    while chunk := sock.recv(4096):
        data += chunk
    return data


def auth_frame(username: str = USERNAME, password: str = PASSWORD) -> bytes:
    user, pw = username.encode(), password.encode()
    return bytes([1, len(user)]) + user + bytes([len(pw)]) + pw


def connect_ipv4_frame(host: str, port: int) -> bytes:
    return b"\x05\x01\x00\x01" + socket.inet_aton(host) + struct.pack("!H", port)


def connect_domain_frame(domain: str, port: int) -> bytes:
    name = domain.encode()
    return b"\x05\x01\x00\x03" + bytes([len(name)]) + name + struct.pack("!H", port)
