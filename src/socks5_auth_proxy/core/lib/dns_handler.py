"""Target address resolution using the system resolver."""

import ipaddress
import socket
from typing import NoReturn

from loguru import logger

from socks5_auth_proxy.core.exceptions import DNSResolutionError

# (family, sockaddr) pairs ready for socket.connect
ResolvedAddress = tuple[socket.AddressFamily, tuple]


class DNSResolver:
    """Resolve CONNECT targets to connectable socket addresses.

    IPv4 and IPv6 literals are used as-is; domain names go through
    ``socket.getaddrinfo`` so the platform resolver configuration
    (hosts file, search domains, nsswitch) applies.
    """

    def _try_literal(self, host: str, port: int) -> list[ResolvedAddress] | None:
        """Return the address directly if host is an IP literal."""
        try:
            ip = ipaddress.ip_address(host)
        except ValueError:
            return None
        if ip.version == 4:
            return [(socket.AF_INET, (str(ip), port))]
        return [(socket.AF_INET6, (str(ip), port, 0, 0))]

    def _try_system_dns(self, host: str, port: int) -> list[ResolvedAddress]:
        """Resolve using system DNS."""
        try:
            addrinfo = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            logger.debug(f"System DNS resolution failed for {host}: {e}")
            self._raise_dns_error(f"Could not resolve {host}: {e}")
        return [(family, sockaddr) for family, _, _, _, sockaddr in addrinfo]

    def _raise_dns_error(self, msg: str) -> NoReturn:
        """Raise a DNS resolution error.

        Args:
            msg: Error message

        Raises:
            DNSResolutionError: Always raised with the given message
        """
        raise DNSResolutionError(msg)

    def resolve(self, host: str, port: int) -> list[ResolvedAddress]:
        """Resolve a host to socket addresses.

        Args:
            host: IP literal or domain name
            port: Target port

        Returns:
            list[ResolvedAddress]: Addresses in resolver order

        Raises:
            DNSResolutionError: If resolution fails or yields nothing
        """
        if addresses := self._try_literal(host, port):
            return addresses

        if not host:
            self._raise_dns_error("Empty domain name")

        addresses = self._try_system_dns(host, port)
        if not addresses:
            self._raise_dns_error(f"No addresses found for {host}")
        logger.debug(f"Resolved {host} to {[sockaddr[0] for _, sockaddr in addresses]}")
        return addresses


# Global resolver instance
dns_resolver = DNSResolver()
