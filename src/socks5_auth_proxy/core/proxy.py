"""Main entry point for the SOCKS5 proxy server.

Exposes only what the command-line layer needs from the core package.

Example:
    from socks5_auth_proxy.core.proxy import Settings, create_proxy_server

    create_proxy_server(Settings(port=1080, username="alice", password="secret"))

Attributes:
    __all__ (list): List of public components exposed by this module
"""

from .config import Settings
from .lib import create_proxy_server

__all__ = ["Settings", "create_proxy_server"]
