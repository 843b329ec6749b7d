"""Core proxy library components."""

from .proxy_server import SocksProxy, create_proxy_server, run_server
from .proxy_stats import ProxyStats
from .relay import Relay
from .session import Session, SessionState
from .socks_handler import SocksHandler

__all__ = [
    "create_proxy_server",
    "ProxyStats",
    "Relay",
    "run_server",
    "Session",
    "SessionState",
    "SocksHandler",
    "SocksProxy",
]
