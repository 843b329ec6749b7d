"""Statistics tracking for the SOCKS5 proxy server.

Counters are shared by every session thread and guarded by a single lock:
- Active and total sessions, keyed by client address
- Authentication and outbound connect failures
- Bytes relayed in each direction
- Recent bandwidth samples

Example:
    from .proxy_stats import proxy_stats

    proxy_stats.connection_started("127.0.0.1:51234")
    proxy_stats.update_bytes(upstream=1024, downstream=2048)
    proxy_stats.connection_ended("127.0.0.1:51234")
"""

import threading
import time
from collections import deque
from datetime import datetime, timezone

# Bandwidth is averaged over this many seconds
BANDWIDTH_WINDOW = 5


class ProxyStats:
    """Thread-safe statistics tracker for the proxy server."""

    def __init__(self) -> None:
        """Initialize proxy statistics tracker with zeroed counters."""
        self.total_connections = 0
        self.auth_failures = 0
        self.connect_failures = 0
        self.bytes_upstream = 0
        self.bytes_downstream = 0
        self.bandwidth_history: deque[tuple[int, float]] = deque(maxlen=1024)
        self.start_time = datetime.now(tz=timezone.utc)
        self._sessions: dict[str, float] = {}
        self._lock = threading.Lock()

    @property
    def active_connections(self) -> int:
        with self._lock:
            return len(self._sessions)

    def uptime(self) -> float:
        """Seconds since the statistics were created."""
        return (datetime.now(tz=timezone.utc) - self.start_time).total_seconds()

    def active_sessions(self) -> dict[str, float]:
        """Return a snapshot of client address -> session duration in seconds."""
        now = time.monotonic()
        with self._lock:
            return {addr: now - started for addr, started in self._sessions.items()}

    def update_bytes(self, upstream: int = 0, downstream: int = 0) -> None:
        """Record relayed bytes.

        Args:
            upstream: Bytes forwarded client -> target
            downstream: Bytes forwarded target -> client
        """
        with self._lock:
            self.bytes_upstream += upstream
            self.bytes_downstream += downstream
            self.bandwidth_history.append((upstream + downstream, time.time()))

    def get_bandwidth(self) -> float:
        """Calculate current bandwidth usage in bytes per second.

        Returns:
            float: Average over the last BANDWIDTH_WINDOW seconds
        """
        with self._lock:
            cutoff = time.time() - BANDWIDTH_WINDOW
            recent = sum(bytes_ for bytes_, ts in self.bandwidth_history if ts > cutoff)
            return recent / BANDWIDTH_WINDOW

    def connection_started(self, addr: str) -> None:
        with self._lock:
            self.total_connections += 1
            self._sessions[addr] = time.monotonic()

    def connection_ended(self, addr: str) -> None:
        with self._lock:
            self._sessions.pop(addr, None)

    def auth_failed(self) -> None:
        with self._lock:
            self.auth_failures += 1

    def connect_failed(self) -> None:
        with self._lock:
            self.connect_failures += 1


# Global statistics object
proxy_stats = ProxyStats()
