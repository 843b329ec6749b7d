"""Live statistics panel for the proxy server."""

import threading
import time

from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from socks5_auth_proxy.core.lib.proxy_stats import ProxyStats, proxy_stats
from socks5_auth_proxy.core.utils.utils import format_bytes, format_duration

from .prompt import PromptHandler, console

# Ignore bandwidth changes smaller than this to avoid jitter
BANDWIDTH_THRESHOLD = 100  # bytes
# Sessions listed individually before the table is truncated
MAX_SESSION_ROWS = 10


class ProxyUI(PromptHandler):
    """UI handler for the proxy server."""

    def __init__(self, server_ip: str, port: int = 1080, stats: ProxyStats = proxy_stats) -> None:
        """Initialize the proxy UI handler.

        Args:
            server_ip: IP address the proxy server listens on
            port: Port number the proxy server listens on
            stats: Statistics source
        """
        super().__init__(refresh_rate=0.5)
        self.server_ip = server_ip
        self.port = port
        self.stats = stats
        self.running = True
        self._last_bandwidth = 0.0
        self._start_time = time.monotonic()

    def _generate_table(self) -> Table:
        """Generate statistics table."""
        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="green", no_wrap=True)

        bandwidth = self.stats.get_bandwidth()
        if abs(bandwidth - self._last_bandwidth) > BANDWIDTH_THRESHOLD:
            self._last_bandwidth = bandwidth

        elapsed = time.monotonic() - self._start_time
        spinner_text = self._spinner.render(elapsed)

        table.add_row("Bandwidth", f"{spinner_text} {format_bytes(self._last_bandwidth)}/s")
        table.add_row("Uptime", format_duration(self.stats.uptime()))
        table.add_row("Active Connections", str(self.stats.active_connections))
        table.add_row("Total Connections", str(self.stats.total_connections))
        table.add_row("Auth Failures", str(self.stats.auth_failures))
        table.add_row("Connect Failures", str(self.stats.connect_failures))
        table.add_row("Client -> Target", format_bytes(self.stats.bytes_upstream))
        table.add_row("Target -> Client", format_bytes(self.stats.bytes_downstream))

        sessions = sorted(self.stats.active_sessions().items(), key=lambda item: -item[1])
        for addr, duration in sessions[:MAX_SESSION_ROWS]:
            table.add_row(f"  {addr}", format_duration(duration))
        if len(sessions) > MAX_SESSION_ROWS:
            table.add_row("  ...", f"{len(sessions) - MAX_SESSION_ROWS} more")
        return table

    def _generate_display(self) -> Panel:
        """Generate the main display panel."""
        title = Text(f"SOCKS5 Proxy: {self.server_ip}:{self.port}", style="bold cyan")
        return Panel(
            self._generate_table(),
            title=title,
            subtitle="Press Ctrl+C to exit",
            border_style="blue",
            padding=(1, 2),
        )

    def run(self) -> None:
        """Run the UI until ``running`` is cleared."""
        console.clear()
        with self.create_live_display(self._generate_display()) as live:
            while self.running:
                live.update(self._generate_display(), refresh=True)
                time.sleep(self._refresh_rate)


def create_proxy_ui(host: str, port: int) -> threading.Thread:
    """Create and return UI thread."""
    ui = ProxyUI(host, port)
    return threading.Thread(target=ui.run, daemon=True)
