from datetime import timedelta

from socks5_auth_proxy.core.lib.proxy_stats import ProxyStats
from socks5_auth_proxy.core.utils.prompt.proxy_ui import ProxyUI
from socks5_auth_proxy.core.utils.utils import format_bytes, format_duration


def test_session_tracking():
    stats = ProxyStats()
    stats.connection_started("127.0.0.1:1000")
    stats.connection_started("127.0.0.1:1001")
    stats.connection_ended("127.0.0.1:1000")
    stats.connection_ended("127.0.0.1:1000")

    assert stats.active_connections == 1
    assert stats.total_connections == 2
    assert list(stats.active_sessions()) == ["127.0.0.1:1001"]


def test_byte_counters():
    stats = ProxyStats()
    stats.update_bytes(upstream=100)
    stats.update_bytes(downstream=400)
    assert (stats.bytes_upstream, stats.bytes_downstream) == (100, 400)
    assert stats.get_bandwidth() == 100


def test_failure_counters():
    stats = ProxyStats()
    stats.auth_failed()
    stats.connect_failed()
    stats.connect_failed()
    assert (stats.auth_failures, stats.connect_failures) == (1, 2)


def test_format_bytes():
    assert format_bytes(512) == "512.0 B"
    assert format_bytes(2048) == "2.0 KB"
    assert format_bytes(5 * 1024**3) == "5.0 GB"
    assert format_bytes(3 * 1024**4) == "3.0 TB"


def test_format_duration():
    assert format_duration(3725.4) == "1:02:05"


def test_dashboard_table_lists_sessions():
    stats = ProxyStats()
    for i in range(12):
        stats.connection_started(f"10.0.0.{i}:5000")

    table = ProxyUI("127.0.0.1", 1080, stats=stats)._generate_table()

    # 8 counters, 10 sessions and the overflow row
    assert table.row_count == 19


def test_uptime_counts_from_creation():
    stats = ProxyStats()
    stats.start_time -= timedelta(seconds=90)
    assert 90 <= stats.uptime() < 100
