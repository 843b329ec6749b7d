"""Core proxy server implementation.

This package contains the core components of the SOCKS5 proxy:
- Wire codec for the RFC 1928 / RFC 1929 frames
- Per-connection session state machine
- Outbound resolution and connection
- Bidirectional relay
- Threaded listener
- Settings, statistics and exception types

The command-line layer only wires these pieces together.
"""
