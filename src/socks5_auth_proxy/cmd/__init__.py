"""Command line interface modules.

This package provides the ``socks5-auth-proxy`` command, which loads the
settings, configures logging and starts the proxy server.
"""
