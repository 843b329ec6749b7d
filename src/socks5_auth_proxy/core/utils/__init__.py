"""Utility functions and helpers."""

from socks5_auth_proxy.core.utils.prompt import PromptHandler, create_proxy_ui
from socks5_auth_proxy.core.utils.utils import format_bytes, format_duration

__all__ = ["create_proxy_ui", "format_bytes", "format_duration", "PromptHandler"]
