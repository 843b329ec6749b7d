"""Proxy settings.

Settings are read once at startup, either from the environment or from the
command line, and are shared read-only by every session afterwards.

Example:
    settings = Settings.from_env()
    create_proxy_server(settings)
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, NamedTuple

from socks5_auth_proxy.core.exceptions import ConfigError

DEFAULT_HOST: Final = "0.0.0.0"
DEFAULT_PORT: Final = 1080
DEFAULT_USERNAME: Final = "admin"
DEFAULT_PASSWORD: Final = "password"

# RFC 1929 length fields are a single byte
MAX_CREDENTIAL_LENGTH: Final = 255

ENV_HOST: Final = "PROXY_HOST"
ENV_PORT: Final = "PROXY_PORT"
ENV_USERNAME: Final = "PROXY_USERNAME"
ENV_PASSWORD: Final = "PROXY_PASSWORD"
ENV_CONNECT_TIMEOUT: Final = "PROXY_CONNECT_TIMEOUT"
ENV_IDLE_TIMEOUT: Final = "PROXY_IDLE_TIMEOUT"


class Credentials(NamedTuple):
    """The single username/password pair accepted by the proxy."""

    username: str
    password: str

    def matches(self, username: str, password: str) -> bool:
        """Exact, case-sensitive comparison."""
        return username == self.username and password == self.password


@dataclass(frozen=True)
class Settings:
    """Process-wide proxy configuration.

    Attributes:
        host: Address to listen on
        port: TCP port to listen on
        username: Username clients must authenticate with
        password: Password clients must authenticate with
        connect_timeout: Outbound connect timeout in seconds, None for the OS default
        idle_timeout: Relay idle timeout in seconds, None to relay indefinitely
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD
    connect_timeout: float | None = None
    idle_timeout: float | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ConfigError(f"port must be between 0 and 65535, got {self.port}")
        for name in ("username", "password"):
            size = len(getattr(self, name).encode())
            if not 1 <= size <= MAX_CREDENTIAL_LENGTH:
                raise ConfigError(f"{name} must be 1 to {MAX_CREDENTIAL_LENGTH} bytes long")
        for name in ("connect_timeout", "idle_timeout"):
            value = getattr(self, name)
            if value is not None and value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")

    @property
    def credentials(self) -> Credentials:
        return Credentials(self.username, self.password)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build settings from ``PROXY_*`` environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Returns:
            Settings: Settings with defaults for unset variables

        Raises:
            ConfigError: If a variable holds an invalid value
        """
        env = os.environ if environ is None else environ
        return cls(
            host=env.get(ENV_HOST, DEFAULT_HOST),
            port=_parse_number(env, ENV_PORT, int, DEFAULT_PORT),
            username=env.get(ENV_USERNAME, DEFAULT_USERNAME),
            password=env.get(ENV_PASSWORD, DEFAULT_PASSWORD),
            connect_timeout=_parse_number(env, ENV_CONNECT_TIMEOUT, float, None),
            idle_timeout=_parse_number(env, ENV_IDLE_TIMEOUT, float, None),
        )


def _parse_number(env: Mapping[str, str], key: str, kind: type, default):
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except ValueError as e:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from e
