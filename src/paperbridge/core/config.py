"""Configuration management for paperbridge."""

import ipaddress

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_listen_address(value: str) -> tuple[str, int]:
    """Split an ``IP:PORT`` listen address into host and port.

    IPv6 hosts must be bracketed, e.g. ``[::]:2121``. Host names are not
    accepted, only literal addresses.

    Raises:
        ValueError: If the address is malformed
    """
    host, sep, port = value.strip().rpartition(":")
    error = (
        f"Invalid listen address '{value}'. Must be in format IP:PORT "
        "(e.g., 0.0.0.0:2121 or [::]:2121)"
    )
    if not sep or not host or not port.isdigit():
        raise ValueError(error)

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise ValueError(error)

    try:
        ipaddress.ip_address(host)
    except ValueError:
        raise ValueError(error) from None

    port_number = int(port)
    if port_number > 65535:
        raise ValueError(error)
    return host, port_number


def parse_port_range(value: str) -> range:
    """Parse a ``start-end`` passive port range into an inclusive range."""
    parts = value.strip().split("-")
    if len(parts) != 2:
        raise ValueError("Wrong format for port range, should be in the format 2222-3333")

    bounds = []
    for label, part in zip(("First", "Second"), parts):
        part = part.strip()
        if not part.isdigit() or int(part) > 65535:
            raise ValueError(f"{label} number of port range can't be parsed")
        bounds.append(int(part))

    start, end = bounds
    if start > end:
        raise ValueError("Port range start must not be greater than its end")
    return range(start, end + 1)


class Settings(BaseSettings):
    """Bridge settings loaded from environment variables and CLI overrides."""

    model_config = SettingsConfigDict(
        env_prefix="PAPERBRIDGE_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # FTP server
    LISTEN: str
    PASSIVE_MODE_PORTS: str
    FTP_USERNAME: str
    FTP_PASSWORD: str

    # Paperless API
    PAPERLESS_URL: str
    PAPERLESS_API_TOKEN: str
    REQUEST_TIMEOUT: float = 30.0  # seconds per HTTP call
    HEALTH_CHECK_ATTEMPTS: int = 3

    # Upload bridge
    STAGING_DIR: str = ""  # empty = system temp dir
    STAGING_BUFFER_SIZE: int = 65536
    POLL_INTERVAL_SECONDS: float = 1.0
    POLL_TIMEOUT_SECONDS: float = 10.0

    # Logging
    VERBOSE: bool = False
    LOG_FORMAT: str = "text"  # "text" or "json"

    @field_validator("LISTEN")
    @classmethod
    def _validate_listen(cls, value: str) -> str:
        parse_listen_address(value)
        return value.strip()

    @field_validator("PASSIVE_MODE_PORTS")
    @classmethod
    def _validate_passive_ports(cls, value: str) -> str:
        parse_port_range(value)
        return value.strip()

    @field_validator("PAPERLESS_URL")
    @classmethod
    def _validate_url(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("http://", "https://")):
            raise ValueError("Paperless URL must start with http:// or https://")
        return value.rstrip("/")

    @field_validator("LOG_FORMAT")
    @classmethod
    def _validate_log_format(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ("text", "json"):
            raise ValueError("LOG_FORMAT must be 'text' or 'json'")
        return value

    @field_validator("STAGING_BUFFER_SIZE", "HEALTH_CHECK_ATTEMPTS")
    @classmethod
    def _validate_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @property
    def listen_host(self) -> str:
        return parse_listen_address(self.LISTEN)[0]

    @property
    def listen_port(self) -> int:
        return parse_listen_address(self.LISTEN)[1]

    @property
    def passive_ports(self) -> range:
        """Parse PASSIVE_MODE_PORTS into an inclusive port range."""
        return parse_port_range(self.PASSIVE_MODE_PORTS)

    @property
    def staging_dir(self) -> str | None:
        return self.STAGING_DIR or None
