"""Session configuration using Pydantic Settings."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_FETCH_SIZE = 10000
DEFAULT_PORT = 6667


class SessionConfig(BaseSettings):
    """Connection settings for one Session.

    Values not passed explicitly are read from ``TESSERADB_*`` environment
    variables (``TESSERADB_HOST``, ``TESSERADB_FETCH_SIZE``, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="TESSERADB_",
        extra="ignore",
        frozen=True,
    )

    host: str = "127.0.0.1"
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)

    # Auth
    username: Optional[str] = "root"
    password: Optional[str] = "root"

    # Result sets
    fetch_size: int = Field(default=DEFAULT_FETCH_SIZE, gt=0)

    # Timeouts (seconds); no request timeout by default
    connect_timeout: float = Field(default=10.0, gt=0)
    request_timeout: Optional[float] = Field(default=None, gt=0)

    @classmethod
    def from_address(cls, address: str, **kwargs) -> "SessionConfig":
        """Build a config from ``"host:port"``."""
        host, port_str = address.rsplit(":", 1)
        return cls(host=host, port=int(port_str), **kwargs)

    @property
    def endpoint(self) -> tuple:
        return (self.host, self.port)
