"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

Centralized configuration for the server and its pipeline.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │  1. Defaults in the dataclass      ServerConfig()                   │
    │  2. Environment variables          ServerConfig.from_env()          │
    │  3. CLI arguments                  python -m requestpipe --port 9000│
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
ENVIRONMENT
=============================================================================

``environment`` selects how the error-handling stages are composed:

    development   diagnostics page outside, abort trap inside it
    production    abort trap outermost, generic 500 handler inside it

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


ENVIRONMENTS = ("development", "production")
LOG_FORMATS = ("text", "json")


@dataclass
class ServerConfig:
    """
    Configuration for the HTTP server.

    Development:
        ServerConfig(environment="development", log_level="DEBUG")

    Production:
        ServerConfig(host="0.0.0.0", port=80, max_workers=32)
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    port: int = 8080
    backlog: int = 128

    buffer_size: int = 8192
    """Receive buffer size in bytes."""

    timeout: Optional[float] = 30.0
    """Socket timeout in seconds. None blocks forever."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 10 * 1024 * 1024  # 10 MB

    response_buffer_size: int = 64 * 1024
    """
    Body bytes buffered before a response starts streaming.
    Until then an abort can still replace the whole response.
    """

    # ─────────────────────────────────────────────────────────────────────
    # WORKERS
    # ─────────────────────────────────────────────────────────────────────

    max_workers: int = 16
    """Worker threads; each request runs start to finish on one of them."""

    # ─────────────────────────────────────────────────────────────────────
    # PIPELINE
    # ─────────────────────────────────────────────────────────────────────

    environment: str = "production"

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    log_format: str = "text"

    server_name: str = "requestpipe/1.0"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @classmethod
    def from_env(cls) -> "ServerConfig":
        """
        Create configuration from environment variables.

            HTTP_HOST         Server host (default: 127.0.0.1)
            HTTP_PORT         Server port (default: 8080)
            HTTP_WORKERS      Worker threads (default: 16)
            HTTP_TIMEOUT      Socket timeout in seconds (default: 30)
            HTTP_ENVIRONMENT  development | production (default: production)
            HTTP_LOG_LEVEL    Logging level (default: INFO)
            HTTP_LOG_FORMAT   text | json (default: text)
        """
        return cls(
            host=os.getenv("HTTP_HOST", "127.0.0.1"),
            port=int(os.getenv("HTTP_PORT", "8080")),
            max_workers=int(os.getenv("HTTP_WORKERS", "16")),
            timeout=float(os.getenv("HTTP_TIMEOUT", "30")),
            environment=os.getenv("HTTP_ENVIRONMENT", "production").lower(),
            log_level=os.getenv("HTTP_LOG_LEVEL", "INFO"),
            log_format=os.getenv("HTTP_LOG_FORMAT", "text").lower(),
        )

    def validate(self) -> None:
        """Validate at startup, not at first use."""
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.response_buffer_size < 0:
            raise ValueError("response_buffer_size must be >= 0")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.environment not in ENVIRONMENTS:
            raise ValueError(
                f"Invalid environment: {self.environment}. "
                f"Must be one of {', '.join(ENVIRONMENTS)}."
            )

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"Invalid log_format: {self.log_format}")
