"""
=============================================================================
SERVER CONFIGURATION
=============================================================================

All knobs of the file server in one dataclass.

    ┌─────────────────────────────────────────────────────────────────────┐
    │   Priority (highest first)                                          │
    │                                                                      │
    │   1. Command-line arguments     dirserver 9000 -d /srv               │
    │   2. Environment variables      DIRSERVER_PORT=9000 dirserver        │
    │   3. Defaults below                                                  │
    └─────────────────────────────────────────────────────────────────────┘

validate() runs before anything is bound or rendered, so a bad port or a
missing directory stops the process at startup with a clear message.

=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Optional

from .rendering import DEFAULT_TEMPLATE_DIR


LOG_FORMATS = ("text", "json")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


@dataclass
class ServerConfig:
    """
    Configuration for the directory server.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK      host, port, backlog, buffer_size, timeout
    HTTP         keep_alive, keep_alive_timeout, max_request_size
    THREADING    min_workers, max_workers
    CONTENT      root_dir, template_dir
    LOGGING      log_level, log_format

    =========================================================================
    """

    # Network
    host: str = "0.0.0.0"
    """Address to bind. "0.0.0.0" listens on every IPv4 interface."""

    port: int = 8000
    """TCP port. 0 lets the OS pick a free one."""

    backlog: int = 128
    buffer_size: int = 8192

    timeout: Optional[float] = 30.0
    """Seconds to wait for the first request on a connection."""

    # HTTP
    keep_alive: bool = True
    keep_alive_timeout: float = 5.0
    max_request_size: int = 1024 * 1024

    # Threading
    min_workers: int = 4
    max_workers: int = 16

    # Content
    root_dir: str = field(default_factory=os.getcwd)
    """Directory exposed over HTTP. Stored as an absolute path."""

    template_dir: str = str(DEFAULT_TEMPLATE_DIR)
    """Directory holding listing.html and error.html."""

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"

    server_name: str = "dirserver/1.0"

    def __post_init__(self):
        self.root_dir = os.path.abspath(os.fspath(self.root_dir))
        self.template_dir = os.path.abspath(os.fspath(self.template_dir))

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Build a configuration from DIRSERVER_* environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        DIRSERVER_HOST       Bind address (default: 0.0.0.0)
        DIRSERVER_PORT       Port (default: 8000)
        DIRSERVER_ROOT       Served directory (default: current directory)
        DIRSERVER_TEMPLATES  Template directory (default: bundled templates)
        DIRSERVER_WORKERS    Max worker threads (default: 16)
        DIRSERVER_TIMEOUT    Request timeout in seconds (default: 30)
        DIRSERVER_LOG_LEVEL  Logging level (default: INFO)

        =====================================================================

        Keyword arguments that are not None win over the environment,
        which is how the CLI layers its flags on top.

        Raises:
            ValueError: If a numeric variable does not parse.
        """
        values = {
            "host": os.getenv("DIRSERVER_HOST", "0.0.0.0"),
            "port": _env_int("DIRSERVER_PORT", 8000),
            "root_dir": os.getenv("DIRSERVER_ROOT") or os.getcwd(),
            "template_dir": os.getenv("DIRSERVER_TEMPLATES") or str(DEFAULT_TEMPLATE_DIR),
            "max_workers": _env_int("DIRSERVER_WORKERS", 16),
            "timeout": _env_float("DIRSERVER_TIMEOUT", 30.0),
            "log_level": os.getenv("DIRSERVER_LOG_LEVEL", "INFO"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})

        config = cls(**values)
        config.min_workers = min(config.min_workers, config.max_workers)
        return config

    def validate(self) -> None:
        """
        Check every value, raising ValueError on the first bad one.

        Nothing here touches the network; the directories are checked for
        existence only.
        """
        if not 0 <= self.port <= 65535:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if not os.path.isdir(self.root_dir):
            raise ValueError(f"Root directory does not exist: {self.root_dir}")

        if not os.path.isdir(self.template_dir):
            raise ValueError(f"Template directory does not exist: {self.template_dir}")

        if self.min_workers < 1:
            raise ValueError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ValueError("max_workers must be >= min_workers")

        if self.buffer_size < 1024:
            raise ValueError("buffer_size must be >= 1024")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be > 0")

        if self.log_format not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {', '.join(LOG_FORMATS)}")
