#!/usr/bin/env python3
"""
Configuration for the root document scanner.

Database credentials come from the environment (optionally a .env file),
scan tuning comes from the command line.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv
from psycopg.conninfo import make_conninfo

logger = logging.getLogger(__name__)

DEFAULT_DB_PORT = 5432
DEFAULT_TIMEOUT = 2.0
DEFAULT_POLL_INTERVAL = 1.0
USER_AGENT = "root-scanner/1.0"


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""


def default_worker_count() -> int:
    """Two workers per CPU minus one, never fewer than one."""
    cpus = os.cpu_count() or 1
    return max(1, cpus * 2 - 1)


@dataclass
class DatabaseConfig:
    """Connection settings for the PostgreSQL result store."""

    name: str
    user: str
    password: str
    host: str
    port: int = DEFAULT_DB_PORT

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "DatabaseConfig":
        if load_env_file:
            load_dotenv()

        values = {}
        for attr, var in (("name", "DB_NAME"), ("user", "DB_USER"),
                          ("password", "DB_PASS"), ("host", "DB_HOST")):
            value = os.getenv(var)
            if value is None:
                raise ConfigError(f"Please include a {var} var in your .env file.")
            values[attr] = value

        return cls(port=_parse_port(os.getenv("DB_PORT")), **values)

    def conninfo(self) -> str:
        return make_conninfo(
            dbname=self.name,
            user=self.user,
            password=self.password,
            host=self.host,
            port=str(self.port),
        )


def _parse_port(raw: Optional[str]) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_DB_PORT
    try:
        port = int(raw)
    except ValueError:
        logger.warning(f"Invalid DB_PORT {raw!r}, falling back to {DEFAULT_DB_PORT}")
        return DEFAULT_DB_PORT
    if not 0 < port < 65536:
        logger.warning(f"DB_PORT {port} out of range, falling back to {DEFAULT_DB_PORT}")
        return DEFAULT_DB_PORT
    return port


@dataclass
class ScanSettings:
    """Tuning knobs for a scan run."""

    workers: int = field(default_factory=default_worker_count)
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = USER_AGENT
    poll_interval: float = DEFAULT_POLL_INTERVAL

    def __post_init__(self):
        if self.workers < 1:
            raise ConfigError(f"Worker count must be at least 1 (got {self.workers})")
