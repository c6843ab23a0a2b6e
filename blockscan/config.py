"""
Configuration for the block scanner.

Values come from the environment (a .env file is loaded first);
command line flags override them in __main__.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from .client import MAINNET_API_URL, SourceConfig
from .errors import ConfigError

DB_BACKENDS = ("sqlite", "postgres")


@dataclass
class StorageConfig:
    """Persistence sink settings."""
    backend: str = "sqlite"
    db_path: str = "data/blocks.db"

    # PostgreSQL
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "dice"
    db_user: str = "postgres"
    db_password: str = ""

    @property
    def connect_params(self) -> Dict[str, Any]:
        """psycopg2.connect keyword arguments; no DSN quoting involved."""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "database": self.db_name,
            "user": self.db_user,
            "password": self.db_password,
        }


@dataclass
class ScanConfig:
    """Scan loop settings."""
    checkpoint_path: Optional[str] = None  # None = no checkpoint file
    record_master_blocks: bool = True
    max_iterations: Optional[int] = None  # None = run until stopped


@dataclass
class AppConfig:
    source: SourceConfig = field(default_factory=SourceConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {value!r}")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(env_file: Optional[str] = None) -> AppConfig:
    """
    Build the application config from environment variables.

    Args:
        env_file: Optional .env path; defaults to python-dotenv discovery

    Raises:
        ConfigError: on malformed values or an unknown DB backend
    """
    load_dotenv(env_file)

    urls = os.getenv("BLOCKSCAN_API_URLS", MAINNET_API_URL)
    source = SourceConfig(
        api_urls=[u.strip() for u in urls.split(",") if u.strip()],
        api_key=os.getenv("BLOCKSCAN_API_KEY") or None,
        request_timeout=_env_float("BLOCKSCAN_REQUEST_TIMEOUT", 10.0),
        poll_interval=_env_float("BLOCKSCAN_POLL_INTERVAL", 1.0),
        max_retries=_env_int("BLOCKSCAN_MAX_RETRIES", 3),
        retry_backoff=_env_float("BLOCKSCAN_RETRY_BACKOFF", 0.5),
    )
    if source.max_retries < 0:
        raise ConfigError(f"BLOCKSCAN_MAX_RETRIES must be >= 0, got {source.max_retries}")
    if not source.api_urls:
        raise ConfigError("BLOCKSCAN_API_URLS is empty")

    storage = StorageConfig(
        backend=os.getenv("DB_BACKEND", "sqlite").strip().lower(),
        db_path=os.getenv("DB_PATH", "data/blocks.db"),
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=_env_int("DB_PORT", 5432),
        db_name=os.getenv("DB_NAME", "dice"),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", ""),
    )
    if storage.backend not in DB_BACKENDS:
        raise ConfigError(f"DB_BACKEND must be one of {DB_BACKENDS}, got {storage.backend!r}")

    checkpoint = os.getenv("BLOCKSCAN_CHECKPOINT_PATH", "data/frontier.json")
    scan = ScanConfig(
        checkpoint_path=checkpoint or None,
        record_master_blocks=_env_bool("BLOCKSCAN_RECORD_MASTER", True),
    )

    return AppConfig(source=source, storage=storage, scan=scan)
