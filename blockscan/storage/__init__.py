"""
Block record persistence.

- SqliteBlockSink: local SQLite file
- PostgresBlockSink: PostgreSQL via psycopg2
"""

from ..errors import ConfigError
from .base import BlockSink
from .sqlite_store import SqliteBlockSink
from .writer import PostgresBlockSink


def open_sink(config) -> BlockSink:
    """Create the sink selected by a StorageConfig."""
    if config.backend == "sqlite":
        return SqliteBlockSink(config.db_path)
    if config.backend == "postgres":
        return PostgresBlockSink(**config.connect_params)
    raise ConfigError(f"Unknown DB backend: {config.backend}")


__all__ = [
    "BlockSink",
    "SqliteBlockSink",
    "PostgresBlockSink",
    "open_sink",
]
