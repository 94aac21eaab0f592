"""
Infrastructure package for dbtools.

Centralizes database connectivity (psycopg connections, pools and the
handler cache). Keep this layer focused on I/O and resource management,
decoupled from the query compiler and the orchestrator.
"""

from dbtools.infrastructure.db_factory import (
    DEFAULT_HANDLER,
    ConnectionProvider,
    Database,
    Statement,
    build_dsn,
    connect,
    get_connection,
    get_provider,
)

__all__ = [
    "DEFAULT_HANDLER",
    "ConnectionProvider",
    "Database",
    "Statement",
    "build_dsn",
    "connect",
    "get_connection",
    "get_provider",
]
