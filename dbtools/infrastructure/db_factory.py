"""
Database connection handling for dbtools.

The core only needs two capabilities from a connection: ``query(sql)``
returning a cursor and ``quote(value)`` returning a SQL literal. ``Database``
provides them on top of a psycopg connection.

``ConnectionProvider`` is the process-wide cache of ``Database`` handles keyed
by a logical handler name ("default", "replica", ...). It is configured once
with ``set_config`` and can be reset at any time (e.g. when a connection is
suspected to have timed out). Opening a connection retries transient failures
using tenacity; queries themselves are never retried.

Usage:
    provider = get_provider()
    provider.set_config({"default": {"dsn": "postgresql://user:pw@host/{database}"}})
    db = provider.get("default", database="shop")
    rows = db.query("SELECT 1 AS one").fetchall()
"""

from __future__ import annotations

import atexit
import threading
from contextlib import contextmanager
from typing import Any, Dict, Generator, Mapping, Optional

import psycopg
from psycopg import Connection, sql
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from dbtools.config import get_settings
from dbtools.errors import ArgumentError
from dbtools.utils.logging import get_logger

log = get_logger(__name__)

DEFAULT_HANDLER = "default"

_HANDLER_DEFAULTS: Dict[str, Any] = {
    "dsn": "",
    "autocommit": True,
    "connect_timeout": None,
    "pool_min_size": 1,
    "pool_max_size": 10,
}


def build_dsn() -> str:
    """Compose a DSN string from settings."""
    settings = get_settings()
    return (
        f"postgresql://{settings.db_user}:{settings.db_password}"
        f"@{settings.db_host}:{settings.db_port}/{settings.db_name}"
    )


def _literal_text(value: Any) -> str:
    """Render a value the way it is compared in SQL text (None/False -> '', True -> '1')."""
    if value is None or value is False:
        return ""
    if value is True:
        return "1"
    return str(value)


class Statement:
    """
    A SQL statement bound to a connection, executed on demand.

    Satisfies the statement side of ``Pager.query_for_total``.
    """

    def __init__(self, connection: Connection, query: str) -> None:
        self._connection = connection
        self.text = query
        self._cursor: Optional[psycopg.Cursor] = None

    def execute(self) -> "Statement":
        self._cursor = self._connection.execute(self.text)
        return self

    def fetchone(self) -> Any:
        if self._cursor is None:
            raise ArgumentError("Statement has not been executed")
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        if self._cursor is None:
            raise ArgumentError("Statement has not been executed")
        return self._cursor.fetchall()


class Database:
    """
    Connection capability consumed by the orchestrator.

    Rows are returned as dictionaries (psycopg ``dict_row``).
    """

    def __init__(self, connection: Connection, handler: str = DEFAULT_HANDLER) -> None:
        self._connection = connection
        self.handler = handler

    @property
    def connection(self) -> Connection:
        return self._connection

    def query(self, query: str) -> psycopg.Cursor:
        log.debug("query", extra={"handler": self.handler, "sql": query})
        return self._connection.execute(query)

    def prepare(self, query: str) -> Statement:
        return Statement(self._connection, query)

    def quote(self, value: Any) -> str:
        """Quote ``value`` as a string literal, escaped by the driver."""
        return sql.Literal(_literal_text(value)).as_string(self._connection)

    def close(self) -> None:
        self._connection.close()

    @property
    def closed(self) -> bool:
        return bool(self._connection.closed)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type((psycopg.OperationalError, psycopg.InterfaceError)),
    reraise=True,
)
def connect(dsn: str, autocommit: bool = True, connect_timeout: Optional[int] = None) -> Connection:
    """
    Open a psycopg connection with dict rows, retrying transient failures.

    Retries up to 3 times with exponential backoff.

    Raises
    ------
    psycopg.OperationalError
        If connection fails after all retry attempts.
    """
    kwargs: Dict[str, Any] = {"autocommit": autocommit, "row_factory": dict_row}
    if connect_timeout:
        kwargs["connect_timeout"] = connect_timeout
    return psycopg.connect(dsn, **kwargs)


class ConnectionProvider:
    """
    Cache of ``Database`` handles keyed by handler name.

    Handlers not configured explicitly fall back to the settings DSN for the
    "default" handler only.
    """

    def __init__(self, config: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._lock = threading.RLock()
        self._config: Dict[str, Dict[str, Any]] = {}
        self._handlers: Dict[str, Database] = {}
        self._pools: Dict[str, ConnectionPool] = {}
        if config is not None:
            self.set_config(config)

    def set_config(self, config: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Replace the handler configuration and drop every open handle.

        Raises
        ------
        ArgumentError
            If no "default" handler is configured.
        """
        if DEFAULT_HANDLER not in config:
            raise ArgumentError('"default" database handler configuration is missing')

        with self._lock:
            self.reset()
            self._config = {}
            for handler, values in config.items():
                merged = dict(_HANDLER_DEFAULTS)
                merged.update(values)
                self._config[handler] = merged

    def get_config(self, handler: Optional[str] = None) -> Any:
        if not handler:
            return self._config

        if handler not in self._config:
            if handler == DEFAULT_HANDLER:
                settings = get_settings()
                merged = dict(_HANDLER_DEFAULTS)
                merged.update(dsn=build_dsn(), connect_timeout=settings.db_connect_timeout)
                return merged
            raise ArgumentError(
                f"Configuration for handler {handler} not found - has the config been initialized?"
            )
        return self._config[handler]

    def _dsn(self, handler: str, database: str = "") -> str:
        dsn = self.get_config(handler)["dsn"]
        return dsn.replace("{database}", database) if "{database}" in dsn else dsn

    def get(self, handler: str = DEFAULT_HANDLER, database: str = "") -> Database:
        """Return the cached handle for ``handler``, opening it on first use."""
        with self._lock:
            db = self._handlers.get(handler)
            if db is None or db.closed:
                config = self.get_config(handler)
                log.info("Opening database handler", extra={"handler": handler})
                db = Database(
                    connect(
                        self._dsn(handler, database),
                        autocommit=config["autocommit"],
                        connect_timeout=config["connect_timeout"],
                    ),
                    handler=handler,
                )
                self._handlers[handler] = db
            return db

    @contextmanager
    def pooled(self, handler: str = DEFAULT_HANDLER) -> Generator[Database, None, None]:
        """
        Borrow a connection from the pool of ``handler`` for one unit of work.

        Example
        -------
            with get_provider().pooled() as db:
                items = get_list(ItemEntity(), {"id": [1, 2]}, connection=db)
        """
        with self._lock:
            pool = self._pools.get(handler)
            if pool is None:
                config = self.get_config(handler)
                pool = ConnectionPool(
                    conninfo=self._dsn(handler),
                    min_size=config["pool_min_size"],
                    max_size=config["pool_max_size"],
                    kwargs={"autocommit": config["autocommit"], "row_factory": dict_row},
                    open=True,
                )
                self._pools[handler] = pool
        with pool.connection() as conn:
            yield Database(conn, handler=handler)

    def reset(self) -> None:
        """
        Close and forget every handle and pool.

        The next ``get`` reopens connections from the configuration.
        """
        with self._lock:
            for handler, db in self._handlers.items():
                try:
                    db.close()
                except psycopg.Error:
                    log.warning("Failed to close handler", extra={"handler": handler}, exc_info=True)
            self._handlers = {}
            for handler, pool in self._pools.items():
                try:
                    pool.close()
                except psycopg.Error:
                    log.warning("Failed to close pool", extra={"handler": handler}, exc_info=True)
            self._pools = {}


_provider: Optional[ConnectionProvider] = None
_provider_lock = threading.Lock()


def get_provider() -> ConnectionProvider:
    """Process-wide provider, created on first use and reset on exit."""
    global _provider
    with _provider_lock:
        if _provider is None:
            _provider = ConnectionProvider()
            atexit.register(_provider.reset)
        return _provider


def get_connection(handler: str = DEFAULT_HANDLER, database: str = "") -> Database:
    """Shortcut for ``get_provider().get(handler, database)``."""
    return get_provider().get(handler, database)


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
