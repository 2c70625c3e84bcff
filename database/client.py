"""
Database - SQL Client.

============================================================
RESPONSIBILITY
============================================================
The SQL channel used during bootstrap.

- Administrative queries against the "postgres" database
- Per-database channels for schema batches
- Verbatim submission of statement batches
- Every failure surfaces as SQLExecutionFailed

============================================================
"""

import logging
from pathlib import Path
from typing import Callable, Dict, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.constants import DEFAULT_ADMIN_DATABASE
from core.exceptions import SQLExecutionFailed

from .engine import connection_scope, create_socket_engine, verify_connection


logger = logging.getLogger(__name__)

EngineFactory = Callable[..., Engine]

DATABASE_EXISTS_SQL = "SELECT 1 FROM pg_database WHERE datname = :name"


def quote_identifier(name: str) -> str:
    """Double-quote an identifier, doubling embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


class SqlClient:
    """
    Submits SQL to the transient server.

    Engines are created lazily per database and disposed by
    close(); use the client as a context manager. Entering it
    checks that the administrative database is reachable.
    """

    def __init__(
        self,
        socket_dir: Path,
        port: int,
        username: Optional[str] = None,
        admin_database: str = DEFAULT_ADMIN_DATABASE,
        engine_factory: EngineFactory = create_socket_engine,
    ):
        self._socket_dir = socket_dir
        self._port = port
        self._username = username
        self._engine_factory = engine_factory
        self._engines: Dict[str, Engine] = {}
        self.admin_database = admin_database

    def __enter__(self) -> "SqlClient":
        try:
            verify_connection(self.engine_for(self.admin_database), self.admin_database)
        except SQLExecutionFailed:
            self.close()
            raise
        logger.debug(f"Connected to {self.admin_database} via {self._socket_dir}")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def engine_for(self, database: str) -> Engine:
        engine = self._engines.get(database)
        if engine is None:
            engine = self._engine_factory(
                socket_dir=self._socket_dir,
                port=self._port,
                database=database,
                username=self._username,
            )
            self._engines[database] = engine
        return engine

    def close(self) -> None:
        """Dispose every engine; no connection outlives the client."""
        for engine in self._engines.values():
            engine.dispose()
        self._engines.clear()

    # --------------------------------------------------------
    # Operations
    # --------------------------------------------------------

    def execute(self, database: str, sql: str, source: str) -> None:
        """
        Submit ``sql`` verbatim as one batch.

        ``source`` names the batch (file, hook) in errors.
        """
        try:
            with connection_scope(self.engine_for(database)) as conn:
                conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
        except SQLAlchemyError as e:
            raise SQLExecutionFailed(
                f"SQL from {source} failed on database {database}: {getattr(e, 'orig', e)}",
                database=database,
                source=source,
                cause=e,
            ) from e

    def database_exists(self, name: str) -> bool:
        """Exact-name lookup in the pg_database catalog."""
        try:
            with connection_scope(self.engine_for(self.admin_database)) as conn:
                row = conn.execute(text(DATABASE_EXISTS_SQL), {"name": name}).first()
        except SQLAlchemyError as e:
            raise SQLExecutionFailed(
                f"Checking presence of database {name} failed: {getattr(e, 'orig', e)}",
                database=self.admin_database,
                source="pg_database lookup",
                cause=e,
            ) from e
        return row is not None

    def create_database(self, name: str) -> None:
        self.execute(
            self.admin_database,
            f"CREATE DATABASE {quote_identifier(name)};",
            source=f"create database {name}",
        )
