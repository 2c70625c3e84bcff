"""
Database - Engine.

============================================================
SOCKET-ONLY ENGINES
============================================================

The transient server listens on a private unix socket
directory only, so every engine built here connects through
that directory:

- one engine per target database
- no pooling (NullPool): connections close as soon as a
  batch is done, which lets pg_ctl stop without waiting
- AUTOCOMMIT isolation: CREATE DATABASE cannot run inside a
  transaction block, and each batch commits on its own

============================================================
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import NullPool

from core.exceptions import SQLExecutionFailed


logger = logging.getLogger(__name__)

DRIVER_NAME = "postgresql+psycopg2"


def build_socket_url(
    socket_dir: Path,
    port: int,
    database: str,
    username: Optional[str] = None,
) -> URL:
    """
    URL for a unix-socket connection.

    A username of None lets libpq use the invoking OS user, as
    psql does without -U.
    """
    return URL.create(
        DRIVER_NAME,
        username=username,
        port=port,
        database=database,
        query={"host": str(socket_dir)},
    )


def create_socket_engine(
    socket_dir: Path,
    port: int,
    database: str,
    username: Optional[str] = None,
    echo: bool = False,
) -> Engine:
    """
    Create an unpooled AUTOCOMMIT engine bound to ``socket_dir``.

    Args:
        socket_dir: Directory holding the server's .s.PGSQL.<port>
        port: Server port (part of the socket file name)
        database: Target database
        username: Role to connect as (OS user if None)
        echo: Log SQL statements
    """
    url = build_socket_url(socket_dir, port, database, username)
    logger.debug(f"Creating engine for database {database} via {socket_dir}")

    engine = create_engine(
        url,
        poolclass=NullPool,
        isolation_level="AUTOCOMMIT",
        echo=echo,
    )

    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        logger.debug(f"Connection established to database {database}")

    return engine


@contextmanager
def connection_scope(engine: Engine) -> Generator[Connection, None, None]:
    """
    Context manager for a single connection.

    Usage:
        with connection_scope(engine) as conn:
            conn.exec_driver_sql("SELECT 1")
    """
    conn = engine.connect()
    try:
        yield conn
    finally:
        conn.close()


def verify_connection(engine: Engine, database: str) -> None:
    """
    Verify the engine can reach its database.

    Raises:
        SQLExecutionFailed if the connection fails
    """
    try:
        with connection_scope(engine) as conn:
            conn.execute(text("SELECT 1")).scalar()
    except SQLAlchemyError as e:
        raise SQLExecutionFailed(
            f"Cannot connect to database {database}: {e}",
            database=database,
            source="connection check",
            cause=e,
        ) from e
