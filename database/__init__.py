"""
Database Package Initialization.

SQL access to the transient server: socket-only SQLAlchemy
engines and the client used for catalog lookups, database
creation and statement batches. Every failure raises
SQLExecutionFailed; nothing is retried.
"""

from .client import SqlClient, quote_identifier
from .engine import build_socket_url, connection_scope, create_socket_engine, verify_connection

__all__ = [
    "SqlClient",
    "quote_identifier",
    "build_socket_url",
    "connection_scope",
    "create_socket_engine",
    "verify_connection",
]
