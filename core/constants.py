"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Provides single source of truth for magic values
- Documents the meaning of each constant
- No business logic here

============================================================
"""

# ============================================================
# SYSTEM CONSTANTS
# ============================================================

SYSTEM_NAME = "pg-bootstrap"
SYSTEM_VERSION = "0.1.0"

# ============================================================
# ENGINE CONSTANTS
# ============================================================

DEFAULT_PORT = 5432
DEFAULT_ADMIN_DATABASE = "postgres"

CONFIG_FILE_NAME = "postgresql.conf"
"""Written into the data directory, replacing the one initdb created."""

TRANSIENT_SOCKET_PREFIX = "pg-init-"
"""Prefix of the private socket directory used by the transient server."""

DEFAULT_START_TIMEOUT_SECONDS = 60
DEFAULT_STOP_TIMEOUT_SECONDS = 60

SHUTDOWN_MODES = ("fast", "immediate")
"""pg_ctl stop modes tried in order when stopping the transient server."""

MAX_IDENTIFIER_BYTES = 63
"""NAMEDATALEN - 1 in a stock build."""

MAX_SOCKET_PATH_BYTES = 107
"""sun_path limit, including the .s.PGSQL.<port> file name."""

ENV_PREFIX = "PGBOOT_"

# ============================================================
# EXIT CODES
# ============================================================

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_INITIALIZATION_FAILED = 3
EXIT_TRANSIENT_START_FAILED = 4
EXIT_TRANSIENT_STOP_FAILED = 5
EXIT_SCHEMA_UNRESOLVABLE = 6
EXIT_SQL_FAILED = 7
EXIT_INTERRUPTED = 130
