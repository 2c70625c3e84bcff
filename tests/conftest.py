"""
Shared fixtures.

The engine binaries and the SQL channel are replaced by
in-memory fakes; no PostgreSQL installation is needed.
"""

from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set, Tuple

import pytest

from cluster.config import InstanceConfig
from cluster.paths import EnvReference
from core.exceptions import SQLExecutionFailed, TransientStartFailed, TransientStopFailed


class FakeServerControl:
    """Records engine calls; initdb creates the data directory."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.environ = dict(environ or {})
        self.calls: List[Tuple] = []
        self.fail_start = False
        self.left_running_after_failed_start = False
        self.failing_stop_modes: Set[str] = set()
        self.interrupt_start: Optional[BaseException] = None
        self.on_stop: Optional[Callable[[str], None]] = None
        self.running = False

    def initdb(self, args: Sequence, env: Optional[Mapping[str, str]] = None) -> None:
        resolved = [
            str(a.resolve(self.environ)) if isinstance(a, EnvReference) else a
            for a in args
        ]
        self.calls.append(("initdb", resolved))
        data_dir = Path(resolved[resolved.index("-D") + 1])
        data_dir.mkdir(parents=True)
        (data_dir / "PG_VERSION").write_text("16\n")

    def start(self, data_dir, server_options, timeout, log_file, env=None) -> None:
        self.calls.append(("start", Path(data_dir), list(server_options), dict(env or {})))
        if self.fail_start:
            self.running = self.left_running_after_failed_start
            raise TransientStartFailed("pg_ctl start failed with exit code 1", returncode=1)
        self.running = True
        if self.interrupt_start is not None:
            raise self.interrupt_start

    def stop(self, data_dir, mode, timeout, env=None) -> None:
        self.calls.append(("stop", mode))
        if self.on_stop is not None:
            self.on_stop(mode)
        if mode in self.failing_stop_modes:
            raise TransientStopFailed(f"pg_ctl stop ({mode}) failed with exit code 1", returncode=1)
        self.running = False

    def is_running(self, data_dir, env=None) -> bool:
        self.calls.append(("status",))
        return self.running

    def names(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeSqlClient:
    """In-memory catalog of databases plus a log of submitted batches."""

    def __init__(self, existing: Optional[Set[str]] = None, admin_database: str = "postgres"):
        self.admin_database = admin_database
        self.databases: Set[str] = {"postgres", "template0", "template1"} | set(existing or ())
        self.executed: List[Tuple[str, str, str]] = []
        self.created: List[str] = []
        self.fail_sources: Set[str] = set()
        self.closed = False

    def __enter__(self) -> "FakeSqlClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    def database_exists(self, name: str) -> bool:
        return name in self.databases

    def create_database(self, name: str) -> None:
        self.created.append(name)
        self.databases.add(name)

    def execute(self, database: str, sql: str, source: str) -> None:
        if database not in self.databases:
            raise SQLExecutionFailed(f"database {database} does not exist", database=database, source=source)
        if source in self.fail_sources or Path(source).name in self.fail_sources:
            raise SQLExecutionFailed(f"SQL from {source} failed", database=database, source=source)
        self.executed.append((database, sql, source))

    def sources(self) -> List[str]:
        return [source for _, _, source in self.executed]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def control() -> FakeServerControl:
    return FakeServerControl()


@pytest.fixture
def sql_client() -> FakeSqlClient:
    return FakeSqlClient()


@pytest.fixture
def data_dir(tmp_path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def socket_dir(tmp_path) -> Path:
    return tmp_path / "run"


@pytest.fixture
def base_config(data_dir, socket_dir) -> InstanceConfig:
    """Literal directories, short timeouts, no provisioning."""
    return InstanceConfig(
        data_dir=str(data_dir),
        socket_dir=str(socket_dir),
        port=5433,
        start_timeout=5,
        stop_timeout=5,
    )


@pytest.fixture
def schema_dir(tmp_path) -> Path:
    """Three migrations, none ending in a statement separator."""
    path = tmp_path / "schema"
    path.mkdir()
    (path / "010-c.sql").write_text("CREATE INDEX c_idx ON a (id)\n")
    (path / "001-a.sql").write_text("CREATE TABLE a (id int)\n\n\n")
    (path / "002-b.sql").write_text("\nCREATE TABLE b (id int)\n   \n")
    (path / "notes.txt").write_text("not sql")
    return path
