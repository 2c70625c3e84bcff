"""
Provisioning - Database Provisioner.

============================================================
RESPONSIBILITY
============================================================
Creates the configured databases on a freshly initialized
cluster and applies their schema sources.

- Existence check by exact name before every CREATE DATABASE
- Present databases are skipped without touching their schemas
- Schema sources of an entry are resolved before it is created
- Any SQL failure aborts the remaining provisioning

With no databases configured, create_database=True creates a
database named after the invoking OS user.

============================================================
"""

import logging
import os
import pwd
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from cluster.config import InitialDatabase, InstanceConfig

from .schema import read_batch, resolve_schema_files


logger = logging.getLogger(__name__)


class SqlChannel(Protocol):
    """What the provisioner needs from the SQL client."""

    admin_database: str

    def database_exists(self, name: str) -> bool: ...

    def create_database(self, name: str) -> None: ...

    def execute(self, database: str, sql: str, source: str) -> None: ...


@dataclass
class ProvisioningReport:
    """Outcome of one provisioning pass."""

    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    applied_files: List[Tuple[str, Path]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created": list(self.created),
            "skipped": list(self.skipped),
            "applied_files": [
                {"database": database, "file": str(path)}
                for database, path in self.applied_files
            ],
        }


def default_database_name(environ: Optional[Mapping[str, str]] = None) -> str:
    """$USER, or the passwd name of the current uid."""
    env = os.environ if environ is None else environ
    return env.get("USER") or pwd.getpwuid(os.getuid()).pw_name


class DatabaseProvisioner:
    """Idempotent creation of the initial databases."""

    def __init__(
        self,
        config: InstanceConfig,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._config = config
        self._environ = environ

    def databases(self) -> Tuple[InitialDatabase, ...]:
        """Configured databases, or the default-database fallback."""
        if self._config.initial_databases:
            return self._config.initial_databases
        if self._config.create_database:
            return (InitialDatabase(name=default_database_name(self._environ)),)
        return ()

    def provision(self, client: SqlChannel) -> ProvisioningReport:
        report = ProvisioningReport()
        databases = self.databases()

        if not databases:
            logger.info("No initial databases configured; nothing to provision")
            return report

        for database in databases:
            self.provision_database(client, database, report)

        logger.info(
            f"Provisioning complete: {len(report.created)} created, "
            f"{len(report.skipped)} already present"
        )
        return report

    def provision_database(
        self,
        client: SqlChannel,
        database: InitialDatabase,
        report: ProvisioningReport,
    ) -> None:
        logger.info(f"Checking presence of database: {database.name}")
        if client.database_exists(database.name):
            logger.info(f"Database {database.name} already exists; skipping")
            report.skipped.append(database.name)
            return

        # Resolve every source first so a bad path leaves nothing created
        files: List[List[Path]] = [
            resolve_schema_files(schema, database=database.name)
            for schema in database.schemas
        ]

        logger.info(f"Creating database: {database.name}")
        client.create_database(database.name)
        report.created.append(database.name)

        for schema_files in files:
            for path in schema_files:
                logger.info(f"Applying sql file: {path}")
                client.execute(database.name, read_batch(path), source=str(path))
                report.applied_files.append((database.name, path))
