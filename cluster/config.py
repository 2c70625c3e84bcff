"""
Cluster - Configuration.

============================================================
INSTANCE CONFIGURATION
============================================================

Everything one bootstrap run needs to know about the instance:
- where the data and socket directories live
- how initdb is called
- which settings go into postgresql.conf
- which databases, schemas and scripts are applied once

Configuration can be loaded from:
- A mapping (from_dict)
- YAML config file (from_yaml)
- Environment variables (from_env)

The object is frozen: it does not change during a run.

============================================================
"""

import logging
import os
import shlex
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from core.constants import (
    DEFAULT_ADMIN_DATABASE,
    DEFAULT_PORT,
    DEFAULT_START_TIMEOUT_SECONDS,
    DEFAULT_STOP_TIMEOUT_SECONDS,
    ENV_PREFIX,
    MAX_IDENTIFIER_BYTES,
)
from core.exceptions import ConfigurationError, InvalidConfigError, MissingConfigError

from .paths import DirectorySource
from .settings import SettingValue


logger = logging.getLogger(__name__)


# =============================================================
# SCHEMA SOURCES AND DATABASES
# =============================================================


@dataclass(frozen=True)
class Schema:
    """A single SQL file or a directory of *.sql files."""

    path: Path

    def __str__(self) -> str:
        return str(self.path)


@dataclass(frozen=True)
class InitialDatabase:
    """A database created on first bootstrap, with its schema sources."""

    name: str
    schemas: Tuple[Schema, ...] = ()

    def __post_init__(self) -> None:
        validate_identifier(self.name, key="initial_databases.name")


@dataclass(frozen=True)
class InitialScript:
    """SQL run against the administrative database around provisioning."""

    before: Optional[str] = None
    after: Optional[str] = None


def validate_identifier(name: Any, key: str = "name") -> str:
    """Check a database identifier; returns it unchanged."""
    if not isinstance(name, str) or not name:
        raise InvalidConfigError(key, name, "must be a non-empty string")
    if "\x00" in name:
        raise InvalidConfigError(key, name, "must not contain NUL")
    if len(name.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
        raise InvalidConfigError(key, name, f"longer than {MAX_IDENTIFIER_BYTES} bytes")
    return name


# =============================================================
# MAIN CONFIGURATION
# =============================================================


@dataclass(frozen=True)
class InstanceConfig:
    """
    Main configuration for one PostgreSQL instance.

    When both a literal directory and an environment indirection
    are given, the indirection wins.
    """
    # Directories
    data_dir: Optional[str] = None
    data_dir_env: Optional[str] = None
    socket_dir: Optional[str] = None
    socket_dir_env: Optional[str] = None

    # Engine
    port: int = DEFAULT_PORT
    superuser: Optional[str] = None
    initdb_args: Tuple[str, ...] = ()
    bin_dir: Optional[str] = None

    # postgresql.conf
    default_settings: Mapping[str, Any] = field(default_factory=dict)
    settings: Mapping[str, Any] = field(default_factory=dict)

    # Provisioning
    create_database: bool = False
    initial_databases: Tuple[InitialDatabase, ...] = ()
    initial_script: InitialScript = field(default_factory=InitialScript)
    admin_database: str = DEFAULT_ADMIN_DATABASE

    # Lifecycle
    start_timeout: int = DEFAULT_START_TIMEOUT_SECONDS
    stop_timeout: int = DEFAULT_STOP_TIMEOUT_SECONDS
    refresh_config: bool = False

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.data_dir is None and self.data_dir_env is None:
            raise MissingConfigError("data_dir")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise InvalidConfigError("port", self.port, "must be an integer in 1..65535")
        for key in ("start_timeout", "stop_timeout"):
            value = getattr(self, key)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidConfigError(key, value, "must be a positive integer (seconds)")
        if self.superuser is not None:
            validate_identifier(self.superuser, key="superuser")
        validate_identifier(self.admin_database, key="admin_database")

        seen = set()
        for database in self.initial_databases:
            if database.name in seen:
                raise InvalidConfigError(
                    "initial_databases", database.name, "duplicate database name",
                )
            seen.add(database.name)

        # Classify values now so a bad type fails before initdb runs
        for source in (self.default_settings, self.settings):
            for key, value in source.items():
                SettingValue.of(value, key)

    # ---------------------------------------------------------
    # Directories
    # ---------------------------------------------------------

    @property
    def data_directory(self) -> DirectorySource:
        return DirectorySource(env_var=self.data_dir_env, path=self.data_dir)

    @property
    def socket_directory(self) -> DirectorySource:
        """Socket directory; falls back to the data directory."""
        if self.socket_dir is None and self.socket_dir_env is None:
            return self.data_directory
        return DirectorySource(env_var=self.socket_dir_env, path=self.socket_dir)

    def with_overrides(self, **changes: Any) -> "InstanceConfig":
        """Copy with non-None ``changes`` applied."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            return self
        if "data_dir" in changes and "data_dir_env" not in changes:
            changes["data_dir_env"] = None
        if "socket_dir" in changes and "socket_dir_env" not in changes:
            changes["socket_dir_env"] = None
        return replace(self, **changes)

    # ---------------------------------------------------------
    # Loaders
    # ---------------------------------------------------------

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        base_dir: Optional[Path] = None,
    ) -> "InstanceConfig":
        """
        Build configuration from a plain mapping.

        Relative schema paths are resolved against ``base_dir``.
        """
        if not isinstance(data, Mapping):
            raise InvalidConfigError("config", data, "expected a mapping")

        known = {
            "data_dir", "data_dir_env", "socket_dir", "socket_dir_env",
            "port", "superuser", "initdb_args", "bin_dir",
            "default_settings", "settings", "create_database",
            "initial_databases", "initial_script", "admin_database",
            "start_timeout", "stop_timeout", "refresh_config",
        }
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfigError("config", unknown, "unknown keys")

        kwargs: Dict[str, Any] = {k: data[k] for k in known if data.get(k) is not None}

        for key in ("data_dir", "socket_dir", "bin_dir"):
            if key in kwargs:
                kwargs[key] = str(kwargs[key])

        if "initdb_args" in kwargs:
            args = kwargs["initdb_args"]
            kwargs["initdb_args"] = tuple(shlex.split(args) if isinstance(args, str) else map(str, args))

        for key in ("default_settings", "settings"):
            if key in kwargs and not isinstance(kwargs[key], Mapping):
                raise InvalidConfigError(key, kwargs[key], "expected a mapping")

        if "initial_databases" in kwargs:
            if not isinstance(kwargs["initial_databases"], (list, tuple)):
                raise InvalidConfigError(
                    "initial_databases", kwargs["initial_databases"], "expected a list of databases",
                )
            kwargs["initial_databases"] = tuple(
                _parse_database(entry, base_dir) for entry in kwargs["initial_databases"]
            )

        if "initial_script" in kwargs:
            script = kwargs["initial_script"]
            if not isinstance(script, Mapping):
                raise InvalidConfigError("initial_script", script, "expected before/after mapping")
            kwargs["initial_script"] = InitialScript(
                before=script.get("before"),
                after=script.get("after"),
            )

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Path) -> "InstanceConfig":
        """Load configuration from YAML file."""
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(
                f"Cannot read configuration file {path}", config_key="config", cause=e,
            ) from e
        except yaml.YAMLError as e:
            raise ConfigurationError(
                f"Invalid YAML in {path}", config_key="config", cause=e,
            ) from e

        logger.debug(f"Loaded configuration from {path}")
        return cls.from_dict(data, base_dir=path.parent)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "InstanceConfig":
        """
        Load configuration from environment variables.

        Environment variables:
        - PGBOOT_DATA_DIR / PGBOOT_DATA_DIR_ENV
        - PGBOOT_SOCKET_DIR / PGBOOT_SOCKET_DIR_ENV
        - PGBOOT_PORT
        - PGBOOT_SUPERUSER
        - PGBOOT_INITDB_ARGS
        - PGBOOT_BIN_DIR
        - PGBOOT_CREATE_DATABASE
        - PGBOOT_START_TIMEOUT / PGBOOT_STOP_TIMEOUT
        - PGBOOT_REFRESH_CONFIG
        """
        return cls.from_dict(env_overrides(environ))


def env_overrides(environ: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect PGBOOT_* variables into a config mapping."""
    env = os.environ if environ is None else environ
    data: Dict[str, Any] = {}

    for key in ("data_dir", "data_dir_env", "socket_dir", "socket_dir_env",
                "superuser", "initdb_args", "bin_dir"):
        value = env.get(ENV_PREFIX + key.upper())
        if value:
            data[key] = value

    for key in ("port", "start_timeout", "stop_timeout"):
        value = env.get(ENV_PREFIX + key.upper())
        if value:
            try:
                data[key] = int(value)
            except ValueError:
                raise InvalidConfigError(ENV_PREFIX + key.upper(), value, "must be an integer")

    for key in ("create_database", "refresh_config"):
        value = env.get(ENV_PREFIX + key.upper())
        if value:
            data[key] = _parse_bool(ENV_PREFIX + key.upper(), value)

    return data


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise InvalidConfigError(key, value, "expected a boolean")


def _parse_database(entry: Any, base_dir: Optional[Path]) -> InitialDatabase:
    if isinstance(entry, str):
        return InitialDatabase(name=entry)
    if not isinstance(entry, Mapping) or "name" not in entry:
        raise InvalidConfigError("initial_databases", entry, "each entry needs a name")

    raw_schemas = entry.get("schemas") or ()
    if isinstance(raw_schemas, (str, Path)):
        raw_schemas = (raw_schemas,)

    schemas = []
    for raw in raw_schemas:
        path = Path(raw).expanduser()
        if base_dir is not None and not path.is_absolute():
            path = base_dir / path
        schemas.append(Schema(path))

    return InitialDatabase(name=entry["name"], schemas=tuple(schemas))
