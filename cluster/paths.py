"""
Cluster - Path Resolution.

============================================================
RESPONSIBILITY
============================================================
Resolves the data directory and socket directory.

A directory is configured either as a literal path or as an
environment-variable indirection. The two are resolved at
different moments:

- init-time argument: passed to initdb. An indirection stays
  a reference and is expanded against the child process
  environment when the command is built.
- runtime path: used for filesystem work (mkdir, mkdtemp).
  A literal path is canonicalised; an indirection is expanded
  against the environment current at execution time.

Nothing here reads the environment eagerly, so a supervisor
that fills the environment after configuration is loaded is
still honoured.

============================================================
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Mapping, Optional, Union

from core.exceptions import InvalidConfigError, MissingConfigError


_ENV_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# ============================================================
# ENVIRONMENT REFERENCE
# ============================================================

@dataclass(frozen=True)
class EnvReference:
    """
    A directory whose location comes from the environment.

    ``expression`` is either a bare variable name (``PGDATA_DIR``)
    or a shell-style expression (``$XDG_RUNTIME_DIR/postgres``).
    """

    expression: str

    def __post_init__(self) -> None:
        if not self.expression or not (
            _ENV_NAME.match(self.expression) or "$" in self.expression
        ):
            raise InvalidConfigError(
                "env", self.expression,
                "expected a variable name or a $VAR expression",
            )

    @property
    def is_bare_name(self) -> bool:
        return bool(_ENV_NAME.match(self.expression))

    def resolve(self, environ: Optional[Mapping[str, str]] = None) -> Path:
        """Expand the reference against ``environ`` (default: os.environ)."""
        env = os.environ if environ is None else environ

        if self.is_bare_name:
            value = env.get(self.expression)
            if not value:
                raise MissingConfigError(self.expression, source="environment")
            return Path(value)

        try:
            return Path(Template(self.expression).substitute(env))
        except KeyError as e:
            raise MissingConfigError(e.args[0], source="environment") from e
        except ValueError as e:
            raise InvalidConfigError("env", self.expression, str(e)) from e

    def __str__(self) -> str:
        if self.is_bare_name:
            return f"${self.expression}"
        return self.expression


InitArgument = Union[str, EnvReference]
RuntimePath = Union[Path, EnvReference]


# ============================================================
# DIRECTORY SOURCE
# ============================================================

@dataclass(frozen=True)
class DirectorySource:
    """A (env-var-or-None, literal-path-or-None) pair for one directory."""

    env_var: Optional[str] = None
    path: Optional[str] = None

    def __post_init__(self) -> None:
        if self.env_var is None and self.path is None:
            raise MissingConfigError("directory")

    @property
    def is_indirect(self) -> bool:
        return self.env_var is not None

    def init_argument(self) -> InitArgument:
        """Value handed to initdb as its target directory."""
        if self.env_var is not None:
            return EnvReference(self.env_var)
        return str(self.path)

    def runtime_path(self) -> RuntimePath:
        """Placeholder for indirections, canonical absolute path otherwise."""
        if self.env_var is not None:
            return EnvReference(self.env_var)
        return canonicalize(self.path)

    def resolve(self, environ: Optional[Mapping[str, str]] = None) -> Path:
        """Concrete path at execution time."""
        return resolve_path(self.runtime_path(), environ)

    def describe(self) -> str:
        if self.env_var is not None:
            return str(EnvReference(self.env_var))
        return str(self.path)


# ============================================================
# HELPERS
# ============================================================

def canonicalize(path: Union[str, Path]) -> Path:
    """Absolute path with symlinks resolved (readlink -f)."""
    return Path(path).expanduser().resolve(strict=False)


def resolve_path(
    value: Union[InitArgument, RuntimePath],
    environ: Optional[Mapping[str, str]] = None,
) -> Path:
    """Turn an init argument or runtime path into a concrete path."""
    if isinstance(value, EnvReference):
        return canonicalize(value.resolve(environ))
    return Path(value)
