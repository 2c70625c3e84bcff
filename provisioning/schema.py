"""
Provisioning - Schema Sources.

A schema source is a path that, when applied, is either:
- a single SQL file, submitted as one batch
- a directory whose *.sql files are submitted one batch per
  file, in ascending lexicographic order of their names

Blank (whitespace-only) lines are removed before submission.
"""

import logging
from pathlib import Path
from typing import List, Optional

from core.exceptions import BootstrapException, SchemaSourceUnresolvable, wrap_exception

from cluster.config import Schema


logger = logging.getLogger(__name__)

SQL_FILE_PATTERN = "*.sql"


def strip_blank_lines(sql: str) -> str:
    """Drop lines that are empty or whitespace-only."""
    return "\n".join(line for line in sql.splitlines() if line.strip())


def resolve_schema_files(schema: Schema, database: Optional[str] = None) -> List[Path]:
    """
    Files to apply for ``schema``, in application order.

    Raises:
        SchemaSourceUnresolvable: path is neither a file nor a directory
    """
    path = Path(schema.path)
    if path.is_file():
        return [path]
    if path.is_dir():
        # Sorted by name only: 010 after 002 needs zero padding
        return sorted(
            (p for p in path.glob(SQL_FILE_PATTERN) if p.is_file()),
            key=lambda p: p.name,
        )
    raise SchemaSourceUnresolvable(path, database=database)


def read_batch(path: Path) -> str:
    """Read a schema file and strip its blank lines."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise wrap_exception(
            e,
            BootstrapException,
            message=f"Cannot read schema file {path}: {e}",
        ) from e
    return strip_blank_lines(content)
