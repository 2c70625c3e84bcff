"""
Provisioning Package.

Everything that runs against the transient server once a
cluster has been freshly initialized:
- provisioner: idempotent database creation and schema application
- schema: schema source resolution and batch reading
- scripts: before/after SQL hooks
"""

from .provisioner import DatabaseProvisioner, ProvisioningReport, SqlChannel, default_database_name
from .schema import read_batch, resolve_schema_files, strip_blank_lines
from .scripts import ScriptRunner

__all__ = [
    "DatabaseProvisioner",
    "ProvisioningReport",
    "SqlChannel",
    "default_database_name",
    "read_batch",
    "resolve_schema_files",
    "strip_blank_lines",
    "ScriptRunner",
]
