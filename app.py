#!/usr/bin/env python3
"""
PostgreSQL Bootstrap - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Run before the long-running server is started by its
supervisor. Returns 0 both when the cluster was bootstrapped
and when it already existed, so it can run on every start.

============================================================
USAGE
============================================================
Direct execution:
    python app.py --config instance.yaml

Container entrypoint:
    python app.py --config /etc/pg-bootstrap/instance.yaml && exec postgres

Environment-based configuration:
    PGBOOT_DATA_DIR_ENV=PGDATA PGBOOT_CREATE_DATABASE=true python app.py

============================================================
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.absolute()
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from orchestrator.cli import main


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
