"""
Scripts - Bootstrap Database.

============================================================
RESPONSIBILITY
============================================================
Initializes a PostgreSQL data directory for first-time setup.

- Runs initdb when the data directory is missing
- Creates the initial databases
- Applies their schema files
- Leaves an existing cluster untouched

============================================================
USAGE
============================================================
python -m scripts.bootstrap_db --config instance.yaml

Options (see --help for all):
  --check            Print the detected state and exit
  --render-config    Print postgresql.conf and exit
  --refresh-config   Rewrite postgresql.conf on an existing cluster

============================================================
"""

import sys

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
