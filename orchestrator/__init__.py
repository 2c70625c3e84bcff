"""
Orchestrator Package - Bootstrap Coordination Layer.

============================================================
PACKAGE OVERVIEW
============================================================
This package sequences one bootstrap run of a PostgreSQL data
directory. It is the SINGLE ENTRYPOINT that decides whether
the cluster must be initialized and drives the transient
server through the provisioning steps.

============================================================
CORE PRINCIPLES
============================================================
1. The orchestrator has NO SQL or process logic
2. initdb runs at most once per data directory
3. The transient server never outlives the run
4. Every failure propagates with its own exit code

============================================================
BOOTSTRAP STAGES (9 in strict order)
============================================================
 1. RESOLVE_PATHS        - Resolve data and socket directories
 2. DETECT_STATE         - Detect whether the cluster exists
 3. INIT_CLUSTER         - Run initdb
 4. WRITE_CONFIG         - Write postgresql.conf
 5. START_TRANSIENT      - Start socket-only server
 6. RUN_BEFORE_SCRIPT    - Initial before script
 7. PROVISION_DATABASES  - Create databases, apply schemas
 8. RUN_AFTER_SCRIPT     - Initial after script
 9. STOP_TRANSIENT       - Stop server, remove socket directory

An already initialized cluster stops after stage 2 (or runs
stage 4 alone with refresh_config).

============================================================
USAGE
============================================================
    from orchestrator import BootstrapOrchestrator
    from cluster import InstanceConfig

    config = InstanceConfig.from_yaml("instance.yaml")
    result = BootstrapOrchestrator(config).run()

============================================================
"""

from .models import BootstrapResult, BootstrapStage, StageResult
from .core import BootstrapOrchestrator, create_orchestrator, interruption_handlers, setup_logging
from .cli import main

__all__ = [
    # Models
    "BootstrapStage",
    "StageResult",
    "BootstrapResult",
    # Core
    "BootstrapOrchestrator",
    "create_orchestrator",
    "interruption_handlers",
    "setup_logging",
    # CLI
    "main",
]
