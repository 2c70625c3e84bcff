"""
Orchestrator - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the bootstrap orchestrator.

- Bootstrap stages with strict ordering
- Per-stage results with timing
- The run summary returned to the CLI

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.state_manager import BootstrapState


# ============================================================
# BOOTSTRAP STAGES
# ============================================================

class BootstrapStage(Enum):
    """
    Bootstrap stages in strict order.

    Stages 3 and 5-9 only run for a data directory that did not
    exist when the run began. Failure short-circuits downstream.
    """

    # Detection (1-2)
    RESOLVE_PATHS = (1, "resolve_paths", "Resolve data and socket directories")
    DETECT_STATE = (2, "detect_state", "Detect whether the cluster is initialized")

    # Initialization (3-4)
    INIT_CLUSTER = (3, "init_cluster", "Run initdb on the data directory")
    WRITE_CONFIG = (4, "write_config", "Write postgresql.conf and ensure socket directory")

    # Transient server (5-9)
    START_TRANSIENT = (5, "start_transient", "Start socket-only transient server")
    RUN_BEFORE_SCRIPT = (6, "run_before_script", "Run initial before script")
    PROVISION_DATABASES = (7, "provision_databases", "Create initial databases and apply schemas")
    RUN_AFTER_SCRIPT = (8, "run_after_script", "Run initial after script")
    STOP_TRANSIENT = (9, "stop_transient", "Stop transient server and remove its socket directory")

    def __init__(self, order: int, stage_id: str, description: str):
        self._order = order
        self._stage_id = stage_id
        self._description = description

    @property
    def order(self) -> int:
        """Get execution order."""
        return self._order

    @property
    def stage_id(self) -> str:
        """Get stage identifier."""
        return self._stage_id

    @property
    def description(self) -> str:
        """Get stage description."""
        return self._description

    @classmethod
    def get_ordered_stages(cls) -> List["BootstrapStage"]:
        """Get all stages in execution order."""
        return sorted(cls, key=lambda s: s.order)

    @classmethod
    def get_stages_for_state(cls, state: BootstrapState, refresh_config: bool = False) -> List["BootstrapStage"]:
        """Stages that run once detection has produced ``state``."""
        detection = [cls.RESOLVE_PATHS, cls.DETECT_STATE]

        if state == BootstrapState.ALREADY_INITIALIZED:
            return detection + ([cls.WRITE_CONFIG] if refresh_config else [])

        return cls.get_ordered_stages()


# ============================================================
# STAGE RESULT
# ============================================================

@dataclass
class StageResult:
    """Result of executing a stage."""

    stage: BootstrapStage
    success: bool
    started_at: datetime
    completed_at: datetime
    duration_seconds: float
    error: Optional[str] = None
    error_type: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> timedelta:
        """Get duration as timedelta."""
        return timedelta(seconds=self.duration_seconds)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "stage": self.stage.stage_id,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "error": self.error,
            "error_type": self.error_type,
            "context": self.context,
        }


# ============================================================
# RUN RESULT
# ============================================================

@dataclass
class BootstrapResult:
    """Result of one bootstrap run."""

    run_id: str
    started_at: datetime
    initial_state: Optional[BootstrapState] = None
    final_state: Optional[BootstrapState] = None
    data_dir: Optional[Path] = None
    transient_socket_dir: Optional[Path] = None
    completed_at: Optional[datetime] = None
    success: bool = False
    databases_created: List[str] = field(default_factory=list)
    databases_skipped: List[str] = field(default_factory=list)
    stage_results: List[StageResult] = field(default_factory=list)
    cleanup_errors: List[str] = field(default_factory=list)
    failed_stage: Optional[BootstrapStage] = None
    error: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        if self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return 0.0

    @property
    def stages_completed(self) -> int:
        """Get number of completed stages."""
        return len([r for r in self.stage_results if r.success])

    @property
    def bootstrapped(self) -> bool:
        """True when this run initialized the cluster."""
        return self.final_state == BootstrapState.FRESHLY_INITIALIZED

    def add_stage_result(self, result: StageResult) -> None:
        """Add a stage result."""
        self.stage_results.append(result)
        if not result.success:
            self.failed_stage = result.stage
            self.error = result.error

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "run_id": self.run_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "initial_state": self.initial_state.value if self.initial_state else None,
            "final_state": self.final_state.value if self.final_state else None,
            "data_dir": str(self.data_dir) if self.data_dir else None,
            "transient_socket_dir": str(self.transient_socket_dir) if self.transient_socket_dir else None,
            "success": self.success,
            "duration_seconds": self.duration_seconds,
            "stages_completed": self.stages_completed,
            "databases_created": list(self.databases_created),
            "databases_skipped": list(self.databases_skipped),
            "cleanup_errors": list(self.cleanup_errors),
            "failed_stage": self.failed_stage.stage_id if self.failed_stage else None,
            "error": self.error,
            "stage_results": [r.to_dict() for r in self.stage_results],
        }
