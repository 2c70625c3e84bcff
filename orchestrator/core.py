"""
Orchestrator - Core.

============================================================
RESPONSIBILITY
============================================================
Runs one bootstrap of one data directory.

- Detects whether the cluster already exists
- Runs initdb exactly once for a missing data directory
- Applies the initial SQL through a socket-only transient server
- Converts SIGTERM/SIGHUP/SIGINT into BootstrapInterrupted so
  every acquired resource is released on the way out
- Records timing and outcome of every stage

============================================================
ARCHITECTURAL POSITION
============================================================
- This orchestrator has NO SQL or process logic of its own
- It ONLY sequences the cluster and provisioning components
- Every failure propagates; nothing is retried

============================================================
"""

import json
import logging
import sys
import uuid
from contextlib import ExitStack, contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, Iterator, Mapping, Optional

from cluster.config import InstanceConfig
from cluster.initializer import Initializer
from cluster.server_control import ServerControl
from cluster.transient import TransientServer, TransientServerManager
from core.exceptions import BootstrapException
from core.interrupts import interruption_handlers
from core.state_manager import BootstrapState, StateManager
from database.client import SqlClient
from provisioning.provisioner import DatabaseProvisioner, SqlChannel
from provisioning.scripts import ScriptRunner

from .models import BootstrapResult, BootstrapStage, StageResult


logger = logging.getLogger(__name__)

ClientFactory = Callable[[TransientServer], ContextManager[SqlChannel]]


# ============================================================
# LOGGING SETUP
# ============================================================

def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    correlation_id: Optional[str] = None,
) -> logging.Logger:
    """
    Set up structured logging.

    Args:
        level: Log level
        log_format: Output format (json or text)
        correlation_id: Correlation ID for tracing

    Returns:
        Configured logger
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if log_format == "json":
        formatter = logging.Formatter(
            json.dumps({
                "timestamp": "%(asctime)s",
                "level": "%(levelname)s",
                "logger": "%(name)s",
                "message": "%(message)s",
                "correlation_id": correlation_id or "",
            })
        )
    else:
        formatter = logging.Formatter(
            f"%(asctime)s | %(levelname)-8s | %(name)s | {correlation_id or ''} | %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = [handler]

    return logging.getLogger("orchestrator")


def generate_run_id() -> str:
    """Generate a unique run ID."""
    return f"bootstrap_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


# ============================================================
# ORCHESTRATOR
# ============================================================

class BootstrapOrchestrator:
    """
    Bootstrap orchestrator.

    One instance performs one run; the transient phase runs only
    when the data directory did not exist at detection time.
    """

    def __init__(
        self,
        config: InstanceConfig,
        control: Optional[ServerControl] = None,
        client_factory: Optional[ClientFactory] = None,
        environ: Optional[Mapping[str, str]] = None,
        handle_signals: bool = True,
    ):
        """
        Initialize orchestrator.

        Args:
            config: Instance configuration
            control: Engine binary wrapper (built from config if None)
            client_factory: Builds the SQL client for a running server
            environ: Environment used for path indirection (os.environ if None)
            handle_signals: Convert termination signals into exceptions
        """
        self._config = config
        self._environ = environ
        self._control = control or ServerControl(bin_dir=config.bin_dir, environ=environ)
        self._client_factory = client_factory or self._default_client
        self._handle_signals = handle_signals

        self._initializer = Initializer(config, self._control, environ)
        self._manager = TransientServerManager(config, self._control, environ)
        self._provisioner = DatabaseProvisioner(config, environ)
        self._scripts = ScriptRunner(config.initial_script)

        self._result: Optional[BootstrapResult] = None

    @property
    def config(self) -> InstanceConfig:
        return self._config

    @property
    def last_result(self) -> Optional[BootstrapResult]:
        """Result of the latest run, also available after a failure."""
        return self._result

    def _default_client(self, server: TransientServer) -> SqlClient:
        return SqlClient(
            socket_dir=server.socket_dir,
            port=server.port,
            username=self._config.superuser,
            admin_database=self._config.admin_database,
        )

    # --------------------------------------------------------
    # Detection
    # --------------------------------------------------------

    def detect_state(self) -> BootstrapState:
        """Current state of the data directory, without side effects."""
        return self._initializer.detect_state()

    # --------------------------------------------------------
    # Run
    # --------------------------------------------------------

    def run(self) -> BootstrapResult:
        """
        Execute the bootstrap.

        Returns:
            BootstrapResult with all stage results

        Raises:
            BootstrapException: the first failure, after cleanup
        """
        result = BootstrapResult(run_id=generate_run_id(), started_at=datetime.now(timezone.utc))
        self._result = result

        logger.info(f"=== BOOTSTRAP START: {result.run_id} ===")

        try:
            with interruption_handlers(self._handle_signals):
                self._execute(result)
            result.success = True
        finally:
            result.completed_at = datetime.now(timezone.utc)
            result.cleanup_errors = [e.message for e in self._manager.cleanup_errors]

            if result.success:
                logger.info(
                    f"=== BOOTSTRAP COMPLETE: {result.run_id} | "
                    f"state={result.final_state.value} | "
                    f"duration={result.duration_seconds:.2f}s ==="
                )
            else:
                failed = result.failed_stage.stage_id if result.failed_stage else "unknown"
                logger.error(
                    f"=== BOOTSTRAP ABORTED: {result.run_id} | failed_stage={failed} ==="
                )
            for message in result.cleanup_errors:
                logger.warning(f"Cleanup incomplete: {message}")

        return result

    def _execute(self, result: BootstrapResult) -> None:
        with self._stage(result, BootstrapStage.RESOLVE_PATHS) as ctx:
            data_dir = self._initializer.data_directory()
            result.data_dir = data_dir
            ctx["data_dir"] = str(data_dir)

        with self._stage(result, BootstrapStage.DETECT_STATE) as ctx:
            state_manager = StateManager(self._initializer.detect_state())
            result.initial_state = result.final_state = state_manager.state
            ctx["state"] = state_manager.state.value
            ctx["planned_stages"] = [
                s.stage_id
                for s in BootstrapStage.get_stages_for_state(state_manager.state, self._config.refresh_config)
            ]

        if state_manager.state == BootstrapState.ALREADY_INITIALIZED:
            if self._config.refresh_config:
                with self._stage(result, BootstrapStage.WRITE_CONFIG):
                    self._manager.prepare(data_dir)
            return

        with self._stage(result, BootstrapStage.INIT_CLUSTER):
            state_manager.transition_to(
                self._initializer.initialize(state_manager.state),
                reason="initdb complete",
            )
            result.final_state = state_manager.state

        if state_manager.state.needs_bootstrap:
            self._bootstrap(result)

    def _bootstrap(self, result: BootstrapResult) -> None:
        """Transient phase for a freshly initialized cluster."""
        with ExitStack() as stack:
            with self._stage(result, BootstrapStage.WRITE_CONFIG) as ctx:
                # initdb created it; resolve again so symlinks are followed
                data_dir = self._initializer.data_directory()
                socket_root = self._manager.prepare(data_dir)
                ctx["socket_dir"] = str(socket_root)

            with self._stage(result, BootstrapStage.START_TRANSIENT) as ctx:
                server = stack.enter_context(self._manager.running(data_dir, socket_root))
                result.transient_socket_dir = server.socket_dir
                ctx["transient_socket_dir"] = str(server.socket_dir)
                client = stack.enter_context(self._client_factory(server))

            with self._stage(result, BootstrapStage.RUN_BEFORE_SCRIPT):
                self._scripts.run_before(client)

            with self._stage(result, BootstrapStage.PROVISION_DATABASES) as ctx:
                report = self._provisioner.provision(client)
                result.databases_created = list(report.created)
                result.databases_skipped = list(report.skipped)
                ctx.update(report.to_dict())

            with self._stage(result, BootstrapStage.RUN_AFTER_SCRIPT):
                self._scripts.run_after(client)

            with self._stage(result, BootstrapStage.STOP_TRANSIENT):
                stack.close()

    @contextmanager
    def _stage(self, result: BootstrapResult, stage: BootstrapStage) -> Iterator[Dict[str, Any]]:
        """Time one stage and record its outcome; errors propagate."""
        started_at = datetime.now(timezone.utc)
        context: Dict[str, Any] = {}

        logger.info(f"Stage [{stage.order:02d}] START: {stage.description}")

        try:
            yield context
        except BaseException as e:
            completed_at = datetime.now(timezone.utc)
            duration = (completed_at - started_at).total_seconds()
            message = e.message if isinstance(e, BootstrapException) else f"{type(e).__name__}: {e}"

            logger.error(f"Stage [{stage.order:02d}] FAILED: {stage.description} | {message}")

            result.add_stage_result(StageResult(
                stage=stage,
                success=False,
                started_at=started_at,
                completed_at=completed_at,
                duration_seconds=duration,
                error=message,
                error_type=type(e).__name__,
                context=context,
            ))
            raise

        completed_at = datetime.now(timezone.utc)
        duration = (completed_at - started_at).total_seconds()

        logger.info(
            f"Stage [{stage.order:02d}] COMPLETE: {stage.description} ({duration:.2f}s)"
        )

        result.add_stage_result(StageResult(
            stage=stage,
            success=True,
            started_at=started_at,
            completed_at=completed_at,
            duration_seconds=duration,
            context=context,
        ))


# ============================================================
# ORCHESTRATOR FACTORY
# ============================================================

def create_orchestrator(
    config: Optional[InstanceConfig] = None,
    config_path: Optional[Path] = None,
    **kwargs: Any,
) -> BootstrapOrchestrator:
    """
    Factory function to create an orchestrator.

    Args:
        config: Configuration (or load from config_path / environment)
        config_path: YAML configuration file

    Returns:
        Configured BootstrapOrchestrator instance
    """
    if config is None:
        config = InstanceConfig.from_yaml(config_path) if config_path else InstanceConfig.from_env()

    return BootstrapOrchestrator(config=config, **kwargs)


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "BootstrapOrchestrator",
    "create_orchestrator",
    "generate_run_id",
    "interruption_handlers",
    "setup_logging",
]
