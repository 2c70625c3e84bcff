"""
Cluster - Transient Server.

============================================================
RESPONSIBILITY
============================================================
Runs a short-lived, socket-only instance of a freshly
initialized cluster so the initial SQL can be applied before
the instance is reachable over the network.

Sequence (strict, no concurrency):
1. Write postgresql.conf into the data directory
2. Ensure the socket directory exists
3. Create a private pg-init-XXXXXXXX socket directory
4. pg_ctl start with listen_addresses='' bound to that directory
5. (caller applies scripts and schemas)
6. pg_ctl stop, fast first, escalating to immediate
7. Remove the private socket directory

Steps 6 and 7 run on every exit path: normal return, any exception,
and signals converted to exceptions by the orchestrator. Signals
received during teardown are deferred until it completes.

============================================================
"""

import logging
import shlex
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional

from core.constants import (
    CONFIG_FILE_NAME,
    MAX_SOCKET_PATH_BYTES,
    SHUTDOWN_MODES,
    TRANSIENT_SOCKET_PREFIX,
)
from core.exceptions import (
    BootstrapException,
    CleanupError,
    TransientStopFailed,
    wrap_exception,
)
from core.interrupts import deferred_interrupts

from .config import InstanceConfig
from .paths import canonicalize
from .server_control import ServerControl
from .settings import render_config


logger = logging.getLogger(__name__)

SERVER_LOG_NAME = "server.log"


# ============================================================
# TRANSIENT SERVER
# ============================================================

@dataclass(frozen=True)
class TransientServer:
    """A running, socket-only engine instance."""

    data_dir: Path
    socket_dir: Path
    port: int

    @property
    def log_file(self) -> Path:
        return self.socket_dir / SERVER_LOG_NAME

    def environment(self) -> Dict[str, str]:
        """Variables exported to engine children (PGHOST is the socket dir)."""
        return {
            "PGDATA": str(self.data_dir),
            "PGPORT": str(self.port),
            "PGHOST": str(self.socket_dir),
        }


# ============================================================
# TEMPORARY SOCKET DIRECTORY
# ============================================================

def remove_directory(path: Path) -> Optional[CleanupError]:
    """
    Remove ``path`` recursively; a missing directory is not an error.

    Failures are logged and returned, never raised.
    """
    try:
        shutil.rmtree(path)
        logger.debug(f"Removed transient socket directory {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        error = CleanupError(
            f"Could not remove transient socket directory: {e}",
            path=str(path),
            cause=e,
        )
        logger.error(error.to_log_format())
        return error
    return None


@contextmanager
def transient_socket_directory(
    parent: Path,
    cleanup_errors: Optional[List[CleanupError]] = None,
) -> Iterator[Path]:
    """Unique pg-init-* directory under ``parent``, removed on exit."""
    path = Path(tempfile.mkdtemp(prefix=TRANSIENT_SOCKET_PREFIX, dir=str(parent)))
    logger.debug(f"Created transient socket directory {path}")
    try:
        yield path
    finally:
        with deferred_interrupts(raise_pending=False):
            error = remove_directory(path)
        if error is not None and cleanup_errors is not None:
            cleanup_errors.append(error)


# ============================================================
# MANAGER
# ============================================================

class TransientServerManager:
    """Owns the transient server and everything it acquires."""

    def __init__(
        self,
        config: InstanceConfig,
        control: ServerControl,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._config = config
        self._control = control
        self._environ = environ
        self.cleanup_errors: List[CleanupError] = []

    # --------------------------------------------------------
    # Preparation
    # --------------------------------------------------------

    def write_configuration(self, data_dir: Path) -> Path:
        """Write the merged, rendered settings to postgresql.conf."""
        path = data_dir / CONFIG_FILE_NAME
        logger.info(f"Setting up {CONFIG_FILE_NAME}")
        content = render_config(self._config.default_settings, self._config.settings)
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise wrap_exception(e, message=f"Cannot write {path}: {e}") from e
        return path

    def ensure_socket_directory(self) -> Path:
        """Create the socket directory if absent; returns its canonical path."""
        socket_dir = self._config.socket_directory.resolve(self._environ)
        if not socket_dir.is_dir():
            logger.info(f"Creating socket directory {socket_dir}")
        try:
            socket_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise wrap_exception(e, message=f"Cannot create socket directory {socket_dir}: {e}") from e
        return canonicalize(socket_dir)

    def prepare(self, data_dir: Path) -> Path:
        """Steps 1-2; also used to refresh an existing cluster's config."""
        self.write_configuration(data_dir)
        return self.ensure_socket_directory()

    def server_options(self, socket_dir: Path) -> List[str]:
        """Inline server options: private socket, no TCP listener, port."""
        return [
            f"-c unix_socket_directories={shlex.quote(str(socket_dir))}",
            "-c listen_addresses=''",
            f"-p {self._config.port}",
        ]

    # --------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------

    @contextmanager
    def running(
        self,
        data_dir: Path,
        socket_root: Optional[Path] = None,
    ) -> Iterator[TransientServer]:
        """
        Start the transient server for the duration of the block.

        ``socket_root`` is the result of an earlier prepare(); when
        omitted, preparation happens here.

        Raises:
            TransientStartFailed: server did not become ready
            TransientStopFailed: server could not be stopped after a
                successful block (a stop failure after a failed block
                is logged so the block's error propagates)
        """
        if socket_root is None:
            socket_root = self.prepare(data_dir)

        with transient_socket_directory(socket_root, self.cleanup_errors) as socket_dir:
            server = TransientServer(
                data_dir=data_dir,
                socket_dir=socket_dir,
                port=self._config.port,
            )
            self._warn_on_long_socket_path(server)
            self.start(server)

            try:
                yield server
            except BaseException:
                with deferred_interrupts(raise_pending=False):
                    self._stop_after_failure(server)
                raise

            with deferred_interrupts():
                self.stop(server)

    def start(self, server: TransientServer) -> None:
        logger.info("PostgreSQL is setting up the initial database.")
        try:
            self._control.start(
                server.data_dir,
                self.server_options(server.socket_dir),
                timeout=self._config.start_timeout,
                log_file=server.log_file,
                env=server.environment(),
            )
        except BaseException:
            # A timed-out or interrupted start can leave a postmaster behind
            with deferred_interrupts(raise_pending=False):
                self._stop_leftover(server)
            raise
        logger.info(f"Transient server ready on socket directory {server.socket_dir}")

    def stop(self, server: TransientServer, modes=SHUTDOWN_MODES) -> None:
        """Stop with escalation through ``modes``; raises if all fail."""
        last_error: Optional[TransientStopFailed] = None
        for mode in modes:
            try:
                self._control.stop(
                    server.data_dir,
                    mode,
                    timeout=self._config.stop_timeout,
                    env=server.environment(),
                )
                logger.info(f"Transient server stopped ({mode})")
                return
            except TransientStopFailed as e:
                last_error = e
                logger.warning(f"Stopping transient server in {mode} mode failed: {e.message}")

        raise last_error or TransientStopFailed("No shutdown mode configured")

    def _stop_leftover(self, server: TransientServer) -> None:
        try:
            running = self._control.is_running(server.data_dir, env=server.environment())
        except BootstrapException as e:
            logger.error(f"Cannot query transient server status: {e.to_log_format()}")
            running = True
        if running:
            logger.warning("Transient server still running after failed start; stopping")
            self._stop_after_failure(server, modes=("immediate",))

    def _stop_after_failure(self, server: TransientServer, modes=SHUTDOWN_MODES) -> None:
        try:
            self.stop(server, modes=modes)
        except BootstrapException as e:
            logger.error(f"Transient server could not be stopped: {e.to_log_format()}")

    def _warn_on_long_socket_path(self, server: TransientServer) -> None:
        socket_file = server.socket_dir / f".s.PGSQL.{server.port}"
        if len(str(socket_file).encode("utf-8")) > MAX_SOCKET_PATH_BYTES:
            logger.warning(
                f"Socket path {socket_file} exceeds {MAX_SOCKET_PATH_BYTES} bytes; "
                f"the server will likely fail to create it"
            )
