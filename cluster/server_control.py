"""
Cluster - Engine Control.

============================================================
RESPONSIBILITY
============================================================
Thin wrapper around the engine binaries.

- initdb: create a cluster
- pg_ctl start: blocks until the server accepts connections
- pg_ctl stop: blocks until shutdown is confirmed
- pg_ctl status: is a postmaster running for a data directory

Every call is synchronous with a bounded wait. Failures are
raised as the EngineError subclass passed by the caller, so
the orchestrator can tell init, start and stop failures apart.

============================================================
"""

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Type

from core.exceptions import (
    EngineError,
    InitializationFailed,
    TransientStartFailed,
    TransientStopFailed,
)

from .paths import EnvReference, InitArgument


logger = logging.getLogger(__name__)

# Extra seconds granted to the subprocess on top of pg_ctl's own -t timeout
SUBPROCESS_GRACE_SECONDS = 15


class ServerControl:
    """Runs initdb and pg_ctl as child processes."""

    def __init__(
        self,
        bin_dir: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            bin_dir: Directory holding initdb/pg_ctl (PATH lookup if None)
            environ: Base environment for children (os.environ if None)
        """
        self._bin_dir = Path(bin_dir) if bin_dir else None
        self._environ = environ

    # --------------------------------------------------------
    # Helpers
    # --------------------------------------------------------

    def binary(self, name: str) -> str:
        """Full path of an engine binary."""
        if self._bin_dir is not None:
            return str(self._bin_dir / name)
        return shutil.which(name) or name

    def child_environment(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        """Environment handed to a child, read at call time."""
        env = dict(os.environ if self._environ is None else self._environ)
        if extra:
            env.update(extra)
        return env

    def _run(
        self,
        argv: List[str],
        env: Dict[str, str],
        timeout: Optional[float],
        error_class: Type[EngineError],
        what: str,
    ) -> subprocess.CompletedProcess:
        command = " ".join(shlex.quote(a) for a in argv)
        logger.debug(f"Running: {command}")

        try:
            result = subprocess.run(
                argv,
                env=env,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise error_class(
                f"{what} did not finish within {timeout}s",
                command=command,
                cause=e,
            ) from e
        except OSError as e:
            raise error_class(
                f"{what} could not be executed: {e}",
                command=command,
                cause=e,
            ) from e

        if result.stdout:
            logger.debug(result.stdout.rstrip())

        if result.returncode != 0:
            if result.stderr:
                logger.warning(result.stderr.rstrip())
            raise error_class(
                f"{what} failed with exit code {result.returncode}",
                command=command,
                returncode=result.returncode,
                stderr=result.stderr,
            )

        return result

    # --------------------------------------------------------
    # Engine operations
    # --------------------------------------------------------

    def initdb(
        self,
        args: Sequence[InitArgument],
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        Run initdb.

        EnvReference arguments are expanded against the child
        environment here, at call time.
        """
        child_env = self.child_environment(env)
        argv = [self.binary("initdb")]
        for arg in args:
            if isinstance(arg, EnvReference):
                argv.append(str(arg.resolve(child_env)))
            else:
                argv.append(str(arg))

        self._run(argv, child_env, None, InitializationFailed, "initdb")

    def start(
        self,
        data_dir: Path,
        server_options: Sequence[str],
        timeout: int,
        log_file: Path,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """
        pg_ctl start -w; returns once the server is ready.

        The server log goes to log_file. Without -l the postmaster
        inherits our pipes and run() would never return.
        """
        argv = [
            self.binary("pg_ctl"),
            "-D", str(data_dir),
            "-w",
            "-t", str(timeout),
            "-l", str(log_file),
            "start",
            "-o", " ".join(server_options),
        ]

        try:
            self._run(
                argv,
                self.child_environment(env),
                timeout + SUBPROCESS_GRACE_SECONDS,
                TransientStartFailed,
                "pg_ctl start",
            )
        except TransientStartFailed as e:
            tail = read_log_tail(log_file)
            if tail:
                e.context["server_log"] = tail
            raise

    def stop(
        self,
        data_dir: Path,
        mode: str,
        timeout: int,
        env: Optional[Mapping[str, str]] = None,
    ) -> None:
        """pg_ctl stop -w in the given shutdown mode."""
        argv = [
            self.binary("pg_ctl"),
            "-D", str(data_dir),
            "-m", mode,
            "-w",
            "-t", str(timeout),
            "stop",
        ]
        self._run(
            argv,
            self.child_environment(env),
            timeout + SUBPROCESS_GRACE_SECONDS,
            TransientStopFailed,
            f"pg_ctl stop ({mode})",
        )

    def is_running(self, data_dir: Path, env: Optional[Mapping[str, str]] = None) -> bool:
        """pg_ctl status: 0 running, 3 not running, 4 no data directory."""
        argv = [self.binary("pg_ctl"), "-D", str(data_dir), "status"]
        try:
            result = subprocess.run(
                argv,
                env=self.child_environment(env),
                capture_output=True,
                text=True,
                timeout=SUBPROCESS_GRACE_SECONDS,
            )
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning(f"pg_ctl status failed: {e}")
            return False
        return result.returncode == 0


def read_log_tail(path: Path, lines: int = 20) -> str:
    """Last lines of a server log, empty if unreadable."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return "".join(f.readlines()[-lines:]).strip()
    except OSError:
        return ""
