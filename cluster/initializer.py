"""
Cluster - Initializer.

Decides whether the data directory already holds a cluster and,
if not, runs initdb.
"""

import logging
from pathlib import Path
from typing import List, Mapping, Optional

from core.exceptions import StateTransitionError
from core.state_manager import BootstrapState

from .config import InstanceConfig
from .paths import InitArgument
from .server_control import ServerControl


logger = logging.getLogger(__name__)


class Initializer:
    """First-run detection and initdb invocation."""

    def __init__(
        self,
        config: InstanceConfig,
        control: ServerControl,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self._config = config
        self._control = control
        self._environ = environ

    def data_directory(self) -> Path:
        """Resolved data directory, read from the environment now."""
        return self._config.data_directory.resolve(self._environ)

    def detect_state(self) -> BootstrapState:
        """Existence of the data directory is the only first-run signal."""
        data_dir = self.data_directory()
        if data_dir.exists():
            logger.info(
                f"PostgreSQL database directory {data_dir} appears to contain a database; "
                f"Skipping initialization"
            )
            return BootstrapState.ALREADY_INITIALIZED
        return BootstrapState.UNINITIALIZED

    def initdb_arguments(self) -> List[InitArgument]:
        """Extra args, then -U <superuser>, then -D <data dir argument>."""
        args: List[InitArgument] = list(self._config.initdb_args)
        if self._config.superuser is not None:
            args += ["-U", self._config.superuser]
        args += ["-D", self._config.data_directory.init_argument()]
        return args

    def initialize(self, state: BootstrapState) -> BootstrapState:
        """
        Run initdb for an uninitialized data directory.

        Raises:
            InitializationFailed: initdb returned non-zero; never retried
            StateTransitionError: called for a directory that was not
                detected as uninitialized
        """
        if state is not BootstrapState.UNINITIALIZED:
            raise StateTransitionError(
                "initdb may only run against an uninitialized data directory",
                from_state=state.value,
                to_state=BootstrapState.FRESHLY_INITIALIZED.value,
            )

        self._control.initdb(self.initdb_arguments())
        logger.info("PostgreSQL initdb process complete.")
        return BootstrapState.FRESHLY_INITIALIZED
