"""
Core Module Package.

This package contains the infrastructure pieces every other
package depends on.

Components:
- exceptions: Custom exception hierarchy with exit codes
- constants: System-wide constants
- interrupts: Termination signals as exceptions, deferred during teardown
"""

from .constants import SYSTEM_NAME, SYSTEM_VERSION
from .exceptions import (
    BootstrapException,
    BootstrapInterrupted,
    CleanupError,
    ConfigurationError,
    EngineError,
    InitializationFailed,
    InvalidConfigError,
    MissingConfigError,
    SchemaSourceUnresolvable,
    SQLExecutionFailed,
    StateTransitionError,
    TransientStartFailed,
    TransientStopFailed,
)
