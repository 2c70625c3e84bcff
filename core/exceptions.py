"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the bootstrap orchestrator.

- Provides clear exception hierarchy
- Identifies the failed phase for the operator
- Maps every failure kind to a distinct process exit code
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
BootstrapException (base)
├── ConfigurationError
│   ├── MissingConfigError
│   ├── InvalidConfigError
│   └── SchemaSourceUnresolvable
├── EngineError
│   ├── InitializationFailed
│   ├── TransientStartFailed
│   └── TransientStopFailed
├── SQLExecutionFailed
├── StateTransitionError
├── CleanupError
└── BootstrapInterrupted

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .constants import (
    EXIT_CONFIGURATION_ERROR,
    EXIT_FAILURE,
    EXIT_INITIALIZATION_FAILED,
    EXIT_INTERRUPTED,
    EXIT_SCHEMA_UNRESOLVABLE,
    EXIT_SQL_FAILED,
    EXIT_TRANSIENT_START_FAILED,
    EXIT_TRANSIENT_STOP_FAILED,
)


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the bootstrap cannot continue."""

    CRITICAL = "critical"
    """The data directory may need manual inspection."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Reported, but does not change the outcome of the run."""

    TRANSIENT = "transient"
    """Re-running the bootstrap may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Requires operator intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class BootstrapException(Exception):
    """
    Base exception for all bootstrap errors.

    All exceptions carry:
    - severity: how loudly to report
    - context: for debugging
    - exit_code: process exit status for the CLI
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.HIGH
    default_classification: ErrorClassification = ErrorClassification.NON_RECOVERABLE
    exit_code: int = EXIT_FAILURE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    @property
    def is_recoverable(self) -> bool:
        """Check if error is recoverable."""
        return self.classification in (
            ErrorClassification.RECOVERABLE,
            ErrorClassification.TRANSIENT,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "exit_code": self.exit_code,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def to_log_format(self) -> str:
        """Format exception for structured logging."""
        ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
        line = f"[{self.severity.value.upper()}] {type(self).__name__}: {self.message}"
        if ctx_str:
            line += f" | {ctx_str}"
        return line


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(BootstrapException):
    """Error in configuration."""

    exit_code = EXIT_CONFIGURATION_ERROR

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, key: str, source: str = "config"):
        super().__init__(
            message=f"Missing required configuration: {key}",
            config_key=key,
            context={"source": source},
        )


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


class SchemaSourceUnresolvable(ConfigurationError):
    """Configured schema path is neither a file nor a directory."""

    exit_code = EXIT_SCHEMA_UNRESOLVABLE

    def __init__(self, path: Any, database: Optional[str] = None):
        context = {"path": str(path)}
        if database:
            context["database"] = database
        super().__init__(
            message=f"Could not determine how to apply schema with {path}",
            context=context,
        )
        self.path = path
        self.database = database


# ============================================================
# ENGINE ERRORS
# ============================================================

class EngineError(BootstrapException):
    """Base class for failures of the engine binaries (initdb, pg_ctl)."""

    def __init__(
        self,
        message: str,
        command: Optional[str] = None,
        returncode: Optional[int] = None,
        stderr: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if command:
            context["command"] = command
        if returncode is not None:
            context["returncode"] = returncode
        if stderr:
            context["stderr"] = stderr.strip()[-500:]

        super().__init__(message, context=context, **kwargs)


class InitializationFailed(EngineError):
    """initdb failed; the data directory must not be used."""

    default_severity = Severity.CRITICAL
    exit_code = EXIT_INITIALIZATION_FAILED


class TransientStartFailed(EngineError):
    """The socket-only transient server did not become ready."""

    exit_code = EXIT_TRANSIENT_START_FAILED


class TransientStopFailed(EngineError):
    """The transient server could not be stopped, even in immediate mode."""

    default_severity = Severity.CRITICAL
    exit_code = EXIT_TRANSIENT_STOP_FAILED


# ============================================================
# SQL ERRORS
# ============================================================

class SQLExecutionFailed(BootstrapException):
    """An administrative, schema or script statement batch failed."""

    exit_code = EXIT_SQL_FAILED

    def __init__(
        self,
        message: str,
        database: Optional[str] = None,
        source: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if database:
            context["database"] = database
        if source:
            context["source"] = source

        super().__init__(message, context=context, **kwargs)
        self.database = database
        self.source = source


# ============================================================
# LIFECYCLE ERRORS
# ============================================================

class StateTransitionError(BootstrapException):
    """Invalid bootstrap state transition."""

    def __init__(
        self,
        message: str,
        from_state: Optional[str] = None,
        to_state: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if from_state:
            context["from_state"] = from_state
        if to_state:
            context["to_state"] = to_state

        super().__init__(message, context=context, **kwargs)


class CleanupError(BootstrapException):
    """
    Removing a transient resource failed.

    Reported on its own only when nothing else went wrong; never
    raised over the error that caused the cleanup.
    """

    default_severity = Severity.MEDIUM
    default_classification = ErrorClassification.RECOVERABLE
    exit_code = EXIT_FAILURE

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        context = kwargs.pop("context", {})
        if path:
            context["path"] = path
        super().__init__(message, context=context, **kwargs)


class BootstrapInterrupted(BootstrapException):
    """A termination signal arrived while the bootstrap was running."""

    default_classification = ErrorClassification.TRANSIENT
    exit_code = EXIT_INTERRUPTED

    def __init__(self, signal_name: str):
        super().__init__(
            message=f"Bootstrap interrupted by {signal_name}",
            context={"signal": signal_name},
        )
        self.signal_name = signal_name


# ============================================================
# EXCEPTION UTILITIES
# ============================================================

def wrap_exception(
    exc: BaseException,
    wrapper_class: type = BootstrapException,
    message: Optional[str] = None,
    **kwargs,
) -> BootstrapException:
    """Wrap a standard exception in a BootstrapException."""
    msg = message or f"{type(exc).__name__}: {exc}"
    return wrapper_class(message=msg, cause=exc, **kwargs)


__all__ = [
    "Severity",
    "ErrorClassification",
    "BootstrapException",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "SchemaSourceUnresolvable",
    "EngineError",
    "InitializationFailed",
    "TransientStartFailed",
    "TransientStopFailed",
    "SQLExecutionFailed",
    "StateTransitionError",
    "CleanupError",
    "BootstrapInterrupted",
    "wrap_exception",
]
