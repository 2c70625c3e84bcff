"""
Core Module - State Manager.

============================================================
RESPONSIBILITY
============================================================
Tracks the bootstrap state of one data directory for the
duration of one run.

- Holds the state as an explicit value, not a global flag
- Validates transitions
- Keeps the transition history for the run summary

The state is never persisted: it is recomputed every run from
the existence of the data directory.

============================================================
STATE MACHINE
============================================================
  UNINITIALIZED  --initdb-->  FRESHLY_INITIALIZED
  ALREADY_INITIALIZED         (terminal, nothing to do)

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set
import logging

from .exceptions import StateTransitionError


# ============================================================
# BOOTSTRAP STATE
# ============================================================

class BootstrapState(Enum):
    """Bootstrap state of a data directory."""

    UNINITIALIZED = "uninitialized"
    """Data directory does not exist yet."""

    FRESHLY_INITIALIZED = "freshly_initialized"
    """initdb ran in this process; the transient phase must run."""

    ALREADY_INITIALIZED = "already_initialized"
    """Data directory existed before this run; skip bootstrap."""

    @property
    def needs_bootstrap(self) -> bool:
        """Check if the transient-server phase runs in this state."""
        return self == BootstrapState.FRESHLY_INITIALIZED


VALID_TRANSITIONS: Dict[BootstrapState, Set[BootstrapState]] = {
    BootstrapState.UNINITIALIZED: {BootstrapState.FRESHLY_INITIALIZED},
    BootstrapState.FRESHLY_INITIALIZED: set(),
    BootstrapState.ALREADY_INITIALIZED: set(),
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    from_state: BootstrapState
    to_state: BootstrapState
    reason: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "reason": self.reason,
            "timestamp": self.timestamp.isoformat(),
        }


# ============================================================
# STATE MANAGER
# ============================================================

class StateManager:
    """In-memory holder of the bootstrap state of one run."""

    def __init__(self, initial_state: BootstrapState):
        self._state = initial_state
        self._history: List[StateTransition] = []
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> BootstrapState:
        """Get current bootstrap state."""
        return self._state

    @property
    def history(self) -> List[StateTransition]:
        return list(self._history)

    def can_transition_to(self, target_state: BootstrapState) -> bool:
        """Check if transition to target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self._state, set())

    def transition_to(
        self,
        target_state: BootstrapState,
        reason: str,
    ) -> StateTransition:
        """
        Transition to a new state.

        Raises:
            StateTransitionError: If transition is invalid
        """
        if not self.can_transition_to(target_state):
            raise StateTransitionError(
                message=f"Invalid state transition: {self._state.value} -> {target_state.value}",
                from_state=self._state.value,
                to_state=target_state.value,
            )

        transition = StateTransition(
            from_state=self._state,
            to_state=target_state,
            reason=reason,
        )
        self._state = target_state
        self._history.append(transition)

        self._logger.info(
            f"State transition: {transition.from_state.value} -> {target_state.value} "
            f"| reason={reason}"
        )
        return transition


__all__ = [
    "BootstrapState",
    "StateTransition",
    "StateManager",
    "VALID_TRANSITIONS",
]
