"""
Core Module - Lifecycle State Manager.

============================================================
RESPONSIBILITY
============================================================
Owns the lifecycle state of the router node.

- Tracks the node state (uninitialized ... stopped, failed)
- Enforces the transition table
- Keeps a bounded transition history
- Notifies listeners on every transition

============================================================
STATE MACHINE
============================================================
UNINITIALIZED -> INITIALIZED -> RUNNING -> SHUTTING_DOWN -> STOPPED

FAILED is reachable from every non-terminal state. A failed
node can still be torn down (FAILED -> SHUTTING_DOWN).
STOPPED is terminal.

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set
import asyncio
import logging

from .exceptions import StateTransitionError


# ============================================================
# LIFECYCLE STATE
# ============================================================

class LifecycleState(Enum):
    """Lifecycle state enumeration."""

    UNINITIALIZED = "uninitialized"
    """Nothing constructed yet."""

    INITIALIZED = "initialized"
    """Ledger client and routing engine constructed and bound."""

    RUNNING = "running"
    """Ledger client and routing engine started."""

    SHUTTING_DOWN = "shutting_down"
    """Teardown in progress."""

    STOPPED = "stopped"
    """Teardown complete."""

    FAILED = "failed"
    """Construction or start failed."""

    @property
    def accepts_traffic(self) -> bool:
        """Check if exchanges may be attached in this state."""
        return self == LifecycleState.RUNNING

    @property
    def is_terminal(self) -> bool:
        """Check if no further transition is possible."""
        return self == LifecycleState.STOPPED


# ============================================================
# STATE TRANSITIONS
# ============================================================

VALID_TRANSITIONS: Dict[LifecycleState, Set[LifecycleState]] = {
    LifecycleState.UNINITIALIZED: {
        LifecycleState.INITIALIZED,
        LifecycleState.FAILED,
    },
    LifecycleState.INITIALIZED: {
        LifecycleState.RUNNING,
        LifecycleState.SHUTTING_DOWN,
        LifecycleState.FAILED,
    },
    LifecycleState.RUNNING: {
        LifecycleState.SHUTTING_DOWN,
        LifecycleState.FAILED,
    },
    LifecycleState.SHUTTING_DOWN: {
        LifecycleState.STOPPED,
        LifecycleState.FAILED,
    },
    LifecycleState.FAILED: {
        LifecycleState.SHUTTING_DOWN,
    },
    LifecycleState.STOPPED: set(),
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    transition_id: str
    from_state: LifecycleState
    to_state: LifecycleState
    reason: str
    triggered_by: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "transition_id": self.transition_id,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "reason": self.reason,
            "triggered_by": self.triggered_by,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
        }


StateListener = Callable[[StateTransition], Awaitable[None]]


# ============================================================
# STATE MANAGER
# ============================================================

class StateManager:
    """
    Manages the lifecycle state with listener notifications.

    A single instance exists per node. Transitions are serialized
    on an asyncio lock and validated against VALID_TRANSITIONS.
    """

    def __init__(
        self,
        initial_state: LifecycleState = LifecycleState.UNINITIALIZED,
        max_history: int = 100,
    ):
        self._state = initial_state
        self._reason = "Node created"
        self._triggered_by = "system"
        self._transition_count = 0
        self._last_transition: Optional[StateTransition] = None
        self._history: List[StateTransition] = []
        self._max_history = max_history

        self._listeners: List[StateListener] = []

        self._lock = asyncio.Lock()
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> LifecycleState:
        """Get current lifecycle state."""
        return self._state

    @property
    def reason(self) -> str:
        """Get reason for current state."""
        return self._reason

    @property
    def last_transition(self) -> Optional[StateTransition]:
        """Get last transition."""
        return self._last_transition

    def get_history(self, limit: int = 10) -> List[StateTransition]:
        """Get transition history."""
        return self._history[-limit:]

    def can_transition_to(self, target_state: LifecycleState) -> bool:
        """Check if transition to target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self._state, set())

    def require(self, *states: LifecycleState, operation: str) -> None:
        """
        Check an operation precondition against the current state.

        Raises:
            StateTransitionError: If the current state is not one of states
        """
        if self._state not in states:
            expected = ", ".join(s.value for s in states)
            raise StateTransitionError(
                message=(
                    f"Cannot {operation} in state {self._state.value} "
                    f"(expected: {expected})"
                ),
                from_state=self._state.value,
                reason=operation,
            )

    async def transition_to(
        self,
        target_state: LifecycleState,
        reason: str,
        triggered_by: str = "controller",
        context: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Args:
            target_state: Target state
            reason: Reason for transition
            triggered_by: Who/what triggered the transition
            context: Additional context

        Returns:
            StateTransition record

        Raises:
            StateTransitionError: If transition is invalid
        """
        async with self._lock:
            if not self.can_transition_to(target_state):
                raise StateTransitionError(
                    message=f"Invalid state transition: {self._state.value} -> {target_state.value}",
                    from_state=self._state.value,
                    to_state=target_state.value,
                    reason=reason,
                )

            self._transition_count += 1
            transition = StateTransition(
                transition_id=f"transition_{self._transition_count}",
                from_state=self._state,
                to_state=target_state,
                reason=reason,
                triggered_by=triggered_by,
                context=context or {},
            )

            old_state = self._state
            self._state = target_state
            self._reason = reason
            self._triggered_by = triggered_by
            self._last_transition = transition

            self._history.append(transition)
            if len(self._history) > self._max_history:
                self._history = self._history[-self._max_history:]

            log = self._logger.error if target_state == LifecycleState.FAILED else self._logger.info
            log(
                f"State transition: {old_state.value} -> {target_state.value} "
                f"| reason={reason} | triggered_by={triggered_by}"
            )

        await self._notify_listeners(transition)
        return transition

    def register_listener(self, listener: StateListener) -> None:
        """Register a state change listener."""
        self._listeners.append(listener)

    def unregister_listener(self, listener: StateListener) -> None:
        """Unregister a state change listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _notify_listeners(self, transition: StateTransition) -> None:
        """Notify all listeners of state change."""
        for listener in self._listeners:
            try:
                await listener(transition)
            except Exception as e:
                self._logger.error(
                    f"State listener error: {e}",
                    exc_info=True,
                )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize current state for status reporting."""
        return {
            "state": self._state.value,
            "reason": self._reason,
            "triggered_by": self._triggered_by,
            "transition_count": self._transition_count,
            "recent_transitions": [t.to_dict() for t in self._history[-5:]],
        }


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "LifecycleState",
    "StateTransition",
    "StateListener",
    "StateManager",
    "VALID_TRANSITIONS",
]
