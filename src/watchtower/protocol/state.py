"""Connection state machine for the source protocol lifecycle."""

from enum import Enum, auto
from typing import Callable
import logging

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    """
    Connection lifecycle states.

    State transitions:
        CREATED --initialize--> INITIALIZED --close--> CLOSED
           \\                                         /
            ------------------close------------------

    INITIALIZED -> INITIALIZED is a re-initialization. CLOSED is terminal.
    """

    CREATED = auto()
    INITIALIZED = auto()
    CLOSED = auto()

    def __str__(self) -> str:
        return self.name


class InvalidStateTransition(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_state: ConnectionState, to_state: ConnectionState):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Invalid state transition: {from_state.name} -> {to_state.name}"
        )


# Type for state transition callbacks
StateTransitionCallback = Callable[[ConnectionState, ConnectionState], None]


class ConnectionStateMachine:
    """
    Tracks one connection's lifecycle state.

    Used by both ends: each server session owns one, and so does each client.
    """

    VALID_TRANSITIONS: dict[ConnectionState, list[ConnectionState]] = {
        ConnectionState.CREATED: [
            ConnectionState.INITIALIZED,
            ConnectionState.CLOSED,
        ],
        ConnectionState.INITIALIZED: [
            ConnectionState.INITIALIZED,  # Re-initialization
            ConnectionState.CLOSED,
        ],
        ConnectionState.CLOSED: [],
    }

    def __init__(self, initial_state: ConnectionState = ConnectionState.CREATED):
        self._state = initial_state
        self._listeners: list[StateTransitionCallback] = []

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_initialized(self) -> bool:
        """Check if discover/execute are allowed."""
        return self._state == ConnectionState.INITIALIZED

    @property
    def is_closed(self) -> bool:
        return self._state == ConnectionState.CLOSED

    def can_transition_to(self, new_state: ConnectionState) -> bool:
        """Check if transition to new_state is valid."""
        return new_state in self.VALID_TRANSITIONS.get(self._state, [])

    def transition(self, new_state: ConnectionState) -> None:
        """
        Transition to a new state.

        Args:
            new_state: The target state.

        Raises:
            InvalidStateTransition: If the transition is not valid.
        """
        if not self.can_transition_to(new_state):
            raise InvalidStateTransition(self._state, new_state)

        old_state = self._state
        self._state = new_state

        for listener in self._listeners:
            try:
                listener(old_state, new_state)
            except Exception as e:
                logger.warning(f"State listener failed on {old_state} -> {new_state}: {e}")

    def on_transition(self, callback: StateTransitionCallback) -> None:
        """
        Register a callback for state transitions.

        Args:
            callback: Function called with (old_state, new_state) on transitions.
        """
        self._listeners.append(callback)

    def __str__(self) -> str:
        return f"ConnectionStateMachine({self._state.name})"

    def __repr__(self) -> str:
        return f"ConnectionStateMachine(state={self._state!r})"
