"""Tests for the connection state machine."""

import pytest

from watchtower.protocol.state import (
    ConnectionState,
    ConnectionStateMachine,
    InvalidStateTransition,
)


class TestConnectionStateMachine:
    """Tests for lifecycle transitions."""

    def test_starts_created(self):
        machine = ConnectionStateMachine()
        assert machine.state == ConnectionState.CREATED
        assert not machine.is_initialized

    def test_initialize_then_close(self):
        machine = ConnectionStateMachine()
        machine.transition(ConnectionState.INITIALIZED)
        assert machine.is_initialized
        machine.transition(ConnectionState.CLOSED)
        assert machine.is_closed

    def test_reinitialize_allowed(self):
        machine = ConnectionStateMachine(ConnectionState.INITIALIZED)
        machine.transition(ConnectionState.INITIALIZED)
        assert machine.is_initialized

    def test_close_from_created(self):
        machine = ConnectionStateMachine()
        machine.transition(ConnectionState.CLOSED)
        assert machine.is_closed

    @pytest.mark.parametrize("target", list(ConnectionState))
    def test_closed_is_terminal(self, target):
        machine = ConnectionStateMachine(ConnectionState.CLOSED)
        with pytest.raises(InvalidStateTransition):
            machine.transition(target)

    def test_listeners_see_transitions(self):
        machine = ConnectionStateMachine()
        seen = []
        machine.on_transition(lambda old, new: seen.append((old, new)))
        machine.transition(ConnectionState.INITIALIZED)
        assert seen == [(ConnectionState.CREATED, ConnectionState.INITIALIZED)]

    def test_failing_listener_does_not_block_transition(self):
        machine = ConnectionStateMachine()

        def broken(old, new):
            raise RuntimeError("listener bug")

        machine.on_transition(broken)
        machine.transition(ConnectionState.INITIALIZED)
        assert machine.is_initialized
