"""
Lifecycle Guard Module

Gates the data access layer behind a one-time initialization step. Each
DataAccess instance owns one Lifecycle; there is no process-wide flag.

Operations and a running initialize() are tracked while in flight, and
close() waits for them to finish before resources are released.
"""

from contextlib import contextmanager
from enum import Enum
import threading

from .errors import InvalidStateError


class LifecycleState(Enum):
    """States of the data access layer"""
    UNINITIALIZED = "uninitialized"  # Constructed, initialize() not yet called
    INITIALIZED = "initialized"      # Operations allowed
    CLOSED = "closed"                # Resources released, terminal


class Lifecycle:
    """
    Init-once state machine: UNINITIALIZED -> INITIALIZED -> CLOSED

    ``begin_initialize`` reserves the transition so that of two racing
    initialize() calls exactly one proceeds; the winner then either
    completes or aborts it.
    """

    def __init__(self):
        self._state = LifecycleState.UNINITIALIZED
        self._initializing = False
        self._active = 0
        self._condition = threading.Condition()

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def is_initialized(self) -> bool:
        return self._state == LifecycleState.INITIALIZED

    @property
    def active_operations(self) -> int:
        """Operations (including a running initialize) not yet finished"""
        return self._active

    def _leave(self) -> None:
        # Caller holds the condition
        self._active -= 1
        if self._active == 0:
            self._condition.notify_all()

    def begin_initialize(self) -> None:
        """Reserve the initialization; fails if it was already done or started"""
        with self._condition:
            if self._state == LifecycleState.CLOSED:
                raise InvalidStateError("Data access layer has been closed")
            if self._state == LifecycleState.INITIALIZED or self._initializing:
                raise InvalidStateError("initialize() has already been called")
            self._initializing = True
            self._active += 1

    def complete_initialize(self) -> None:
        """Finish the reserved initialization; fails if close() ran meanwhile"""
        with self._condition:
            self._initializing = False
            self._leave()
            if self._state == LifecycleState.CLOSED:
                raise InvalidStateError("Data access layer was closed during initialize()")
            self._state = LifecycleState.INITIALIZED

    def abort_initialize(self) -> None:
        with self._condition:
            self._initializing = False
            self._leave()

    def require_initialized(self, operation: str) -> None:
        """Raise InvalidStateError unless operations are currently allowed"""
        state = self._state
        if state == LifecycleState.UNINITIALIZED:
            raise InvalidStateError(f"initialize() must be called before {operation}()")
        if state == LifecycleState.CLOSED:
            raise InvalidStateError(f"Cannot call {operation}() on a closed data access layer")

    @contextmanager
    def operation(self, name: str):
        """Admit one operation and keep close() waiting until it finishes"""
        with self._condition:
            self.require_initialized(name)
            self._active += 1
        try:
            yield
        finally:
            with self._condition:
                self._leave()

    def close(self) -> bool:
        """
        Move to CLOSED and wait for in-flight work to drain. New operations
        are rejected from the moment this is called. Returns False if the
        lifecycle was already closed.
        """
        with self._condition:
            if self._state == LifecycleState.CLOSED:
                return False
            self._state = LifecycleState.CLOSED
            self._condition.wait_for(lambda: self._active == 0)
            return True
