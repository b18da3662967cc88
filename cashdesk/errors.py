"""
Error Taxonomy Module

Closed set of failure kinds raised by the data access layer. Every error is
a local, deterministic validation failure: nothing here is transient and
nothing is retried. Callers that prefer explicit propagation over exceptions
can wrap a call with ``capture`` to get a tagged ``Outcome``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, TypeVar


T = TypeVar("T")


class ErrorKind(Enum):
    """Kinds of failures an operation can report"""
    INVALID_STATE = "invalid_state"        # Lifecycle misuse
    INVALID_ARGUMENT = "invalid_argument"  # Bad field, unknown id, bad amount
    DUPLICATE_NAME = "duplicate_name"      # Last name already taken
    ALREADY_MEMBER = "already_member"      # Join on an active member
    NO_MEMBER = "no_member"                # Cancel/deposit without active membership


class CashDeskError(Exception):
    """Base class for all data access errors"""
    kind: ErrorKind

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidStateError(CashDeskError, RuntimeError):
    """Operation called before initialize(), after close(), or initialize() called twice"""
    kind = ErrorKind.INVALID_STATE


class InvalidArgumentError(CashDeskError, ValueError):
    """At least one argument is invalid; ``fields`` names the offending ones"""
    kind = ErrorKind.INVALID_ARGUMENT

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = list(fields or [])


class DuplicateNameError(CashDeskError):
    """A member with the same last name already exists"""
    kind = ErrorKind.DUPLICATE_NAME


class AlreadyMemberError(CashDeskError):
    """The member already has an active membership"""
    kind = ErrorKind.ALREADY_MEMBER


class NoMemberError(CashDeskError):
    """The member currently has no active membership"""
    kind = ErrorKind.NO_MEMBER


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Tagged result of an operation: either a value or a CashDeskError
    """
    value: Optional[T] = None
    error: Optional[CashDeskError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> Optional[ErrorKind]:
        """Error kind, or None for a successful outcome"""
        return self.error.kind if self.error is not None else None

    def unwrap(self) -> T:
        """Return the value or re-raise the captured error"""
        if self.error is not None:
            raise self.error
        return self.value


def capture(func: Callable[..., T], *args: Any, **kwargs: Any) -> Outcome[T]:
    """
    Run an operation and convert its result into an Outcome.

    Only CashDeskError is captured; any other exception is a defect and
    propagates unchanged.
    """
    try:
        return Outcome(value=func(*args, **kwargs))
    except CashDeskError as e:
        return Outcome(error=e)
