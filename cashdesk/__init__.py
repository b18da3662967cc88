"""
CashDesk

Data access layer for club membership and dues bookkeeping: members,
membership periods, deposits and yearly deposit statistics, safe under
concurrent access.
"""

from .async_data_access import AsyncDataAccess
from .data_access import DataAccess
from .errors import (
    AlreadyMemberError,
    CashDeskError,
    DuplicateNameError,
    ErrorKind,
    InvalidArgumentError,
    InvalidStateError,
    NoMemberError,
    Outcome,
    capture,
)

__version__ = "1.0.0"

__all__ = [
    "AsyncDataAccess",
    "DataAccess",
    "AlreadyMemberError",
    "CashDeskError",
    "DuplicateNameError",
    "ErrorKind",
    "InvalidArgumentError",
    "InvalidStateError",
    "NoMemberError",
    "Outcome",
    "capture",
]
