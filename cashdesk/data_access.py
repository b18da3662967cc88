"""
Data Access Layer

Public operation surface of CashDesk. Every operation passes the lifecycle
guard first and is then routed to the component that owns it. The storage
backend is acquired on construction and released by close(), which also
runs when the object is used as a context manager or when initialize()
fails.
"""

from datetime import date, datetime
from typing import Any, Callable, List, Optional

from .audit import AuditTrail, AuditEventType
from .config import CashDeskConfig, get_config
from .deposits import Deposit, DepositLedger
from .lifecycle import Lifecycle, LifecycleState
from .locks import MemberLockTable
from .logging_config import get_logger, log_action
from .members import Member, MemberRegistry
from .memberships import Membership, MembershipLedger, MembershipState
from .statistics import DepositStatistic, StatisticsAggregator
from .storage import StorageInterface, create_storage


class DataAccess:
    """
    Thread-safe data access layer for members, memberships and deposits

    Usage:
        with DataAccess() as data_access:
            data_access.initialize()
            number = data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
    """

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[CashDeskConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.config = config or get_config()
        self.logger = get_logger("cashdesk.data_access")
        self.storage = storage if storage is not None else create_storage(self.config)
        self.lifecycle = Lifecycle()

        self.member_locks = MemberLockTable()
        self.audit_trail = AuditTrail(self.storage, enabled=self.config.enable_audit_logging)
        self.members = MemberRegistry(
            self.storage, self.audit_trail, self.member_locks,
            clock=clock, name_max_length=self.config.name_max_length
        )
        self.memberships = MembershipLedger(
            self.storage, self.members, self.member_locks, self.audit_trail, clock=clock
        )
        self.deposits = DepositLedger(
            self.storage, self.members, self.memberships, self.member_locks, self.audit_trail,
            clock=clock
        )
        self.statistics = StatisticsAggregator(self.storage, self.members, self.deposits)

    def __enter__(self) -> 'DataAccess':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def state(self) -> LifecycleState:
        return self.lifecycle.state

    def initialize(self) -> None:
        """
        Initialize the data access layer. Must be called exactly once before
        any other operation.

        Raises:
            InvalidStateError: initialize() has already been called
        """
        self.lifecycle.begin_initialize()
        try:
            last_number = self.members.load()
            self.audit_trail.log_event(
                event_type=AuditEventType.SYSTEM_START,
                entity_type="system",
                entity_id="cashdesk",
                metadata={"storage": type(self.storage).__name__, "last_member_number": last_number}
            )
        except Exception:
            self.lifecycle.abort_initialize()
            self.logger.exception("Initialization failed, releasing storage")
            self.close()
            raise

        self.lifecycle.complete_initialize()
        log_action(
            self.logger, "info", "Data access layer initialized",
            action="initialize", resource="system",
            extra={"storage": type(self.storage).__name__}
        )

    def close(self) -> None:
        """
        Wait for operations in flight, then release the storage backend.
        Safe to call more than once.
        """
        was_initialized = self.lifecycle.is_initialized
        if not self.lifecycle.close():
            return
        try:
            if was_initialized:
                self.audit_trail.log_event(
                    event_type=AuditEventType.SYSTEM_STOP,
                    entity_type="system",
                    entity_id="cashdesk",
                    metadata={}
                )
        finally:
            self.storage.close()
            self.logger.debug("Storage released")

    def add_member(self, first_name: str, last_name: str, birthday: date) -> int:
        """
        Add a new member and return its number

        Raises:
            InvalidStateError: not initialized
            InvalidArgumentError: missing or too long name, invalid birthday
            DuplicateNameError: last name already in use
        """
        with self.lifecycle.operation("add_member"):
            return self.members.add_member(first_name, last_name, birthday)

    def delete_member(self, member_number: int) -> None:
        """
        Delete a member with all its memberships and deposits

        Raises:
            InvalidStateError: not initialized
            InvalidArgumentError: unknown member number
        """
        with self.lifecycle.operation("delete_member"):
            self.members.delete_member(member_number)

    def join_member(self, member_number: int) -> Membership:
        """
        Raises:
            InvalidStateError, InvalidArgumentError, AlreadyMemberError
        """
        with self.lifecycle.operation("join_member"):
            return self.memberships.join_member(member_number)

    def cancel_membership(self, member_number: int) -> Membership:
        """
        Raises:
            InvalidStateError, InvalidArgumentError, NoMemberError
        """
        with self.lifecycle.operation("cancel_membership"):
            return self.memberships.cancel_membership(member_number)

    def deposit(self, member_number: int, amount: Any) -> Deposit:
        """
        Raises:
            InvalidStateError, InvalidArgumentError, NoMemberError
        """
        with self.lifecycle.operation("deposit"):
            return self.deposits.deposit(member_number, amount)

    def deposit_statistics(self) -> List[DepositStatistic]:
        with self.lifecycle.operation("deposit_statistics"):
            return self.statistics.deposit_statistics()

    def get_member(self, member_number: int) -> Optional[Member]:
        with self.lifecycle.operation("get_member"):
            return self.members.get_member(self.members.validate_member_number(member_number))

    def list_members(self) -> List[Member]:
        with self.lifecycle.operation("list_members"):
            return self.members.list_members()

    def get_memberships(self, member_number: int) -> List[Membership]:
        with self.lifecycle.operation("get_memberships"):
            return self.memberships.get_memberships(member_number)

    def get_membership_state(self, member_number: int) -> MembershipState:
        with self.lifecycle.operation("get_membership_state"):
            return self.memberships.get_state(member_number)

    def get_deposits(self, member_number: int) -> List[Deposit]:
        with self.lifecycle.operation("get_deposits"):
            return self.deposits.get_deposits(member_number)
