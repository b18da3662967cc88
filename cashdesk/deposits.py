"""
Deposit Ledger Module

Records membership fee deposits. Every deposit is attached to the
membership that is open when it is recorded; the deposit time is kept as
the record's creation time and drives yearly statistics.
"""

from decimal import Decimal, InvalidOperation
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import uuid

from .audit import AuditTrail, AuditEventType
from .errors import InvalidArgumentError, NoMemberError
from .locks import MemberLockTable
from .logging_config import get_logger, log_action
from .members import MemberRegistry
from .memberships import MembershipLedger
from .storage import StorageInterface, StorageRecord


def parse_amount(amount: Any) -> Decimal:
    """
    Convert a deposit amount to Decimal, rejecting anything that is not a
    finite positive number. Floats go through str() to avoid binary noise.
    """
    if isinstance(amount, bool):
        raise InvalidArgumentError("Amount must be a number", fields=["amount"])

    try:
        if isinstance(amount, Decimal):
            value = amount
        elif isinstance(amount, (int, float, str)):
            value = Decimal(str(amount))
        else:
            raise InvalidArgumentError(f"Amount must be a number, got {type(amount).__name__}",
                                       fields=["amount"])
    except InvalidOperation:
        raise InvalidArgumentError(f"Amount {amount!r} is not a number", fields=["amount"])

    if not value.is_finite() or value <= 0:
        raise InvalidArgumentError(f"Amount must be greater than 0, got {amount}", fields=["amount"])
    return value


@dataclass
class Deposit(StorageRecord):
    """
    Deposit of a member on one membership
    """
    membership_id: str
    member_number: int
    amount: Decimal

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            self.amount = Decimal(str(self.amount))
        if self.amount <= 0:
            raise ValueError("Deposit amount must be greater than 0")

    @property
    def deposited_at(self) -> datetime:
        return self.created_at

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Deposit':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            membership_id=data['membership_id'],
            member_number=int(data['member_number']),
            amount=Decimal(data['amount'])
        )


class DepositLedger:
    """
    Manages deposits; shares the member lock with the membership ledger so
    a deposit and a cancel of the same member never interleave.
    """

    def __init__(
        self,
        storage: StorageInterface,
        registry: MemberRegistry,
        memberships: MembershipLedger,
        member_locks: MemberLockTable,
        audit_trail: AuditTrail,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.storage = storage
        self.registry = registry
        self.memberships = memberships
        self.member_locks = member_locks
        self.audit_trail = audit_trail
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.table_name = "deposits"
        self.logger = get_logger("cashdesk.deposits")

        registry.register_dependent(self.table_name, self.purge_member)

    def deposit(self, member_number: int, amount: Any) -> Deposit:
        """
        Deposit an amount for a member

        Args:
            member_number: Number of an existing member
            amount: Positive amount (Decimal, int, float or numeric string)

        Returns:
            Created Deposit

        Raises:
            InvalidArgumentError: unknown member number or invalid amount
            NoMemberError: member has no open membership
        """
        value = parse_amount(amount)
        number = self.registry.validate_member_number(member_number)

        with self.member_locks.hold(number), self.storage.atomic():
            self.registry.require_member(number)
            membership = self.memberships.find_active(number)

            if membership is None:
                log_action(
                    self.logger, "warning", f"Rejected deposit for inactive member {number}",
                    action="deposit", resource="deposit", member_number=number
                )
                raise NoMemberError(f"Member {number} is currently not an active member")

            now = self.clock()
            if now < membership.begin:
                now = membership.begin

            deposit = Deposit(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                membership_id=membership.id,
                member_number=number,
                amount=value
            )
            self.storage.save(self.table_name, deposit.id, deposit.to_dict())

            self.audit_trail.log_event(
                event_type=AuditEventType.DEPOSIT_RECORDED,
                entity_type="deposit",
                entity_id=deposit.id,
                metadata={"member_number": number, "membership_id": membership.id}
            )

        log_action(
            self.logger, "info", f"Deposit of {value} recorded for member {number}",
            action="deposit", resource="deposit", member_number=number
        )
        return deposit

    def get_deposits(self, member_number: int) -> List[Deposit]:
        """All deposits of a member ordered by time"""
        number = self.registry.validate_member_number(member_number)
        with self.storage.atomic():
            self.registry.require_member(number)
            deposits = [
                Deposit.from_dict(data)
                for data in self.storage.find(self.table_name, {"member_number": number})
            ]
        deposits.sort(key=lambda d: d.deposited_at)
        return deposits

    def load_all(self) -> List[Deposit]:
        """Every stored deposit; use inside an atomic unit for a consistent view"""
        return [Deposit.from_dict(data) for data in self.storage.load_all(self.table_name)]

    def purge_member(self, member_number: int) -> int:
        """Remove every deposit of a member; runs inside the delete's unit"""
        removed = 0
        for data in self.storage.find(self.table_name, {"member_number": member_number}):
            if self.storage.delete(self.table_name, data['id']):
                removed += 1
        return removed
