"""
Membership Ledger Module

Join/cancel state machine per member and the historical membership
records. A member is ACTIVE while one membership has no end; that record
is always the chronologically last one of the member.
"""

from datetime import datetime, timezone, timedelta
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from enum import Enum
import uuid

from .audit import AuditTrail, AuditEventType
from .errors import AlreadyMemberError, NoMemberError
from .locks import MemberLockTable
from .logging_config import get_logger, log_action
from .members import MemberRegistry
from .storage import StorageInterface, StorageRecord


# Smallest step used to keep begin/end strictly ordered under a coarse clock
TICK = timedelta(microseconds=1)


class MembershipState(Enum):
    """Membership state of a member"""
    INACTIVE = "inactive"  # No open membership
    ACTIVE = "active"      # Exactly one open membership


@dataclass
class Membership(StorageRecord):
    """
    One join/cancel cycle of a member
    """
    member_number: int
    begin: datetime
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.end is not None and self.end <= self.begin:
            raise ValueError("Membership end must be after its begin")

    @property
    def is_active(self) -> bool:
        return self.end is None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['begin'] = self.begin.isoformat()
        result['end'] = self.end.isoformat() if self.end else None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Membership':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            member_number=int(data['member_number']),
            begin=datetime.fromisoformat(data['begin']),
            end=datetime.fromisoformat(data['end']) if data.get('end') else None
        )


class MembershipLedger:
    """
    Manages the membership history of every member

    join_member and cancel_membership check and act under the member's lock
    inside one storage atomic unit.
    """

    def __init__(
        self,
        storage: StorageInterface,
        registry: MemberRegistry,
        member_locks: MemberLockTable,
        audit_trail: AuditTrail,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.storage = storage
        self.registry = registry
        self.member_locks = member_locks
        self.audit_trail = audit_trail
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.table_name = "memberships"
        self.logger = get_logger("cashdesk.memberships")

        registry.register_dependent(self.table_name, self.purge_member)

    def _history(self, member_number: int) -> List[Membership]:
        memberships = [
            Membership.from_dict(data)
            for data in self.storage.find(self.table_name, {"member_number": member_number})
        ]
        memberships.sort(key=lambda m: m.begin)
        return memberships

    def find_active(self, member_number: int) -> Optional[Membership]:
        """
        Open membership of a member, if any. Callers that act on the result
        must hold the member's lock and an atomic unit.
        """
        for membership in self._history(member_number):
            if membership.is_active:
                return membership
        return None

    def get_memberships(self, member_number: int) -> List[Membership]:
        """All memberships of a member ordered by begin"""
        number = self.registry.validate_member_number(member_number)
        with self.storage.atomic():
            self.registry.require_member(number)
            return self._history(number)

    def get_active_membership(self, member_number: int) -> Optional[Membership]:
        number = self.registry.validate_member_number(member_number)
        with self.storage.atomic():
            self.registry.require_member(number)
            return self.find_active(number)

    def get_state(self, member_number: int) -> MembershipState:
        if self.get_active_membership(member_number) is None:
            return MembershipState.INACTIVE
        return MembershipState.ACTIVE

    def join_member(self, member_number: int) -> Membership:
        """
        Start a new membership for an inactive member

        Returns:
            Created membership with begin set to now and no end

        Raises:
            InvalidArgumentError: unknown member number
            AlreadyMemberError: member already has an open membership
        """
        number = self.registry.validate_member_number(member_number)

        with self.member_locks.hold(number), self.storage.atomic():
            self.registry.require_member(number)
            history = self._history(number)

            if any(m.is_active for m in history):
                raise AlreadyMemberError(f"Member {number} is already an active member")

            begin = self.clock()
            if history:
                last_end = max(m.end for m in history)
                if begin <= last_end:
                    begin = last_end + TICK

            membership = Membership(
                id=str(uuid.uuid4()),
                created_at=begin,
                updated_at=begin,
                member_number=number,
                begin=begin
            )
            self.storage.save(self.table_name, membership.id, membership.to_dict())

            self.audit_trail.log_event(
                event_type=AuditEventType.MEMBERSHIP_STARTED,
                entity_type="membership",
                entity_id=membership.id,
                metadata={"member_number": number}
            )

        log_action(
            self.logger, "info", f"Member {number} joined",
            action="join_member", resource="membership", member_number=number
        )
        return membership

    def cancel_membership(self, member_number: int) -> Membership:
        """
        End the open membership of a member

        Returns:
            The membership with end set to now

        Raises:
            InvalidArgumentError: unknown member number
            NoMemberError: member has no open membership
        """
        number = self.registry.validate_member_number(member_number)

        with self.member_locks.hold(number), self.storage.atomic():
            self.registry.require_member(number)
            membership = self.find_active(number)

            if membership is None:
                raise NoMemberError(f"Member {number} is currently not an active member")

            end = self.clock()
            if end <= membership.begin:
                end = membership.begin + TICK

            membership.end = end
            membership.updated_at = end
            self.storage.save(self.table_name, membership.id, membership.to_dict())

            self.audit_trail.log_event(
                event_type=AuditEventType.MEMBERSHIP_CANCELLED,
                entity_type="membership",
                entity_id=membership.id,
                metadata={"member_number": number}
            )

        log_action(
            self.logger, "info", f"Member {number} cancelled membership",
            action="cancel_membership", resource="membership", member_number=number
        )
        return membership

    def purge_member(self, member_number: int) -> int:
        """Remove every membership of a member; runs inside the delete's unit"""
        removed = 0
        for data in self.storage.find(self.table_name, {"member_number": member_number}):
            if self.storage.delete(self.table_name, data['id']):
                removed += 1
        return removed
