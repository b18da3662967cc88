"""
Member Registry Module

Owns member identity: allocation of unique member numbers, uniqueness of
last names among existing members, and deletion with cascade to every
record that belongs to the member.
"""

from datetime import date, datetime, timezone
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import threading

from .audit import AuditTrail, AuditEventType
from .errors import DuplicateNameError, InvalidArgumentError
from .locks import MemberLockTable
from .logging_config import get_logger, log_action
from .storage import StorageInterface, StorageRecord


@dataclass
class Member(StorageRecord):
    """
    Club member. ``id`` is the member number as a string.
    """
    member_number: int
    first_name: str
    last_name: str
    birthday: date

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['birthday'] = self.birthday.isoformat()
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Member':
        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            member_number=int(data['member_number']),
            first_name=data['first_name'],
            last_name=data['last_name'],
            birthday=date.fromisoformat(data['birthday'])
        )


class MemberRegistry:
    """
    Manages member identity and the member number sequence

    Numbers are strictly increasing and never reused, even after a member
    is deleted; the last allocated number is persisted in the sequences
    table.
    """

    SEQUENCE_TABLE = "sequences"
    SEQUENCE_ID = "member_number"

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        member_locks: MemberLockTable,
        clock: Optional[Callable[[], datetime]] = None,
        name_max_length: int = 100
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.member_locks = member_locks
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.name_max_length = name_max_length
        self.table_name = "members"
        self.logger = get_logger("cashdesk.members")

        self._registry_lock = threading.Lock()
        self._last_number = 0
        self._dependents: List[Tuple[str, Callable[[int], int]]] = []

    def register_dependent(self, name: str, purge: Callable[[int], int]) -> None:
        """
        Register records owned by members. ``purge`` removes all records of
        one member and returns how many were removed; it runs inside the
        delete's atomic unit.
        """
        self._dependents.append((name, purge))

    def load(self) -> int:
        """Restore the number sequence from storage; returns the last allocated number"""
        with self._registry_lock, self.storage.atomic():
            sequence = self.storage.load(self.SEQUENCE_TABLE, self.SEQUENCE_ID)
            last = int(sequence['last']) if sequence else 0
            for data in self.storage.load_all(self.table_name):
                last = max(last, int(data['member_number']))
            self._last_number = last
        return last

    @staticmethod
    def validate_member_number(member_number: Any) -> int:
        """Reject anything that cannot be a member number"""
        if isinstance(member_number, bool) or not isinstance(member_number, int):
            raise InvalidArgumentError(
                f"Member number must be an integer, got {member_number!r}",
                fields=["member_number"]
            )
        return member_number

    def _validate_fields(self, first_name: Any, last_name: Any, birthday: Any) -> date:
        problems = []
        fields = []

        for field_name, value in (("first_name", first_name), ("last_name", last_name)):
            if not isinstance(value, str) or not value.strip():
                problems.append(f"{field_name} is required")
                fields.append(field_name)
            elif len(value) > self.name_max_length:
                problems.append(f"{field_name} must not exceed {self.name_max_length} characters")
                fields.append(field_name)

        if isinstance(birthday, datetime):
            birthday = birthday.date()
        elif not isinstance(birthday, date):
            problems.append("birthday must be a date")
            fields.append("birthday")

        if problems:
            raise InvalidArgumentError("Invalid member data: " + "; ".join(problems), fields=fields)
        return birthday

    def get_member(self, member_number: int) -> Optional[Member]:
        """Get member by number"""
        data = self.storage.load(self.table_name, str(member_number))
        if data:
            return Member.from_dict(data)
        return None

    def require_member(self, member_number: int) -> Member:
        """Get member by number or fail with InvalidArgumentError"""
        member = self.get_member(member_number)
        if member is None:
            raise InvalidArgumentError(f"Unknown member number {member_number}", fields=["member_number"])
        return member

    def list_members(self) -> List[Member]:
        """All existing members ordered by number"""
        members = [Member.from_dict(data) for data in self.storage.load_all(self.table_name)]
        members.sort(key=lambda m: m.member_number)
        return members

    def add_member(self, first_name: str, last_name: str, birthday: date) -> int:
        """
        Add a new member

        Args:
            first_name: Mandatory, at most name_max_length characters
            last_name: Mandatory, at most name_max_length characters, unique
            birthday: Member's birthday

        Returns:
            Number of the new member
        """
        birthday = self._validate_fields(first_name, last_name, birthday)

        # Uniqueness check, allocation and insert form one unit for all callers
        with self._registry_lock:
            with self.storage.atomic():
                if self.storage.find(self.table_name, {"last_name": last_name}):
                    log_action(
                        self.logger, "warning", f"Rejected duplicate last name {last_name!r}",
                        action="add_member", resource="member"
                    )
                    raise DuplicateNameError(f"A member with last name {last_name!r} already exists")

                number = self._last_number + 1
                now = self.clock()
                member = Member(
                    id=str(number),
                    created_at=now,
                    updated_at=now,
                    member_number=number,
                    first_name=first_name,
                    last_name=last_name,
                    birthday=birthday
                )

                self.storage.save(self.SEQUENCE_TABLE, self.SEQUENCE_ID, {
                    "id": self.SEQUENCE_ID,
                    "last": number
                })
                self.storage.save(self.table_name, member.id, member.to_dict())

                self.audit_trail.log_event(
                    event_type=AuditEventType.MEMBER_ADDED,
                    entity_type="member",
                    entity_id=member.id
                )

            self._last_number = number

        log_action(
            self.logger, "info", f"Member {number} added",
            action="add_member", resource="member", member_number=number
        )
        return number

    def delete_member(self, member_number: int) -> None:
        """
        Delete a member together with all records registered as dependents
        (memberships and deposits). Nothing is removed unless everything is.
        """
        number = self.validate_member_number(member_number)

        with self.member_locks.hold(number), self.storage.atomic():
            member = self.require_member(number)

            purged = {}
            for name, purge in self._dependents:
                purged[name] = purge(number)

            self.storage.delete(self.table_name, member.id)

            self.audit_trail.log_event(
                event_type=AuditEventType.MEMBER_DELETED,
                entity_type="member",
                entity_id=member.id,
                metadata={"purged": purged}
            )

        log_action(
            self.logger, "info", f"Member {number} deleted",
            action="delete_member", resource="member", member_number=number,
            extra={"purged": purged}
        )
