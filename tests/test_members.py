"""
Test suite for the member registry

Tests member number allocation, field validation, last name uniqueness and
cascading deletion.
"""

import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from cashdesk.config import CashDeskConfig
from cashdesk.data_access import DataAccess
from cashdesk.errors import DuplicateNameError, InvalidArgumentError
from cashdesk.members import Member
from cashdesk.memberships import MembershipState
from cashdesk.storage import InMemoryStorage, SQLiteStorage


class TestMember:
    """Test Member record"""

    def test_storage_round_trip(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        member = Member(
            id="7",
            created_at=now,
            updated_at=now,
            member_number=7,
            first_name="Ada",
            last_name="Lovelace",
            birthday=date(1815, 12, 10)
        )

        data = member.to_dict()
        assert data["birthday"] == "1815-12-10"
        assert Member.from_dict(data) == member
        assert member.full_name == "Ada Lovelace"


class TestMemberRegistry:
    """Test adding and deleting members"""

    def setup_method(self):
        self.storage = InMemoryStorage()
        self.data_access = DataAccess(storage=self.storage, config=CashDeskConfig())
        self.data_access.initialize()

    def teardown_method(self):
        self.data_access.close()

    def test_member_numbers_are_sequential(self):
        assert self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10)) == 1
        assert self.data_access.add_member("Alan", "Turing", date(1912, 6, 23)) == 2
        assert self.data_access.add_member("Grace", "Hopper", date(1906, 12, 9)) == 3

    def test_added_member_is_stored(self):
        number = self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        member = self.data_access.get_member(number)
        assert member.member_number == number
        assert member.first_name == "Ada"
        assert member.last_name == "Lovelace"
        assert member.birthday == date(1815, 12, 10)

    def test_add_member_creates_no_membership(self):
        number = self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        assert self.data_access.get_membership_state(number) == MembershipState.INACTIVE
        assert self.data_access.get_memberships(number) == []

    def test_datetime_birthday_is_reduced_to_date(self):
        number = self.data_access.add_member("Ada", "Lovelace", datetime(1815, 12, 10, 8, 30))
        assert self.data_access.get_member(number).birthday == date(1815, 12, 10)

    @pytest.mark.parametrize("first_name,last_name,birthday,fields", [
        ("", "Lovelace", date(1815, 12, 10), ["first_name"]),
        ("Ada", "   ", date(1815, 12, 10), ["last_name"]),
        (None, "Lovelace", date(1815, 12, 10), ["first_name"]),
        ("A" * 101, "Lovelace", date(1815, 12, 10), ["first_name"]),
        ("Ada", "L" * 101, date(1815, 12, 10), ["last_name"]),
        ("Ada", "Lovelace", "1815-12-10", ["birthday"]),
        ("Ada", "Lovelace", None, ["birthday"]),
        ("", "", None, ["first_name", "last_name", "birthday"]),
    ])
    def test_invalid_fields_are_rejected(self, first_name, last_name, birthday, fields):
        with pytest.raises(InvalidArgumentError) as exc_info:
            self.data_access.add_member(first_name, last_name, birthday)

        assert exc_info.value.fields == fields
        for field_name in fields:
            assert field_name in str(exc_info.value)
        assert self.data_access.list_members() == []

    def test_names_at_maximum_length_are_accepted(self):
        number = self.data_access.add_member("A" * 100, "L" * 100, date(2000, 1, 1))
        assert self.data_access.get_member(number).last_name == "L" * 100

    def test_maximum_length_follows_config(self):
        data_access = DataAccess(storage=InMemoryStorage(), config=CashDeskConfig(name_max_length=5))
        data_access.initialize()

        with pytest.raises(InvalidArgumentError):
            data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        assert data_access.add_member("Ada", "Byron", date(1815, 12, 10)) == 1
        data_access.close()

    def test_duplicate_last_name_is_rejected(self):
        self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        with pytest.raises(DuplicateNameError):
            self.data_access.add_member("Ada", "Lovelace", date(1990, 1, 1))
        with pytest.raises(DuplicateNameError):
            self.data_access.add_member("Byron", "Lovelace", date(1990, 1, 1))

        assert len(self.data_access.list_members()) == 1

    def test_rejected_member_does_not_consume_number(self):
        self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        with pytest.raises(DuplicateNameError):
            self.data_access.add_member("Ada", "Lovelace", date(1990, 1, 1))

        assert self.data_access.add_member("Alan", "Turing", date(1912, 6, 23)) == 2

    def test_list_members_ordered_by_number(self):
        self.data_access.add_member("Grace", "Hopper", date(1906, 12, 9))
        self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        assert [m.last_name for m in self.data_access.list_members()] == ["Hopper", "Lovelace"]

    def test_get_unknown_member_returns_none(self):
        assert self.data_access.get_member(42) is None

    def test_delete_member(self):
        number = self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        self.data_access.delete_member(number)

        assert self.data_access.get_member(number) is None
        assert self.data_access.list_members() == []

    @pytest.mark.parametrize("member_number", [99, "1", 1.0, None, True])
    def test_delete_unknown_member_is_rejected(self, member_number):
        self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        with pytest.raises(InvalidArgumentError):
            self.data_access.delete_member(member_number)
        assert len(self.data_access.list_members()) == 1

    def test_delete_twice_is_rejected(self):
        number = self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        self.data_access.delete_member(number)

        with pytest.raises(InvalidArgumentError):
            self.data_access.delete_member(number)

    def test_delete_cascades_to_memberships_and_deposits(self):
        ada = self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        alan = self.data_access.add_member("Alan", "Turing", date(1912, 6, 23))
        for number in (ada, alan):
            self.data_access.join_member(number)
            self.data_access.deposit(number, Decimal("25.00"))
        self.data_access.cancel_membership(ada)
        self.data_access.join_member(ada)
        self.data_access.deposit(ada, Decimal("5.00"))

        self.data_access.delete_member(ada)

        assert self.storage.find("memberships", {"member_number": ada}) == []
        assert self.storage.find("deposits", {"member_number": ada}) == []
        assert len(self.storage.find("memberships", {"member_number": alan})) == 1
        assert len(self.storage.find("deposits", {"member_number": alan})) == 1
        assert [s.member_number for s in self.data_access.deposit_statistics()] == [alan]

    def test_deleted_last_name_can_be_reused(self):
        number = self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        self.data_access.delete_member(number)

        assert self.data_access.add_member("Ada", "Lovelace", date(1990, 1, 1)) == 2

    def test_member_numbers_never_reused(self):
        self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        last = self.data_access.add_member("Alan", "Turing", date(1912, 6, 23))
        self.data_access.delete_member(last)

        assert self.data_access.add_member("Grace", "Hopper", date(1906, 12, 9)) == 3

    def test_failed_cascade_leaves_member_intact(self):
        number = self.data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        self.data_access.join_member(number)
        self.data_access.deposit(number, Decimal("10.00"))

        def failing_purge(member_number):
            raise RuntimeError("purge failed")

        self.data_access.members.register_dependent("broken", failing_purge)

        with pytest.raises(RuntimeError):
            self.data_access.delete_member(number)

        assert self.data_access.get_member(number) is not None
        assert len(self.data_access.get_memberships(number)) == 1
        assert len(self.data_access.get_deposits(number)) == 1


class TestMemberNumberPersistence:
    """Member numbers stay unique across restarts of a durable backend"""

    def test_numbers_continue_after_restart(self, tmp_path):
        db_path = tmp_path / "cashdesk.db"

        with DataAccess(storage=SQLiteStorage(db_path), config=CashDeskConfig()) as data_access:
            data_access.initialize()
            data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
            second = data_access.add_member("Alan", "Turing", date(1912, 6, 23))
            data_access.delete_member(second)

        with DataAccess(storage=SQLiteStorage(db_path), config=CashDeskConfig()) as data_access:
            data_access.initialize()
            assert data_access.add_member("Grace", "Hopper", date(1906, 12, 9)) == 3
            assert [m.member_number for m in data_access.list_members()] == [1, 3]
