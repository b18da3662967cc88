"""
Tests for AsyncDataAccess

Tests the coroutine surface, concurrent tasks on the same member and the
async resource scope.
"""

import pytest
import pytest_asyncio
import asyncio
from datetime import date
from decimal import Decimal

from cashdesk.async_data_access import AsyncDataAccess
from cashdesk.config import CashDeskConfig
from cashdesk.errors import (
    AlreadyMemberError, DuplicateNameError, InvalidStateError, NoMemberError
)
from cashdesk.lifecycle import LifecycleState
from cashdesk.memberships import MembershipState
from cashdesk.storage import InMemoryStorage


class TestAsyncDataAccess:
    """Test the async facade"""

    @pytest_asyncio.fixture
    async def data_access(self):
        data_access = AsyncDataAccess(storage=InMemoryStorage(), config=CashDeskConfig())
        await data_access.initialize()
        yield data_access
        await data_access.close()

    @pytest.mark.asyncio
    async def test_full_member_lifecycle(self, data_access):
        number = await data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))
        assert number == 1

        with pytest.raises(DuplicateNameError):
            await data_access.add_member("Ada", "Lovelace", date(1990, 1, 1))

        membership = await data_access.join_member(number)
        assert membership.end is None
        assert await data_access.get_membership_state(number) == MembershipState.ACTIVE

        await data_access.deposit(number, Decimal("50.00"))
        cancelled = await data_access.cancel_membership(number)
        assert cancelled.end > cancelled.begin

        with pytest.raises(NoMemberError):
            await data_access.deposit(number, Decimal("10.00"))

        statistics = await data_access.deposit_statistics()
        assert [(s.member_number, s.year, s.total_amount) for s in statistics] == [
            (1, membership.begin.year, Decimal("50.00"))
        ]

        assert len(await data_access.get_memberships(number)) == 1
        assert len(await data_access.get_deposits(number)) == 1
        assert (await data_access.get_member(number)).last_name == "Lovelace"

        await data_access.delete_member(number)
        assert await data_access.list_members() == []
        assert await data_access.deposit_statistics() == []

    @pytest.mark.asyncio
    async def test_concurrent_joins_have_one_winner(self, data_access):
        number = await data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        results = await asyncio.gather(
            *(data_access.join_member(number) for _ in range(10)),
            return_exceptions=True
        )

        successes = [r for r in results if not isinstance(r, BaseException)]
        failures = [r for r in results if isinstance(r, BaseException)]
        assert len(successes) == 1
        assert len(failures) == 9
        assert all(isinstance(f, AlreadyMemberError) for f in failures)

    @pytest.mark.asyncio
    async def test_second_initialize_fails(self, data_access):
        with pytest.raises(InvalidStateError):
            await data_access.initialize()


class TestAsyncResourceScope:
    """Test async context manager behaviour"""

    @pytest.mark.asyncio
    async def test_operations_require_initialize(self):
        async with AsyncDataAccess(storage=InMemoryStorage(), config=CashDeskConfig()) as data_access:
            with pytest.raises(InvalidStateError):
                await data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

    @pytest.mark.asyncio
    async def test_context_manager_closes(self):
        async with AsyncDataAccess(storage=InMemoryStorage(), config=CashDeskConfig()) as data_access:
            await data_access.initialize()
            await data_access.add_member("Ada", "Lovelace", date(1815, 12, 10))

        assert data_access.state == LifecycleState.CLOSED
        assert data_access.sync.state == LifecycleState.CLOSED
        with pytest.raises(InvalidStateError):
            await data_access.list_members()
