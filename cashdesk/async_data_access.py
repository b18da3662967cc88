"""
Async Data Access Module

Coroutine flavour of DataAccess for asyncio callers. Each call runs the
thread-safe blocking implementation on a worker thread so the event loop
is never blocked by storage or lock waits.
"""

from datetime import date, datetime
from typing import Any, Callable, List, Optional
import asyncio

from .config import CashDeskConfig
from .data_access import DataAccess
from .deposits import Deposit
from .lifecycle import LifecycleState
from .members import Member
from .memberships import Membership, MembershipState
from .statistics import DepositStatistic
from .storage import StorageInterface


class AsyncDataAccess:
    """Async wrapper around DataAccess"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        config: Optional[CashDeskConfig] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self._sync = DataAccess(storage=storage, config=config, clock=clock)

    @property
    def sync(self) -> DataAccess:
        """Underlying blocking data access object"""
        return self._sync

    @property
    def state(self) -> LifecycleState:
        return self._sync.state

    async def __aenter__(self) -> 'AsyncDataAccess':
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def initialize(self) -> None:
        await asyncio.to_thread(self._sync.initialize)

    async def close(self) -> None:
        await asyncio.to_thread(self._sync.close)

    async def add_member(self, first_name: str, last_name: str, birthday: date) -> int:
        return await asyncio.to_thread(self._sync.add_member, first_name, last_name, birthday)

    async def delete_member(self, member_number: int) -> None:
        await asyncio.to_thread(self._sync.delete_member, member_number)

    async def join_member(self, member_number: int) -> Membership:
        return await asyncio.to_thread(self._sync.join_member, member_number)

    async def cancel_membership(self, member_number: int) -> Membership:
        return await asyncio.to_thread(self._sync.cancel_membership, member_number)

    async def deposit(self, member_number: int, amount: Any) -> Deposit:
        return await asyncio.to_thread(self._sync.deposit, member_number, amount)

    async def deposit_statistics(self) -> List[DepositStatistic]:
        return await asyncio.to_thread(self._sync.deposit_statistics)

    async def get_member(self, member_number: int) -> Optional[Member]:
        return await asyncio.to_thread(self._sync.get_member, member_number)

    async def list_members(self) -> List[Member]:
        return await asyncio.to_thread(self._sync.list_members)

    async def get_memberships(self, member_number: int) -> List[Membership]:
        return await asyncio.to_thread(self._sync.get_memberships, member_number)

    async def get_membership_state(self, member_number: int) -> MembershipState:
        return await asyncio.to_thread(self._sync.get_membership_state, member_number)

    async def get_deposits(self, member_number: int) -> List[Deposit]:
        return await asyncio.to_thread(self._sync.get_deposits, member_number)
