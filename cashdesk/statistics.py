"""
Deposit Statistics Module

Read-only aggregation of deposits per member and calendar year.
"""

from collections import defaultdict
from decimal import Decimal, Inexact, MAX_EMAX, MAX_PREC, MIN_EMIN, localcontext
from datetime import datetime, timezone
from dataclasses import dataclass
from typing import Dict, List, Tuple

from .deposits import DepositLedger
from .members import Member, MemberRegistry
from .storage import StorageInterface


@dataclass(frozen=True)
class DepositStatistic:
    """Total deposits of one member in one year"""
    member: Member
    year: int
    total_amount: Decimal

    @property
    def member_number(self) -> int:
        return self.member.member_number


def deposit_year(timestamp: datetime) -> int:
    """Calendar year of a deposit time, in UTC for aware timestamps"""
    if timestamp.tzinfo is None:
        return timestamp.year
    return timestamp.astimezone(timezone.utc).year


class StatisticsAggregator:
    """Groups deposits by (member, year) from a single snapshot"""

    def __init__(self, storage: StorageInterface, registry: MemberRegistry, deposits: DepositLedger):
        self.storage = storage
        self.registry = registry
        self.deposits = deposits

    def deposit_statistics(self) -> List[DepositStatistic]:
        """
        One entry per (member, year) with at least one deposit, ordered by
        member number and year.
        """
        with self.storage.atomic():
            members = {m.member_number: m for m in self.registry.list_members()}
            deposits = self.deposits.load_all()

        totals: Dict[Tuple[int, int], Decimal] = defaultdict(Decimal)
        # Amounts have arbitrary precision; sums must never round
        with localcontext() as ctx:
            ctx.prec = MAX_PREC
            ctx.Emax = MAX_EMAX
            ctx.Emin = MIN_EMIN
            ctx.traps[Inexact] = True
            for deposit in deposits:
                if deposit.member_number not in members:
                    continue
                totals[(deposit.member_number, deposit_year(deposit.deposited_at))] += deposit.amount

        return [
            DepositStatistic(member=members[number], year=year, total_amount=total)
            for (number, year), total in sorted(totals.items())
        ]
