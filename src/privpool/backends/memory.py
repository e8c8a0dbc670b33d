"""In-memory ChainDataSource, fed by whoever already holds the events."""

from collections import defaultdict
from typing import Dict, Iterable, List

from privpool.models.schemas import DepositEvent, PoolInfo, RagequitEvent, WithdrawalEvent


class InMemoryDataSource:
    """Events stored per pool scope."""

    def __init__(self):
        self.deposits: Dict[int, List[DepositEvent]] = defaultdict(list)
        self.withdrawals: Dict[int, List[WithdrawalEvent]] = defaultdict(list)
        self.ragequits: Dict[int, List[RagequitEvent]] = defaultdict(list)

    def add_deposits(self, scope: int, events: Iterable[DepositEvent]) -> None:
        self.deposits[scope].extend(events)

    def add_withdrawals(self, scope: int, events: Iterable[WithdrawalEvent]) -> None:
        self.withdrawals[scope].extend(events)

    def add_ragequits(self, scope: int, events: Iterable[RagequitEvent]) -> None:
        self.ragequits[scope].extend(events)

    async def get_deposits(self, pool: PoolInfo) -> List[DepositEvent]:
        return list(self.deposits.get(pool.scope, ()))

    async def get_withdrawals(self, pool: PoolInfo) -> List[WithdrawalEvent]:
        return list(self.withdrawals.get(pool.scope, ()))

    async def get_ragequits(self, pool: PoolInfo) -> List[RagequitEvent]:
        return list(self.ragequits.get(pool.scope, ()))
