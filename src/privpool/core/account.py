"""Account aggregate: the deposits a seed owns, grouped per pool scope."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from privpool.core.commitment import AccountCommitment
from privpool.core.secrets import MasterKeys, generate_master_keys
from privpool.models.schemas import RagequitEvent


@dataclass
class PoolAccount:
    """
    One owned deposit and what happened to it afterwards.

    ``withdrawals`` holds the change commitment of every partial withdrawal,
    in the order they were made; each one spends the commitment before it.
    """

    deposit: AccountCommitment
    withdrawals: List[AccountCommitment] = field(default_factory=list)
    ragequit: Optional[RagequitEvent] = None

    @property
    def label(self) -> int:
        return self.deposit.label

    @property
    def latest(self) -> AccountCommitment:
        """Commitment currently holding the account's value."""
        return self.withdrawals[-1] if self.withdrawals else self.deposit

    @property
    def is_spendable(self) -> bool:
        return self.ragequit is None and self.latest.value > 0

    def commitments(self) -> List[AccountCommitment]:
        return [self.deposit, *self.withdrawals]


@dataclass
class Account:
    """
    Root aggregate of everything a seed owns.

    ``pool_accounts`` only gains a key for a scope once that scope has been
    reconciled against a non-empty event set.
    """

    master_keys: MasterKeys
    pool_accounts: Dict[int, List[PoolAccount]] = field(default_factory=dict)

    @classmethod
    def from_seed(cls, seed: bytes) -> "Account":
        return cls(master_keys=generate_master_keys(seed))

    def find_pool_account(self, commitment: AccountCommitment) -> Optional[PoolAccount]:
        """Locate the pool account holding ``commitment`` (by hash)."""
        for accounts in self.pool_accounts.values():
            for pool_account in accounts:
                if any(c.hash == commitment.hash for c in pool_account.commitments()):
                    return pool_account
        return None
