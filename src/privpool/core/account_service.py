"""Account reconstruction and bookkeeping on top of the reconciler."""

import asyncio
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from privpool.backends.base import ChainDataSource
from privpool.config import PoolSettings, get_settings
from privpool.core.account import Account, PoolAccount
from privpool.core.commitment import AccountCommitment
from privpool.core.reconciler import index_deposits, reconcile
from privpool.core.secrets import DepositSecrets, derive_deposit_secrets, derive_withdrawal_secrets
from privpool.exceptions import AccountError
from privpool.models.schemas import DepositEvent, PoolInfo, RagequitEvent, WithdrawalEvent

logger = logging.getLogger(__name__)


class AccountService:
    """
    Owns an Account and keeps it in sync with on-chain events.

    Exactly one of ``seed`` or ``account`` must be given.

    Args:
        data_source: Supplier of deposit, withdrawal and ragequit events
        seed: Byte seed to derive a fresh account from
        account: Previously built account to keep working on
        settings: Optional settings, defaults to the process-wide ones
    """

    def __init__(
        self,
        data_source: ChainDataSource,
        seed: Optional[bytes] = None,
        account: Optional[Account] = None,
        settings: Optional[PoolSettings] = None,
    ):
        if (seed is None) == (account is None):
            raise AccountError("Provide exactly one of seed or account")
        self.data_source = data_source
        self.settings = settings or get_settings()
        self.account = account if account is not None else Account.from_seed(seed)

    # ------------------------------------------------------------------
    # Secrets
    # ------------------------------------------------------------------

    def create_deposit_secrets(self, scope: int, index: Optional[int] = None) -> DepositSecrets:
        """
        Secrets for a deposit into ``scope``.

        ``index`` defaults to the number of deposits already known in the scope,
        i.e. the next unused index.
        """
        if index is None:
            index = len(self.account.pool_accounts.get(scope, ()))
        if index < 0:
            raise AccountError("Deposit index must be non-negative")
        return derive_deposit_secrets(self.account.master_keys, scope, index)

    def create_withdrawal_secrets(self, commitment: AccountCommitment) -> Tuple[int, int]:
        """
        (nullifier, secret) for the change commitment of a withdrawal from ``commitment``.

        Raises:
            AccountError: If the commitment does not belong to this account
        """
        pool_account = self.account.find_pool_account(commitment)
        if pool_account is None:
            raise AccountError(f"Unknown commitment {commitment.hash}")
        return derive_withdrawal_secrets(
            self.account.master_keys, pool_account.label, len(pool_account.withdrawals)
        )

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def add_pool_account(
        self,
        scope: int,
        value: int,
        nullifier: int,
        secret: int,
        label: int,
        block_number: int,
        tx_hash: str,
    ) -> PoolAccount:
        """Record a deposit made by this account."""
        deposit = AccountCommitment.create(
            value=value,
            label=label,
            nullifier=nullifier,
            secret=secret,
            block_number=block_number,
            tx_hash=tx_hash,
        )
        pool_account = PoolAccount(deposit=deposit)
        self.account.pool_accounts.setdefault(scope, []).append(pool_account)
        logger.info(f"Added pool account in scope {scope} from tx {tx_hash}")
        return pool_account

    def add_withdrawal_commitment(
        self,
        parent: AccountCommitment,
        value: int,
        nullifier: int,
        secret: int,
        block_number: int,
        tx_hash: str,
    ) -> AccountCommitment:
        """
        Record the change commitment left by a withdrawal from ``parent``.

        Raises:
            AccountError: If ``parent`` is unknown or was already spent
        """
        pool_account = self.account.find_pool_account(parent)
        if pool_account is None:
            raise AccountError(f"Unknown parent commitment {parent.hash}")
        if pool_account.latest.hash != parent.hash:
            raise AccountError(f"Commitment {parent.hash} was already spent")

        child = AccountCommitment.create(
            value=value,
            label=parent.label,
            nullifier=nullifier,
            secret=secret,
            block_number=block_number,
            tx_hash=tx_hash,
        )
        pool_account.withdrawals.append(child)
        logger.info(f"Added withdrawal commitment for label {parent.label} from tx {tx_hash}")
        return child

    def add_ragequit_to_account(
        self, label: int, ragequit: RagequitEvent, scope: Optional[int] = None
    ) -> PoolAccount:
        """
        Attach a ragequit to the pool account with ``label``.

        Only the accounts of ``scope`` are searched when it is given.

        Raises:
            AccountError: If no account has the label or it already has a ragequit
        """
        if scope is None:
            candidates = [a for accounts in self.account.pool_accounts.values() for a in accounts]
        else:
            candidates = self.account.pool_accounts.get(scope, [])

        for pool_account in candidates:
            if pool_account.label == label:
                self._attach_ragequit(pool_account, ragequit)
                return pool_account
        raise AccountError(f"No pool account with label {label}")

    def _attach_ragequit(self, pool_account: PoolAccount, ragequit: RagequitEvent) -> None:
        if pool_account.ragequit is not None:
            raise AccountError(f"Pool account {pool_account.label} already has a ragequit")
        pool_account.ragequit = ragequit
        logger.info(f"Linked ragequit {ragequit.transaction_hash} to label {pool_account.label}")

    def get_spendable_commitments(self) -> Dict[int, List[AccountCommitment]]:
        """Latest commitment of every account with value left and no ragequit, per scope."""
        spendable: Dict[int, List[AccountCommitment]] = {}
        for scope, accounts in self.account.pool_accounts.items():
            commitments = [a.latest for a in accounts if a.is_spendable]
            if commitments:
                spendable[scope] = commitments
        return spendable

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def process_deposit_events(
        self, scope: int, events_by_precommitment: Mapping[int, DepositEvent]
    ) -> Optional[List[PoolAccount]]:
        """
        Rebuild the pool accounts of ``scope`` from its full deposit set.

        An empty event set leaves the scope absent from ``pool_accounts``.
        """
        accounts = reconcile(
            self.account.master_keys,
            scope,
            events_by_precommitment,
            miss_limit=self.settings.max_consecutive_misses,
        )
        if accounts is None:
            return None
        self.account.pool_accounts[scope] = accounts
        logger.info(f"Scope {scope}: recovered {len(accounts)} pool accounts")
        return accounts

    def link_withdrawals(self, scope: int, withdrawals: Iterable[WithdrawalEvent]) -> int:
        """
        Follow each account's spend chain through ``withdrawals``.

        A commitment is spent at most once, so events are indexed by the
        nullifier hash they reveal. Returns the number of linked withdrawals.
        """
        by_nullifier: Dict[int, WithdrawalEvent] = {}
        for event in withdrawals:
            if event.spent_nullifier in by_nullifier:
                logger.warning(f"Duplicate spend of nullifier {event.spent_nullifier} ignored")
                continue
            by_nullifier[event.spent_nullifier] = event

        linked = 0
        for pool_account in self.account.pool_accounts.get(scope, ()):
            while True:
                current = pool_account.latest
                event = by_nullifier.get(current.nullifier_hash)
                if event is None:
                    break
                if event.withdrawn > current.value:
                    logger.warning(
                        f"Withdrawal {event.transaction_hash} exceeds the value of the spent commitment"
                    )
                    break

                nullifier, secret = self.create_withdrawal_secrets(current)
                child = self.add_withdrawal_commitment(
                    parent=current,
                    value=current.value - event.withdrawn,
                    nullifier=nullifier,
                    secret=secret,
                    block_number=event.block_number,
                    tx_hash=event.transaction_hash,
                )
                if child.hash != event.new_commitment:
                    logger.warning(
                        f"Withdrawal {event.transaction_hash}: emitted change commitment "
                        f"differs from the locally computed one"
                    )
                linked += 1
        return linked

    def link_ragequits(self, scope: int, ragequits: Iterable[RagequitEvent]) -> int:
        """
        Attach ragequits to the accounts of ``scope``.

        A ragequit belongs to the account whose deposit nullifier hash it
        reveals. Returns the count linked.
        """
        by_nullifier = {a.deposit.nullifier_hash: a for a in self.account.pool_accounts.get(scope, ())}
        linked = 0
        for event in ragequits:
            pool_account = by_nullifier.get(event.spent_nullifier)
            if pool_account is None:
                continue
            try:
                self._attach_ragequit(pool_account, event)
            except AccountError as e:
                logger.warning(f"Ragequit {event.transaction_hash} not linked: {e}")
                continue
            linked += 1
        return linked

    async def _fetch(
        self, pool: PoolInfo
    ) -> Tuple[Sequence[DepositEvent], Sequence[WithdrawalEvent], Sequence[RagequitEvent]]:
        return await asyncio.gather(
            self.data_source.get_deposits(pool),
            self.data_source.get_withdrawals(pool),
            self.data_source.get_ragequits(pool),
        )

    async def retrieve_history(self, pools: Iterable[PoolInfo]) -> Account:
        """
        Rebuild the account from the full event history of ``pools``.

        Each scope is reconciled independently. Previously linked withdrawals
        and ragequits of a scope are discarded and re-linked from the events,
        so repeated calls with the same history give the same account.
        """
        pools = list(pools)
        histories = await asyncio.gather(*(self._fetch(pool) for pool in pools))

        for pool, (deposits, withdrawals, ragequits) in zip(pools, histories):
            logger.info(
                f"Pool {pool.address} (scope {pool.scope}): {len(deposits)} deposits, "
                f"{len(withdrawals)} withdrawals, {len(ragequits)} ragequits"
            )
            self.process_deposit_events(pool.scope, index_deposits(deposits))
            if pool.scope not in self.account.pool_accounts:
                continue
            self.link_withdrawals(pool.scope, withdrawals)
            self.link_ragequits(pool.scope, ragequits)

        return self.account
