"""Gap-tolerant recovery of owned deposits from on-chain deposit events.

Deposit indices are handed out sequentially per scope, but a deposit
transaction can fail after its index was used, leaving holes. Instead of
trusting a stored counter, the scan re-derives precommitments index by index
and checks each one against the observed events:

    index:   0   1   2   3   4   5   6 ...
    event:   hit hit -   -   -   hit hit
    misses:  0   0   1   2   3   0   0

A hit resets the miss counter, so a later cluster of deposits is still found
after an isolated hole; the scan only stops after ``miss_limit`` consecutive
misses. The scan is written as a fold over ScanState so the step function
and the termination predicate can be exercised independently.
"""

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from privpool.config import DEFAULT_MAX_CONSECUTIVE_MISSES
from privpool.core.account import PoolAccount
from privpool.core.commitment import AccountCommitment
from privpool.core.secrets import MasterKeys, derive_deposit_secrets
from privpool.models.schemas import DepositEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanState:
    """Fold accumulator of a scope scan."""

    index: int = 0
    consecutive_misses: int = 0
    results: Tuple[PoolAccount, ...] = ()
    found_indices: Tuple[int, ...] = ()


def is_exhausted(state: ScanState, miss_limit: int) -> bool:
    """Termination predicate: too many unused indices in a row."""
    return state.consecutive_misses >= miss_limit


def advance(
    state: ScanState,
    keys: MasterKeys,
    scope: int,
    events_by_precommitment: Mapping[int, DepositEvent],
) -> ScanState:
    """
    Test one derivation index and return the next state.

    Args:
        state: Current scan state
        keys: Master keys of the account
        scope: Pool scope being scanned
        events_by_precommitment: Observed deposits keyed by precommitment hash

    Returns:
        ScanState: State for ``state.index + 1``
    """
    secrets = derive_deposit_secrets(keys, scope, state.index)
    event = events_by_precommitment.get(secrets.precommitment)

    if event is None:
        return ScanState(
            index=state.index + 1,
            consecutive_misses=state.consecutive_misses + 1,
            results=state.results,
            found_indices=state.found_indices,
        )

    deposit = AccountCommitment.create(
        value=event.value,
        label=event.label,
        nullifier=secrets.nullifier,
        secret=secrets.secret,
        block_number=event.block_number,
        tx_hash=event.transaction_hash,
    )
    if deposit.hash != event.commitment:
        logger.warning(
            f"Deposit {event.transaction_hash} in scope {scope}: "
            f"emitted commitment differs from the locally computed one"
        )

    return ScanState(
        index=state.index + 1,
        consecutive_misses=0,
        results=state.results + (PoolAccount(deposit=deposit),),
        found_indices=state.found_indices + (state.index,),
    )


def scan(
    keys: MasterKeys,
    scope: int,
    events_by_precommitment: Mapping[int, DepositEvent],
    miss_limit: int = DEFAULT_MAX_CONSECUTIVE_MISSES,
) -> ScanState:
    """Run ``advance`` from index 0 until the scan is exhausted."""
    if miss_limit < 1:
        raise ValueError("miss_limit must be at least 1")

    state = ScanState()
    while not is_exhausted(state, miss_limit):
        state = advance(state, keys, scope, events_by_precommitment)
    return state


def reconcile(
    keys: MasterKeys,
    scope: int,
    events_by_precommitment: Mapping[int, DepositEvent],
    miss_limit: int = DEFAULT_MAX_CONSECUTIVE_MISSES,
) -> Optional[list]:
    """
    Recover the pool accounts owned by ``keys`` in ``scope``.

    Args:
        keys: Master keys of the account
        scope: Pool scope
        events_by_precommitment: Every known deposit of the scope, keyed by
            precommitment hash. Must be the full set, not a delta.
        miss_limit: Consecutive misses that end the scan

    Returns:
        Optional[list]: PoolAccounts in increasing derivation-index order,
        or None when no events were supplied.
    """
    if not events_by_precommitment:
        return None

    state = scan(keys, scope, events_by_precommitment, miss_limit)
    logger.debug(
        f"Scope {scope}: {len(state.results)} owned deposits at indices "
        f"{list(state.found_indices)}, scan stopped at index {state.index}"
    )
    return list(state.results)


def index_deposits(events) -> dict:
    """Key deposit events by precommitment hash."""
    return {event.precommitment: event for event in events}
