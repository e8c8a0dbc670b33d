"""Tests for AccountService bookkeeping and history retrieval."""

import asyncio

import pytest

from privpool.backends.memory import InMemoryDataSource
from privpool.core.account import Account
from privpool.core.account_service import AccountService
from privpool.core.commitment import hash_nullifier
from privpool.core.secrets import derive_withdrawal_secrets
from privpool.exceptions import AccountError
from privpool.models.schemas import RagequitEvent, WithdrawalEvent

from conftest import DEPOSITOR, TEST_SCOPE, TEST_SEED, make_deposit_event, mock_tx_hash


@pytest.fixture
def data_source():
    return InMemoryDataSource()


@pytest.fixture
def service(data_source, settings):
    return AccountService(data_source, seed=TEST_SEED, settings=settings)


def deposit_events(service, indices, scope=TEST_SCOPE):
    events = {}
    for i in indices:
        precommitment = service.create_deposit_secrets(scope, i).precommitment
        events[precommitment] = make_deposit_event(
            value=1000 + i,
            label=100 + i,
            precommitment=precommitment,
            block_number=2000 + i,
            tx_hash=mock_tx_hash(i),
        )
    return events


def withdrawal_event(spent, withdrawn, tx_index, new_commitment=0):
    return WithdrawalEvent(
        withdrawn=withdrawn,
        spent_nullifier=spent.nullifier_hash,
        new_commitment=new_commitment,
        block_number=3000 + tx_index,
        transaction_hash=mock_tx_hash(500 + tx_index),
    )


def ragequit_event(label, spent_nullifier=0, value=1000):
    return RagequitEvent(
        ragequitter=DEPOSITOR,
        commitment=1,
        label=label,
        spent_nullifier=spent_nullifier,
        value=value,
        block_number=4000,
        transaction_hash=mock_tx_hash(900),
    )


class TestConstruction:
    """Tests for service construction."""

    def test_requires_seed_or_account(self, data_source):
        with pytest.raises(AccountError):
            AccountService(data_source)

    def test_rejects_both(self, data_source):
        with pytest.raises(AccountError):
            AccountService(data_source, seed=TEST_SEED, account=Account.from_seed(TEST_SEED))

    def test_from_existing_account(self, data_source, settings):
        account = Account.from_seed(TEST_SEED)
        service = AccountService(data_source, account=account, settings=settings)

        assert service.account is account

    def test_new_account_has_no_scopes(self, service):
        assert service.account.pool_accounts == {}


class TestProcessDepositEvents:
    """Tests for storing reconciliation results."""

    def test_consecutive_deposits(self, service):
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0, 1, 2]))

        accounts = service.account.pool_accounts[TEST_SCOPE]
        assert [a.deposit.value for a in accounts] == [1000, 1001, 1002]

    def test_empty_events_leave_scope_absent(self, service):
        """Test the distinction between 'never reconciled' and 'no deposits'."""
        assert service.process_deposit_events(TEST_SCOPE, {}) is None
        assert TEST_SCOPE not in service.account.pool_accounts

    def test_no_owned_deposits_creates_empty_entry(self, service):
        events = deposit_events(service, [0], scope=TEST_SCOPE + 1)

        service.process_deposit_events(TEST_SCOPE, events)

        assert service.account.pool_accounts[TEST_SCOPE] == []

    def test_scopes_independent(self, service):
        """Test that each scope keeps its own scan."""
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0, 1]))
        service.process_deposit_events(TEST_SCOPE + 1, deposit_events(service, [0], scope=TEST_SCOPE + 1))

        assert len(service.account.pool_accounts[TEST_SCOPE]) == 2
        assert len(service.account.pool_accounts[TEST_SCOPE + 1]) == 1

    def test_miss_limit_from_settings(self, data_source, settings):
        tuned = settings.model_copy(update={"max_consecutive_misses": 20})
        service = AccountService(data_source, seed=TEST_SEED, settings=tuned)

        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0, 1, 15]))

        assert len(service.account.pool_accounts[TEST_SCOPE]) == 3


class TestSecrets:
    """Tests for secret helpers."""

    def test_next_deposit_index(self, service):
        """Test that the default deposit index is the number of known deposits."""
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0, 1]))

        assert service.create_deposit_secrets(TEST_SCOPE) == service.create_deposit_secrets(TEST_SCOPE, 2)

    def test_withdrawal_secrets_use_label_and_count(self, service):
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0]))
        deposit = service.account.pool_accounts[TEST_SCOPE][0].deposit

        assert service.create_withdrawal_secrets(deposit) == derive_withdrawal_secrets(
            service.account.master_keys, deposit.label, 0
        )

    def test_withdrawal_secrets_unknown_commitment(self, service):
        other = AccountService(InMemoryDataSource(), seed=b"\x09" * 64)
        pool_account = other.add_pool_account(TEST_SCOPE, 10, 1, 2, 3, 4, "0x01")

        with pytest.raises(AccountError):
            service.create_withdrawal_secrets(pool_account.deposit)


class TestBookkeeping:
    """Tests for manual additions and spendable commitments."""

    def test_add_pool_account(self, service):
        secrets = service.create_deposit_secrets(TEST_SCOPE)

        pool_account = service.add_pool_account(
            TEST_SCOPE, 500, secrets.nullifier, secrets.secret, 77, 10, mock_tx_hash(1)
        )

        assert service.account.pool_accounts[TEST_SCOPE] == [pool_account]
        assert pool_account.deposit.precommitment_hash == secrets.precommitment

    def test_add_withdrawal_commitment(self, service):
        pool_account = service.add_pool_account(TEST_SCOPE, 500, 1, 2, 77, 10, mock_tx_hash(1))
        nullifier, secret = service.create_withdrawal_secrets(pool_account.deposit)

        child = service.add_withdrawal_commitment(pool_account.deposit, 300, nullifier, secret, 11, mock_tx_hash(2))

        assert pool_account.latest == child
        assert child.label == 77

    def test_spent_parent_rejected(self, service):
        """Test that a commitment cannot be spent twice."""
        pool_account = service.add_pool_account(TEST_SCOPE, 500, 1, 2, 77, 10, mock_tx_hash(1))
        service.add_withdrawal_commitment(pool_account.deposit, 300, 5, 6, 11, mock_tx_hash(2))

        with pytest.raises(AccountError):
            service.add_withdrawal_commitment(pool_account.deposit, 100, 7, 8, 12, mock_tx_hash(3))

    def test_single_ragequit(self, service):
        service.add_pool_account(TEST_SCOPE, 500, 1, 2, 77, 10, mock_tx_hash(1))

        service.add_ragequit_to_account(77, ragequit_event(77))

        with pytest.raises(AccountError):
            service.add_ragequit_to_account(77, ragequit_event(77))

    def test_ragequit_unknown_label(self, service):
        with pytest.raises(AccountError):
            service.add_ragequit_to_account(5, ragequit_event(5))

    def test_ragequit_label_searched_in_scope(self, service):
        service.add_pool_account(TEST_SCOPE, 500, 1, 2, 77, 10, mock_tx_hash(1))

        with pytest.raises(AccountError):
            service.add_ragequit_to_account(77, ragequit_event(77), scope=TEST_SCOPE + 1)

        assert service.add_ragequit_to_account(77, ragequit_event(77), scope=TEST_SCOPE).label == 77

    def test_spendable_commitments(self, service):
        """Test that only valued, non-ragequit accounts are spendable."""
        a = service.add_pool_account(TEST_SCOPE, 500, 1, 2, 77, 10, mock_tx_hash(1))
        b = service.add_pool_account(TEST_SCOPE, 500, 3, 4, 78, 10, mock_tx_hash(2))
        c = service.add_pool_account(TEST_SCOPE, 500, 5, 6, 79, 10, mock_tx_hash(3))
        service.add_withdrawal_commitment(b.deposit, 0, 7, 8, 11, mock_tx_hash(4))
        service.add_ragequit_to_account(79, ragequit_event(79))

        spendable = service.get_spendable_commitments()

        assert spendable == {TEST_SCOPE: [a.deposit]}
        assert c.ragequit is not None


class TestLinking:
    """Tests for attaching withdrawals and ragequits."""

    def test_withdrawal_chain(self, service):
        """Test that successive withdrawals are followed through change commitments."""
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0]))
        pool_account = service.account.pool_accounts[TEST_SCOPE][0]
        deposit = pool_account.deposit

        first_nullifier, first_secret = derive_withdrawal_secrets(service.account.master_keys, deposit.label, 0)
        first_change_nullifier_hash = hash_nullifier(first_nullifier)
        events = [
            withdrawal_event(deposit, 400, 0),
            WithdrawalEvent(
                withdrawn=100,
                spent_nullifier=first_change_nullifier_hash,
                new_commitment=0,
                block_number=3001,
                transaction_hash=mock_tx_hash(501),
            ),
        ]

        linked = service.link_withdrawals(TEST_SCOPE, events)

        assert linked == 2
        assert [c.value for c in pool_account.withdrawals] == [600, 500]
        assert pool_account.withdrawals[0].nullifier == first_nullifier
        assert pool_account.withdrawals[0].secret == first_secret
        assert pool_account.latest.tx_hash == mock_tx_hash(501)

    def test_unrelated_withdrawal_ignored(self, service):
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0]))
        event = WithdrawalEvent(
            withdrawn=1, spent_nullifier=42, new_commitment=0, block_number=1, transaction_hash="0x01"
        )

        assert service.link_withdrawals(TEST_SCOPE, [event]) == 0

    def test_duplicate_spend_linked_once(self, service):
        """Test that one commitment is consumed by at most one withdrawal."""
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0]))
        deposit = service.account.pool_accounts[TEST_SCOPE][0].deposit

        linked = service.link_withdrawals(
            TEST_SCOPE, [withdrawal_event(deposit, 400, 0), withdrawal_event(deposit, 100, 1)]
        )

        assert linked == 1
        assert service.account.pool_accounts[TEST_SCOPE][0].latest.value == 600

    def test_ragequit_by_deposit_nullifier(self, service):
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0, 1]))
        accounts = service.account.pool_accounts[TEST_SCOPE]

        linked = service.link_ragequits(
            TEST_SCOPE,
            [ragequit_event(101, accounts[1].deposit.nullifier_hash), ragequit_event(555, hash_nullifier(555))],
        )

        assert linked == 1
        assert accounts[0].ragequit is None
        assert accounts[1].ragequit.label == 101

    def test_ragequit_with_foreign_nullifier_not_linked(self, service):
        """Test that a matching label alone does not attach a ragequit."""
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0]))
        accounts = service.account.pool_accounts[TEST_SCOPE]

        linked = service.link_ragequits(TEST_SCOPE, [ragequit_event(100, hash_nullifier(12345))])

        assert linked == 0
        assert accounts[0].ragequit is None

    def test_ragequit_only_in_linked_scope(self, service):
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0]))
        deposit = service.account.pool_accounts[TEST_SCOPE][0].deposit

        linked = service.link_ragequits(TEST_SCOPE + 1, [ragequit_event(100, deposit.nullifier_hash)])

        assert linked == 0
        assert service.account.pool_accounts[TEST_SCOPE][0].ragequit is None

    def test_second_ragequit_ignored(self, service):
        service.process_deposit_events(TEST_SCOPE, deposit_events(service, [0]))
        deposit = service.account.pool_accounts[TEST_SCOPE][0].deposit
        first = ragequit_event(100, deposit.nullifier_hash)

        linked = service.link_ragequits(TEST_SCOPE, [first, ragequit_event(100, deposit.nullifier_hash, value=5)])

        assert linked == 1
        assert service.account.pool_accounts[TEST_SCOPE][0].ragequit == first


class TestRetrieveHistory:
    """Tests for end-to-end history rebuild from a data source."""

    def test_retrieve_history(self, service, data_source, test_pool):
        events = deposit_events(service, [0, 2])
        data_source.add_deposits(TEST_SCOPE, events.values())

        asyncio.run(service.retrieve_history([test_pool]))

        accounts = service.account.pool_accounts[TEST_SCOPE]
        assert [a.deposit.value for a in accounts] == [1000, 1002]

        deposit_zero = accounts[0].deposit
        data_source.add_withdrawals(TEST_SCOPE, [withdrawal_event(deposit_zero, 250, 0)])
        data_source.add_ragequits(TEST_SCOPE, [ragequit_event(102, accounts[1].deposit.nullifier_hash)])

        asyncio.run(service.retrieve_history([test_pool]))

        accounts = service.account.pool_accounts[TEST_SCOPE]
        assert accounts[0].latest.value == 750
        assert accounts[1].ragequit is not None
        assert service.get_spendable_commitments() == {TEST_SCOPE: [accounts[0].latest]}

    def test_retrieve_history_idempotent(self, service, data_source, test_pool):
        events = deposit_events(service, [0])
        data_source.add_deposits(TEST_SCOPE, events.values())

        asyncio.run(service.retrieve_history([test_pool]))
        spent = service.account.pool_accounts[TEST_SCOPE][0].deposit
        data_source.add_withdrawals(TEST_SCOPE, [withdrawal_event(spent, 100, 0)])

        asyncio.run(service.retrieve_history([test_pool]))
        asyncio.run(service.retrieve_history([test_pool]))

        pool_account = service.account.pool_accounts[TEST_SCOPE][0]
        assert len(pool_account.withdrawals) == 1

    def test_empty_pool_not_recorded(self, service, test_pool):
        asyncio.run(service.retrieve_history([test_pool]))

        assert TEST_SCOPE not in service.account.pool_accounts
