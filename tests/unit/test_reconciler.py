"""Tests for gap-tolerant deposit reconciliation."""

import logging

import pytest

from privpool.core.reconciler import ScanState, advance, index_deposits, is_exhausted, reconcile, scan
from privpool.core.secrets import derive_deposit_secrets

from conftest import TEST_SCOPE, make_deposit_event, mock_tx_hash


def deposits_at(master_keys, indices, scope=TEST_SCOPE):
    """Events for deposits made at the given derivation indices."""
    events = {}
    for i in indices:
        precommitment = derive_deposit_secrets(master_keys, scope, i).precommitment
        events[precommitment] = make_deposit_event(
            value=1000 + i,
            label=100 + i,
            precommitment=precommitment,
            block_number=2000 + i,
            tx_hash=mock_tx_hash(i),
        )
    return events


def values(accounts):
    return [a.deposit.value for a in accounts]


class TestReconcileScenarios:
    """Index layouts the scan must handle."""

    def test_consecutive_deposits(self, master_keys):
        """Test deposits at 0, 1, 2 are all found with their event data."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 1, 2]))

        assert len(accounts) == 3
        for i, account in enumerate(accounts):
            assert account.deposit.value == 1000 + i
            assert account.deposit.label == 100 + i
            assert account.deposit.block_number == 2000 + i
            assert account.deposit.tx_hash == mock_tx_hash(i)

    def test_small_gap(self, master_keys):
        """Test deposits at 0, 1, 5, 6 survive a gap of three."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 1, 5, 6]))

        assert values(accounts) == [1000, 1001, 1005, 1006]

    def test_gap_beyond_limit(self, master_keys):
        """Test that index 15 is never reached after 0, 1."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 1, 15]))

        assert values(accounts) == [1000, 1001]

    def test_hits_reset_miss_counter(self, master_keys):
        """Test deposits at 0, 5, 10, 20 are all found."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 5, 10, 20]))

        assert values(accounts) == [1000, 1005, 1010, 1020]

    def test_empty_events(self, master_keys):
        """Test that no events means no result at all."""
        assert reconcile(master_keys, TEST_SCOPE, {}) is None

    def test_trailing_deposit_unreachable(self, master_keys):
        """Test deposits at 0, 1, 2, 20 yield only the first three."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 1, 2, 20]))

        assert values(accounts) == [1000, 1001, 1002]

    def test_alternating_gaps(self, master_keys):
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 2, 4, 6]))

        assert values(accounts) == [1000, 1002, 1004, 1006]

    def test_gap_of_exactly_limit_minus_one(self, master_keys):
        """Test that nine consecutive holes are still tolerated."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 10]))

        assert values(accounts) == [1000, 1010]

    def test_gap_of_exactly_limit(self, master_keys):
        """Test that ten consecutive holes end the scan."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 11]))

        assert values(accounts) == [1000]

    def test_foreign_deposits_only(self, master_keys):
        """Test that events owned by someone else yield an empty list, not None."""
        events = deposits_at(master_keys, [0, 1], scope=TEST_SCOPE + 1)

        assert reconcile(master_keys, TEST_SCOPE, events) == []

    def test_derived_secrets_attached(self, master_keys):
        """Test each account carries the nullifier and secret of its index."""
        accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 1]))

        for i, account in enumerate(accounts):
            expected = derive_deposit_secrets(master_keys, TEST_SCOPE, i)
            assert account.deposit.nullifier == expected.nullifier
            assert account.deposit.secret == expected.secret

    def test_custom_miss_limit(self, master_keys):
        """Test that the miss limit is configurable."""
        events = deposits_at(master_keys, [0, 1, 15])

        assert values(reconcile(master_keys, TEST_SCOPE, events, miss_limit=20)) == [1000, 1001, 1015]
        assert values(reconcile(master_keys, TEST_SCOPE, events, miss_limit=1)) == [1000, 1001]

    def test_invalid_miss_limit(self, master_keys):
        with pytest.raises(ValueError):
            reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0]), miss_limit=0)

    def test_commitment_mismatch_logged(self, master_keys, caplog):
        """Test that a disagreeing emitted commitment is logged, not fatal."""
        with caplog.at_level(logging.WARNING, logger="privpool.core.reconciler"):
            accounts = reconcile(master_keys, TEST_SCOPE, deposits_at(master_keys, [0]))

        assert len(accounts) == 1
        assert "differs from the locally computed" in caplog.text

    def test_idempotent(self, master_keys):
        """Test that reconciling the same full set twice gives the same result."""
        events = deposits_at(master_keys, [0, 3, 4])

        first = reconcile(master_keys, TEST_SCOPE, events)
        second = reconcile(master_keys, TEST_SCOPE, events)

        assert [a.deposit for a in first] == [a.deposit for a in second]


class TestScanFold:
    """Tests for the step function and termination predicate."""

    def test_miss_increments_counter(self, master_keys):
        state = advance(ScanState(), master_keys, TEST_SCOPE, {})

        assert state.index == 1
        assert state.consecutive_misses == 1
        assert state.results == ()

    def test_hit_resets_counter(self, master_keys):
        events = deposits_at(master_keys, [4])
        state = ScanState(index=4, consecutive_misses=4)

        state = advance(state, master_keys, TEST_SCOPE, events)

        assert state.index == 5
        assert state.consecutive_misses == 0
        assert len(state.results) == 1
        assert state.found_indices == (4,)

    def test_is_exhausted(self):
        assert not is_exhausted(ScanState(consecutive_misses=9), 10)
        assert is_exhausted(ScanState(consecutive_misses=10), 10)

    def test_scan_stops_after_limit(self, master_keys):
        """Test that the final index is last hit + miss limit + 1."""
        state = scan(master_keys, TEST_SCOPE, deposits_at(master_keys, [0, 3]))

        assert state.found_indices == (0, 3)
        assert state.index == 14
        assert state.consecutive_misses == 10

    def test_index_deposits(self, master_keys):
        events = list(deposits_at(master_keys, [0, 1]).values())

        indexed = index_deposits(events)

        assert set(indexed) == {e.precommitment for e in events}
