"""
Durable-tier persistence: a ledger reopened from its data directory resumes
exactly where it stopped.
"""

import pytest

from gavel.core.auction import instructions as ix
from gavel.core.config import ProtocolConfig
from gavel.core.errors import ErrorCode
from gavel.core.state import AuctionStatus, Clock, FastTier, Ledger, build_transaction
from gavel.core.storage import StorageManager


def reopen(h, data_dir):
    """Close the harness ledger and swap in one loaded from disk."""
    h.ledger.close()
    h.ledger = Ledger(config=h.config, storage_manager=StorageManager(data_dir), clock=Clock(0))
    return h.ledger


@pytest.fixture
def persisted(make_harness, tmp_path):
    h = make_harness(storage_manager=StorageManager(tmp_path))
    h.data_dir = tmp_path
    yield h
    h.ledger.close()


class TestReload:
    def test_state_survives_restart(self, persisted):
        h = persisted
        h.create_and_start()
        h.deposit(h.alice, 400)
        h.bid(h.alice, 150)
        before = h.ledger.stats()
        accounts_before = {a: acc.copy() for a, acc in h.ledger.accounts.items()}

        reopened = reopen(h, h.data_dir)

        assert reopened.stats() == before
        assert set(reopened.accounts) == set(accounts_before)
        for address, account in accounts_before.items():
            loaded = reopened.get_account(address)
            assert (loaded.owner, loaded.lamports, loaded.data) == (account.owner, account.lamports, account.data)
        assert h.state().current_bid == 150
        assert h.deposit_amount(h.alice) == 400

    def test_clock_restored(self, persisted):
        h = persisted
        h.create_and_start()
        h.ledger.clock.advance(120)
        h.deposit(h.alice, 10)
        now = h.ledger.clock.now

        reopen(h, h.data_dir)
        assert h.ledger.clock.now == now

    def test_failed_transactions_not_persisted(self, persisted):
        h = persisted
        h.create_and_start()
        h.fails(ix.place_bid(h.alice.identity, h.auction, 1), h.alice, code=ErrorCode.BELOW_RESERVE)
        count = h.ledger.transaction_count

        reopen(h, h.data_dir)
        assert h.ledger.transaction_count == count
        assert h.state().bid_count == 0

    def test_committed_transaction_rejected_after_restart(self, persisted):
        h = persisted
        h.create_and_start()
        tx = build_transaction(ix.deposit(h.alice.identity, h.auction, 100), h.alice)
        assert h.ledger.execute(tx)[0]

        reopen(h, h.data_dir)
        success, msg = h.ledger.execute(tx)
        assert msg.startswith("DUPLICATE_TRANSACTION:")
        assert h.deposit_amount(h.alice) == 100


class TestResume:
    def test_finish_auction_after_restart(self, persisted):
        h = persisted
        h.create_and_start()
        h.deposit(h.alice, 300)
        h.deposit(h.bob, 300)
        h.bid(h.alice, 150)
        h.bid(h.bob, 200)

        reopen(h, h.data_dir)
        total = h.total_lamports()
        h.end()
        h.settle()
        h.ok(ix.claim_refund(h.alice.identity, h.auction), h.alice)
        h.ok(ix.claim_refund(h.bob.identity, h.auction), h.bob)
        h.ok(ix.close_auction(h.seller.identity, h.auction), h.seller)
        assert h.total_lamports() == total

        reopen(h, h.data_dir)
        assert h.ledger.get_account(h.auction) is None
        assert h.ledger.get_account(h.vault) is None
        assert h.asset_amount(h.bob.identity) == 1

    def test_delegated_auction_survives_restart(self, persisted):
        h = persisted
        h.create_and_start()
        h.ok(ix.delegate_auction(h.seller.identity, h.auction), h.seller)

        reopen(h, h.data_dir)
        assert h.ledger.is_delegated(h.auction)
        fast = FastTier(h.ledger)
        h.bid(h.alice, 150, tier=fast)
        h.end(tier=fast)
        h.ok(ix.undelegate_auction(h.seller.identity, h.auction), h.seller, tier=fast)

        reopen(h, h.data_dir)
        state = h.state()
        assert state.status == AuctionStatus.ENDED
        assert state.highest_bidder == h.alice.identity

    def test_lower_extension_cap_after_restart(self, persisted):
        h = persisted
        h.create_and_start(duration=300, extension_seconds=60, extension_window=60)
        start = h.state().start_time
        h.ledger.clock.warp_to(start + 290)
        h.bid(h.alice, 100)
        h.ledger.clock.warp_to(start + 350)
        h.bid(h.bob, 110)
        assert h.state().end_time == start + 420

        h.config = ProtocolConfig(max_extension_seconds=30)
        reopen(h, h.data_dir)
        h.ledger.clock.warp_to(start + 410)
        h.bid(h.alice, 120)
        assert h.state().end_time == start + 420
