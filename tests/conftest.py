"""
Shared fixtures: a funded durable ledger with a seller, three bidders and a
royalty-bearing asset, plus helpers that submit signed instructions.
"""

import pytest

from gavel.core.auction import instructions as ix
from gavel.core.config import ProtocolConfig
from gavel.core.errors import ErrorCode
from gavel.core.metadata import encode_metadata
from gavel.core.state import AuctionState, AuctionVault, BidderDeposit, Clock, Ledger, build_transaction
from gavel.core.state.address import custody_address, deposit_address, vault_address
from gavel.core.state.assets import AssetAccount
from gavel.crypto import generate_keypair

GENESIS_TIME = 1_700_000_000
AIRDROP = 10**12
ROYALTY_BPS = 500


class AuctionHarness:
    """One seller, one asset, three bidders on a fresh Ledger."""

    def __init__(self, config=None, storage_manager=None, royalties=True):
        self.config = config or ProtocolConfig()
        self.ledger = Ledger(config=self.config, storage_manager=storage_manager, clock=Clock(GENESIS_TIME))

        self.seller = generate_keypair()
        self.alice = generate_keypair()
        self.bob = generate_keypair()
        self.carol = generate_keypair()
        self.creator = generate_keypair()
        for kp in (self.seller, self.alice, self.bob, self.carol):
            self.ledger.airdrop(kp.identity, AIRDROP)

        self.mint = self.ledger.create_asset(self.seller.identity)
        if royalties:
            self.ledger.set_metadata(
                self.mint,
                encode_metadata(self.mint, ROYALTY_BPS, [(self.creator.identity, 100)], name="Lot"),
            )

        self.auction = ix.derive_auction(self.seller.identity, self.mint)
        self.vault = vault_address(self.auction)[0]

    # -------------------------------------------------------------------------
    # Submission
    # -------------------------------------------------------------------------

    def run(self, instruction, *signers, tier=None):
        return (tier or self.ledger).execute(build_transaction(instruction, *signers))

    def ok(self, instruction, *signers, tier=None):
        success, msg = self.run(instruction, *signers, tier=tier)
        assert success, msg
        return success

    def fails(self, instruction, *signers, code: ErrorCode, tier=None) -> str:
        success, msg = self.run(instruction, *signers, tier=tier)
        assert not success, f"expected {code.name}"
        assert msg.startswith(code.name + ":"), msg
        return msg

    # -------------------------------------------------------------------------
    # Common steps
    # -------------------------------------------------------------------------

    def create(self, reserve=100, duration=300, increment=10, extension_seconds=0, extension_window=0):
        self.ok(
            ix.create_auction(
                self.seller.identity, self.mint, reserve, duration,
                extension_seconds, extension_window, increment,
            ),
            self.seller,
        )

    def start(self):
        self.ok(ix.start_auction(self.seller.identity, self.auction), self.seller)

    def create_and_start(self, **kwargs):
        self.create(**kwargs)
        self.start()

    def deposit(self, kp, amount):
        self.ok(ix.deposit(kp.identity, self.auction, amount), kp)

    def bid(self, kp, amount, tier=None):
        self.ok(ix.place_bid(kp.identity, self.auction, amount), kp, tier=tier)

    def end(self, tier=None):
        state = self.state(tier)
        if self.ledger.clock.now < state.end_time:
            self.ledger.clock.warp_to(state.end_time)
        self.ok(ix.end_auction(self.auction), self.carol, tier=tier)

    def settle(self, crank=None):
        crank = crank or self.carol
        self.ok(ix.settle_auction(crank.identity, self.auction, [self.creator.identity]), crank)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def state(self, tier=None) -> AuctionState:
        return (tier or self.ledger).get_record(self.auction, AuctionState)

    def balance(self, kp) -> int:
        return self.ledger.get_balance(kp.identity)

    def deposit_amount(self, kp):
        entry = self.ledger.get_record(deposit_address(self.auction, kp.identity)[0], BidderDeposit)
        return entry.amount if entry else None

    def vault_excess(self) -> int:
        floor = self.config.minimum_balance(AuctionVault.size())
        return self.ledger.get_balance(self.vault) - floor

    def asset_amount(self, owner: bytes) -> int:
        holding = self.ledger.get_record(custody_address(owner, self.mint), AssetAccount)
        return holding.amount if holding else 0

    def total_lamports(self) -> int:
        return self.ledger.stats()["total_lamports"]


@pytest.fixture
def harness():
    """Fresh auction world with royalty metadata (5% to one creator)."""
    return AuctionHarness()


@pytest.fixture
def plain_harness():
    """Auction world whose asset has no metadata record."""
    return AuctionHarness(royalties=False)


@pytest.fixture
def active(harness):
    """Auction created (reserve 100, 300s, increment 10) and started."""
    harness.create_and_start()
    return harness


@pytest.fixture
def make_harness():
    """Factory for worlds with a custom configuration or storage."""
    return AuctionHarness
