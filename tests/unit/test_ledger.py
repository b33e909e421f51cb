"""
Unit tests for the durable tier runtime.

Tests cover:
1. Clock behaviour
2. Signature and program dispatch checks
3. All-or-nothing execution (rollback, event buffering)
4. Runtime rules enforced through the invocation context
"""

import pytest

from gavel.core.config import ProtocolConfig
from gavel.core.errors import ErrorCode, error
from gavel.core.events import AuctionCancelled
from gavel.core.state import Clock, Instruction, Ledger, build_transaction
from gavel.core.state.address import AUCTION_PROGRAM_ID
from gavel.core.state.records import AuctionVault
from gavel.crypto import generate_keypair

SCRIPT_PROGRAM_ID = b"\x5c" * 32
OTHER_PROGRAM_ID = b"\x6d" * 32
FUNDS = 10**10


class ScriptProgram:
    """Test program: each instruction name maps to a small script."""

    def process(self, ctx, ix):
        a, b = ix.accounts.get("a"), ix.accounts.get("b")
        amount = ix.args.get("amount", 0)

        if ix.name == "pay":
            ctx.transfer(a, b, amount)
        elif ix.name == "pay_then_fail":
            ctx.transfer(a, b, amount)
            ctx.emit(AuctionCancelled(auction=b, seller=a))
            raise error(ErrorCode.INVALID_PARAMETER, "scripted failure")
        elif ix.name == "pay_then_crash":
            ctx.transfer(a, b, amount)
            raise RuntimeError("scripted crash")
        elif ix.name == "pay_and_emit":
            ctx.transfer(a, b, amount)
            ctx.emit(AuctionCancelled(auction=b, seller=a))
        elif ix.name == "open_vault":
            ctx.create(b, AuctionVault(auction=b, bump=255), payer=a)
        elif ix.name == "drain_vault":
            ctx.debit(b, a, amount)
        elif ix.name == "write_foreign":
            ctx.save(b, AuctionVault(auction=b, bump=1), owner=ix.args["owner"])
        else:
            raise error(ErrorCode.UNKNOWN_INSTRUCTION, ix.name)


def script(name, a, b, **args):
    return Instruction(program_id=SCRIPT_PROGRAM_ID, name=name, accounts={"a": a, "b": b}, args=args)


@pytest.fixture
def world():
    ledger = Ledger(clock=Clock(1_000), programs={SCRIPT_PROGRAM_ID: ScriptProgram()})
    payer, payee = generate_keypair(), generate_keypair()
    ledger.airdrop(payer.identity, FUNDS)
    return ledger, payer, payee


class TestClock:
    def test_advance(self):
        clock = Clock(100)
        clock.advance(50)
        assert clock.now == 150

    def test_cannot_move_backwards(self):
        clock = Clock(100)
        with pytest.raises(ValueError):
            clock.warp_to(99)

    def test_defaults_to_wall_clock(self):
        assert Clock().now > 1_600_000_000


class TestDispatch:
    """Checks that happen before any program code runs."""

    def test_valid_transaction(self, world):
        ledger, payer, payee = world
        success, msg = ledger.execute(build_transaction(script("pay", payer.identity, payee.identity, amount=5), payer))
        assert success, msg
        assert ledger.get_balance(payee.identity) == 5
        assert ledger.transaction_count == 1

    def test_tampered_transaction_rejected(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("pay", payer.identity, payee.identity, amount=5), payer)
        tx.instruction.args["amount"] = 5_000
        success, msg = ledger.execute(tx)
        assert not success
        assert msg.startswith("INVALID_SIGNATURE:")
        assert ledger.get_balance(payee.identity) == 0

    def test_unknown_program(self, world):
        ledger, payer, payee = world
        ix = Instruction(program_id=OTHER_PROGRAM_ID, name="pay")
        success, msg = ledger.execute(build_transaction(ix, payer))
        assert not success
        assert msg.startswith("UNKNOWN_INSTRUCTION:")

    def test_unknown_auction_instruction(self):
        ledger = Ledger(clock=Clock(1_000))
        ix = Instruction(program_id=AUCTION_PROGRAM_ID, name="steal_everything")
        success, msg = ledger.execute(build_transaction(ix, generate_keypair()))
        assert not success
        assert msg.startswith("UNKNOWN_INSTRUCTION:")

    def test_duplicate_rejected(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("pay", payer.identity, payee.identity, amount=5), payer)
        assert ledger.execute(tx)[0]
        success, msg = ledger.execute(tx)
        assert not success
        assert msg.startswith("DUPLICATE_TRANSACTION:")
        assert ledger.get_balance(payee.identity) == 5

    def test_failed_transaction_can_be_resubmitted(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("pay", payer.identity, payee.identity, amount=FUNDS + 1), payer)
        assert not ledger.execute(tx)[0]
        ledger.airdrop(payer.identity, 1)
        success, msg = ledger.execute(tx)
        assert success, msg

    def test_unsigned_transfer(self, world):
        ledger, payer, payee = world
        success, msg = ledger.execute(build_transaction(script("pay", payer.identity, payee.identity, amount=5), payee))
        assert not success
        assert msg.startswith("MISSING_SIGNATURE:")


class TestAtomicity:
    """A failing transaction leaves no trace."""

    def test_program_error_rolls_back(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("pay_then_fail", payer.identity, payee.identity, amount=500), payer)
        success, msg = ledger.execute(tx)
        assert not success
        assert msg.startswith("INVALID_PARAMETER:")
        assert ledger.get_balance(payer.identity) == FUNDS
        assert ledger.get_account(payee.identity) is None
        assert ledger.events == []
        assert ledger.transaction_count == 0

    def test_unexpected_exception_rolls_back_and_propagates(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("pay_then_crash", payer.identity, payee.identity, amount=500), payer)
        with pytest.raises(RuntimeError):
            ledger.execute(tx)
        assert ledger.get_balance(payer.identity) == FUNDS
        assert ledger.get_account(payee.identity) is None

    def test_events_published_on_commit(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("pay_and_emit", payer.identity, payee.identity, amount=1), payer)
        assert ledger.execute(tx)[0]
        assert len(ledger.events_of(AuctionCancelled)) == 1

    def test_insufficient_funds(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("pay", payer.identity, payee.identity, amount=FUNDS + 1), payer)
        success, msg = ledger.execute(tx)
        assert msg.startswith("INSUFFICIENT_FUNDS:")
        assert ledger.get_balance(payer.identity) == FUNDS


class TestRuntimeRules:
    """Ownership, rent and uniqueness rules of the invocation context."""

    @pytest.fixture
    def vault(self, world):
        ledger, payer, _ = world
        address = b"\x77" * 32
        tx = build_transaction(script("open_vault", payer.identity, address), payer)
        assert ledger.execute(tx)[0]
        return address

    def test_create_charges_rent(self, world, vault):
        ledger, payer, _ = world
        rent = ProtocolConfig().minimum_balance(AuctionVault.size())
        assert ledger.get_balance(vault) == rent
        assert ledger.get_balance(payer.identity) == FUNDS - rent
        assert ledger.get_account(vault).owner == SCRIPT_PROGRAM_ID

    def test_create_twice_fails(self, world, vault):
        ledger, payer, _ = world
        success, msg = ledger.execute(build_transaction(script("open_vault", payer.identity, vault), payer))
        assert msg.startswith("ACCOUNT_ALREADY_EXISTS:")

    def test_debit_keeps_rent_floor(self, world, vault):
        ledger, payer, _ = world
        ledger.airdrop(vault, 1_000)
        assert ledger.execute(build_transaction(script("drain_vault", payer.identity, vault, amount=1_000)))[0]
        success, msg = ledger.execute(build_transaction(script("drain_vault", payer.identity, vault, amount=1)))
        assert msg.startswith("INSUFFICIENT_VAULT_BALANCE:")

    def test_cannot_debit_wallet_as_program(self, world):
        ledger, payer, payee = world
        tx = build_transaction(script("drain_vault", payee.identity, payer.identity, amount=1))
        success, msg = ledger.execute(tx)
        assert msg.startswith("INVALID_ACCOUNT_OWNER:")

    def test_cannot_write_foreign_account(self, world, vault):
        ledger, payer, _ = world
        tx = build_transaction(script("write_foreign", payer.identity, vault, owner=OTHER_PROGRAM_ID))
        success, msg = ledger.execute(tx)
        assert msg.startswith("INVALID_ACCOUNT_OWNER:")


class TestStats:
    def test_airdrop_and_stats(self, world):
        ledger, payer, payee = world
        ledger.airdrop(payee.identity, 7)
        stats = ledger.stats()
        assert stats["total_lamports"] == FUNDS + 7
        assert stats["delegated"] == 0
        assert "Ledger(" in repr(ledger)
