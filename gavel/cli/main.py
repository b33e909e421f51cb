"""
Gavel CLI - Command Line Interface for the Gavel auction runtime

Main entry point for all CLI commands.
"""

import json
import click
from pathlib import Path

from gavel import __version__
from gavel.utils.logger import setup_logging


def _parse_identity(value: str, name: str) -> bytes:
    from gavel.crypto import hex_to_bytes
    from gavel.utils.validation import validate_hex_string

    valid, err = validate_hex_string(value, name, expected_bytes=32)
    if not valid:
        raise click.BadParameter(err, param_hint=name)
    return hex_to_bytes(value)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default="~/.gavel", help="Data directory")
@click.option("--config", "config_path", default=None, help="JSON config file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, data_dir, config_path):
    """Gavel - escrowed ascending auctions on a two-tier ledger"""
    import logging
    from gavel.core.config import load_config

    level = logging.DEBUG if debug else logging.WARNING
    setup_logging(level=level)

    ctx.ensure_object(dict)
    ctx.obj["data_dir"] = Path(data_dir).expanduser()
    try:
        ctx.obj["config"] = load_config(config_path)
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}")


# =============================================================================
# Key Commands
# =============================================================================


@cli.group()
def keys():
    """Key management commands"""
    pass


@keys.command("generate")
@click.option("--out", default=None, help="Write the keypair to this JSON file")
def keys_generate(out):
    """Generate a new secp256k1 keypair"""
    from gavel.crypto import generate_keypair

    kp = generate_keypair()
    data = {
        "identity": kp.address,
        "public_key": kp.public_key_hex,
        "private_key": kp.private_key_hex,
    }

    if out:
        path = Path(out).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2))
        click.echo(f"✓ Keypair saved to {path}")
    click.echo(f"  Identity: {data['identity']}")
    click.echo(f"  Public key: {data['public_key']}")


# =============================================================================
# Address Commands
# =============================================================================


@cli.group()
def address():
    """Derive deterministic record addresses"""
    pass


def _echo_address(label: str, derived) -> None:
    from gavel.crypto import bytes_to_hex

    addr, bump = derived
    click.echo(f"{label}: {bytes_to_hex(addr)} (bump {bump})")


@address.command("auction")
@click.argument("seller")
@click.argument("mint")
def address_auction(seller, mint):
    """Auction record address for SELLER and asset MINT"""
    from gavel.core.state.address import auction_address

    _echo_address("auction", auction_address(_parse_identity(seller, "seller"), _parse_identity(mint, "mint")))


@address.command("vault")
@click.argument("auction")
def address_vault(auction):
    """Escrow vault address of AUCTION"""
    from gavel.core.state.address import vault_address

    _echo_address("vault", vault_address(_parse_identity(auction, "auction")))


@address.command("deposit")
@click.argument("auction")
@click.argument("bidder")
def address_deposit(auction, bidder):
    """Deposit entry address of BIDDER in AUCTION"""
    from gavel.core.state.address import deposit_address

    _echo_address("deposit", deposit_address(_parse_identity(auction, "auction"), _parse_identity(bidder, "bidder")))


@address.command("session")
@click.argument("auction")
@click.argument("bidder")
def address_session(auction, bidder):
    """Session entry address of BIDDER in AUCTION"""
    from gavel.core.state.address import session_address

    _echo_address("session", session_address(_parse_identity(auction, "auction"), _parse_identity(bidder, "bidder")))


# =============================================================================
# Metadata Commands
# =============================================================================


@cli.group()
def metadata():
    """Royalty metadata tools"""
    pass


@metadata.command("decode")
@click.argument("data_hex")
@click.pass_context
def metadata_decode(ctx, data_hex):
    """Decode a raw royalty metadata record given as hex"""
    from gavel.core.metadata import parse_metadata
    from gavel.crypto import bytes_to_hex, hex_to_bytes

    try:
        raw = hex_to_bytes(data_hex)
    except ValueError:
        raise click.BadParameter("not valid hex", param_hint="data_hex")

    meta, err = parse_metadata(raw, ctx.obj["config"].max_creators)
    if meta is None:
        raise click.ClickException(f"Invalid metadata: {err}")

    click.echo(json.dumps({
        "mint": bytes_to_hex(meta.mint),
        "update_authority": bytes_to_hex(meta.update_authority),
        "name": meta.name,
        "symbol": meta.symbol,
        "uri": meta.uri,
        "seller_fee_basis_points": meta.seller_fee_basis_points,
        "creators": [
            {"address": bytes_to_hex(c.address), "verified": c.verified, "share": c.share}
            for c in meta.creators
        ],
    }, indent=2))


# =============================================================================
# Config / Ledger Commands
# =============================================================================


@cli.group("config")
def config_group():
    """Configuration commands"""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx):
    """Print the effective configuration"""
    click.echo(ctx.obj["config"].model_dump_json(indent=2))


@cli.group()
def ledger():
    """Inspect the persisted durable ledger"""
    pass


@ledger.command("stats")
@click.option("--limit", default=10, help="Recent transactions to list")
@click.pass_context
def ledger_stats(ctx, limit):
    """Show account and transaction statistics"""
    from gavel.core.state import Ledger
    from gavel.core.storage import StorageManager
    from gavel.crypto import bytes_to_hex

    storage = StorageManager(ctx.obj["data_dir"])
    durable = Ledger(config=ctx.obj["config"], storage_manager=storage)
    try:
        for name, value in durable.stats().items():
            click.echo(f"  {name}: {value}")
        recent = storage.recent_transactions(limit)
        if recent:
            click.echo("  Recent transactions:")
        for tx_hash, instruction, clock in recent:
            click.echo(f"    {bytes_to_hex(tx_hash)[:18]}... {instruction} @ {clock}")
    finally:
        durable.close()


# =============================================================================
# Demo Command
# =============================================================================


class _DemoWorld:
    """Seller, two bidders and one royalty-bearing asset on a fresh ledger."""

    def __init__(self, durable):
        from gavel.core.metadata import encode_metadata
        from gavel.crypto import generate_keypair

        self.ledger = durable
        self.seller = generate_keypair()
        self.alice = generate_keypair()
        self.bob = generate_keypair()
        self.creator = generate_keypair()
        for kp in (self.seller, self.alice, self.bob):
            durable.airdrop(kp.identity, 100_000_000_000)

        self.mint = durable.create_asset(self.seller.identity)
        durable.set_metadata(
            self.mint,
            encode_metadata(self.mint, 500, [(self.creator.identity, 100)], name="Demo Lot", symbol="LOT"),
        )

    def run(self, instruction, *signers, tier=None):
        from gavel.core.state import build_transaction

        ok, msg = (tier or self.ledger).execute(build_transaction(instruction, *signers))
        label = instruction.name
        if ok:
            click.echo(f"  ✓ {label}")
        else:
            click.echo(f"  ✗ {label}: {msg}")
        return ok

    def balances(self):
        click.echo("  Balances:")
        for name in ("seller", "alice", "bob", "creator"):
            kp = getattr(self, name)
            click.echo(f"    {name:<8} {self.ledger.get_balance(kp.identity)}")


def _demo_settle(world, ix, auction):
    world.run(ix.place_bid(world.alice.identity, auction, 1_000), world.alice)
    world.run(ix.place_bid(world.bob.identity, auction, 1_500), world.bob)
    world.ledger.clock.advance(301)
    world.run(ix.end_auction(auction), world.seller)
    world.run(ix.settle_auction(world.seller.identity, auction, [world.creator.identity]), world.seller)
    world.run(ix.claim_refund_for(world.alice.identity, auction), world.seller)
    world.run(ix.close_auction(world.seller.identity, auction), world.seller)


def _demo_forfeit(world, ix, auction):
    world.run(ix.place_bid(world.bob.identity, auction, 5_000), world.bob)
    world.ledger.clock.advance(301)
    world.run(ix.end_auction(auction), world.seller)
    world.run(ix.settle_auction(world.seller.identity, auction), world.seller)
    world.run(ix.forfeit_auction(world.seller.identity, auction), world.seller)
    world.run(ix.claim_refund(world.alice.identity, auction), world.alice)
    world.run(ix.close_auction(world.seller.identity, auction), world.seller)


def _demo_fast_tier(world, ix, auction):
    from gavel.core.state import FastTier
    from gavel.crypto import generate_keypair

    fast = FastTier(world.ledger)
    session = generate_keypair()
    world.run(ix.create_session(world.alice.identity, auction, session.identity), world.alice)
    world.run(ix.delegate_auction(world.seller.identity, auction), world.seller)
    world.run(ix.place_bid_session(world.alice.identity, auction, 1_000), session, tier=fast)
    world.run(ix.place_bid(world.bob.identity, auction, 1_200), world.bob, tier=fast)
    world.run(ix.place_bid_session(world.alice.identity, auction, 2_000), session, tier=fast)
    world.ledger.clock.advance(301)
    world.run(ix.end_auction(auction), world.seller, tier=fast)
    world.run(ix.undelegate_auction(world.seller.identity, auction), world.seller, tier=fast)
    world.run(ix.settle_auction(world.seller.identity, auction, [world.creator.identity]), world.seller)
    world.run(ix.claim_refund_for(world.bob.identity, auction), world.seller)
    world.run(ix.close_auction(world.seller.identity, auction), world.seller)


@cli.command("demo")
@click.option(
    "--scenario",
    type=click.Choice(["settle", "forfeit", "cancel", "fast-tier"]),
    default="settle",
    help="Demo scenario to run",
)
@click.option("--persist", is_flag=True, help="Persist the durable ledger under --data-dir")
@click.pass_context
def demo(ctx, scenario, persist):
    """Run an end-to-end auction on an in-process ledger"""
    from gavel.core.auction import instructions as ix
    from gavel.core.state import Ledger
    from gavel.core.storage import StorageManager

    click.echo("=" * 60)
    click.echo(f"  GAVEL DEMO - {scenario}")
    click.echo("=" * 60)

    storage = StorageManager(ctx.obj["data_dir"]) if persist else None
    durable = Ledger(config=ctx.obj["config"], storage_manager=storage)
    world = _DemoWorld(durable)
    auction = ix.derive_auction(world.seller.identity, world.mint)

    world.run(
        ix.create_auction(world.seller.identity, world.mint, 1_000, 300, 60, 30, 100),
        world.seller,
    )

    if scenario == "cancel":
        world.run(ix.cancel_auction(world.seller.identity, auction), world.seller)
        world.run(ix.force_close_auction(auction), world.bob)
    else:
        world.run(ix.start_auction(world.seller.identity, auction), world.seller)
        world.run(ix.deposit(world.alice.identity, auction, 2_000), world.alice)
        world.run(ix.deposit(world.bob.identity, auction, 1_500 if scenario != "forfeit" else 50), world.bob)
        handlers = {"settle": _demo_settle, "forfeit": _demo_forfeit, "fast-tier": _demo_fast_tier}
        handlers[scenario](world, ix, auction)

    click.echo()
    world.balances()
    click.echo("  Events:")
    for event in durable.events:
        click.echo(f"    {event.name}")
    click.echo()
    click.echo(f"📊 {durable.stats()}")
    durable.close()


if __name__ == "__main__":
    cli()
