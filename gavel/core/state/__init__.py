"""
Ledger state: accounts, records, addresses, transactions and the two
execution tiers (durable Ledger and FastTier).
"""

from gavel.core.state.account import Account
from gavel.core.state.context import InvocationContext
from gavel.core.state.fast_tier import FastTier
from gavel.core.state.ledger import Clock, Ledger, Tier
from gavel.core.state.records import AuctionState, AuctionStatus, AuctionVault, BidderDeposit, SessionToken
from gavel.core.state.transaction import Instruction, Transaction, build_transaction

__all__ = [
    "Account",
    "AuctionState",
    "AuctionStatus",
    "AuctionVault",
    "BidderDeposit",
    "Clock",
    "FastTier",
    "Instruction",
    "InvocationContext",
    "Ledger",
    "SessionToken",
    "Tier",
    "Transaction",
    "build_transaction",
]
