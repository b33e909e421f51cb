"""
Gavel - escrowed ascending-price auctions on a programmable ledger.

A single-asset English auction program with:
- Escrowed bidder collateral in a per-auction vault
- Anti-snipe end-time extension with a hard cap
- Low-latency fast-tier bidding via delegation and session keys
- Deferred, atomic settlement with creator royalties and forfeiture
"""

__version__ = "0.1.0"
