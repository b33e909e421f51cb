"""
Auction program: single-asset ascending auction with escrowed collateral.

Handlers are grouped by concern:
- lifecycle:   create / start / end / cancel
- escrow:      deposits and refunds
- bidding:     sessions, direct and session bids, anti-snipe extension
- settlement:  settle and forfeit
- closure:     close and force_close
- delegation:  hand the record to the fast tier and back
"""

from gavel.core.auction.program import AuctionProgram

__all__ = ["AuctionProgram"]
