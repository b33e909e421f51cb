"""
Program errors for Gavel.

Every operation is all-or-nothing: a handler raises a ProgramError and the
executing tier discards every mutation made by the transaction. Errors are
grouped into the categories below so callers can tell a bad request from a
stale one:

- ValidationError:     bad parameters or amounts
- StateError:          wrong lifecycle status / timing / balances
- AuthorizationError:  wrong signer or forbidden actor
- ArithmeticOverflow:  overflow/underflow in accumulation or time math
- ExternalDataError:   malformed caller-supplied records or accounts
- RuntimeFault:        ledger-level faults (missing account, wrong owner...)
"""

from enum import IntEnum
from typing import Dict, Type


class ErrorCode(IntEnum):
    """Stable numeric error codes."""
    # Validation
    INVALID_RESERVE_PRICE = 6000
    INVALID_DURATION = 6001
    INVALID_BID_INCREMENT = 6002
    INVALID_DEPOSIT_AMOUNT = 6003
    INVALID_ASSET = 6004
    INVALID_PARAMETER = 6005
    BELOW_RESERVE = 6006
    BID_TOO_LOW = 6007

    # State
    INVALID_AUCTION_STATUS = 6100
    AUCTION_NOT_STARTED = 6101
    AUCTION_ENDED = 6102
    AUCTION_STILL_ACTIVE = 6103
    CANNOT_CANCEL_WITH_BIDS = 6104
    NO_BIDS_TO_SETTLE = 6105
    INSUFFICIENT_DEPOSIT = 6106
    NOTHING_TO_REFUND = 6107
    REFUND_NOT_AVAILABLE = 6108
    FORFEIT_NOT_NEEDED = 6109
    OUTSTANDING_DEPOSITS = 6110
    ESCROW_NOT_EMPTY = 6111
    GRACE_PERIOD_NOT_ELAPSED = 6112
    ACCOUNT_DELEGATED = 6113
    ACCOUNT_NOT_DELEGATED = 6114

    # Authorization
    UNAUTHORIZED_SELLER = 6200
    SELLER_CANNOT_BID = 6201
    SESSION_SIGNER_MISMATCH = 6202
    SESSION_AUCTION_MISMATCH = 6203
    MISSING_SIGNATURE = 6204
    UNAUTHORIZED_AUTHORITY = 6205

    # Arithmetic
    ARITHMETIC_OVERFLOW = 6300

    # External data
    INVALID_METADATA = 6400
    MISSING_CREATOR_ACCOUNT = 6401
    INVALID_DEPOSIT_ACCOUNT = 6402
    INVALID_TREASURY = 6403
    INVALID_ACCOUNT_DATA = 6404

    # Runtime
    ACCOUNT_NOT_FOUND = 6500
    ACCOUNT_ALREADY_EXISTS = 6501
    INVALID_ACCOUNT_OWNER = 6502
    ACCOUNT_NOT_WRITABLE = 6503
    INSUFFICIENT_FUNDS = 6504
    INSUFFICIENT_VAULT_BALANCE = 6505
    INVALID_SIGNATURE = 6506
    UNKNOWN_INSTRUCTION = 6507
    INVALID_ADDRESS = 6508
    DUPLICATE_TRANSACTION = 6509


MESSAGES: Dict[ErrorCode, str] = {
    ErrorCode.INVALID_RESERVE_PRICE: "Reserve price must be greater than zero",
    ErrorCode.INVALID_DURATION: "Auction duration is out of valid range",
    ErrorCode.INVALID_BID_INCREMENT: "Minimum bid increment must be greater than zero",
    ErrorCode.INVALID_DEPOSIT_AMOUNT: "Deposit amount must be greater than zero",
    ErrorCode.INVALID_ASSET: "Asset must be a single unit of a zero-decimal mint",
    ErrorCode.INVALID_PARAMETER: "Invalid parameter",
    ErrorCode.BELOW_RESERVE: "Below reserve: bid does not meet reserve price",
    ErrorCode.BID_TOO_LOW: "Bid too low: must be at least current bid plus minimum increment",
    ErrorCode.INVALID_AUCTION_STATUS: "Auction is not in the correct status for this operation",
    ErrorCode.AUCTION_NOT_STARTED: "Auction has not started yet",
    ErrorCode.AUCTION_ENDED: "Auction has already ended",
    ErrorCode.AUCTION_STILL_ACTIVE: "Auction still has time remaining",
    ErrorCode.CANNOT_CANCEL_WITH_BIDS: "Cannot cancel auction with existing bids",
    ErrorCode.NO_BIDS_TO_SETTLE: "Auction has no bids to settle",
    ErrorCode.INSUFFICIENT_DEPOSIT: "Insufficient deposit: winner deposit does not cover the winning bid",
    ErrorCode.NOTHING_TO_REFUND: "Nothing to refund",
    ErrorCode.REFUND_NOT_AVAILABLE: "Refund unavailable: only after settlement or cancellation",
    ErrorCode.FORFEIT_NOT_NEEDED: "Forfeiture not needed: winner deposit covers the winning bid",
    ErrorCode.OUTSTANDING_DEPOSITS: "Outstanding deposits: all bidders must claim refunds first",
    ErrorCode.ESCROW_NOT_EMPTY: "Escrow not empty: asset custody still holds the asset",
    ErrorCode.GRACE_PERIOD_NOT_ELAPSED: "Grace period not elapsed: bidders still have time to claim refunds",
    ErrorCode.ACCOUNT_DELEGATED: "Account delegated: its state lives on the fast tier",
    ErrorCode.ACCOUNT_NOT_DELEGATED: "Account is not delegated to the fast tier",
    ErrorCode.UNAUTHORIZED_SELLER: "Only the seller can perform this action",
    ErrorCode.SELLER_CANNOT_BID: "Seller cannot bid on their own auction",
    ErrorCode.SESSION_SIGNER_MISMATCH: "Session signer does not match the session token",
    ErrorCode.SESSION_AUCTION_MISMATCH: "Session token belongs to a different auction",
    ErrorCode.MISSING_SIGNATURE: "Missing required signature",
    ErrorCode.UNAUTHORIZED_AUTHORITY: "Authority may not move funds from this account",
    ErrorCode.ARITHMETIC_OVERFLOW: "Arithmetic overflow",
    ErrorCode.INVALID_METADATA: "Invalid metadata: could not parse royalty metadata record",
    ErrorCode.MISSING_CREATOR_ACCOUNT: "Missing creator account for royalty distribution",
    ErrorCode.INVALID_DEPOSIT_ACCOUNT: "Could not decode deposit record",
    ErrorCode.INVALID_TREASURY: "Invalid protocol treasury account",
    ErrorCode.INVALID_ACCOUNT_DATA: "Could not decode account data",
    ErrorCode.ACCOUNT_NOT_FOUND: "Account not found",
    ErrorCode.ACCOUNT_ALREADY_EXISTS: "Account already exists",
    ErrorCode.INVALID_ACCOUNT_OWNER: "Account is owned by a different program",
    ErrorCode.ACCOUNT_NOT_WRITABLE: "Account is not writable on this tier",
    ErrorCode.INSUFFICIENT_FUNDS: "Insufficient funds",
    ErrorCode.INSUFFICIENT_VAULT_BALANCE: "Vault has insufficient lamports for this operation",
    ErrorCode.INVALID_SIGNATURE: "Invalid transaction signature",
    ErrorCode.UNKNOWN_INSTRUCTION: "Unknown instruction",
    ErrorCode.INVALID_ADDRESS: "Account address does not match its derivation",
    ErrorCode.DUPLICATE_TRANSACTION: "Transaction was already processed",
}


# =============================================================================
# Exception Hierarchy
# =============================================================================


class ProgramError(Exception):
    """Base class: aborts the whole transaction."""

    category = "program"

    def __init__(self, code: ErrorCode, detail: str = ""):
        self.code = code
        self.detail = detail
        message = f"{code.name}: {MESSAGES[code]}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class ValidationError(ProgramError):
    category = "validation"


class StateError(ProgramError):
    category = "state"


class AuthorizationError(ProgramError):
    category = "authorization"


class ArithmeticOverflow(ProgramError):
    category = "arithmetic"

    def __init__(self, detail: str = ""):
        super().__init__(ErrorCode.ARITHMETIC_OVERFLOW, detail)


class ExternalDataError(ProgramError):
    category = "external_data"


class RuntimeFault(ProgramError):
    category = "runtime"


_CATEGORY_RANGES = (
    (6000, ValidationError),
    (6100, StateError),
    (6200, AuthorizationError),
    (6400, ExternalDataError),
    (6500, RuntimeFault),
)


def error(code: ErrorCode, detail: str = "") -> ProgramError:
    """Build the exception of the right category for an error code."""
    if code == ErrorCode.ARITHMETIC_OVERFLOW:
        return ArithmeticOverflow(detail)
    cls: Type[ProgramError] = ProgramError
    for floor, candidate in _CATEGORY_RANGES:
        if floor <= code < floor + 100:
            cls = candidate
            break
    return cls(code, detail)
