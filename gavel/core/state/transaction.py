"""
Transaction - a signed invocation of one program instruction.

An Instruction names the operation, the accounts it touches (by role), its
scalar arguments and an ordered list of extra accounts (e.g. royalty
creators). A Transaction wraps one instruction with a nonce and the
signatures of every identity that authorizes it.

Signing:
-------
signing_hash = SHA-256(canonical JSON of instruction + nonce)

The runtime verifies each (public_key, signature) pair against the signing
hash and derives the signer set from the verified public keys. A single bad
signature rejects the whole transaction before the program runs.
"""

import json
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, List, Set, Tuple

from gavel.crypto import KeyPair, bytes_to_hex, identity_from_public_key, sha256, sign, verify


def _canonical(value: Any) -> Any:
    """Make instruction contents JSON-serializable deterministically."""
    if isinstance(value, bytes):
        return bytes_to_hex(value)
    if isinstance(value, dict):
        return {k: _canonical(v) for k, v in sorted(value.items())}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


@dataclass
class Instruction:
    """
    A single program call.

    Attributes:
        program_id: Program that processes the instruction
        name: Operation name (e.g. "place_bid")
        accounts: Role -> address
        args: Scalar arguments
        remaining_accounts: Ordered extra accounts (royalty creators)
    """
    program_id: bytes
    name: str
    accounts: Dict[str, bytes] = field(default_factory=dict)
    args: Dict[str, Any] = field(default_factory=dict)
    remaining_accounts: List[bytes] = field(default_factory=list)

    def to_canonical(self) -> dict:
        return {
            "program_id": _canonical(self.program_id),
            "name": self.name,
            "accounts": _canonical(self.accounts),
            "args": _canonical(self.args),
            "remaining_accounts": _canonical(self.remaining_accounts),
        }


@dataclass
class Transaction:
    """
    A signed transaction carrying one instruction.

    Attributes:
        instruction: The program call
        nonce: Random value so identical calls hash differently
        signatures: (public_key, signature) pairs
    """
    instruction: Instruction
    nonce: bytes = field(default_factory=lambda: secrets.token_bytes(8))
    signatures: List[Tuple[bytes, bytes]] = field(default_factory=list)

    def compute_signing_hash(self) -> bytes:
        body = {"instruction": self.instruction.to_canonical(), "nonce": self.nonce.hex()}
        return sha256(json.dumps(body, sort_keys=True, separators=(",", ":")).encode())

    @property
    def tx_hash(self) -> bytes:
        return self.compute_signing_hash()

    def sign(self, keypair: KeyPair) -> "Transaction":
        """Add a signature from keypair. Returns self for chaining."""
        signature = sign(self.compute_signing_hash(), keypair.private_key)
        self.signatures.append((keypair.public_key, signature))
        return self

    def verify_signatures(self) -> Tuple[bool, str]:
        """
        Verify every attached signature.

        Returns:
            (is_valid, error_message)
        """
        signing_hash = self.compute_signing_hash()
        for i, (public_key, signature) in enumerate(self.signatures):
            if not verify(signing_hash, signature, public_key):
                return False, f"Signature {i}: invalid signature or public key"
        return True, ""

    def signer_identities(self) -> Set[bytes]:
        """Identities of all attached public keys (verify first)."""
        return {identity_from_public_key(pk) for pk, _ in self.signatures}


def build_transaction(instruction: Instruction, *signers: KeyPair) -> Transaction:
    """Create a transaction and sign it with each keypair."""
    tx = Transaction(instruction=instruction)
    for keypair in signers:
        tx.sign(keypair)
    return tx
