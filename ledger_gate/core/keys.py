"""
Ledger Keys and Signatures

Every address on the ledger is 32 bytes. Wallet addresses are Ed25519 public
keys, so they lie on the curve and have a private key somewhere. Program
derived addresses are deliberately pushed off the curve so that nobody can
ever sign for them; the on-curve test below is what tells the two apart.

Based on: https://solana.com/docs/core/pda
"""

import hashlib
import secrets
from typing import Union

from ecdsa import BadSignatureError, Ed25519, SigningKey, VerifyingKey
from ecdsa.errors import MalformedPointError


PUBKEY_LEN = 32


class Pubkey(bytes):
    """
    A 32-byte ledger address.

    Subclassing bytes keeps keys hashable, comparable and directly usable
    as derivation seeds.
    """

    def __new__(cls, value: Union[bytes, bytearray, "Pubkey"]):
        raw = bytes(value)
        if len(raw) != PUBKEY_LEN:
            raise ValueError(f"Pubkey must be {PUBKEY_LEN} bytes, got {len(raw)}")
        return super().__new__(cls, raw)

    @classmethod
    def from_hex(cls, text: str) -> "Pubkey":
        return cls(bytes.fromhex(text))

    @classmethod
    def from_string_seed(cls, label: str) -> "Pubkey":
        """Deterministic key from a label, used for program identifiers."""
        return cls(hashlib.sha256(label.encode()).digest())

    @classmethod
    def new_unique(cls) -> "Pubkey":
        """Random key for tests and fixtures."""
        return cls(secrets.token_bytes(PUBKEY_LEN))

    def is_on_curve(self) -> bool:
        return is_on_curve(self)

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"Pubkey({self.hex()[:8]}...)"


SYSTEM_PROGRAM_ID = Pubkey(bytes(PUBKEY_LEN))


def is_on_curve(raw: bytes) -> bool:
    """
    Check whether 32 bytes decode to a valid Ed25519 point.

    A point that decodes could be somebody's public key. Derived addresses
    must fail this test.
    """
    try:
        VerifyingKey.from_string(bytes(raw), curve=Ed25519)
    except (MalformedPointError, ValueError):
        return False
    return True


class Keypair:
    """Ed25519 signing key paired with its ledger address."""

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key
        self.pubkey = Pubkey(signing_key.verifying_key.to_string())

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(SigningKey.generate(curve=Ed25519))

    @classmethod
    def from_seed(cls, seed: bytes) -> "Keypair":
        """Deterministic keypair from a 32-byte secret."""
        return cls(SigningKey.from_string(bytes(seed), curve=Ed25519))

    def sign(self, message: bytes) -> bytes:
        return self._signing_key.sign(message)

    def __repr__(self) -> str:
        return f"Keypair({self.pubkey!r})"


def verify_signature(pubkey: bytes, message: bytes, signature: bytes) -> bool:
    """Verify an Ed25519 signature; malformed keys or signatures are just invalid."""
    try:
        vk = VerifyingKey.from_string(bytes(pubkey), curve=Ed25519)
        return vk.verify(signature, message)
    except (BadSignatureError, MalformedPointError, ValueError):
        return False
