"""
Account Model

The ledger stores everything in accounts:
- Each account has an owner program, the only program allowed to change
  its data or debit its lamports
- The first 8 bytes of a typed account's data are its discriminator
- Signer and writable flags are not stored; they are claims made by the
  transaction for one instruction and are verified per instruction

The host runtime loads stored Accounts into AccountInfo views for an
instruction and writes the views back only when the whole transaction
succeeds.

Based on: https://solana.com/docs/core/accounts
"""

from dataclasses import dataclass, field
from typing import Optional

from .config import DISCRIMINATOR_LEN, U64_MAX, get_config
from .keys import Pubkey, SYSTEM_PROGRAM_ID


def _flag_label(item) -> str:
    flags = [name for name, on in (('signer', item.is_signer), ('writable', item.is_writable)) if on]
    return f"({', '.join(flags)})" if flags else "(readonly)"


@dataclass
class Account:
    """
    Persisted account state.

    This is what the ledger keeps between transactions.
    """
    lamports: int           # Balance, unsigned 64-bit
    data: bytes             # Opaque buffer; discriminator first once typed
    owner: Pubkey           # Program allowed to mutate data
    executable: bool = False

    def __post_init__(self):
        """Validate account invariants."""
        if not 0 <= self.lamports <= U64_MAX:
            raise ValueError(f"Lamports out of u64 range: {self.lamports}")
        limit = get_config().max_account_data
        if len(self.data) > limit:
            raise ValueError(f"Account data exceeds {limit} bytes")
        self.data = bytes(self.data)
        self.owner = Pubkey(self.owner)

    def copy(self) -> 'Account':
        """Create a deep copy of this account."""
        return Account(
            lamports=self.lamports,
            data=bytes(self.data),
            owner=self.owner,
            executable=self.executable
        )


@dataclass
class AccountSnapshot:
    """Frozen copy of the mutable parts of an AccountInfo."""
    lamports: int
    data: bytes
    owner: Pubkey


@dataclass
class AccountInfo:
    """
    An account as presented to one instruction.

    This is what the engine validates and what handlers eventually mutate.
    `is_signer` and `is_writable` are what the transaction claims; the
    signer claim is never trusted on its own (see engine.signer).
    """
    key: Pubkey            # Account address
    lamports: int          # Current balance
    data: bytearray        # Mutable account data
    owner: Pubkey          # Program that owns this account
    executable: bool = False
    is_signer: bool = False
    is_writable: bool = False

    def __post_init__(self):
        self.key = Pubkey(self.key)
        self.owner = Pubkey(self.owner)
        self.data = bytearray(self.data)

    @classmethod
    def from_account(cls, key: Pubkey, account: Account,
                     is_signer: bool = False, is_writable: bool = False) -> 'AccountInfo':
        """Load a stored account for an instruction."""
        return cls(
            key=key,
            lamports=account.lamports,
            data=bytearray(account.data),
            owner=account.owner,
            executable=account.executable,
            is_signer=is_signer,
            is_writable=is_writable
        )

    def to_account(self) -> Account:
        """Persistable copy of the current state."""
        return Account(
            lamports=self.lamports,
            data=bytes(self.data),
            owner=self.owner,
            executable=self.executable
        )

    @property
    def discriminator(self) -> bytes:
        """First 8 bytes of data, zero-padded for short buffers."""
        head = bytes(self.data[:DISCRIMINATOR_LEN])
        return head.ljust(DISCRIMINATOR_LEN, b"\x00")

    def is_zeroed(self) -> bool:
        return not any(self.data)

    def snapshot(self) -> AccountSnapshot:
        return AccountSnapshot(self.lamports, bytes(self.data), self.owner)

    def restore(self, snapshot: AccountSnapshot) -> None:
        """Roll back to a snapshot taken earlier in the same instruction."""
        self.lamports = snapshot.lamports
        self.data[:] = snapshot.data
        self.owner = snapshot.owner

    def __repr__(self) -> str:
        return f"AccountInfo({self.key.hex()[:8]}...{_flag_label(self)}, {len(self.data)} bytes)"


@dataclass
class AccountMeta:
    """
    Account metadata for instruction building.

    This tells the runtime how an instruction wants to access each account.
    """
    pubkey: Pubkey       # Account address
    is_signer: bool      # Claims a signature
    is_writable: bool    # Can be modified

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"{self.pubkey.hex()[:8]}...{_flag_label(self)}"


class AccountRegistry:
    """
    In-memory ledger store.

    The single source of truth for committed account state. The runtime
    reads from it when loading an instruction and writes to it on commit.
    """

    def __init__(self):
        self._accounts: dict[Pubkey, Account] = {}

    def create_account(self, pubkey: Pubkey, lamports: int = 0,
                       space: int = 0, owner: Optional[Pubkey] = None) -> Account:
        """Create a zero-filled account; owned by the system program by default."""
        pubkey = Pubkey(pubkey)
        if pubkey in self._accounts:
            raise ValueError(f"Account {pubkey.hex()[:8]}... already exists")

        account = Account(
            lamports=lamports,
            data=bytes(space),
            owner=owner if owner is not None else SYSTEM_PROGRAM_ID,
        )
        self._accounts[pubkey] = account
        return account

    def get_account(self, pubkey: Pubkey) -> Optional[Account]:
        """Get account by address."""
        return self._accounts.get(pubkey)

    def set_account(self, pubkey: Pubkey, account: Account) -> None:
        """Set account (used for commits after instruction execution)."""
        self._accounts[Pubkey(pubkey)] = account

    def account_exists(self, pubkey: Pubkey) -> bool:
        return pubkey in self._accounts

    def get_account_balance(self, pubkey: Pubkey) -> int:
        """Get account balance in lamports."""
        account = self.get_account(pubkey)
        return account.lamports if account else 0

    def get_accounts_by_owner(self, owner: Pubkey) -> dict[Pubkey, Account]:
        """Get all accounts owned by a specific program."""
        return {
            pubkey: account
            for pubkey, account in self._accounts.items()
            if account.owner == owner
        }

    def total_lamports(self) -> int:
        """Get total lamports in all accounts."""
        return sum(account.lamports for account in self._accounts.values())

    def __len__(self) -> int:
        return len(self._accounts)

    def __contains__(self, pubkey: Pubkey) -> bool:
        return pubkey in self._accounts

    def __getitem__(self, pubkey: Pubkey) -> Account:
        """Get account using bracket notation."""
        account = self.get_account(pubkey)
        if account is None:
            raise KeyError(f"Account {bytes(pubkey).hex()[:8]}... not found")
        return account
