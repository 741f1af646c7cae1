"""
Transaction and Instruction Model

A transaction is one or more instructions committed together:
- All account access is declared upfront with signer/writable flags
- Signers are proven by Ed25519 signatures over the serialized message
- The runtime turns verified signatures into a TransactionContext, the only
  thing the engine consults when it needs to know who signed

Based on: https://solana.com/docs/core/transactions
"""

import hashlib
import struct
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Set

from .accounts import AccountMeta
from .keys import Keypair, Pubkey, verify_signature


@dataclass
class MessageHeader:
    """
    Transaction message header with account access metadata.

    Account keys are ordered: writable signers, readonly signers,
    writable non-signers, readonly non-signers.
    """
    num_required_signatures: int      # Number of signatures required
    num_readonly_signed_accounts: int # Read-only accounts that must sign
    num_readonly_unsigned_accounts: int # Read-only accounts (no signature)


@dataclass
class CompiledInstruction:
    """
    Instruction compiled to reference accounts by index.

    Account positions are preserved: the program binds roles by the order
    of `accounts`, not by key.
    """
    program_id_index: int           # Index into account_keys for program
    accounts: List[int]             # Indices into account_keys
    data: bytes                     # Program-specific instruction data

    def __str__(self) -> str:
        return f"Instruction(program_id_index={self.program_id_index}, accounts={self.accounts}, data_len={len(self.data)})"


@dataclass
class TransactionMessage:
    """The signed part of a transaction."""
    header: MessageHeader
    account_keys: List[Pubkey]     # All account addresses referenced
    recent_blockhash: bytes        # Replay protection, 32 bytes
    instructions: List[CompiledInstruction]

    def serialize(self) -> bytes:
        """
        Bytes every required signer signs.

        Header counts, keys, blockhash, then each compiled instruction with
        u8 counts and a u16 data length.
        """
        header = self.header
        out = bytearray(struct.pack(
            "<BBBB",
            header.num_required_signatures,
            header.num_readonly_signed_accounts,
            header.num_readonly_unsigned_accounts,
            len(self.account_keys),
        ))
        for key in self.account_keys:
            out += key
        out += bytes(self.recent_blockhash)

        out += struct.pack("<B", len(self.instructions))
        for compiled in self.instructions:
            out += struct.pack("<BB", compiled.program_id_index, len(compiled.accounts))
            out += bytes(compiled.accounts)
            out += struct.pack("<H", len(compiled.data))
            out += compiled.data
        return bytes(out)

    def signer_keys(self) -> List[Pubkey]:
        """Keys that must sign, in signature order."""
        return self.account_keys[:self.header.num_required_signatures]

    def is_writable(self, index: int) -> bool:
        """Writability follows the account ordering rules of the header."""
        header = self.header
        num_signed = header.num_required_signatures
        if index < num_signed:
            return index < num_signed - header.num_readonly_signed_accounts
        return index < len(self.account_keys) - header.num_readonly_unsigned_accounts

    def is_signer(self, index: int) -> bool:
        return index < self.header.num_required_signatures


@dataclass(frozen=True)
class TransactionContext:
    """
    Which addresses produced a valid signature over the current transaction.

    Ephemeral: built per transaction by the runtime from verified
    signatures and discarded afterwards.
    """
    signers: FrozenSet[Pubkey] = field(default_factory=frozenset)

    @classmethod
    def attested(cls, signers: Iterable[bytes]) -> 'TransactionContext':
        """Context for signers the host has already verified."""
        return cls(frozenset(Pubkey(key) for key in signers))

    def has_signed(self, key: bytes) -> bool:
        return key in self.signers


@dataclass
class Transaction:
    """Message plus one Ed25519 signature per required signer."""
    signatures: List[bytes]
    message: TransactionMessage

    def hash(self) -> str:
        """Compute deterministic transaction hash."""
        return hashlib.sha256(self.message.serialize()).hexdigest()

    def verified_signers(self) -> Set[Pubkey]:
        """
        Addresses whose signature checks out.

        A missing or bad signature simply leaves the key out; the runtime
        decides whether that rejects the transaction.
        """
        message_data = self.message.serialize()
        verified = set()
        for signer_key, signature in zip(self.message.signer_keys(), self.signatures):
            if verify_signature(signer_key, message_data, signature):
                verified.add(signer_key)
        return verified

    def verify_signatures(self) -> bool:
        """Every required signer must provide a valid signature."""
        required = self.message.signer_keys()
        if len(self.signatures) < len(required):
            return False
        return self.verified_signers() == set(required)

    def get_fee_payer(self) -> Pubkey:
        """Get the fee payer (always the first signer)."""
        if not self.message.account_keys:
            raise ValueError("Transaction has no accounts")
        return self.message.account_keys[0]


@dataclass
class Instruction:
    """
    High-level instruction before compilation to indices.

    `accounts` order is the role order the program declares.
    """
    program_id: Pubkey             # Program to invoke
    accounts: List[AccountMeta]    # Accounts with access metadata
    data: bytes                    # Instruction data

    def __str__(self) -> str:
        return f"Instruction({self.program_id.hex()[:8]}..., {len(self.accounts)} accounts, {len(self.data)} bytes)"


class TransactionBuilder:
    """
    Builder for constructing transactions.

    This handles ordering accounts correctly and compiling instructions to
    their indexed form.
    """

    def __init__(self, fee_payer: Pubkey, recent_blockhash: bytes = bytes(32)):
        """
        Initialize transaction builder.

        Args:
            fee_payer: Account that pays transaction fees (must be signer)
            recent_blockhash: Recent blockhash for replay protection
        """
        self.fee_payer = Pubkey(fee_payer)
        self.recent_blockhash = recent_blockhash
        self.instructions: List[Instruction] = []

    def add_instruction(self, instruction: Instruction) -> 'TransactionBuilder':
        """Add an instruction to the transaction (fluent interface)."""
        self.instructions.append(instruction)
        return self

    def add_instructions(self, instructions: List[Instruction]) -> 'TransactionBuilder':
        """Add multiple instructions at once."""
        self.instructions.extend(instructions)
        return self

    def build(self) -> TransactionMessage:
        """
        Compile the instructions into a message.

        Flags for a key repeated across instructions are merged (signer if
        any use signs, writable if any use writes). Keys are then grouped as
        writable signers (fee payer first), readonly signers, writable
        non-signers and readonly non-signers.
        """
        flags: Dict[Pubkey, List[bool]] = {self.fee_payer: [True, True]}
        for ix in self.instructions:
            flags.setdefault(Pubkey(ix.program_id), [False, False])
            for meta in ix.accounts:
                entry = flags.setdefault(Pubkey(meta.pubkey), [False, False])
                entry[0] = entry[0] or meta.is_signer
                entry[1] = entry[1] or meta.is_writable

        def group(signer: bool, writable: bool) -> List[Pubkey]:
            return sorted(k for k, (s, w) in flags.items()
                          if s == signer and w == writable and k != self.fee_payer)

        writable_signers = [self.fee_payer] + group(True, True)
        readonly_signers = group(True, False)
        readonly_unsigned = group(False, False)
        account_keys = writable_signers + readonly_signers + group(False, True) + readonly_unsigned
        position = {key: i for i, key in enumerate(account_keys)}

        compiled = [
            CompiledInstruction(
                program_id_index=position[ix.program_id],
                accounts=[position[meta.pubkey] for meta in ix.accounts],
                data=ix.data,
            )
            for ix in self.instructions
        ]
        header = MessageHeader(
            num_required_signatures=len(writable_signers) + len(readonly_signers),
            num_readonly_signed_accounts=len(readonly_signers),
            num_readonly_unsigned_accounts=len(readonly_unsigned),
        )
        return TransactionMessage(header, account_keys, self.recent_blockhash, compiled)


def sign_transaction(message: TransactionMessage, signers: List[Keypair]) -> Transaction:
    """
    Sign a transaction message with the provided keypairs.

    Args:
        message: Transaction message to sign
        signers: Keypairs for the required signers, in any order

    Returns:
        Signed transaction; signatures follow the message's signer order.
        Required signers without a keypair get an empty signature.
    """
    message_data = message.serialize()
    by_key = {keypair.pubkey: keypair for keypair in signers}

    signatures = []
    for key in message.signer_keys():
        keypair = by_key.get(key)
        signatures.append(keypair.sign(message_data) if keypair else b"")

    return Transaction(signatures=signatures, message=message)
