"""
Program Error Taxonomy

Every check in the engine fails with a ProgramError carrying a stable tag.
The tag is what the caller of a rejected instruction gets back; the
transaction is not committed and no account data travels with the error.

Errors are terminal for the instruction that raised them. Nothing inside
the engine recovers from one.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorTag(str, Enum):
    """Stable identifiers returned to the caller of a rejected instruction."""
    NOT_SIGNER = "NotSigner"
    OWNER_MISMATCH = "OwnerMismatch"
    TYPE_MISMATCH = "TypeMismatch"
    MALFORMED = "Malformed"
    ALREADY_INITIALIZED = "AlreadyInitialized"
    ALREADY_CLOSED = "AlreadyClosed"
    DERIVATION_MISMATCH = "DerivationMismatch"
    OVERFLOW = "Overflow"
    UNDERFLOW = "Underflow"
    DERIVATION_EXHAUSTED = "DerivationExhausted"
    NOT_WRITABLE = "NotWritable"
    AUTHORITY_MISMATCH = "AuthorityMismatch"
    INVALID_SEEDS = "InvalidSeeds"
    NOT_ENOUGH_ACCOUNT_KEYS = "NotEnoughAccountKeys"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    INVALID_INSTRUCTION_DATA = "InvalidInstructionData"
    UNKNOWN_PROGRAM = "UnknownProgram"
    ACCOUNT_NOT_FOUND = "AccountNotFound"
    INVALID_SIGNATURE = "InvalidSignature"
    READONLY_MODIFIED = "ReadonlyModified"
    EXTERNAL_MODIFICATION = "ExternalModification"
    UNBALANCED_INSTRUCTION = "UnbalancedInstruction"
    INJECTED_FAULT = "InjectedFault"

    def __str__(self) -> str:
        return self.value


class ProgramError(Exception):
    """Base class for every instruction failure."""

    tag: ErrorTag = ErrorTag.MALFORMED

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary."""
        return {
            "error": self.tag.value,
            "message": self.message,
            "details": self.details,
        }


class NotSignerError(ProgramError):
    """The account did not sign the current transaction."""
    tag = ErrorTag.NOT_SIGNER


class OwnerMismatchError(ProgramError):
    """The account is owned by a different program than expected."""
    tag = ErrorTag.OWNER_MISMATCH


class TypeMismatchError(ProgramError):
    """The account discriminator does not match the expected record type."""
    tag = ErrorTag.TYPE_MISMATCH


class MalformedError(ProgramError):
    """The account buffer does not fit the record layout."""
    tag = ErrorTag.MALFORMED


class AlreadyInitializedError(ProgramError):
    tag = ErrorTag.ALREADY_INITIALIZED


class AlreadyClosedError(ProgramError):
    tag = ErrorTag.ALREADY_CLOSED


class DerivationMismatchError(ProgramError):
    """Supplied address or bump is not the canonical derivation."""
    tag = ErrorTag.DERIVATION_MISMATCH


class ArithmeticOverflowError(ProgramError):
    tag = ErrorTag.OVERFLOW


class ArithmeticUnderflowError(ProgramError):
    tag = ErrorTag.UNDERFLOW


class DerivationExhaustedError(ProgramError):
    """No bump in 0..=255 produced an off-curve address."""
    tag = ErrorTag.DERIVATION_EXHAUSTED


class NotWritableError(ProgramError):
    tag = ErrorTag.NOT_WRITABLE


class AuthorityMismatchError(ProgramError):
    """The claimant is not the authority stored in the record."""
    tag = ErrorTag.AUTHORITY_MISMATCH


class InvalidSeedsError(ProgramError):
    tag = ErrorTag.INVALID_SEEDS


class NotEnoughAccountKeysError(ProgramError):
    tag = ErrorTag.NOT_ENOUGH_ACCOUNT_KEYS


class InsufficientFundsError(ProgramError):
    tag = ErrorTag.INSUFFICIENT_FUNDS


class InvalidInstructionDataError(ProgramError):
    tag = ErrorTag.INVALID_INSTRUCTION_DATA


class UnknownProgramError(ProgramError):
    tag = ErrorTag.UNKNOWN_PROGRAM


class AccountNotFoundError(ProgramError):
    tag = ErrorTag.ACCOUNT_NOT_FOUND


class InvalidSignatureError(ProgramError):
    tag = ErrorTag.INVALID_SIGNATURE


class ReadonlyModifiedError(ProgramError):
    """An account passed read-only came back changed."""
    tag = ErrorTag.READONLY_MODIFIED


class ExternalModificationError(ProgramError):
    """A program changed data or debited lamports of an account it does not own."""
    tag = ErrorTag.EXTERNAL_MODIFICATION


class UnbalancedInstructionError(ProgramError):
    """Total lamports across the instruction's accounts changed."""
    tag = ErrorTag.UNBALANCED_INSTRUCTION


class InjectedFaultError(ProgramError):
    tag = ErrorTag.INJECTED_FAULT


class RegistryError(ValueError):
    """Raised at record-definition time, never during an instruction."""
