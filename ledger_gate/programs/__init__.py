"""
Programs and Runtime

This package contains the host runtime and the example programs built on
the validation engine:
- Runtime: signature verification, instruction dispatch, host rules and
  all-or-nothing commit
- Program framework: opcode dispatch with one instruction gate per handler
- Example programs: each vulnerability class as an insecure handler next
  to its secure counterpart

Programs are stateless and operate only on accounts they own or are
authorized to modify.
"""

from .base import Program, instruction, next_account_info
from .runtime import FaultInjector, LedgerRuntime, TransactionResult
from .signer_check import SignerCheckProgram
from .pda_sharing import PdaSharingProgram
from .reinitialization import ReinitializationProgram
from .integer_overflow import IntegerOverflowProgram
from .raw_entrypoint import RawEntrypointProgram
from .account_closing import AccountClosingProgram
from .bump_seed import BumpSeedProgram
from .owner_checks import OwnerChecksProgram
from .type_cosplay import TypeCosplayProgram

ALL_PROGRAMS = (
    SignerCheckProgram,
    PdaSharingProgram,
    ReinitializationProgram,
    IntegerOverflowProgram,
    RawEntrypointProgram,
    AccountClosingProgram,
    BumpSeedProgram,
    OwnerChecksProgram,
    TypeCosplayProgram,
)

__all__ = [
    'Program',
    'instruction',
    'next_account_info',
    'LedgerRuntime',
    'FaultInjector',
    'TransactionResult',
    'SignerCheckProgram',
    'PdaSharingProgram',
    'ReinitializationProgram',
    'IntegerOverflowProgram',
    'RawEntrypointProgram',
    'AccountClosingProgram',
    'BumpSeedProgram',
    'OwnerChecksProgram',
    'TypeCosplayProgram',
    'ALL_PROGRAMS',
]
