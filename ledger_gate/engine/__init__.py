"""
Account Validation Engine

The checks that must pass before an instruction handler touches account
state:
- Address derivation: canonical program derived addresses
- Typed account views: owner, discriminator and size checks
- Signer and authority verification against verified signatures
- Lifecycle guard: one-shot initialization and safe closure
- Checked arithmetic for anything that moves value
- Instruction gate: composes all of the above per instruction
"""

from .arithmetic import checked_add, checked_mul, checked_sub, wrapping_add
from .pda import PDAManager, create_program_address, derive, require_canonical, verify
from .records import (
    BOOL, I64, PUBKEY, U8, U16, U32, U64,
    FieldType, RecordRegistry, RecordState, RecordType, TypedView,
    as_typed, state_of,
)
from .signer import require_authority, require_signer, require_writable
from .lifecycle import close, init_once
from .gate import (
    GateOutcome, GateState, InstructionContext, InstructionGate,
    Role, ValidatedAccounts, key, validate,
)

__all__ = [
    'checked_add', 'checked_sub', 'checked_mul', 'wrapping_add',
    'derive', 'verify', 'create_program_address', 'require_canonical', 'PDAManager',
    'FieldType', 'RecordType', 'RecordRegistry', 'RecordState', 'TypedView',
    'as_typed', 'state_of',
    'BOOL', 'I64', 'PUBKEY', 'U8', 'U16', 'U32', 'U64',
    'require_signer', 'require_authority', 'require_writable',
    'init_once', 'close',
    'Role', 'key', 'validate', 'InstructionGate', 'InstructionContext',
    'GateOutcome', 'GateState', 'ValidatedAccounts',
]
