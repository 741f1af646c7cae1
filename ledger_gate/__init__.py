"""
Account-Capability Validation Engine

Paired insecure and secure instruction handlers for an account-based,
deterministic ledger, all built on one engine that decides, before any
handler touches account state, whether a presented account:
- signed the transaction
- is owned by the expected program
- has the expected record type (discriminator)
- sits at the expected derived address with the canonical bump
- is in the expected lifecycle state

Based on: https://solana.com/docs/core/accounts and https://solana.com/docs/core/pda
"""

import logging
from typing import Optional

__version__ = "1.0.0"

from .core import *
from .engine import (
    InstructionGate,
    Role,
    checked_add,
    checked_sub,
    close,
    derive,
    init_once,
    key,
    require_authority,
    require_signer,
    validate,
    verify,
)


def configure_logging(level: Optional[str] = None) -> None:
    """Basic console logging at `level`, or the configured log level."""
    logging.basicConfig(
        level=(level or get_config().log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = [
    # Core data model
    'Account',
    'AccountInfo',
    'AccountMeta',
    'AccountRegistry',
    'Keypair',
    'Pubkey',
    'Transaction',
    'TransactionBuilder',
    'TransactionContext',
    'ErrorTag',
    'ProgramError',
    'EngineConfig',

    # Engine entry points
    'derive',
    'verify',
    'init_once',
    'close',
    'checked_add',
    'checked_sub',
    'require_signer',
    'require_authority',
    'validate',
    'Role',
    'key',
    'InstructionGate',

    'configure_logging',
]
