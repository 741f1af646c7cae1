"""
Ledger Core Components

The data model the engine reasons about, as supplied by the host ledger:
accounts, keys, transactions with verified signers, the error taxonomy and
configuration.
"""

from .accounts import Account, AccountInfo, AccountMeta, AccountRegistry
from .keys import Keypair, Pubkey, SYSTEM_PROGRAM_ID, is_on_curve, verify_signature
from .transactions import (
    Transaction,
    TransactionMessage,
    MessageHeader,
    CompiledInstruction,
    Instruction,
    TransactionBuilder,
    TransactionContext,
    sign_transaction,
)
from .errors import ErrorTag, ProgramError
from .config import EngineConfig, get_config, set_config

__all__ = [
    'Account', 'AccountInfo', 'AccountMeta', 'AccountRegistry',
    'Keypair', 'Pubkey', 'SYSTEM_PROGRAM_ID', 'is_on_curve', 'verify_signature',
    'Transaction', 'TransactionMessage', 'MessageHeader',
    'CompiledInstruction', 'Instruction', 'TransactionBuilder',
    'TransactionContext', 'sign_transaction',
    'ErrorTag', 'ProgramError',
    'EngineConfig', 'get_config', 'set_config',
]
