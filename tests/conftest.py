"""
Shared test fixtures.

Engine-level tests build AccountInfo objects and TransactionContexts by
hand (see helpers.py); program tests go through a LedgerRuntime with real
signatures.
"""

import pytest

from ledger_gate.core.config import set_config
from ledger_gate.core.keys import Keypair, Pubkey

from .helpers import LedgerHarness


@pytest.fixture(autouse=True)
def reset_config():
    """Keep process-wide config changes from leaking between tests."""
    set_config(None)
    yield
    set_config(None)


@pytest.fixture
def program_id():
    return Pubkey.from_string_seed("program:test")


@pytest.fixture
def other_program_id():
    return Pubkey.from_string_seed("program:other")


@pytest.fixture
def alice():
    return Keypair.generate()


@pytest.fixture
def mallory():
    return Keypair.generate()


@pytest.fixture
def ledger():
    return LedgerHarness()
