"""Builders shared by the test modules."""

import pytest

from ledger_gate.core.accounts import Account, AccountInfo, AccountMeta, AccountRegistry
from ledger_gate.core.errors import InvalidSeedsError
from ledger_gate.core.keys import Pubkey, SYSTEM_PROGRAM_ID
from ledger_gate.core.transactions import TransactionBuilder, TransactionContext, sign_transaction
from ledger_gate.engine.pda import create_program_address, derive
from ledger_gate.programs.runtime import LedgerRuntime


def make_info(key=None, lamports=0, data=b"", owner=SYSTEM_PROGRAM_ID,
              is_signer=False, is_writable=False):
    return AccountInfo(
        key=key if key is not None else Pubkey.new_unique(),
        lamports=lamports,
        data=bytearray(data),
        owner=owner,
        is_signer=is_signer,
        is_writable=is_writable,
    )


def no_signers():
    return TransactionContext()


def signed_by(*keys):
    return TransactionContext.attested(keys)


def meta(key, signer=False, writable=False):
    return AccountMeta(Pubkey(key), is_signer=signer, is_writable=writable)


class LedgerHarness:
    """Runtime plus helpers for funding accounts and sending transactions."""

    def __init__(self):
        self.accounts = AccountRegistry()
        self.runtime = LedgerRuntime(self.accounts)

    def register(self, program_cls):
        return self.runtime.register(program_cls())

    def fund(self, key, lamports=1_000_000):
        if key in self.accounts:
            account = self.accounts[key].copy()
            account.lamports += lamports
            self.accounts.set_account(key, account)
        else:
            self.accounts.create_account(key, lamports=lamports)

    def put(self, key, data, owner, lamports=1_000):
        self.accounts.set_account(key, Account(lamports=lamports, data=data, owner=owner))

    def send(self, payer, instructions, signers=None):
        builder = TransactionBuilder(payer.pubkey)
        builder.add_instructions(instructions)
        message = builder.build()
        transaction = sign_transaction(message, signers if signers is not None else [payer])
        return self.runtime.process_transaction(transaction)


def noncanonical_bump(seeds, program_id):
    """A bump below the canonical one that also lands off the curve, with its address."""
    _, canonical = derive(seeds, program_id)
    for bump in range(canonical - 1, -1, -1):
        try:
            return create_program_address(list(seeds) + [bytes([bump])], program_id), bump
        except InvalidSeedsError:
            continue
    pytest.skip("no second off-curve bump for these seeds")
