"""
Ledger Runtime

The host side of the engine: it verifies signatures, loads accounts, runs
each instruction through its program and commits the result. A transaction
is all-or-nothing. Instructions work on shared in-memory copies of the
accounts, and those copies reach the AccountRegistry only after every
instruction has succeeded and passed the host rules:

- Accounts passed read-only come back unchanged
- Data changes only on accounts the program owns, or on fresh zero-filled
  system accounts the program takes ownership of. A fresh account must have
  signed the transaction or lie off the curve, as derived addresses do
- Lamports are debited only from accounts the program owns or from
  accounts that signed the transaction
- Total lamports across an instruction's accounts are conserved

A FaultInjector can fail a transaction after any instruction, so tests can
confirm that nothing from earlier instructions leaks into the ledger.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..core.accounts import AccountInfo, AccountRegistry, AccountSnapshot
from ..core.errors import (
    AccountNotFoundError,
    ExternalModificationError,
    InjectedFaultError,
    InvalidSignatureError,
    ProgramError,
    ReadonlyModifiedError,
    UnbalancedInstructionError,
    UnknownProgramError,
)
from ..core.keys import Pubkey, SYSTEM_PROGRAM_ID, is_on_curve
from ..core.transactions import CompiledInstruction, Transaction, TransactionContext
from ..engine.gate import GateOutcome
from .base import Program


logger = logging.getLogger(__name__)


@dataclass
class TransactionResult:
    """
    Result of processing one transaction.

    On failure `error` holds the first error and `failed_instruction` its
    index; nothing was committed.
    """
    success: bool
    error: Optional[ProgramError] = None
    failed_instruction: Optional[int] = None
    outcomes: List[GateOutcome] = field(default_factory=list)
    logs: List[str] = field(default_factory=list)

    @property
    def error_tag(self):
        return self.error.tag if self.error else None


@dataclass
class FaultInjector:
    """Fail the transaction right after instruction `after_instruction` succeeds."""
    after_instruction: Optional[int] = None
    before_commit: bool = False

    def check(self, index: int) -> None:
        if self.after_instruction is not None and index == self.after_instruction:
            raise InjectedFaultError(f"Injected fault after instruction {index}", {"index": index})

    def check_commit(self) -> None:
        if self.before_commit:
            raise InjectedFaultError("Injected fault before commit")


class LedgerRuntime:
    """
    Processes signed transactions against an AccountRegistry.

    Programs are registered by id; instructions for unknown programs fail
    the transaction.
    """

    def __init__(self, registry: Optional[AccountRegistry] = None):
        self.accounts = registry if registry is not None else AccountRegistry()
        self.programs: Dict[Pubkey, Program] = {}
        self.fault_injector: Optional[FaultInjector] = None

    def register(self, program: Program) -> Program:
        self.programs[program.program_id] = program
        return program

    def process_transaction(self, transaction: Transaction) -> TransactionResult:
        """Execute and, if every instruction succeeds, commit."""
        return self._execute(transaction, commit=True)

    def simulate_transaction(self, transaction: Transaction) -> TransactionResult:
        """Execute without committing anything, useful for previews."""
        return self._execute(transaction, commit=False)

    # Private methods

    def _execute(self, transaction: Transaction, commit: bool) -> TransactionResult:
        result = TransactionResult(success=False)
        message = transaction.message

        if not transaction.verify_signatures():
            result.error = InvalidSignatureError("Transaction signature verification failed")
            result.logs.append("Transaction rejected: invalid signatures")
            logger.warning(f"Transaction {transaction.hash()[:8]}... rejected: invalid signatures")
            return result

        context = TransactionContext.attested(transaction.verified_signers())
        working = self._load_accounts(transaction)

        try:
            for index, compiled in enumerate(message.instructions):
                result.failed_instruction = index
                outcome = self._execute_instruction(compiled, transaction, working, context, result)
                result.outcomes.append(outcome)
                if not outcome.success:
                    raise outcome.error
                if self.fault_injector:
                    self.fault_injector.check(index)
            if self.fault_injector and commit:
                self.fault_injector.check_commit()
        except ProgramError as e:
            result.error = e
            result.logs.append(f"Transaction failed: {e.tag.value}")
            logger.warning(f"Transaction {transaction.hash()[:8]}... failed at instruction "
                           f"{result.failed_instruction}: {e.tag.value}")
            return result

        result.failed_instruction = None
        result.success = True
        if commit:
            self._commit(transaction, working)
            logger.info(f"Transaction {transaction.hash()[:8]}... committed")
        return result

    def _load_accounts(self, transaction: Transaction) -> Dict[Pubkey, AccountInfo]:
        """One shared working copy per distinct key; missing keys load as empty system accounts."""
        message = transaction.message
        working = {}
        for index, key in enumerate(message.account_keys):
            stored = self.accounts.get_account(key)
            if stored is None:
                info = AccountInfo(key=key, lamports=0, data=bytearray(), owner=SYSTEM_PROGRAM_ID)
            else:
                info = AccountInfo.from_account(key, stored)
            info.is_signer = message.is_signer(index)
            info.is_writable = message.is_writable(index)
            working[key] = info
        return working

    def _execute_instruction(self, compiled: CompiledInstruction, transaction: Transaction,
                             working: Dict[Pubkey, AccountInfo], context: TransactionContext,
                             result: TransactionResult) -> GateOutcome:
        message = transaction.message
        for index in [compiled.program_id_index] + list(compiled.accounts):
            if index >= len(message.account_keys):
                raise AccountNotFoundError("Instruction references a missing account key",
                                           {"index": index})
        program_id = message.account_keys[compiled.program_id_index]
        program = self.programs.get(program_id)
        result.logs.append(f"Program {program_id.hex()[:8]}... invoke")
        if program is None:
            raise UnknownProgramError("Instruction targets an unknown program",
                                      {"program_id": program_id.hex()})

        accounts = [working[message.account_keys[i]] for i in compiled.accounts]
        distinct = {id(info): info for info in accounts}
        before = {id(info): info.snapshot() for info in distinct.values()}

        outcome = program.process(accounts, compiled.data, context)
        if outcome.success:
            self._enforce_host_rules(program_id, distinct, before, context)
            result.logs.append(f"Program {program_id.hex()[:8]}... success")
        else:
            result.logs.append(f"Program {program_id.hex()[:8]}... failed: {outcome.error_tag.value}")
        return outcome

    def _enforce_host_rules(self, program_id: Pubkey, accounts: Dict[int, AccountInfo],
                            before: Dict[int, AccountSnapshot], context: TransactionContext) -> None:
        lamports_before = sum(snapshot.lamports for snapshot in before.values())
        lamports_after = sum(info.lamports for info in accounts.values())
        if lamports_before != lamports_after:
            raise UnbalancedInstructionError(
                "Instruction changed total lamports",
                {"before": lamports_before, "after": lamports_after},
            )

        for key, info in accounts.items():
            pre = before[key]
            changed = (pre.lamports != info.lamports or pre.data != bytes(info.data)
                       or pre.owner != info.owner)
            if not changed:
                continue
            if not info.is_writable:
                raise ReadonlyModifiedError("Read-only account was modified", {"key": info.key.hex()})

            fresh = (pre.owner == SYSTEM_PROGRAM_ID and not any(pre.data)
                     and (context.has_signed(info.key) or not is_on_curve(info.key)))
            if pre.data != bytes(info.data) or pre.owner != info.owner:
                if pre.owner != program_id and not (fresh and info.owner == program_id):
                    raise ExternalModificationError(
                        "Program modified an account it does not own",
                        {"key": info.key.hex()},
                    )
            if info.lamports < pre.lamports:
                if pre.owner != program_id and not context.has_signed(info.key):
                    raise ExternalModificationError(
                        "Program debited an account it does not own",
                        {"key": info.key.hex()},
                    )

    def _commit(self, transaction: Transaction, working: Dict[Pubkey, AccountInfo]) -> None:
        for key, info in working.items():
            if not info.is_writable:
                continue
            if not self.accounts.account_exists(key) and info.lamports == 0 and not info.data:
                continue
            self.accounts.set_account(key, info.to_account())
