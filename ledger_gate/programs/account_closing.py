"""
Account Closing

Closing a vault must move its lamports, wipe its data and tombstone its
discriminator in one step. The insecure handler only drains the lamports,
so the vault's owner and balance stay readable and the account still
looks like a live Vault.
"""

from ..engine import PUBKEY, U64, RecordRegistry, Role, checked_add
from ..engine.gate import InstructionContext
from .base import Program, instruction


records = RecordRegistry("account_closing")
Vault = records.define("Vault", [("owner", PUBKEY), ("balance", U64)])


class AccountClosingProgram(Program):
    name = "account_closing"
    records = records

    @instruction(0, roles=[
        Role("vault", record=Vault, writable=True),
        Role("destination", writable=True),
    ])
    def insecure_close(self, ctx: InstructionContext):
        vault = ctx.accounts.vault.account
        destination = ctx.accounts.destination
        destination.lamports = checked_add(destination.lamports, vault.lamports)
        vault.lamports = 0

    @instruction(1, roles=[
        Role("vault", record=Vault, writable=True, close="destination"),
        Role("destination", writable=True),
    ])
    def secure_close(self, ctx: InstructionContext):
        # Closing is declared on the role and performed by the gate
        pass
