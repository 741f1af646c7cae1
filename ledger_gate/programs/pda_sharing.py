"""
PDA Sharing

A token vault is controlled by a program derived authority. Withdrawing
has to prove the vault's authority is the canonical PDA of the owner who
signed; otherwise a vault shared by everybody, or one belonging to another
user, can be drained by whoever asks.
"""

from ..core.errors import InsufficientFundsError
from ..engine import PUBKEY, U64, RecordRegistry, Role, checked_add, checked_sub, key
from ..engine.gate import InstructionContext
from .base import Program, instruction


records = RecordRegistry("pda_sharing")
TokenVault = records.define("TokenVault", [("authority", PUBKEY), ("amount", U64)])
Wallet = records.define("Wallet", [("owner", PUBKEY), ("amount", U64)])

VAULT_SEED = b"vault"


def _transfer(vault, destination, amount: int) -> None:
    if vault.amount < amount:
        raise InsufficientFundsError("Insufficient funds", {"requested": amount})
    vault.amount = checked_sub(vault.amount, amount)
    destination.amount = checked_add(destination.amount, amount)


class PdaSharingProgram(Program):
    name = "pda_sharing"
    records = records

    @instruction(0, roles=[
        Role("vault", record=TokenVault, writable=True),
        Role("authority", signer=True),
        Role("destination", record=Wallet, writable=True),
    ], args="Q")
    def insecure_withdraw(self, ctx: InstructionContext):
        # Any signer, any vault: nothing ties the two together
        (amount,) = ctx.args
        _transfer(ctx.accounts.vault, ctx.accounts.destination, amount)

    @instruction(1, roles=[
        Role("vault", record=TokenVault, writable=True, has_one=("authority",)),
        Role("authority", seeds=(VAULT_SEED, key("owner"))),
        Role("owner", signer=True),
        Role("destination", record=Wallet, writable=True),
    ], args="Q")
    def secure_withdraw(self, ctx: InstructionContext):
        (amount,) = ctx.args
        _transfer(ctx.accounts.vault, ctx.accounts.destination, amount)
