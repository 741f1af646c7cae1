"""
Signer Check

A pot of lamports belongs to an owner. Withdrawing must prove the owner
signed. The insecure handler only checks that the account passed as owner
matches the stored owner, which anybody can arrange by naming the victim's
key.
"""

from ..engine import PUBKEY, RecordRegistry, Role, checked_add, checked_sub, key
from ..engine.gate import InstructionContext
from ..core.errors import AuthorityMismatchError, InsufficientFundsError
from .base import Program, instruction


records = RecordRegistry("signer_check")
Pot = records.define("Pot", [("owner", PUBKEY)])

POT_SEED = b"pot"


def _move_lamports(pot, destination, amount: int) -> None:
    if pot.lamports < amount:
        raise InsufficientFundsError("Insufficient funds", {"requested": amount})
    pot.lamports = checked_sub(pot.lamports, amount)
    destination.lamports = checked_add(destination.lamports, amount)


class SignerCheckProgram(Program):
    name = "signer_check"
    records = records

    @instruction(0, roles=[
        Role("pot", record=Pot, init=True, payer="owner", seeds=(POT_SEED, key("owner"))),
        Role("owner", signer=True, writable=True),
    ])
    def initialize(self, ctx: InstructionContext):
        ctx.accounts.pot.owner = ctx.accounts.owner.key

    @instruction(1, roles=[
        Role("pot", record=Pot, writable=True),
        Role("owner", writable=True),
    ], args="Q")
    def insecure_withdraw(self, ctx: InstructionContext):
        (amount,) = ctx.args
        pot, owner = ctx.accounts.pot, ctx.accounts.owner
        # Equality with the stored key is all that is checked here
        if pot.owner != owner.key:
            raise AuthorityMismatchError("Invalid owner.")
        _move_lamports(pot.account, owner, amount)

    @instruction(2, roles=[
        Role("pot", record=Pot, writable=True, has_one=("owner",)),
        Role("owner", signer=True, writable=True),
    ], args="Q")
    def secure_withdraw(self, ctx: InstructionContext):
        (amount,) = ctx.args
        _move_lamports(ctx.accounts.pot.account, ctx.accounts.owner, amount)
