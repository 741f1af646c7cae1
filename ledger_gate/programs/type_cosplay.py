"""
Type Cosplay

UserAccount and AdminAccount share a byte layout. Decoding a buffer as a
UserAccount without checking its discriminator lets an AdminAccount pose
as one.
"""

from ..core.errors import AuthorityMismatchError, InsufficientFundsError
from ..engine import PUBKEY, U64, RecordRegistry, Role, checked_sub
from ..engine.gate import InstructionContext
from ..engine.records import TypedView
from .base import Program, instruction


records = RecordRegistry("type_cosplay")
UserAccount = records.define("UserAccount", [("authority", PUBKEY), ("balance", U64)])
AdminAccount = records.define("AdminAccount", [("authority", PUBKEY), ("balance", U64)])


def _withdraw(user, amount: int) -> None:
    if user.balance < amount:
        raise InsufficientFundsError("Insufficient funds", {"requested": amount})
    user.balance = checked_sub(user.balance, amount)


class TypeCosplayProgram(Program):
    name = "type_cosplay"
    records = records

    @instruction(0, roles=[
        Role("user_account", writable=True),
        Role("authority", signer=True),
    ], args="Q")
    def insecure_withdraw(self, ctx: InstructionContext):
        (amount,) = ctx.args
        # Cast without owner or discriminator checks
        user = TypedView(ctx.accounts.user_account, UserAccount)
        if user.authority != ctx.accounts.authority.key:
            raise AuthorityMismatchError("Signer is not the account authority")
        _withdraw(user, amount)

    @instruction(1, roles=[
        Role("user_account", record=UserAccount, writable=True, has_one=("authority",)),
        Role("authority", signer=True),
    ], args="Q")
    def secure_withdraw(self, ctx: InstructionContext):
        (amount,) = ctx.args
        _withdraw(ctx.accounts.user_account, amount)
