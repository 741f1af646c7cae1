"""
Owner Checks

A Config account authorizes updates. Reading it without checking its owner
accepts a look-alike Config created by some other program, with whatever
authority the attacker wrote into it.
"""

from ..core.errors import AuthorityMismatchError, TypeMismatchError
from ..engine import PUBKEY, U64, RecordRegistry, Role
from ..engine.gate import InstructionContext
from ..engine.records import TypedView
from .base import Program, instruction


records = RecordRegistry("owner_checks")
Config = records.define("Config", [("authority", PUBKEY), ("data", U64)])


class OwnerChecksProgram(Program):
    name = "owner_checks"
    records = records

    @instruction(0, roles=[
        Role("config", writable=True),
        Role("authority", signer=True),
    ], args="Q")
    def insecure_update(self, ctx: InstructionContext):
        (new_data,) = ctx.args
        info = ctx.accounts.config
        # Discriminator is checked, the owner is not
        if info.discriminator != Config.discriminator:
            raise TypeMismatchError("Account is not a Config")
        config = TypedView(info, Config)
        if config.authority != ctx.accounts.authority.key:
            raise AuthorityMismatchError("Signer is not the config authority")
        config.data = new_data

    @instruction(1, roles=[
        Role("config", record=Config, writable=True, has_one=("authority",)),
        Role("authority", signer=True),
    ], args="Q")
    def secure_update(self, ctx: InstructionContext):
        (new_data,) = ctx.args
        ctx.accounts.config.data = new_data
