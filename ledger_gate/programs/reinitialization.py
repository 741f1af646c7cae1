"""
Reinitialization

Setting up a state account must happen once. The insecure handler writes
the admin into any existing State account, so a second call hands the
account to whoever calls it.
"""

from ..engine import PUBKEY, RecordRegistry, Role, key
from ..engine.gate import InstructionContext
from .base import Program, instruction


records = RecordRegistry("reinitialization")
State = records.define("State", [("admin", PUBKEY)])

STATE_SEED = b"state"


class ReinitializationProgram(Program):
    name = "reinitialization"
    records = records

    @instruction(0, roles=[
        Role("state", record=State, writable=True),
        Role("user", signer=True),
    ])
    def insecure_init(self, ctx: InstructionContext):
        ctx.accounts.state.admin = ctx.accounts.user.key

    @instruction(1, roles=[
        Role("state", record=State, init=True, payer="user", seeds=(STATE_SEED, key("user"))),
        Role("user", signer=True, writable=True),
    ])
    def secure_init(self, ctx: InstructionContext):
        ctx.accounts.state.admin = ctx.accounts.user.key
