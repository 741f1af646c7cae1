"""
Bump Seed Canonicalization

A vault per authority lives at the PDA of [b"vault", authority]. Accepting
whatever bump the caller supplies lets the same authority open one vault
per off-curve bump, breaking the one-vault-per-authority assumption. The
secure handler only ever uses the canonical bump.
"""

from ..core.errors import DerivationMismatchError
from ..engine import PUBKEY, U8, RecordRegistry, Role, init_once, key, verify
from ..engine.gate import InstructionContext
from .base import Program, instruction


records = RecordRegistry("bump_seed")
Vault = records.define("Vault", [("authority", PUBKEY), ("bump", U8)])

VAULT_SEED = b"vault"


class BumpSeedProgram(Program):
    name = "bump_seed"
    records = records

    @instruction(0, roles=[
        Role("vault", writable=True),
        Role("authority", signer=True, writable=True),
    ], args="B")
    def insecure_init(self, ctx: InstructionContext):
        (bump,) = ctx.args
        vault, authority = ctx.accounts.vault, ctx.accounts.authority
        # Any bump that verifies is accepted, canonical or not
        if not verify(vault.key, [VAULT_SEED, authority.key], bump, ctx.program_id):
            raise DerivationMismatchError("Vault address does not match seeds")
        view = init_once(vault, Vault, authority, ctx.program_id)
        view.authority = authority.key
        view.bump = bump

    @instruction(1, roles=[
        Role("vault", record=Vault, init=True, payer="authority",
             seeds=(VAULT_SEED, key("authority")), bump_field="bump"),
        Role("authority", signer=True, writable=True),
    ])
    def secure_init(self, ctx: InstructionContext):
        ctx.accounts.vault.authority = ctx.accounts.authority.key

    @instruction(2, roles=[
        Role("vault", record=Vault, seeds=(VAULT_SEED, key("authority")),
             bump_field="bump", has_one=("authority",)),
        Role("authority", signer=True),
    ])
    def check_vault(self, ctx: InstructionContext):
        return ctx.bumps["vault"]
