"""
Hand-Written Checks versus Declared Roles

The same "hello" instruction twice. `hello` declares a signer role and
lets the gate do the work. `raw_hello` declares nothing and walks the
account list itself, calling the engine primitives directly; it is exactly
as safe only because it remembers to call require_signer.
"""

import logging

from ..engine import Role, require_signer
from ..engine.gate import InstructionContext
from .base import Program, instruction, next_account_info


logger = logging.getLogger(__name__)


class RawEntrypointProgram(Program):
    name = "raw_entrypoint"

    @instruction(0, roles=[Role("caller", signer=True)])
    def hello(self, ctx: InstructionContext):
        logger.info("Hello, gate!")
        return ctx.accounts.caller.key

    @instruction(1)
    def raw_hello(self, ctx: InstructionContext):
        accounts = iter(ctx.accounts.remaining)
        caller = next_account_info(accounts)
        require_signer(caller, ctx.transaction)
        logger.info("Hello, raw!")
        return caller.key
