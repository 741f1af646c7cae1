"""
Integer Overflow

Adding to a running total. With wrapping arithmetic a large enough amount
silently turns the total into a small number; checked arithmetic rejects
the instruction instead.
"""

from ..engine import U64, RecordRegistry, Role, checked_add, wrapping_add
from ..engine.gate import InstructionContext
from .base import Program, instruction


records = RecordRegistry("integer_overflow")
Tally = records.define("Tally", [("total", U64)])


class IntegerOverflowProgram(Program):
    name = "integer_overflow"
    records = records

    @instruction(0, roles=[Role("tally", record=Tally, writable=True)], args="Q")
    def insecure_add(self, ctx: InstructionContext):
        (amount,) = ctx.args
        tally = ctx.accounts.tally
        tally.total = wrapping_add(tally.total, amount, label="tally.total")
        return tally.total

    @instruction(1, roles=[Role("tally", record=Tally, writable=True)], args="Q")
    def secure_add(self, ctx: InstructionContext):
        (amount,) = ctx.args
        tally = ctx.accounts.tally
        tally.total = checked_add(tally.total, amount)
        return tally.total
