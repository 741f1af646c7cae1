"""
Program Framework

A program is a stateless set of instruction handlers. Each handler declares
its account roles; the framework builds one InstructionGate per handler, so
every instruction, secure or not, runs through the same bind / validate /
execute path and differs only in what it declares.

Instruction data is a 1-byte opcode followed by struct-packed arguments.
"""

import logging
import struct
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Sequence, Tuple

from ..core.accounts import AccountInfo, AccountMeta
from ..core.errors import InvalidInstructionDataError, NotEnoughAccountKeysError
from ..core.keys import Pubkey
from ..core.transactions import Instruction, TransactionContext
from ..engine.gate import GateOutcome, InstructionGate, Role
from ..engine.records import RecordRegistry


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstructionSpec:
    opcode: int
    roles: Tuple[Role, ...]
    args: str           # struct format of the arguments, little-endian


def instruction(opcode: int, roles: Sequence[Role] = (), args: str = "") -> Callable:
    """Mark a Program method as the handler for `opcode`."""
    if not 0 <= opcode <= 255:
        raise ValueError(f"Opcode out of range: {opcode}")

    def decorator(func: Callable) -> Callable:
        func._instruction = InstructionSpec(opcode, tuple(roles), args)
        return func
    return decorator


class Program:
    """
    Base class for programs.

    Subclasses set `name` and a `records` registry and decorate handlers
    with @instruction. The program id is derived from the name.
    """

    name: str = ""
    records: RecordRegistry

    def __init__(self):
        if not self.name:
            raise ValueError(f"{type(self).__name__} must set a name")
        self.program_id = Pubkey.from_string_seed(f"program:{self.name}")
        self._handlers: Dict[int, Tuple[InstructionSpec, Callable, InstructionGate]] = {}
        self._opcodes: Dict[str, int] = {}

        for attr in dir(type(self)):
            func = getattr(type(self), attr)
            spec = getattr(func, "_instruction", None)
            if spec is None:
                continue
            if spec.opcode in self._handlers:
                raise ValueError(f"{self.name}: opcode {spec.opcode} used twice")
            gate = InstructionGate(self.program_id, spec.roles, name=f"{self.name}.{attr}")
            self._handlers[spec.opcode] = (spec, getattr(self, attr), gate)
            self._opcodes[attr] = spec.opcode

    def instruction_names(self) -> List[str]:
        return sorted(self._opcodes, key=self._opcodes.get)

    def encode(self, name: str, *args: Any) -> bytes:
        """Instruction data for handler `name` with `args`."""
        opcode = self._opcodes[name]
        spec = self._handlers[opcode][0]
        return bytes([opcode]) + struct.pack("<" + spec.args, *args)

    def build_instruction(self, name: str, accounts: Sequence[AccountMeta], *args: Any) -> Instruction:
        """Client-side helper: accounts must follow the handler's role order."""
        return Instruction(program_id=self.program_id, accounts=list(accounts),
                           data=self.encode(name, *args))

    def decode(self, data: bytes) -> Tuple[InstructionSpec, Callable, InstructionGate, Tuple[Any, ...]]:
        if not data:
            raise InvalidInstructionDataError("Empty instruction data")
        entry = self._handlers.get(data[0])
        if entry is None:
            raise InvalidInstructionDataError(f"Unknown opcode {data[0]}", {"opcode": data[0]})
        spec, handler, gate = entry
        try:
            args = struct.unpack("<" + spec.args, bytes(data[1:]))
        except struct.error as e:
            raise InvalidInstructionDataError(
                f"Bad arguments for opcode {data[0]}", {"opcode": data[0]}
            ) from e
        return spec, handler, gate, args

    def process(self, accounts: Sequence[AccountInfo], data: bytes,
                context: TransactionContext) -> GateOutcome:
        """Entrypoint used by the runtime."""
        _, handler, gate, args = self.decode(data)
        logger.debug(f"{self.name}: dispatching opcode {data[0]} to {gate.name}")
        return gate.run(accounts, context, handler, args)


def next_account_info(accounts: Iterator[AccountInfo]) -> AccountInfo:
    """Take the next account from an iterator, for hand-written handlers."""
    try:
        return next(accounts)
    except StopIteration:
        raise NotEnoughAccountKeysError("Ran out of accounts") from None
