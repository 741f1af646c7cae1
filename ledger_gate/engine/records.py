"""
Record Types and Typed Account Views

A record type is a named, fixed-width layout prefixed by an 8-byte
discriminator:

    [discriminator (8)][field 0][field 1]...

Reading an account as a record is only safe after three checks, in this
order: the account is owned by the expected program, its discriminator is
the record's, and the buffer is exactly the record's size. Skipping the
owner check lets a look-alike account from another program through;
skipping the discriminator check lets a different record type with the
same layout through.
"""

import hashlib
import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from ..core.accounts import AccountInfo
from ..core.config import DISCRIMINATOR_LEN, get_config
from ..core.errors import (
    ArithmeticOverflowError,
    ArithmeticUnderflowError,
    MalformedError,
    NotWritableError,
    OwnerMismatchError,
    RegistryError,
    TypeMismatchError,
)
from ..core.keys import Pubkey


logger = logging.getLogger(__name__)

UNINITIALIZED_DISCRIMINATOR = bytes(DISCRIMINATOR_LEN)


@dataclass(frozen=True)
class FieldType:
    """A fixed-width little-endian scalar."""
    name: str
    fmt: str            # struct format, without byte order
    min_value: int = 0
    max_value: int = 0

    @property
    def size(self) -> int:
        return struct.calcsize("<" + self.fmt)

    def encode(self, value: Any) -> bytes:
        if self.name == "pubkey":
            return bytes(Pubkey(value))
        if self.name == "bool":
            return struct.pack("<?", bool(value))
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"{self.name} field expects int, got {type(value).__name__}")
        if value > self.max_value:
            raise ArithmeticOverflowError(f"{value} does not fit in {self.name}")
        if value < self.min_value:
            raise ArithmeticUnderflowError(f"{value} does not fit in {self.name}")
        return struct.pack("<" + self.fmt, value)

    def decode(self, raw: bytes) -> Any:
        if self.name == "pubkey":
            return Pubkey(raw)
        return struct.unpack("<" + self.fmt, raw)[0]


U8 = FieldType("u8", "B", 0, 2**8 - 1)
U16 = FieldType("u16", "H", 0, 2**16 - 1)
U32 = FieldType("u32", "I", 0, 2**32 - 1)
U64 = FieldType("u64", "Q", 0, 2**64 - 1)
I64 = FieldType("i64", "q", -2**63, 2**63 - 1)
BOOL = FieldType("bool", "?")
PUBKEY = FieldType("pubkey", "32s")


@dataclass(frozen=True)
class RecordField:
    name: str
    type: FieldType
    offset: int         # Absolute offset in the account buffer


def default_discriminator(name: str) -> bytes:
    """First 8 bytes of sha256("account:<name>")."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_LEN]


class RecordType:
    """Named fixed layout with a unique discriminator; built by RecordRegistry."""

    def __init__(self, name: str, fields: Sequence[Tuple[str, FieldType]], discriminator: bytes):
        self.name = name
        self.discriminator = bytes(discriminator)

        offset = DISCRIMINATOR_LEN
        layout = []
        seen = set()
        for field_name, field_type in fields:
            if field_name in seen:
                raise RegistryError(f"Duplicate field {field_name} in {name}")
            seen.add(field_name)
            layout.append(RecordField(field_name, field_type, offset))
            offset += field_type.size
        self.fields: Tuple[RecordField, ...] = tuple(layout)
        self.size = offset
        self._by_name = {f.name: f for f in self.fields}

    def field(self, name: str) -> RecordField:
        try:
            return self._by_name[name]
        except KeyError:
            raise AttributeError(f"{self.name} has no field {name}") from None

    def field_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def pack(self, **values: Any) -> bytes:
        """Full account buffer for the given field values; missing fields are zero."""
        unknown = set(values) - set(self._by_name)
        if unknown:
            raise AttributeError(f"{self.name} has no fields {sorted(unknown)}")
        buffer = bytearray(self.size)
        buffer[:DISCRIMINATOR_LEN] = self.discriminator
        for f in self.fields:
            if f.name in values:
                buffer[f.offset:f.offset + f.type.size] = f.type.encode(values[f.name])
        return bytes(buffer)

    def unpack_unchecked(self, data: bytes) -> Dict[str, Any]:
        """
        Decode fields ignoring owner and discriminator.

        For inspecting buffers outside an instruction. Handlers read
        accounts through as_typed; decoding a buffer like this is exactly
        the shortcut that makes type confusion possible.
        """
        if len(data) < self.size:
            raise MalformedError(
                f"Buffer too short for {self.name}",
                {"expected": self.size, "actual": len(data)},
            )
        return {
            f.name: f.type.decode(bytes(data[f.offset:f.offset + f.type.size]))
            for f in self.fields
        }

    def __repr__(self) -> str:
        return f"RecordType({self.name}, {self.size} bytes)"


class RecordRegistry:
    """
    Record types of one program.

    Discriminators are unique within a registry; collisions, the zero
    sentinel and the closed tombstone are rejected when a type is defined,
    not when an account is read.
    """

    def __init__(self, namespace: str = ""):
        self.namespace = namespace
        self._by_name: Dict[str, RecordType] = {}
        self._by_discriminator: Dict[bytes, RecordType] = {}

    def define(self, name: str, fields: Sequence[Tuple[str, FieldType]],
               discriminator: Optional[bytes] = None) -> RecordType:
        if name in self._by_name:
            raise RegistryError(f"Record type {name} already defined")

        disc = bytes(discriminator) if discriminator is not None else default_discriminator(name)
        if len(disc) != DISCRIMINATOR_LEN:
            raise RegistryError(f"Discriminator for {name} must be {DISCRIMINATOR_LEN} bytes")
        if disc == UNINITIALIZED_DISCRIMINATOR:
            raise RegistryError(f"Discriminator for {name} equals the uninitialized sentinel")
        if disc == get_config().closed_discriminator:
            raise RegistryError(f"Discriminator for {name} equals the closed tombstone")
        if disc in self._by_discriminator:
            other = self._by_discriminator[disc].name
            raise RegistryError(f"Discriminator for {name} collides with {other}")

        record = RecordType(name, fields, disc)
        self._by_name[name] = record
        self._by_discriminator[disc] = record
        logger.debug(f"Defined record {self.namespace}:{name} ({record.size} bytes)")
        return record

    def get(self, name: str) -> RecordType:
        return self._by_name[name]

    def lookup(self, discriminator: bytes) -> Optional[RecordType]:
        """Record type carrying this discriminator, if any."""
        return self._by_discriminator.get(bytes(discriminator))

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __iter__(self) -> Iterable[RecordType]:
        return iter(self._by_name.values())

    def __len__(self) -> int:
        return len(self._by_name)


class RecordState(Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


def state_of(account: AccountInfo, registry: Optional[RecordRegistry] = None) -> RecordState:
    """
    Lifecycle state read off the discriminator.

    With a registry, an unknown non-zero discriminator is Malformed rather
    than Initialized.
    """
    disc = account.discriminator
    if disc == UNINITIALIZED_DISCRIMINATOR:
        return RecordState.UNINITIALIZED
    if disc == get_config().closed_discriminator:
        return RecordState.CLOSED
    if registry is not None and registry.lookup(disc) is None:
        raise MalformedError("Unknown discriminator", {"key": account.key.hex()})
    return RecordState.INITIALIZED


class TypedView:
    """
    An account read as a specific record type.

    Field reads decode straight from the buffer. Field writes require the
    account to be writable and write through to the same offsets; the
    discriminator is never touched here.
    """

    __slots__ = ("_account", "_record")

    def __init__(self, account: AccountInfo, record: RecordType):
        object.__setattr__(self, "_account", account)
        object.__setattr__(self, "_record", record)

    @property
    def account(self) -> AccountInfo:
        return self._account

    @property
    def record(self) -> RecordType:
        return self._record

    @property
    def key(self) -> Pubkey:
        return self._account.key

    def __getattr__(self, name: str) -> Any:
        f = self._record.field(name)
        return f.type.decode(bytes(self._account.data[f.offset:f.offset + f.type.size]))

    def __setattr__(self, name: str, value: Any) -> None:
        f = self._record.field(name)
        if not self._account.is_writable:
            raise NotWritableError(
                f"Cannot write {self._record.name}.{name}: account is not writable",
                {"key": self._account.key.hex()},
            )
        encoded = f.type.encode(value)
        self._account.data[f.offset:f.offset + f.type.size] = encoded

    def to_dict(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in self._record.field_names()}

    def __repr__(self) -> str:
        return f"TypedView({self._record.name} @ {self._account.key.hex()[:8]}...)"


def as_typed(account: AccountInfo, record: RecordType, expected_owner: Pubkey) -> TypedView:
    """
    Interpret an account as `record`.

    Checks, in order:
        1. owner == expected_owner            else OwnerMismatch
        2. data[0:8] == record.discriminator  else TypeMismatch
        3. len(data) == record.size           else Malformed
    """
    if account.owner != expected_owner:
        raise OwnerMismatchError(
            f"Account is not owned by the expected program for {record.name}",
            {"key": account.key.hex()},
        )
    if account.discriminator != record.discriminator:
        raise TypeMismatchError(
            f"Account is not a {record.name}",
            {"key": account.key.hex(), "expected": record.name},
        )
    if len(account.data) != record.size:
        raise MalformedError(
            f"Account size does not match {record.name}",
            {"key": account.key.hex(), "expected": record.size, "actual": len(account.data)},
        )
    return TypedView(account, record)
