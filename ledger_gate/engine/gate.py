"""
Instruction Gate

Each instruction declares a role for every account it takes. The gate binds
the presented accounts to those roles by position, runs every declared
check, and only then hands the handler validated views. The handler never
sees an unvalidated account.

    Received -> AccountsBound -> Validated -> Executed
                     |               |            |
                     +---------------+------------+--> Rejected

Checks run role by role in declaration order, and within a role always in
this order:

    signer -> writable -> fixed address -> record type (owner,
    discriminator, size), owner alone for untyped roles, or uninitialized
    for init roles -> seeds with the canonical bump -> stored bump -> has_one

An init role without seeds must also be signed by the account it creates.
Binding fails if one account fills two roles and either of them is mutable.

The first failure rejects the instruction with its tag. A rejected
instruction leaves every bound account exactly as it was presented.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from ..core.accounts import AccountInfo, AccountSnapshot
from ..core.config import get_config
from ..core.errors import (
    AlreadyInitializedError,
    AuthorityMismatchError,
    DerivationMismatchError,
    ErrorTag,
    MalformedError,
    NotEnoughAccountKeysError,
    OwnerMismatchError,
    ProgramError,
)
from ..core.keys import Pubkey, SYSTEM_PROGRAM_ID
from ..core.transactions import TransactionContext
from . import pda
from .lifecycle import close, init_once
from .records import UNINITIALIZED_DISCRIMINATOR, RecordType, as_typed
from .signer import require_authority, require_signer, require_writable


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyRef:
    """Seed placeholder for another role's address."""
    role: str


def key(role: str) -> KeyRef:
    return KeyRef(role)


SeedSpec = Union[bytes, str, KeyRef]


@dataclass(frozen=True)
class Role:
    """
    Requirements for one account position of an instruction.

    Typed roles (`record` set) are owned by the executing program unless
    `owner` says otherwise. `init` roles are created by the gate after all
    checks pass, funded by `payer`. `close` names the role that receives
    the account's lamports once the handler has run.
    """
    name: str
    signer: bool = False
    writable: bool = False
    record: Optional[RecordType] = None
    owner: Optional[Pubkey] = None
    seeds: Optional[Tuple[SeedSpec, ...]] = None
    bump_field: Optional[str] = None
    init: bool = False
    payer: Optional[str] = None
    rent: int = 0
    has_one: Tuple[str, ...] = ()
    close: Optional[str] = None
    address: Optional[Pubkey] = None

    def __post_init__(self):
        if self.seeds is not None:
            object.__setattr__(self, "seeds", tuple(self.seeds))
        object.__setattr__(self, "has_one", tuple(self.has_one))
        if self.init:
            if self.record is None:
                raise ValueError(f"Role {self.name}: init requires a record type")
            if self.payer is None:
                raise ValueError(f"Role {self.name}: init requires a payer")
            if self.close is not None:
                raise ValueError(f"Role {self.name}: cannot init and close in one instruction")
        if (self.bump_field or self.has_one) and self.record is None:
            raise ValueError(f"Role {self.name}: bump_field/has_one require a record type")
        if self.bump_field and self.seeds is None:
            raise ValueError(f"Role {self.name}: bump_field requires seeds")

    @property
    def mutable(self) -> bool:
        return self.writable or self.init or self.close is not None


class GateState(Enum):
    RECEIVED = "received"
    ACCOUNTS_BOUND = "accounts_bound"
    VALIDATED = "validated"
    EXECUTED = "executed"
    REJECTED = "rejected"


class ValidatedAccounts:
    """
    Role name -> validated account.

    Typed roles come back as TypedView, the rest as AccountInfo. Canonical
    bumps of seeded roles are in `bumps`.
    """

    def __init__(self, views: Dict[str, Any], infos: Dict[str, AccountInfo],
                 bumps: Dict[str, int], remaining: Sequence[AccountInfo] = ()):
        self._views = views
        self.infos = infos
        self.bumps = bumps
        self.remaining = list(remaining)

    def __getattr__(self, name: str) -> Any:
        try:
            return self._views[name]
        except KeyError:
            raise AttributeError(f"No account role named {name}") from None

    def __getitem__(self, name: str) -> Any:
        return self._views[name]

    def __contains__(self, name: str) -> bool:
        return name in self._views


@dataclass
class InstructionContext:
    """Everything a handler gets: validated accounts, never raw ones."""
    program_id: Pubkey
    accounts: ValidatedAccounts
    args: Tuple[Any, ...]
    transaction: TransactionContext

    @property
    def bumps(self) -> Dict[str, int]:
        return self.accounts.bumps


@dataclass
class GateOutcome:
    """Result of running one instruction through the gate."""
    state: GateState
    trace: List[GateState] = field(default_factory=list)
    error: Optional[ProgramError] = None
    return_value: Any = None

    @property
    def success(self) -> bool:
        return self.state is GateState.EXECUTED

    @property
    def error_tag(self) -> Optional[ErrorTag]:
        return self.error.tag if self.error else None


def bind(roles: Sequence[Role], accounts: Sequence[AccountInfo]) -> Dict[str, AccountInfo]:
    """Match accounts to roles by position. One account may not fill two roles if either is mutable."""
    if len(accounts) < len(roles):
        raise NotEnoughAccountKeysError(
            f"Expected {len(roles)} accounts, got {len(accounts)}",
            {"expected": len(roles), "actual": len(accounts)},
        )
    claimed: Dict[Pubkey, Role] = {}
    for role, account in zip(roles, accounts):
        first = claimed.setdefault(account.key, role)
        if first is not role and (first.mutable or role.mutable):
            raise MalformedError(
                f"Account bound to both {first.name} and {role.name}",
                {"key": account.key.hex(), "role": role.name},
            )
    return {role.name: account for role, account in zip(roles, accounts)}


def resolve_seeds(seeds: Sequence[SeedSpec], bound: Dict[str, AccountInfo]) -> List[bytes]:
    resolved = []
    for seed in seeds:
        if isinstance(seed, KeyRef):
            resolved.append(bytes(bound[seed.role].key))
        elif isinstance(seed, str):
            resolved.append(seed.encode())
        else:
            resolved.append(bytes(seed))
    return resolved


def _check_role(role: Role, info: AccountInfo, bound: Dict[str, AccountInfo],
                roles: Dict[str, Role], context: TransactionContext,
                program_id: Pubkey, bumps: Dict[str, int]) -> Any:
    if role.signer:
        require_signer(info, context)
    if role.mutable:
        require_writable(info)
    if role.address is not None and info.key != role.address:
        raise DerivationMismatchError("Account is not at the required address",
                                      {"key": info.key.hex()})

    view: Any = info
    if role.init:
        if info.discriminator != UNINITIALIZED_DISCRIMINATOR:
            raise AlreadyInitializedError(
                f"Account already initialized, cannot init as {role.record.name}",
                {"key": info.key.hex(),
                 "closed": info.discriminator == get_config().closed_discriminator},
            )
        if info.owner not in (program_id, SYSTEM_PROGRAM_ID):
            raise OwnerMismatchError("Account to initialize is owned by another program",
                                     {"key": info.key.hex()})
        # Without seeds nothing ties the address to this program
        if role.seeds is None:
            require_signer(info, context)
    elif role.record is not None:
        view = as_typed(info, role.record, role.owner or program_id)
    elif role.owner is not None and info.owner != role.owner:
        raise OwnerMismatchError("Account is owned by another program",
                                 {"key": info.key.hex(), "expected_owner": role.owner.hex()})

    if role.seeds is not None:
        seeds = resolve_seeds(role.seeds, bound)
        deriving_program = role.owner or program_id
        bumps[role.name] = pda.require_canonical(info.key, seeds, None, deriving_program)
        if role.bump_field and not role.init:
            stored = getattr(view, role.bump_field)
            if stored != bumps[role.name]:
                raise DerivationMismatchError(
                    f"Stored bump {stored} is not canonical",
                    {"bump": stored, "canonical_bump": bumps[role.name]},
                )

    if not role.init:
        for target in role.has_one:
            claimant = bound[target]
            stored_key = getattr(view, target)
            if roles[target].signer:
                require_authority(stored_key, claimant, context)
            else:
                require_authority_key(stored_key, claimant)
    return view


def require_authority_key(stored_key: bytes, claimant: AccountInfo) -> None:
    """Key equality only; used for has_one targets that are not signers."""
    if claimant.key != stored_key:
        raise AuthorityMismatchError("Account does not match stored key",
                                     {"key": claimant.key.hex()})


def validate(roles: Sequence[Role], accounts: Sequence[AccountInfo],
             context: TransactionContext, program_id: Pubkey) -> ValidatedAccounts:
    """
    Bind and check every role; initialize init roles once all checks pass.

    Raises the first ProgramError encountered, tagged with the failing role.
    """
    bound = bind(roles, accounts)
    by_name = {role.name: role for role in roles}
    views: Dict[str, Any] = {}
    bumps: Dict[str, int] = {}

    for role in roles:
        try:
            views[role.name] = _check_role(role, bound[role.name], bound, by_name,
                                           context, program_id, bumps)
        except ProgramError as e:
            e.details.setdefault("role", role.name)
            raise

    for role in roles:
        if role.init:
            try:
                views[role.name] = init_once(bound[role.name], role.record, bound[role.payer],
                                             program_id, role.rent)
                if role.bump_field:
                    setattr(views[role.name], role.bump_field, bumps[role.name])
            except ProgramError as e:
                e.details.setdefault("role", role.name)
                raise

    return ValidatedAccounts(views, bound, bumps, accounts[len(roles):])


Handler = Callable[[InstructionContext], Any]


class InstructionGate:
    """
    Runs one instruction: bind, validate, execute, close.

    Role declarations are checked when the gate is built, so a typo in a
    seed reference or payer name fails at import time rather than on the
    first transaction.
    """

    def __init__(self, program_id: Pubkey, roles: Sequence[Role], name: str = ""):
        self.program_id = Pubkey(program_id)
        self.roles: Tuple[Role, ...] = tuple(roles)
        self.name = name or "instruction"

        names = [role.name for role in self.roles]
        if len(set(names)) != len(names):
            raise ValueError(f"{self.name}: duplicate role names")
        by_name = {role.name: role for role in self.roles}
        for role in self.roles:
            referenced = list(role.has_one)
            referenced += [s.role for s in role.seeds or () if isinstance(s, KeyRef)]
            if role.close:
                referenced.append(role.close)
            if role.payer:
                referenced.append(role.payer)
            for target in referenced:
                if target not in by_name or target == role.name:
                    raise ValueError(f"{self.name}: role {role.name} references unknown role {target}")
            if role.payer and not by_name[role.payer].signer:
                raise ValueError(f"{self.name}: payer {role.payer} must be a signer role")

    def validate(self, accounts: Sequence[AccountInfo], context: TransactionContext) -> ValidatedAccounts:
        return validate(self.roles, accounts, context, self.program_id)

    def run(self, accounts: Sequence[AccountInfo], context: TransactionContext,
            handler: Handler, args: Tuple[Any, ...] = ()) -> GateOutcome:
        """
        Execute handler behind the gate.

        Returns an outcome in EXECUTED or REJECTED state. Any ProgramError,
        from validation, the handler or a close, restores all bound accounts
        to their presented state.
        """
        outcome = GateOutcome(state=GateState.RECEIVED, trace=[GateState.RECEIVED])
        snapshots: Dict[int, Tuple[AccountInfo, AccountSnapshot]] = {
            id(account): (account, account.snapshot()) for account in accounts
        }

        def advance(state: GateState) -> None:
            outcome.state = state
            outcome.trace.append(state)

        try:
            bind(self.roles, accounts)
            advance(GateState.ACCOUNTS_BOUND)

            validated = self.validate(accounts, context)
            advance(GateState.VALIDATED)

            ctx = InstructionContext(self.program_id, validated, tuple(args), context)
            outcome.return_value = handler(ctx)

            for role in self.roles:
                if role.close:
                    close(validated.infos[role.name], validated.infos[role.close])
            advance(GateState.EXECUTED)
        except ProgramError as e:
            for account, snapshot in snapshots.values():
                account.restore(snapshot)
            outcome.error = e
            advance(GateState.REJECTED)
            logger.warning(f"{self.name} rejected: {e.tag.value} (role={e.details.get('role', '-')})")
            return outcome
        except Exception:
            for account, snapshot in snapshots.values():
                account.restore(snapshot)
            raise

        logger.info(f"{self.name} executed")
        return outcome
