"""
Lifecycle Guard

Record accounts move through three states and never back:

    Uninitialized --init_once--> Initialized --close--> Closed

The state lives in the discriminator: all zeros before init, the record's
own tag after, and a reserved tombstone after close. Initializing anything
that is not all zeros is refused, so a second init cannot overwrite an
existing record, of this type or any other.
"""

import logging

from ..core.accounts import AccountInfo
from ..core.config import DISCRIMINATOR_LEN, get_config
from ..core.errors import (
    AlreadyClosedError,
    AlreadyInitializedError,
    MalformedError,
    OwnerMismatchError,
    TypeMismatchError,
)
from ..core.keys import Pubkey, SYSTEM_PROGRAM_ID
from .arithmetic import checked_add, checked_sub
from .records import UNINITIALIZED_DISCRIMINATOR, RecordType, TypedView
from .signer import require_writable


logger = logging.getLogger(__name__)


def init_once(account: AccountInfo, record: RecordType, payer: AccountInfo,
              program_id: Pubkey, rent: int = 0) -> TypedView:
    """
    Initialize `account` as `record`, exactly once.

    Args:
        account: Target account; must be writable and zero-filled
        record: Record type to write
        payer: Funds `rent`; must be writable when rent is non-zero
        program_id: Program taking ownership of the account
        rent: Lamports moved from payer to the new account

    Returns:
        Writable view of the freshly initialized record

    Raises:
        AlreadyInitialized: discriminator is not the zero sentinel
        OwnerMismatch: account is owned by some other program
        Malformed: buffer is neither empty nor record-sized, or not zero-filled,
            or payer is the account itself
    """
    require_writable(account)
    if payer.key == account.key:
        raise MalformedError("Account cannot pay for its own initialization",
                             {"key": account.key.hex()})

    if account.discriminator != UNINITIALIZED_DISCRIMINATOR:
        closed = account.discriminator == get_config().closed_discriminator
        raise AlreadyInitializedError(
            f"Account already initialized, cannot init as {record.name}",
            {"key": account.key.hex(), "closed": closed},
        )
    if account.owner not in (program_id, SYSTEM_PROGRAM_ID):
        raise OwnerMismatchError(
            "Account to initialize is owned by another program",
            {"key": account.key.hex()},
        )
    if len(account.data) not in (0, record.size):
        raise MalformedError(
            f"Account size does not match {record.name}",
            {"key": account.key.hex(), "expected": record.size, "actual": len(account.data)},
        )
    if not account.is_zeroed():
        raise MalformedError(
            "Account to initialize holds stale data",
            {"key": account.key.hex()},
        )

    if rent:
        require_writable(payer)
        payer_balance = checked_sub(payer.lamports, rent)
        account_balance = checked_add(account.lamports, rent)
        payer.lamports = payer_balance
        account.lamports = account_balance
    if len(account.data) == 0:
        account.data.extend(bytes(record.size))
    account.owner = Pubkey(program_id)
    account.data[:DISCRIMINATOR_LEN] = record.discriminator

    logger.debug(f"Initialized {record.name} at {account.key.hex()[:8]}...")
    return TypedView(account, record)


def close(account: AccountInfo, destination: AccountInfo) -> None:
    """
    Close a record account into `destination`.

    All lamports move to destination, every data byte is zeroed, and the
    closed tombstone is written as discriminator. The new balances are
    computed first, so a failure leaves both accounts untouched and no
    reader ever sees lamports moved with data still in place.

    Only an initialized record can be closed. A zero-filled account has no
    record to close, and a buffer shorter than a discriminator could never
    hold the tombstone.
    """
    tombstone = get_config().closed_discriminator
    if account.discriminator == tombstone:
        raise AlreadyClosedError("Account already closed", {"key": account.key.hex()})
    if account.discriminator == UNINITIALIZED_DISCRIMINATOR:
        raise TypeMismatchError("Cannot close an uninitialized account",
                                {"key": account.key.hex()})
    if len(account.data) < DISCRIMINATOR_LEN:
        raise MalformedError(
            "Account too small to hold a discriminator",
            {"key": account.key.hex(), "actual": len(account.data)},
        )
    if account.key == destination.key:
        raise MalformedError("Cannot close an account into itself", {"key": account.key.hex()})
    require_writable(account)
    require_writable(destination)

    destination_balance = checked_add(destination.lamports, account.lamports)

    zeroed = bytearray(len(account.data))
    zeroed[:DISCRIMINATOR_LEN] = tombstone

    destination.lamports = destination_balance
    account.lamports = 0
    account.data[:] = zeroed

    logger.debug(f"Closed {account.key.hex()[:8]}... into {destination.key.hex()[:8]}...")
