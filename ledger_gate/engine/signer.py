"""
Signer and Authority Verification

A signer check asks the transaction context, which is built from verified
signatures, whether an address signed. Comparing a stored owner field with
a key the caller passed in is not a signer check: it proves the caller
named the key, not that they hold it.
"""

import logging

from ..core.accounts import AccountInfo
from ..core.errors import AuthorityMismatchError, NotSignerError, NotWritableError
from ..core.transactions import TransactionContext


logger = logging.getLogger(__name__)


def require_signer(account: AccountInfo, context: TransactionContext) -> None:
    """
    Raise NotSigner unless `context` attests a signature by account.key.

    The account's own is_signer flag is a claim from the transaction and
    is not consulted.
    """
    if not context.has_signed(account.key):
        if account.is_signer:
            logger.warning(f"Account {account.key.hex()[:8]}... claims signer without a signature")
        raise NotSignerError(
            "Missing required signature",
            {"key": account.key.hex()},
        )


def require_authority(stored_key: bytes, claimant: AccountInfo, context: TransactionContext) -> None:
    """
    The claimant must be the stored authority AND must have signed.
    """
    if claimant.key != stored_key:
        raise AuthorityMismatchError(
            "Claimant is not the stored authority",
            {"key": claimant.key.hex()},
        )
    require_signer(claimant, context)


def require_writable(account: AccountInfo) -> None:
    if not account.is_writable:
        raise NotWritableError(
            "Account must be writable",
            {"key": account.key.hex()},
        )
