"""Tests for signer, authority and writability checks."""

import logging

import pytest

from ledger_gate.core.errors import (
    AuthorityMismatchError,
    ErrorTag,
    NotSignerError,
    NotWritableError,
)
from ledger_gate.core.keys import Keypair, Pubkey
from ledger_gate.core.transactions import (
    TransactionBuilder,
    TransactionContext,
    sign_transaction,
)
from ledger_gate.engine.signer import require_authority, require_signer, require_writable

from .helpers import make_info, no_signers, signed_by


class TestRequireSigner:
    def test_signed(self):
        info = make_info()
        require_signer(info, signed_by(info.key))

    def test_not_signed(self):
        info = make_info()
        with pytest.raises(NotSignerError) as exc_info:
            require_signer(info, no_signers())
        assert exc_info.value.tag is ErrorTag.NOT_SIGNER

    def test_signer_flag_alone_is_not_trusted(self, caplog):
        info = make_info(is_signer=True)
        with caplog.at_level(logging.WARNING, logger="ledger_gate.engine.signer"):
            with pytest.raises(NotSignerError):
                require_signer(info, no_signers())
        assert "claims signer" in caplog.text

    def test_signature_without_flag_is_enough(self):
        info = make_info(is_signer=False)
        require_signer(info, signed_by(info.key))


class TestRequireAuthority:
    def test_named_owner_without_signature(self):
        owner = make_info()
        with pytest.raises(NotSignerError):
            require_authority(owner.key, owner, no_signers())

    def test_wrong_claimant(self):
        claimant = make_info()
        with pytest.raises(AuthorityMismatchError):
            require_authority(Pubkey.new_unique(), claimant, signed_by(claimant.key))

    def test_mismatch_reported_before_missing_signature(self):
        claimant = make_info()
        with pytest.raises(AuthorityMismatchError):
            require_authority(Pubkey.new_unique(), claimant, no_signers())

    def test_ok(self):
        owner = make_info()
        require_authority(owner.key, owner, signed_by(owner.key))


def test_require_writable():
    require_writable(make_info(is_writable=True))
    with pytest.raises(NotWritableError):
        require_writable(make_info())


class TestTransactionContext:
    def test_built_from_verified_signatures_only(self):
        payer, other = Keypair.generate(), Keypair.generate()
        builder = TransactionBuilder(payer.pubkey)
        message = builder.build()
        message.account_keys.append(other.pubkey)
        message.header.num_required_signatures = 2

        transaction = sign_transaction(message, [payer])
        assert transaction.verified_signers() == {payer.pubkey}
        assert not transaction.verify_signatures()

        context = TransactionContext.attested(transaction.verified_signers())
        assert context.has_signed(payer.pubkey)
        assert not context.has_signed(other.pubkey)

    def test_forged_signature_is_not_verified(self):
        payer, mallory = Keypair.generate(), Keypair.generate()
        message = TransactionBuilder(payer.pubkey).build()
        forged = sign_transaction(message, [mallory])
        forged.signatures = [mallory.sign(message.serialize())]
        assert forged.verified_signers() == set()
