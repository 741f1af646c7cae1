"""Tests for program derived address derivation and verification."""

import pytest

from ledger_gate.core.config import EngineConfig
from ledger_gate.core.errors import (
    DerivationExhaustedError,
    DerivationMismatchError,
    ErrorTag,
    InvalidSeedsError,
)
from ledger_gate.core.keys import Keypair, Pubkey
from ledger_gate.engine import pda
from ledger_gate.engine.pda import (
    PDAManager,
    create_program_address,
    derive,
    require_canonical,
    verify,
)

from .helpers import noncanonical_bump


class TestDerive:
    def test_deterministic(self, program_id):
        seeds = [b"vault", bytes(Pubkey.from_string_seed("user"))]
        assert derive(seeds, program_id) == derive(seeds, program_id)

    def test_result_is_off_curve(self, program_id):
        address, bump = derive([b"vault"], program_id)
        assert 0 <= bump <= 255
        assert not address.is_on_curve()

    def test_different_program_gives_different_address(self, program_id, other_program_id):
        assert derive([b"vault"], program_id)[0] != derive([b"vault"], other_program_id)[0]

    def test_text_seeds_match_utf8_bytes(self, program_id):
        assert derive(["vault"], program_id) == derive([b"vault"], program_id)

    def test_empty_seed_list(self, program_id):
        address, bump = derive([], program_id)
        assert verify(address, [], bump, program_id)

    def test_exhausted_when_every_bump_is_on_curve(self, program_id, monkeypatch):
        monkeypatch.setattr(pda, "is_on_curve", lambda raw: True)
        with pytest.raises(DerivationExhaustedError) as exc_info:
            derive([b"vault"], program_id)
        assert exc_info.value.tag is ErrorTag.DERIVATION_EXHAUSTED

    def test_marker_is_part_of_the_domain(self, program_id):
        other = EngineConfig(pda_marker=b"SomeOtherDomain")
        assert derive([b"vault"], program_id)[0] != derive([b"vault"], program_id, other)[0]


class TestSeedLimits:
    def test_seed_too_long(self, program_id):
        with pytest.raises(InvalidSeedsError):
            derive([b"x" * 33], program_id)

    def test_seed_at_limit_is_accepted(self, program_id):
        derive([b"x" * 32], program_id)

    def test_too_many_seeds_counts_the_bump(self, program_id):
        # 15 seeds plus the bump fit in the default 16
        derive([b"s"] * 15, program_id)
        with pytest.raises(InvalidSeedsError):
            derive([b"s"] * 16, program_id)

    def test_non_bytes_seed_rejected(self, program_id):
        with pytest.raises(TypeError):
            derive([42], program_id)


class TestVerify:
    def test_canonical_bump_verifies(self, program_id):
        seeds = [b"vault", b"alice"]
        address, bump = derive(seeds, program_id)
        assert verify(address, seeds, bump, program_id)

    def test_next_lower_bump_does_not_give_canonical_address(self, program_id):
        seeds = [b"vault", b"alice"]
        address, bump = derive(seeds, program_id)
        if bump == 0:
            pytest.skip("canonical bump is already 0")
        assert not verify(address, seeds, bump - 1, program_id)

    def test_wrong_seeds(self, program_id):
        address, bump = derive([b"vault", b"alice"], program_id)
        assert not verify(address, [b"vault", b"bob"], bump, program_id)

    @pytest.mark.parametrize("bump", [-1, 256, "1"])
    def test_bump_out_of_range(self, program_id, bump):
        address, _ = derive([b"vault"], program_id)
        assert not verify(address, [b"vault"], bump, program_id)

    def test_noncanonical_bump_verifies_its_own_address(self, program_id):
        seeds = [b"vault", b"alice"]
        address, bump = noncanonical_bump(seeds, program_id)
        assert verify(address, seeds, bump, program_id)
        assert address != derive(seeds, program_id)[0]


class TestRequireCanonical:
    def test_returns_canonical_bump(self, program_id):
        address, bump = derive([b"vault"], program_id)
        assert require_canonical(address, [b"vault"], None, program_id) == bump
        assert require_canonical(address, [b"vault"], bump, program_id) == bump

    def test_noncanonical_address_rejected(self, program_id):
        seeds = [b"vault", b"alice"]
        address, _ = noncanonical_bump(seeds, program_id)
        with pytest.raises(DerivationMismatchError):
            require_canonical(address, seeds, None, program_id)

    def test_noncanonical_bump_rejected(self, program_id):
        seeds = [b"vault", b"alice"]
        address, bump = derive(seeds, program_id)
        with pytest.raises(DerivationMismatchError) as exc_info:
            require_canonical(address, seeds, (bump - 1) % 256, program_id)
        assert exc_info.value.details["canonical_bump"] == bump


class TestCurve:
    def test_wallet_key_is_on_curve(self):
        assert Keypair.generate().pubkey.is_on_curve()

    def test_on_curve_hash_rejected_by_create_program_address(self, program_id, monkeypatch):
        monkeypatch.setattr(pda, "is_on_curve", lambda raw: True)
        with pytest.raises(InvalidSeedsError):
            create_program_address([b"vault", b"\x01"], program_id)


class TestPDAManager:
    def test_caches_derivations(self, program_id):
        manager = PDAManager(program_id)
        first = manager.find([b"vault", b"alice"])
        assert manager.find(["vault", b"alice"]) == first
        assert len(manager) == 1
        assert manager.address([b"vault", b"alice"]) == first[0]
        assert manager.bump([b"vault", b"alice"]) == first[1]

    def test_matches_derive(self, program_id):
        manager = PDAManager(program_id)
        assert manager.find([b"state"]) == derive([b"state"], program_id)
