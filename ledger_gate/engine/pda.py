"""
Program Derived Addresses

A PDA is an address computed from seeds and a program id that no private
key can sign for:

    address = sha256(seed_0 || ... || seed_n || bump || program_id || marker)

The bump is searched from 255 downward and the first result that is *off*
the Ed25519 curve wins. That first bump is the canonical bump. Lower bumps
can land off-curve too, which is why a handler that relies on one account
per seed set must insist on the canonical bump instead of trusting a bump
supplied by the caller.

Based on: https://solana.com/docs/core/pda
"""

import hashlib
import logging
from typing import Dict, Optional, Sequence, Tuple, Union

from ..core.config import EngineConfig, get_config
from ..core.errors import (
    DerivationExhaustedError,
    DerivationMismatchError,
    InvalidSeedsError,
)
from ..core.keys import Pubkey, is_on_curve


logger = logging.getLogger(__name__)

Seed = Union[bytes, bytearray, Pubkey, str]

MAX_BUMP = 255


def normalize_seeds(seeds: Sequence[Seed]) -> Tuple[bytes, ...]:
    """Seeds as a tuple of bytes; text seeds are UTF-8 encoded."""
    normalized = []
    for seed in seeds:
        if isinstance(seed, str):
            normalized.append(seed.encode())
        elif isinstance(seed, (bytes, bytearray)):
            normalized.append(bytes(seed))
        else:
            raise TypeError(f"Seed must be bytes or str, got {type(seed).__name__}")
    return tuple(normalized)


def _check_seeds(seeds: Tuple[bytes, ...], config: EngineConfig) -> None:
    if len(seeds) > config.max_seeds:
        raise InvalidSeedsError(
            f"Too many seeds: {len(seeds)} > {config.max_seeds}",
            {"count": len(seeds)},
        )
    for i, seed in enumerate(seeds):
        if len(seed) > config.max_seed_len:
            raise InvalidSeedsError(
                f"Seed {i} is {len(seed)} bytes, limit is {config.max_seed_len}",
                {"index": i, "length": len(seed)},
            )


def _hash_address(seeds: Tuple[bytes, ...], program_id: bytes, config: EngineConfig) -> bytes:
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes(program_id))
    hasher.update(config.pda_marker)
    return hasher.digest()


def create_program_address(seeds: Sequence[Seed], program_id: Pubkey,
                           config: Optional[EngineConfig] = None) -> Pubkey:
    """
    Hash seeds (bump included, if any) into an address.

    Raises InvalidSeeds when the seeds break the limits or the hash lands
    on the curve, since such an address could have a private key.
    """
    config = config or get_config()
    normalized = normalize_seeds(seeds)
    _check_seeds(normalized, config)

    candidate = _hash_address(normalized, program_id, config)
    if is_on_curve(candidate):
        raise InvalidSeedsError("Derived address is on the curve")
    return Pubkey(candidate)


def derive(seeds: Sequence[Seed], program_id: Pubkey,
           config: Optional[EngineConfig] = None) -> Tuple[Pubkey, int]:
    """
    Find the canonical (address, bump) for seeds under program_id.

    Pure: the same inputs always give the same pair.
    """
    config = config or get_config()
    normalized = normalize_seeds(seeds)
    # Leave room for the bump seed itself
    _check_seeds(normalized + (b"",), config)

    for bump in range(MAX_BUMP, -1, -1):
        candidate = _hash_address(normalized + (bytes([bump]),), program_id, config)
        if not is_on_curve(candidate):
            logger.debug(f"Derived {candidate.hex()[:8]}... with bump {bump}")
            return Pubkey(candidate), bump

    raise DerivationExhaustedError(
        "No viable bump found for seeds",
        {"program_id": Pubkey(program_id).hex()},
    )


def verify(address: bytes, seeds: Sequence[Seed], bump: int, program_id: Pubkey,
           config: Optional[EngineConfig] = None) -> bool:
    """
    Recompute the address for (seeds, bump) and compare.

    This says nothing about canonicity: a non-canonical bump that happens to
    land off-curve verifies for its own address. Use require_canonical when
    uniqueness matters.
    """
    if not isinstance(bump, int) or not 0 <= bump <= MAX_BUMP:
        return False
    try:
        derived = create_program_address(list(seeds) + [bytes([bump])], program_id, config)
    except InvalidSeedsError:
        return False
    return derived == address


def require_canonical(address: bytes, seeds: Sequence[Seed], bump: Optional[int],
                      program_id: Pubkey, config: Optional[EngineConfig] = None) -> int:
    """
    Insist that address is the canonical PDA for seeds.

    Args:
        address: Address presented by the caller
        seeds: Seeds without the bump
        bump: Caller-supplied bump, or None to only check the address
        program_id: Deriving program

    Returns:
        The canonical bump

    Raises:
        DerivationMismatch if the address or the bump is not canonical
    """
    canonical_address, canonical_bump = derive(seeds, program_id, config)
    if canonical_address != address:
        raise DerivationMismatchError(
            "Address is not the canonical derivation for its seeds",
            {"address": bytes(address).hex()},
        )
    if bump is not None and bump != canonical_bump:
        raise DerivationMismatchError(
            f"Bump {bump} is not canonical",
            {"bump": bump, "canonical_bump": canonical_bump},
        )
    return canonical_bump


class PDAManager:
    """
    Memoizing front-end for derive().

    Derivation is pure, so repeated lookups for the same seeds (every
    instruction touching the same vault) can skip the bump search.
    """

    def __init__(self, program_id: Pubkey, config: Optional[EngineConfig] = None):
        self.program_id = Pubkey(program_id)
        self.config = config
        self._cache: Dict[Tuple[bytes, ...], Tuple[Pubkey, int]] = {}

    def find(self, seeds: Sequence[Seed]) -> Tuple[Pubkey, int]:
        key = normalize_seeds(seeds)
        if key not in self._cache:
            self._cache[key] = derive(key, self.program_id, self.config)
        return self._cache[key]

    def address(self, seeds: Sequence[Seed]) -> Pubkey:
        return self.find(seeds)[0]

    def bump(self, seeds: Sequence[Seed]) -> int:
        return self.find(seeds)[1]

    def __len__(self) -> int:
        return len(self._cache)
