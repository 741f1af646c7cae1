"""
Engine Configuration

Centralized configuration for the validation engine. Defaults match the
ledger's own constants; a YAML file or LEDGER_GATE_* environment variables
can override them for test networks with a different derivation domain.
"""

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml


DISCRIMINATOR_LEN = 8
U64_MAX = 2**64 - 1


@dataclass(frozen=True)
class EngineConfig:
    """Constants shared by address derivation, record views and the runtime."""
    pda_marker: bytes = b"ProgramDerivedAddress"   # Domain tag appended to every derivation
    max_seeds: int = 16                            # Including the bump seed
    max_seed_len: int = 32                         # Bytes per seed
    closed_discriminator: bytes = b"\xff" * DISCRIMINATOR_LEN
    max_account_data: int = 10 * 1024 * 1024       # 10 MiB, same limit as stored accounts
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration invariants."""
        if not self.pda_marker:
            raise ValueError("pda_marker cannot be empty")
        if not 1 <= self.max_seeds <= 255:
            raise ValueError(f"max_seeds out of range: {self.max_seeds}")
        if not 1 <= self.max_seed_len <= 32:
            raise ValueError(f"max_seed_len out of range: {self.max_seed_len}")
        if self.max_account_data < 0:
            raise ValueError("max_account_data cannot be negative")
        if len(self.closed_discriminator) != DISCRIMINATOR_LEN:
            raise ValueError("closed_discriminator must be exactly 8 bytes")
        if self.closed_discriminator == bytes(DISCRIMINATOR_LEN):
            raise ValueError("closed_discriminator cannot equal the uninitialized sentinel")
        if logging.getLevelName(self.log_level.upper()) not in (
            logging.DEBUG, logging.INFO, logging.WARNING, logging.ERROR, logging.CRITICAL
        ):
            raise ValueError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "EngineConfig":
        """Build a config from plain values, decoding byte fields given as text."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")

        parsed = dict(values)
        if isinstance(parsed.get("pda_marker"), str):
            parsed["pda_marker"] = parsed["pda_marker"].encode()
        if isinstance(parsed.get("closed_discriminator"), str):
            parsed["closed_discriminator"] = bytes.fromhex(parsed["closed_discriminator"])
        for name in ("max_seeds", "max_seed_len", "max_account_data"):
            if name in parsed:
                parsed[name] = int(parsed[name])
        return cls(**parsed)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "EngineConfig":
        """Load config from a YAML file; a top-level `ledger_gate` key is optional."""
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        return cls.from_dict(raw.get("ledger_gate", raw))

    @classmethod
    def from_env(cls, base: Optional["EngineConfig"] = None) -> "EngineConfig":
        """Apply LEDGER_GATE_<FIELD> environment overrides on top of `base`."""
        base = base or cls()
        overrides = {}
        for f in fields(cls):
            value = os.environ.get(f"LEDGER_GATE_{f.name.upper()}")
            if value is not None:
                overrides[f.name] = value
        if not overrides:
            return base
        merged = cls.from_dict(overrides)
        return replace(base, **{name: getattr(merged, name) for name in overrides})


_config: Optional[EngineConfig] = None


def get_config() -> EngineConfig:
    """Process-wide config; read from the environment on first use."""
    global _config
    if _config is None:
        path = os.environ.get("LEDGER_GATE_CONFIG")
        base = EngineConfig.from_yaml(path) if path else EngineConfig()
        _config = EngineConfig.from_env(base)
    return _config


def set_config(config: Optional[EngineConfig]) -> None:
    """Replace the process-wide config; None resets to lazy loading."""
    global _config
    _config = config
