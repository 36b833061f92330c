"""
FusionSwap engine configuration.

EngineConfig carries the ledger constants the settlement core depends on.
Defaults mirror the reference deployment; a YAML file or FUSIONSWAP_*
environment variables can override any field.

    storage_deposit       native units locked in every escrow record and
                          refunded to the maker on close
    vault_deposit         native units locked when a vault is opened
    native_asset          asset id that denotes the ledger's native currency
    auction_baseline      which order amount the auction bump scales
                          ("min_dst" or "estimated_dst")
    program_id            namespace for all derived addresses
    escrow_seed / resolver_access_seed / registry_seed
                          derivation seed tags
"""

import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from fusionswap.core.canonical import address_bytes
from fusionswap.core.exceptions import ConfigError, ValidationError


class AuctionBaseline(Enum):
    MIN_DST       = "min_dst"
    ESTIMATED_DST = "estimated_dst"


DEFAULT_PROGRAM_ID      = "f05e5a0b1c2d3e4f5a6b7c8d9e0f1a2b3c4d5e6f7a8b9c0d1e2f3a4b5c6d7e8f"
NATIVE_ASSET_ID         = "069b8857feab8184fb687f634618c035dac439dc1aeb3b5598a0f00000000001"
DEFAULT_STORAGE_DEPOSIT = 2_039_280
DEFAULT_VAULT_DEPOSIT   = 2_039_280

ENV_PREFIX = "FUSIONSWAP_"


@dataclass(frozen=True)
class EngineConfig:
    storage_deposit:      int             = DEFAULT_STORAGE_DEPOSIT
    vault_deposit:        int             = DEFAULT_VAULT_DEPOSIT
    native_asset:         str             = NATIVE_ASSET_ID
    auction_baseline:     AuctionBaseline = AuctionBaseline.MIN_DST
    program_id:           str             = DEFAULT_PROGRAM_ID
    escrow_seed:          str             = "escrow"
    resolver_access_seed: str             = "resolver_access"
    registry_seed:        str             = "whitelist_state"

    def __post_init__(self) -> None:
        for name in ("storage_deposit", "vault_deposit"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ConfigError(f"{name} must be a non-negative int, got {value!r}")
        for name in ("native_asset", "program_id"):
            value = getattr(self, name)
            try:
                address_bytes(value)
            except ValidationError:
                raise ConfigError(f"{name} must be 64 lowercase hex characters, got {value!r}")
        if not isinstance(self.auction_baseline, AuctionBaseline):
            raise ConfigError(
                f"auction_baseline must be an AuctionBaseline, got {self.auction_baseline!r}"
            )

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "EngineConfig":
        """Build a config from a plain mapping. Unknown keys are an error."""
        known   = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown config keys: {unknown}")

        values: Dict[str, Any] = dict(data)
        if "auction_baseline" in values:
            try:
                values["auction_baseline"] = AuctionBaseline(values["auction_baseline"])
            except ValueError:
                raise ConfigError(
                    f"auction_baseline must be one of "
                    f"{[b.value for b in AuctionBaseline]}, got {values['auction_baseline']!r}"
                )
        return cls(**values)

    @classmethod
    def from_yaml(cls, config_file: Path) -> "EngineConfig":
        """Load config from a YAML file. An empty file yields defaults."""
        with open(config_file, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {config_file} must contain a mapping")
        return cls.from_mapping(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Read FUSIONSWAP_<FIELD> variables on top of the defaults."""
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.name in ("storage_deposit", "vault_deposit"):
                try:
                    values[f.name] = int(raw)
                except ValueError:
                    raise ConfigError(f"{ENV_PREFIX}{f.name.upper()} must be an integer")
            else:
                values[f.name] = raw
        return cls.from_mapping(values)

    def with_overrides(self, **overrides: Any) -> "EngineConfig":
        return replace(self, **overrides)
