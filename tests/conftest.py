"""
tests/conftest.py

Shared fixtures: a ledger on a manual clock, an allow-list with one
resolver, and funded maker / taker vaults for the source and destination
assets.
"""

import hashlib
from types import SimpleNamespace

import pytest

from fusionswap.core.config import NATIVE_ASSET_ID, EngineConfig
from fusionswap.core.models import AuctionData, FeeConfig, Order
from fusionswap.core.time import ManualClock
from fusionswap.ledger.ledger import Ledger
from fusionswap.registry.allowlist import ResolverRegistry
from fusionswap.settlement.engine import EscrowEngine


def addr(tag: str) -> str:
    """Deterministic 32-byte hex address for a readable tag."""
    return hashlib.sha256(tag.encode()).hexdigest()


NOW        = 1_700_000_000
MAKER      = addr("maker")
TAKER      = addr("taker")
AUTHORITY  = addr("authority")
OUTSIDER   = addr("outsider")
PROTOCOL   = addr("protocol")
INTEGRATOR = addr("integrator")
SRC_ASSET  = addr("src-asset")
DST_ASSET  = addr("dst-asset")
NATIVE     = NATIVE_ASSET_ID

NATIVE_FUNDING = 10 ** 12
ASSET_FUNDING  = 10 ** 15


@pytest.fixture
def clock():
    return ManualClock(NOW)


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def ledger(config, clock):
    ledger = Ledger(config, clock)
    for who in (MAKER, TAKER, AUTHORITY, OUTSIDER, PROTOCOL, INTEGRATOR):
        ledger.airdrop(who, NATIVE_FUNDING)
    return ledger


@pytest.fixture
def registry(ledger):
    registry = ResolverRegistry(ledger)
    registry.initialize(AUTHORITY)
    registry.register(AUTHORITY, TAKER)
    return registry


@pytest.fixture
def engine(ledger, registry):
    return EscrowEngine(ledger, registry)


@pytest.fixture
def vaults(ledger):
    """Vaults every fungible-order test needs, funded where they pay out."""
    maker_src = ledger.open_vault(MAKER, SRC_ASSET)
    ledger.mint_to(maker_src, ASSET_FUNDING)
    taker_dst = ledger.open_vault(TAKER, DST_ASSET)
    ledger.mint_to(taker_dst, ASSET_FUNDING)
    return SimpleNamespace(
        maker_src=      maker_src,
        taker_dst=      taker_dst,
        maker_dst=      ledger.open_vault(MAKER, DST_ASSET),
        protocol_dst=   ledger.open_vault(PROTOCOL, DST_ASSET),
        integrator_dst= ledger.open_vault(INTEGRATOR, DST_ASSET),
        outsider_dst=   ledger.open_vault(OUTSIDER, DST_ASSET),
    )


@pytest.fixture
def make_order():
    """Factory for orders with sensible defaults; keyword args override."""

    def factory(**overrides) -> Order:
        fields = dict(
            id=                   1,
            src_amount=           1_000_000,
            min_dst_amount=       2_000_000,
            estimated_dst_amount= 2_000_000,
            expiration_time=      NOW + 3_600,
            src_asset=            SRC_ASSET,
            dst_asset=            DST_ASSET,
            receiver=             MAKER,
            fee=                  FeeConfig(),
            dutch_auction_data=   AuctionData(
                start_time=        NOW,
                duration=          600,
                initial_rate_bump= 0,
            ),
        )
        fields.update(overrides)
        return Order(**fields)

    return factory
