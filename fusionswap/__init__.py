"""
fusionswap/__init__.py

FusionSwap: settlement core for resolver-filled swap escrows.

A maker locks a source asset in an escrow bound to the hash of its order
terms. Allow-listed resolvers fill it, in whole or in parts, at a price set
by a Dutch auction curve; the maker may cancel at any time, and resolvers
may force-cancel an expired order for a time-growing premium.
"""

__version__ = "0.3.0"

from fusionswap.core.config import AuctionBaseline, EngineConfig
from fusionswap.core.crypto import Ed25519KeyManager, derive_address
from fusionswap.core.journal import EventType, SettlementJournal
from fusionswap.core.models import (
    AuctionData,
    CancelResult,
    CreateResult,
    Escrow,
    FeeConfig,
    FillQuote,
    FillResult,
    Order,
    PointAndTimeDelta,
)
from fusionswap.core.exceptions import FusionSwapError
from fusionswap.core.time import ManualClock, SystemClock
from fusionswap.ledger.ledger import Ledger
from fusionswap.registry.allowlist import ResolverRegistry
from fusionswap.settlement.engine import EscrowEngine

__all__ = [
    # Order terms
    "Order",
    "FeeConfig",
    "AuctionData",
    "PointAndTimeDelta",
    # State and results
    "Escrow",
    "CreateResult",
    "FillQuote",
    "FillResult",
    "CancelResult",
    # Components
    "Ledger",
    "ResolverRegistry",
    "EscrowEngine",
    "SettlementJournal",
    "Ed25519KeyManager",
    "EngineConfig",
    "AuctionBaseline",
    "EventType",
    "ManualClock",
    "SystemClock",
    # Errors
    "FusionSwapError",
    # Helpers
    "derive_address",
]
