"""
FusionSwap Settlement

EscrowEngine drives the escrow state machine (create, fill, cancel,
cancel_by_resolver); amounts holds the pure fill and fee arithmetic.
"""

from fusionswap.settlement.amounts import get_dst_amount, get_fee_amounts, quote_fill
from fusionswap.settlement.engine import EscrowEngine

__all__ = ["EscrowEngine", "get_dst_amount", "get_fee_amounts", "quote_fill"]
