"""
FusionSwap Auction Pricing

Pure functions of (curve, time):
- calculate_rate_bump: Dutch auction premium on the taker price
- calculate_premium:   forced-cancel reward that grows after expiry
"""

from fusionswap.auction.pricing import (
    BASE_1E5,
    calculate_premium,
    calculate_rate_bump,
)

__all__ = [
    "BASE_1E5",
    "calculate_premium",
    "calculate_rate_bump",
]
