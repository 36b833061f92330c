"""
Fill amount and fee arithmetic.

All divisions floor. The maker/receiver is paid the remainder after fees,
so floor dust from the fee divisions always lands with the maker:

    dst_amount = maker_amount + protocol_fee + integrator_fee
    (protocol_fee includes the protocol's surplus share)

Every result must fit an unsigned 64-bit integer; anything larger raises
ArithmeticOverflow, exactly as a checked u64 computation would.
"""

from typing import Tuple

from fusionswap.auction.pricing import BASE_1E2, BASE_1E5
from fusionswap.core.canonical import U64_MAX
from fusionswap.core.config import AuctionBaseline
from fusionswap.core.exceptions import ArithmeticOverflow
from fusionswap.core.models import FillQuote, Order


def _checked(value: int) -> int:
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflow(
            "Amount does not fit in u64", {"value": value}
        )
    return value


def mul_div_floor(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator), checked against the u64 ceiling."""
    if denominator == 0:
        raise ArithmeticOverflow("Division by zero")
    return _checked(a * b // denominator)


def get_dst_amount(
    initial_src_amount: int,
    initial_dst_amount: int,
    src_amount: int,
    rate_bump: int = 0,
) -> int:
    """
    Destination amount owed for src_amount out of an order of
    initial_src_amount, scaled by the auction rate bump.

        floor(src_amount * initial_dst_amount * (1e5 + bump) / (initial_src_amount * 1e5))
    """
    if initial_src_amount == 0:
        raise ArithmeticOverflow("Division by zero")
    return _checked(
        src_amount * initial_dst_amount * (BASE_1E5 + rate_bump)
        // (initial_src_amount * BASE_1E5)
    )


def get_fee_amounts(
    integrator_fee: int,
    protocol_fee: int,
    surplus_percentage: int,
    dst_amount: int,
    estimated_dst_amount: int,
) -> Tuple[int, int, int, int]:
    """
    Split dst_amount between protocol, integrator and maker.

    Returns:
        (protocol_fee_amount, integrator_fee_amount, maker_amount, protocol_surplus)
        protocol_fee_amount already includes protocol_surplus.
    """
    integrator_fee_amount = mul_div_floor(dst_amount, integrator_fee, BASE_1E5)
    protocol_fee_amount   = mul_div_floor(dst_amount, protocol_fee, BASE_1E5)

    actual_dst_amount = dst_amount - protocol_fee_amount - integrator_fee_amount
    if actual_dst_amount < 0:
        raise ArithmeticOverflow(
            "Fees exceed destination amount",
            {"dst_amount": dst_amount},
        )

    protocol_surplus = 0
    if actual_dst_amount > estimated_dst_amount:
        protocol_surplus = mul_div_floor(
            actual_dst_amount - estimated_dst_amount, surplus_percentage, BASE_1E2
        )
    protocol_fee_amount += protocol_surplus

    return (
        protocol_fee_amount,
        integrator_fee_amount,
        dst_amount - integrator_fee_amount - protocol_fee_amount,
        protocol_surplus,
    )


def quote_fill(
    order: Order,
    src_amount: int,
    rate_bump: int,
    baseline: AuctionBaseline = AuctionBaseline.MIN_DST,
) -> FillQuote:
    """Price a fill of src_amount at a known rate bump."""
    if baseline is AuctionBaseline.ESTIMATED_DST:
        baseline_amount = order.estimated_dst_amount
    else:
        baseline_amount = order.min_dst_amount

    dst_amount = get_dst_amount(order.src_amount, baseline_amount, src_amount, rate_bump)
    expected   = get_dst_amount(order.src_amount, order.estimated_dst_amount, src_amount)

    protocol_fee, integrator_fee, maker_amount, protocol_surplus = get_fee_amounts(
        order.fee.integrator_fee_bps,
        order.fee.protocol_fee_bps,
        order.fee.surplus_percentage,
        dst_amount,
        expected,
    )

    return FillQuote(
        src_amount=       src_amount,
        rate_bump=        rate_bump,
        dst_amount=       dst_amount,
        protocol_fee=     protocol_fee,
        integrator_fee=   integrator_fee,
        protocol_surplus= protocol_surplus,
        maker_amount=     maker_amount,
    )
