"""
tests/test_amounts.py

Fill pricing and fee split arithmetic.
"""

import pytest

from fusionswap.core.canonical import U64_MAX
from fusionswap.core.config import AuctionBaseline
from fusionswap.core.exceptions import ArithmeticOverflow
from fusionswap.core.models import FeeConfig
from fusionswap.settlement.amounts import get_dst_amount, get_fee_amounts, quote_fill

from conftest import INTEGRATOR, PROTOCOL


class TestDstAmount:

    def test_proportional(self):
        assert get_dst_amount(1_000, 3_000, 250) == 750

    def test_bump_scales(self):
        assert get_dst_amount(1_000_000, 2_000_000, 1_000_000, 50_000) == 3_000_000

    def test_single_floor(self):
        # 1 * 202 * 1.00001 / 101 = 2.00002
        assert get_dst_amount(101, 202, 1, 1) == 2
        # 1 * 10 / 3 = 3.33
        assert get_dst_amount(3, 10, 1) == 3

    def test_no_intermediate_overflow(self):
        assert get_dst_amount(U64_MAX, U64_MAX, U64_MAX) == U64_MAX

    def test_result_over_u64(self):
        with pytest.raises(ArithmeticOverflow):
            get_dst_amount(U64_MAX, U64_MAX, U64_MAX, 1)


class TestFeeAmounts:

    def test_worked_example(self):
        protocol, integrator, maker, surplus = get_fee_amounts(
            integrator_fee=       15_000,
            protocol_fee=         10_000,
            surplus_percentage=   50,
            dst_amount=           3_000_000,
            estimated_dst_amount= 2_000_000,
        )
        assert integrator == 450_000
        assert surplus    == 125_000
        assert protocol   == 300_000 + 125_000
        assert maker      == 2_125_000

    def test_no_surplus_below_estimate(self):
        protocol, integrator, maker, surplus = get_fee_amounts(0, 1_000, 100, 1_000, 5_000)
        assert surplus == 0
        assert protocol == 10
        assert maker == 990

    def test_dust_goes_to_maker(self):
        protocol, integrator, maker, _ = get_fee_amounts(33_333, 33_333, 0, 10, 10)
        assert (protocol, integrator, maker) == (3, 3, 4)

    @pytest.mark.parametrize("dst_amount", [0, 1, 7, 99_999, 100_001, 123_456_789, U64_MAX])
    @pytest.mark.parametrize("protocol_fee, integrator_fee, surplus_pct", [
        (0, 0, 0),
        (1, 1, 1),
        (10_000, 15_000, 50),
        (33_333, 33_333, 100),
        (50_000, 50_000, 100),
    ])
    def test_conservation(self, dst_amount, protocol_fee, integrator_fee, surplus_pct):
        protocol, integrator, maker, surplus = get_fee_amounts(
            integrator_fee, protocol_fee, surplus_pct, dst_amount, dst_amount // 3,
        )
        assert protocol + integrator + maker == dst_amount
        assert min(protocol, integrator, maker, surplus) >= 0
        assert surplus <= protocol

    def test_fees_above_total_rejected(self):
        with pytest.raises(ArithmeticOverflow):
            get_fee_amounts(60_000, 60_000, 0, 1_000, 0)


class TestQuoteFill:

    @pytest.fixture
    def fee_order(self, make_order):
        return make_order(
            estimated_dst_amount= 2_000_000,
            fee=                  FeeConfig(
                protocol_fee_bps=       10_000,
                integrator_fee_bps=     15_000,
                surplus_percentage=     50,
                protocol_dst_account=   PROTOCOL,
                integrator_dst_account= INTEGRATOR,
            ),
        )

    def test_quote_sums_to_dst_amount(self, fee_order):
        quote = quote_fill(fee_order, 1_000_000, 50_000)
        assert quote.dst_amount == 3_000_000
        assert quote.maker_amount + quote.protocol_fee + quote.integrator_fee == quote.dst_amount
        assert quote.protocol_surplus == 125_000

    def test_partial_fill_expected_portion(self, fee_order):
        quote = quote_fill(fee_order, 500_000, 50_000)
        assert quote.dst_amount == 1_500_000
        # expected 1_000_000, net 1_125_000, surplus share 62_500
        assert quote.protocol_surplus == 62_500

    def test_estimated_baseline(self, make_order):
        order = make_order(min_dst_amount=1_000_000, estimated_dst_amount=2_000_000)
        assert quote_fill(order, 1_000_000, 0).dst_amount == 1_000_000
        assert quote_fill(
            order, 1_000_000, 0, AuctionBaseline.ESTIMATED_DST
        ).dst_amount == 2_000_000
