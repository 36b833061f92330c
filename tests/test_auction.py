"""
tests/test_auction.py

Auction curve and cancellation premium.
"""

import pytest

from fusionswap.auction.pricing import calculate_premium, calculate_rate_bump
from fusionswap.core.models import AuctionData, PointAndTimeDelta


@pytest.fixture
def curve():
    # 10% at 1000, down to 5% at 1100, 2% at 1200, held until 2000
    return AuctionData(
        start_time=        1_000,
        duration=          1_000,
        initial_rate_bump= 10_000,
        points=            [PointAndTimeDelta(5_000, 100), PointAndTimeDelta(2_000, 100)],
    )


class TestRateBump:

    @pytest.mark.parametrize("timestamp", [0, 999, 1_000])
    def test_initial_bump_at_or_before_start(self, curve, timestamp):
        assert calculate_rate_bump(timestamp, curve) == 10_000

    @pytest.mark.parametrize("timestamp, expected", [
        (1_050, 7_500),
        (1_100, 5_000),
        (1_150, 3_500),
        (1_200, 2_000),
    ])
    def test_linear_inside_segments(self, curve, timestamp, expected):
        assert calculate_rate_bump(timestamp, curve) == expected

    def test_interpolation_floors(self):
        data = AuctionData(
            start_time=0, duration=100, initial_rate_bump=10,
            points=[PointAndTimeDelta(0, 3)],
        )
        # (1*0 + 2*10) / 3 = 6.67
        assert calculate_rate_bump(1, data) == 6

    def test_tail_holds_last_point(self, curve):
        assert calculate_rate_bump(1_500, curve) == 2_000
        assert calculate_rate_bump(1_999, curve) == 2_000

    @pytest.mark.parametrize("timestamp", [2_000, 2_001, 10 ** 9])
    def test_zero_at_and_after_finish(self, curve, timestamp):
        assert calculate_rate_bump(timestamp, curve) == 0

    def test_no_points_holds_initial_until_finish(self):
        data = AuctionData(start_time=10, duration=20, initial_rate_bump=300)
        assert calculate_rate_bump(29, data) == 300
        assert calculate_rate_bump(30, data) == 0

    def test_zero_time_delta_point_is_a_step(self):
        data = AuctionData(
            start_time=0, duration=100, initial_rate_bump=1_000,
            points=[PointAndTimeDelta(400, 0), PointAndTimeDelta(0, 50)],
        )
        assert calculate_rate_bump(0, data) == 1_000
        assert calculate_rate_bump(25, data) == 200

    def test_non_increasing_and_bounded(self, curve):
        previous = calculate_rate_bump(curve.start_time, curve)
        for t in range(curve.start_time, curve.finish_time + 5):
            bump = calculate_rate_bump(t, curve)
            assert 0 <= bump <= curve.initial_rate_bump
            assert bump <= previous
            previous = bump


class TestPremium:

    def test_undefined_at_expiration(self):
        with pytest.raises(ValueError):
            calculate_premium(100, 100, 50, 1_000)

    def test_undefined_before_expiration(self):
        with pytest.raises(ValueError):
            calculate_premium(10, 100, 50, 1_000)

    def test_linear_growth(self):
        assert calculate_premium(125, 100, 50, 1_000) == 500

    def test_floor_near_expiration(self):
        assert calculate_premium(101, 100, 10_000, 1_000) == 0

    @pytest.mark.parametrize("timestamp", [150, 151, 10 ** 6])
    def test_max_once_auction_elapsed(self, timestamp):
        assert calculate_premium(timestamp, 100, 50, 1_000) == 1_000

    def test_zero_duration_pays_max_immediately(self):
        assert calculate_premium(101, 100, 0, 1_000) == 1_000

    def test_wide_intermediate(self):
        huge = 2 ** 64 - 1
        assert calculate_premium(2 ** 31, 0, 2 ** 32, huge) == huge // 2

    def test_monotone_and_bounded(self):
        previous = 0
        for t in range(101, 200):
            premium = calculate_premium(t, 100, 77, 12_345)
            assert previous <= premium <= 12_345
            previous = premium
