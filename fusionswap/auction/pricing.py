"""
Auction pricing engine.

Rate bumps are fixed-point with BASE_1E5 = 100%. A bump of 50_000 means the
taker pays 1.5x the baseline destination amount.

Curve shape (AuctionData):

    bump
     ^
     | initial ─┐
     |           \\ point 0
     |            ──\\ point 1 ─────────┐
     |                                 │
     +─────────────────────────────────┴──> time
     start_time                 start_time + duration

  - at or before start_time:        initial_rate_bump
  - inside a segment [t0, t1]:      linear from b0 to b1, floor rounding
  - after the last point:           last point's bump, held
  - at or after start + duration:   0

Both functions are pure and work on arbitrary-precision ints, so no
intermediate product can overflow.
"""

from fusionswap.core.models import AuctionData

BASE_1E2 = 100
BASE_1E5 = 100_000


def calculate_rate_bump(timestamp: int, data: AuctionData) -> int:
    """Rate bump (in 1e5 units) of the curve at timestamp."""
    if timestamp <= data.start_time:
        return data.initial_rate_bump
    if timestamp >= data.finish_time:
        return 0

    current_rate_bump  = data.initial_rate_bump
    current_point_time = data.start_time

    for point in data.points:
        next_point_time = current_point_time + point.time_delta
        # current_point_time < timestamp here, so a zero time_delta never matches
        if timestamp <= next_point_time:
            return (
                (timestamp - current_point_time) * point.rate_bump
                + (next_point_time - timestamp) * current_rate_bump
            ) // point.time_delta
        current_rate_bump  = point.rate_bump
        current_point_time = next_point_time

    return current_rate_bump


def calculate_premium(
    timestamp: int,
    expiration_time: int,
    auction_duration: int,
    max_cancellation_premium: int,
) -> int:
    """
    Forced-cancel premium at timestamp.

    Grows linearly from 0 at expiration_time to max_cancellation_premium
    at expiration_time + auction_duration, then stays at the max.

    Raises ValueError if the order has not expired yet; forced cancel is
    only defined after expiry.
    """
    if timestamp <= expiration_time:
        raise ValueError(
            f"Premium undefined before expiry: timestamp={timestamp}, "
            f"expiration_time={expiration_time}"
        )

    time_elapsed = timestamp - expiration_time
    if time_elapsed >= auction_duration:
        return max_cancellation_premium

    return time_elapsed * max_cancellation_premium // auction_duration
