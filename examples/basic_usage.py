"""
FusionSwap: Basic Usage Example

Demonstrates:
- Ledger + allow-list setup
- Creating an escrow for an auctioned order
- A partial fill by a resolver
- A forced cancel after expiry
- Journal verification
"""

import hashlib
import logging
import tempfile

from fusionswap import (
    AuctionData,
    Ed25519KeyManager,
    EscrowEngine,
    FeeConfig,
    Ledger,
    ManualClock,
    Order,
    PointAndTimeDelta,
    ResolverRegistry,
    SettlementJournal,
)


def addr(tag: str) -> str:
    return hashlib.sha256(tag.encode()).hexdigest()


def main():
    """Basic FusionSwap usage."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("=" * 60)
    print("FusionSwap: Basic Usage Example")
    print("=" * 60)
    print()

    maker, resolver, authority = addr("maker"), addr("resolver"), addr("authority")
    usdc, wsol = addr("usdc"), addr("wsol")
    start = 1_700_000_000

    # 1️⃣ Ledger, journal, allow-list
    clock    = ManualClock(start)
    ledger   = Ledger(clock=clock)
    journal  = SettlementJournal(
        Ed25519KeyManager.generate(), journal_path=tempfile.mkdtemp(prefix="fusionswap-")
    )
    registry = ResolverRegistry(ledger, journal)
    engine   = EscrowEngine(ledger, registry, journal)

    for who in (maker, resolver, authority):
        ledger.airdrop(who, 10 ** 10)
    registry.initialize(authority)
    registry.register(authority, resolver)

    maker_usdc    = ledger.open_vault(maker, usdc)
    maker_wsol    = ledger.open_vault(maker, wsol)
    resolver_wsol = ledger.open_vault(resolver, wsol)
    ledger.mint_to(maker_usdc, 1_000_000_000)
    ledger.mint_to(resolver_wsol, 10_000_000_000)
    print("✅ Ledger ready, resolver allow-listed")

    # 2️⃣ Maker locks 1000 USDC, asking for at least 5 WSOL
    order = Order(
        id=                            1,
        src_amount=                    1_000_000_000,
        min_dst_amount=                5_000_000_000,
        estimated_dst_amount=          5_000_000_000,
        expiration_time=               start + 3_600,
        src_asset=                     usdc,
        dst_asset=                     wsol,
        receiver=                      maker,
        fee=                           FeeConfig(max_cancellation_premium=1_000_000),
        dutch_auction_data=            AuctionData(
            start_time=        start,
            duration=          1_800,
            initial_rate_bump= 20_000,
            points=            [PointAndTimeDelta(rate_bump=5_000, time_delta=900)],
        ),
        cancellation_auction_duration= 600,
    )
    created = engine.create(maker, order, maker_src_vault=maker_usdc)
    print(f"✅ Escrow {created.escrow_address[:16]}... holds {created.escrow.balance}")

    # 3️⃣ Resolver fills 40% ten minutes into the auction
    clock.advance(600)
    result = engine.fill(
        resolver, maker, order, 400_000_000,
        taker_dst_vault=resolver_wsol, maker_dst_vault=maker_wsol,
    )
    print(f"✅ Filled at bump {result.quote.rate_bump}: paid {result.dst_amount}, "
          f"remaining {result.remaining_balance}")

    # 4️⃣ Order expires; resolver force-cancels the rest for a premium
    clock.set(order.expiration_time + 300)
    cancelled = engine.cancel_by_resolver(
        resolver, maker, order, reward_limit=10 ** 9, maker_src_vault=maker_usdc,
    )
    print(f"✅ Cancelled: {cancelled.returned_amount} returned, "
          f"premium {cancelled.premium_paid}")

    # 5️⃣ Verify the journal
    print()
    print(f"Journal: {journal.path}")
    print(f"Chain valid: {journal.verify_chain()}")


if __name__ == "__main__":
    main()
