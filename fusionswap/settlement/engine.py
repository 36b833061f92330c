"""
Escrow settlement state machine.

    Uninitialized ──create──▶ Open ──fill*──▶ Open ──fill-to-zero──▶ Closed
                               │                                     ▲
                               ├──cancel (maker, any time)───────────┤
                               └──cancel_by_resolver (after expiry)──┘

An escrow lives at derive(escrow_seed, maker, order_hash). Fill and forced
cancel receive the full order, re-hash it, and must land on a live escrow
at that address; different terms land elsewhere and are rejected. Closed
addresses are tombstoned and never come back.

Each operation runs in one ledger transaction: every precondition is
re-evaluated against current state and every transfer commits together
or not at all. Journal entries are written after commit.
"""

import logging
from typing import Optional, Tuple, Union

from fusionswap.auction.pricing import calculate_premium, calculate_rate_bump
from fusionswap.core.canonical import U64_MAX, address_bytes
from fusionswap.core.crypto import derive_address
from fusionswap.core.exceptions import (
    AccountNotFound,
    CancelOrderByResolverIsForbidden,
    ConstraintSeeds,
    ConstraintTokenAccount,
    InconsistentIntegratorFeeConfig,
    InconsistentNativeDstTrait,
    InconsistentNativeSrcTrait,
    InconsistentProtocolFeeConfig,
    InvalidAmount,
    InvalidCancellationFee,
    InvalidEstimatedTakingAmount,
    InvalidProtocolSurplusFee,
    MissingMakerDstAta,
    MissingMakerSrcAta,
    MissingTakerDstAta,
    NotEnoughTokensInEscrow,
    OrderExpired,
    OrderNotExpired,
)
from fusionswap.core.journal import EventType, SettlementJournal
from fusionswap.core.models import (
    CancelResult,
    CreateResult,
    Escrow,
    FillQuote,
    FillResult,
    FungibleHolding,
    NativeHolding,
    Order,
)
from fusionswap.ledger.ledger import Ledger
from fusionswap.registry.allowlist import ResolverRegistry
from fusionswap.settlement.amounts import quote_fill

logger = logging.getLogger(__name__)

MAX_SURPLUS_PERCENTAGE = 100


class EscrowEngine:
    """
    Create / Fill / Cancel / CancelByResolver over a Ledger.

    Callers are identified by address; the engine assumes the surrounding
    transport has already authenticated them.
    """

    def __init__(
        self,
        ledger:   Ledger,
        registry: ResolverRegistry,
        journal:  Optional[SettlementJournal] = None,
    ) -> None:
        self.ledger   = ledger
        self.registry = registry
        self.config   = ledger.config
        self.journal  = journal

    # ── Addresses and lookups ─────────────────────────────────

    def derive_escrow(self, maker: str, order_hash: bytes) -> Tuple[str, int]:
        return derive_address(
            self.config.program_id,
            self.config.escrow_seed.encode(),
            address_bytes(maker),
            order_hash,
        )

    def escrow_address(self, maker: str, order: Order) -> str:
        return self.derive_escrow(maker, order.hash())[0]

    def get_escrow(self, maker: str, order: Order) -> Escrow:
        return self._load_bound_escrow(maker, order.hash())

    # ── Pricing (read-only) ───────────────────────────────────

    def rate_bump(self, order: Order, at: Optional[int] = None) -> int:
        now = self.ledger.now() if at is None else at
        return calculate_rate_bump(now, order.dutch_auction_data)

    def quote(self, order: Order, amount: int, at: Optional[int] = None) -> FillQuote:
        """Price a fill of amount at time at (ledger time by default)."""
        _require_u64(amount, "amount")
        return quote_fill(
            order, amount, self.rate_bump(order, at), self.config.auction_baseline
        )

    def cancellation_premium(self, order: Order, at: Optional[int] = None) -> int:
        now = self.ledger.now() if at is None else at
        if now <= order.expiration_time:
            return 0
        return calculate_premium(
            now,
            order.expiration_time,
            order.cancellation_auction_duration,
            order.fee.max_cancellation_premium,
        )

    # ── Create ────────────────────────────────────────────────

    def create(
        self,
        maker:           str,
        order:           Order,
        maker_src_vault: Optional[str] = None,
    ) -> CreateResult:
        """
        Lock order.src_amount of the source asset in a new escrow.

        maker_src_vault must be supplied for fungible source assets and
        omitted for native ones.
        """
        digest = order.hash()
        fee    = order.fee
        native = self.config.native_asset

        if order.src_amount == 0 or order.min_dst_amount == 0:
            raise InvalidAmount("src_amount and min_dst_amount must be non-zero")
        if order.src_asset_is_native and order.src_asset != native:
            raise InconsistentNativeSrcTrait(
                "src_asset_is_native set for a non-native asset",
                {"src_asset": order.src_asset},
            )
        if order.dst_asset_is_native and order.dst_asset != native:
            raise InconsistentNativeDstTrait(
                "dst_asset_is_native set for a non-native asset",
                {"dst_asset": order.dst_asset},
            )

        now = self.ledger.now()
        if now >= order.expiration_time:
            raise OrderExpired(
                "Order already expired",
                {"now": now, "expiration_time": order.expiration_time},
            )
        if fee.surplus_percentage > MAX_SURPLUS_PERCENTAGE:
            raise InvalidProtocolSurplusFee(
                "surplus_percentage above 100", {"value": fee.surplus_percentage}
            )
        if order.estimated_dst_amount < order.min_dst_amount:
            raise InvalidEstimatedTakingAmount(
                "estimated_dst_amount below min_dst_amount"
            )

        protocol_fee_expected = fee.protocol_fee_bps > 0 or fee.surplus_percentage > 0
        if protocol_fee_expected != (fee.protocol_dst_account is not None):
            raise InconsistentProtocolFeeConfig(
                "protocol_dst_account must be set iff protocol fee or surplus is positive"
            )
        if (fee.integrator_fee_bps > 0) != (fee.integrator_dst_account is not None):
            raise InconsistentIntegratorFeeConfig(
                "integrator_dst_account must be set iff integrator fee is positive"
            )
        self._check_fee_destination(
            order, fee.protocol_dst_account, InconsistentProtocolFeeConfig
        )
        self._check_fee_destination(
            order, fee.integrator_dst_account, InconsistentIntegratorFeeConfig
        )

        if fee.max_cancellation_premium > self.config.storage_deposit:
            raise InvalidCancellationFee(
                "max_cancellation_premium exceeds the escrow storage deposit",
                {
                    "max_cancellation_premium": fee.max_cancellation_premium,
                    "storage_deposit":          self.config.storage_deposit,
                },
            )
        if order.src_asset_is_native != (maker_src_vault is None):
            raise InconsistentNativeSrcTrait(
                "maker source vault must be omitted for native orders and supplied otherwise"
            )

        address, bump = self.derive_escrow(maker, digest)

        with self.ledger.transaction():
            if order.src_asset_is_native:
                holding = NativeHolding()
            else:
                self._check_vault(maker_src_vault, owner=maker, asset=order.src_asset)
                holding = FungibleHolding(
                    vault_id=self.ledger.vault_address(address, order.src_asset)
                )

            escrow = Escrow(
                address=                address,
                bump=                   bump,
                maker=                  maker,
                receiver=               order.receiver,
                src_asset=              order.src_asset,
                dst_asset=              order.dst_asset,
                holding=                holding,
                balance=                order.src_amount,
                order_hash=             digest,
                created_at=             now,
                deposit=                self.config.storage_deposit,
                src_asset_is_native=    order.src_asset_is_native,
                protocol_dst_account=   fee.protocol_dst_account,
                integrator_dst_account= fee.integrator_dst_account,
            )
            self.ledger.create_account(address, escrow)
            self.ledger.transfer_native(maker, address, self.config.storage_deposit)

            if isinstance(holding, FungibleHolding):
                self.ledger.open_vault(address, order.src_asset, payer=maker)
                self.ledger.transfer(
                    maker_src_vault, holding.vault_id, order.src_amount, authority=maker
                )
            else:
                self.ledger.transfer_native(maker, address, order.src_amount)

            logger.info(
                "Escrow created: %s maker=%s src_amount=%d", address, maker, order.src_amount
            )
            self._emit(EventType.ESCROW_CREATED, {
                "escrow":     address,
                "maker":      maker,
                "order_hash": digest.hex(),
                "src_amount": str(order.src_amount),
                "native_src": order.src_asset_is_native,
            })

        return CreateResult(escrow=escrow, vault_id=escrow.vault_id)

    # ── Fill ──────────────────────────────────────────────────

    def fill(
        self,
        taker:           str,
        maker:           str,
        order:           Order,
        amount:          int,
        taker_dst_vault: Optional[str] = None,
        maker_dst_vault: Optional[str] = None,
        taker_src_vault: Optional[str] = None,
    ) -> FillResult:
        """
        Sell amount of the escrowed source asset to an allow-listed taker.

        The taker pays the auction-scaled destination amount, split between
        the receiver, the protocol and the integrator. The escrow closes
        when its balance reaches zero.
        """
        with self.ledger.transaction():
            self.registry.require_resolver(taker)
            _require_u64(amount, "amount")

            now = self.ledger.now()
            if now >= order.expiration_time:
                raise OrderExpired(
                    "Order expired", {"now": now, "expiration_time": order.expiration_time}
                )

            escrow = self._load_bound_escrow(maker, order.hash())

            if amount > escrow.balance:
                raise NotEnoughTokensInEscrow(
                    "Requested amount exceeds escrow balance",
                    {"requested": amount, "balance": escrow.balance},
                )
            if amount == 0:
                raise InvalidAmount("Fill amount must be non-zero")

            if not order.dst_asset_is_native:
                if taker_dst_vault is None:
                    raise MissingTakerDstAta("Taker destination vault required")
                if maker_dst_vault is None:
                    raise MissingMakerDstAta("Receiver destination vault required")
                self._check_vault(
                    maker_dst_vault, owner=escrow.receiver, asset=escrow.dst_asset
                )

            quote = quote_fill(
                order,
                amount,
                calculate_rate_bump(now, order.dutch_auction_data),
                self.config.auction_baseline,
            )

            # Escrow => Taker
            if isinstance(escrow.holding, FungibleHolding):
                if taker_src_vault is None:
                    taker_src_vault = self.ledger.open_vault_if_needed(
                        taker, order.src_asset
                    )
                self.ledger.transfer(
                    escrow.holding.vault_id, taker_src_vault, amount,
                    authority=escrow.address,
                )
            else:
                self.ledger.transfer_native(escrow.address, taker, amount)

            # Taker => Receiver, protocol, integrator
            receiver_account = escrow.receiver if order.dst_asset_is_native else maker_dst_vault
            self._pay_dst(order, taker, taker_dst_vault, receiver_account, quote.maker_amount)
            if quote.protocol_fee > 0:
                self._pay_dst(
                    order, taker, taker_dst_vault,
                    escrow.protocol_dst_account, quote.protocol_fee,
                )
            if quote.integrator_fee > 0:
                self._pay_dst(
                    order, taker, taker_dst_vault,
                    escrow.integrator_dst_account, quote.integrator_fee,
                )

            escrow.balance -= amount
            closed = escrow.balance == 0
            if closed:
                self._close(escrow)

            logger.info(
                "Escrow filled: %s taker=%s amount=%d dst_amount=%d remaining=%d",
                escrow.address, taker, amount, quote.dst_amount, escrow.balance,
            )
            self._emit(EventType.ESCROW_FILLED, {
                "escrow":         escrow.address,
                "taker":          taker,
                "src_amount":     str(amount),
                "rate_bump":      quote.rate_bump,
                "dst_amount":     str(quote.dst_amount),
                "maker_amount":   str(quote.maker_amount),
                "protocol_fee":   str(quote.protocol_fee),
                "integrator_fee": str(quote.integrator_fee),
                "remaining":      str(escrow.balance),
                "closed":         closed,
            })

        return FillResult(
            escrow_address=    escrow.address,
            quote=             quote,
            remaining_balance= escrow.balance,
            closed=            closed,
        )

    # ── Cancel ────────────────────────────────────────────────

    def cancel(
        self,
        maker:               str,
        order_hash:          Union[bytes, str],
        src_asset_is_native: bool,
        maker_src_vault:     Optional[str] = None,
    ) -> CancelResult:
        """
        Maker's unilateral exit: return the remaining balance and close.

        Available at any time, before or after expiry.
        """
        if isinstance(order_hash, str):
            order_hash = bytes.fromhex(order_hash)

        with self.ledger.transaction():
            escrow = self._load_bound_escrow(maker, order_hash)
            if src_asset_is_native != escrow.src_asset_is_native:
                raise InconsistentNativeSrcTrait(
                    "src_asset_is_native does not match the escrow"
                )
            if src_asset_is_native != (maker_src_vault is None):
                raise InconsistentNativeSrcTrait(
                    "maker source vault must be omitted for native orders and supplied otherwise"
                )
            returned = self._return_balance(escrow, maker_src_vault)
            refund   = self._close(escrow)

            logger.info("Escrow cancelled by maker: %s returned=%d", escrow.address, returned)
            self._emit(EventType.ESCROW_CANCELLED, {
                "escrow":   escrow.address,
                "maker":    maker,
                "returned": str(returned),
            })

        return CancelResult(
            escrow_address=  escrow.address,
            returned_amount= returned,
            deposit_refund=  refund,
        )

    def cancel_by_resolver(
        self,
        resolver:        str,
        maker:           str,
        order:           Order,
        reward_limit:    int,
        maker_src_vault: Optional[str] = None,
    ) -> CancelResult:
        """
        Forced cancel of an expired order by an allow-listed resolver.

        The resolver earns min(reward_limit, premium) in native currency,
        taken from the escrow's storage deposit. The maker gets back the
        full remaining balance and the rest of the deposit.
        """
        with self.ledger.transaction():
            self.registry.require_resolver(resolver)
            _require_u64(reward_limit, "reward_limit")

            if order.fee.max_cancellation_premium == 0:
                raise CancelOrderByResolverIsForbidden(
                    "Order does not allow cancellation by resolver"
                )
            now = self.ledger.now()
            if now <= order.expiration_time:
                raise OrderNotExpired(
                    "Order has not expired",
                    {"now": now, "expiration_time": order.expiration_time},
                )
            if order.src_asset_is_native != (maker_src_vault is None):
                raise InconsistentNativeSrcTrait(
                    "maker source vault must be omitted for native orders and supplied otherwise"
                )

            escrow   = self._load_bound_escrow(maker, order.hash())
            returned = self._return_balance(escrow, maker_src_vault)
            premium  = min(
                reward_limit,
                calculate_premium(
                    now,
                    order.expiration_time,
                    order.cancellation_auction_duration,
                    order.fee.max_cancellation_premium,
                ),
            )
            if premium:
                self.ledger.transfer_native(escrow.address, resolver, premium)
            refund = self._close(escrow)

            logger.info(
                "Escrow cancelled by resolver: %s resolver=%s premium=%d",
                escrow.address, resolver, premium,
            )
            self._emit(EventType.ESCROW_CANCELLED_BY_RESOLVER, {
                "escrow":   escrow.address,
                "resolver": resolver,
                "maker":    maker,
                "premium":  str(premium),
                "returned": str(returned),
            })

        return CancelResult(
            escrow_address=  escrow.address,
            returned_amount= returned,
            deposit_refund=  refund,
            premium_paid=    premium,
        )

    # ── Internal ──────────────────────────────────────────────

    def _load_bound_escrow(self, maker: str, order_hash: bytes) -> Escrow:
        """
        Resolve the live escrow bound to (maker, order_hash).

        ConstraintSeeds: nothing was ever created at the derived address,
        i.e. the terms or the maker do not match any escrow.
        AccountNotFound: the escrow existed and has been closed.
        """
        address, _ = self.derive_escrow(maker, order_hash)
        if self.ledger.account_exists(address):
            escrow = self.ledger.load_account(address, Escrow)
            if escrow.order_hash != order_hash or escrow.maker != maker:
                raise ConstraintSeeds("Escrow binding mismatch", {"escrow": address})
            return escrow
        if self.ledger.was_closed(address):
            raise AccountNotFound("Escrow is closed", {"escrow": address})
        logger.debug("No escrow at %s for maker=%s", address, maker)
        raise ConstraintSeeds(
            "Order terms do not match any escrow of this maker",
            {"escrow": address, "maker": maker},
        )

    def _check_vault(self, vault_id: str, asset: str, owner: Optional[str] = None) -> None:
        vault = self.ledger.get_vault(vault_id)
        if vault.asset != asset:
            raise ConstraintTokenAccount(
                "Vault holds the wrong asset",
                {"vault_id": vault_id, "expected": asset, "actual": vault.asset},
            )
        if owner is not None and vault.owner != owner:
            raise ConstraintTokenAccount(
                "Vault has the wrong owner",
                {"vault_id": vault_id, "expected": owner, "actual": vault.owner},
            )

    def _check_fee_destination(self, order: Order, account: Optional[str], error) -> None:
        """Fee destinations of fungible orders must be vaults of the destination asset."""
        if account is None or order.dst_asset_is_native:
            return
        if not self.ledger.has_vault(account):
            raise error("Fee destination is not a vault", {"account": account})
        if self.ledger.get_vault(account).asset != order.dst_asset:
            raise error(
                "Fee destination vault does not hold the destination asset",
                {"account": account},
            )

    def _pay_dst(
        self,
        order:           Order,
        taker:           str,
        taker_dst_vault: Optional[str],
        destination:     str,
        amount:          int,
    ) -> None:
        if order.dst_asset_is_native:
            self.ledger.transfer_native(taker, destination, amount)
        else:
            self.ledger.transfer(taker_dst_vault, destination, amount, authority=taker)

    def _return_balance(self, escrow: Escrow, maker_src_vault: Optional[str]) -> int:
        """
        Hand the remaining balance back to the maker.

        Native balances are swept with the deposit when the escrow closes;
        fungible balances move to the maker's source vault here.
        """
        returned = escrow.balance
        if isinstance(escrow.holding, FungibleHolding):
            if maker_src_vault is None:
                raise MissingMakerSrcAta("Maker source vault required")
            self._check_vault(maker_src_vault, owner=escrow.maker, asset=escrow.src_asset)
            if returned:
                self.ledger.transfer(
                    escrow.holding.vault_id, maker_src_vault, returned,
                    authority=escrow.address,
                )
            escrow.balance = 0
        return returned

    def _close(self, escrow: Escrow) -> int:
        """
        Close the vault (if any) and the escrow record, refunding every
        native unit they hold to the maker. Returns the deposit refund,
        excluding any native escrowed balance swept along with it.
        """
        refund = 0
        if isinstance(escrow.holding, FungibleHolding):
            refund += self.ledger.close_vault(
                escrow.holding.vault_id, destination=escrow.maker, authority=escrow.address
            )
        swept = self.ledger.close_account(escrow.address, refund_to=escrow.maker)
        if isinstance(escrow.holding, NativeHolding):
            swept -= escrow.balance
            escrow.balance = 0
        return refund + swept

    def _emit(self, event_type: str, payload: dict) -> None:
        """Journal the event when the enclosing transaction commits."""
        if self.journal is not None:
            journal = self.journal
            self.ledger.on_commit(lambda: journal.emit(event_type, payload))


def _require_u64(value: int, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= U64_MAX:
        raise InvalidAmount(f"{name} must be a u64 integer, got {value!r}")
