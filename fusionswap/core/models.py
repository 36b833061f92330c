"""
fusionswap/core/models.py

FusionSwap Data Model

Value types (never stored, rebuilt and re-hashed on every call):
    Order, FeeConfig, AuctionData, PointAndTimeDelta

Ledger records (owned by the settlement program):
    Escrow          one per (maker, order_hash)
    RegistryRoot    single allow-list authority record
    ResolverAccess  one per allow-listed resolver

Holdings, i.e. where an escrow's remaining source balance lives:
    NativeHolding()              balance sits in the escrow record's own
                                 native balance, next to the storage deposit
    FungibleHolding(vault_id)    balance sits in a vault owned by the escrow

Operation results:
    CreateResult, FillQuote, FillResult, CancelResult

Addresses and asset ids are 64-char lowercase hex strings throughout.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from fusionswap.core.canonical import encode_order, order_hash
from fusionswap.core.exceptions import ValidationError


# ─────────────────────────────────────────────────────────────
# Order value types
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PointAndTimeDelta:
    """One auction curve point, reached time_delta seconds after the previous one."""
    rate_bump:  int
    time_delta: int

    def to_dict(self) -> Dict[str, Any]:
        return {"rate_bump": self.rate_bump, "time_delta": self.time_delta}


@dataclass(frozen=True)
class AuctionData:
    """
    Dutch auction curve.

    Rate bumps are fixed-point with 100_000 = 100%. The curve starts at
    initial_rate_bump at start_time and walks through points; the bump is
    0 from start_time + duration onward.
    """
    start_time:        int
    duration:          int
    initial_rate_bump: int
    points:            Tuple[PointAndTimeDelta, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "points", tuple(self.points))

    @property
    def finish_time(self) -> int:
        return self.start_time + self.duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "start_time":        self.start_time,
            "duration":          self.duration,
            "initial_rate_bump": self.initial_rate_bump,
            "points":            [p.to_dict() for p in self.points],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AuctionData":
        return cls(
            start_time=        data["start_time"],
            duration=          data["duration"],
            initial_rate_bump= data["initial_rate_bump"],
            points=            tuple(
                PointAndTimeDelta(rate_bump=p["rate_bump"], time_delta=p["time_delta"])
                for p in data.get("points", ())
            ),
        )


@dataclass(frozen=True)
class FeeConfig:
    """
    Fee terms of an order.

    protocol_fee_bps, integrator_fee_bps: 100_000 = 100%
    surplus_percentage:                   100 = 100%
    max_cancellation_premium:             absolute native units
    """
    protocol_fee_bps:         int = 0
    integrator_fee_bps:       int = 0
    surplus_percentage:       int = 0
    max_cancellation_premium: int = 0
    protocol_dst_account:     Optional[str] = None
    integrator_dst_account:   Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "protocol_fee_bps":         self.protocol_fee_bps,
            "integrator_fee_bps":       self.integrator_fee_bps,
            "surplus_percentage":       self.surplus_percentage,
            "max_cancellation_premium": self.max_cancellation_premium,
            "protocol_dst_account":     self.protocol_dst_account,
            "integrator_dst_account":   self.integrator_dst_account,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeeConfig":
        return cls(
            protocol_fee_bps=         data.get("protocol_fee_bps", 0),
            integrator_fee_bps=       data.get("integrator_fee_bps", 0),
            surplus_percentage=       data.get("surplus_percentage", 0),
            max_cancellation_premium= data.get("max_cancellation_premium", 0),
            protocol_dst_account=     data.get("protocol_dst_account"),
            integrator_dst_account=   data.get("integrator_dst_account"),
        )


@dataclass(frozen=True)
class Order:
    """
    The complete terms of a swap order.

    Two orders with identical field values hash identically; orders that
    differ in any field hash differently. The hash binds an escrow to its
    terms: every fill and forced cancel re-encodes the order it is given and
    must land on the same escrow address.
    """
    id:                            int
    src_amount:                    int
    min_dst_amount:                int
    estimated_dst_amount:          int
    expiration_time:               int
    src_asset:                     str
    dst_asset:                     str
    receiver:                      str
    src_asset_is_native:           bool = False
    dst_asset_is_native:           bool = False
    fee:                           FeeConfig = field(default_factory=FeeConfig)
    dutch_auction_data:            AuctionData = field(
        default_factory=lambda: AuctionData(start_time=0, duration=0, initial_rate_bump=0)
    )
    cancellation_auction_duration: int = 0

    def encode(self) -> bytes:
        return encode_order(self)

    def hash(self) -> bytes:
        return order_hash(self)

    def hash_hex(self) -> str:
        return order_hash(self).hex()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id":                            self.id,
            "src_amount":                    self.src_amount,
            "min_dst_amount":                self.min_dst_amount,
            "estimated_dst_amount":          self.estimated_dst_amount,
            "expiration_time":               self.expiration_time,
            "src_asset_is_native":           self.src_asset_is_native,
            "dst_asset_is_native":           self.dst_asset_is_native,
            "fee":                           self.fee.to_dict(),
            "dutch_auction_data":            self.dutch_auction_data.to_dict(),
            "cancellation_auction_duration": self.cancellation_auction_duration,
            "src_asset":                     self.src_asset,
            "dst_asset":                     self.dst_asset,
            "receiver":                      self.receiver,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        """
        Build an order from a plain dict (JSON or YAML file contents).
        Raises ValidationError naming the missing field.
        """
        try:
            return cls(
                id=                            data["id"],
                src_amount=                    data["src_amount"],
                min_dst_amount=                data["min_dst_amount"],
                estimated_dst_amount=          data["estimated_dst_amount"],
                expiration_time=               data["expiration_time"],
                src_asset_is_native=           _bool_field(data, "src_asset_is_native"),
                dst_asset_is_native=           _bool_field(data, "dst_asset_is_native"),
                fee=                           FeeConfig.from_dict(data.get("fee") or {}),
                dutch_auction_data=            AuctionData.from_dict(data["dutch_auction_data"]),
                cancellation_auction_duration= data.get("cancellation_auction_duration", 0),
                src_asset=                     data["src_asset"],
                dst_asset=                     data["dst_asset"],
                receiver=                      data["receiver"],
            )
        except KeyError as exc:
            raise ValidationError(f"Order is missing field {exc.args[0]!r}") from exc


def _bool_field(data: Dict[str, Any], name: str) -> bool:
    value = data.get(name, False)
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be true or false, got {value!r}")
    return value


# ─────────────────────────────────────────────────────────────
# Holdings
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NativeHolding:
    """Escrowed balance is native currency held by the escrow record itself."""

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "native"}


@dataclass(frozen=True)
class FungibleHolding:
    """Escrowed balance sits in a vault owned by the escrow."""
    vault_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "fungible", "vault_id": self.vault_id}


Holding = Union[NativeHolding, FungibleHolding]


# ─────────────────────────────────────────────────────────────
# Ledger records
# ─────────────────────────────────────────────────────────────

@dataclass
class Escrow:
    """
    Live escrow state. balance only ever decreases after creation.

    address is derived from (escrow_seed, maker, order_hash) and is never
    reused for different terms.
    """
    address:                str
    bump:                   int
    maker:                  str
    receiver:               str
    src_asset:              str
    dst_asset:              str
    holding:                Holding
    balance:                int
    order_hash:             bytes
    created_at:             int
    deposit:                int
    src_asset_is_native:    bool
    protocol_dst_account:   Optional[str] = None
    integrator_dst_account: Optional[str] = None

    @property
    def vault_id(self) -> Optional[str]:
        if isinstance(self.holding, FungibleHolding):
            return self.holding.vault_id
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address":                self.address,
            "bump":                   self.bump,
            "maker":                  self.maker,
            "receiver":               self.receiver,
            "src_asset":              self.src_asset,
            "dst_asset":              self.dst_asset,
            "holding":                self.holding.to_dict(),
            "balance":                str(self.balance),
            "order_hash":             self.order_hash.hex(),
            "created_at":             self.created_at,
            "deposit":                str(self.deposit),
            "src_asset_is_native":    self.src_asset_is_native,
            "protocol_dst_account":   self.protocol_dst_account,
            "integrator_dst_account": self.integrator_dst_account,
        }


@dataclass
class RegistryRoot:
    authority: str


@dataclass(frozen=True)
class ResolverAccess:
    user: str
    bump: int


# ─────────────────────────────────────────────────────────────
# Results
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CreateResult:
    escrow:   Escrow
    vault_id: Optional[str]

    @property
    def escrow_address(self) -> str:
        return self.escrow.address


@dataclass(frozen=True)
class FillQuote:
    """
    Amounts for filling src_amount of an order at a given moment.

    dst_amount == maker_amount + protocol_fee + integrator_fee, where
    protocol_fee already includes protocol_surplus.
    """
    src_amount:       int
    rate_bump:        int
    dst_amount:       int
    protocol_fee:     int
    integrator_fee:   int
    protocol_surplus: int
    maker_amount:     int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "src_amount":       self.src_amount,
            "rate_bump":        self.rate_bump,
            "dst_amount":       self.dst_amount,
            "protocol_fee":     self.protocol_fee,
            "integrator_fee":   self.integrator_fee,
            "protocol_surplus": self.protocol_surplus,
            "maker_amount":     self.maker_amount,
        }


@dataclass(frozen=True)
class FillResult:
    escrow_address:    str
    quote:             FillQuote
    remaining_balance: int
    closed:            bool

    @property
    def dst_amount(self) -> int:
        """Total the taker was charged."""
        return self.quote.dst_amount


@dataclass(frozen=True)
class CancelResult:
    escrow_address:  str
    returned_amount: int
    deposit_refund:  int
    premium_paid:    int = 0
