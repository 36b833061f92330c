"""
FusionSwap: Canonical Encodings

Two canonical forms live here and nowhere else:

1. Order encoding: fixed-width little-endian binary layout of every order
   term. SHA-256 of it is the order hash that seeds the escrow address.

       id                             u32
       src_amount                     u64
       min_dst_amount                 u64
       estimated_dst_amount           u64
       expiration_time                u32
       src_asset_is_native            u8 (0/1)
       dst_asset_is_native            u8 (0/1)
       fee.protocol_fee_bps           u16
       fee.integrator_fee_bps         u16
       fee.surplus_percentage         u8
       fee.max_cancellation_premium   u64
       auction.start_time             u32
       auction.duration               u32
       auction.initial_rate_bump      u16
       auction.points                 u32 count, then (u16 rate_bump, u16 time_delta)*
       cancellation_auction_duration  u32
       fee.protocol_dst_account       u8 presence, then 32 bytes if present
       fee.integrator_dst_account     u8 presence, then 32 bytes if present
       src_asset                      32 bytes
       dst_asset                      32 bytes
       receiver                       32 bytes

   The points count prefix is the only length field; every other field has a
   fixed width, so the layout is injective.

2. Journal JSON: RFC 8785 (JCS) for everything that is signed or chained.

RFC 8785: https://www.rfc-editor.org/rfc/rfc8785
"""

import hashlib
import struct

try:
    import jcs as _jcs
except ImportError as exc:
    raise ImportError(
        "FusionSwap requires the 'jcs' package for RFC 8785 compliance.\n"
        "Install with: pip install jcs\n"
        f"Original error: {exc}"
    ) from exc

from fusionswap.core.exceptions import InvalidAmount, ValidationError


ADDRESS_LENGTH = 32
_HEX_DIGITS    = frozenset("0123456789abcdef")

U8_MAX  = 2 ** 8 - 1
U16_MAX = 2 ** 16 - 1
U32_MAX = 2 ** 32 - 1
U64_MAX = 2 ** 64 - 1

_WIDTH_FORMATS = {
    "u8":  ("<B", U8_MAX),
    "u16": ("<H", U16_MAX),
    "u32": ("<I", U32_MAX),
    "u64": ("<Q", U64_MAX),
}


# ─────────────────────────────────────────────────────────────
# Order encoding
# ─────────────────────────────────────────────────────────────

def address_bytes(address: str) -> bytes:
    """
    Decode a 64-char lowercase hex address into its 32 raw bytes.

    Only the lowercase spelling is accepted: the ledger keys accounts by
    the address string, so each 32-byte address must have exactly one.
    """
    if not isinstance(address, str):
        raise ValidationError(f"Invalid address: {address!r}")
    if len(address) != 2 * ADDRESS_LENGTH or not _HEX_DIGITS.issuperset(address):
        raise ValidationError(
            f"Address must be {2 * ADDRESS_LENGTH} lowercase hex characters",
            {"address": address},
        )
    return bytes.fromhex(address)


def _uint(value: int, width: str, name: str) -> bytes:
    fmt, ceiling = _WIDTH_FORMATS[width]
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(
            f"{name} must be an integer, got {type(value).__name__}"
        )
    if value < 0 or value > ceiling:
        raise InvalidAmount(
            f"{name} out of {width} range",
            {"value": value},
        )
    return struct.pack(fmt, value)


def _flag(value: bool, name: str) -> bytes:
    if not isinstance(value, bool):
        raise ValidationError(f"{name} must be a bool, got {type(value).__name__}")
    return b"\x01" if value else b"\x00"


def _optional_address(address) -> bytes:
    if address is None:
        return b"\x00"
    return b"\x01" + address_bytes(address)


def encode_order(order) -> bytes:
    """
    Encode an order into its canonical binary form.

    Raises InvalidAmount if an integer field does not fit its width and
    ValidationError if an address is malformed.
    """
    fee     = order.fee
    auction = order.dutch_auction_data

    parts = [
        _uint(order.id, "u32", "id"),
        _uint(order.src_amount, "u64", "src_amount"),
        _uint(order.min_dst_amount, "u64", "min_dst_amount"),
        _uint(order.estimated_dst_amount, "u64", "estimated_dst_amount"),
        _uint(order.expiration_time, "u32", "expiration_time"),
        _flag(order.src_asset_is_native, "src_asset_is_native"),
        _flag(order.dst_asset_is_native, "dst_asset_is_native"),
        _uint(fee.protocol_fee_bps, "u16", "fee.protocol_fee_bps"),
        _uint(fee.integrator_fee_bps, "u16", "fee.integrator_fee_bps"),
        _uint(fee.surplus_percentage, "u8", "fee.surplus_percentage"),
        _uint(fee.max_cancellation_premium, "u64", "fee.max_cancellation_premium"),
        _uint(auction.start_time, "u32", "auction.start_time"),
        _uint(auction.duration, "u32", "auction.duration"),
        _uint(auction.initial_rate_bump, "u16", "auction.initial_rate_bump"),
        _uint(len(auction.points), "u32", "auction.points"),
    ]
    for i, point in enumerate(auction.points):
        parts.append(_uint(point.rate_bump, "u16", f"auction.points[{i}].rate_bump"))
        parts.append(_uint(point.time_delta, "u16", f"auction.points[{i}].time_delta"))
    parts.extend([
        _uint(order.cancellation_auction_duration, "u32", "cancellation_auction_duration"),
        _optional_address(fee.protocol_dst_account),
        _optional_address(fee.integrator_dst_account),
        address_bytes(order.src_asset),
        address_bytes(order.dst_asset),
        address_bytes(order.receiver),
    ])
    return b"".join(parts)


def order_hash(order) -> bytes:
    """SHA-256 of the canonical order encoding (32 raw bytes)."""
    return hashlib.sha256(encode_order(order)).digest()


# ─────────────────────────────────────────────────────────────
# Journal JSON
# ─────────────────────────────────────────────────────────────

def canonicalize(obj: dict) -> bytes:
    """
    Encode a dict to RFC 8785 canonical JSON bytes.

    Output is deterministic regardless of key insertion order.
    All values must be JSON-primitive (str, int, float, bool, None, list, dict).

    Returns:
        UTF-8 encoded canonical JSON bytes, suitable for signing.
    """
    return _jcs.canonicalize(obj)


def canonical_hash(obj: dict) -> str:
    """
    SHA-256 of the RFC 8785 canonical form.

    Used for journal causal_hash chaining.

    Returns:
        Lowercase hex-encoded SHA-256 digest (64 characters).
    """
    return hashlib.sha256(canonicalize(obj)).hexdigest()
