"""
fusionswap/cli/orders.py

Order inspection commands: hash, quote, premium.

Order files are JSON or YAML mappings in Order.to_dict() shape. Every
command prints human output by default and a JSON object with
--format json.

Exit codes:
    0  success
    2  unreadable or invalid order, or a rejected computation
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml

from fusionswap.auction.pricing import calculate_premium, calculate_rate_bump
from fusionswap.core.config import AuctionBaseline, EngineConfig
from fusionswap.core.crypto import derive_address
from fusionswap.core.canonical import address_bytes
from fusionswap.core.exceptions import FusionSwapError
from fusionswap.core.models import Order
from fusionswap.settlement.amounts import quote_fill


# ── Shared helpers ────────────────────────────────────────────

def load_order(path: Path) -> Order:
    """Read an order from a JSON or YAML file (YAML is a superset of JSON)."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise click.ClickException(f"{path} does not contain an order mapping")
    return Order.from_dict(data)


def _load_config(config_file: Optional[str]) -> EngineConfig:
    if config_file:
        return EngineConfig.from_yaml(Path(config_file))
    return EngineConfig.from_env()


def _fail(message: str, fmt: str) -> None:
    if fmt == "json":
        click.echo(json.dumps({"error": message}))
    else:
        click.echo(f"  ❌  {message}", err=True)
    sys.exit(2)


def _echo(data: Dict[str, Any], fmt: str) -> None:
    if fmt == "json":
        click.echo(json.dumps(data, indent=2))
        return
    for key, value in data.items():
        click.echo(f"  {key:<18} {value}")


_order_argument = click.argument(
    "order_file", type=click.Path(exists=True, dir_okay=False)
)
_format_option = click.option(
    "--format", "fmt",
    type=click.Choice(["human", "json"], case_sensitive=False),
    default="human",
    show_default=True,
)
_config_option = click.option(
    "--config", "config_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="YAML engine config (defaults to FUSIONSWAP_* environment variables).",
)


# ── hash ──────────────────────────────────────────────────────

@click.command(name="hash")
@_order_argument
@click.option("--maker", default=None, metavar="HEX", help="Also derive the escrow address for this maker.")
@_config_option
@_format_option
def hash_command(order_file: str, maker: Optional[str], config_file: Optional[str], fmt: str) -> None:
    """Print the canonical encoding hash of ORDER_FILE."""
    try:
        order  = load_order(Path(order_file))
        result = {"order_hash": order.hash_hex(), "encoded_length": len(order.encode())}
        if maker:
            config = _load_config(config_file)
            address, bump = derive_address(
                config.program_id,
                config.escrow_seed.encode(),
                address_bytes(maker),
                order.hash(),
            )
            result["escrow_address"] = address
            result["escrow_bump"]    = bump
    except (FusionSwapError, OSError, TypeError, yaml.YAMLError) as exc:
        _fail(str(exc), fmt)
    _echo(result, fmt)


# ── quote ─────────────────────────────────────────────────────

@click.command(name="quote")
@_order_argument
@click.option("--amount", type=int, default=None, help="Source amount to fill (default: whole order).")
@click.option("--at", "timestamp", type=int, required=True, help="Unix timestamp to price at.")
@click.option(
    "--baseline",
    type=click.Choice([b.value for b in AuctionBaseline]),
    default=None,
    help="Amount the auction bump scales (overrides config).",
)
@_config_option
@_format_option
def quote_command(
    order_file:  str,
    amount:      Optional[int],
    timestamp:   int,
    baseline:    Optional[str],
    config_file: Optional[str],
    fmt:         str,
) -> None:
    """Price a fill of ORDER_FILE at a given time."""
    try:
        order  = load_order(Path(order_file))
        config = _load_config(config_file)
        chosen = AuctionBaseline(baseline) if baseline else config.auction_baseline
        quote  = quote_fill(
            order,
            order.src_amount if amount is None else amount,
            calculate_rate_bump(timestamp, order.dutch_auction_data),
            chosen,
        )
    except (FusionSwapError, OSError, TypeError, yaml.YAMLError) as exc:
        _fail(str(exc), fmt)
    _echo(quote.to_dict(), fmt)


# ── premium ───────────────────────────────────────────────────

@click.command(name="premium")
@_order_argument
@click.option("--at", "timestamp", type=int, required=True, help="Unix timestamp to evaluate at.")
@_format_option
def premium_command(order_file: str, timestamp: int, fmt: str) -> None:
    """Forced-cancel premium of ORDER_FILE at a given time."""
    try:
        order = load_order(Path(order_file))
    except (FusionSwapError, OSError, TypeError, yaml.YAMLError) as exc:
        _fail(str(exc), fmt)

    if order.fee.max_cancellation_premium == 0:
        _fail("Order does not allow cancellation by resolver", fmt)
    try:
        premium = calculate_premium(
            timestamp,
            order.expiration_time,
            order.cancellation_auction_duration,
            order.fee.max_cancellation_premium,
        )
    except ValueError as exc:
        _fail(str(exc), fmt)
    _echo({"premium": premium, "max_premium": order.fee.max_cancellation_premium}, fmt)
