"""
fusionswap/cli/__init__.py

FusionSwap CLI: root Click command group.

Registered in pyproject.toml as:

    [project.scripts]
    fusionswap = "fusionswap.cli:cli"

Adding a new command:
    1. Create fusionswap/cli/your_command.py with a @click.command()
    2. Import it here
    3. cli.add_command(your_command)
"""

import logging

import click

from fusionswap.cli.orders import hash_command, premium_command, quote_command
from fusionswap.cli.verify import verify_command


@click.group()
@click.version_option(package_name="fusionswap")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Logging verbosity.",
)
def cli(log_level: str) -> None:
    """
    FusionSwap: swap escrow settlement tools.

    \b
    Commands:
      hash      Print the canonical hash of an order (and its escrow address).
      quote     Price a fill of an order at a given time.
      premium   Forced-cancel premium of an order at a given time.
      verify    Verify a settlement journal (chain, signatures, schema).

    \b
    Quick start:
      fusionswap hash order.yaml --maker <hex>
      fusionswap quote order.json --amount 500 --at 1700000100
      fusionswap verify .fusionswap/journal/journal.jsonl --format json
    """
    logging.basicConfig(
        level=  getattr(logging, log_level.upper()),
        format= "%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


cli.add_command(hash_command)
cli.add_command(quote_command)
cli.add_command(premium_command)
cli.add_command(verify_command)
