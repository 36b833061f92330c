"""
FusionSwap Ledger - In-process account store

Plays the role of the surrounding network for the settlement core:
native balances, vaults, program accounts, derived addresses, and
all-or-nothing transactions.
"""

from fusionswap.ledger.ledger import Ledger, Vault

__all__ = ["Ledger", "Vault"]
