"""
In-process ledger for FusionSwap.

Holds the state the settlement program reads and writes:

    native balances     address → native units
    vaults              vault_id → Vault (owner, asset, amount, deposit)
    program accounts    address → record (Escrow, RegistryRoot, ResolverAccess)
    tombstones          addresses of closed program accounts

Every public settlement operation runs inside ledger.transaction(): the
state is snapshotted on entry and restored if anything raises, so an
operation either applies completely or not at all. Nested transactions
join the outermost one.

The clock is injected; settlement code reads time only through now().
"""

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Type

from fusionswap.core.canonical import address_bytes
from fusionswap.core.config import EngineConfig
from fusionswap.core.crypto import derive_address
from fusionswap.core.exceptions import (
    AccountAlreadyInUse,
    AccountNotFound,
    ConstraintTokenAccount,
    InsufficientFunds,
    InvalidAmount,
    LedgerError,
)
from fusionswap.core.time import SystemClock

logger = logging.getLogger(__name__)

VAULT_SEED = b"vault"


@dataclass
class Vault:
    """A balance-holder for one fungible asset, bound to one owner."""
    vault_id: str
    owner:    str
    asset:    str
    amount:   int = 0
    deposit:  int = 0

    def to_dict(self) -> dict:
        return {
            "vault_id": self.vault_id,
            "owner":    self.owner,
            "asset":    self.asset,
            "amount":   str(self.amount),
            "deposit":  str(self.deposit),
        }


class Ledger:
    """
    Account store with snapshot/restore transactions.

    Thread-safe via an internal re-entrant lock (single-process only):
    transactions are serialized, which gives every operation the
    one-at-a-time view of state the settlement rules assume.
    """

    def __init__(self, config: Optional[EngineConfig] = None, clock=None) -> None:
        self.config = config or EngineConfig()
        self.clock  = clock or SystemClock()

        self._lock:     threading.RLock = threading.RLock()
        self._depth:    int             = 0
        self._pending:  List[Callable[[], None]] = []
        self._native:   Dict[str, int]  = {}
        self._vaults:   Dict[str, Vault] = {}
        self._accounts: Dict[str, Any]  = {}
        self._closed:   Set[str]        = set()

    # ── Time ──────────────────────────────────────────────────

    def now(self) -> int:
        return self.clock.now()

    # ── Transactions ──────────────────────────────────────────

    @contextmanager
    def transaction(self) -> Iterator["Ledger"]:
        """
        Run a block atomically against ledger state.

        On any exception the native, vault, account and tombstone tables
        are restored to their state at entry and the exception propagates.
        Callbacks queued with on_commit run after the outermost block
        succeeds, still under the lock, so they observe commit order.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield self
                finally:
                    self._depth -= 1
                return

            snapshot = (
                dict(self._native),
                copy.deepcopy(self._vaults),
                copy.deepcopy(self._accounts),
                set(self._closed),
            )
            self._depth = 1
            try:
                yield self
            except BaseException:
                self._native, self._vaults, self._accounts, self._closed = snapshot
                logger.debug("Ledger transaction rolled back")
                raise
            finally:
                self._depth = 0
                pending, self._pending = self._pending, []

            for callback in pending:
                callback()

    def on_commit(self, callback: Callable[[], None]) -> None:
        """
        Queue callback for when the current transaction commits.

        Discarded if the transaction rolls back. Outside a transaction the
        callback runs immediately.
        """
        with self._lock:
            if self._depth:
                self._pending.append(callback)
            else:
                callback()

    # ── Native currency ───────────────────────────────────────

    def native_balance(self, address: str) -> int:
        return self._native.get(address, 0)

    def airdrop(self, address: str, amount: int) -> None:
        """Credit native units out of thin air. Test and setup helper."""
        self._check_amount(amount)
        address_bytes(address)
        with self.transaction():
            self._native[address] = self.native_balance(address) + amount

    def transfer_native(self, source: str, destination: str, amount: int) -> None:
        self._check_amount(amount)
        address_bytes(destination)
        with self.transaction():
            available = self.native_balance(source)
            if available < amount:
                raise InsufficientFunds(
                    "Insufficient native balance",
                    {"address": source, "available": available, "required": amount},
                )
            self._native[source] = available - amount
            self._native[destination] = self.native_balance(destination) + amount

    def drain_native(self, source: str, destination: str) -> int:
        """Move the full native balance of source to destination."""
        amount = self.native_balance(source)
        if amount:
            self.transfer_native(source, destination, amount)
        return amount

    # ── Vault primitive ───────────────────────────────────────

    def vault_address(self, owner: str, asset: str) -> str:
        """Associated vault id for (owner, asset)."""
        address, _ = derive_address(
            self.config.program_id,
            VAULT_SEED,
            address_bytes(owner),
            address_bytes(asset),
        )
        return address

    def open_vault(self, owner: str, asset: str, payer: Optional[str] = None) -> str:
        """
        Open the associated vault of (owner, asset).

        The payer (owner by default) funds the vault deposit in native units;
        it is refunded when the vault is closed.

        Raises AccountAlreadyInUse if the vault exists.
        """
        vault_id = self.vault_address(owner, asset)
        with self.transaction():
            if vault_id in self._vaults:
                raise AccountAlreadyInUse(
                    "Vault already exists", {"vault_id": vault_id}
                )
            deposit = self.config.vault_deposit
            if deposit:
                self.transfer_native(payer or owner, vault_id, deposit)
            self._vaults[vault_id] = Vault(
                vault_id= vault_id,
                owner=    owner,
                asset=    asset,
                amount=   0,
                deposit=  deposit,
            )
        logger.debug("Opened vault %s for owner=%s asset=%s", vault_id, owner, asset)
        return vault_id

    def open_vault_if_needed(self, owner: str, asset: str, payer: Optional[str] = None) -> str:
        vault_id = self.vault_address(owner, asset)
        if vault_id in self._vaults:
            return vault_id
        return self.open_vault(owner, asset, payer)

    def has_vault(self, vault_id: str) -> bool:
        return vault_id in self._vaults

    def get_vault(self, vault_id: str) -> Vault:
        try:
            return self._vaults[vault_id]
        except KeyError:
            raise AccountNotFound("Vault not found", {"vault_id": vault_id}) from None

    def vault_balance(self, vault_id: str) -> int:
        return self.get_vault(vault_id).amount

    def mint_to(self, vault_id: str, amount: int) -> None:
        """Create asset units in a vault. Test and setup helper."""
        self._check_amount(amount)
        with self.transaction():
            self.get_vault(vault_id).amount += amount

    def transfer(
        self,
        source_vault: str,
        destination_vault: str,
        amount: int,
        authority: str,
    ) -> None:
        """
        Move asset units between two vaults of the same asset.

        Raises ConstraintTokenAccount if authority does not own the source
        or the assets differ, InsufficientFunds if the source is short.
        """
        self._check_amount(amount)
        with self.transaction():
            source      = self.get_vault(source_vault)
            destination = self.get_vault(destination_vault)
            if source.owner != authority:
                raise ConstraintTokenAccount(
                    "Transfer authority does not own source vault",
                    {"vault_id": source_vault, "authority": authority},
                )
            if source.asset != destination.asset:
                raise ConstraintTokenAccount(
                    "Vault asset mismatch",
                    {"source": source.asset, "destination": destination.asset},
                )
            if source.amount < amount:
                raise InsufficientFunds(
                    "Insufficient vault balance",
                    {"vault_id": source_vault, "available": source.amount, "required": amount},
                )
            source.amount      -= amount
            destination.amount += amount

    def close_vault(self, vault_id: str, destination: str, authority: str) -> int:
        """
        Close an empty vault and send its deposit to destination.

        Returns the refunded native amount.
        """
        with self.transaction():
            vault = self.get_vault(vault_id)
            if vault.owner != authority:
                raise ConstraintTokenAccount(
                    "Close authority does not own vault",
                    {"vault_id": vault_id, "authority": authority},
                )
            if vault.amount != 0:
                raise LedgerError(
                    "Cannot close a vault with a non-zero balance",
                    {"vault_id": vault_id, "amount": vault.amount},
                )
            del self._vaults[vault_id]
            refund = self.drain_native(vault_id, destination)
        logger.debug("Closed vault %s, refunded %d to %s", vault_id, refund, destination)
        return refund

    def vaults_of(self, owner: str) -> List[Vault]:
        return [v for v in self._vaults.values() if v.owner == owner]

    # ── Program accounts ──────────────────────────────────────

    def create_account(self, address: str, record: Any) -> None:
        """
        Create a program account.

        Create-once: an address that is live or was ever closed cannot be
        created again.
        """
        with self.transaction():
            if address in self._accounts or address in self._closed:
                raise AccountAlreadyInUse(
                    "Account already in use", {"address": address}
                )
            self._accounts[address] = record

    def account_exists(self, address: str) -> bool:
        return address in self._accounts

    def was_closed(self, address: str) -> bool:
        return address in self._closed

    def load_account(self, address: str, kind: Optional[Type] = None) -> Any:
        try:
            record = self._accounts[address]
        except KeyError:
            raise AccountNotFound("Account not found", {"address": address}) from None
        if kind is not None and not isinstance(record, kind):
            raise LedgerError(
                f"Account holds {type(record).__name__}, expected {kind.__name__}",
                {"address": address},
            )
        return record

    def close_account(self, address: str, refund_to: str, tombstone: bool = True) -> int:
        """
        Remove a program account and send all its native units to refund_to.

        tombstone=False lets the address be created again later (registry
        access records); escrows are always tombstoned.
        """
        with self.transaction():
            if address not in self._accounts:
                raise AccountNotFound("Account not found", {"address": address})
            del self._accounts[address]
            if tombstone:
                self._closed.add(address)
            refund = self.drain_native(address, refund_to)
        return refund

    # ── Internal ──────────────────────────────────────────────

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidAmount(f"Amount must be a non-negative int, got {amount!r}")

    def get_stats(self) -> Dict[str, Any]:
        """Return a snapshot of table sizes."""
        return {
            "accounts":        len(self._accounts),
            "closed_accounts": len(self._closed),
            "vaults":          len(self._vaults),
            "native_holders":  sum(1 for v in self._native.values() if v),
        }
