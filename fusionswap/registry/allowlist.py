"""
Resolver allow-list.

One RegistryRoot record holds the current authority. Each allow-listed
resolver has a ResolverAccess record at derive(resolver_access_seed, user);
membership is simply that record existing.

Every mutating call re-reads the authority from the root record inside
the ledger transaction; nothing is cached between calls.
"""

import logging
from typing import Optional

from fusionswap.core.canonical import address_bytes
from fusionswap.core.crypto import derive_address
from fusionswap.core.exceptions import (
    AccountAlreadyInUse,
    AccountNotFound,
    AccountNotInitialized,
    Unauthorized,
)
from fusionswap.core.journal import EventType, SettlementJournal
from fusionswap.core.models import RegistryRoot, ResolverAccess
from fusionswap.ledger.ledger import Ledger

logger = logging.getLogger(__name__)


class ResolverRegistry:
    """Authority-managed set of resolvers allowed to fill and force-cancel."""

    def __init__(self, ledger: Ledger, journal: Optional[SettlementJournal] = None):
        self.ledger  = ledger
        self.config  = ledger.config
        self.journal = journal

    # ── Addresses ─────────────────────────────────────────────

    @property
    def root_address(self) -> str:
        address, _ = derive_address(
            self.config.program_id, self.config.registry_seed.encode()
        )
        return address

    def access_address(self, user: str) -> str:
        return self._derive_access(user)[0]

    def _derive_access(self, user: str):
        return derive_address(
            self.config.program_id,
            self.config.resolver_access_seed.encode(),
            address_bytes(user),
        )

    # ── Queries ───────────────────────────────────────────────

    def get_authority(self) -> str:
        return self.ledger.load_account(self.root_address, RegistryRoot).authority

    def is_registered(self, user: str) -> bool:
        return self.ledger.account_exists(self.access_address(user))

    def require_resolver(self, user: str) -> ResolverAccess:
        """Return the caller's access record or raise AccountNotInitialized."""
        address = self.access_address(user)
        if not self.ledger.account_exists(address):
            raise AccountNotInitialized(
                "Caller is not an allow-listed resolver", {"user": user}
            )
        return self.ledger.load_account(address, ResolverAccess)

    # ── Mutations ─────────────────────────────────────────────

    def initialize(self, authority: str) -> RegistryRoot:
        address_bytes(authority)
        root = RegistryRoot(authority=authority)
        with self.ledger.transaction():
            self.ledger.create_account(self.root_address, root)
            logger.info("Resolver registry initialized, authority=%s", authority)
            self._emit(EventType.REGISTRY_INITIALIZED, {"authority": authority})
        return root

    def register(self, authority: str, user: str) -> ResolverAccess:
        with self.ledger.transaction():
            self._require_authority(authority)
            address, bump = self._derive_access(user)
            access = ResolverAccess(user=user, bump=bump)
            try:
                self.ledger.create_account(address, access)
            except AccountAlreadyInUse:
                logger.debug("Resolver %s already registered", user)
                raise
            logger.info("Resolver registered: %s", user)
            self._emit(EventType.RESOLVER_REGISTERED, {"user": user, "bump": bump})
        return access

    def deregister(self, authority: str, user: str) -> None:
        with self.ledger.transaction():
            self._require_authority(authority)
            address = self.access_address(user)
            if not self.ledger.account_exists(address):
                raise AccountNotFound("Resolver is not registered", {"user": user})
            self.ledger.close_account(address, refund_to=authority, tombstone=False)
            logger.info("Resolver deregistered: %s", user)
            self._emit(EventType.RESOLVER_DEREGISTERED, {"user": user})

    def set_authority(self, current_authority: str, new_authority: str) -> None:
        address_bytes(new_authority)
        with self.ledger.transaction():
            root = self._require_authority(current_authority)
            root.authority = new_authority
            logger.info(
                "Registry authority changed: %s -> %s", current_authority, new_authority
            )
            self._emit(
                EventType.AUTHORITY_CHANGED,
                {"previous": current_authority, "authority": new_authority},
            )

    # ── Internal ──────────────────────────────────────────────

    def _require_authority(self, caller: str) -> RegistryRoot:
        root = self.ledger.load_account(self.root_address, RegistryRoot)
        if caller != root.authority:
            raise Unauthorized(
                "Caller is not the registry authority", {"caller": caller}
            )
        return root

    def _emit(self, event_type: str, payload: dict) -> None:
        if self.journal is not None:
            journal = self.journal
            self.ledger.on_commit(lambda: journal.emit(event_type, payload))
