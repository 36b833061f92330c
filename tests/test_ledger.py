"""
tests/test_ledger.py

Ledger primitives: native transfers, vaults, program accounts and
transaction rollback.
"""

import pytest

from fusionswap.core.exceptions import (
    AccountAlreadyInUse,
    AccountNotFound,
    ConstraintTokenAccount,
    InsufficientFunds,
    InvalidAmount,
    LedgerError,
    ValidationError,
)
from fusionswap.core.models import RegistryRoot

from conftest import DST_ASSET, MAKER, NATIVE_FUNDING, OUTSIDER, SRC_ASSET, TAKER, addr


class TestNative:

    def test_transfer(self, ledger):
        ledger.transfer_native(MAKER, TAKER, 10)
        assert ledger.native_balance(MAKER) == NATIVE_FUNDING - 10
        assert ledger.native_balance(TAKER) == NATIVE_FUNDING + 10

    def test_overdraft(self, ledger):
        with pytest.raises(InsufficientFunds):
            ledger.transfer_native(MAKER, TAKER, NATIVE_FUNDING + 1)

    def test_negative_amount(self, ledger):
        with pytest.raises(InvalidAmount):
            ledger.transfer_native(MAKER, TAKER, -1)


class TestVaults:

    def test_open_charges_deposit(self, ledger):
        vault_id = ledger.open_vault(MAKER, SRC_ASSET)
        assert ledger.native_balance(MAKER) == NATIVE_FUNDING - ledger.config.vault_deposit
        assert ledger.native_balance(vault_id) == ledger.config.vault_deposit
        assert vault_id == ledger.vault_address(MAKER, SRC_ASSET)

    def test_open_twice(self, ledger):
        ledger.open_vault(MAKER, SRC_ASSET)
        with pytest.raises(AccountAlreadyInUse):
            ledger.open_vault(MAKER, SRC_ASSET)
        assert ledger.open_vault_if_needed(MAKER, SRC_ASSET) == ledger.vault_address(MAKER, SRC_ASSET)

    def test_transfer_requires_owner(self, ledger):
        source = ledger.open_vault(MAKER, SRC_ASSET)
        target = ledger.open_vault(TAKER, SRC_ASSET)
        ledger.mint_to(source, 100)
        with pytest.raises(ConstraintTokenAccount):
            ledger.transfer(source, target, 10, authority=TAKER)
        ledger.transfer(source, target, 10, authority=MAKER)
        assert ledger.vault_balance(target) == 10

    def test_transfer_requires_same_asset(self, ledger):
        source = ledger.open_vault(MAKER, SRC_ASSET)
        target = ledger.open_vault(TAKER, DST_ASSET)
        ledger.mint_to(source, 100)
        with pytest.raises(ConstraintTokenAccount):
            ledger.transfer(source, target, 10, authority=MAKER)

    def test_close_refunds_deposit(self, ledger):
        vault_id = ledger.open_vault(MAKER, SRC_ASSET)
        assert ledger.close_vault(vault_id, OUTSIDER, authority=MAKER) == ledger.config.vault_deposit
        assert not ledger.has_vault(vault_id)
        assert ledger.native_balance(OUTSIDER) == NATIVE_FUNDING + ledger.config.vault_deposit

    def test_close_non_empty(self, ledger):
        vault_id = ledger.open_vault(MAKER, SRC_ASSET)
        ledger.mint_to(vault_id, 1)
        with pytest.raises(LedgerError):
            ledger.close_vault(vault_id, MAKER, authority=MAKER)

    def test_missing_vault(self, ledger):
        with pytest.raises(AccountNotFound):
            ledger.get_vault(addr("nowhere"))


class TestAccounts:

    def test_create_once_including_closed(self, ledger):
        address = addr("record")
        ledger.create_account(address, RegistryRoot(authority=MAKER))
        with pytest.raises(AccountAlreadyInUse):
            ledger.create_account(address, RegistryRoot(authority=MAKER))
        ledger.close_account(address, refund_to=MAKER)
        assert ledger.was_closed(address)
        with pytest.raises(AccountAlreadyInUse):
            ledger.create_account(address, RegistryRoot(authority=MAKER))

    def test_close_without_tombstone(self, ledger):
        address = addr("record")
        ledger.create_account(address, RegistryRoot(authority=MAKER))
        ledger.close_account(address, refund_to=MAKER, tombstone=False)
        ledger.create_account(address, RegistryRoot(authority=TAKER))
        assert ledger.load_account(address, RegistryRoot).authority == TAKER

    def test_close_sweeps_native(self, ledger):
        address = addr("record")
        ledger.create_account(address, RegistryRoot(authority=MAKER))
        ledger.transfer_native(MAKER, address, 500)
        assert ledger.close_account(address, refund_to=OUTSIDER) == 500
        assert ledger.native_balance(OUTSIDER) == NATIVE_FUNDING + 500

    def test_load_wrong_kind(self, ledger):
        from fusionswap.core.models import Escrow

        address = addr("record")
        ledger.create_account(address, RegistryRoot(authority=MAKER))
        with pytest.raises(LedgerError):
            ledger.load_account(address, Escrow)


class TestTransactions:

    def test_rollback_restores_everything(self, ledger):
        vault_id = ledger.open_vault(MAKER, SRC_ASSET)
        ledger.mint_to(vault_id, 100)
        before = ledger.get_stats()

        with pytest.raises(InsufficientFunds):
            with ledger.transaction():
                ledger.transfer_native(MAKER, TAKER, 1)
                ledger.create_account(addr("record"), RegistryRoot(authority=MAKER))
                ledger.open_vault(TAKER, SRC_ASSET)
                ledger.transfer(vault_id, ledger.vault_address(TAKER, SRC_ASSET), 1, authority=MAKER)
                ledger.transfer(vault_id, ledger.vault_address(TAKER, SRC_ASSET), 1_000, authority=MAKER)

        assert ledger.get_stats() == before
        assert ledger.native_balance(MAKER) == NATIVE_FUNDING - ledger.config.vault_deposit
        assert ledger.native_balance(TAKER) == NATIVE_FUNDING
        assert ledger.vault_balance(vault_id) == 100
        assert not ledger.account_exists(addr("record"))

    def test_nested_failure_unwinds_outer(self, ledger):
        with pytest.raises(InsufficientFunds):
            with ledger.transaction():
                ledger.transfer_native(MAKER, TAKER, 1)
                with ledger.transaction():
                    ledger.transfer_native(TAKER, MAKER, 10 * NATIVE_FUNDING)
        assert ledger.native_balance(MAKER) == NATIVE_FUNDING

    def test_commit_callbacks_run_after_outer_commit(self, ledger):
        calls = []
        with ledger.transaction():
            ledger.on_commit(lambda: calls.append("outer"))
            with ledger.transaction():
                ledger.on_commit(lambda: calls.append("inner"))
            assert calls == []
        assert calls == ["outer", "inner"]

    def test_commit_callbacks_dropped_on_rollback(self, ledger):
        calls = []
        with pytest.raises(InsufficientFunds):
            with ledger.transaction():
                ledger.on_commit(lambda: calls.append("never"))
                ledger.transfer_native(MAKER, TAKER, 10 * NATIVE_FUNDING)
        with ledger.transaction():
            pass
        assert calls == []

    def test_commit_callback_outside_transaction_runs_now(self, ledger):
        calls = []
        ledger.on_commit(lambda: calls.append("now"))
        assert calls == ["now"]


class TestAddresses:

    def test_upper_case_destination_rejected(self, ledger):
        with pytest.raises(ValidationError):
            ledger.transfer_native(MAKER, TAKER.upper(), 10)
        assert ledger.native_balance(MAKER) == NATIVE_FUNDING
        assert ledger.native_balance(TAKER.upper()) == 0

    def test_airdrop_needs_an_address(self, ledger):
        with pytest.raises(ValidationError):
            ledger.airdrop("alice", 10)
