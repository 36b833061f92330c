"""
tests/test_crypto.py

Key management and program address derivation.
"""

import pytest

from fusionswap.core.config import DEFAULT_PROGRAM_ID
from fusionswap.core.crypto import (
    Ed25519KeyManager,
    create_program_address,
    derive_address,
    is_on_curve,
)
from fusionswap.core.exceptions import ConstraintSeeds

from conftest import MAKER, addr


class TestKeys:

    def test_sign_and_verify(self):
        key = Ed25519KeyManager.generate()
        sig = key.sign(b"settle")
        assert Ed25519KeyManager.verify_detached(b"settle", sig, key.public_key_hex)
        assert not Ed25519KeyManager.verify_detached(b"settle!", sig, key.public_key_hex)

    def test_verify_never_raises(self):
        assert not Ed25519KeyManager.verify_detached(b"x", "!!", "00" * 32)
        assert not Ed25519KeyManager.verify_detached(b"x", "", "short")

    def test_public_key_is_on_curve(self):
        key = Ed25519KeyManager.generate()
        assert is_on_curve(bytes.fromhex(key.address))

    def test_save_and_load(self, tmp_path):
        key  = Ed25519KeyManager.generate()
        path = tmp_path / "keys" / "journal.pem"
        key.save(path)
        assert Ed25519KeyManager.from_file(path).public_key_hex == key.public_key_hex

    def test_seed_length(self):
        with pytest.raises(ValueError):
            Ed25519KeyManager.from_private_bytes(b"\x00" * 31)


class TestDerivation:

    def test_deterministic(self):
        seeds = (b"escrow", bytes.fromhex(MAKER))
        assert derive_address(DEFAULT_PROGRAM_ID, *seeds) == derive_address(DEFAULT_PROGRAM_ID, *seeds)

    def test_off_curve_and_canonical_bump(self):
        address, bump = derive_address(DEFAULT_PROGRAM_ID, b"escrow", bytes.fromhex(MAKER))
        assert not is_on_curve(bytes.fromhex(address))
        assert create_program_address((b"escrow", bytes.fromhex(MAKER)), bump, DEFAULT_PROGRAM_ID) == address
        for higher in range(bump + 1, 256):
            assert create_program_address(
                (b"escrow", bytes.fromhex(MAKER)), higher, DEFAULT_PROGRAM_ID
            ) is None

    def test_seeds_and_program_separate_addresses(self):
        base = derive_address(DEFAULT_PROGRAM_ID, b"escrow", bytes.fromhex(MAKER))[0]
        assert derive_address(DEFAULT_PROGRAM_ID, b"vault", bytes.fromhex(MAKER))[0] != base
        assert derive_address(addr("other-program"), b"escrow", bytes.fromhex(MAKER))[0] != base

    def test_seed_too_long(self):
        with pytest.raises(ConstraintSeeds):
            derive_address(DEFAULT_PROGRAM_ID, b"x" * 33)
