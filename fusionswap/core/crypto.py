"""
fusionswap/core/crypto.py

Identity and Address Layer

Key contracts:
    public_key_hex          : @property → 64-char lowercase hex. This IS the
                              participant's address on the ledger.
    sign(data)              : bytes → base64url str, no padding
    verify_detached(...)    : @staticmethod, verifies with ONLY a pubkey hex string
    derive_address(...)     : program address search: SHA-256 over seeds,
                              bump, program id; first candidate (bump 255
                              downward) that is NOT a valid Ed25519 point wins.

Derived addresses are off-curve by construction, so no private key can ever
sign for an escrow or a registry record.
"""

import base64
import hashlib
from pathlib import Path
from typing import Optional, Tuple

from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey,
    Ed25519PublicKey,
)
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from fusionswap.core.exceptions import ConstraintSeeds


PROGRAM_ADDRESS_MARKER = b"ProgramDerivedAddress"
MAX_SEED_LENGTH        = 32


class Ed25519KeyManager:
    """
    Ed25519 key pair for a ledger participant or the journal signer.

    Public surface:
        Ed25519KeyManager.generate()                        → new random key
        Ed25519KeyManager.from_file(path)                  → load PEM private key
        Ed25519KeyManager.from_private_bytes(seed)         → load from raw 32-byte seed
        Ed25519KeyManager.verify_detached(data, sig, hex)  → @staticmethod, no instance needed

        key.public_key_hex          (@property) → 64-char lowercase hex
        key.address                 (@property) → same value, ledger naming
        key.sign(data: bytes)                   → base64url str (no padding)
        key.save(path)                          → write PEM private key
    """

    def __init__(self, private_key: Ed25519PrivateKey) -> None:
        self._private_key:    Ed25519PrivateKey = private_key
        self._public_key:     Ed25519PublicKey  = private_key.public_key()
        self._public_key_hex: str = (
            self._public_key
            .public_bytes(Encoding.Raw, PublicFormat.Raw)
            .hex()
        )

    # ── Construction ──────────────────────────────────────────

    @classmethod
    def generate(cls) -> "Ed25519KeyManager":
        """Generate a new random Ed25519 key pair."""
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_file(cls, path: Path) -> "Ed25519KeyManager":
        """
        Load an Ed25519 private key from a PEM file.
        Raises FileNotFoundError if path does not exist.
        Raises ValueError if the file is not a valid Ed25519 PEM key.
        """
        from cryptography.hazmat.primitives.serialization import (
            load_pem_private_key,
        )

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Key file not found: {path}")
        try:
            private_key = load_pem_private_key(path.read_bytes(), password=None)
        except ValueError as exc:
            raise ValueError(
                f"Failed to load Ed25519 key from {path}: {exc}"
            ) from exc
        if not isinstance(private_key, Ed25519PrivateKey):
            raise ValueError(
                f"Key file {path} does not contain an Ed25519 private key"
            )
        return cls(private_key)

    @classmethod
    def from_private_bytes(cls, seed: bytes) -> "Ed25519KeyManager":
        """
        Load an Ed25519 key from a raw 32-byte seed.
        Raises ValueError if seed is not exactly 32 bytes.
        """
        if len(seed) != 32:
            raise ValueError(
                f"Ed25519 seed must be 32 bytes, got {len(seed)}"
            )
        return cls(Ed25519PrivateKey.from_private_bytes(seed))

    # ── Public Key ────────────────────────────────────────────

    @property
    def public_key_hex(self) -> str:
        """64-character lowercase hex string of the Ed25519 public key."""
        return self._public_key_hex

    @property
    def address(self) -> str:
        return self._public_key_hex

    # ── Signing ───────────────────────────────────────────────

    def sign(self, data: bytes) -> str:
        """Sign data with Ed25519. Returns base64url string, no '=' padding."""
        raw_sig = self._private_key.sign(data)
        return base64.urlsafe_b64encode(raw_sig).rstrip(b"=").decode("ascii")

    @staticmethod
    def verify_detached(
        data:           bytes,
        signature_b64:  str,
        public_key_hex: str,
    ) -> bool:
        """
        Verify an Ed25519 signature using ONLY a public key hex string.

        Returns True if the signature is valid over data with the given
        public key. False for ANY failure (wrong key, bad encoding, wrong
        length, corrupted signature). Never raises.
        """
        try:
            if not isinstance(public_key_hex, str) or len(public_key_hex) != 64:
                return False

            pub = Ed25519PublicKey.from_public_bytes(bytes.fromhex(public_key_hex))

            padding    = 4 - len(signature_b64) % 4
            padded_sig = signature_b64 + "=" * (padding % 4)
            raw_sig    = base64.urlsafe_b64decode(padded_sig)

            if len(raw_sig) != 64:
                return False

            pub.verify(raw_sig, data)
            return True

        except Exception:
            return False

    # ── Persistence ───────────────────────────────────────────

    def save(self, path: Path) -> None:
        """
        Write the private key to disk as a PEM file.
        Creates parent directories if needed.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        pem = self._private_key.private_bytes(
            encoding=             Encoding.PEM,
            format=               PrivateFormat.PKCS8,
            encryption_algorithm= NoEncryption(),
        )
        path.write_bytes(pem)

    def __repr__(self) -> str:
        return (
            f"Ed25519KeyManager(public_key_hex={self._public_key_hex[:16]}...)"
        )


# ─────────────────────────────────────────────────────────────
# Program address derivation
# ─────────────────────────────────────────────────────────────

_P = 2 ** 255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P
_SQRT_M1 = pow(2, (_P - 1) // 4, _P)


def is_on_curve(candidate: bytes) -> bool:
    """
    True if candidate decodes to a point on the Ed25519 curve.

    Standard compressed-point decoding: recover x from y and check that
    x^2 = (y^2 - 1) / (d*y^2 + 1) has a square root mod p.
    """
    if len(candidate) != 32:
        return False
    y    = int.from_bytes(candidate, "little") & ((1 << 255) - 1)
    sign = candidate[31] >> 7
    if y >= _P:
        return False

    y2 = y * y % _P
    u  = (y2 - 1) % _P
    v  = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 == 0:
        return sign == 0

    x = pow(x2, (_P + 3) // 8, _P)
    if (x * x - x2) % _P != 0:
        x = x * _SQRT_M1 % _P
    return (x * x - x2) % _P == 0


def create_program_address(seeds, bump: int, program_id: str) -> Optional[str]:
    """
    Hash seeds + bump + program id into an address.

    Returns None when the hash lands on the curve (not usable as a
    program address).
    """
    hasher = hashlib.sha256()
    for seed in seeds:
        hasher.update(seed)
    hasher.update(bytes([bump]))
    hasher.update(bytes.fromhex(program_id))
    hasher.update(PROGRAM_ADDRESS_MARKER)
    digest = hasher.digest()
    if is_on_curve(digest):
        return None
    return digest.hex()


def derive_address(program_id: str, *seeds: bytes) -> Tuple[str, int]:
    """
    Find the canonical program address for seeds under program_id.

    Walks bump from 255 down to 0 and returns (address_hex, bump) for the
    first off-curve candidate.

    Raises ConstraintSeeds if a seed is too long or no bump works.
    """
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise ConstraintSeeds(
                f"Seed longer than {MAX_SEED_LENGTH} bytes",
                {"length": len(seed)},
            )
    for bump in range(255, -1, -1):
        address = create_program_address(seeds, bump, program_id)
        if address is not None:
            return address, bump
    raise ConstraintSeeds("Unable to find a viable program address bump")
