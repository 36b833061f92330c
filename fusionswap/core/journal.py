"""
fusionswap/core/journal.py

Settlement Journal: signed, hash-chained evidence of every state transition.

Contracts:

    SIGNING   bytes_signed = canonicalize(entry.to_signing_dict())
              algorithm    = Ed25519, base64url without padding
    CHAIN     causal_hash  = SHA-256(canonicalize(prev.to_signing_dict()))
              first entry  = GENESIS_HASH ("0" * 64)
    SEQUENCE  0, 1, 2, ... with no gaps
    EVENTS    event_type must be an EventType constant

emit() MUST, in this exact order:
  1. Acquire lock
  2. Build the entry with JournalEntry.create(... prev=last_entry)
  3. Sign it
  4. Append to JSONL; state advances only after the write succeeds

The engine emits only after the ledger transaction commits, so a journal
entry never describes a transition that was rolled back.
"""

import json
import re
import secrets
import threading
import uuid
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from fusionswap.core.canonical import canonical_hash, canonicalize
from fusionswap.core.crypto import Ed25519KeyManager
from fusionswap.core.time import journal_timestamp


JOURNAL_VERSION = "1.0"
GENESIS_HASH    = "0" * 64

_NONCE_HEX_LENGTH      = 32
_PUBLIC_KEY_HEX_LENGTH = 64
_TIMESTAMP_RE = re.compile(
    r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$"
)


class EventType:
    """Journal event_type constants."""
    REGISTRY_INITIALIZED         = "registry_initialized"
    RESOLVER_REGISTERED          = "resolver_registered"
    RESOLVER_DEREGISTERED        = "resolver_deregistered"
    AUTHORITY_CHANGED            = "authority_changed"
    ESCROW_CREATED               = "escrow_created"
    ESCROW_FILLED                = "escrow_filled"
    ESCROW_CANCELLED             = "escrow_cancelled"
    ESCROW_CANCELLED_BY_RESOLVER = "escrow_cancelled_by_resolver"


_VALID_EVENT_TYPES: Set[str] = {
    EventType.REGISTRY_INITIALIZED,
    EventType.RESOLVER_REGISTERED,
    EventType.RESOLVER_DEREGISTERED,
    EventType.AUTHORITY_CHANGED,
    EventType.ESCROW_CREATED,
    EventType.ESCROW_FILLED,
    EventType.ESCROW_CANCELLED,
    EventType.ESCROW_CANCELLED_BY_RESOLVER,
}


@dataclass
class SchemaValidationResult:
    """
    Result of JournalEntry.validate_schema().

    Returned, not raised, so callers can report every violation.
    bool(result) is True iff valid.
    """
    valid:  bool
    errors: List[str]

    def __bool__(self) -> bool:
        return self.valid


@dataclass
class JournalEntry:
    journal_version:   str
    entry_id:          str
    event_type:        str
    signer_public_key: str
    sequence:          int
    nonce:             str
    timestamp:         str
    causal_hash:       str
    payload:           Dict[str, Any]
    signature:         Optional[str] = None

    @classmethod
    def create(
        cls,
        event_type:        str,
        signer_public_key: str,
        sequence:          int,
        payload:           Dict[str, Any],
        prev:              Optional["JournalEntry"] = None,
    ) -> "JournalEntry":
        """Create an unsigned entry chained to prev."""
        if event_type not in _VALID_EVENT_TYPES:
            raise ValueError(
                f"Invalid event_type '{event_type}'. "
                f"Valid: {sorted(_VALID_EVENT_TYPES)}"
            )
        if not isinstance(payload, dict):
            raise TypeError(
                f"payload must be dict, got {type(payload).__name__}"
            )
        if not isinstance(sequence, int) or sequence < 0:
            raise ValueError(
                f"sequence must be non-negative int, got {sequence!r}"
            )

        return cls(
            journal_version=   JOURNAL_VERSION,
            entry_id=          f"fsj-{uuid.uuid4()}",
            event_type=        event_type,
            signer_public_key= signer_public_key,
            sequence=          sequence,
            nonce=             secrets.token_hex(_NONCE_HEX_LENGTH // 2),
            timestamp=         journal_timestamp(),
            causal_hash=       cls.expected_causal_hash_from(prev),
            payload=           payload,
            signature=         None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JournalEntry":
        """
        Deserialize from a JSONL line dict.
        Trusts persisted data; callers must call validate_schema().
        """
        return cls(
            journal_version=   data["journal_version"],
            entry_id=          data["entry_id"],
            event_type=        data["event_type"],
            signer_public_key= data["signer_public_key"],
            sequence=          data["sequence"],
            nonce=             data["nonce"],
            timestamp=         data["timestamp"],
            causal_hash=       data["causal_hash"],
            payload=           data.get("payload", {}),
            signature=         data.get("signature"),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.to_signing_dict()
        data["signature"] = self.signature
        return data

    def to_signing_dict(self) -> Dict[str, Any]:
        """Every field except signature."""
        return {
            "journal_version":   self.journal_version,
            "entry_id":          self.entry_id,
            "event_type":        self.event_type,
            "signer_public_key": self.signer_public_key,
            "sequence":          self.sequence,
            "nonce":             self.nonce,
            "timestamp":         self.timestamp,
            "causal_hash":       self.causal_hash,
            "payload":           self.payload,
        }

    # ── Signing ───────────────────────────────────────────────

    def sign(self, key_manager: Ed25519KeyManager) -> "JournalEntry":
        if key_manager.public_key_hex != self.signer_public_key:
            raise ValueError("Signing key does not match signer_public_key")
        self.signature = key_manager.sign(canonicalize(self.to_signing_dict()))
        return self

    def verify_signature(self) -> bool:
        if not self.signature:
            return False
        return Ed25519KeyManager.verify_detached(
            canonicalize(self.to_signing_dict()),
            self.signature,
            self.signer_public_key,
        )

    # ── Chain ─────────────────────────────────────────────────

    @staticmethod
    def expected_causal_hash_from(prev: Optional["JournalEntry"]) -> str:
        if prev is None:
            return GENESIS_HASH
        return canonical_hash(prev.to_signing_dict())

    def verify_chain(self, prev: Optional["JournalEntry"]) -> bool:
        return self.causal_hash == self.expected_causal_hash_from(prev)

    def verify_sequence(self, expected: int) -> bool:
        return self.sequence == expected

    # ── Schema ────────────────────────────────────────────────

    def validate_schema(self) -> SchemaValidationResult:
        errors: List[str] = []

        if self.journal_version != JOURNAL_VERSION:
            errors.append(
                f"journal_version: expected '{JOURNAL_VERSION}', got '{self.journal_version}'"
            )
        if self.event_type not in _VALID_EVENT_TYPES:
            errors.append(f"event_type '{self.event_type}' not in valid set")
        if not isinstance(self.entry_id, str) or not self.entry_id.startswith("fsj-"):
            errors.append(f"entry_id must start with 'fsj-', got {self.entry_id!r}")
        if not _is_hex(self.signer_public_key, _PUBLIC_KEY_HEX_LENGTH):
            errors.append("signer_public_key must be 64 hex chars")
        if not isinstance(self.sequence, int) or self.sequence < 0:
            errors.append(f"sequence must be non-negative int, got {self.sequence!r}")
        if not _is_hex(self.nonce, _NONCE_HEX_LENGTH):
            errors.append("nonce must be 32 hex chars")
        if not isinstance(self.timestamp, str) or not _TIMESTAMP_RE.match(self.timestamp):
            errors.append(f"timestamp {self.timestamp!r} is not YYYY-MM-DDTHH:MM:SS.mmmZ")
        if not _is_hex(self.causal_hash, 64):
            errors.append("causal_hash must be 64 hex chars")
        if not isinstance(self.payload, dict):
            errors.append(f"payload must be dict, got {type(self.payload).__name__}")

        return SchemaValidationResult(valid=not errors, errors=errors)


def _is_hex(value: Any, length: int) -> bool:
    if not isinstance(value, str) or len(value) != length:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


class SettlementJournal:
    """
    Append-only signed journal of settlement events.

    Thread-safe via internal lock (single-process only).
    State survives process restart by reading the last line on __init__.
    """

    def __init__(
        self,
        key_manager:  Ed25519KeyManager,
        journal_path: str = ".fusionswap/journal",
    ) -> None:
        self.key_manager = key_manager

        self._lock:       threading.Lock         = threading.Lock()
        self._sequence:   int                    = 0
        self._last_entry: Optional[JournalEntry] = None

        self._journal_dir  = Path(journal_path)
        self._journal_dir.mkdir(parents=True, exist_ok=True)
        self._journal_file = self._journal_dir / "journal.jsonl"

        self._restore_state()

    @property
    def path(self) -> Path:
        return self._journal_file

    def emit(self, event_type: str, payload: Dict[str, Any]) -> JournalEntry:
        """
        Append one signed entry.

        Raises RuntimeError on write failure; state does not advance.
        """
        with self._lock:
            entry = JournalEntry.create(
                event_type=        event_type,
                signer_public_key= self.key_manager.public_key_hex,
                sequence=          self._sequence,
                payload=           payload,
                prev=              self._last_entry,
            ).sign(self.key_manager)

            try:
                with open(self._journal_file, "a", encoding="utf-8") as f:
                    f.write(json.dumps(entry.to_dict()) + "\n")
            except OSError as exc:
                raise RuntimeError(
                    f"SettlementJournal: write failed: {exc}"
                ) from exc

            self._sequence   += 1
            self._last_entry  = entry
            return entry

    def verify_chain(self) -> bool:
        """True if every entry's sequence, chain link and signature hold."""
        from fusionswap.core.replay import JournalReplay

        if not self._journal_file.exists():
            return True
        replay = JournalReplay()
        replay.load(self._journal_file)
        return replay.verify().is_valid

    def get_stats(self) -> Dict[str, Any]:
        return {
            "next_sequence":    self._sequence,
            "last_entry_id":    self._last_entry.entry_id if self._last_entry else None,
            "last_causal_hash": (
                JournalEntry.expected_causal_hash_from(self._last_entry)
            ),
            "journal_file":     str(self._journal_file),
            "journal_version":  JOURNAL_VERSION,
        }

    def _restore_state(self) -> None:
        """
        Restore sequence and last entry from an existing journal.
        A corrupted last line leaves state at genesis and issues a
        RuntimeWarning.
        """
        if not self._journal_file.exists():
            return

        last_line = None
        with open(self._journal_file, "r", encoding="utf-8") as f:
            for line in f:
                stripped = line.strip()
                if stripped:
                    last_line = stripped
        if not last_line:
            return

        try:
            entry  = JournalEntry.from_dict(json.loads(last_line))
            schema = entry.validate_schema()
            if not schema:
                raise ValueError(f"Schema violation in last line: {schema.errors}")
        except (ValueError, KeyError, TypeError) as exc:
            warnings.warn(
                f"SettlementJournal: could not restore state from {self._journal_file}: {exc}. "
                "Last line may be corrupted. Call verify_chain() before emitting.",
                RuntimeWarning,
                stacklevel=3,
            )
            return

        self._sequence   = entry.sequence + 1
        self._last_entry = entry
