"""
fusionswap/core/replay.py

Journal Replay: offline verification of a settlement journal.

Checks, in order, for every entry:
    1. Schema    → entry.validate_schema()
    2. Sequence  → entry.sequence == position
    3. Chain     → entry.verify_chain(prev)
    4. Signature → entry.verify_signature()
    5. Nonce     → no two entries share a nonce

Violations are collected, not raised, so a report can list all of them.
"""

import json
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from fusionswap.core.journal import JournalEntry


@dataclass
class ChainViolation:
    """A single detected violation in the journal."""
    at_sequence:    int
    entry_id:       str
    violation_type: str   # "schema" | "sequence_gap" | "chain_break" | "invalid_signature" | "duplicate_nonce"
    detail:         str


@dataclass
class ReplaySummary:
    total_entries:      int
    valid_signatures:   int
    invalid_signatures: int
    chain_valid:        bool
    violations:         List[ChainViolation] = field(default_factory=list)
    event_counts:       Dict[str, int]       = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.violations

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_entries":      self.total_entries,
            "valid_signatures":   self.valid_signatures,
            "invalid_signatures": self.invalid_signatures,
            "chain_valid":        self.chain_valid,
            "is_valid":           self.is_valid,
            "event_counts":       self.event_counts,
            "violations": [
                {
                    "at_sequence":    v.at_sequence,
                    "entry_id":       v.entry_id,
                    "violation_type": v.violation_type,
                    "detail":         v.detail,
                }
                for v in self.violations
            ],
        }


class JournalReplay:
    """Load a journal JSONL file and verify it."""

    def __init__(self) -> None:
        self.entries: List[JournalEntry] = []

    def load(self, path: Path) -> int:
        """
        Parse every non-empty line. Raises ValueError naming the line on
        malformed JSON or missing fields.
        """
        path = Path(path)
        self.entries = []
        with open(path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    self.entries.append(JournalEntry.from_dict(json.loads(line)))
                except (ValueError, KeyError, TypeError) as exc:
                    raise ValueError(f"Malformed journal line {line_num}: {exc}") from exc
        return len(self.entries)

    def verify(self) -> ReplaySummary:
        violations: List[ChainViolation] = []
        seen_nonces: Set[str] = set()
        valid_sigs = 0
        chain_ok   = True
        prev: Optional[JournalEntry] = None

        for position, entry in enumerate(self.entries):
            schema = entry.validate_schema()
            if not schema:
                violations.append(ChainViolation(
                    position, entry.entry_id, "schema", "; ".join(schema.errors),
                ))

            if not entry.verify_sequence(position):
                violations.append(ChainViolation(
                    position, entry.entry_id, "sequence_gap",
                    f"expected sequence {position}, got {entry.sequence}",
                ))

            if not entry.verify_chain(prev):
                chain_ok = False
                violations.append(ChainViolation(
                    position, entry.entry_id, "chain_break",
                    f"causal_hash ...{entry.causal_hash[-12:]} does not match previous entry",
                ))

            if entry.verify_signature():
                valid_sigs += 1
            else:
                violations.append(ChainViolation(
                    position, entry.entry_id, "invalid_signature",
                    "signature does not verify against signer_public_key",
                ))

            if entry.nonce in seen_nonces:
                violations.append(ChainViolation(
                    position, entry.entry_id, "duplicate_nonce",
                    f"nonce {entry.nonce} already used",
                ))
            seen_nonces.add(entry.nonce)

            prev = entry

        return ReplaySummary(
            total_entries=      len(self.entries),
            valid_signatures=   valid_sigs,
            invalid_signatures= len(self.entries) - valid_sigs,
            chain_valid=        chain_ok,
            violations=         violations,
            event_counts=       dict(Counter(e.event_type for e in self.entries)),
        )
