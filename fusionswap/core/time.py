"""
fusionswap/core/time.py

THE ONLY CLOCK SOURCE IN FUSIONSWAP.

Expiration and auction timing are evaluated against unix seconds supplied
by a Clock. Settlement code never calls time.time() directly; it asks the
ledger's clock. Journal timestamps use journal_timestamp().

Wire format for journal timestamps: YYYY-MM-DDTHH:MM:SS.mmmZ
"""

import time
from datetime import datetime, timezone


class SystemClock:
    """Wall-clock unix seconds."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock pinned to an explicit timestamp.

    Used by tests and by the CLI to evaluate an order at a chosen moment.
    """

    def __init__(self, timestamp: int = 0) -> None:
        self._timestamp = int(timestamp)

    def now(self) -> int:
        return self._timestamp

    def set(self, timestamp: int) -> None:
        self._timestamp = int(timestamp)

    def advance(self, seconds: int) -> int:
        self._timestamp += int(seconds)
        return self._timestamp


def journal_timestamp() -> str:
    """
    Return current UTC time in journal wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"
