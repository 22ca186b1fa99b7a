"""
Outstanding transaction table.

A transaction is recorded here once it is signed and before it is
broadcast, and removed once a receipt is seen or its nonce is known to be
consumed. Retries consult this table to resume waiting on the original
transaction instead of creating a competing one.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

# (scope, operation); scope is a pool id or a contract-level label
PendingKey = Tuple[str, str]

# (call arguments, attached value)
CallSignature = Tuple[Tuple[Any, ...], int]


def call_signature(function, value: int = 0) -> CallSignature:
    """Arguments and value identifying one bound contract call."""
    return tuple(function.args or ()), value


@dataclass(frozen=True)
class PendingTransaction:
    """A signed transaction whose receipt has not been observed yet."""

    key: PendingKey
    tx_hash: str
    nonce: int
    raw_transaction: bytes
    call: CallSignature = ((), 0)
    submitted_at: float = field(default_factory=time.time)

    def matches(self, call: CallSignature) -> bool:
        return self.call == call


class PendingTransactionTracker:
    """In-memory table of outstanding transactions keyed by (scope, operation)."""

    def __init__(self):
        self._pending: Dict[PendingKey, PendingTransaction] = {}

    def get(self, key: PendingKey) -> Optional[PendingTransaction]:
        return self._pending.get(key)

    def record(self, pending: PendingTransaction):
        existing = self._pending.get(pending.key)
        if existing is not None and existing.tx_hash != pending.tx_hash:
            raise ValueError(
                f"{pending.key} already has outstanding transaction {existing.tx_hash}"
            )
        self._pending[pending.key] = pending
        logger.debug(f"Recorded {pending.tx_hash} (nonce {pending.nonce}) for {pending.key}")

    def clear(self, key: PendingKey) -> Optional[PendingTransaction]:
        pending = self._pending.pop(key, None)
        if pending is not None:
            logger.debug(f"Cleared {pending.tx_hash} for {key}")
        return pending

    def __contains__(self, key: PendingKey) -> bool:
        return key in self._pending

    def __len__(self) -> int:
        return len(self._pending)

    def __iter__(self) -> Iterator[PendingTransaction]:
        return iter(list(self._pending.values()))
