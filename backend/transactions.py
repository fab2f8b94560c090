"""In-memory correlation of gateway authority tokens with requested amounts.

The gateway hands out an authority token when a payment request succeeds and
echoes it back on the verification callback. The amount we asked for is kept
here under that token and handed out exactly once, so a replayed or forged
callback can never be verified with an amount of the caller's choosing.

Entries live for the lifetime of the process. An optional TTL drops
abandoned transactions; with ``ttl_sec=0`` nothing ever expires.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

__all__ = [
    "PendingTransaction",
    "TransactionCorrelator",
]

logger = logging.getLogger("zarinpal-backend.transactions")


@dataclass
class PendingTransaction:
    authority: str
    amount: int
    created_ts: float


class TransactionCorrelator:
    """Maps authority -> amount; every entry is consumed at most once."""

    def __init__(self, ttl_sec: int = 0, clock: Callable[[], float] = time.monotonic) -> None:
        self._pending: Dict[str, PendingTransaction] = {}
        # Lock to guard access to the pending storage
        self._lock = asyncio.Lock()
        self._ttl_sec = ttl_sec
        self._clock = clock

    def _expired(self, item: PendingTransaction, now: float) -> bool:
        return self._ttl_sec > 0 and now - item.created_ts > self._ttl_sec

    def _cleanup(self, now: float) -> int:
        if self._ttl_sec <= 0:
            return 0
        to_del = [k for k, item in self._pending.items() if self._expired(item, now)]
        for k in to_del:
            self._pending.pop(k, None)
        if to_del:
            logger.info("Dropped %s expired pending transaction(s)", len(to_del))
        return len(to_del)

    async def record(self, authority: str, amount: int) -> None:
        """
        Remember the amount requested for a gateway-issued authority.

        An existing entry for the same authority is overwritten; the gateway
        is the only source of tokens so a collision is logged, not raised.

        Raises:
            ValueError: empty authority or non-positive amount.
        """
        if not isinstance(authority, str) or not authority.strip():
            raise ValueError("authority must be a non-empty string")
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"amount must be a positive integer, got {amount!r}")

        now = self._clock()
        async with self._lock:
            self._cleanup(now)
            previous = self._pending.get(authority)
            if previous is not None:
                logger.warning(
                    "Authority collision for %s: replacing amount %s with %s",
                    authority,
                    previous.amount,
                    amount,
                )
            self._pending[authority] = PendingTransaction(
                authority=authority, amount=amount, created_ts=now
            )
        logger.info("Stored transaction amount for authority %s: %s", authority, amount)

    async def take_amount(self, authority: str) -> Optional[int]:
        """
        Return the stored amount for the authority and forget it.

        Returns None when the authority is unknown, already consumed or
        expired.
        """
        now = self._clock()
        async with self._lock:
            self._cleanup(now)
            item = self._pending.pop(authority, None)
        if item is None:
            return None
        logger.info("Removed transaction for authority: %s", authority)
        return item.amount

    async def contains(self, authority: str) -> bool:
        async with self._lock:
            item = self._pending.get(authority)
            return item is not None and not self._expired(item, self._clock())

    async def pending_count(self) -> int:
        async with self._lock:
            self._cleanup(self._clock())
            return len(self._pending)

    async def sweep(self) -> int:
        """Drop expired entries now; returns how many were removed."""
        async with self._lock:
            return self._cleanup(self._clock())
