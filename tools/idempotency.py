"""
Idempotency Cache — replay-safe order placement keyed by client_id.

A retried placement with a client_id seen within the TTL returns the first
call's result instead of submitting again. A duplicate that arrives while
the first call is still in flight waits for it. Failed or abandoned
attempts are forgotten so the next retry really submits.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    created: float
    result: Optional[Dict[str, Any]] = None
    pending: Optional[asyncio.Future] = None


class IdempotencyCache:
    """In-memory client_id → result map. One instance per gateway process."""

    def __init__(self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic):
        self._ttl = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _prune(self) -> None:
        now = self._clock()
        stale = [
            key for key, entry in self._entries.items()
            if entry.pending is None and now - entry.created >= self._ttl
        ]
        for key in stale:
            self._entries.pop(key, None)

    async def run(
        self,
        key: str,
        submit: Callable[[], Awaitable[Dict[str, Any]]],
    ) -> Tuple[Dict[str, Any], bool]:
        """Run ``submit`` once per key. Returns (result, replayed)."""
        while True:
            self._prune()
            entry = self._entries.get(key)
            if entry is None:
                break
            if entry.result is not None:
                logger.info(f"Idempotent replay for client_id={key}")
                return dict(entry.result), True
            # In flight: wait for the leader, then look again.
            await asyncio.shield(entry.pending)

        pending = asyncio.get_running_loop().create_future()
        entry = _Entry(created=self._clock(), pending=pending)
        self._entries[key] = entry
        try:
            result = await submit()
        except BaseException:
            self._entries.pop(key, None)
            raise
        else:
            entry.result = dict(result)
            entry.created = self._clock()
            return result, False
        finally:
            entry.pending = None
            if not pending.done():
                pending.set_result(None)
