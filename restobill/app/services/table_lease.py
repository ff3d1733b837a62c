"""Per-table settlement lease backed by Redis.

Only one settlement may run for a given restaurant and canonical table at a
time. The lease is a Redis key holding a random token with a TTL so that a
crashed worker cannot block the table forever.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from ..domain import MatchPredicate, SettlementInProgress
from ..routes_metrics import settlement_lock_conflicts_total

DEFAULT_TTL_MS = 30_000

logger = logging.getLogger(__name__)


def lease_key(restaurant_id: str, predicate: MatchPredicate) -> str:
    """Return the Redis key guarding settlement of one table."""
    return f"settle:lock:{restaurant_id}:{predicate.lock_key}"


class TableLease:
    """Async context manager holding the settlement lease for one table.

    Raises :class:`SettlementInProgress` on entry when another holder owns
    the key. On exit the key is deleted only if it still carries this
    lease's token.
    """

    def __init__(
        self,
        redis: Any,
        restaurant_id: str,
        predicate: MatchPredicate,
        ttl_ms: int = DEFAULT_TTL_MS,
    ) -> None:
        self.redis = redis
        self.key = lease_key(restaurant_id, predicate)
        self.ttl_ms = ttl_ms
        self.token = uuid.uuid4().hex
        self.held = False

    async def acquire(self) -> None:
        acquired = await self.redis.set(self.key, self.token, nx=True, px=self.ttl_ms)
        if not acquired:
            settlement_lock_conflicts_total.inc()
            raise SettlementInProgress(
                "table is already being settled",
                hint="wait for the running settlement to finish",
                details={"lease": self.key},
            )
        self.held = True

    async def release(self) -> None:
        if not self.held:
            return
        current = await self.redis.get(self.key)
        if isinstance(current, bytes):
            current = current.decode()
        if current == self.token:
            await self.redis.delete(self.key)
        else:
            logger.warning("settlement lease %s expired before release", self.key)
        self.held = False

    async def __aenter__(self) -> "TableLease":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.release()
