"""BidirectionalStrategy — pull then push, with summed results."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..concurrency import RunLease
from ..correlation import correlation_scope
from ..domain.results import BidirectionalResult

if TYPE_CHECKING:
    from ..ports.locking import ILockStrategy
    from .allegro_to_db import AllegroToDbStrategy
    from .db_to_allegro import DbToAllegroStrategy

logger = logging.getLogger("allegro_sync.sync")


class BidirectionalStrategy:
    """
    Runs Allegro→DB, then DB→Allegro; never interleaved.

    Pulling first lets remote-authoritative fields land before the push reads
    local records. The pull strategy is expected to be field-level
    (``AllegroToDbStrategy(field_level=True)``). Each half still takes its own
    run lease, so a standalone run of either half cannot overlap with it.
    """

    sync_type = "bidirectional"

    def __init__(
        self,
        allegro_to_db: AllegroToDbStrategy,
        db_to_allegro: DbToAllegroStrategy,
        lock_strategy: ILockStrategy,
        *,
        lease_ttl: float = 900.0,
    ) -> None:
        self.allegro_to_db = allegro_to_db
        self.db_to_allegro = db_to_allegro
        self.lock_strategy = lock_strategy
        self.lease_ttl = lease_ttl

    async def execute(
        self, batch_size: int | None = None, *, deadline: float | None = None
    ) -> BidirectionalResult:
        with correlation_scope():
            async with RunLease(self.lock_strategy, self.sync_type, ttl=self.lease_ttl):
                logger.info("Executing bidirectional sync")
                # Past the deadline the push starts nothing and reports cancelled.
                pulled = await self.allegro_to_db.execute(batch_size, deadline=deadline)
                pushed = await self.db_to_allegro.execute(batch_size, deadline=deadline)
                result = BidirectionalResult(allegro_to_db=pulled, db_to_allegro=pushed)
                total = result.total
                logger.info(
                    "Bidirectional sync finished: processed=%d successful=%d failed=%d",
                    total.processed,
                    total.successful,
                    total.failed,
                )
                return result
