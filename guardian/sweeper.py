# Copyright (c) 2025 The Salvium Guardian developers
# Distributed under the MIT software license

"""
Cleanup sweeper - evicts abandoned pending escrows.

A pending escrow holds a live wallet. If the bounty server never calls
finalize (crash, timeout, lost round-1 exchange) the wallet is released after
PENDING_TTL_S and the caller has to start again from init.
"""

import asyncio
import logging
from typing import List, Optional

from .config import PENDING_TTL_S, SWEEP_INTERVAL_S
from .sessions import SessionRegistry

log = logging.getLogger("guardian.sweeper")


class CleanupSweeper:
    """
    Periodic pending-escrow eviction.

    Usage:
        sweeper = CleanupSweeper(registry)
        sweeper.start()          # background task on the running loop
        ...
        await sweeper.stop()

        # or one cycle, at an explicit time:
        evicted = await sweeper.sweep(now=1_700_000_000)
    """

    def __init__(self, registry: SessionRegistry, ttl: float = PENDING_TTL_S,
                 interval: float = SWEEP_INTERVAL_S):
        self.registry = registry
        self.ttl = ttl
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Evict every pending escrow older than the TTL. Returns evicted ids."""
        if now is None:
            now = self.registry.clock()

        evicted = []
        for escrow_id in self.registry.expired(now, self.ttl):
            async with self.registry.locks.hold(escrow_id):
                # finalize or a fresh init may have won the lock first
                pending = self.registry.get_pending(escrow_id)
                if pending is None or pending.age(now) <= self.ttl:
                    continue
                self.registry.pop_pending(escrow_id)
                log.info(f"Cleaning up stale pending escrow: {escrow_id}")
                try:
                    await pending.wallet.release()
                except Exception as e:
                    log.error(f"Failed to release wallet for {escrow_id}: {e}")
                evicted.append(escrow_id)
        return evicted

    async def _run(self):
        log.info(f"Cleanup sweeper started (ttl {self.ttl}s, every {self.interval}s)")
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep()
            except Exception as e:
                log.error(f"Cleanup sweeper error: {e}")

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        log.info("Cleanup sweeper stopped")
