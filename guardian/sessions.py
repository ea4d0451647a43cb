"""
Salvium Guardian - Session Registry

Owns the three escrow tables of a guardian process:

  - pending:   escrow id -> PendingEscrow (memory only, between init and finalize)
  - bounties:  escrow id -> BountyRecord  (persisted via BountyStore)
  - wallets:   escrow id -> engine wallet (active signing handles, memory only)

An escrow id lives in at most one of pending/bounties. All state transitions
for one escrow id must run under `locks.hold(escrow_id)`.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import Callable, Dict, List, Optional

from .engine import EngineWallet
from .escrow_types import BountyRecord, PendingEscrow
from .store import BountyStore

log = logging.getLogger("guardian.sessions")


class EscrowLocks:
    """One asyncio.Lock per escrow id, dropped when nobody holds or waits."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, escrow_id: str):
        lock = self._locks.get(escrow_id)
        if lock is None:
            lock = self._locks[escrow_id] = asyncio.Lock()
        self._users[escrow_id] = self._users.get(escrow_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[escrow_id] -= 1
            if self._users[escrow_id] == 0:
                del self._users[escrow_id]
                del self._locks[escrow_id]

    def is_locked(self, escrow_id: str) -> bool:
        lock = self._locks.get(escrow_id)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)


class SessionRegistry:
    """Pending sessions, finalized bounties and active wallets."""

    def __init__(self, store: BountyStore, clock: Callable[[], float] = time.time):
        self.store = store
        self.clock = clock
        self.locks = EscrowLocks()
        self.pending: Dict[str, PendingEscrow] = {}
        self.bounties: Dict[str, BountyRecord] = {}
        self.wallets: Dict[str, EngineWallet] = {}

    def load(self):
        """Load finalized bounties from disk. Their wallets are not resident."""
        self.bounties = self.store.load()

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def is_finalized(self, escrow_id: str) -> bool:
        return escrow_id in self.bounties

    def get_pending(self, escrow_id: str) -> Optional[PendingEscrow]:
        return self.pending.get(escrow_id)

    def get_bounty(self, escrow_id: str) -> Optional[BountyRecord]:
        return self.bounties.get(escrow_id)

    def get_wallet(self, escrow_id: str) -> Optional[EngineWallet]:
        return self.wallets.get(escrow_id)

    def expired(self, now: float, ttl: float) -> List[str]:
        """Pending escrow ids older than `ttl` seconds at `now`."""
        return [eid for eid, p in self.pending.items() if p.age(now) > ttl]

    # -------------------------------------------------------------------------
    # Transitions (caller holds the escrow lock)
    # -------------------------------------------------------------------------

    def add_pending(self, escrow_id: str, wallet: EngineWallet,
                    own_round1: str) -> PendingEscrow:
        if escrow_id in self.bounties:
            raise ValueError(f"Escrow {escrow_id} already finalized")
        pending = PendingEscrow(
            escrow_id=escrow_id,
            wallet=wallet,
            own_round1=own_round1,
            created_at=self.clock(),
        )
        self.pending[escrow_id] = pending
        return pending

    def pop_pending(self, escrow_id: str) -> Optional[PendingEscrow]:
        return self.pending.pop(escrow_id, None)

    async def promote(self, record: BountyRecord) -> EngineWallet:
        """
        Move a pending escrow into the bounty registry.

        The record is persisted before the move is committed; if the write
        fails the pending session is restored and the error propagates.
        Returns the wallet, now an active signing handle.
        """
        escrow_id = record.escrow_id
        pending = self.pending.pop(escrow_id)
        self.bounties[escrow_id] = record
        try:
            await self._persist()
        except Exception:
            del self.bounties[escrow_id]
            self.pending[escrow_id] = pending
            raise
        self.wallets[escrow_id] = pending.wallet
        return pending.wallet

    async def _persist(self):
        snapshot = dict(self.bounties)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.store.save, snapshot)
