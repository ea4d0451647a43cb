"""
Salvium Guardian service - one object wiring the guardian together.

    service = GuardianService(engine, BountyStore(path))
    await service.initialize()
    round1 = await service.begin("b1")
    result = await service.finalize("b1", 1000000, s1, s2, w1, w2)
    signed = await service.sign_refund("b1", current_block, tx_hex)

Every operation fails with NotInitialized until initialize() completed.
"""

import logging
import time
from typing import Callable, Dict, List, Optional

from .config import PENDING_TTL_S, SWEEP_INTERVAL_S
from .engine import CryptoEngine
from .errors import NotFound, NotInitialized
from .escrow_types import FinalizeResult, SignedTx
from .protocol import ProtocolDriver
from .sessions import SessionRegistry
from .signing import SigningGate
from .store import BountyStore
from .sweeper import CleanupSweeper

log = logging.getLogger("guardian.service")


class GuardianService:

    def __init__(self, engine: CryptoEngine, store: BountyStore,
                 clock: Callable[[], float] = time.time,
                 pending_ttl: float = PENDING_TTL_S,
                 sweep_interval: float = SWEEP_INTERVAL_S):
        self.engine = engine
        self.registry = SessionRegistry(store, clock=clock)
        self.driver = ProtocolDriver(self.registry, engine)
        self.gate = SigningGate(self.registry)
        self.sweeper = CleanupSweeper(self.registry, ttl=pending_ttl,
                                      interval=sweep_interval)
        self.initialized = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self):
        """Start the engine and load persisted bounties."""
        log.info("Starting crypto engine...")
        await self.engine.start()
        self.registry.load()
        self.initialized = True
        log.info(f"Guardian initialized ({len(self.registry.bounties)} bounties)")

    async def shutdown(self):
        """Stop the sweeper and release every wallet handle held in memory."""
        await self.sweeper.stop()
        self.initialized = False
        handles = [p.wallet for p in self.registry.pending.values()]
        handles.extend(self.registry.wallets.values())
        self.registry.pending.clear()
        self.registry.wallets.clear()
        for wallet in handles:
            try:
                await wallet.release()
            except Exception as e:
                log.error(f"Failed to release wallet on shutdown: {e}")
        log.info(f"Guardian stopped ({len(handles)} wallets released)")

    def require_initialized(self):
        if not self.initialized:
            raise NotInitialized()

    # -------------------------------------------------------------------------
    # Escrow operations
    # -------------------------------------------------------------------------

    async def begin(self, escrow_id: str) -> str:
        self.require_initialized()
        return await self.driver.begin(escrow_id)

    async def finalize(self, escrow_id: str, deadline_block: int,
                       server_round1: str, server_round2: str,
                       worker_round1: str, worker_round2: str) -> FinalizeResult:
        self.require_initialized()
        return await self.driver.finalize(escrow_id, deadline_block,
                                          server_round1, server_round2,
                                          worker_round1, worker_round2)

    async def sync_outputs(self, escrow_id: str,
                           other_multisig_info: Optional[List[str]] = None) -> str:
        self.require_initialized()
        return await self.gate.sync_outputs(escrow_id, other_multisig_info)

    async def sign_refund(self, escrow_id: str, current_block: int,
                          tx_data_hex: str) -> SignedTx:
        self.require_initialized()
        return await self.gate.sign_refund(escrow_id, current_block, tx_data_hex)

    async def sign_payout(self, escrow_id: str, tx_data_hex: str,
                          reason: Optional[str] = None) -> SignedTx:
        self.require_initialized()
        return await self.gate.sign_payout(escrow_id, tx_data_hex, reason)

    # -------------------------------------------------------------------------
    # Read views (never include recovery seeds)
    # -------------------------------------------------------------------------

    def health(self) -> Dict:
        return {
            "status": "ok",
            "initialized": self.initialized,
            "pending_escrows": len(self.registry.pending),
            "completed_bounties": len(self.registry.bounties),
        }

    def get_record(self, escrow_id: str) -> Dict:
        record = self.registry.get_bounty(escrow_id)
        if record is None:
            if self.registry.get_pending(escrow_id) is not None:
                return {
                    "bounty_id": escrow_id,
                    "status": "pending",
                    "message": "Waiting for /finalize-escrow",
                }
            raise NotFound("Bounty not found")

        view = record.summary()
        view["status"] = "finalized"
        view["wallet_in_memory"] = self.registry.get_wallet(escrow_id) is not None
        return view

    def list_records(self) -> Dict:
        bounties = [rec.summary() for rec in self.registry.bounties.values()]
        return {
            "pending": len(self.registry.pending),
            "completed": len(bounties),
            "bounties": bounties,
        }
