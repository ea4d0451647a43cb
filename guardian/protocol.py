"""
Salvium Guardian - Protocol Driver

Three-round 2-of-3 multisig setup, guardian side:

  1. begin()     -> create wallet, prepare_multisig       -> guardian_round1
     (bounty server distributes round 1, server + worker run make_multisig)
  2. finalize()  -> make_multisig([guardian, server, worker] round 1)
                 -> exchange_multisig_keys([guardian, server, worker] round 2)
                 -> shared address, bounty record persisted

Payload lists are always assembled in RoundSet order (guardian, server,
worker). Any party using a different order derives a different address.
"""

import logging

from .config import MULTISIG_THRESHOLD
from .engine import CryptoEngine
from .errors import Conflict, NotFound
from .escrow_types import BountyRecord, FinalizeResult, RoundSet
from .logs import mask_secret
from .sessions import SessionRegistry

log = logging.getLogger("guardian.protocol")


class ProtocolDriver:
    """Drives escrow sessions from pending to finalized."""

    def __init__(self, registry: SessionRegistry, engine: CryptoEngine,
                 threshold: int = MULTISIG_THRESHOLD):
        self.registry = registry
        self.engine = engine
        self.threshold = threshold

    async def begin(self, escrow_id: str) -> str:
        """
        Start an escrow: new wallet + round 1.

        A still-pending escrow with the same id is replaced (its wallet is
        released). Finalized ids are rejected.

        Returns:
            Guardian round-1 multisig info
        """
        async with self.registry.locks.hold(escrow_id):
            if self.registry.is_finalized(escrow_id):
                raise Conflict("Bounty already finalized")

            stale = self.registry.pop_pending(escrow_id)
            if stale is not None:
                log.info(f"Replacing pending escrow: {escrow_id}")
                await stale.wallet.release()

            log.info(f"Init escrow: {escrow_id}")
            wallet = await self.engine.create_wallet()
            try:
                own_round1 = await wallet.prepare_multisig()
            except Exception:
                await wallet.release()
                raise

            self.registry.add_pending(escrow_id, wallet, own_round1)
            log.debug(f"Escrow {escrow_id} round1: {mask_secret(own_round1)}")
            return own_round1

    async def finalize(self, escrow_id: str, deadline_block: int,
                       server_round1: str, server_round2: str,
                       worker_round1: str, worker_round2: str) -> FinalizeResult:
        """
        Complete key exchange for a pending escrow.

        Engine failures leave the pending escrow in place so the caller can
        retry finalize without a new init.
        """
        async with self.registry.locks.hold(escrow_id):
            pending = self.registry.get_pending(escrow_id)
            if pending is None:
                raise NotFound(
                    "Pending escrow not found. Call /init-escrow first.",
                    hint="The escrow may have expired (5 min timeout) or server restarted.",
                )

            log.info(f"Finalize escrow: {escrow_id}")
            wallet = pending.wallet

            round1 = RoundSet(pending.own_round1, server_round1, worker_round1)
            own_round2 = await wallet.make_multisig(round1, self.threshold)

            round2 = RoundSet(own_round2, server_round2, worker_round2)
            kex = await wallet.exchange_multisig_keys(round2)
            seed = await wallet.get_seed()

            record = BountyRecord(
                escrow_id=escrow_id,
                deadline_block=deadline_block,
                multisig_address=kex.address,
                is_ready=kex.is_ready,
                recovery_seed=seed,
            )
            await self.registry.promote(record)
            log.info(f"Escrow finalized: {escrow_id} -> {kex.address} "
                     f"(ready: {kex.is_ready}, deadline block {deadline_block})")

            return FinalizeResult(
                own_round1=pending.own_round1,
                own_round2=own_round2,
                multisig_address=kex.address,
                is_ready=kex.is_ready,
            )
