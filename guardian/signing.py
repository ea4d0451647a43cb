"""
Salvium Guardian - Signing Gates

What the guardian will sign for a finalized escrow:

  - refund:  only once the chain reached the escrow's deadline block
             (the caller reports the current height)
  - payout:  whenever asked - dispute resolution happened out-of-band,
             the reason is logged for audit
  - outputs: export/import multisig info so a new transaction can be built
"""

import logging
from typing import List, Optional

from .engine import EngineWallet
from .errors import DeadlineNotReached, NotFound, WalletNotResident
from .escrow_types import BountyRecord, SignedTx
from .logs import mask_secret
from .sessions import SessionRegistry

log = logging.getLogger("guardian.signing")


class SigningGate:

    def __init__(self, registry: SessionRegistry):
        self.registry = registry

    def _bounty(self, escrow_id: str) -> BountyRecord:
        record = self.registry.get_bounty(escrow_id)
        if record is None:
            raise NotFound("Bounty not found")
        return record

    def _wallet(self, escrow_id: str) -> EngineWallet:
        wallet = self.registry.get_wallet(escrow_id)
        if wallet is None:
            raise WalletNotResident(escrow_id)
        return wallet

    async def _describe_and_sign(self, escrow_id: str, wallet: EngineWallet,
                                 tx_data_hex: str, kind: str) -> SignedTx:
        desc = await wallet.describe_multisig_tx(tx_data_hex)
        log.info(f"{kind.capitalize()} tx for bounty {escrow_id}: {desc}")

        signed = await wallet.sign_multisig_tx(tx_data_hex)
        log.info(f"Signed {kind} for bounty {escrow_id}, ready: {signed.ready} "
                 f"(tx {mask_secret(signed.tx_data_hex)})")
        return signed

    async def sign_refund(self, escrow_id: str, current_block: int,
                          tx_data_hex: str) -> SignedTx:
        """Sign a refund transaction, only at or after the deadline block."""
        async with self.registry.locks.hold(escrow_id):
            record = self._bounty(escrow_id)
            if current_block < record.deadline_block:
                log.info(f"Refund for bounty {escrow_id} refused: "
                         f"{record.deadline_block - current_block} blocks remaining")
                raise DeadlineNotReached(current_block, record.deadline_block)

            wallet = self._wallet(escrow_id)
            return await self._describe_and_sign(escrow_id, wallet, tx_data_hex, "refund")

    async def sign_payout(self, escrow_id: str, tx_data_hex: str,
                          reason: Optional[str] = None) -> SignedTx:
        """Sign a payout transaction (dispute resolved in the worker's favour)."""
        async with self.registry.locks.hold(escrow_id):
            self._bounty(escrow_id)
            wallet = self._wallet(escrow_id)
            log.info(f"Payout request for bounty {escrow_id}, "
                     f"reason: {reason or 'none provided'}")
            return await self._describe_and_sign(escrow_id, wallet, tx_data_hex, "payout")

    async def sync_outputs(self, escrow_id: str,
                           other_multisig_info: Optional[List[str]] = None) -> str:
        """
        Export our multisig info and import the counterparts'.

        Import failures are logged only; a later sync can complete them.

        Returns:
            Guardian multisig info export
        """
        async with self.registry.locks.hold(escrow_id):
            self._bounty(escrow_id)
            wallet = self._wallet(escrow_id)

            own_info = await wallet.export_multisig_info()

            if other_multisig_info:
                try:
                    n_outputs = await wallet.import_multisig_info(list(other_multisig_info))
                except Exception as e:
                    log.warning(f"Import multisig info warning for bounty {escrow_id}: {e}")
                else:
                    log.info(f"Imported {n_outputs} outputs for bounty {escrow_id}")

            return own_info
