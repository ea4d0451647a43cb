"""
Salvium Guardian - Crypto Engine Interface

The guardian never does multisig math itself. It drives an external wallet
engine through this narrow capability interface:

    engine = WalletRPCEngine(...)          # or a test double
    await engine.start()

    wallet = await engine.create_wallet()
    round1 = await wallet.prepare_multisig()
    round2 = await wallet.make_multisig(RoundSet(round1, server_r1, worker_r1))
    kex = await wallet.exchange_multisig_keys(RoundSet(round2, server_r2, worker_r2))
    seed = await wallet.get_seed()

Every method either returns its result or raises CryptoEngineFailure with
the engine's reason.
"""

from abc import ABC, abstractmethod
from typing import List

from .config import MULTISIG_THRESHOLD
from .escrow_types import KeyExchangeResult, RoundSet, SignedTx


class EngineWallet(ABC):
    """One wallet held by the engine (the handle owned by an escrow)."""

    @abstractmethod
    async def prepare_multisig(self) -> str:
        """Round 1: this wallet's multisig info."""

    @abstractmethod
    async def make_multisig(self, round1: RoundSet,
                            threshold: int = MULTISIG_THRESHOLD) -> str:
        """Round 2: consume all round-1 payloads, return own round-2 payload."""

    @abstractmethod
    async def exchange_multisig_keys(self, round2: RoundSet) -> KeyExchangeResult:
        """Key exchange: consume all round-2 payloads, return the shared address."""

    @abstractmethod
    async def get_seed(self) -> str:
        """Export the recovery mnemonic."""

    @abstractmethod
    async def export_multisig_info(self) -> str:
        ...

    @abstractmethod
    async def import_multisig_info(self, infos: List[str]) -> int:
        """Import counterpart output info. Returns number of outputs imported."""

    @abstractmethod
    async def describe_multisig_tx(self, tx_data_hex: str) -> dict:
        ...

    @abstractmethod
    async def sign_multisig_tx(self, tx_data_hex: str) -> SignedTx:
        ...

    @abstractmethod
    async def release(self):
        """Free the engine resources behind this handle. Called exactly once."""


class CryptoEngine(ABC):
    """Factory for engine wallets."""

    @abstractmethod
    async def start(self):
        """Connect/load the engine. Raises if it is unavailable."""

    @abstractmethod
    async def create_wallet(self) -> EngineWallet:
        """Create a fresh random wallet with multisig enabled."""
