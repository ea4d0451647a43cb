"""
Salvium Guardian

Automated third party for 2-of-3 bounty escrow multisig wallets.

Architecture:
  - The bounty server orchestrates the setup; the guardian is one of the
    three key holders (guardian, server, worker)
  - Pending escrows (wallet between init and finalize) live in memory only
  - Finalized bounties are persisted; their wallets stay resident for signing
  - Refunds are signed only at/after the deadline block, payouts on request

Usage:
    from guardian import GuardianService, BountyStore, WalletRPCEngine, WalletRPCClient

    engine = WalletRPCEngine(WalletRPCClient("http://127.0.0.1:18083/json_rpc"))
    service = GuardianService(engine, BountyStore(Path("/data/bounties.json")))
    await service.initialize()
    round1 = await service.begin("bounty-42")
"""

from .errors import (
    GuardianError,
    NotInitialized,
    ValidationError,
    Conflict,
    NotFound,
    DeadlineNotReached,
    WalletNotResident,
    CryptoEngineFailure,
)
from .escrow_types import (
    RoundSet,
    KeyExchangeResult,
    SignedTx,
    FinalizeResult,
    PendingEscrow,
    BountyRecord,
)
from .engine import CryptoEngine, EngineWallet
from .store import BountyStore
from .sessions import EscrowLocks, SessionRegistry
from .protocol import ProtocolDriver
from .signing import SigningGate
from .sweeper import CleanupSweeper
from .service import GuardianService
from .wallet_rpc import RPCError, WalletRPCClient, WalletRPCEngine

__version__ = "0.1.0"
__all__ = [
    # Errors
    "GuardianError", "NotInitialized", "ValidationError", "Conflict",
    "NotFound", "DeadlineNotReached", "WalletNotResident", "CryptoEngineFailure",
    # Types
    "RoundSet", "KeyExchangeResult", "SignedTx", "FinalizeResult",
    "PendingEscrow", "BountyRecord",
    # Engine
    "CryptoEngine", "EngineWallet", "RPCError", "WalletRPCClient", "WalletRPCEngine",
    # Core
    "BountyStore", "EscrowLocks", "SessionRegistry", "ProtocolDriver",
    "SigningGate", "CleanupSweeper", "GuardianService",
]
