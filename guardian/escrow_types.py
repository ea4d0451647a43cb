"""
Salvium Guardian - Data Types

Escrow session and bounty record structures.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, NamedTuple, Optional
import time


class RoundSet(NamedTuple):
    """
    One protocol round's payloads from all three parties, in role order.

    The multisig computation is order-sensitive: every party must assemble
    the same list or they derive different keys and addresses. The order is
    always guardian, server, worker, whichever party assembles it.
    """
    guardian: str
    server: str
    worker: str

    def as_list(self) -> List[str]:
        return [self.guardian, self.server, self.worker]

    def counterparties(self) -> List[str]:
        """Payloads the guardian receives from the other parties, server first."""
        return [self.server, self.worker]


class KeyExchangeResult(NamedTuple):
    """Outcome of the final key-exchange round."""
    address: str
    is_ready: bool


class SignedTx(NamedTuple):
    """Outcome of signing a multisig transaction."""
    tx_data_hex: str
    signers: List[str]
    ready: bool


class FinalizeResult(NamedTuple):
    own_round1: str
    own_round2: str
    multisig_address: str
    is_ready: bool


@dataclass
class PendingEscrow:
    """
    In-progress escrow session, waiting for finalize.

    Owns its wallet handle: the handle is either transferred to the active
    set on finalize or released on eviction/replacement.
    """
    escrow_id: str
    wallet: Any
    own_round1: str
    created_at: float = field(default_factory=time.time)

    def age(self, now: float) -> float:
        return now - self.created_at


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BountyRecord:
    """
    Finalized escrow.

    Fields:
      - escrow_id: Caller-supplied bounty id
      - deadline_block: Refunds are signed at or after this height
      - multisig_address: Shared 2-of-3 address from key exchange
      - is_ready: Wallet usable without further exchange rounds
      - created_at: ISO-8601 UTC finalize time
      - recovery_seed: Wallet mnemonic (secret, persisted, never served)
    """
    escrow_id: str
    deadline_block: int
    multisig_address: str
    is_ready: bool
    recovery_seed: str = ""
    created_at: str = field(default_factory=utc_now_iso)

    def summary(self) -> dict:
        """Public view (no seed material)."""
        return {
            "bounty_id": self.escrow_id,
            "deadline_block": self.deadline_block,
            "multisig_address": self.multisig_address,
            "is_ready": self.is_ready,
            "created_at": self.created_at,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON persistence."""
        data = self.summary()
        data["recovery_seed"] = self.recovery_seed
        return data

    @classmethod
    def from_dict(cls, data: dict, escrow_id: Optional[str] = None) -> "BountyRecord":
        """Create record from dictionary (accepts legacy wallet_mnemonic)."""
        return cls(
            escrow_id=data.get("bounty_id") or escrow_id or "",
            deadline_block=int(data["deadline_block"]),
            multisig_address=data.get("multisig_address", ""),
            is_ready=bool(data.get("is_ready", False)),
            recovery_seed=data.get("recovery_seed", data.get("wallet_mnemonic", "")),
            created_at=data.get("created_at", ""),
        )
