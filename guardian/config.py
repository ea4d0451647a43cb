"""
Salvium Guardian - Configuration

Runtime settings come from the environment (container deployment), CLI flags
override them.
"""

import os
from dataclasses import dataclass
from pathlib import Path

# =============================================================================
# PROTOCOL CONSTANTS
# =============================================================================

MULTISIG_THRESHOLD = 2          # 2-of-3
PENDING_TTL_S = 5 * 60          # Pending escrow lifetime before eviction
SWEEP_INTERVAL_S = 60           # Cleanup sweeper period

BOUNTY_FILE_NAME = "bounties.json"


@dataclass
class Config:
    # HTTP
    host: str = "0.0.0.0"
    port: int = 3012

    # State
    data_dir: str = "/data"
    network: str = "mainnet"

    # Wallet RPC daemon (crypto engine)
    wallet_rpc_url: str = "http://127.0.0.1:18083/json_rpc"
    wallet_rpc_user: str = ""
    wallet_rpc_password: str = ""
    wallet_password: str = ""
    wallet_language: str = "English"
    rpc_timeout: int = 30

    # Timing
    pending_ttl: float = PENDING_TTL_S
    sweep_interval: float = SWEEP_INTERVAL_S

    log_level: str = "INFO"

    @property
    def bounty_file(self) -> Path:
        return Path(self.data_dir) / BOUNTY_FILE_NAME

    @classmethod
    def from_env(cls) -> "Config":
        env = os.environ
        return cls(
            host=env.get("HOST", cls.host),
            port=int(env.get("PORT", cls.port)),
            data_dir=env.get("DATA_DIR", cls.data_dir),
            network=env.get("NETWORK", cls.network),
            wallet_rpc_url=env.get("WALLET_RPC_URL", cls.wallet_rpc_url),
            wallet_rpc_user=env.get("WALLET_RPC_USER", cls.wallet_rpc_user),
            wallet_rpc_password=env.get("WALLET_RPC_PASSWORD", cls.wallet_rpc_password),
            wallet_password=env.get("WALLET_PASSWORD", cls.wallet_password),
            wallet_language=env.get("WALLET_LANGUAGE", cls.wallet_language),
            rpc_timeout=int(env.get("WALLET_RPC_TIMEOUT", cls.rpc_timeout)),
            log_level=env.get("LOG_LEVEL", cls.log_level),
        )
