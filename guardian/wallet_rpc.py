"""
Salvium Guardian - Wallet RPC Engine

Crypto engine backed by a salvium-wallet-rpc (Monero-family) daemon, e.g.:

    salvium-wallet-rpc --wallet-dir /data/wallets --rpc-bind-port 18083 \\
        --disable-rpc-login --enable-multisig-experimental

The daemon keeps ONE wallet open at a time, so every wallet operation is an
(open_wallet, call) pair executed under an engine-wide lock.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional

import requests
from requests.auth import HTTPDigestAuth

from .engine import CryptoEngine, EngineWallet
from .errors import CryptoEngineFailure
from .config import MULTISIG_THRESHOLD
from .escrow_types import KeyExchangeResult, RoundSet, SignedTx

log = logging.getLogger("guardian.wallet_rpc")


class RPCError(Exception):
    """RPC call failed."""
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"RPC Error {code}: {message}")


class WalletRPCClient:
    """
    JSON-RPC client for salvium-wallet-rpc.

    Usage:
        rpc = WalletRPCClient("http://127.0.0.1:18083/json_rpc")
        version = rpc.call("get_version")
        info = rpc.call("prepare_multisig")
    """

    def __init__(self, url: str = "http://127.0.0.1:18083/json_rpc",
                 user: str = "", password: str = "", timeout: int = 30):
        self.url = url
        self.auth = HTTPDigestAuth(user, password) if user else None
        self.timeout = timeout
        self._id = 0

    def call(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Make RPC call."""
        self._id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._id,
            "method": method,
            "params": params or {},
        }

        try:
            response = requests.post(
                self.url,
                json=payload,
                auth=self.auth,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise RPCError(-1, f"Connection failed: {e}")

        try:
            result = response.json()
        except ValueError:
            raise RPCError(-1, "Invalid JSON response")

        if "error" in result and result["error"]:
            raise RPCError(result["error"].get("code", -1),
                           result["error"].get("message", "unknown error"))

        return result.get("result") or {}


class RPCWallet(EngineWallet):
    """A wallet file held by the RPC daemon."""

    def __init__(self, engine: "WalletRPCEngine", filename: str):
        self.engine = engine
        self.filename = filename
        self.released = False

    async def _call(self, operation: str, method: str,
                    params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if self.released:
            raise CryptoEngineFailure(operation, "wallet handle already released")
        return await self.engine.call_on(self.filename, operation, method, params)

    @staticmethod
    def _field(result: Dict[str, Any], key: str, operation: str) -> Any:
        if key not in result:
            raise CryptoEngineFailure(operation, f"missing {key} in reply")
        return result[key]

    async def prepare_multisig(self) -> str:
        result = await self._call("prepare multisig", "prepare_multisig")
        return self._field(result, "multisig_info", "prepare multisig")

    async def make_multisig(self, round1: RoundSet,
                            threshold: int = MULTISIG_THRESHOLD) -> str:
        # The daemon already knows its own round-1 info
        result = await self._call("make multisig", "make_multisig", {
            "multisig_info": round1.counterparties(),
            "threshold": threshold,
            "password": self.engine.password,
        })
        return self._field(result, "multisig_info", "make multisig")

    async def exchange_multisig_keys(self, round2: RoundSet) -> KeyExchangeResult:
        result = await self._call("exchange keys", "exchange_multisig_keys", {
            "multisig_info": round2.counterparties(),
            "password": self.engine.password,
        })
        status = await self._call("exchange keys", "is_multisig")
        return KeyExchangeResult(address=self._field(result, "address", "exchange keys"),
                                 is_ready=bool(status.get("ready", False)))

    async def get_seed(self) -> str:
        result = await self._call("export seed", "query_key", {"key_type": "mnemonic"})
        return self._field(result, "key", "export seed")

    async def export_multisig_info(self) -> str:
        result = await self._call("export multisig info", "export_multisig_info")
        return self._field(result, "info", "export multisig info")

    async def import_multisig_info(self, infos: List[str]) -> int:
        result = await self._call("import multisig info", "import_multisig_info",
                                  {"info": infos})
        return int(result.get("n_outputs", 0))

    async def describe_multisig_tx(self, tx_data_hex: str) -> dict:
        return await self._call("describe multisig tx", "describe_transfer",
                                {"multisig_txset": tx_data_hex})

    async def sign_multisig_tx(self, tx_data_hex: str) -> SignedTx:
        result = await self._call("sign multisig tx", "sign_multisig",
                                  {"tx_data_hex": tx_data_hex})
        tx_hashes = result.get("tx_hash_list") or []
        return SignedTx(
            tx_data_hex=result.get("tx_data_hex", ""),
            signers=list(result.get("signers", [])),
            ready=bool(tx_hashes),
        )

    async def release(self):
        if self.released:
            return
        self.released = True
        await self.engine.close(self.filename)


class WalletRPCEngine(CryptoEngine):
    """
    Crypto engine on top of one wallet RPC daemon.

    Blocking HTTP calls run in the default executor so the event loop keeps
    serving other escrows while the daemon works.
    """

    def __init__(self, client: WalletRPCClient, password: str = "",
                 language: str = "English"):
        self.client = client
        self.password = password
        self.language = language
        self._lock = asyncio.Lock()
        self._open: Optional[str] = None

    async def _rpc(self, operation: str, method: str,
                   params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, lambda: self.client.call(method, params))
        except RPCError as e:
            log.error(f"RPC error ({method}): {e.message}")
            raise CryptoEngineFailure(operation, e.message) from e

    async def start(self):
        version = await self._rpc("connect to wallet rpc", "get_version")
        log.info(f"Wallet RPC connected (version {version.get('version')})")

    async def create_wallet(self) -> RPCWallet:
        filename = f"escrow-{uuid.uuid4().hex}"
        async with self._lock:
            await self._rpc("create wallet", "create_wallet", {
                "filename": filename,
                "password": self.password,
                "language": self.language,
            })
            self._open = filename
        log.debug(f"Created wallet {filename}")
        return RPCWallet(self, filename)

    async def call_on(self, filename: str, operation: str, method: str,
                      params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Open `filename` if needed, then run `method` against it."""
        async with self._lock:
            if self._open != filename:
                await self._rpc(operation, "open_wallet", {
                    "filename": filename,
                    "password": self.password,
                })
                self._open = filename
            return await self._rpc(operation, method, params)

    async def close(self, filename: str):
        async with self._lock:
            if self._open != filename:
                return
            try:
                await self._rpc("close wallet", "close_wallet")
            finally:
                self._open = None
