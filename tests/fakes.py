"""Deterministic crypto engine test double.

Payloads are plain strings derived from the wallet name and the ORDER of the
lists a wallet is given, so parties that assemble rounds differently end up
with different addresses, just like the real engine.
"""

import asyncio
import hashlib
from typing import List, NamedTuple, Optional, Set

from guardian.engine import CryptoEngine, EngineWallet
from guardian.errors import CryptoEngineFailure
from guardian.escrow_types import KeyExchangeResult, RoundSet, SignedTx


def digest(parts: List[str]) -> str:
    return hashlib.sha256("|".join(parts).encode()).hexdigest()


class FakeWallet(EngineWallet):

    def __init__(self, engine: "FakeEngine", name: str):
        self.engine = engine
        self.name = name
        self.release_count = 0
        self.round1: Optional[List[str]] = None
        self.imported: List[str] = []
        self.signed: List[str] = []

    @property
    def released(self) -> bool:
        return self.release_count > 0

    async def prepare_multisig(self) -> str:
        await self.engine.step("prepare_multisig")
        return f"r1-{self.name}"

    async def make_multisig(self, round1: RoundSet, threshold: int = 2) -> str:
        await self.engine.step("make_multisig")
        self.round1 = round1.as_list()
        return f"r2-{self.name}-{digest(self.round1)[:16]}"

    async def exchange_multisig_keys(self, round2: RoundSet) -> KeyExchangeResult:
        await self.engine.step("exchange_multisig_keys")
        if self.round1 is None:
            raise CryptoEngineFailure("exchange keys", "make_multisig not run")
        address = "SC1" + digest(self.round1 + round2.as_list())[:40]
        return KeyExchangeResult(address=address, is_ready=self.engine.ready)

    async def get_seed(self) -> str:
        await self.engine.step("get_seed")
        return f"seed words of {self.name}"

    async def export_multisig_info(self) -> str:
        await self.engine.step("export_multisig_info")
        return f"info-{self.name}"

    async def import_multisig_info(self, infos: List[str]) -> int:
        await self.engine.step("import_multisig_info")
        self.imported.extend(infos)
        return len(infos)

    async def describe_multisig_tx(self, tx_data_hex: str) -> dict:
        await self.engine.step("describe_multisig_tx")
        return {"wallet": self.name, "size": len(tx_data_hex) // 2}

    async def sign_multisig_tx(self, tx_data_hex: str) -> SignedTx:
        await self.engine.step("sign_multisig_tx")
        self.signed.append(tx_data_hex)
        return SignedTx(tx_data_hex=tx_data_hex + "ff",
                        signers=["server", self.name],
                        ready=self.engine.sign_ready)

    async def release(self):
        self.release_count += 1


class FakeEngine(CryptoEngine):
    """
    In-memory engine. `fail_on` holds operation names that raise
    CryptoEngineFailure; every operation yields to the event loop once.
    """

    def __init__(self, ready: bool = True, sign_ready: bool = True):
        self.ready = ready
        self.sign_ready = sign_ready
        self.fail_on: Set[str] = set()
        self.wallets: List[FakeWallet] = []
        self.started = False
        self.calls: List[str] = []

    async def step(self, operation: str):
        self.calls.append(operation)
        await asyncio.sleep(0)
        if operation in self.fail_on:
            raise CryptoEngineFailure(operation.replace("_", " "),
                                      f"injected {operation} failure")

    async def start(self):
        await self.step("start")
        self.started = True

    async def create_wallet(self) -> FakeWallet:
        await self.step("create_wallet")
        wallet = FakeWallet(self, f"w{len(self.wallets)}")
        self.wallets.append(wallet)
        return wallet


class Counterparties(NamedTuple):
    server: FakeWallet
    worker: FakeWallet
    server_round1: str
    server_round2: str
    worker_round1: str
    worker_round2: str


async def run_counterparties(engine: FakeEngine, guardian_round1: str,
                             worker_order=None) -> Counterparties:
    """
    Server and worker side of rounds 1 and 2.

    `worker_order` optionally reorders the round-1 list the worker uses,
    e.g. (1, 0, 2) to put the server first.
    """
    server = await engine.create_wallet()
    worker = await engine.create_wallet()
    server_round1 = await server.prepare_multisig()
    worker_round1 = await worker.prepare_multisig()

    round1 = RoundSet(guardian_round1, server_round1, worker_round1)
    worker_round1_set = round1
    if worker_order is not None:
        worker_round1_set = RoundSet(*[round1[i] for i in worker_order])

    server_round2 = await server.make_multisig(round1)
    worker_round2 = await worker.make_multisig(worker_round1_set)
    return Counterparties(server, worker, server_round1, server_round2,
                          worker_round1, worker_round2)


async def complete_counterparty(wallet: FakeWallet, guardian_round2: str,
                                parties: Counterparties) -> str:
    """Key exchange for one counterparty. Returns the address it derives."""
    round2 = RoundSet(guardian_round2, parties.server_round2, parties.worker_round2)
    kex = await wallet.exchange_multisig_keys(round2)
    return kex.address
