"""Shared fixtures: fake engine, temp store, controllable clock."""

import pytest
import pytest_asyncio

from guardian.service import GuardianService
from guardian.store import BountyStore

from fakes import FakeEngine


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def store(tmp_path) -> BountyStore:
    return BountyStore(tmp_path / "bounties.json")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(engine, store, clock) -> GuardianService:
    return GuardianService(engine, store, clock=clock)


@pytest_asyncio.fixture
async def ready_service(service) -> GuardianService:
    await service.initialize()
    return service
