"""Pending escrow eviction with an injected clock."""

import asyncio

import pytest

from guardian.config import PENDING_TTL_S
from guardian.sweeper import CleanupSweeper

from fakes import run_counterparties


class TestSweep:
    @pytest.mark.asyncio
    async def test_fresh_sessions_survive(self, ready_service, clock) -> None:
        await ready_service.begin("b1")
        clock.advance(PENDING_TTL_S)
        assert await ready_service.sweeper.sweep() == []
        assert ready_service.registry.get_pending("b1") is not None

    @pytest.mark.asyncio
    async def test_stale_session_evicted_and_released(self, ready_service, engine, clock) -> None:
        await ready_service.begin("b1")
        clock.advance(PENDING_TTL_S + 1)
        assert await ready_service.sweeper.sweep() == ["b1"]
        assert ready_service.registry.get_pending("b1") is None
        assert engine.wallets[0].release_count == 1

        # nothing left to release on the next cycle
        assert await ready_service.sweeper.sweep() == []
        assert engine.wallets[0].release_count == 1

    @pytest.mark.asyncio
    async def test_explicit_now(self, ready_service, engine, clock) -> None:
        await ready_service.begin("old")
        clock.advance(200)
        await ready_service.begin("young")
        evicted = await ready_service.sweeper.sweep(now=clock.now + 101)
        assert evicted == ["old"]
        assert ready_service.registry.get_pending("young") is not None

    @pytest.mark.asyncio
    async def test_finalize_after_eviction_is_not_found(self, ready_service, engine, clock) -> None:
        from guardian.errors import NotFound

        round1 = await ready_service.begin("b1")
        parties = await run_counterparties(engine, round1)
        clock.advance(PENDING_TTL_S + 1)
        await ready_service.sweeper.sweep()
        with pytest.raises(NotFound):
            await ready_service.finalize("b1", 1, parties.server_round1, parties.server_round2,
                                         parties.worker_round1, parties.worker_round2)

    @pytest.mark.asyncio
    async def test_finalized_bounties_untouched(self, ready_service, engine, clock) -> None:
        round1 = await ready_service.begin("b1")
        parties = await run_counterparties(engine, round1)
        await ready_service.finalize("b1", 1, parties.server_round1, parties.server_round2,
                                     parties.worker_round1, parties.worker_round2)
        clock.advance(10 * PENDING_TTL_S)
        assert await ready_service.sweeper.sweep() == []
        assert ready_service.registry.get_wallet("b1") is engine.wallets[0]
        assert engine.wallets[0].release_count == 0

    @pytest.mark.asyncio
    async def test_sweep_waits_for_in_flight_finalize(self, ready_service, engine, clock) -> None:
        round1 = await ready_service.begin("b1")
        parties = await run_counterparties(engine, round1)
        clock.advance(PENDING_TTL_S + 1)

        finalize = ready_service.finalize("b1", 1, parties.server_round1, parties.server_round2,
                                          parties.worker_round1, parties.worker_round2)
        result, evicted = await asyncio.gather(finalize, ready_service.sweeper.sweep())
        assert result.multisig_address.startswith("SC1")
        assert evicted == []
        assert engine.wallets[0].release_count == 0

    @pytest.mark.asyncio
    async def test_release_failure_still_evicts(self, ready_service, engine, clock) -> None:
        await ready_service.begin("b1")

        async def broken_release():
            raise RuntimeError("engine gone")

        engine.wallets[0].release = broken_release
        clock.advance(PENDING_TTL_S + 1)
        assert await ready_service.sweeper.sweep() == ["b1"]
        assert ready_service.registry.get_pending("b1") is None


class TestSweeperTask:
    @pytest.mark.asyncio
    async def test_periodic_run_and_stop(self, ready_service, engine, clock) -> None:
        sweeper = CleanupSweeper(ready_service.registry, ttl=PENDING_TTL_S, interval=0.01)
        await ready_service.begin("b1")
        clock.advance(PENDING_TTL_S + 1)

        sweeper.start()
        assert sweeper.running
        for _ in range(100):
            if ready_service.registry.get_pending("b1") is None:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert not sweeper.running
        assert ready_service.registry.get_pending("b1") is None
        assert engine.wallets[0].release_count == 1

    @pytest.mark.asyncio
    async def test_stop_without_start(self, ready_service) -> None:
        await ready_service.sweeper.stop()
        assert not ready_service.sweeper.running
