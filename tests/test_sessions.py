"""Per-escrow locking and registry invariants."""

import asyncio

import pytest

from guardian.sessions import EscrowLocks, SessionRegistry


class TestEscrowLocks:
    @pytest.mark.asyncio
    async def test_same_id_serialized(self) -> None:
        locks = EscrowLocks()
        order = []

        async def worker(tag: str):
            async with locks.hold("b1"):
                order.append(f"{tag}-in")
                await asyncio.sleep(0.01)
                order.append(f"{tag}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_different_ids_interleave(self) -> None:
        locks = EscrowLocks()
        order = []

        async def worker(escrow_id: str):
            async with locks.hold(escrow_id):
                order.append(f"{escrow_id}-in")
                await asyncio.sleep(0.01)
                order.append(f"{escrow_id}-out")

        await asyncio.gather(worker("b1"), worker("b2"))
        assert order[:2] == ["b1-in", "b2-in"]

    @pytest.mark.asyncio
    async def test_entries_dropped_after_use(self) -> None:
        locks = EscrowLocks()
        async with locks.hold("b1"):
            assert locks.is_locked("b1")
            assert len(locks) == 1
        assert not locks.is_locked("b1")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_released_on_error(self) -> None:
        locks = EscrowLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold("b1"):
                raise RuntimeError("boom")
        assert len(locks) == 0


class TestSessionRegistry:
    def test_expired_uses_strict_age(self, store) -> None:
        registry = SessionRegistry(store, clock=lambda: 100.0)
        registry.add_pending("b1", object(), "r1")
        assert registry.expired(now=400.0, ttl=300) == []
        assert registry.expired(now=400.5, ttl=300) == ["b1"]

    @pytest.mark.asyncio
    async def test_add_pending_refuses_finalized(self, store) -> None:
        from guardian.escrow_types import BountyRecord

        registry = SessionRegistry(store)
        registry.add_pending("b1", object(), "r1")
        await registry.promote(BountyRecord("b1", 5, "SC1x", True, "seed"))
        with pytest.raises(ValueError):
            registry.add_pending("b1", object(), "r1")
        assert "b1" not in registry.pending
