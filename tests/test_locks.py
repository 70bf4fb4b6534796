"""Реестр блокировок аукционов"""
import asyncio

import pytest

from services.locks import AuctionLocks


# ============================================================
# TestAuctionLocks: очередь и очистка реестра
# ============================================================


class TestAuctionLocks:

    async def test_released_lock_is_dropped(self) -> None:
        locks = AuctionLocks()
        async with locks.hold(1):
            assert len(locks) == 1
        assert len(locks) == 0

    async def test_lock_kept_while_someone_waits(self) -> None:
        locks = AuctionLocks()
        order = []
        entered = asyncio.Event()
        release = asyncio.Event()

        async def first() -> None:
            async with locks.hold(7):
                order.append("first")
                entered.set()
                await release.wait()

        async def second() -> None:
            await entered.wait()
            async with locks.hold(7):
                order.append("second")

        task_a = asyncio.create_task(first())
        task_b = asyncio.create_task(second())
        await entered.wait()
        await asyncio.sleep(0)
        assert len(locks) == 1

        release.set()
        await asyncio.gather(task_a, task_b)

        assert order == ["first", "second"]
        assert len(locks) == 0

    async def test_separate_auctions_do_not_block(self) -> None:
        locks = AuctionLocks()
        async with locks.hold(1):
            async with locks.hold(2):
                assert len(locks) == 2
        assert len(locks) == 0

    async def test_failed_operation_releases_entry(self) -> None:
        locks = AuctionLocks()
        with pytest.raises(RuntimeError):
            async with locks.hold(3):
                raise RuntimeError("boom")
        assert len(locks) == 0
        async with locks.hold(3):
            assert len(locks) == 1
