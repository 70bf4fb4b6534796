"""SQL-хранилище (SQLite через aiosqlite)"""
import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from database.models import Bid
from services.errors import ConcurrencyError
from services.storage import SqlAuctionStore
from tests.conftest import FakeClock, FakeNotifier, add_user, build_test_engine, make_auction


# ============================================================
# TestSqlFlow: торги поверх базы данных
# ============================================================


class TestSqlFlow:

    async def test_bids_and_finalize(self, sql_session_maker) -> None:
        clock = FakeClock()
        notifier = FakeNotifier()
        async with sql_session_maker() as session:
            engine = build_test_engine(store=SqlAuctionStore(session), clock=clock, notifier=notifier)
            seller = await add_user(engine, "seller")
            alice = await add_user(engine, "alice")
            bob = await add_user(engine, "bob")
            auction = await make_auction(engine, seller, starting_price="100")
            auction_id = auction.id

            await engine.place_bid(auction_id, alice.id, "105")
            await engine.place_bid(auction_id, bob.id, "115")

        async with sql_session_maker() as session:
            store = SqlAuctionStore(session)
            stored = await store.load_auction(auction_id)
            assert stored.status == "active"
            assert stored.current_bid == Decimal("115")
            assert stored.end_time.tzinfo is not None

            bids = await store.list_bids(auction_id)
            assert [bid.amount for bid in bids] == [Decimal("115"), Decimal("105")]
            assert [bid.is_winning for bid in bids] == [True, False]
            assert stored.highest_bid_id == bids[0].id

        clock.advance(hours=2)
        async with sql_session_maker() as session:
            engine = build_test_engine(store=SqlAuctionStore(session), clock=clock, notifier=notifier)
            ended = await engine.finalize(auction_id)
            assert ended.status == "ended"
            assert ended.winner_id == bob.id
            assert ended.winning_bid == Decimal("115")
            assert ended.winner_notified and ended.seller_notified

            again = await engine.finalize(auction_id)
            assert again.version == ended.version
            assert len(notifier.winner_calls) == 1

    async def test_auto_bid_orders(self, sql_session_maker) -> None:
        async with sql_session_maker() as session:
            engine = build_test_engine(store=SqlAuctionStore(session))
            seller = await add_user(engine, "seller")
            alice = await add_user(engine, "alice")
            bob = await add_user(engine, "bob")
            auction = await make_auction(engine, seller)

            await engine.set_auto_bid(auction.id, bob.id, "150")
            await engine.set_auto_bid(auction.id, bob.id, "200")
            orders = await engine.store.active_auto_bids(auction.id, None, Decimal("0"))
            assert [order.max_amount for order in orders] == [Decimal("200")]

            placed = await engine.place_bid(auction.id, alice.id, "105")
            assert [(bid.bidder_id, bid.amount) for bid in placed.auto_bids] == [(bob.id, Decimal("115"))]

    async def test_watchers(self, sql_session_maker) -> None:
        async with sql_session_maker() as session:
            engine = build_test_engine(store=SqlAuctionStore(session))
            seller = await add_user(engine, "seller")
            alice = await add_user(engine, "alice")
            auction = await make_auction(engine, seller)

            assert await engine.add_to_watchlist(auction.id, alice.id) is True
            assert await engine.add_to_watchlist(auction.id, alice.id) is False
            assert [u.id for u in await engine.get_watchers(auction.id)] == [alice.id]
            assert await engine.remove_from_watchlist(auction.id, alice.id) is True


# ============================================================
# TestOptimisticConcurrency: версия записи аукциона
# ============================================================


class TestOptimisticConcurrency:

    async def test_stale_write_is_rejected(self, sql_session_maker) -> None:
        async with sql_session_maker() as session:
            engine = build_test_engine(store=SqlAuctionStore(session))
            seller = await add_user(engine, "seller")
            auction = await make_auction(engine, seller)
            auction_id = auction.id

        async with sql_session_maker() as first, sql_session_maker() as second:
            store_a = SqlAuctionStore(first)
            store_b = SqlAuctionStore(second)
            copy_a = await store_a.load_auction(auction_id)
            copy_b = await store_b.load_auction(auction_id)

            copy_a.title = "Renamed by A"
            await store_a.save_auction(copy_a)

            copy_b.title = "Renamed by B"
            with pytest.raises(ConcurrencyError):
                await store_b.save_auction(copy_b)

        async with sql_session_maker() as session:
            stored = await SqlAuctionStore(session).load_auction(auction_id)
            assert stored.title == "Renamed by A"

    async def test_stale_bid_is_rejected(self, sql_session_maker) -> None:
        async with sql_session_maker() as session:
            engine = build_test_engine(store=SqlAuctionStore(session))
            seller = await add_user(engine, "seller")
            alice = await add_user(engine, "alice")
            auction = await make_auction(engine, seller)
            auction_id, alice_id = auction.id, alice.id

        async with sql_session_maker() as first, sql_session_maker() as second:
            store_a = SqlAuctionStore(first)
            store_b = SqlAuctionStore(second)
            copy_a = await store_a.load_auction(auction_id)
            copy_b = await store_b.load_auction(auction_id)
            now = FakeClock()()

            copy_a.current_bid = Decimal("105")
            await store_a.append_bid(copy_a, Bid(
                auction_id=auction_id, bidder_id=alice_id, amount=Decimal("105"),
                bid_type="manual", is_winning=True, is_active=True, bid_time=now,
            ))

            copy_b.current_bid = Decimal("110")
            with pytest.raises(ConcurrencyError):
                await store_b.append_bid(copy_b, Bid(
                    auction_id=auction_id, bidder_id=alice_id, amount=Decimal("110"),
                    bid_type="manual", is_winning=True, is_active=True, bid_time=now + timedelta(seconds=1),
                ))

        async with sql_session_maker() as session:
            store = SqlAuctionStore(session)
            assert await store.count_active_bids(auction_id) == 1
            stored = await store.load_auction(auction_id)
            assert stored.current_bid == Decimal("105")

    async def test_parallel_finalize_notifies_once(self, sql_session_maker) -> None:
        """Два процесса со своими сессиями и блокировками завершают один аукцион"""
        clock = FakeClock()
        notifier = FakeNotifier()
        async with sql_session_maker() as session:
            engine = build_test_engine(store=SqlAuctionStore(session), clock=clock, notifier=notifier)
            seller = await add_user(engine, "seller")
            alice = await add_user(engine, "alice")
            auction = await make_auction(engine, seller)
            await engine.place_bid(auction.id, alice.id, "105")
            auction_id, alice_id = auction.id, alice.id

        clock.advance(hours=2)
        async with sql_session_maker() as first, sql_session_maker() as second:
            engine_a = build_test_engine(store=SqlAuctionStore(first), clock=clock, notifier=notifier)
            engine_b = build_test_engine(store=SqlAuctionStore(second), clock=clock, notifier=notifier)

            read_a, read_b = await asyncio.gather(
                engine_a.get_auction(auction_id),
                engine_b.get_auction(auction_id),
            )

            assert read_a.status == read_b.status == "ended"

        assert len(notifier.winner_calls) == 1
        assert len(notifier.seller_calls) == 1

        async with sql_session_maker() as session:
            stored = await SqlAuctionStore(session).load_auction(auction_id)
            assert stored.status == "ended"
            assert stored.winner_id == alice_id
            assert stored.winner_notified and stored.seller_notified
