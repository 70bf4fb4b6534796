"""Тексты для канала и личных уведомлений"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from bot.handlers.auction import auction_text
from database.models import Auction
from services.bidding import CurrentBidInfo
from services.channel import format_event_text
from services.events import AUCTION_UPDATE, NEW_BID, OUTBID, InMemoryBroadcaster
from services.notifications import LoggingNotifier, seller_message, winner_message
from services.scheduler import finish_expired_auctions
from tests.conftest import add_user, make_auction


# ============================================================
# TestChannelText: сообщения в канал
# ============================================================


class TestChannelText:

    def test_new_bid(self) -> None:
        payload = {
            "bid": {
                "id": 1,
                "amount": "1250.00",
                "bidder": {"username": "alice", "firstName": "Alice", "lastName": None},
                "bidTime": "2026-03-01T12:00:00+00:00",
                "bidType": "auto",
            },
            "auction": {"currentBid": "1250.00", "bidCount": 4, "endTime": "2026-03-01T13:00:00+00:00"},
        }
        text = format_event_text("auction-7", NEW_BID, payload)
        assert "lot #7" in text
        assert "$1,250.00" in text
        assert "@alice" in text
        assert "(auto)" in text
        assert "01.03.2026 13:00 UTC" in text

    def test_extension(self) -> None:
        payload = {"endTime": "2026-03-01T13:02:00+00:00", "currentBid": "105.00", "bidCount": 1}
        text = format_event_text("auction-7", AUCTION_UPDATE, payload)
        assert "extended" in text
        assert "13:02" in text

    def test_ended(self) -> None:
        payload = {"endTime": "2026-03-01T13:00:00+00:00", "currentBid": "115.00", "bidCount": 2, "status": "ended"}
        text = format_event_text("auction-7", AUCTION_UPDATE, payload)
        assert "closed" in text
        assert "$115.00" in text

    def test_bidder_name_is_escaped(self) -> None:
        payload = {
            "bid": {"amount": "105.00", "bidder": {"username": None, "firstName": "<Al>"}, "bidType": "manual"},
            "auction": {"bidCount": 1, "endTime": "2026-03-01T13:00:00+00:00"},
        }
        text = format_event_text("auction-7", NEW_BID, payload)
        assert "&lt;Al&gt;" in text
        assert "<Al>" not in text

    def test_outbid_is_private(self) -> None:
        assert format_event_text("auction-7", OUTBID, {"previousHighestBidderId": 3}) is None


# ============================================================
# TestNotificationText: личные уведомления
# ============================================================


class TestNotificationText:

    def test_winner_message(self) -> None:
        text = winner_message({"auction_title": "Lamp", "amount": Decimal("115"), "auction_id": 3})
        assert "Lamp" in text
        assert "$115.00" in text

    def test_seller_message_without_sale(self) -> None:
        text = seller_message({"auction_title": "Lamp", "amount": None, "auction_id": 3, "reason": "no bids were placed"})
        assert "without a sale" in text
        assert "no bids were placed" in text

    def test_user_text_is_escaped(self) -> None:
        data = {"auction_title": "<b>Lamp</b> & co", "amount": Decimal("115"), "auction_id": 3, "winner_name": "<bob>"}
        assert "&lt;b&gt;Lamp&lt;/b&gt; &amp; co" in winner_message(data)
        text = seller_message(data)
        assert "&lt;bob&gt;" in text
        assert "<bob>" not in text

    async def test_logging_notifier(self) -> None:
        result = await LoggingNotifier().send_auction_winner_email(
            "a@example.com", {"auction_title": "Lamp", "amount": Decimal("1"), "auction_id": 1}
        )
        assert result.success


# ============================================================
# TestBroadcaster: рассылка внутри процесса
# ============================================================


class TestBroadcaster:

    async def test_full_queue_drops_event(self) -> None:
        broadcaster = InMemoryBroadcaster(max_queue_size=1)
        queue = broadcaster.subscribe("auction-1")

        await broadcaster.publish("auction-1", NEW_BID, {"n": 1})
        await broadcaster.publish("auction-1", NEW_BID, {"n": 2})

        assert queue.qsize() == 1
        assert queue.get_nowait() == (NEW_BID, {"n": 1})
        assert len(broadcaster.events) == 2

    async def test_unsubscribe(self) -> None:
        broadcaster = InMemoryBroadcaster()
        queue = broadcaster.subscribe("auction-1")
        broadcaster.unsubscribe("auction-1", queue)

        await broadcaster.publish("auction-1", NEW_BID, {})
        assert queue.empty()


# ============================================================
# TestSweeper: периодическое завершение
# ============================================================


class TestSweeper:

    async def test_finishes_only_expired(self, engine, clock, seller) -> None:
        alice = await add_user(engine, "alice")
        expired = await make_auction(engine, seller, duration=timedelta(minutes=5))
        running = await make_auction(engine, seller, duration=timedelta(hours=1))
        await engine.place_bid(expired.id, alice.id, "105")
        clock.advance(minutes=10)

        finished = await finish_expired_auctions(engine)

        assert finished == [expired.id]
        assert (await engine.store.load_auction(expired.id)).winner_id == alice.id
        assert (await engine.store.load_auction(running.id)).status == "active"
        assert await finish_expired_auctions(engine) == []


# ============================================================
# TestAuctionCard: карточка лота в боте
# ============================================================


class TestAuctionCard:

    def test_title_and_description_are_escaped(self) -> None:
        auction = Auction(
            id=5,
            title="Lamp <1920s>",
            description="Brass & glass",
            status="active",
            starting_price=Decimal("100"),
            end_time=datetime(2026, 3, 1, 13, 0, tzinfo=timezone.utc),
        )
        info = CurrentBidInfo(
            current_bid=None,
            current_price=Decimal("100"),
            minimum_next_bid=Decimal("105"),
            total_bids=0,
            minimum_increment=Decimal("5"),
        )

        text = auction_text(auction, info)

        assert "<b>Lamp &lt;1920s&gt;</b>" in text
        assert "Brass &amp; glass" in text
        assert "$105.00" in text
