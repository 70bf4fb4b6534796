"""Автоставки"""
from decimal import Decimal

import pytest

from services.errors import InsufficientFundsError, RejectionReason, StateError, ValidationError
from services.events import NEW_BID, OUTBID
from services.user import update_user_balance
from tests.conftest import add_user, build_test_engine, make_auction


# ============================================================
# TestCounterBid: ответная автоставка
# ============================================================


class TestCounterBid:

    async def test_counter_bid_on_manual_bid(self, engine, broadcaster, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller, starting_price="100")
        await engine.set_auto_bid(auction.id, bob.id, "200")
        broadcaster.events.clear()

        placed = await engine.place_bid(auction.id, alice.id, "105")

        assert len(placed.auto_bids) == 1
        auto = placed.auto_bids[0]
        assert auto.bidder_id == bob.id
        assert auto.amount == Decimal("115")
        assert auto.bid_type == "auto"
        assert auto.max_auto_bid == Decimal("200")

        stored = await engine.store.load_auction(auction.id)
        assert stored.current_bid == Decimal("115")
        leader = await engine.store.get_bid(stored.highest_bid_id)
        assert leader.bidder_id == bob.id
        # Ручная ставка в ответе остается ставкой участника
        assert placed.bid.bidder_id == alice.id
        assert placed.minimum_next_bid == Decimal("115")

        assert broadcaster.names(auction.channel) == [NEW_BID, NEW_BID, OUTBID]

    async def test_one_counter_bid_per_manual_bid(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, alice.id, "150")
        await engine.set_auto_bid(auction.id, bob.id, "200")
        carol = await add_user(engine, "carol")

        placed = await engine.place_bid(auction.id, carol.id, "105")

        # Отвечает только поручение с самым высоким потолком
        assert [bid.bidder_id for bid in placed.auto_bids] == [bob.id]
        assert await engine.store.count_active_bids(auction.id) == 2

    async def test_multiple_rounds_when_enabled(self, clock) -> None:
        engine = build_test_engine(clock=clock, AUTO_BID_MAX_ROUNDS=3)
        seller = await add_user(engine, "seller")
        alice = await add_user(engine, "alice")
        bob = await add_user(engine, "bob")
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, alice.id, "150")
        await engine.set_auto_bid(auction.id, bob.id, "200")

        placed = await engine.place_bid(auction.id, alice.id, "105")

        assert [(bid.bidder_id, bid.amount) for bid in placed.auto_bids] == [
            (bob.id, Decimal("115")),
            (alice.id, Decimal("125")),
            (bob.id, Decimal("135")),
        ]

    async def test_ceiling_too_low(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, bob.id, "110")

        placed = await engine.place_bid(auction.id, alice.id, "105")

        assert placed.auto_bids == []
        stored = await engine.store.load_auction(auction.id)
        assert stored.current_bid == Decimal("105")

    async def test_ceiling_not_above_trigger(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, bob.id, "120")

        placed = await engine.place_bid(auction.id, alice.id, "120")

        assert placed.auto_bids == []

    async def test_unfunded_order_is_skipped(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, bob.id, "200")
        await update_user_balance(engine.store, bob.id, "-9950")

        placed = await engine.place_bid(auction.id, alice.id, "105")

        assert placed.auto_bids == []
        assert placed.bid.is_winning

    async def test_unfunded_order_falls_through_to_next(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        carol = await add_user(engine, "carol")
        await engine.set_auto_bid(auction.id, bob.id, "300")
        await engine.set_auto_bid(auction.id, carol.id, "200")
        await update_user_balance(engine.store, bob.id, "-9950")

        placed = await engine.place_bid(auction.id, alice.id, "105")

        assert [bid.bidder_id for bid in placed.auto_bids] == [carol.id]

    async def test_no_counter_bid_for_auto_bid(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, bob.id, "200")

        placed = await engine.place_bid(auction.id, alice.id, "105", bid_type="auto", max_auto_bid="300")

        assert placed.auto_bids == []


# ============================================================
# TestAutoBidOrders: поручения
# ============================================================


class TestAutoBidOrders:

    async def test_new_order_replaces_old(self, engine, seller, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, bob.id, "200")
        await engine.set_auto_bid(auction.id, bob.id, "350")

        orders = await engine.store.active_auto_bids(auction.id, None, Decimal("0"))
        assert len(orders) == 1
        assert orders[0].max_amount == Decimal("350")

    async def test_setting_order_places_no_bid(self, engine, seller, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, bob.id, "200")
        assert await engine.store.count_active_bids(auction.id) == 0

    async def test_maximum_must_exceed_current_price(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.place_bid(auction.id, alice.id, "105")
        with pytest.raises(ValidationError) as exc:
            await engine.set_auto_bid(auction.id, bob.id, "105")
        assert exc.value.reason == RejectionReason.AUTO_BID_TOO_LOW

    async def test_seller_cannot_auto_bid(self, engine, seller) -> None:
        auction = await make_auction(engine, seller)
        with pytest.raises(StateError) as exc:
            await engine.set_auto_bid(auction.id, seller.id, "200")
        assert exc.value.reason == RejectionReason.SELF_BID

    async def test_inactive_auction(self, engine, seller, bob) -> None:
        auction = await make_auction(engine, seller, schedule=False)
        with pytest.raises(StateError) as exc:
            await engine.set_auto_bid(auction.id, bob.id, "200")
        assert exc.value.reason == RejectionReason.AUCTION_NOT_ACTIVE

    @pytest.mark.parametrize("maximum", ["1e30", "150.005"])
    async def test_malformed_maximum(self, engine, seller, bob, maximum) -> None:
        auction = await make_auction(engine, seller)
        with pytest.raises(ValidationError) as exc:
            await engine.set_auto_bid(auction.id, bob.id, maximum)
        assert exc.value.reason == RejectionReason.INVALID_AMOUNT

    async def test_maximum_needs_funds(self, engine, seller, bob) -> None:
        auction = await make_auction(engine, seller)
        with pytest.raises(InsufficientFundsError):
            await engine.set_auto_bid(auction.id, bob.id, "20000")

    async def test_cancel_order(self, engine, seller, alice, bob) -> None:
        auction = await make_auction(engine, seller)
        await engine.set_auto_bid(auction.id, bob.id, "200")

        assert await engine.cancel_auto_bid(auction.id, bob.id) is True
        assert await engine.cancel_auto_bid(auction.id, bob.id) is False

        placed = await engine.place_bid(auction.id, alice.id, "105")
        assert placed.auto_bids == []
