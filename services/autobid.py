"""Автоставки (прокси-торги)

Участник задает потолок. Когда ручная ставка перебивает его, движок
ставит за него минимально достаточную сумму, пока она не превышает
потолок. По умолчанию один ответ на ручную ставку (AUTO_BID_MAX_ROUNDS=1).
"""
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
import logging
from database.models import Auction, AuctionStatus, AutoBidOrder, Bid, BidType
from services.errors import (
    InsufficientFundsError,
    NotFoundError,
    RejectionReason,
    StateError,
    ValidationError,
)
from services.increments import format_money, minimum_next_bid, to_amount

if TYPE_CHECKING:
    from services.bidding import BidAdmissionController

logger = logging.getLogger(__name__)


class AutoBidEngine:
    """Поручения на автоставку и ответные ставки по ним"""

    def __init__(self, admission: "BidAdmissionController", max_rounds: int = 1):
        self.admission = admission
        self.max_rounds = max(0, int(max_rounds))

    @property
    def store(self):
        return self.admission.store

    @property
    def wallet(self):
        return self.admission.wallet

    async def set_auto_bid(self, auction_id: int, bidder_id: int, max_amount) -> AutoBidOrder:
        """Сохранить потолок участника (старое поручение отключается).

        Ставка сразу не делается: поручение срабатывает на следующую
        чужую ручную ставку.
        """
        max_amount = to_amount(max_amount, "maxAmount")
        if max_amount <= 0:
            raise ValidationError("Maximum auto bid must be greater than 0", RejectionReason.INVALID_AMOUNT)

        async with self.admission.locks.hold(auction_id):
            auction = await self.admission.lifecycle.load_locked(auction_id)
            if auction.status != AuctionStatus.ACTIVE.value:
                raise StateError("Auction is not available for bidding", RejectionReason.AUCTION_NOT_ACTIVE)
            if bidder_id == auction.seller_id:
                raise StateError("You cannot bid on your own auction", RejectionReason.SELF_BID)

            leading = await self.admission.leading_bid(auction)
            current_price = to_amount(leading.amount) if leading else to_amount(auction.starting_price)
            if max_amount <= current_price:
                raise ValidationError(
                    f"Auto bid maximum must be higher than the current price ({format_money(current_price)})",
                    RejectionReason.AUTO_BID_TOO_LOW,
                )
            if not await self.wallet.has_sufficient_balance(bidder_id, max_amount):
                raise InsufficientFundsError("Insufficient balance for this auto bid")

            await self.store.deactivate_auto_bids(auction_id, bidder_id)
            order = AutoBidOrder(
                auction_id=auction_id,
                bidder_id=bidder_id,
                max_amount=max_amount,
                is_active=True,
                created_at=self.admission.clock(),
            )
            order = await self.store.save_auto_bid(order)

        logger.info(f"Автоставка участника {bidder_id} на аукцион {auction_id}: потолок {max_amount}")
        return order

    async def cancel_auto_bid(self, auction_id: int, bidder_id: int) -> bool:
        auction = await self.store.load_auction(auction_id)
        if auction is None:
            raise NotFoundError("Auction not found", RejectionReason.AUCTION_NOT_FOUND)
        async with self.admission.locks.hold(auction_id):
            count = await self.store.deactivate_auto_bids(auction_id, bidder_id)
        if count:
            logger.info(f"Автоставка участника {bidder_id} на аукцион {auction_id} отменена")
        return count > 0

    async def respond(self, auction: Auction, trigger: Bid) -> List[Bid]:
        """Ответить на ручную ставку. Вызывающий держит блокировку аукциона.

        Ошибки автоставки не отменяют ручную ставку: они пишутся в лог.
        """
        placed: List[Bid] = []
        amount = to_amount(trigger.amount)
        last_bidder = trigger.bidder_id
        previous = trigger

        for _ in range(self.max_rounds):
            try:
                bid = await self._counter(auction, amount, last_bidder, previous)
            except Exception as e:
                logger.error(f"Ошибка автоставки на аукцион {auction.id}: {e}")
                break
            if bid is None:
                break
            placed.append(bid)
            amount = to_amount(bid.amount)
            last_bidder = bid.bidder_id
            previous = bid
        return placed

    async def _counter(
        self,
        auction: Auction,
        amount: Decimal,
        last_bidder: int,
        previous: Bid,
    ) -> Optional[Bid]:
        now = self.admission.clock()
        if auction.status != AuctionStatus.ACTIVE.value or now >= auction.end_time:
            return None

        orders = await self.store.active_auto_bids(auction.id, exclude_bidder=last_bidder, min_ceiling=amount)
        if not orders:
            return None

        next_amount = minimum_next_bid(amount, auction.bid_increment)
        for order in orders:
            if order.bidder_id == auction.seller_id:
                continue
            if next_amount > to_amount(order.max_amount):
                logger.info(
                    f"Автоставка участника {order.bidder_id} на аукцион {auction.id}: "
                    f"{next_amount} выше потолка {order.max_amount}"
                )
                continue
            if not await self.wallet.has_sufficient_balance(order.bidder_id, next_amount):
                logger.warning(
                    f"Автоставка участника {order.bidder_id} на аукцион {auction.id} пропущена: "
                    f"недостаточно средств для {next_amount}"
                )
                continue
            return await self.admission.commit_bid(
                auction,
                order.bidder_id,
                next_amount,
                BidType.AUTO.value,
                previous,
                now,
                max_auto_bid=to_amount(order.max_amount),
            )
        return None
