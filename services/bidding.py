"""Прием ставок

Ставка принимается, только если выполнены все условия (в этом порядке):
корректная сумма, аукцион существует, статус active, время не вышло,
участник не продавец, участник еще не лидер (для ручной ставки),
хватает баланса, сумма не ниже минимальной. При отказе состояние
аукциона не меняется.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging
from config import Settings, settings as default_settings
from database.models import Auction, AuctionStatus, Bid, BidType
from services.autobid import AutoBidEngine
from services.clock import Clock, utc_now
from services.errors import (
    BidTooLowError,
    InsufficientFundsError,
    NotFoundError,
    RejectionReason,
    StateError,
    ValidationError,
)
from services.events import (
    AUCTION_UPDATE,
    NEW_BID,
    OUTBID,
    EventEmitter,
    auction_update_payload,
    new_bid_payload,
    outbid_payload,
)
from services.increments import format_money, increment_for, minimum_next_bid, to_amount
from services.lifecycle import AuctionLifecycleManager
from services.locks import AuctionLocks, auction_locks
from services.storage import AuctionStore
from services.wallet import Wallet

logger = logging.getLogger(__name__)

BID_TYPES = (BidType.MANUAL.value, BidType.AUTO.value)


def bid_to_dict(bid: Bid) -> Dict[str, Any]:
    return {
        "id": bid.id,
        "auctionId": bid.auction_id,
        "bidderId": bid.bidder_id,
        "amount": str(bid.amount),
        "bidType": bid.bid_type,
        "maxAutoBid": str(bid.max_auto_bid) if bid.max_auto_bid is not None else None,
        "isWinning": bid.is_winning,
        "bidTime": bid.bid_time.isoformat() if bid.bid_time else None,
    }


@dataclass
class PlacedBid:
    """Результат принятой ставки"""
    bid: Bid
    minimum_next_bid: Decimal
    auto_bids: List[Bid] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bid": bid_to_dict(self.bid),
            "minimumNextBid": str(self.minimum_next_bid),
        }


@dataclass
class CurrentBidInfo:
    """Текущая цена и минимальная следующая ставка"""
    current_bid: Optional[Bid]
    current_price: Decimal
    minimum_next_bid: Decimal
    total_bids: int
    minimum_increment: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentBid": bid_to_dict(self.current_bid) if self.current_bid else None,
            "currentPrice": str(self.current_price),
            "minimumNextBid": str(self.minimum_next_bid),
            "totalBids": self.total_bids,
            "minimumIncrement": str(self.minimum_increment),
        }


@dataclass
class BidHistoryPage:
    bids: List[Bid]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    @property
    def has_more(self) -> bool:
        return self.page < self.pages

    def to_dict(self) -> Dict[str, Any]:
        return {
            "bids": [bid_to_dict(bid) for bid in self.bids],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "pages": self.pages,
                "hasMore": self.has_more,
            },
        }


class BidAdmissionController:
    """Проверка и фиксация ставок, анти-снайпинг, события"""

    def __init__(
        self,
        store: AuctionStore,
        wallet: Wallet,
        emitter: EventEmitter,
        lifecycle: AuctionLifecycleManager,
        locks: AuctionLocks = auction_locks,
        clock: Clock = utc_now,
        settings: Settings = default_settings,
    ):
        self.store = store
        self.wallet = wallet
        self.emitter = emitter
        self.lifecycle = lifecycle
        self.locks = locks
        self.clock = clock
        self.settings = settings
        self.autobid = AutoBidEngine(self, max_rounds=settings.AUTO_BID_MAX_ROUNDS)

    # Цена

    async def leading_bid(self, auction: Auction) -> Optional[Bid]:
        """Лидирующая ставка по указателю аукциона"""
        if auction.highest_bid_id is None:
            return None
        return await self.store.get_bid(auction.highest_bid_id)

    def price_levels(self, auction: Auction, leading: Optional[Bid]) -> Tuple[Decimal, Decimal]:
        """(текущая сумма, шаг).

        Без ставок текущая сумма - стартовая цена, а шаг берется как для
        нулевой суммы: первая ставка может быть чуть выше стартовой цены.
        """
        if leading is not None:
            current = to_amount(leading.amount)
            return current, increment_for(current, auction.bid_increment)
        return to_amount(auction.starting_price), increment_for(0, auction.bid_increment)

    # Ставка

    async def place_bid(
        self,
        auction_id: int,
        bidder_id: int,
        amount,
        bid_type: str = BidType.MANUAL.value,
        max_auto_bid=None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> PlacedBid:
        """Принять ставку или отклонить ее с причиной (AuctionError)"""
        amount = to_amount(amount, "Bid amount")
        if amount <= 0:
            raise ValidationError("Bid amount must be greater than 0", RejectionReason.INVALID_AMOUNT)

        bid_type = getattr(bid_type, "value", bid_type)
        if bid_type not in BID_TYPES:
            raise ValidationError("Bid type must be 'manual' or 'auto'", RejectionReason.INVALID_BID_TYPE)

        if bid_type == BidType.AUTO.value:
            if max_auto_bid is None:
                raise ValidationError("Auto bid requires a maximum amount", RejectionReason.INVALID_AMOUNT)
            max_auto_bid = to_amount(max_auto_bid, "maxAutoBid")
            if max_auto_bid < amount:
                raise ValidationError(
                    "Maximum auto bid must not be lower than the bid amount",
                    RejectionReason.INVALID_AMOUNT,
                )
        else:
            max_auto_bid = None

        async with self.locks.hold(auction_id):
            auction = await self.store.load_auction(auction_id)
            if auction is None:
                raise NotFoundError("Auction not found", RejectionReason.AUCTION_NOT_FOUND)

            status_before = auction.status
            now = self.clock()
            auction = await self.lifecycle.refresh(auction, now)

            leading = await self.leading_bid(auction)
            current, increment = self.price_levels(auction, leading)
            minimum = current + increment

            if auction.status != AuctionStatus.ACTIVE.value:
                if auction.status == AuctionStatus.ENDED.value and status_before != auction.status:
                    self._reject(auction, bidder_id, amount, "время вышло")
                    raise StateError("Auction has ended", RejectionReason.AUCTION_ENDED, minimum)
                self._reject(auction, bidder_id, amount, f"статус {auction.status}")
                raise StateError("Auction is not active", RejectionReason.AUCTION_NOT_ACTIVE, minimum)

            if bidder_id == auction.seller_id:
                self._reject(auction, bidder_id, amount, "ставка продавца")
                raise StateError("You cannot bid on your own auction", RejectionReason.SELF_BID, minimum)

            if bid_type == BidType.MANUAL.value and leading is not None and leading.bidder_id == bidder_id:
                self._reject(auction, bidder_id, amount, "уже лидер")
                raise StateError("You are already the highest bidder", RejectionReason.ALREADY_HIGHEST_BIDDER, minimum)

            if not await self.wallet.has_sufficient_balance(bidder_id, amount):
                self._reject(auction, bidder_id, amount, "недостаточно средств")
                raise InsufficientFundsError("Insufficient balance for this bid", RejectionReason.INSUFFICIENT_FUNDS, minimum)

            if amount < minimum:
                self._reject(auction, bidder_id, amount, f"минимум {minimum}")
                raise BidTooLowError(
                    f"Minimum bid is {format_money(minimum)} "
                    f"(current: {format_money(current)} + {format_money(increment)} increment)",
                    RejectionReason.BID_TOO_LOW,
                    minimum_bid=minimum,
                )

            bid = await self.commit_bid(
                auction,
                bidder_id,
                amount,
                bid_type,
                leading,
                now,
                max_auto_bid=max_auto_bid,
                ip_address=ip_address,
                user_agent=user_agent,
            )

            auto_bids: List[Bid] = []
            if bid_type == BidType.MANUAL.value:
                auto_bids = await self.autobid.respond(auction, bid)

        return PlacedBid(
            bid=bid,
            minimum_next_bid=minimum_next_bid(bid.amount, auction.bid_increment),
            auto_bids=auto_bids,
        )

    async def commit_bid(
        self,
        auction: Auction,
        bidder_id: int,
        amount: Decimal,
        bid_type: str,
        previous: Optional[Bid],
        now: datetime,
        max_auto_bid: Optional[Decimal] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Bid:
        """Зафиксировать уже проверенную ставку. Вызывающий держит блокировку"""
        bid = Bid(
            auction_id=auction.id,
            bidder_id=bidder_id,
            amount=amount,
            bid_type=bid_type,
            max_auto_bid=max_auto_bid,
            is_winning=True,
            is_active=True,
            bid_time=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        auction.current_bid = amount
        extended = self.apply_soft_close(auction, now)

        bid = await self.store.append_bid(auction, bid)
        logger.info(
            f"Ставка {bid.id} ({bid_type}) на аукцион {auction.id}: "
            f"участник {bidder_id}, сумма {amount}"
        )

        bid_count = await self.store.count_active_bids(auction.id)
        bidder = await self.store.get_user(bidder_id)
        await self.emitter.emit(auction, NEW_BID, new_bid_payload(bid, bidder, auction, bid_count))
        if previous is not None and previous.bidder_id != bidder_id:
            await self.emitter.emit(auction, OUTBID, outbid_payload(auction, previous.bidder_id, now))
        if extended:
            await self.emitter.emit(auction, AUCTION_UPDATE, auction_update_payload(auction, bid_count))
        return bid

    def apply_soft_close(self, auction: Auction, now: datetime) -> bool:
        """Продлить аукцион, если ставка пришла в последние секунды"""
        remaining = (auction.end_time - now).total_seconds()
        threshold = self.settings.SOFT_CLOSE_THRESHOLD_SECONDS
        extension = self.settings.SOFT_CLOSE_EXTENSION_SECONDS
        if remaining <= 0 or remaining > threshold or extension <= 0:
            return False

        max_extensions = self.settings.SOFT_CLOSE_MAX_EXTENSIONS
        if max_extensions is not None and (auction.extension_count or 0) >= max_extensions:
            logger.info(f"Аукцион {auction.id}: лимит продлений ({max_extensions}) исчерпан")
            return False
        max_total = self.settings.SOFT_CLOSE_MAX_TOTAL_SECONDS
        if max_total is not None and (auction.extended_seconds or 0) + extension > max_total:
            logger.info(f"Аукцион {auction.id}: лимит времени продлений ({max_total} с) исчерпан")
            return False

        auction.end_time = auction.end_time + timedelta(seconds=extension)
        auction.extension_count = (auction.extension_count or 0) + 1
        auction.extended_seconds = (auction.extended_seconds or 0) + extension
        logger.info(f"Аукцион {auction.id} продлен на {extension} с до {auction.end_time}")
        return True

    def _reject(self, auction: Auction, bidder_id: int, amount: Decimal, why: str) -> None:
        logger.info(f"Ставка {amount} участника {bidder_id} на аукцион {auction.id} отклонена: {why}")

    # Чтение

    async def get_current_bid(self, auction_id: int) -> CurrentBidInfo:
        async with self.locks.hold(auction_id):
            auction = await self.lifecycle.load_locked(auction_id)
            leading = await self.leading_bid(auction)
            current, increment = self.price_levels(auction, leading)
            total = await self.store.count_active_bids(auction_id)
        return CurrentBidInfo(
            current_bid=leading,
            current_price=current,
            minimum_next_bid=current + increment,
            total_bids=total,
            minimum_increment=increment,
        )

    async def get_bid_history(self, auction_id: int, limit: int = 20, page: int = 1) -> BidHistoryPage:
        """Ставки по убыванию суммы, постранично"""
        limit = max(1, min(int(limit), 100))
        page = max(1, int(page))
        await self.lifecycle.load(auction_id)
        bids = await self.store.list_bids(auction_id, limit=limit, offset=(page - 1) * limit)
        total = await self.store.count_active_bids(auction_id)
        return BidHistoryPage(bids=bids, page=page, limit=limit, total=total)

    async def get_user_bids(self, auction_id: int, user_id: int) -> List[Bid]:
        await self.lifecycle.load(auction_id)
        return await self.store.list_user_bids(auction_id, user_id)
