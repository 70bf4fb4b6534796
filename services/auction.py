"""Сервис для работы с аукционами

AuctionEngine собирает вместе хранилище, прием ставок, автоставки и
жизненный цикл. Обработчики бота работают только с ним.
"""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import logging
from aiogram import Bot
from sqlalchemy.ext.asyncio import AsyncSession
from config import Settings, settings as default_settings
from database.models import Auction, AuctionStatus, AutoBidOrder, Bid, BidType, User
from database.types import as_utc
from services.bidding import BidAdmissionController, BidHistoryPage, CurrentBidInfo, PlacedBid
from services.channel import TelegramChannelBroadcaster
from services.clock import Clock, utc_now
from services.errors import NotFoundError, RejectionReason, ValidationError
from services.events import Broadcaster, EventEmitter, LoggingBroadcaster
from services.increments import to_amount
from services.lifecycle import AuctionLifecycleManager
from services.locks import AuctionLocks, auction_locks
from services.notifications import BotNotifier, LoggingNotifier, Notifier
from services.storage import AuctionStore, MemoryAuctionStore, SqlAuctionStore
from services.wallet import StoreWallet, Wallet

logger = logging.getLogger(__name__)

TITLE_MAX_LENGTH = 100


@dataclass
class AuctionDraft:
    """Данные нового лота"""
    title: str
    starting_price: Decimal
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    reserve_price: Optional[Decimal] = None
    bid_increment: Optional[Decimal] = None


class AuctionEngine:
    """Точка входа движка аукционов"""

    def __init__(
        self,
        store: AuctionStore,
        broadcaster: Optional[Broadcaster] = None,
        notifier: Optional[Notifier] = None,
        wallet: Optional[Wallet] = None,
        locks: AuctionLocks = auction_locks,
        clock: Clock = utc_now,
        settings: Settings = default_settings,
    ):
        self.store = store
        self.clock = clock
        self.settings = settings
        self.locks = locks
        self.emitter = EventEmitter(broadcaster or LoggingBroadcaster())
        self.lifecycle = AuctionLifecycleManager(
            store,
            self.emitter,
            notifier or LoggingNotifier(),
            locks=locks,
            clock=clock,
            settings=settings,
        )
        self.bidding = BidAdmissionController(
            store,
            wallet or StoreWallet(store),
            self.emitter,
            self.lifecycle,
            locks=locks,
            clock=clock,
            settings=settings,
        )
        self.autobid = self.bidding.autobid

    # Лоты

    async def create_auction(self, seller_id: int, draft: AuctionDraft) -> Auction:
        """Создать аукцион в статусе draft"""
        seller = await self.store.get_user(seller_id)
        if seller is None:
            raise NotFoundError("Seller not found", RejectionReason.USER_NOT_FOUND)

        title = (draft.title or "").strip()
        if not title:
            raise ValidationError("Title is required", RejectionReason.INVALID_AUCTION)
        if len(title) > TITLE_MAX_LENGTH:
            raise ValidationError(
                f"Title must be at most {TITLE_MAX_LENGTH} characters",
                RejectionReason.INVALID_AUCTION,
            )

        starting_price = to_amount(draft.starting_price, "startingPrice")
        if starting_price < 0:
            raise ValidationError("Starting price cannot be negative", RejectionReason.INVALID_AUCTION)

        reserve_price = None
        if draft.reserve_price is not None:
            reserve_price = to_amount(draft.reserve_price, "reservePrice")
            if reserve_price < starting_price:
                raise ValidationError(
                    "Reserve price must not be lower than the starting price",
                    RejectionReason.INVALID_AUCTION,
                )

        bid_increment = None
        if draft.bid_increment is not None:
            bid_increment = to_amount(draft.bid_increment, "bidIncrement")
            if bid_increment <= 0:
                raise ValidationError("Bid increment must be greater than 0", RejectionReason.INVALID_AUCTION)

        if draft.start_time is None or draft.end_time is None:
            raise ValidationError("Start and end time are required", RejectionReason.INVALID_AUCTION)
        start_time = as_utc(draft.start_time)
        end_time = as_utc(draft.end_time)
        if end_time <= start_time:
            raise ValidationError("End time must be after start time", RejectionReason.INVALID_AUCTION)

        auction = Auction(
            seller_id=seller_id,
            title=title,
            description=draft.description,
            category=draft.category,
            condition=draft.condition,
            starting_price=starting_price,
            reserve_price=reserve_price,
            current_bid=starting_price,
            bid_increment=bid_increment,
            start_time=start_time,
            end_time=end_time,
            status=AuctionStatus.DRAFT.value,
        )
        auction = await self.store.add_auction(auction)
        logger.info(f"Создан аукцион {auction.id} продавца {seller_id}: {title}, старт {starting_price}")
        return auction

    async def get_auction(self, auction_id: int, viewer_id: Optional[int] = None) -> Auction:
        """Прочитать аукцион; просмотр не продавцом увеличивает счетчик"""
        async with self.locks.hold(auction_id):
            auction = await self.lifecycle.load_locked(auction_id)
            if viewer_id is not None and viewer_id != auction.seller_id:
                auction.views = (auction.views or 0) + 1
                auction = await self.lifecycle.save(auction)
            return auction

    async def get_active_auctions(self, category: Optional[str] = None) -> List[Auction]:
        """Активные аукционы, ближайшие к окончанию первыми"""
        auctions = await self.store.list_auctions(status=AuctionStatus.ACTIVE)
        result = []
        for auction in auctions:
            auction = await self.lifecycle.load(auction.id)
            if auction.status != AuctionStatus.ACTIVE.value:
                continue
            if category and auction.category != category:
                continue
            result.append(auction)
        return sorted(result, key=lambda a: a.end_time)

    # Ставки

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
        return await self.bidding.place_bid(
            auction_id,
            bidder_id,
            amount,
            bid_type=bid_type,
            max_auto_bid=max_auto_bid,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def get_current_bid(self, auction_id: int) -> CurrentBidInfo:
        return await self.bidding.get_current_bid(auction_id)

    async def get_bid_history(self, auction_id: int, limit: int = 20, page: int = 1) -> BidHistoryPage:
        return await self.bidding.get_bid_history(auction_id, limit=limit, page=page)

    async def get_user_bids(self, auction_id: int, user_id: int) -> List[Bid]:
        return await self.bidding.get_user_bids(auction_id, user_id)

    async def set_auto_bid(self, auction_id: int, bidder_id: int, max_amount) -> AutoBidOrder:
        return await self.autobid.set_auto_bid(auction_id, bidder_id, max_amount)

    async def cancel_auto_bid(self, auction_id: int, bidder_id: int) -> bool:
        return await self.autobid.cancel_auto_bid(auction_id, bidder_id)

    # Жизненный цикл

    async def schedule(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        return await self.lifecycle.schedule(auction_id, actor_id)

    async def activate(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        return await self.lifecycle.activate(auction_id, actor_id)

    async def pause(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        return await self.lifecycle.pause(auction_id, actor_id)

    async def resume(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        return await self.lifecycle.resume(auction_id, actor_id)

    async def extend(self, auction_id: int, new_end_time: datetime, actor_id: Optional[int] = None) -> Auction:
        return await self.lifecycle.extend(auction_id, as_utc(new_end_time), actor_id)

    async def extend_by_minutes(self, auction_id: int, minutes, actor_id: Optional[int] = None) -> Auction:
        return await self.lifecycle.extend_by_minutes(auction_id, minutes, actor_id)

    async def cancel(self, auction_id: int, reason: Optional[str] = None, actor_id: Optional[int] = None) -> Auction:
        return await self.lifecycle.cancel(auction_id, reason, actor_id)

    async def finalize(self, auction_id: int) -> Auction:
        return await self.lifecycle.finalize(auction_id)

    # Наблюдение

    async def add_to_watchlist(self, auction_id: int, user_id: int) -> bool:
        """Добавить аукцион в избранное. False - уже был добавлен"""
        await self._require_auction(auction_id)
        if await self.store.get_user(user_id) is None:
            raise NotFoundError("User not found", RejectionReason.USER_NOT_FOUND)
        added = await self.store.add_watcher(auction_id, user_id)
        if added:
            logger.info(f"Пользователь {user_id} следит за аукционом {auction_id}")
        return added

    async def remove_from_watchlist(self, auction_id: int, user_id: int) -> bool:
        await self._require_auction(auction_id)
        return await self.store.remove_watcher(auction_id, user_id)

    async def get_watchers(self, auction_id: int) -> List[User]:
        await self._require_auction(auction_id)
        users = []
        for user_id in await self.store.list_watcher_ids(auction_id):
            user = await self.store.get_user(user_id)
            if user is not None:
                users.append(user)
        return users

    async def _require_auction(self, auction_id: int) -> Auction:
        return await self.lifecycle.load(auction_id)


# Хранилище в памяти общее для всего процесса
_memory_store: Optional[MemoryAuctionStore] = None


def get_memory_store() -> MemoryAuctionStore:
    global _memory_store
    if _memory_store is None:
        _memory_store = MemoryAuctionStore()
    return _memory_store


def build_engine(
    session: Optional[AsyncSession] = None,
    bot: Optional[Bot] = None,
    settings: Settings = default_settings,
) -> AuctionEngine:
    """Собрать движок по настройкам (STORAGE_BACKEND, CHANNEL_ID)"""
    if settings.STORAGE_BACKEND == "memory":
        store = get_memory_store()
    elif settings.STORAGE_BACKEND == "sql":
        if session is None:
            raise ValueError("SQL storage requires a database session")
        store = SqlAuctionStore(session)
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")

    broadcaster: Broadcaster = LoggingBroadcaster()
    notifier: Notifier = LoggingNotifier()
    if bot is not None:
        notifier = BotNotifier(bot)
        if settings.CHANNEL_ID:
            broadcaster = TelegramChannelBroadcaster(bot, settings.CHANNEL_ID)

    return AuctionEngine(store, broadcaster=broadcaster, notifier=notifier, settings=settings)
