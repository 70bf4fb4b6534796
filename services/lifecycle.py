"""Жизненный цикл аукциона

draft -> upcoming -> active <-> paused -> ended, отмена из upcoming/active/paused.

Планировщика нет: переходы по времени (upcoming -> active, active -> ended)
выполняются лениво, когда аукцион читают или сохраняют. Аукцион, к которому
никто не обращается после end_time, остается в статусе active.
"""
from datetime import datetime, timedelta
from typing import Optional
import logging
from config import Settings, settings as default_settings
from database.models import Auction, AuctionStatus, User
from services.clock import Clock, utc_now
from services.errors import (
    ConcurrencyError,
    NotFoundError,
    RejectionReason,
    StateError,
    ValidationError,
)
from services.events import AUCTION_UPDATE, EventEmitter, auction_update_payload
from services.locks import AuctionLocks, auction_locks
from services.notifications import Notifier
from services.storage import AuctionStore

logger = logging.getLogger(__name__)

ACTIVE = AuctionStatus.ACTIVE.value
ENDED = AuctionStatus.ENDED.value
PAUSED = AuctionStatus.PAUSED.value
UPCOMING = AuctionStatus.UPCOMING.value
DRAFT = AuctionStatus.DRAFT.value
CANCELLED = AuctionStatus.CANCELLED.value

CANCELLABLE = (UPCOMING, ACTIVE, PAUSED)
EXTENDABLE = (ACTIVE, PAUSED)


class AuctionLifecycleManager:
    """Переходы состояний аукциона и идемпотентное завершение"""

    def __init__(
        self,
        store: AuctionStore,
        emitter: EventEmitter,
        notifier: Notifier,
        locks: AuctionLocks = auction_locks,
        clock: Clock = utc_now,
        settings: Settings = default_settings,
    ):
        self.store = store
        self.emitter = emitter
        self.notifier = notifier
        self.locks = locks
        self.clock = clock
        self.settings = settings

    # Чтение и запись с ленивыми переходами

    async def save(self, auction: Auction, now: Optional[datetime] = None) -> Auction:
        """Сохранить аукцион; при сохранении upcoming становится active после start_time"""
        now = now or self.clock()
        if auction.status == UPCOMING and now >= auction.start_time:
            auction.status = ACTIVE
            logger.info(f"Аукцион {auction.id} начался")
        return await self.store.save_auction(auction)

    async def refresh(self, auction: Auction, now: Optional[datetime] = None) -> Auction:
        """Применить переходы по времени. Вызывающий держит блокировку аукциона"""
        now = now or self.clock()
        if auction.status == UPCOMING and now >= auction.start_time:
            auction = await self.save(auction, now)
            await self._emit_update(auction)
        if auction.status == ACTIVE and now >= auction.end_time:
            auction = await self._close(auction, now)
        return auction

    async def load(self, auction_id: int) -> Auction:
        """Прочитать аукцион с ленивыми переходами"""
        async with self.locks.hold(auction_id):
            return await self.load_locked(auction_id)

    async def load_locked(self, auction_id: int) -> Auction:
        auction = await self.store.load_auction(auction_id)
        if auction is None:
            raise NotFoundError("Auction not found", RejectionReason.AUCTION_NOT_FOUND)
        return await self.refresh(auction)

    # Завершение

    async def finalize(self, auction_id: int) -> Auction:
        """Завершить аукцион, если время вышло.

        Повторный вызов для завершенного аукциона ничего не меняет, кроме
        повторной попытки неотправленных уведомлений.
        """
        async with self.locks.hold(auction_id):
            auction = await self.store.load_auction(auction_id)
            if auction is None:
                raise NotFoundError("Auction not found", RejectionReason.AUCTION_NOT_FOUND)
            if auction.status == ENDED:
                return await self._notify(auction)
            return await self.refresh(auction)

    async def _close(self, auction: Auction, now: datetime) -> Auction:
        """Перевести аукцион в ended и определить победителя"""
        auction_id = auction.id
        highest = await self.store.highest_active_bid(auction_id)

        auction.status = ENDED
        auction.ended_at = now
        if highest and (auction.reserve_price is None or highest.amount >= auction.reserve_price):
            auction.winner_id = highest.bidder_id
            auction.winning_bid = highest.amount
        else:
            auction.winner_id = None
            auction.winning_bid = None

        try:
            auction = await self.store.save_auction(auction)
        except ConcurrencyError:
            # Аукцион уже завершил другой запрос: его результат и уведомления главнее
            logger.info(f"Аукцион {auction_id} уже завершен параллельным запросом")
            reloaded = await self.store.load_auction(auction_id)
            if reloaded is None:
                raise NotFoundError("Auction not found", RejectionReason.AUCTION_NOT_FOUND)
            return reloaded

        if auction.winner_id:
            logger.info(f"Аукцион {auction_id} завершен. Победитель: {auction.winner_id}, ставка {auction.winning_bid}")
        elif highest:
            logger.info(f"Аукцион {auction_id} завершен без победителя: резервная цена {auction.reserve_price} не достигнута")
        else:
            logger.info(f"Аукцион {auction_id} завершен без ставок")

        await self._emit_update(auction)
        return await self._notify(auction)

    async def _notify(self, auction: Auction) -> Auction:
        """Уведомить победителя и продавца по одному разу.

        Флаг ставится только после успешной отправки; ошибка отправки не
        мешает завершению, следующий вызов finalize повторит попытку.
        """
        changed = False
        seller = await self.store.get_user(auction.seller_id)
        winner = await self.store.get_user(auction.winner_id) if auction.winner_id else None

        if winner is not None and not auction.winner_notified:
            data = {
                "auction_title": auction.title,
                "amount": auction.winning_bid,
                "auction_id": auction.id,
            }
            if await self._send(self.notifier.send_auction_winner_email, winner, data, auction.id):
                auction.winner_notified = True
                changed = True

        if seller is not None and not auction.seller_notified:
            data = {
                "auction_title": auction.title,
                "amount": auction.winning_bid,
                "auction_id": auction.id,
                "winner_name": winner.display_name if winner else None,
                "reason": None if winner else self._no_sale_reason(auction),
            }
            if await self._send(self.notifier.send_seller_auction_ended_email, seller, data, auction.id):
                auction.seller_notified = True
                changed = True

        if changed:
            auction_id = auction.id
            try:
                auction = await self.store.save_auction(auction)
            except ConcurrencyError:
                logger.warning(f"Флаги уведомлений аукциона {auction_id} не сохранены")
                reloaded = await self.store.load_auction(auction_id)
                if reloaded is not None:
                    auction = reloaded
        return auction

    async def _send(self, send, user: User, data: dict, auction_id: int) -> bool:
        try:
            result = await send(user.email, data, recipient=user)
        except Exception as e:
            logger.error(f"Ошибка отправки уведомления для аукциона {auction_id}: {e}")
            return False
        if not result.success:
            logger.warning(f"Уведомление для аукциона {auction_id} не доставлено: {result.error}")
        return result.success

    def _no_sale_reason(self, auction: Auction) -> str:
        if auction.highest_bid_id is None:
            return "no bids were placed"
        return "reserve price was not met"

    # Явные действия продавца/администратора

    async def _check_actor(self, auction: Auction, actor_id: Optional[int]) -> None:
        """Только продавец или админ. actor_id=None - системный вызов"""
        if actor_id is None or actor_id == auction.seller_id:
            return
        actor = await self.store.get_user(actor_id)
        if actor is None or not actor.is_admin:
            raise StateError("Only the seller or an admin can manage this auction", RejectionReason.FORBIDDEN)

    async def schedule(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        """draft -> upcoming (сразу active, если start_time уже наступил)"""
        async with self.locks.hold(auction_id):
            auction = await self.load_locked(auction_id)
            await self._check_actor(auction, actor_id)
            if auction.status != DRAFT:
                raise StateError("Only draft auctions can be scheduled")
            auction.status = UPCOMING
            auction = await self.save(auction)
            logger.info(f"Аукцион {auction.id} запланирован, статус {auction.status}")
            await self._emit_update(auction)
            return auction

    async def activate(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        """Запустить торги сейчас, не дожидаясь start_time"""
        async with self.locks.hold(auction_id):
            auction = await self.load_locked(auction_id)
            await self._check_actor(auction, actor_id)
            if auction.status not in (DRAFT, UPCOMING):
                raise StateError("Only draft or upcoming auctions can be started")
            now = self.clock()
            if now >= auction.end_time:
                raise StateError("Auction end time has already passed", RejectionReason.AUCTION_ENDED)
            auction.status = ACTIVE
            if auction.start_time > now:
                auction.start_time = now
            auction = await self.save(auction, now)
            logger.info(f"Аукцион {auction.id} запущен")
            await self._emit_update(auction)
            return auction

    async def pause(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        """active -> paused"""
        async with self.locks.hold(auction_id):
            auction = await self.load_locked(auction_id)
            await self._check_actor(auction, actor_id)
            if auction.status != ACTIVE:
                raise StateError("Only active auctions can be paused")
            auction.status = PAUSED
            auction = await self.save(auction)
            logger.info(f"Аукцион {auction.id} приостановлен")
            await self._emit_update(auction)
            return auction

    async def resume(self, auction_id: int, actor_id: Optional[int] = None) -> Auction:
        """paused -> active, или сразу ended, если время уже вышло"""
        async with self.locks.hold(auction_id):
            auction = await self.load_locked(auction_id)
            await self._check_actor(auction, actor_id)
            if auction.status != PAUSED:
                raise StateError("Only paused auctions can be resumed")
            now = self.clock()
            if now >= auction.end_time:
                logger.info(f"Аукцион {auction.id} возобновлен после окончания, завершаем")
                return await self._close(auction, now)
            auction.status = ACTIVE
            auction = await self.save(auction, now)
            logger.info(f"Аукцион {auction.id} возобновлен")
            await self._emit_update(auction)
            return auction

    async def extend(self, auction_id: int, new_end_time: datetime, actor_id: Optional[int] = None) -> Auction:
        """Перенести окончание на более позднее время"""
        async with self.locks.hold(auction_id):
            auction = await self.load_locked(auction_id)
            await self._check_actor(auction, actor_id)
            if auction.status not in EXTENDABLE:
                raise StateError("Only active or paused auctions can be extended")
            if new_end_time <= auction.end_time:
                raise ValidationError(
                    "New end time must be later than the current end time",
                    RejectionReason.INVALID_AUCTION,
                )
            auction.end_time = new_end_time
            auction = await self.save(auction)
            logger.info(f"Аукцион {auction.id} продлен до {auction.end_time}")
            await self._emit_update(auction)
            return auction

    async def extend_by_minutes(self, auction_id: int, minutes, actor_id: Optional[int] = None) -> Auction:
        try:
            minutes = float(minutes)
        except (TypeError, ValueError):
            raise ValidationError("Extension minutes must be a positive number", RejectionReason.INVALID_AUCTION)
        if not minutes > 0 or minutes == float("inf"):
            raise ValidationError("Extension minutes must be a positive number", RejectionReason.INVALID_AUCTION)
        auction = await self.load(auction_id)
        return await self.extend(auction_id, auction.end_time + timedelta(minutes=minutes), actor_id)

    async def cancel(self, auction_id: int, reason: Optional[str] = None, actor_id: Optional[int] = None) -> Auction:
        """Отменить аукцион (после завершения нельзя)"""
        async with self.locks.hold(auction_id):
            auction = await self.load_locked(auction_id)
            await self._check_actor(auction, actor_id)
            if auction.status == ENDED:
                raise StateError("Ended auctions cannot be cancelled")
            if auction.status not in CANCELLABLE:
                raise StateError(f"Auctions in status '{auction.status}' cannot be cancelled")
            auction.status = CANCELLED
            auction.cancellation_reason = reason or None
            auction = await self.save(auction)
            logger.info(f"Аукцион {auction.id} отменен. Причина: {reason or '-'}")
            await self._emit_update(auction)
            return auction

    async def _emit_update(self, auction: Auction) -> None:
        bid_count = await self.store.count_active_bids(auction.id)
        await self.emitter.emit(auction, AUCTION_UPDATE, auction_update_payload(auction, bid_count, include_status=True))
