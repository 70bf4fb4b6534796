"""Хранилище аукционов в базе данных (SQLAlchemy AsyncSession)"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
import logging
from sqlalchemy import select, update, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from database.models import Auction, AuctionStatus, AuctionWatcher, AutoBidOrder, Bid, User
from services.errors import ConcurrencyError

logger = logging.getLogger(__name__)


class SqlAuctionStore:
    """Хранилище поверх сессии запроса"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _commit(self, auction_id: Optional[int] = None) -> None:
        """Зафиксировать транзакцию, устаревшая версия аукциона -> ConcurrencyError"""
        try:
            await self.session.commit()
        except StaleDataError:
            await self.session.rollback()
            logger.warning(f"Аукцион {auction_id} изменен параллельно, запись отклонена")
            raise ConcurrencyError("Auction was modified concurrently, please retry")

    # Пользователи

    async def add_user(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def get_user(self, user_id: int) -> Optional[User]:
        return await self.session.get(User, user_id)

    async def get_user_by_telegram_id(self, telegram_id: int) -> Optional[User]:
        result = await self.session.execute(
            select(User).where(User.telegram_id == telegram_id)
        )
        return result.scalar_one_or_none()

    async def save_user(self, user: User) -> User:
        self.session.add(user)
        await self.session.commit()
        return user

    # Аукционы

    async def add_auction(self, auction: Auction) -> Auction:
        self.session.add(auction)
        await self.session.commit()
        await self.session.refresh(auction)
        return auction

    async def load_auction(self, auction_id: int) -> Optional[Auction]:
        # populate_existing: всегда читаем свежее состояние после захвата блокировки
        return await self.session.get(Auction, auction_id, populate_existing=True)

    async def save_auction(self, auction: Auction) -> Auction:
        auction_id = auction.id
        self.session.add(auction)
        await self._commit(auction_id)
        return auction

    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        ended_before: Optional[datetime] = None,
    ) -> List[Auction]:
        query = select(Auction)
        if status is not None:
            query = query.where(Auction.status == AuctionStatus(status).value)
        if ended_before is not None:
            query = query.where(Auction.end_time <= ended_before)
        result = await self.session.execute(query.order_by(Auction.end_time.asc()))
        return list(result.scalars().all())

    # Ставки

    async def append_bid(self, auction: Auction, bid: Bid) -> Bid:
        auction_id = auction.id
        try:
            # Снимаем флаг лидера с предыдущей ставки и вставляем новую
            # в одной транзакции с обновлением аукциона
            await self.session.execute(
                update(Bid)
                .where(
                    Bid.auction_id == auction_id,
                    Bid.is_winning.is_(True)
                )
                .values(is_winning=False)
            )
            self.session.add(bid)
            await self.session.flush()
            auction.highest_bid_id = bid.id
            self.session.add(auction)
            await self.session.flush()
        except StaleDataError:
            await self.session.rollback()
            logger.warning(f"Аукцион {auction_id} изменен параллельно, ставка отклонена")
            raise ConcurrencyError("Auction was modified concurrently, please retry")
        await self._commit(auction_id)
        return bid

    async def get_bid(self, bid_id: int) -> Optional[Bid]:
        return await self.session.get(Bid, bid_id)

    async def highest_active_bid(self, auction_id: int) -> Optional[Bid]:
        result = await self.session.execute(
            select(Bid)
            .where(Bid.auction_id == auction_id, Bid.is_active.is_(True))
            .order_by(Bid.amount.desc(), Bid.bid_time.asc(), Bid.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def count_active_bids(self, auction_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Bid.id)).where(
                Bid.auction_id == auction_id,
                Bid.is_active.is_(True)
            )
        )
        return result.scalar_one() or 0

    async def list_bids(self, auction_id: int, limit: Optional[int] = None, offset: int = 0) -> List[Bid]:
        query = (
            select(Bid)
            .where(Bid.auction_id == auction_id, Bid.is_active.is_(True))
            .order_by(Bid.amount.desc(), Bid.bid_time.desc(), Bid.id.desc())
            .offset(offset)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def list_user_bids(self, auction_id: int, user_id: int) -> List[Bid]:
        result = await self.session.execute(
            select(Bid)
            .where(
                Bid.auction_id == auction_id,
                Bid.bidder_id == user_id,
                Bid.is_active.is_(True)
            )
            .order_by(Bid.bid_time.desc(), Bid.id.desc())
        )
        return list(result.scalars().all())

    # Авто-ставки

    async def save_auto_bid(self, order: AutoBidOrder) -> AutoBidOrder:
        self.session.add(order)
        await self.session.commit()
        return order

    async def deactivate_auto_bids(self, auction_id: int, bidder_id: int) -> int:
        result = await self.session.execute(
            update(AutoBidOrder)
            .where(
                AutoBidOrder.auction_id == auction_id,
                AutoBidOrder.bidder_id == bidder_id,
                AutoBidOrder.is_active.is_(True)
            )
            .values(is_active=False)
        )
        await self.session.commit()
        return result.rowcount or 0

    async def active_auto_bids(
        self,
        auction_id: int,
        exclude_bidder: Optional[int],
        min_ceiling: Decimal,
    ) -> List[AutoBidOrder]:
        query = select(AutoBidOrder).where(
            AutoBidOrder.auction_id == auction_id,
            AutoBidOrder.is_active.is_(True),
            AutoBidOrder.max_amount > min_ceiling
        )
        if exclude_bidder is not None:
            query = query.where(AutoBidOrder.bidder_id != exclude_bidder)
        result = await self.session.execute(
            query.order_by(
                AutoBidOrder.max_amount.desc(),
                AutoBidOrder.created_at.asc(),
                AutoBidOrder.id.asc()
            )
        )
        return list(result.scalars().all())

    # Наблюдатели

    async def add_watcher(self, auction_id: int, user_id: int) -> bool:
        result = await self.session.execute(
            select(AuctionWatcher).where(
                AuctionWatcher.auction_id == auction_id,
                AuctionWatcher.user_id == user_id
            )
        )
        if result.scalar_one_or_none():
            return False
        self.session.add(AuctionWatcher(auction_id=auction_id, user_id=user_id))
        await self.session.commit()
        return True

    async def remove_watcher(self, auction_id: int, user_id: int) -> bool:
        result = await self.session.execute(
            delete(AuctionWatcher).where(
                AuctionWatcher.auction_id == auction_id,
                AuctionWatcher.user_id == user_id
            )
        )
        await self.session.commit()
        return bool(result.rowcount)

    async def list_watcher_ids(self, auction_id: int) -> List[int]:
        result = await self.session.execute(
            select(AuctionWatcher.user_id)
            .where(AuctionWatcher.auction_id == auction_id)
            .order_by(AuctionWatcher.id.asc())
        )
        return [row[0] for row in result.all()]
