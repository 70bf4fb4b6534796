"""Контракт хранилища аукционов"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional, Protocol
from database.models import Auction, AuctionStatus, AutoBidOrder, Bid, User


class AuctionStore(Protocol):
    """Хранилище, которое использует движок.

    Реализации взаимозаменяемы: SqlAuctionStore (PostgreSQL/SQLite через
    AsyncSession) и MemoryAuctionStore (разработка и тесты).
    """

    # Пользователи
    async def add_user(self, user: User) -> User: ...

    async def get_user(self, user_id: int) -> Optional[User]: ...

    async def get_user_by_telegram_id(self, telegram_id: int) -> Optional[User]: ...

    async def save_user(self, user: User) -> User: ...

    # Аукционы
    async def add_auction(self, auction: Auction) -> Auction: ...

    async def load_auction(self, auction_id: int) -> Optional[Auction]: ...

    async def save_auction(self, auction: Auction) -> Auction:
        """Сохранить аукцион атомарно (SQL проверяет версию записи)"""
        ...

    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        ended_before: Optional[datetime] = None,
    ) -> List[Auction]: ...

    # Ставки
    async def append_bid(self, auction: Auction, bid: Bid) -> Bid:
        """Добавить лидирующую ставку: снять флаг с предыдущей, сохранить аукцион"""
        ...

    async def get_bid(self, bid_id: int) -> Optional[Bid]: ...

    async def highest_active_bid(self, auction_id: int) -> Optional[Bid]:
        """Максимальная активная ставка, при равенстве - самая ранняя"""
        ...

    async def count_active_bids(self, auction_id: int) -> int: ...

    async def list_bids(self, auction_id: int, limit: Optional[int] = None, offset: int = 0) -> List[Bid]: ...

    async def list_user_bids(self, auction_id: int, user_id: int) -> List[Bid]: ...

    # Авто-ставки
    async def save_auto_bid(self, order: AutoBidOrder) -> AutoBidOrder: ...

    async def deactivate_auto_bids(self, auction_id: int, bidder_id: int) -> int: ...

    async def active_auto_bids(
        self,
        auction_id: int,
        exclude_bidder: Optional[int],
        min_ceiling: Decimal,
    ) -> List[AutoBidOrder]:
        """Активные поручения с потолком выше min_ceiling, по убыванию потолка"""
        ...

    # Наблюдатели
    async def add_watcher(self, auction_id: int, user_id: int) -> bool: ...

    async def remove_watcher(self, auction_id: int, user_id: int) -> bool: ...

    async def list_watcher_ids(self, auction_id: int) -> List[int]: ...
