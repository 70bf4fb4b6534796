"""Хранилище аукционов в памяти процесса

Используется для разработки без базы данных и в тестах. Хранит те же
ORM-объекты, что и SQL-хранилище, но не привязывает их к сессии.
Последовательность изменений одного аукциона обеспечивает AuctionLocks.
"""
from datetime import datetime
from decimal import Decimal
from itertools import count
from typing import Dict, List, Optional
from database.models import Auction, AuctionStatus, AutoBidOrder, Bid, User

_USER_DEFAULTS = {
    "balance": Decimal("0"),
    "is_admin": False,
    "is_active": True,
}

_AUCTION_DEFAULTS = {
    "status": AuctionStatus.DRAFT.value,
    "winner_notified": False,
    "seller_notified": False,
    "extension_count": 0,
    "extended_seconds": 0,
    "views": 0,
}

_BID_DEFAULTS = {
    "bid_type": "manual",
    "is_winning": False,
    "is_active": True,
}


def _apply_defaults(obj, defaults: dict) -> None:
    """Значения по умолчанию колонок (без сессии SQLAlchemy их не проставит)"""
    for key, value in defaults.items():
        if getattr(obj, key) is None:
            setattr(obj, key, value)


class MemoryAuctionStore:
    """Хранилище в словарях"""

    def __init__(self):
        self._users: Dict[int, User] = {}
        self._auctions: Dict[int, Auction] = {}
        self._bids: Dict[int, Bid] = {}
        self._bids_by_auction: Dict[int, List[Bid]] = {}
        self._auto_bids: Dict[int, AutoBidOrder] = {}
        self._watchers: Dict[int, List[int]] = {}
        self._user_ids = count(1)
        self._auction_ids = count(1)
        self._bid_ids = count(1)
        self._auto_bid_ids = count(1)

    # Пользователи

    async def add_user(self, user: User) -> User:
        if user.id is None:
            user.id = next(self._user_ids)
        _apply_defaults(user, _USER_DEFAULTS)
        self._users[user.id] = user
        return user

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)

    async def get_user_by_telegram_id(self, telegram_id: int) -> Optional[User]:
        for user in self._users.values():
            if user.telegram_id == telegram_id:
                return user
        return None

    async def save_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    # Аукционы

    async def add_auction(self, auction: Auction) -> Auction:
        if auction.id is None:
            auction.id = next(self._auction_ids)
        _apply_defaults(auction, _AUCTION_DEFAULTS)
        auction.version = 1
        self._auctions[auction.id] = auction
        self._bids_by_auction.setdefault(auction.id, [])
        return auction

    async def load_auction(self, auction_id: int) -> Optional[Auction]:
        return self._auctions.get(auction_id)

    async def save_auction(self, auction: Auction) -> Auction:
        auction.version = (auction.version or 0) + 1
        self._auctions[auction.id] = auction
        return auction

    async def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        ended_before: Optional[datetime] = None,
    ) -> List[Auction]:
        auctions = list(self._auctions.values())
        if status is not None:
            auctions = [a for a in auctions if a.status == AuctionStatus(status).value]
        if ended_before is not None:
            auctions = [a for a in auctions if a.end_time <= ended_before]
        return sorted(auctions, key=lambda a: a.end_time)

    # Ставки

    async def append_bid(self, auction: Auction, bid: Bid) -> Bid:
        bid.id = next(self._bid_ids)
        _apply_defaults(bid, _BID_DEFAULTS)
        # Указатель на лидера вместо перебора всех ставок
        previous = self._bids.get(auction.highest_bid_id) if auction.highest_bid_id else None
        if previous is not None:
            previous.is_winning = False
        self._bids[bid.id] = bid
        self._bids_by_auction.setdefault(auction.id, []).append(bid)
        auction.highest_bid_id = bid.id
        await self.save_auction(auction)
        return bid

    async def get_bid(self, bid_id: int) -> Optional[Bid]:
        return self._bids.get(bid_id)

    def _active_bids(self, auction_id: int) -> List[Bid]:
        return [b for b in self._bids_by_auction.get(auction_id, []) if b.is_active]

    async def highest_active_bid(self, auction_id: int) -> Optional[Bid]:
        bids = self._active_bids(auction_id)
        if not bids:
            return None
        return min(bids, key=lambda b: (-b.amount, b.bid_time, b.id))

    async def count_active_bids(self, auction_id: int) -> int:
        return len(self._active_bids(auction_id))

    async def list_bids(self, auction_id: int, limit: Optional[int] = None, offset: int = 0) -> List[Bid]:
        bids = sorted(
            self._active_bids(auction_id),
            key=lambda b: (b.amount, b.bid_time, b.id),
            reverse=True,
        )
        bids = bids[offset:]
        if limit is not None:
            bids = bids[:limit]
        return bids

    async def list_user_bids(self, auction_id: int, user_id: int) -> List[Bid]:
        bids = [b for b in self._active_bids(auction_id) if b.bidder_id == user_id]
        return sorted(bids, key=lambda b: (b.bid_time, b.id), reverse=True)

    # Авто-ставки

    async def save_auto_bid(self, order: AutoBidOrder) -> AutoBidOrder:
        if order.id is None:
            order.id = next(self._auto_bid_ids)
        if order.is_active is None:
            order.is_active = True
        self._auto_bids[order.id] = order
        return order

    async def deactivate_auto_bids(self, auction_id: int, bidder_id: int) -> int:
        deactivated = 0
        for order in self._auto_bids.values():
            if order.auction_id == auction_id and order.bidder_id == bidder_id and order.is_active:
                order.is_active = False
                deactivated += 1
        return deactivated

    async def active_auto_bids(
        self,
        auction_id: int,
        exclude_bidder: Optional[int],
        min_ceiling: Decimal,
    ) -> List[AutoBidOrder]:
        orders = [
            o for o in self._auto_bids.values()
            if o.auction_id == auction_id
            and o.is_active
            and o.bidder_id != exclude_bidder
            and o.max_amount > min_ceiling
        ]
        return sorted(orders, key=lambda o: (-o.max_amount, o.created_at, o.id))

    # Наблюдатели

    async def add_watcher(self, auction_id: int, user_id: int) -> bool:
        watchers = self._watchers.setdefault(auction_id, [])
        if user_id in watchers:
            return False
        watchers.append(user_id)
        return True

    async def remove_watcher(self, auction_id: int, user_id: int) -> bool:
        watchers = self._watchers.get(auction_id, [])
        if user_id not in watchers:
            return False
        watchers.remove(user_id)
        return True

    async def list_watcher_ids(self, auction_id: int) -> List[int]:
        return list(self._watchers.get(auction_id, []))
