"""Модели базы данных"""
from .user import User
from .auction import Auction, AuctionStatus
from .bid import Bid, BidType
from .auto_bid import AutoBidOrder
from .watcher import AuctionWatcher

__all__ = [
    "User",
    "Auction",
    "AuctionStatus",
    "Bid",
    "BidType",
    "AutoBidOrder",
    "AuctionWatcher",
]
