"""Хранилища аукционов"""
from .base import AuctionStore
from .memory import MemoryAuctionStore
from .sql import SqlAuctionStore

__all__ = [
    "AuctionStore",
    "MemoryAuctionStore",
    "SqlAuctionStore",
]
