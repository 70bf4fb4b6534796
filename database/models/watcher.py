"""Модель наблюдателя за аукционом"""
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from database.connection import Base
from database.types import BigIntegerPK


class AuctionWatcher(Base):
    """Пользователь, добавивший аукцион в избранное"""
    __tablename__ = "auction_watchers"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    user_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Один пользователь наблюдает за аукционом один раз
    __table_args__ = (
        UniqueConstraint('auction_id', 'user_id', name='uq_auction_watcher'),
    )
