"""Модель ставки"""
from sqlalchemy import Column, BigInteger, DateTime, ForeignKey, Boolean, String, Numeric, Index
from sqlalchemy.sql import func
import enum
from database.connection import Base
from database.types import BigIntegerPK, UTCDateTime


class BidType(str, enum.Enum):
    """Тип ставки"""
    MANUAL = "manual"  # Ставка участника
    AUTO = "auto"  # Ставка, сделанная системой за участника


class Bid(Base):
    """Модель ставки на аукционе"""
    __tablename__ = "bids"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    bidder_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Сумма ставки
    bid_type = Column(String(10), default=BidType.MANUAL.value, nullable=False)
    max_auto_bid = Column(Numeric(12, 2), nullable=True)  # Потолок авто-ставки
    is_winning = Column(Boolean, default=False, nullable=False)  # Является ли лидирующей
    is_active = Column(Boolean, default=True, nullable=False)
    bid_time = Column(UTCDateTime, nullable=False, index=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_bids_auction_amount", "auction_id", "amount"),
        Index("ix_bids_auction_winning", "auction_id", "is_winning"),
    )
