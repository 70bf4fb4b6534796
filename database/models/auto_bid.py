"""Модель авто-ставки (прокси-ставки)"""
from sqlalchemy import Column, BigInteger, ForeignKey, Boolean, Numeric
from database.connection import Base
from database.types import BigIntegerPK, UTCDateTime


class AutoBidOrder(Base):
    """Постоянное поручение участника перебивать ставки до max_amount"""
    __tablename__ = "auto_bid_orders"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    auction_id = Column(BigInteger, ForeignKey("auctions.id"), nullable=False, index=True)
    bidder_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    max_amount = Column(Numeric(12, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False)
