"""Модель аукциона"""
from sqlalchemy import Column, BigInteger, Integer, DateTime, ForeignKey, Boolean, String, Text, Numeric
from sqlalchemy.sql import func
import enum
from database.connection import Base
from database.types import BigIntegerPK, UTCDateTime


class AuctionStatus(str, enum.Enum):
    """Статус аукциона"""
    DRAFT = "draft"  # Черновик продавца
    UPCOMING = "upcoming"  # Запланирован, ждет start_time
    ACTIVE = "active"  # Идут торги
    PAUSED = "paused"  # Приостановлен продавцом/админом
    ENDED = "ended"  # Завершен (с победителем или без)
    CANCELLED = "cancelled"  # Отменен


class Auction(Base):
    """Модель аукциона (лота)"""
    __tablename__ = "auctions"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    seller_id = Column(BigInteger, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True, index=True)
    condition = Column(String(20), nullable=True)

    starting_price = Column(Numeric(12, 2), nullable=False)  # Начальная цена
    reserve_price = Column(Numeric(12, 2), nullable=True)  # Резервная цена
    current_bid = Column(Numeric(12, 2), nullable=False)  # Текущая цена
    bid_increment = Column(Numeric(12, 2), nullable=True)  # Фиксированный шаг вместо лестницы

    start_time = Column(UTCDateTime, nullable=False)
    end_time = Column(UTCDateTime, nullable=False, index=True)
    status = Column(String(20), default=AuctionStatus.DRAFT.value, nullable=False, index=True)

    winner_id = Column(BigInteger, ForeignKey("users.id"), nullable=True, index=True)
    winning_bid = Column(Numeric(12, 2), nullable=True)
    # Указатель на текущую лидирующую ставку
    highest_bid_id = Column(BigInteger, nullable=True)

    winner_notified = Column(Boolean, default=False, nullable=False)
    seller_notified = Column(Boolean, default=False, nullable=False)

    extension_count = Column(Integer, default=0, nullable=False)
    extended_seconds = Column(Integer, default=0, nullable=False)
    views = Column(Integer, default=0, nullable=False)
    cancellation_reason = Column(Text, nullable=True)
    channel_message_id = Column(BigInteger, nullable=True)  # ID сообщения в канале

    ended_at = Column(UTCDateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def channel(self) -> str:
        """Канал событий аукциона"""
        return f"auction-{self.id}"

    @property
    def is_active(self) -> bool:
        return self.status == AuctionStatus.ACTIVE.value
