"""Модель пользователя"""
from sqlalchemy import Column, BigInteger, String, DateTime, Boolean, Numeric
from sqlalchemy.sql import func
from database.connection import Base
from database.types import BigIntegerPK


class User(Base):
    """Модель пользователя (продавец или участник торгов)"""
    __tablename__ = "users"

    id = Column(BigIntegerPK, primary_key=True, index=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True, index=True)
    username = Column(String(255), nullable=True)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    balance = Column(Numeric(12, 2), default=0, nullable=False)  # Баланс кошелька
    is_admin = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)

    @property
    def display_name(self) -> str:
        """Имя для сообщений"""
        if self.username:
            return f"@{self.username}"
        full_name = " ".join(part for part in (self.first_name, self.last_name) if part)
        return full_name or f"ID: {self.id}"
