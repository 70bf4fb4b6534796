"""Проверка баланса участника"""
from decimal import Decimal
from typing import Protocol
from services.increments import to_amount
from services.storage import AuctionStore


class Wallet(Protocol):
    async def has_sufficient_balance(self, user_id: int, amount: Decimal) -> bool: ...


class StoreWallet:
    """Баланс берется из профиля пользователя в хранилище"""

    def __init__(self, store: AuctionStore):
        self.store = store

    async def has_sufficient_balance(self, user_id: int, amount: Decimal) -> bool:
        user = await self.store.get_user(user_id)
        if user is None or not user.is_active:
            return False
        return to_amount(user.balance or 0) >= to_amount(amount)
