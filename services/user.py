"""Сервис для работы с пользователями"""
from decimal import Decimal
from services.errors import NotFoundError, ValidationError, RejectionReason
from services.increments import to_amount
from services.storage import AuctionStore
from database.models.user import User


async def get_or_create_user(
    store: AuctionStore,
    telegram_id: int,
    username: str = None,
    first_name: str = None,
    last_name: str = None
) -> User:
    """Получить или создать пользователя"""
    user = await store.get_user_by_telegram_id(telegram_id)

    if not user:
        user = User(
            telegram_id=telegram_id,
            username=username,
            first_name=first_name,
            last_name=last_name,
            balance=Decimal("0"),
            is_admin=False,
            is_active=True
        )
        user = await store.add_user(user)
    else:
        # Обновляем данные, если изменились
        if username != user.username or first_name != user.first_name:
            user.username = username
            user.first_name = first_name
            user.last_name = last_name
            await store.save_user(user)

    return user


async def update_user_balance(
    store: AuctionStore,
    user_id: int,
    amount
) -> User:
    """Изменить баланс пользователя (amount может быть отрицательным)"""
    user = await store.get_user(user_id)

    if not user:
        raise NotFoundError("User not found", RejectionReason.USER_NOT_FOUND)

    new_balance = to_amount(user.balance or 0) + to_amount(amount)
    if new_balance < 0:
        raise ValidationError("Balance cannot become negative", RejectionReason.INVALID_AMOUNT)

    user.balance = new_balance
    await store.save_user(user)
    return user
