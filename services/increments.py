"""Шаг ставки и денежные значения"""
from decimal import Decimal, InvalidOperation
from typing import Optional
from services.errors import ValidationError, RejectionReason

CENT = Decimal("0.01")
# Numeric(12, 2): не больше 10 цифр до запятой
MAX_AMOUNT = Decimal("10000000000")

# Лестница шагов: (нижняя граница диапазона, шаг)
BID_INCREMENT_RULES = (
    (Decimal("10000"), Decimal("250")),
    (Decimal("5000"), Decimal("100")),
    (Decimal("1000"), Decimal("50")),
    (Decimal("500"), Decimal("25")),
    (Decimal("100"), Decimal("10")),
    (Decimal("0"), Decimal("5")),
)


def to_amount(value, field: str = "amount") -> Decimal:
    """Привести сумму к Decimal с точностью до центов.

    Суммы с долями цента не округляются, а отклоняются.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", RejectionReason.INVALID_AMOUNT)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number", RejectionReason.INVALID_AMOUNT)
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number", RejectionReason.INVALID_AMOUNT)
    if abs(amount) >= MAX_AMOUNT:
        raise ValidationError(f"{field} is too large", RejectionReason.INVALID_AMOUNT)
    try:
        rounded = amount.quantize(CENT)
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number", RejectionReason.INVALID_AMOUNT)
    if rounded != amount:
        raise ValidationError(f"{field} must have at most 2 decimal places", RejectionReason.INVALID_AMOUNT)
    return rounded


def calculate_minimum_increment(current_amount) -> Decimal:
    """Минимальный шаг ставки для текущей суммы"""
    amount = to_amount(current_amount or 0)
    for lower_bound, increment in BID_INCREMENT_RULES:
        if amount >= lower_bound:
            return increment
    # Отрицательных цен не бывает, но шаг все равно нужен
    return BID_INCREMENT_RULES[-1][1]


def increment_for(current_amount, bid_increment: Optional[Decimal] = None) -> Decimal:
    """Шаг с учетом фиксированного шага лота"""
    if bid_increment:
        return to_amount(bid_increment)
    return calculate_minimum_increment(current_amount)


def minimum_next_bid(current_amount, bid_increment: Optional[Decimal] = None) -> Decimal:
    """Минимальная следующая ставка после current_amount"""
    return to_amount(current_amount) + increment_for(current_amount, bid_increment)


def format_money(amount) -> str:
    return f"${to_amount(amount):,.2f}"
