"""Клавиатуры для аукционов"""
from decimal import Decimal
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder
from services.increments import format_money


def get_auction_keyboard(auction_id: int) -> InlineKeyboardMarkup:
    """Клавиатура для аукциона"""
    builder = InlineKeyboardBuilder()
    builder.add(InlineKeyboardButton(
        text="💰 Place a bid",
        callback_data=f"auction:bid:{auction_id}"
    ))
    builder.add(InlineKeyboardButton(
        text="📊 Bid history",
        callback_data=f"auction:bids:{auction_id}"
    ))
    builder.add(InlineKeyboardButton(
        text="⭐ Watch",
        callback_data=f"auction:watch:{auction_id}"
    ))
    builder.adjust(2, 1)
    return builder.as_markup()


def quick_bid_amounts(minimum_bid: Decimal, increment: Decimal, count: int = 3) -> list:
    """Суммы быстрых ставок: минимальная и далее с шагом"""
    return [minimum_bid + increment * i for i in range(count)]


def get_bid_keyboard(auction_id: int, minimum_bid: Decimal, increment: Decimal) -> InlineKeyboardMarkup:
    """Клавиатура для ставки"""
    builder = InlineKeyboardBuilder()
    for amount in quick_bid_amounts(minimum_bid, increment):
        builder.add(InlineKeyboardButton(
            text=format_money(amount),
            callback_data=f"bid:amount:{auction_id}:{amount}"
        ))
    builder.add(InlineKeyboardButton(
        text="✏️ Enter your own amount",
        callback_data=f"bid:custom:{auction_id}"
    ))
    builder.add(InlineKeyboardButton(
        text="❌ Cancel",
        callback_data=f"bid:cancel:{auction_id}"
    ))
    # Каждая кнопка в своей строке
    builder.adjust(1)
    return builder.as_markup()
